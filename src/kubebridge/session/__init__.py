"""Remote development session: Service swap, bridge tunnel and SSH forwards."""

from kubebridge.session.bridge import BridgeForwarder
from kubebridge.session.exceptions import (
    BridgeError,
    LocalPortInUseError,
    SessionError,
)
from kubebridge.session.forwarder import ClientPortForwarder
from kubebridge.session.orchestrator import RemoteDevSession
from kubebridge.session.services import (
    BACKUP_ANNOTATION,
    FreshService,
    ReplacedService,
    ServiceSwapManager,
)
from kubebridge.session.state import SessionIdentity

__all__ = [
    "BACKUP_ANNOTATION",
    "BridgeError",
    "BridgeForwarder",
    "ClientPortForwarder",
    "FreshService",
    "LocalPortInUseError",
    "RemoteDevSession",
    "ReplacedService",
    "ServiceSwapManager",
    "SessionError",
    "SessionIdentity",
]
