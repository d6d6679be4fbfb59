"""Configuration models for remote development sessions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

DEFAULT_BRIDGE_IMAGE = "quay.io/jkube/jkube-remote-dev:0.0.18"
DEFAULT_BRIDGE_PORT = 2222

LABEL_NAME = "app.kubernetes.io/name"
LABEL_PART_OF = "app.kubernetes.io/part-of"
LABEL_INSTANCE = "app.kubernetes.io/instance"
BRIDGE_APP = "kubebridge-remote-dev"
BRIDGE_GROUP = "kubebridge"

SERVICE_TYPES = ("ClusterIP", "NodePort", "LoadBalancer")

_SERVICE_NAME_PATTERN = re.compile(r"^[a-z]([-a-z0-9]*[a-z0-9])?$")


class ConfigError(Exception):
    """Invalid remote development configuration."""

    pass


def _validate_port(port: int, what: str) -> None:
    if not isinstance(port, int) or isinstance(port, bool):
        raise ConfigError(f"Invalid {what} '{port}': must be an integer")
    if not 1 <= port <= 65535:
        raise ConfigError(f"Invalid {what} '{port}': must be between 1 and 65535")


def bridge_labels(session_id: str) -> dict[str, str]:
    """Labels carried by the bridge Pod of a session.

    Args:
        session_id: Session UUID.

    Returns:
        Label map used both on the Pod and as Service selector.
    """
    return {
        LABEL_NAME: BRIDGE_APP,
        LABEL_PART_OF: BRIDGE_GROUP,
        LABEL_INSTANCE: session_id,
    }


@dataclass(frozen=True)
class RemoteService:
    """A cluster endpoint made reachable from the local machine.

    Attributes:
        hostname: Host name as resolved from inside the cluster.
        port: Port on the remote host.
        local_port: Local port to listen on (defaults to port).
    """

    hostname: str
    port: int
    local_port: int | None = None

    def __post_init__(self) -> None:
        if not self.hostname:
            raise ConfigError("Remote service hostname must not be empty")
        _validate_port(self.port, "remote service port")
        if self.local_port is not None:
            _validate_port(self.local_port, "remote service local port")

    @property
    def effective_local_port(self) -> int:
        return self.local_port if self.local_port is not None else self.port


@dataclass(frozen=True)
class LocalService:
    """A local endpoint exposed inside the cluster as a Service.

    Attributes:
        service_name: Name of the cluster Service.
        port: Port the service listens on locally.
        type: Service type (ClusterIP, NodePort or LoadBalancer).
    """

    service_name: str
    port: int
    type: str = "ClusterIP"

    def __post_init__(self) -> None:
        if len(self.service_name) > 63 or not _SERVICE_NAME_PATTERN.match(
            self.service_name
        ):
            raise ConfigError(
                f"Invalid service name '{self.service_name}': must be a lowercase "
                "DNS label starting with a letter (max 63 characters)"
            )
        _validate_port(self.port, "local service port")
        if self.type not in SERVICE_TYPES:
            raise ConfigError(
                f"Invalid service type '{self.type}': "
                f"expected one of {', '.join(SERVICE_TYPES)}"
            )

    def to_service(
        self,
        session_id: str,
        previous: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Build the Service manifest routing to the session's bridge Pod.

        When replacing an existing Service, its first port and integer
        targetPort are reused so in-cluster clients keep the same address.

        Args:
            session_id: Session UUID used in the selector.
            previous: The Service being replaced, if any.

        Returns:
            Service manifest as a dictionary.
        """
        port = self.port
        target_port: int = self.port
        previous_ports = ((previous or {}).get("spec") or {}).get("ports") or []
        if previous_ports:
            port = previous_ports[0].get("port", port)
            target = previous_ports[0].get("targetPort")
            target_port = target if isinstance(target, int) else port

        return {
            "apiVersion": "v1",
            "kind": "Service",
            "metadata": {
                "name": self.service_name,
            },
            "spec": {
                "type": self.type,
                "selector": bridge_labels(session_id),
                "ports": [
                    {"protocol": "TCP", "port": port, "targetPort": target_port},
                ],
            },
        }


@dataclass(frozen=True)
class SessionConfig:
    """Caller-supplied configuration for a remote development session.

    Attributes:
        remote_services: Cluster endpoints forwarded to the local machine.
        local_services: Local endpoints exposed as cluster Services.
        ssh_port: Fixed local port for the bridge tunnel (None to auto-assign).
        socks_port: Local port for a SOCKS 5 proxy into the cluster (None
            to disable).
        user: Placeholder remote user for the bridge.
        password: Placeholder remote password for the bridge.
        bridge_image: Image of the SSH bridge Pod.
        bridge_port: SSH port exposed by the bridge container.
    """

    remote_services: tuple[RemoteService, ...] = field(default_factory=tuple)
    local_services: tuple[LocalService, ...] = field(default_factory=tuple)
    ssh_port: int | None = None
    socks_port: int | None = None
    user: str | None = None
    password: str | None = None
    bridge_image: str = DEFAULT_BRIDGE_IMAGE
    bridge_port: int = DEFAULT_BRIDGE_PORT

    def __post_init__(self) -> None:
        if self.ssh_port is not None:
            _validate_port(self.ssh_port, "SSH port")
        if self.socks_port is not None:
            _validate_port(self.socks_port, "SOCKS port")
        names = [s.service_name for s in self.local_services]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigError(
                f"Local service names must be unique: {', '.join(duplicates)}"
            )
