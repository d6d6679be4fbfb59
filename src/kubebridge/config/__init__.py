"""Configuration for kubebridge sessions."""

from kubebridge.config.models import (
    DEFAULT_BRIDGE_IMAGE,
    ConfigError,
    LocalService,
    RemoteService,
    SessionConfig,
    bridge_labels,
)
from kubebridge.config.parser import (
    build_session_config,
    detect_config,
    parse_config,
    parse_local_service,
    parse_remote_service,
)

__all__ = [
    "DEFAULT_BRIDGE_IMAGE",
    "ConfigError",
    "LocalService",
    "RemoteService",
    "SessionConfig",
    "bridge_labels",
    "build_session_config",
    "detect_config",
    "parse_config",
    "parse_local_service",
    "parse_remote_service",
]
