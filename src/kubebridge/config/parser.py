"""Parsing of session configuration from files and command-line specs."""

from __future__ import annotations

import json
from dataclasses import replace
from pathlib import Path
from typing import Any

from kubebridge.config.models import (
    DEFAULT_BRIDGE_IMAGE,
    ConfigError,
    LocalService,
    RemoteService,
    SessionConfig,
)

# Looked up in the working directory, first match wins
CONFIG_FILE_NAMES = ("kubebridge.json", ".kubebridge.json")


def _parse_int(value: str, spec: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"Invalid port '{value}' in '{spec}'") from None


def parse_remote_service(spec: str) -> RemoteService:
    """Parse a remote service spec.

    Args:
        spec: "HOST:PORT" or "HOST:PORT:LOCAL_PORT".

    Returns:
        RemoteService instance.

    Raises:
        ConfigError: If the spec is malformed.
    """
    parts = spec.split(":")
    if len(parts) not in (2, 3) or not parts[0]:
        raise ConfigError(
            f"Invalid remote service '{spec}': expected HOST:PORT[:LOCAL_PORT]"
        )
    local_port = _parse_int(parts[2], spec) if len(parts) == 3 else None
    return RemoteService(
        hostname=parts[0],
        port=_parse_int(parts[1], spec),
        local_port=local_port,
    )


def parse_local_service(spec: str) -> LocalService:
    """Parse a local service spec.

    Args:
        spec: "NAME:PORT" or "NAME:PORT:TYPE".

    Returns:
        LocalService instance.

    Raises:
        ConfigError: If the spec is malformed.
    """
    parts = spec.split(":")
    if len(parts) not in (2, 3) or not parts[0]:
        raise ConfigError(
            f"Invalid local service '{spec}': expected NAME:PORT[:TYPE]"
        )
    if len(parts) == 3:
        return LocalService(
            service_name=parts[0],
            port=_parse_int(parts[1], spec),
            type=parts[2],
        )
    return LocalService(service_name=parts[0], port=_parse_int(parts[1], spec))


def _remote_service_from_dict(data: dict[str, Any]) -> RemoteService:
    try:
        return RemoteService(
            hostname=data["hostname"],
            port=int(data["port"]),
            local_port=int(data["localPort"]) if "localPort" in data else None,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid remote service entry {data!r}: {e}") from e


def _local_service_from_dict(data: dict[str, Any]) -> LocalService:
    try:
        return LocalService(
            service_name=data["serviceName"],
            port=int(data["port"]),
            type=data.get("type", "ClusterIP"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigError(f"Invalid local service entry {data!r}: {e}") from e


def _optional_port(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid {key} {value!r}: must be a port number") from None


def parse_config(config_file: Path) -> SessionConfig:
    """Parse a kubebridge.json configuration file.

    Example:
        {
          "remoteServices": [{"hostname": "db", "port": 5432}],
          "localServices": [{"serviceName": "api", "port": 8080}],
          "sshPort": 35000
        }

    Args:
        config_file: Path to the JSON file.

    Returns:
        SessionConfig built from the file.

    Raises:
        ConfigError: If the file cannot be read or is invalid.
    """
    try:
        data = json.loads(config_file.read_text())
    except OSError as e:
        raise ConfigError(f"Cannot read {config_file}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_file}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{config_file} must contain a JSON object")

    return SessionConfig(
        remote_services=tuple(
            _remote_service_from_dict(r) for r in data.get("remoteServices", [])
        ),
        local_services=tuple(
            _local_service_from_dict(s) for s in data.get("localServices", [])
        ),
        ssh_port=_optional_port(data, "sshPort"),
        socks_port=_optional_port(data, "socksPort"),
        user=data.get("user"),
        password=data.get("password"),
        bridge_image=data.get("bridgeImage", DEFAULT_BRIDGE_IMAGE),
    )


def build_session_config(
    base: SessionConfig | None = None,
    remote_specs: list[str] | None = None,
    local_specs: list[str] | None = None,
    ssh_port: int | None = None,
    socks_port: int | None = None,
    bridge_image: str | None = None,
) -> SessionConfig:
    """Merge command-line options on top of a file configuration.

    Services given on the command line are appended; scalar options
    override the file values when set.

    Returns:
        The merged SessionConfig.
    """
    config = base or SessionConfig()
    overrides: dict[str, Any] = {
        "remote_services": config.remote_services
        + tuple(parse_remote_service(s) for s in remote_specs or []),
        "local_services": config.local_services
        + tuple(parse_local_service(s) for s in local_specs or []),
    }
    if ssh_port is not None:
        overrides["ssh_port"] = ssh_port
    if socks_port is not None:
        overrides["socks_port"] = socks_port
    if bridge_image:
        overrides["bridge_image"] = bridge_image
    return replace(config, **overrides)


def detect_config(workspace: Path) -> Path | None:
    """Return the configuration file in workspace, if there is one."""
    return next(
        (workspace / name for name in CONFIG_FILE_NAMES if (workspace / name).exists()),
        None,
    )
