"""Protocols for the cluster API consumed by remote development sessions."""

from __future__ import annotations

from typing import Any, Protocol


class PortTunnel(Protocol):
    """A local TCP listener tunnelled to a Pod port."""

    def is_alive(self) -> bool:
        """Whether the tunnel is still running."""
        ...

    def error_occurred(self) -> bool:
        """Whether the tunnel reported an error while forwarding."""
        ...

    def close(self) -> None:
        """Stop the tunnel and release the local port."""
        ...


class ClusterClient(Protocol):
    """Cluster API interface.

    Service manifests are plain dictionaries in the Kubernetes JSON shape.
    Methods returning ``None`` do so when the object does not exist.
    """

    @property
    def namespace(self) -> str: ...

    def get_service(self, name: str) -> dict[str, Any] | None: ...

    def create_or_replace_service(self, manifest: dict[str, Any]) -> None: ...

    def delete_service(self, name: str) -> None: ...

    def apply(self, manifest: dict[str, Any]) -> None: ...

    def get_pod(self, name: str) -> dict[str, Any] | None: ...

    def delete_pod(self, name: str) -> None: ...

    def wait_for_pod_ready(self, name: str, timeout: int = 10) -> None: ...

    def get_pod_log(self, name: str) -> str: ...

    def port_forward(
        self,
        pod_name: str,
        local_port: int,
        remote_port: int,
        address: str = "0.0.0.0",
    ) -> PortTunnel: ...
