"""Swapping cluster Services over to the session's bridge Pod.

For every local service, the cluster Service with the same name is pointed
at the bridge Pod for the duration of the session. A Service that did not
exist is created and later deleted; a Service that existed is replaced and
later restored from a backup. The backup is kept in memory and also written
to the replacement Service under BACKUP_ANNOTATION, so that a crashed
session can still be reverted from the cluster state alone.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from kubebridge.cluster.base import ClusterClient
from kubebridge.cluster.exceptions import ClusterError
from kubebridge.config.models import (
    BRIDGE_APP,
    BRIDGE_GROUP,
    LABEL_NAME,
    LABEL_PART_OF,
    LocalService,
)
from kubebridge.logger import Logger, StderrLogger
from kubebridge.session.exceptions import SessionError

BACKUP_ANNOTATION = "kubebridge/previous-service"

# Fields populated by the API server that must not be sent back on restore
_SERVER_METADATA_FIELDS = (
    "resourceVersion",
    "uid",
    "creationTimestamp",
    "managedFields",
    "generation",
    "selfLink",
)


@dataclass(frozen=True)
class FreshService:
    """A Service created by the session; deleted on teardown."""

    name: str
    applied: dict[str, Any]


@dataclass(frozen=True)
class ReplacedService:
    """A pre-existing Service replaced by the session; restored on teardown."""

    name: str
    original: dict[str, Any]
    applied: dict[str, Any]


ServiceSwap = FreshService | ReplacedService


def clean_service(service: dict[str, Any]) -> dict[str, Any]:
    """Strip server-populated fields from a Service manifest.

    Args:
        service: Service as returned by the API server.

    Returns:
        A deep copy suitable for create/replace.
    """
    cleaned = copy.deepcopy(service)
    cleaned.pop("status", None)
    metadata = cleaned.get("metadata") or {}
    for key in _SERVER_METADATA_FIELDS:
        metadata.pop(key, None)
    return cleaned


def _annotations(service: dict[str, Any]) -> dict[str, str]:
    return (service.get("metadata") or {}).get("annotations") or {}


def _targets_bridge(service: dict[str, Any]) -> bool:
    selector = (service.get("spec") or {}).get("selector") or {}
    return (
        selector.get(LABEL_NAME) == BRIDGE_APP
        and selector.get(LABEL_PART_OF) == BRIDGE_GROUP
    )


class ServiceSwapManager:
    """Redirects cluster Services to the bridge Pod and restores them."""

    def __init__(
        self,
        cluster: ClusterClient,
        session_id: str | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._cluster = cluster
        self._session_id = session_id
        self._logger = logger or StderrLogger()
        self._swaps: dict[str, ServiceSwap] = {}

    @property
    def managed(self) -> dict[str, ServiceSwap]:
        """Services currently swapped by this manager, by name."""
        return dict(self._swaps)

    def remote_port(self, service: LocalService) -> int:
        """Port the bridge must listen on for a local service.

        This is the target port of the Service routing to the bridge, which
        differs from the local port when an existing Service was replaced.
        """
        swap = self._swaps.get(service.service_name)
        if swap is None:
            return service.port
        ports = swap.applied["spec"]["ports"]
        target = ports[0].get("targetPort") if ports else None
        return target if isinstance(target, int) else service.port

    def activate(self, services: Iterable[LocalService]) -> None:
        """Point every service at the bridge Pod.

        Idempotent per service name. If any service fails, the services
        swapped by this call are restored before the error propagates.

        Raises:
            ClusterError: If the cluster API fails.
        """
        activated: list[LocalService] = []
        try:
            for service in services:
                if service.service_name in self._swaps:
                    continue
                self._activate_one(service)
                activated.append(service)
        except ClusterError:
            if activated:
                self._logger.warn(
                    "Service swap failed, restoring %s service(s)", len(activated)
                )
                self.deactivate(activated)
            raise

    def _activate_one(self, service: LocalService) -> None:
        session_id = self._session_id
        if session_id is None:
            raise SessionError("Swapping Services requires a session id")
        name = service.service_name
        existing = self._cluster.get_service(name)

        if existing is None:
            manifest = service.to_service(session_id)
            self._logger.info("Creating Service/%s for local port %s", name, service.port)
            self._cluster.create_or_replace_service(manifest)
            self._swaps[name] = FreshService(name=name, applied=manifest)
            return

        original: dict[str, Any] | None = None
        backup = ""
        previous_backup = _annotations(existing).get(BACKUP_ANNOTATION)
        if previous_backup is not None:
            # Left behind by a session that never tore down; keep the real original
            try:
                original = clean_service(json.loads(previous_backup))
                backup = previous_backup
            except ValueError:
                self._logger.warn(
                    "Ignoring unreadable %s annotation on Service/%s",
                    BACKUP_ANNOTATION,
                    name,
                )
        if original is None:
            original = clean_service(existing)
            backup = json.dumps(original, sort_keys=True)

        manifest = service.to_service(session_id, previous=original)
        manifest["metadata"]["annotations"] = {BACKUP_ANNOTATION: backup}
        self._logger.info("Replacing Service/%s to route to local port %s", name, service.port)
        self._cluster.create_or_replace_service(manifest)
        self._swaps[name] = ReplacedService(name=name, original=original, applied=manifest)

    def deactivate(self, services: Iterable[LocalService]) -> None:
        """Restore routing for every service.

        Best-effort: errors are logged and remaining services are still
        processed.
        """
        for service in services:
            name = service.service_name
            try:
                self._deactivate_one(name)
            except ClusterError as e:
                self._logger.error("Failed to restore Service/%s: %s", name, e)

    def restore(self, names: Iterable[str]) -> list[str]:
        """Restore Services by name using only the cluster state.

        Used to recover after a session exited without tearing down.

        Returns:
            Names of the Services that could not be restored.
        """
        failed = []
        for name in names:
            try:
                self._deactivate_one(name)
            except ClusterError as e:
                self._logger.error("Failed to restore Service/%s: %s", name, e)
                failed.append(name)
        return failed

    def _deactivate_one(self, name: str) -> None:
        swap = self._swaps.get(name)
        if isinstance(swap, ReplacedService):
            self._logger.info("Restoring original Service/%s", name)
            self._cluster.create_or_replace_service(swap.original)
        elif isinstance(swap, FreshService):
            self._logger.info("Deleting Service/%s", name)
            self._cluster.delete_service(name)
        else:
            self._deactivate_from_cluster(name)
        self._swaps.pop(name, None)

    def _deactivate_from_cluster(self, name: str) -> None:
        current = self._cluster.get_service(name)
        if current is None:
            return

        backup = _annotations(current).get(BACKUP_ANNOTATION)
        if backup is not None:
            try:
                original = clean_service(json.loads(backup))
            except ValueError as e:
                raise ClusterError(
                    f"Unreadable {BACKUP_ANNOTATION} annotation on Service/{name}: {e}"
                ) from e
            self._logger.info("Restoring Service/%s from backup annotation", name)
            self._cluster.create_or_replace_service(original)
        elif _targets_bridge(current):
            self._logger.info("Deleting Service/%s", name)
            self._cluster.delete_service(name)
        else:
            self._logger.debug("Service/%s is not managed by kubebridge, skipping", name)
