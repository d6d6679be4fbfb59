"""Cluster side of the session: the SSH bridge Pod and its tunnel."""

from __future__ import annotations

import threading
import time
from typing import Any

from kubebridge.cluster.base import ClusterClient, PortTunnel
from kubebridge.cluster.exceptions import ClusterError
from kubebridge.config.models import BRIDGE_APP, SessionConfig, bridge_labels
from kubebridge.logger import Logger, StderrLogger
from kubebridge.session.exceptions import BridgeError
from kubebridge.session.state import SessionIdentity

# Printed by the bridge image once sshd is configured
USER_MARKER = "Current container user is:"


def parse_remote_user(log: str) -> str | None:
    """Extract the container user from the bridge Pod log.

    Returns:
        The user name, or None if the marker has not been logged yet.
    """
    index = log.find(USER_MARKER)
    if index < 0:
        return None
    line = log[index + len(USER_MARKER):].split("\n", 1)[0].strip()
    return line or None


class BridgeForwarder:
    """Deploys the bridge Pod and keeps a local tunnel to its SSH port open.

    ``run`` is a long-lived task: it (re)deploys the Pod when missing, waits
    for it to be ready, publishes the remote user to the SessionIdentity and
    supervises ``kubectl port-forward``, reopening it whenever it dies or
    reports an error. It returns once the stop event is set.
    """

    # Bounded wait for the Pod Ready condition (seconds)
    READY_TIMEOUT = 10

    # Bounded wait for the user marker in the Pod log (seconds)
    USER_TIMEOUT = 60

    def __init__(
        self,
        cluster: ClusterClient,
        config: SessionConfig,
        identity: SessionIdentity,
        stop_event: threading.Event,
        logger: Logger | None = None,
        poll_interval: float = 1.0,
    ) -> None:
        self._cluster = cluster
        self._config = config
        self._identity = identity
        self._stop = stop_event
        self._logger = logger or StderrLogger()
        self._poll_interval = poll_interval
        self._deployed = False
        self.pod_name = f"{BRIDGE_APP}-{identity.session_id}"

    def run(self) -> None:
        """Supervise the bridge tunnel until stopped.

        Raises:
            PodNotReadyError: If the Pod is not ready within READY_TIMEOUT.
            BridgeError: If the Pod never logs its user.
        """
        self._logger.debug("Starting Kubernetes SSH service forwarder...")
        while not self._stop.is_set():
            if not self._deployed or self._cluster.get_pod(self.pod_name) is None:
                self._deploy_pod()
                if self._stop.is_set():
                    # stop() ran while the Pod was being created
                    self._remove_pod()
                    return

            self._logger.info(
                "Waiting for remote development Pod [%s] to be ready...", self.pod_name
            )
            self._cluster.wait_for_pod_ready(self.pod_name, timeout=self.READY_TIMEOUT)
            self._logger.info("Remote development Pod [%s] is ready", self.pod_name)

            user = self._wait_for_user()
            if user is None or self._stop.is_set():
                return
            self._identity.set_remote_user(user)

            ssh_port = self._identity.get_or_assign_ssh_port()
            self._logger.info(
                "Opening remote development connection to Kubernetes: %s:%s",
                self.pod_name,
                ssh_port,
            )
            tunnel = self._cluster.port_forward(
                self.pod_name, ssh_port, self._config.bridge_port, address="0.0.0.0"
            )
            try:
                while not self._should_restart(tunnel):
                    if self._stop.wait(self._poll_interval):
                        return
            finally:
                tunnel.close()

    def stop(self) -> None:
        """Signal the task to stop and remove the bridge Pod.

        The delete is issued even if no deployment has completed yet, since
        the worker may be creating the Pod right now.
        """
        self._stop.set()
        self._remove_pod()

    def _remove_pod(self) -> None:
        self._logger.info("Removing remote development Pod [%s]...", self.pod_name)
        try:
            self._cluster.delete_pod(self.pod_name)
        except ClusterError as e:
            self._logger.error("Failed to remove Pod [%s]: %s", self.pod_name, e)
        self._deployed = False

    def pod_manifest(self) -> dict[str, Any]:
        """Generate the bridge Pod specification.

        The client public key is handed to the image through PUBLIC_KEY.
        Local service ports are declared for information only.
        """
        ports = [{"containerPort": self._config.bridge_port, "protocol": "TCP"}]
        for service in self._config.local_services:
            ports.append({"containerPort": service.port, "protocol": "TCP"})

        return {
            "apiVersion": "v1",
            "kind": "Pod",
            "metadata": {
                "name": self.pod_name,
                "labels": bridge_labels(self._identity.session_id),
            },
            "spec": {
                "containers": [
                    {
                        "name": BRIDGE_APP,
                        "image": self._config.bridge_image,
                        "env": [
                            {"name": "PUBLIC_KEY", "value": self._identity.public_key},
                        ],
                        "ports": ports,
                    },
                ],
            },
        }

    def _deploy_pod(self) -> None:
        self._logger.info("Deploying remote development Pod [%s]...", self.pod_name)
        self._cluster.apply(self.pod_manifest())
        self._deployed = True

    def _wait_for_user(self) -> str | None:
        if self._config.user:
            return self._config.user

        self._logger.debug("Waiting for Pod to log current user")
        deadline = time.monotonic() + self.USER_TIMEOUT
        while time.monotonic() < deadline:
            user = parse_remote_user(self._cluster.get_pod_log(self.pod_name))
            if user is not None:
                return user
            if self._stop.wait(self._poll_interval):
                return None

        raise BridgeError(
            f"Unable to retrieve current user from Pod {self.pod_name} "
            f"within {self.USER_TIMEOUT} seconds"
        )

    def _should_restart(self, tunnel: PortTunnel) -> bool:
        try:
            if self._cluster.get_pod(self.pod_name) is None:
                self._logger.warn("Remote development Pod is gone, recreating")
                return True
        except ClusterError as e:
            self._logger.warn("Unable to check remote development Pod: %s", e)
        if tunnel.error_occurred():
            self._logger.warn("Kubernetes tunneling service error, restarting")
            return True
        if not tunnel.is_alive():
            self._logger.warn("Kubernetes tunneling service dead, restarting")
            return True
        return False
