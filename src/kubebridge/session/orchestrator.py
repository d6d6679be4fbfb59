"""Remote development session lifecycle."""

from __future__ import annotations

import threading
from concurrent.futures import Future, InvalidStateError, ThreadPoolExecutor

from kubebridge.cluster.base import ClusterClient
from kubebridge.cluster.exceptions import ClusterError
from kubebridge.config.models import SessionConfig
from kubebridge.logger import Logger, StderrLogger
from kubebridge.session.bridge import BridgeForwarder
from kubebridge.session.exceptions import LocalPortInUseError, SessionError
from kubebridge.session.forwarder import ClientPortForwarder
from kubebridge.session.ports import is_port_available
from kubebridge.session.services import ServiceSwapManager
from kubebridge.session.state import SessionIdentity


class RemoteDevSession:
    """A remote development session against a cluster.

    ``start`` validates the local machine, swaps the configured Services to
    the bridge Pod and launches the bridge and client forwarders on a pool of
    two workers. The returned future settles as soon as either forwarder
    finishes; the other one is then told to stop. ``stop`` must be called to
    restore the Services, whatever the outcome.
    """

    def __init__(
        self,
        config: SessionConfig,
        cluster: ClusterClient,
        logger: Logger | None = None,
    ) -> None:
        self._config = config
        self._cluster = cluster
        self._logger = logger or StderrLogger()
        self._lock = threading.Lock()
        self._running = False
        self._stop_event = threading.Event()
        self._pool: ThreadPoolExecutor | None = None
        self.identity = SessionIdentity(config)
        self.swap_manager = ServiceSwapManager(
            cluster, self.identity.session_id, self._logger
        )
        self._bridge: BridgeForwarder | None = None
        self._forwarder: ClientPortForwarder | None = None

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> Future[None]:
        """Start the session.

        Returns:
            Future settled by the first forwarder to finish.

        Raises:
            SessionError: If the session is already running.
            LocalPortInUseError: If a remote service's local port is taken.
            ClusterError: If the Services could not be swapped.
        """
        with self._lock:
            if self._running:
                raise SessionError("Remote development session is already running")

            self._check_environment()
            if self._pool is not None:
                # Forwarders of the previous run may still be winding down
                self._pool.shutdown(wait=True)
                self._pool = None
            self.identity.reset()
            self.swap_manager.activate(self._config.local_services)

            self._stop_event = threading.Event()
            self._bridge = BridgeForwarder(
                self._cluster, self._config, self.identity, self._stop_event, self._logger
            )
            self._forwarder = ClientPortForwarder(
                self._config, self.identity, self.swap_manager, self._stop_event, self._logger
            )
            self._pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="kubebridge")
            self._running = True

            session_future: Future[None] = Future()
            stop_event = self._stop_event
            for task in (
                self._pool.submit(self._bridge.run),
                self._pool.submit(self._forwarder.run),
            ):
                task.add_done_callback(
                    lambda t: _settle(session_future, t, stop_event)
                )
            return session_future

    def stop(self) -> None:
        """Stop the session and restore the cluster Services.

        Safe to call more than once and when the session never started.
        """
        with self._lock:
            if not self._running:
                return
            self._running = False

            self._logger.info("Stopping remote development session...")
            self.swap_manager.deactivate(self._config.local_services)
            self._stop_event.set()
            if self._bridge is not None:
                self._bridge.stop()
            if self._pool is not None:
                self._pool.shutdown(wait=False, cancel_futures=True)

    def _check_environment(self) -> None:
        for service in self._config.remote_services:
            port = service.effective_local_port
            if not is_port_available(port):
                raise LocalPortInUseError(
                    port, f"required to forward {service.hostname}:{service.port}"
                )

            service_name = service.hostname.split(".", 1)[0]
            try:
                exists = self._cluster.get_service(service_name) is not None
            except ClusterError as e:
                self._logger.warn("Unable to look up Service %s: %s", service_name, e)
                continue
            if not exists:
                self._logger.warn(
                    "Service %s does not exist in the cluster, forwarding may fail",
                    service_name,
                )


def _settle(
    session_future: Future[None],
    task: Future[None],
    stop_event: threading.Event,
) -> None:
    """Settle the session future with the first finished forwarder.

    The stop event is set so the other forwarder winds down as well.
    """
    stop_event.set()
    error = None if task.cancelled() else task.exception()
    try:
        if error is not None:
            session_future.set_exception(error)
        else:
            session_future.set_result(None)
    except InvalidStateError:
        pass  # the other forwarder finished first
