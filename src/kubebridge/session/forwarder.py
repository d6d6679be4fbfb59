"""Local side of the session: SSH client carrying the port forwards.

Once the bridge tunnel is listening and the remote user is known, an SSH
connection is opened over ``localhost:<ssh port>`` and every configured
forward is established on it:

- local forwards (remote services): local port -> host:port in the cluster
- remote forwards (local services): bridge port -> localhost:port here
- an optional SOCKS 5 proxy into the cluster

The connection is supervised and reopened with a fixed delay when it fails;
forwards are rebuilt from scratch every time.
"""

from __future__ import annotations

import asyncio
import threading

import asyncssh

from kubebridge.config.models import SessionConfig
from kubebridge.logger import Logger, StderrLogger
from kubebridge.session.services import ServiceSwapManager
from kubebridge.session.state import SessionIdentity


class ClientPortForwarder:
    """SSH client task establishing the session's port forwards."""

    # Connection and authentication timeout (seconds)
    CONNECT_TIMEOUT = 10

    # Sessions are reopened at least this often (seconds)
    SESSION_TIMEOUT = 3600

    def __init__(
        self,
        config: SessionConfig,
        identity: SessionIdentity,
        swap_manager: ServiceSwapManager,
        stop_event: threading.Event,
        logger: Logger | None = None,
        reconnect_delay: float = 5.0,
        poll_interval: float = 1.0,
    ) -> None:
        self._config = config
        self._identity = identity
        self._swap_manager = swap_manager
        self._stop = stop_event
        self._logger = logger or StderrLogger()
        self._reconnect_delay = reconnect_delay
        self._poll_interval = poll_interval

    def run(self) -> None:
        """Keep the SSH session and its forwards up until stopped."""
        self._logger.debug("Starting port forwarder...")
        while True:
            self._logger.debug("Waiting for remote container to log current user")
            user = self._identity.wait_for_remote_user(self._stop, self._poll_interval)
            if user is None:
                return

            try:
                asyncio.run(self._run_session(user))
                if not self._stop.is_set():
                    self._logger.warn(
                        "Remote development session closed, reconnecting in %s seconds",
                        self._reconnect_delay,
                    )
            except Exception as e:
                self._logger.warn(
                    "Remote development session disconnected, retrying in %s seconds: %s",
                    self._reconnect_delay,
                    e,
                )

            if self._stop.wait(self._reconnect_delay):
                return

    def stop(self) -> None:
        self._stop.set()

    async def _run_session(self, user: str) -> None:
        ssh_port = self._identity.get_or_assign_ssh_port()
        conn = await asyncssh.connect(
            "localhost",
            ssh_port,
            username=user,
            client_keys=[self._identity.client_key],
            password=self._config.password,
            preferred_auth="publickey,password",
            known_hosts=None,
            agent_path=None,
            config=[],
            connect_timeout=self.CONNECT_TIMEOUT,
        )
        try:
            await self._forward_remote_services(conn)
            await self._forward_local_services(conn)
            await self._start_socks_proxy(conn)
            await self._wait_closed(conn)
        finally:
            conn.close()

    async def _forward_remote_services(self, conn: asyncssh.SSHClientConnection) -> None:
        for service in self._config.remote_services:
            await conn.forward_local_port(
                "", service.effective_local_port, service.hostname, service.port
            )
            self._logger.info(
                "Kubernetes Service %s:%s is now available at local port %s",
                service.hostname,
                service.port,
                service.effective_local_port,
            )

    async def _forward_local_services(self, conn: asyncssh.SSHClientConnection) -> None:
        for service in self._config.local_services:
            remote_port = self._swap_manager.remote_port(service)
            # Loopback on this side: some dev servers only listen on localhost
            await conn.forward_remote_port("", remote_port, "localhost", service.port)
            self._logger.info(
                "Local port '%s' is now available as a Kubernetes Service at %s:%s",
                service.port,
                service.service_name,
                remote_port,
            )

    async def _start_socks_proxy(self, conn: asyncssh.SSHClientConnection) -> None:
        if self._config.socks_port is None:
            self._logger.debug("SOCKS 5 proxy is disabled")
            return
        await conn.forward_socks("", self._config.socks_port)
        self._logger.info(
            "SOCKS 5 proxy is now available at local port %s", self._config.socks_port
        )

    async def _wait_closed(self, conn: asyncssh.SSHClientConnection) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.SESSION_TIMEOUT
        closed = asyncio.ensure_future(conn.wait_closed())
        try:
            while (
                not closed.done()
                and not self._stop.is_set()
                and loop.time() < deadline
            ):
                await asyncio.wait({closed}, timeout=self._poll_interval)
        finally:
            if not closed.done():
                closed.cancel()
