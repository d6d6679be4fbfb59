"""Per-session identity shared by the forwarders."""

from __future__ import annotations

import threading
import uuid

import asyncssh

from kubebridge.config.models import SessionConfig
from kubebridge.session.ports import find_free_port

# Key type accepted by the bridge image's authorized-keys setup
CLIENT_KEY_TYPE = "ssh-rsa"


class SessionIdentity:
    """Derived, mutable identity of a remote development session.

    Holds the session UUID, the local SSH tunnel port (resolved once), the
    remote user discovered from the bridge Pod, and the client key pair.
    All accessors are safe to call from both forwarder threads.
    """

    def __init__(self, config: SessionConfig) -> None:
        self._config = config
        self.session_id = str(uuid.uuid4())
        self._lock = threading.Lock()
        self._ssh_port: int | None = None
        self._remote_user: str | None = None
        self._user_known = threading.Event()
        self.client_key = asyncssh.generate_private_key(CLIENT_KEY_TYPE)
        self.public_key = (
            self.client_key.export_public_key("openssh").decode().strip()
        )

    def get_or_assign_ssh_port(self) -> int:
        """Return the session SSH port, assigning it on first use.

        A fixed port from the configuration wins; otherwise a free local
        port is allocated. Concurrent callers all observe the same value.
        """
        with self._lock:
            if self._ssh_port is None:
                self._ssh_port = self._config.ssh_port or find_free_port()
            return self._ssh_port

    @property
    def remote_user(self) -> str | None:
        with self._lock:
            return self._remote_user

    def set_remote_user(self, user: str) -> None:
        with self._lock:
            self._remote_user = user
            self._user_known.set()

    def wait_for_remote_user(
        self,
        stop_event: threading.Event,
        poll_interval: float = 1.0,
    ) -> str | None:
        """Block until the remote user is known or the session is stopping.

        Args:
            stop_event: Session stop signal, checked every poll_interval.
            poll_interval: Seconds between stop checks.

        Returns:
            The remote user, or None if stop_event was set first.
        """
        while not stop_event.is_set():
            if self._user_known.wait(poll_interval):
                user = self.remote_user
                if user is not None:
                    return user
        return None

    def reset(self) -> None:
        """Forget the SSH port and remote user.

        Only call this while no forwarder is running.
        """
        with self._lock:
            self._ssh_port = None
            self._remote_user = None
            self._user_known.clear()
