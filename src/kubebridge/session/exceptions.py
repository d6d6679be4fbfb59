"""Exceptions raised by remote development sessions."""

from __future__ import annotations


class SessionError(Exception):
    """Base exception for remote development session errors."""

    pass


class LocalPortInUseError(SessionError):
    """A local port required by the session is already in use."""

    def __init__(self, port: int, detail: str | None = None) -> None:
        self.port = port
        message = f"Local port '{port}' is already in use"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class BridgeError(SessionError):
    """The bridge Pod did not become usable."""

    pass
