"""Local port helpers."""

from __future__ import annotations

import socket


def find_free_port() -> int:
    """Allocate a free local TCP port.

    The port is released before returning, so it can be bound by the caller.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("", 0))
        return sock.getsockname()[1]


def is_port_available(port: int, host: str = "") -> bool:
    """Check whether a local TCP port can be bound.

    Args:
        port: Port to check.
        host: Address to bind (default all interfaces).

    Returns:
        True if the port could be bound.
    """
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind((host, port))
    except OSError:
        return False
    return True
