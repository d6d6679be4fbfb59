"""Logger used by the remote development session."""

from __future__ import annotations

import os
from typing import Any, Protocol

import typer


class Logger(Protocol):
    """Structured logger interface.

    Messages use %-style placeholders, formatted with the positional args.
    """

    def info(self, message: str, *args: Any) -> None: ...

    def warn(self, message: str, *args: Any) -> None: ...

    def debug(self, message: str, *args: Any) -> None: ...

    def error(self, message: str, *args: Any) -> None: ...


def _format(message: str, args: tuple[Any, ...]) -> str:
    return message % args if args else message


class StderrLogger:
    """Logger writing progress messages to stderr.

    Debug output is only shown when enabled explicitly or with
    KUBEBRIDGE_DEBUG=1.
    """

    def __init__(self, debug: bool = False) -> None:
        self.debug_enabled = debug or os.environ.get("KUBEBRIDGE_DEBUG", "0") == "1"

    def info(self, message: str, *args: Any) -> None:
        typer.echo(_format(message, args), err=True)

    def warn(self, message: str, *args: Any) -> None:
        typer.echo(f"Warning: {_format(message, args)}", err=True)

    def debug(self, message: str, *args: Any) -> None:
        if self.debug_enabled:
            typer.echo(f"[debug] {_format(message, args)}", err=True)

    def error(self, message: str, *args: Any) -> None:
        typer.echo(f"Error: {_format(message, args)}", err=True)


class SilentLogger:
    """Logger that discards every message."""

    def info(self, message: str, *args: Any) -> None:
        pass

    def warn(self, message: str, *args: Any) -> None:
        pass

    def debug(self, message: str, *args: Any) -> None:
        pass

    def error(self, message: str, *args: Any) -> None:
        pass
