"""Typer CLI for kubebridge."""

from __future__ import annotations

import signal
import sys
from pathlib import Path
from typing import Annotated

import typer

from kubebridge import __version__
from kubebridge.cluster import ClusterConfig, ClusterError, KubectlClient
from kubebridge.config import (
    ConfigError,
    SessionConfig,
    build_session_config,
    detect_config,
    parse_config,
)
from kubebridge.logger import StderrLogger
from kubebridge.session import (
    RemoteDevSession,
    ServiceSwapManager,
    SessionError,
)

app = typer.Typer(
    name="kubebridge",
    help="Bridge local development services and a Kubernetes cluster.",
    add_completion=False,
)

KubectlOption = Annotated[
    str,
    typer.Option("--kubectl", help="CLI used to talk to the cluster (kubectl or oc)."),
]
ContextOption = Annotated[
    str | None,
    typer.Option("--context", help="Kubeconfig context to use."),
]
NamespaceOption = Annotated[
    str | None,
    typer.Option("--namespace", "-n", help="Namespace for session resources."),
]


def version_callback(value: bool) -> None:
    """Print version information and exit."""
    if value:
        typer.echo(f"kubebridge {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show kubebridge version and exit.",
        ),
    ] = False,
) -> None:
    """Bridge local development services and a Kubernetes cluster."""


def _load_config(
    config_file: Path | None,
    remote_services: list[str] | None,
    local_services: list[str] | None,
    ssh_port: int | None,
    socks_port: int | None,
    bridge_image: str | None,
) -> SessionConfig:
    if config_file is None:
        config_file = detect_config(Path.cwd())
    base = parse_config(config_file) if config_file else None
    return build_session_config(
        base,
        remote_specs=remote_services,
        local_specs=local_services,
        ssh_port=ssh_port,
        socks_port=socks_port,
        bridge_image=bridge_image,
    )


@app.command()
def start(
    remote_service: Annotated[
        list[str] | None,
        typer.Option(
            "--remote-service",
            "-r",
            help="Cluster service to reach locally, as HOST:PORT[:LOCAL_PORT].",
        ),
    ] = None,
    local_service: Annotated[
        list[str] | None,
        typer.Option(
            "--local-service",
            "-l",
            help="Local service to expose in the cluster, as NAME:PORT[:TYPE].",
        ),
    ] = None,
    ssh_port: Annotated[
        int | None,
        typer.Option("--ssh-port", help="Local port for the bridge tunnel."),
    ] = None,
    socks_port: Annotated[
        int | None,
        typer.Option("--socks-port", help="Local port for a SOCKS 5 proxy."),
    ] = None,
    bridge_image: Annotated[
        str | None,
        typer.Option("--bridge-image", help="Image of the SSH bridge Pod."),
    ] = None,
    config_file: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="Path to a kubebridge.json file."),
    ] = None,
    kubectl: KubectlOption = "kubectl",
    context: ContextOption = None,
    namespace: NamespaceOption = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Show debug output."),
    ] = False,
) -> None:
    """Start a remote development session and keep it running."""
    logger = StderrLogger(debug=debug)

    try:
        config = _load_config(
            config_file, remote_service, local_service, ssh_port, socks_port, bridge_image
        )
    except ConfigError as e:
        typer.echo(f"Error parsing config: {e}", err=True)
        raise typer.Exit(1) from None

    if not config.remote_services and not config.local_services:
        typer.echo(
            "Error: nothing to forward. Use --remote-service or --local-service.",
            err=True,
        )
        raise typer.Exit(1)

    cluster = KubectlClient(
        ClusterConfig(kubectl=kubectl, context=context, namespace=namespace)
    )
    session = RemoteDevSession(config, cluster, logger)

    try:
        future = session.start()
    except (SessionError, ClusterError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from None

    signal.signal(signal.SIGTERM, lambda s, f: sys.exit(143))

    exit_code = 0
    try:
        future.result()
    except KeyboardInterrupt:
        typer.echo("Interrupted.", err=True)
    except Exception as e:
        typer.echo(f"Error: {e}", err=True)
        exit_code = 1
    finally:
        session.stop()

    raise typer.Exit(exit_code)


@app.command()
def restore(
    services: Annotated[
        list[str],
        typer.Argument(help="Names of the Services to restore."),
    ],
    kubectl: KubectlOption = "kubectl",
    context: ContextOption = None,
    namespace: NamespaceOption = None,
) -> None:
    """Restore Services left swapped by a session that did not stop cleanly."""
    cluster = KubectlClient(
        ClusterConfig(kubectl=kubectl, context=context, namespace=namespace)
    )
    logger = StderrLogger()
    manager = ServiceSwapManager(cluster, logger=logger)
    if manager.restore(services):
        raise typer.Exit(1)
