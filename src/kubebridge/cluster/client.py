"""Cluster client driving the kubectl (or oc) CLI."""

from __future__ import annotations

import json
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import IO, Any

from kubebridge.cluster.exceptions import (
    ClusterError,
    KubectlNotInstalledError,
    KubectlTimeoutError,
    NotLoggedInError,
    PodNotReadyError,
)


@dataclass
class ClusterConfig:
    """Configuration for cluster access.

    Attributes:
        kubectl: CLI binary to run ("kubectl" or "oc").
        context: Kubeconfig context to use (None for current context).
        namespace: Namespace for session resources (None for current namespace).
    """

    kubectl: str = "kubectl"
    context: str | None = None
    namespace: str | None = None


def _is_not_found(stderr: str) -> bool:
    return "(NotFound)" in stderr


class PortForward:
    """A running ``kubectl port-forward`` process.

    The child's stderr is drained by a reader thread; any line reporting an
    error marks the tunnel as failed while the process may keep running.
    """

    # Seconds to wait for the process to exit after SIGTERM
    CLOSE_TIMEOUT = 5

    def __init__(self, process: subprocess.Popen[str]) -> None:
        self._process = process
        self._error = threading.Event()
        self._last_error: str | None = None
        self._reader: threading.Thread | None = None
        if process.stderr is not None:
            self._reader = threading.Thread(
                target=self._drain,
                args=(process.stderr,),
                daemon=True,
                name="kubebridge-port-forward-stderr",
            )
            self._reader.start()

    def _drain(self, stream: IO[str]) -> None:
        for line in stream:
            if "error" in line.lower():
                self._last_error = line.strip()
                self._error.set()

    @property
    def last_error(self) -> str | None:
        return self._last_error

    def is_alive(self) -> bool:
        return self._process.poll() is None

    def error_occurred(self) -> bool:
        return self._error.is_set()

    def close(self) -> None:
        if self._process.poll() is not None:
            return
        self._process.terminate()
        try:
            self._process.wait(timeout=self.CLOSE_TIMEOUT)
        except subprocess.TimeoutExpired:
            self._process.kill()
            self._process.wait()

    def __enter__(self) -> PortForward:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class KubectlClient:
    """Cluster API client built on the kubectl CLI.

    Every call goes through :meth:`run`, which maps CLI failures onto the
    ClusterError hierarchy.
    """

    # Default timeout for kubectl commands (seconds)
    KUBECTL_DEFAULT_TIMEOUT = 30

    # Interval between Pod readiness checks (seconds)
    READY_POLL_INTERVAL = 1

    def __init__(self, config: ClusterConfig | None = None) -> None:
        self._config = config or ClusterConfig()
        self._resolved_namespace: str | None = None

    @property
    def namespace(self) -> str:
        """Namespace for session resources, looked up from kubeconfig once."""
        if self._resolved_namespace is None:
            self._resolved_namespace = (
                self._config.namespace or self._get_current_namespace()
            )
        return self._resolved_namespace

    def _base_command(self) -> list[str]:
        cmd = [self._config.kubectl]
        if self._config.context:
            cmd.extend(["--context", self._config.context])
        return cmd

    def _timeout_seconds(self, timeout: int | None) -> float | None:
        # 0 means wait forever
        if timeout is None:
            return self.KUBECTL_DEFAULT_TIMEOUT
        return timeout or None

    def run(
        self,
        *args: str,
        capture: bool = True,
        check: bool = True,
        input_data: str | None = None,
        timeout: int | None = None,
    ) -> subprocess.CompletedProcess[str]:
        """Invoke the CLI with args and return the finished process.

        ``timeout`` defaults to KUBECTL_DEFAULT_TIMEOUT; 0 disables it.
        With ``check`` a non-zero exit becomes a ClusterError, or
        NotLoggedInError when the credentials were rejected.
        """
        cmd = [*self._base_command(), *args]
        seconds = self._timeout_seconds(timeout)

        try:
            result = subprocess.run(
                cmd,
                capture_output=capture,
                text=True,
                input=input_data,
                timeout=seconds,
            )
        except subprocess.TimeoutExpired:
            raise KubectlTimeoutError(
                f"'{' '.join(cmd)}' timed out after {seconds}s; "
                "is the cluster reachable?"
            ) from None
        except FileNotFoundError as e:
            raise KubectlNotInstalledError(
                f"{self._config.kubectl} was not found on PATH"
            ) from e

        if not check or result.returncode == 0:
            return result

        stderr = result.stderr if capture else ""
        if "must be logged in" in stderr or "Unauthorized" in stderr:
            raise NotLoggedInError(
                f"{self._config.kubectl} is not logged in to the cluster"
            )
        raise ClusterError(f"'{' '.join(cmd)}' failed: {stderr}")

    def _get_current_namespace(self) -> str:
        result = self.run(
            "config", "view", "--minify", "-o",
            "jsonpath={..namespace}",
            check=False,
        )
        ns = result.stdout.strip() if result.returncode == 0 else ""
        return ns if ns else "default"

    def _get_json(self, kind: str, name: str) -> dict[str, Any] | None:
        result = self.run(
            "get", kind, name,
            "-n", self.namespace,
            "-o", "json",
            check=False,
        )
        if result.returncode != 0:
            if _is_not_found(result.stderr):
                return None
            raise ClusterError(f"Failed to get {kind}/{name}: {result.stderr}")

        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ClusterError(f"Invalid JSON for {kind}/{name}: {e}") from e

    # -------------------------------------------------------------------------
    # Services
    # -------------------------------------------------------------------------

    def get_service(self, name: str) -> dict[str, Any] | None:
        """Get a Service by name.

        Returns:
            Service data or None if not found.
        """
        return self._get_json("service", name)

    def create_or_replace_service(self, manifest: dict[str, Any]) -> None:
        """Create a Service, or replace it if one with the same name exists.

        Args:
            manifest: Service manifest.
        """
        name = manifest["metadata"]["name"]
        verb = "create" if self.get_service(name) is None else "replace"
        self.run(
            verb, "-n", self.namespace, "-f", "-",
            input_data=json.dumps(manifest),
        )

    def delete_service(self, name: str) -> None:
        self.run(
            "delete", "service", name,
            "-n", self.namespace,
            "--ignore-not-found",
        )

    # -------------------------------------------------------------------------
    # Pods
    # -------------------------------------------------------------------------

    def apply(self, manifest: dict[str, Any]) -> None:
        """Create or update an object from its manifest."""
        self.run(
            "apply", "-n", self.namespace, "-f", "-",
            input_data=json.dumps(manifest),
        )

    def get_pod(self, name: str) -> dict[str, Any] | None:
        """Get a Pod by name.

        Returns:
            Pod data or None if not found.
        """
        return self._get_json("pod", name)

    def delete_pod(self, name: str) -> None:
        self.run(
            "delete", "pod", name,
            "-n", self.namespace,
            "--ignore-not-found",
            "--wait=false",
        )

    def wait_for_pod_ready(self, name: str, timeout: int = 10) -> None:
        """Wait for a Pod to report the Ready condition.

        Args:
            name: Name of the pod.
            timeout: Timeout in seconds.

        Raises:
            PodNotReadyError: If pod is not ready within timeout or failed.
        """
        start_time = time.time()

        while time.time() - start_time < timeout:
            pod = self.get_pod(name)
            if pod is not None:
                status = pod.get("status") or {}
                if status.get("phase") == "Failed":
                    raise PodNotReadyError(f"Pod {name} failed: {status.get('reason')}")
                for condition in status.get("conditions") or []:
                    if condition.get("type") == "Ready" and condition.get("status") == "True":
                        return

            time.sleep(self.READY_POLL_INTERVAL)

        raise PodNotReadyError(f"Pod {name} not ready within {timeout} seconds")

    def get_pod_log(self, name: str) -> str:
        """Get the current log of a Pod.

        Returns:
            Log contents, or an empty string while the log is not available.
        """
        result = self.run("logs", name, "-n", self.namespace, check=False)
        if result.returncode != 0:
            return ""
        return result.stdout

    def port_forward(
        self,
        pod_name: str,
        local_port: int,
        remote_port: int,
        address: str = "0.0.0.0",
    ) -> PortForward:
        """Start a port-forward from a local port to a Pod port.

        Args:
            pod_name: Target Pod.
            local_port: Local port to listen on.
            remote_port: Pod port to forward to.
            address: Local address to bind (default all interfaces).

        Returns:
            Handle to the running port-forward.

        Raises:
            KubectlNotInstalledError: If the CLI is not installed.
        """
        pf_cmd = self._base_command() + [
            "port-forward",
            "-n", self.namespace,
            "--address", address,
            f"pod/{pod_name}",
            f"{local_port}:{remote_port}",
        ]

        try:
            process = subprocess.Popen(
                pf_cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError as e:
            raise KubectlNotInstalledError(
                f"{self._config.kubectl} CLI not found. Install it and make sure "
                "it is on your PATH."
            ) from e

        return PortForward(process)
