"""Pytest fixtures and configuration for integration tests."""

from __future__ import annotations

import os
import secrets
import shutil
import subprocess

import pytest

DEFAULT_NAMESPACE = "kubebridge-integration-test"


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers for integration tests."""
    config.addinivalue_line(
        "markers",
        "integration: integration tests requiring real infrastructure",
    )
    config.addinivalue_line(
        "markers",
        "kubernetes: tests requiring kubernetes cluster (Kind or OpenShift)",
    )


@pytest.fixture(scope="session")
def kubectl_cli() -> str | None:
    """CLI used to reach the cluster, preferring kubectl over oc."""
    for cli in ("kubectl", "oc"):
        if shutil.which(cli) is not None:
            return cli
    return None


@pytest.fixture(scope="session")
def kubernetes_available(kubectl_cli: str | None) -> bool:
    """Check if a Kubernetes cluster is accessible."""
    if kubectl_cli is None:
        return False

    try:
        result = subprocess.run(
            [kubectl_cli, "cluster-info"],
            capture_output=True,
            text=True,
            timeout=30,
        )
        return result.returncode == 0
    except (subprocess.TimeoutExpired, OSError):
        return False


@pytest.fixture
def require_kubernetes(kubernetes_available: bool) -> None:
    """Skip test if kubernetes cluster is not available."""
    if not kubernetes_available:
        pytest.skip("kubernetes cluster not available")


@pytest.fixture(scope="session")
def test_namespace(kubectl_cli: str | None, kubernetes_available: bool) -> str:
    """Get or create the namespace used by integration tests.

    Can be overridden with KUBEBRIDGE_TEST_NAMESPACE environment variable.
    """
    if not kubernetes_available or kubectl_cli is None:
        pytest.skip("kubernetes cluster not available")

    namespace = os.environ.get("KUBEBRIDGE_TEST_NAMESPACE", DEFAULT_NAMESPACE)
    exists = subprocess.run(
        [kubectl_cli, "get", "namespace", namespace, "-o", "name"],
        capture_output=True,
        text=True,
        timeout=60,
    )
    if exists.returncode != 0:
        subprocess.run(
            [kubectl_cli, "create", "namespace", namespace],
            capture_output=True,
            text=True,
            timeout=60,
            check=True,
        )
    return namespace


@pytest.fixture
def unique_service_name() -> str:
    """Generate a unique Service name for testing."""
    return f"test-{secrets.token_hex(4)}"
