"""Cluster access for kubebridge."""

from kubebridge.cluster.base import ClusterClient, PortTunnel
from kubebridge.cluster.client import ClusterConfig, KubectlClient, PortForward
from kubebridge.cluster.exceptions import (
    ClusterError,
    KubectlNotInstalledError,
    KubectlTimeoutError,
    NotLoggedInError,
    PodNotReadyError,
)

__all__ = [
    "ClusterClient",
    "ClusterConfig",
    "ClusterError",
    "KubectlClient",
    "KubectlNotInstalledError",
    "KubectlTimeoutError",
    "NotLoggedInError",
    "PodNotReadyError",
    "PortForward",
    "PortTunnel",
]
