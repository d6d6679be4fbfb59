"""Exceptions raised by the cluster client."""

from __future__ import annotations


class ClusterError(Exception):
    """Base exception for cluster access errors."""

    pass


class KubectlNotInstalledError(ClusterError):
    """The kubectl (or oc) CLI is not installed."""

    pass


class NotLoggedInError(ClusterError):
    """Not logged in to the cluster."""

    pass


class KubectlTimeoutError(ClusterError):
    """The kubectl command timed out."""

    pass


class PodNotReadyError(ClusterError):
    """Pod is not ready."""

    pass
