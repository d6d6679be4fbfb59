"""kubebridge - bridge a local development machine and a Kubernetes cluster."""

__version__ = "0.1.0"
