"""Package, distribute and sign configuration modules as OCI artifacts, and track their Kubernetes objects."""

__version__ = "0.1.0"