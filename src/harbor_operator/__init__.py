"""Kubernetes operator that manages Harbor registries, projects, members and users."""

__version__ = "0.1.0"
