"""Adapter implementations for external node runtimes."""

from solokube.adapters.container_adapter import ContainerAdapter

__all__ = [
    "ContainerAdapter",
]
