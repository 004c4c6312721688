"""Interface definitions for the external node runtime."""

from solokube.interfaces.exceptions import (
    NodeNotFoundError,
    NodeRuntimeError,
    RuntimeUnavailableError,
)
from solokube.interfaces.node_runtime import (
    NodeConfig,
    NodeInfo,
    NodeProcess,
    NodeRuntime,
    NodeStatus,
    ProcessSpec,
    PublishedPort,
)

__all__ = [
    "NodeConfig",
    "NodeInfo",
    "NodeNotFoundError",
    "NodeProcess",
    "NodeRuntime",
    "NodeRuntimeError",
    "NodeStatus",
    "ProcessSpec",
    "PublishedPort",
    "RuntimeUnavailableError",
]
