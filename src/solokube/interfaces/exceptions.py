"""Exceptions for interface implementations."""


class InterfaceError(Exception):
    """Base exception for all interface-related errors."""


class NodeRuntimeError(InterfaceError):
    """Exception for node runtime operations."""


class NodeNotFoundError(NodeRuntimeError):
    """Exception raised when the runtime has no node with the requested name."""

    def __init__(self, node_name: str, detail: str = ""):
        """Initialize not-found error.

        Args:
            node_name: Name of the missing node
            detail: Runtime diagnostic text (optional)
        """
        message = f"node {node_name} not found"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.node_name = node_name
        self.detail = detail


class RuntimeUnavailableError(NodeRuntimeError):
    """Exception raised when the runtime binary or its system service is unreachable."""
