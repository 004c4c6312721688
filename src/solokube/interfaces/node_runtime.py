"""Node runtime interface for sandboxed node lifecycle operations."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum


class NodeStatus(str, Enum):
    """Normalized node status."""

    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(frozen=True)
class PublishedPort:
    """Host to guest port mapping."""

    host_address: str
    host_port: int
    container_port: int
    protocol: str = "tcp"

    def to_flag(self) -> str:
        """Render as a ``--publish`` value."""
        return f"{self.host_address}:{self.host_port}:{self.container_port}/{self.protocol}"


@dataclass(frozen=True)
class NodeConfig:
    """Configuration used to create a node."""

    name: str
    image: str
    cpus: int
    memory: str
    kernel_path: str | None = None
    published_ports: list[PublishedPort] = field(default_factory=list)
    environment: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class NodeInfo:
    """Normalized node information."""

    name: str
    status: NodeStatus
    raw_status: str
    ipv4_address: str | None = None
    published_ports: list[PublishedPort] = field(default_factory=list)

    def host_port_for(self, container_port: int) -> int | None:
        """Find the host port published for a guest port.

        Args:
            container_port: Port inside the node

        Returns:
            Published host port, or None if the port is not published
        """
        return next(
            (p.host_port for p in self.published_ports if p.container_port == container_port),
            None,
        )


@dataclass(frozen=True)
class ProcessSpec:
    """Process to run inside a node."""

    executable: str
    arguments: list[str] = field(default_factory=list)
    terminal: bool = False

    @property
    def argv(self) -> list[str]:
        return [self.executable, *self.arguments]


class NodeProcess(ABC):
    """Handle to a process started inside a node."""

    @abstractmethod
    async def communicate(self) -> tuple[bytes, bytes]:
        """Wait for exit while draining captured stdout and stderr.

        Returns:
            Tuple of (stdout, stderr); empty when output was not captured
        """

    @abstractmethod
    async def wait(self) -> int:
        """Wait for the process to exit.

        Returns:
            Exit code
        """

    @property
    @abstractmethod
    def returncode(self) -> int | None:
        """Exit code, or None while the process is running."""


class NodeRuntime(ABC):
    """Abstract interface for the external node runtime.

    The runtime owns sandbox lifecycle; solokube only addresses nodes by name.
    All methods return normalized dataclasses rather than backend objects.
    """

    @abstractmethod
    async def get_node(self, name: str) -> NodeInfo:
        """Look up a node by name.

        Args:
            name: Node name

        Returns:
            Node information

        Raises:
            NodeNotFoundError: If no node has this name
            NodeRuntimeError: If the runtime cannot be queried
        """

    @abstractmethod
    async def create_node(self, config: NodeConfig) -> NodeInfo:
        """Create a node without starting it.

        Args:
            config: Node configuration

        Returns:
            Information about the created node

        Raises:
            NodeRuntimeError: If creation fails
        """

    @abstractmethod
    async def bootstrap_node(self, name: str) -> None:
        """Bootstrap a node and start its init process, detached.

        Raises:
            NodeRuntimeError: If the node cannot be started
        """

    @abstractmethod
    async def stop_node(self, name: str) -> None:
        """Stop a running node.

        Raises:
            NodeRuntimeError: If the node cannot be stopped
        """

    @abstractmethod
    async def delete_node(self, name: str, force: bool = False) -> None:
        """Delete a node.

        Args:
            name: Node name
            force: Delete even if the node is running

        Raises:
            NodeRuntimeError: If the node cannot be deleted
        """

    @abstractmethod
    async def create_process(
        self, name: str, process: ProcessSpec, capture_output: bool
    ) -> NodeProcess:
        """Start a process inside a running node.

        Args:
            name: Node name
            process: Process specification
            capture_output: Pipe stdout/stderr back to the caller instead of
                inheriting the invoking process's streams

        Returns:
            Handle to the started process

        Raises:
            NodeRuntimeError: If the process cannot be started
        """
