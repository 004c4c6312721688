"""Container CLI adapter implementing NodeRuntime interface."""

import asyncio
from typing import Any

from solokube.clients.container_cli import ContainerCLI
from solokube.core.exceptions import ContainerCLIError
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
from solokube.utils.logging import get_logger

logger = get_logger(__name__)

_STATUS_MAP = {
    "running": NodeStatus.RUNNING,
    "stopped": NodeStatus.STOPPED,
}


class ContainerProcess(NodeProcess):
    """NodeProcess backed by a ``container exec`` subprocess."""

    def __init__(self, proc: asyncio.subprocess.Process):
        self._proc = proc

    async def communicate(self) -> tuple[bytes, bytes]:
        stdout, stderr = await self._proc.communicate()
        return stdout or b"", stderr or b""

    async def wait(self) -> int:
        return await self._proc.wait()

    @property
    def returncode(self) -> int | None:
        return self._proc.returncode


def parse_inspect(data: dict[str, Any]) -> NodeInfo:
    """Normalize one ``container inspect`` entry.

    Args:
        data: Decoded inspect entry

    Returns:
        Normalized node information
    """
    configuration = data.get("configuration", {})
    raw_status = str(data.get("status", "unknown"))

    networks = data.get("networks", [])
    ipv4_address = None
    if networks and networks[0].get("ipv4Address"):
        ipv4_address = str(networks[0]["ipv4Address"]).split("/")[0]

    published_ports = [
        PublishedPort(
            host_address=p.get("hostAddress", "0.0.0.0"),
            host_port=int(p["hostPort"]),
            container_port=int(p["containerPort"]),
            protocol=p.get("proto", "tcp"),
        )
        for p in configuration.get("publishedPorts", [])
    ]

    return NodeInfo(
        name=configuration.get("id", ""),
        status=_STATUS_MAP.get(raw_status, NodeStatus.CREATED),
        raw_status=raw_status,
        ipv4_address=ipv4_address,
        published_ports=published_ports,
    )


class ContainerAdapter(NodeRuntime):
    """Adapter wrapping the container CLI to implement NodeRuntime interface.

    Runtime failures are translated into interface exceptions; missing nodes
    surface as NodeNotFoundError.
    """

    def __init__(self, binary: str = "container", cli: ContainerCLI | None = None):
        """Initialize container adapter.

        Args:
            binary: Runtime CLI binary name
            cli: Preconfigured CLI wrapper (optional)
        """
        self.cli = cli or ContainerCLI(binary=binary)
        logger.debug("container_adapter_initialized", binary=self.cli.binary)

    def _translate(
        self, error: ContainerCLIError, name: str, lookup: bool = False
    ) -> NodeRuntimeError:
        """Map a CLI failure onto interface exceptions.

        Only operations addressing an existing node by name (``lookup``) read a
        "not found" stderr as a missing node; elsewhere it names some other
        resource, such as an image or kernel, and is reported verbatim.
        """
        if error.returncode is None:
            return RuntimeUnavailableError(str(error))
        if lookup and "not found" in error.stderr.lower():
            return NodeNotFoundError(name, detail=error.stderr)
        return NodeRuntimeError(str(error))

    async def get_node(self, name: str) -> NodeInfo:
        """Look up a node by name.

        Raises:
            NodeNotFoundError: If no node has this name
            NodeRuntimeError: If the runtime cannot be queried
        """
        try:
            entries = await self.cli.run_json(["inspect", name])
        except ContainerCLIError as e:
            raise self._translate(e, name, lookup=True) from e

        if isinstance(entries, dict):
            entries = [entries]
        if not entries:
            raise NodeNotFoundError(name)

        node = parse_inspect(entries[0])
        logger.debug("node_inspected", node=name, status=node.raw_status)
        return node

    async def create_node(self, config: NodeConfig) -> NodeInfo:
        """Create a node without starting it.

        Raises:
            NodeRuntimeError: If creation fails
        """
        args = [
            "create",
            "--name",
            config.name,
            "--cpus",
            str(config.cpus),
            "--memory",
            config.memory,
        ]
        if config.kernel_path:
            args.extend(["--kernel", config.kernel_path])
        for port in config.published_ports:
            args.extend(["--publish", port.to_flag()])
        for key, value in config.environment.items():
            args.extend(["--env", f"{key}={value}"])
        args.append(config.image)

        try:
            await self.cli.run(args)
        except ContainerCLIError as e:
            logger.error("create_node_failed", node=config.name, error=str(e))
            raise self._translate(e, config.name) from e

        logger.info("node_created", node=config.name, image=config.image)
        return await self.get_node(config.name)

    async def bootstrap_node(self, name: str) -> None:
        """Bootstrap a node and start its init process, detached.

        Raises:
            NodeRuntimeError: If the node cannot be started
        """
        try:
            await self.cli.run(["start", name])
        except ContainerCLIError as e:
            logger.error("bootstrap_node_failed", node=name, error=str(e))
            raise self._translate(e, name) from e

        logger.info("node_started", node=name)

    async def stop_node(self, name: str) -> None:
        """Stop a running node.

        Raises:
            NodeRuntimeError: If the node cannot be stopped
        """
        try:
            await self.cli.run(["stop", name])
        except ContainerCLIError as e:
            logger.error("stop_node_failed", node=name, error=str(e))
            raise self._translate(e, name, lookup=True) from e

        logger.info("node_stopped", node=name)

    async def delete_node(self, name: str, force: bool = False) -> None:
        """Delete a node.

        Raises:
            NodeRuntimeError: If the node cannot be deleted
        """
        args = ["delete"]
        if force:
            args.append("--force")
        args.append(name)

        try:
            await self.cli.run(args)
        except ContainerCLIError as e:
            logger.error("delete_node_failed", node=name, error=str(e))
            raise self._translate(e, name, lookup=True) from e

        logger.info("node_deleted", node=name, force=force)

    async def create_process(
        self, name: str, process: ProcessSpec, capture_output: bool
    ) -> NodeProcess:
        """Start a process inside a running node via ``container exec``.

        Raises:
            NodeRuntimeError: If the process cannot be started
        """
        args = ["exec"]
        if process.terminal:
            args.append("--tty")
        args.extend([name, *process.argv])

        try:
            proc = await self.cli.spawn(args, capture_output=capture_output)
        except ContainerCLIError as e:
            raise self._translate(e, name) from e

        return ContainerProcess(proc)
