"""Cluster lifecycle controller.

Sequences node creation and in-node setup for a single-node cluster, and
implements start, stop, delete, status and kubeconfig extraction. No state is
kept between invocations: every operation re-reads the node from the runtime
by its derived name.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from solokube.core.config import ClusterDefaultsConfig
from solokube.core.exceptions import (
    ClusterExistsError,
    ClusterNotFoundError,
    InvalidArgumentError,
    InvalidStateError,
)
from solokube.core.models import (
    IN_NODE_API_PORT,
    IN_NODE_KUBECONFIG,
    ClusterInfo,
    ClusterSpec,
    ClusterStatusReport,
    node_name_for,
)
from solokube.executor.command_executor import CommandExecutor
from solokube.interfaces.exceptions import NodeNotFoundError
from solokube.interfaces.node_runtime import (
    NodeConfig,
    NodeInfo,
    NodeRuntime,
    NodeStatus,
    PublishedPort,
)
from solokube.kernel.cache import KernelCache
from solokube.kubeconfig.manager import KubeconfigManager
from solokube.utils.logging import get_logger, log_operation

logger = get_logger(__name__)

CNI_MANIFEST = "/kind/manifests/default-cni.yaml"
ENTITY_NAME = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9_.-]*$")

ProgressCallback = Callable[[str], None]


@dataclass(frozen=True)
class SetupStep:
    """One in-node command run while creating a cluster."""

    label: str
    command: list[str]
    allow_failure: bool = False


def setup_steps(pod_cidr: str) -> list[SetupStep]:
    """Build the ordered in-node setup sequence for a new cluster.

    Args:
        pod_cidr: Pod network CIDR

    Returns:
        Setup steps in execution order
    """
    install_cni = (
        f"sed -e 's@{{{{ .PodSubnet }}}}@{pod_cidr}@' {CNI_MANIFEST} | kubectl apply -f -"
    )
    return [
        SetupStep("Configuring networking...", ["sysctl", "-w", "net.ipv4.ip_forward=1"]),
        SetupStep(
            "Initializing kubeadm...",
            [
                "kubeadm",
                "init",
                f"--pod-network-cidr={pod_cidr}",
                "--apiserver-cert-extra-sans=127.0.0.1",
            ],
        ),
        SetupStep("Applying CNI...", ["/bin/sh", "-euc", install_cni]),
        SetupStep(
            "Removing control-plane taint...",
            ["kubectl", "taint", "nodes", "--all", "node-role.kubernetes.io/control-plane-"],
            allow_failure=True,
        ),
    ]


def _noop(_: str) -> None:
    pass


class ClusterController:
    """Drives the lifecycle of one single-node cluster per name."""

    def __init__(
        self,
        runtime: NodeRuntime,
        kernel_cache: KernelCache,
        executor: CommandExecutor | None = None,
        defaults: ClusterDefaultsConfig | None = None,
    ):
        """Initialize cluster controller.

        Args:
            runtime: Node runtime
            kernel_cache: Kernel cache used to resolve the boot kernel
            executor: Command executor (built from runtime if None)
            defaults: Cluster defaults (API port fallback)
        """
        self.runtime = runtime
        self.kernel_cache = kernel_cache
        self.executor = executor or CommandExecutor(runtime)
        self.defaults = defaults or ClusterDefaultsConfig()

    async def _find(self, node_name: str) -> NodeInfo | None:
        try:
            return await self.runtime.get_node(node_name)
        except NodeNotFoundError:
            return None

    async def _require(self, cluster_name: str) -> NodeInfo:
        node = await self._find(node_name_for(cluster_name))
        if node is None:
            raise ClusterNotFoundError(f"cluster {cluster_name} not found")
        return node

    async def create(
        self,
        spec: ClusterSpec,
        replace: bool = False,
        verbose: bool = False,
        progress: ProgressCallback = _noop,
    ) -> ClusterInfo:
        """Create and configure a cluster.

        A failed step stops the sequence and leaves the node as it is.

        Args:
            spec: Cluster specification
            replace: Delete an existing node with the same name first
            verbose: Stream in-node command output instead of capturing it
            progress: Called with a label before each phase

        Returns:
            ClusterInfo describing the new cluster

        Raises:
            InvalidArgumentError: If the derived node name is not a valid entity name
            ClusterExistsError: If the cluster exists and replace is False
            KernelResolutionError: If the kernel cannot be resolved
            CommandFailedError: If a required setup step fails
        """
        if not ENTITY_NAME.match(spec.node_name):
            raise InvalidArgumentError(f"invalid cluster name: {spec.name}")

        log_operation(logger, "create", cluster=spec.name, node=spec.node_name)

        existing = await self._find(spec.node_name)
        if existing is not None:
            if not replace:
                raise ClusterExistsError(f"cluster {spec.name} already exists")
            logger.info("replacing_existing_node", node=spec.node_name)
            await self.runtime.delete_node(spec.node_name, force=True)

        kernel_path = await self.kernel_cache.resolve(
            spec.kernel_path, on_fetch=lambda: progress("Fetching cluster kernel...")
        )

        config = NodeConfig(
            name=spec.node_name,
            image=spec.image,
            cpus=spec.cpus,
            memory=spec.memory,
            kernel_path=kernel_path,
            published_ports=[
                PublishedPort(
                    host_address="127.0.0.1",
                    host_port=spec.api_port,
                    container_port=IN_NODE_API_PORT,
                )
            ],
            environment={"KUBECONFIG": IN_NODE_KUBECONFIG},
        )

        progress("Starting container...")
        await self.runtime.create_node(config)
        await self.runtime.bootstrap_node(spec.node_name)

        for step in setup_steps(spec.pod_cidr):
            progress(step.label)
            result = await self.executor.run(
                spec.node_name,
                step.command,
                capture_output=not verbose,
                allow_failure=step.allow_failure,
            )
            logger.debug(
                "setup_step_completed",
                node=spec.node_name,
                step=step.command[0],
                exit_code=result.exit_code,
            )

        raw = await self._read_admin_config(spec.node_name)
        patched = KubeconfigManager.patch(raw, spec.name, spec.api_port)
        KubeconfigManager.write(patched, spec.kubeconfig_path)

        refreshed = await self.runtime.get_node(spec.node_name)
        log_operation(logger, "create_complete", cluster=spec.name, node_ip=refreshed.ipv4_address)

        return ClusterInfo(
            name=spec.name,
            node_name=spec.node_name,
            node_ip=refreshed.ipv4_address,
            api_server=spec.api_server,
            kubeconfig_path=spec.kubeconfig_path,
        )

    async def delete(self, name: str, force: bool = False) -> bool:
        """Delete a cluster's node.

        Args:
            name: Cluster name
            force: Delete even if running

        Returns:
            True if a node was deleted, False if none existed
        """
        node_name = node_name_for(name)
        node = await self._find(node_name)
        if node is None:
            logger.debug("cluster_not_found", cluster=name)
            return False

        await self.runtime.delete_node(node_name, force=force)
        log_operation(logger, "delete", cluster=name, force=force)
        return True

    async def start(self, name: str) -> NodeInfo:
        """Start a cluster's node; a running node is left untouched.

        Returns:
            The node as observed after starting

        Raises:
            ClusterNotFoundError: If the cluster does not exist
        """
        node = await self._require(name)
        if node.status == NodeStatus.RUNNING:
            logger.debug("cluster_already_running", cluster=name)
            return node

        await self.runtime.bootstrap_node(node_name_for(name))
        log_operation(logger, "start", cluster=name)
        return await self.runtime.get_node(node_name_for(name))

    async def stop(self, name: str) -> None:
        """Stop a cluster's node.

        Raises:
            ClusterNotFoundError: If the cluster does not exist
        """
        node = await self._require(name)
        await self.runtime.stop_node(node_name_for(name))
        log_operation(logger, "stop", cluster=name)

    async def status(self, name: str) -> ClusterStatusReport:
        """Report the observed state of a cluster.

        Raises:
            ClusterNotFoundError: If the cluster does not exist
        """
        node = await self._require(name)
        return ClusterStatusReport(
            name=name,
            node_name=node_name_for(name),
            status=node.raw_status,
            node_ip=node.ipv4_address,
            api_port=node.host_port_for(IN_NODE_API_PORT),
            kubeconfig_path=KubeconfigManager.resolve_path(None, name),
        )

    async def kubeconfig(self, name: str, destination: str | Path | None = None) -> str:
        """Extract a host-usable kubeconfig from a running cluster.

        Args:
            name: Cluster name
            destination: Write to this path instead of returning the text

        Returns:
            The written path when destination is given, else the kubeconfig text

        Raises:
            ClusterNotFoundError: If the cluster does not exist
            InvalidStateError: If the node is not running
        """
        node = await self._require(name)
        if node.status != NodeStatus.RUNNING:
            raise InvalidStateError(f"container {node_name_for(name)} is not running")

        api_port = node.host_port_for(IN_NODE_API_PORT) or self.defaults.api_port
        raw = await self._read_admin_config(node_name_for(name))
        patched = KubeconfigManager.patch(raw, name, api_port)

        if destination is None:
            return patched

        path = KubeconfigManager.resolve_path(destination, name)
        KubeconfigManager.write(patched, path)
        return str(path)

    async def _read_admin_config(self, node_name: str) -> str:
        result = await self.executor.run(node_name, ["cat", IN_NODE_KUBECONFIG], capture_output=True)
        return result.stdout
