"""Pytest configuration and shared fixtures."""

import logging
from dataclasses import replace
from pathlib import Path
from typing import Any

import pytest
import structlog

from solokube.core.models import ClusterSpec
from solokube.interfaces.exceptions import NodeNotFoundError
from solokube.interfaces.node_runtime import (
    NodeConfig,
    NodeInfo,
    NodeProcess,
    NodeRuntime,
    NodeStatus,
    ProcessSpec,
)

RAW_ADMIN_CONF = """apiVersion: v1
kind: Config
clusters:
- cluster:
    certificate-authority-data: Y2VydA==
    server: https://10.0.0.1:6443
  name: kubernetes
contexts:
- context:
    cluster: kubernetes
    user: kubernetes-admin
  name: kubernetes-admin@kubernetes
current-context: kubernetes-admin@kubernetes
preferences: {}
users:
- name: kubernetes-admin
  user:
    token: example
"""


@pytest.fixture(autouse=True)
def reset_logging():
    """Drop logging configuration left behind by CLI invocations."""
    yield
    logging.root.handlers = []
    structlog.reset_defaults()


class FakeProcess(NodeProcess):
    """Scripted in-node process."""

    def __init__(self, exit_code: int = 0, stdout: bytes = b"", stderr: bytes = b""):
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self._returncode: int | None = None

    async def communicate(self) -> tuple[bytes, bytes]:
        self._returncode = self.exit_code
        return self.stdout, self.stderr

    async def wait(self) -> int:
        self._returncode = self.exit_code
        return self.exit_code

    @property
    def returncode(self) -> int | None:
        return self._returncode


class FakeNodeRuntime(NodeRuntime):
    """In-memory node runtime recording every interaction."""

    def __init__(self, node_ip: str = "192.168.64.5"):
        self.node_ip = node_ip
        self.nodes: dict[str, NodeInfo] = {}
        self.calls: list[tuple[Any, ...]] = []
        self.commands: list[tuple[str, list[str], bool]] = []
        self.responses: dict[str, tuple[int, bytes, bytes]] = {
            "cat": (0, RAW_ADMIN_CONF.encode(), b""),
        }

    def add_node(self, name: str, status: NodeStatus, published_ports=None) -> NodeInfo:
        node = NodeInfo(
            name=name,
            status=status,
            raw_status=status.value,
            ipv4_address=self.node_ip if status == NodeStatus.RUNNING else None,
            published_ports=list(published_ports or []),
        )
        self.nodes[name] = node
        return node

    async def get_node(self, name: str) -> NodeInfo:
        self.calls.append(("get_node", name))
        if name not in self.nodes:
            raise NodeNotFoundError(name)
        return self.nodes[name]

    async def create_node(self, config: NodeConfig) -> NodeInfo:
        self.calls.append(("create_node", config))
        node = NodeInfo(
            name=config.name,
            status=NodeStatus.CREATED,
            raw_status="stopped",
            published_ports=list(config.published_ports),
        )
        self.nodes[config.name] = node
        return node

    async def bootstrap_node(self, name: str) -> None:
        self.calls.append(("bootstrap_node", name))
        self.nodes[name] = replace(
            self.nodes[name],
            status=NodeStatus.RUNNING,
            raw_status="running",
            ipv4_address=self.node_ip,
        )

    async def stop_node(self, name: str) -> None:
        self.calls.append(("stop_node", name))
        self.nodes[name] = replace(self.nodes[name], status=NodeStatus.STOPPED, raw_status="stopped")

    async def delete_node(self, name: str, force: bool = False) -> None:
        self.calls.append(("delete_node", name, force))
        self.nodes.pop(name, None)

    async def create_process(
        self, name: str, process: ProcessSpec, capture_output: bool
    ) -> NodeProcess:
        self.commands.append((name, process.argv, capture_output))
        exit_code, stdout, stderr = self.responses.get(process.executable, (0, b"", b""))
        return FakeProcess(exit_code, stdout, stderr)

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_runtime() -> FakeNodeRuntime:
    """Provide an empty in-memory node runtime."""
    return FakeNodeRuntime()


@pytest.fixture
def raw_admin_conf() -> str:
    """Raw admin.conf as produced by kubeadm inside the node."""
    return RAW_ADMIN_CONF


@pytest.fixture
def cluster_spec(tmp_path: Path) -> ClusterSpec:
    """Provide a cluster spec writing its kubeconfig under tmp_path."""
    return ClusterSpec(
        name="uds",
        image="docker.io/kindest/node:v1.34.0",
        cpus=4,
        memory="8G",
        pod_cidr="10.244.0.0/16",
        api_port=7443,
        kernel_path=str(tmp_path / "vmlinux"),
        kubeconfig_path=str(tmp_path / "kube" / "uds.config"),
    )


def pytest_configure(config: Any) -> None:
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
