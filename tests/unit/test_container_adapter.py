"""Tests for the container runtime adapter."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from solokube.adapters.container_adapter import ContainerAdapter, ContainerProcess, parse_inspect
from solokube.clients.container_cli import CommandOutput, ContainerCLI
from solokube.core.exceptions import ContainerCLIError
from solokube.interfaces.exceptions import (
    NodeNotFoundError,
    NodeRuntimeError,
    RuntimeUnavailableError,
)
from solokube.interfaces.node_runtime import NodeConfig, NodeStatus, ProcessSpec, PublishedPort

INSPECT_RUNNING = {
    "status": "running",
    "configuration": {
        "id": "uds-control-plane",
        "publishedPorts": [
            {"hostAddress": "127.0.0.1", "hostPort": 7443, "containerPort": 6443, "proto": "tcp"}
        ],
    },
    "networks": [{"ipv4Address": "192.168.64.5/24"}],
}


@pytest.fixture
def mock_cli():
    cli = MagicMock(spec=ContainerCLI)
    cli.binary = "container"
    cli.run = AsyncMock(return_value=CommandOutput(0, "", ""))
    cli.run_json = AsyncMock(return_value=[INSPECT_RUNNING])
    cli.spawn = AsyncMock()
    return cli


@pytest.fixture
def adapter(mock_cli):
    return ContainerAdapter(cli=mock_cli)


def test_parse_inspect_running():
    """Test inspect output is normalized."""
    node = parse_inspect(INSPECT_RUNNING)

    assert node.name == "uds-control-plane"
    assert node.status == NodeStatus.RUNNING
    assert node.raw_status == "running"
    assert node.ipv4_address == "192.168.64.5"
    assert node.published_ports == [PublishedPort("127.0.0.1", 7443, 6443, "tcp")]
    assert node.host_port_for(6443) == 7443
    assert node.host_port_for(80) is None


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("running", NodeStatus.RUNNING),
        ("stopped", NodeStatus.STOPPED),
        ("unknown", NodeStatus.CREATED),
        ("stopping", NodeStatus.CREATED),
    ],
)
def test_parse_inspect_status(raw, expected):
    """Test runtime statuses map onto normalized states."""
    node = parse_inspect({"status": raw, "configuration": {"id": "n"}})

    assert node.status == expected
    assert node.raw_status == raw


def test_parse_inspect_without_network():
    """Test a node without network attachments has no address."""
    node = parse_inspect({"status": "stopped", "configuration": {"id": "n"}, "networks": []})

    assert node.ipv4_address is None
    assert node.published_ports == []


@pytest.mark.asyncio
async def test_get_node(adapter, mock_cli):
    """Test get_node inspects by name."""
    node = await adapter.get_node("uds-control-plane")

    mock_cli.run_json.assert_awaited_once_with(["inspect", "uds-control-plane"])
    assert node.status == NodeStatus.RUNNING


@pytest.mark.asyncio
async def test_get_node_empty_result(adapter, mock_cli):
    """Test empty inspect output means the node does not exist."""
    mock_cli.run_json.return_value = []

    with pytest.raises(NodeNotFoundError) as exc_info:
        await adapter.get_node("ghost")

    assert exc_info.value.node_name == "ghost"


@pytest.mark.asyncio
async def test_get_node_not_found_error(adapter, mock_cli):
    """Test runtime not-found errors become NodeNotFoundError."""
    mock_cli.run_json.side_effect = ContainerCLIError(
        "failed", returncode=1, stderr="Error: notFound: container ghost not found"
    )

    with pytest.raises(NodeNotFoundError):
        await adapter.get_node("ghost")


@pytest.mark.asyncio
async def test_not_found_keeps_runtime_detail(adapter, mock_cli):
    """Test lookup failures carry the runtime's stderr."""
    mock_cli.run.side_effect = ContainerCLIError(
        "failed", returncode=1, stderr="Error: notFound: container ghost not found"
    )

    with pytest.raises(NodeNotFoundError) as exc_info:
        await adapter.stop_node("ghost")

    assert exc_info.value.node_name == "ghost"
    assert "notFound: container ghost not found" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, ContainerCLIError)


@pytest.mark.asyncio
async def test_create_node_missing_image_is_not_node_not_found(adapter, mock_cli):
    """Test a missing image on create is reported with the runtime's message."""
    mock_cli.run.side_effect = ContainerCLIError(
        "container create failed (exit 1): image not found",
        returncode=1,
        stderr='Error: notFound: "image docker.io/kindest/node:v9 not found"',
    )
    config = NodeConfig(name="uds-control-plane", image="docker.io/kindest/node:v9", cpus=1, memory="1G")

    with pytest.raises(NodeRuntimeError) as exc_info:
        await adapter.create_node(config)

    assert not isinstance(exc_info.value, NodeNotFoundError)
    assert "image" in str(exc_info.value)


@pytest.mark.asyncio
async def test_bootstrap_missing_kernel_is_not_node_not_found(adapter, mock_cli):
    """Test a missing kernel on start is reported with the runtime's message."""
    mock_cli.run.side_effect = ContainerCLIError(
        "container start failed (exit 1): kernel /tmp/vmlinux not found",
        returncode=1,
        stderr="Error: kernel /tmp/vmlinux not found",
    )

    with pytest.raises(NodeRuntimeError) as exc_info:
        await adapter.bootstrap_node("uds-control-plane")

    assert not isinstance(exc_info.value, NodeNotFoundError)
    assert "kernel /tmp/vmlinux" in str(exc_info.value)


@pytest.mark.asyncio
async def test_get_node_runtime_unavailable(adapter, mock_cli):
    """Test a missing runtime binary becomes RuntimeUnavailableError."""
    mock_cli.run_json.side_effect = ContainerCLIError("container command not found")

    with pytest.raises(RuntimeUnavailableError):
        await adapter.get_node("uds-control-plane")


@pytest.mark.asyncio
async def test_get_node_other_failure(adapter, mock_cli):
    """Test other runtime failures become NodeRuntimeError."""
    mock_cli.run_json.side_effect = ContainerCLIError(
        "failed", returncode=1, stderr="XPC connection error"
    )

    with pytest.raises(NodeRuntimeError) as exc_info:
        await adapter.get_node("uds-control-plane")

    assert not isinstance(exc_info.value, NodeNotFoundError)


@pytest.mark.asyncio
async def test_create_node_arguments(adapter, mock_cli):
    """Test create_node passes resources, kernel, ports and environment."""
    config = NodeConfig(
        name="uds-control-plane",
        image="kindest/node:v1.34.0",
        cpus=4,
        memory="8G",
        kernel_path="/tmp/vmlinux",
        published_ports=[PublishedPort("127.0.0.1", 7443, 6443)],
        environment={"KUBECONFIG": "/etc/kubernetes/admin.conf"},
    )

    node = await adapter.create_node(config)

    mock_cli.run.assert_awaited_once_with(
        [
            "create",
            "--name",
            "uds-control-plane",
            "--cpus",
            "4",
            "--memory",
            "8G",
            "--kernel",
            "/tmp/vmlinux",
            "--publish",
            "127.0.0.1:7443:6443/tcp",
            "--env",
            "KUBECONFIG=/etc/kubernetes/admin.conf",
            "kindest/node:v1.34.0",
        ]
    )
    assert node.name == "uds-control-plane"


@pytest.mark.asyncio
async def test_create_node_without_kernel(adapter, mock_cli):
    """Test create_node omits the kernel flag when no kernel is given."""
    await adapter.create_node(NodeConfig(name="n", image="img", cpus=1, memory="1G"))

    args = mock_cli.run.call_args.args[0]
    assert "--kernel" not in args
    assert args[-1] == "img"


@pytest.mark.asyncio
async def test_lifecycle_commands(adapter, mock_cli):
    """Test start, stop and delete map onto runtime subcommands."""
    await adapter.bootstrap_node("n")
    await adapter.stop_node("n")
    await adapter.delete_node("n")
    await adapter.delete_node("n", force=True)

    assert [c.args[0] for c in mock_cli.run.await_args_list] == [
        ["start", "n"],
        ["stop", "n"],
        ["delete", "n"],
        ["delete", "--force", "n"],
    ]


@pytest.mark.asyncio
async def test_stop_node_failure(adapter, mock_cli):
    """Test stop failures are translated."""
    mock_cli.run.side_effect = ContainerCLIError("failed", returncode=1, stderr="busy")

    with pytest.raises(NodeRuntimeError):
        await adapter.stop_node("n")


@pytest.mark.asyncio
async def test_create_process(adapter, mock_cli):
    """Test in-node processes run through exec."""
    proc = MagicMock()
    proc.returncode = 0
    proc.wait = AsyncMock(return_value=0)
    mock_cli.spawn.return_value = proc

    handle = await adapter.create_process(
        "n", ProcessSpec("kubectl", ["get", "nodes"]), capture_output=False
    )

    mock_cli.spawn.assert_awaited_once_with(["exec", "n", "kubectl", "get", "nodes"], capture_output=False)
    assert isinstance(handle, ContainerProcess)
    assert await handle.wait() == 0
    assert handle.returncode == 0


@pytest.mark.asyncio
async def test_process_communicate_normalizes_none():
    """Test uncaptured streams come back as empty bytes."""
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(None, None))

    assert await ContainerProcess(proc).communicate() == (b"", b"")
