"""Core data models for solokube."""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from solokube.kubeconfig.manager import KubeconfigManager

IN_NODE_API_PORT = 6443
IN_NODE_KUBECONFIG = "/etc/kubernetes/admin.conf"
NODE_NAME_SUFFIX = "-control-plane"


def node_name_for(cluster_name: str) -> str:
    """Derive the runtime node name for a cluster.

    Args:
        cluster_name: User-facing cluster name

    Returns:
        Node name used as the identity key against the node runtime
    """
    return f"{cluster_name}{NODE_NAME_SUFFIX}"


class ClusterSpec(BaseModel):
    """Immutable description of a cluster provisioning request."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Cluster name")
    image: str = Field(..., description="Node image reference")
    cpus: int = Field(..., ge=1, description="Number of CPUs for the node")
    memory: str = Field(..., description="Memory size, e.g. 16G")
    pod_cidr: str = Field(..., description="Pod network CIDR for kubeadm")
    api_port: int = Field(..., ge=1, le=65535, description="Host-side API server port")
    kernel_path: str | None = Field(None, description="Explicit kernel binary path")
    kubeconfig_path: Path = Field(..., description="Where the host kubeconfig is written")

    @model_validator(mode="before")
    @classmethod
    def resolve_kubeconfig_path(cls, data: Any) -> Any:
        """Resolve the kubeconfig path from an override or the cluster name."""
        if isinstance(data, dict):
            data = dict(data)
            data["kubeconfig_path"] = KubeconfigManager.resolve_path(
                data.get("kubeconfig_path"), data.get("name", "")
            )
        return data

    @property
    def node_name(self) -> str:
        """Runtime node name for this cluster."""
        return node_name_for(self.name)

    @property
    def api_server(self) -> str:
        """Host-facing API server URL."""
        return f"https://127.0.0.1:{self.api_port}"


class ExecResult(BaseModel):
    """Outcome of one in-node command."""

    model_config = ConfigDict(frozen=True)

    stdout: str = ""
    stderr: str = ""
    exit_code: int


class ClusterInfo(BaseModel):
    """Summary of a freshly created cluster."""

    name: str
    node_name: str
    node_ip: str | None = None
    api_server: str
    kubeconfig_path: Path


class ClusterStatusReport(BaseModel):
    """Observed state of a cluster node."""

    name: str
    node_name: str
    status: str
    node_ip: str | None = None
    api_port: int | None = None
    kubeconfig_path: Path

    @property
    def api_server(self) -> str | None:
        """Host-facing API server URL, if the API port is published."""
        if self.api_port is None:
            return None
        return f"https://127.0.0.1:{self.api_port}"
