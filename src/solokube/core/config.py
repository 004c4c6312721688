"""Configuration management for solokube."""

from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from solokube.core.exceptions import ConfigurationError

DEFAULT_CONFIG_PATH = "~/.solokube/config.yaml"
DEFAULT_KERNEL_ARCHIVE_URL = (
    "https://github.com/willswire/kernel/releases/download/"
    "containerization-c3fe889a2f739ee4a9b0faccedd9f36f3862dc29/"
    "kernel-c3fe889a2f739ee4a9b0faccedd9f36f3862dc29.tar.zst"
)


class ClusterDefaultsConfig(BaseModel):
    """Defaults applied to cluster commands when flags are omitted."""

    name: str = "kubernetes"
    image: str = (
        "docker.io/kindest/node:v1.34.0"
        "@sha256:7416a61b42b1662ca6ca89f02028ac133a309a2a30ba309614e8ec94d976dc5a"
    )
    cpus: int = Field(default=6, ge=1)
    memory: str = "16G"
    pod_cidr: str = "10.244.0.0/16"
    api_port: int = Field(default=6443, ge=1, le=65535)


class KernelConfig(BaseModel):
    """Boot kernel source configuration."""

    archive_url: str = DEFAULT_KERNEL_ARCHIVE_URL
    archive_member: str = "vmlinux"
    cache_dir: str | None = None  # platform user cache dir when unset


class RuntimeConfig(BaseModel):
    """Node runtime configuration."""

    binary: str = "container"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    format: str = "console"
    output: str = "stderr"


class SolokubeConfig(BaseModel):
    """Main solokube configuration."""

    defaults: ClusterDefaultsConfig = Field(default_factory=ClusterDefaultsConfig)
    kernel: KernelConfig = Field(default_factory=KernelConfig)
    runtime: RuntimeConfig = Field(default_factory=RuntimeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, path: str | Path, required: bool = True) -> "SolokubeConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to configuration file
            required: Raise if the file does not exist; otherwise fall back to defaults

        Returns:
            SolokubeConfig instance

        Raises:
            ConfigurationError: If file cannot be loaded or parsed
        """
        config_path = Path(path).expanduser()

        if not config_path.exists():
            if required:
                raise ConfigurationError(f"Configuration file not found: {config_path}")
            return cls()

        try:
            with config_path.open() as f:
                data = yaml.safe_load(f)
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

        try:
            return cls(**(data or {}))
        except Exception as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e
