"""Kubeconfig rewrite and persistence for host access to the cluster."""

import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from solokube.core.exceptions import (
    KubeconfigEncodingError,
    KubeconfigError,
    KubeconfigWriteError,
)
from solokube.utils.logging import get_logger
from solokube.utils.paths import expand_tilde

logger = get_logger(__name__)

KUBECONFIG_DIR = "~/.kube/cluster"
KUBECONFIG_MODE = 0o600


@dataclass(frozen=True)
class RewriteRule:
    """One substitution applied to a raw admin kubeconfig.

    ``replacement`` is a template formatted with ``cluster_name`` and ``api_port``.
    Literal patterns are escaped before matching.
    """

    pattern: str
    replacement: str
    regex: bool = False

    def apply(self, text: str, cluster_name: str, api_port: int) -> str:
        replacement = self.replacement.format(cluster_name=cluster_name, api_port=api_port)
        pattern = self.pattern if self.regex else re.escape(self.pattern)
        return re.sub(pattern, lambda _: replacement, text)


# Order matters: "kubernetes-admin@kubernetes" must be rewritten before the
# bare "kubernetes-admin" and "kubernetes" names it contains.
PATCH_RULES: tuple[RewriteRule, ...] = (
    RewriteRule(r"server: https://.*:6443", "server: https://127.0.0.1:{api_port}", regex=True),
    RewriteRule("name: kubernetes-admin@kubernetes", "name: {cluster_name}"),
    RewriteRule("name: kubernetes-admin", "name: admin"),
    RewriteRule("name: kubernetes", "name: {cluster_name}"),
    RewriteRule("cluster: kubernetes", "cluster: {cluster_name}"),
    RewriteRule("user: kubernetes-admin", "user: admin"),
    RewriteRule(r"current-context:.*", "current-context: {cluster_name}", regex=True),
)


class KubeconfigManager:
    """Resolve, patch, read and write host kubeconfig files."""

    @staticmethod
    def resolve_path(path: str | Path | None, cluster_name: str) -> Path:
        """Resolve where a cluster's kubeconfig lives.

        Args:
            path: Explicit override (tilde-expanded), or None
            cluster_name: Cluster name used for the default file name

        Returns:
            Kubeconfig path
        """
        if path:
            return expand_tilde(path)
        return expand_tilde(KUBECONFIG_DIR) / f"{cluster_name}.config"

    @staticmethod
    def patch(
        raw: str,
        cluster_name: str,
        api_port: int,
        rules: tuple[RewriteRule, ...] = PATCH_RULES,
    ) -> str:
        """Rewrite an in-node admin kubeconfig for use from the host.

        Args:
            raw: Contents of the node's admin.conf
            cluster_name: External cluster name for cluster/context entries
            api_port: Host port published for the API server
            rules: Ordered rewrite rules

        Returns:
            Patched kubeconfig text
        """
        output = raw
        for rule in rules:
            output = rule.apply(output, cluster_name, api_port)
        return output

    @staticmethod
    def write(config: str, path: Path) -> None:
        """Atomically write a kubeconfig readable only by its owner.

        Args:
            config: Kubeconfig text
            path: Destination path

        Raises:
            KubeconfigWriteError: If the file cannot be written
        """
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(config)
            os.chmod(tmp_name, KUBECONFIG_MODE)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            logger.error("kubeconfig_write_failed", path=str(path), error=str(e))
            raise KubeconfigWriteError(f"failed to write kubeconfig {path}: {e}") from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        logger.debug("kubeconfig_written", path=str(path))

    @staticmethod
    def read(path: Path) -> str:
        """Read a kubeconfig as UTF-8 text.

        Raises:
            KubeconfigError: If the file cannot be read
            KubeconfigEncodingError: If the file is not valid UTF-8
        """
        try:
            data = path.read_bytes()
        except OSError as e:
            raise KubeconfigError(f"failed to read kubeconfig {path}: {e}") from e
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as e:
            raise KubeconfigEncodingError(f"kubeconfig at {path} is not valid utf8") from e
