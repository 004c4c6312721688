"""Custom exceptions for solokube."""


class SolokubeError(Exception):
    """Base exception for all solokube errors."""


class ConfigurationError(SolokubeError):
    """Configuration-related errors."""


class InvalidArgumentError(SolokubeError):
    """An argument was rejected before any work was done."""


class KernelResolutionError(SolokubeError):
    """Boot kernel could not be resolved."""


class KernelDownloadError(KernelResolutionError):
    """Kernel archive download failed.

    Attributes:
        status: HTTP status code, or None for transport errors
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class KernelArchiveError(KernelResolutionError):
    """Kernel entry missing from the archive or not a regular file."""


class KernelCacheError(KernelResolutionError):
    """Filesystem failure while populating the kernel cache."""


class CommandFailedError(SolokubeError):
    """In-node command exited with a non-zero status.

    Attributes:
        exit_code: Exit status of the command
        command: Command argv
        stderr: Captured standard error (empty in streamed mode)
    """

    def __init__(self, exit_code: int, command: list[str], stderr: str = ""):
        message = f"command failed with exit code {exit_code}: {' '.join(command)}"
        if stderr:
            message = f"{message}\n{stderr}"
        super().__init__(message)
        self.exit_code = exit_code
        self.command = command
        self.stderr = stderr


class ClusterExistsError(SolokubeError):
    """Cluster already exists and replace was not requested."""


class ClusterNotFoundError(SolokubeError):
    """Cluster node does not exist."""


class InvalidStateError(SolokubeError):
    """Cluster node is not in the state the operation requires."""


class KubeconfigError(SolokubeError):
    """Kubeconfig read/write failed."""


class KubeconfigEncodingError(KubeconfigError):
    """Kubeconfig content is not valid UTF-8."""


class KubeconfigWriteError(KubeconfigError):
    """Kubeconfig could not be persisted."""


class ContainerCLIError(SolokubeError):
    """Container runtime CLI invocation failed.

    Attributes:
        returncode: Exit status, or None if the binary could not be executed
        stderr: Captured standard error
    """

    def __init__(self, message: str, returncode: int | None = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
