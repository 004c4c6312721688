"""Run commands inside a cluster node."""

from solokube.core.exceptions import CommandFailedError, InvalidArgumentError
from solokube.core.models import ExecResult
from solokube.interfaces.node_runtime import NodeRuntime, ProcessSpec
from solokube.utils.logging import get_logger

logger = get_logger(__name__)


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return ""


class CommandExecutor:
    """Executes argv-style commands in a node, captured or streamed.

    Captured mode pipes stdout and stderr back and drains them while waiting
    for the process. Streamed mode lets the process write straight to this
    process's terminal and captures nothing. Both modes share one failure
    policy: a non-zero exit raises CommandFailedError unless ``allow_failure``.
    """

    def __init__(self, runtime: NodeRuntime):
        """Initialize command executor.

        Args:
            runtime: Node runtime used to start in-node processes
        """
        self.runtime = runtime

    async def run(
        self,
        node_name: str,
        command: list[str],
        capture_output: bool,
        allow_failure: bool = False,
    ) -> ExecResult:
        """Run a command inside a node.

        Args:
            node_name: Node to run in
            command: Executable followed by its arguments
            capture_output: Capture stdout/stderr instead of streaming them
            allow_failure: Return non-zero exits instead of raising

        Returns:
            ExecResult with captured text (empty when streamed) and exit code

        Raises:
            InvalidArgumentError: If command is empty
            CommandFailedError: If the command exits non-zero and failure is not allowed
        """
        if not command:
            raise InvalidArgumentError("command is empty")

        spec = ProcessSpec(executable=command[0], arguments=list(command[1:]), terminal=False)
        logger.debug("exec_started", node=node_name, command=" ".join(command))

        process = await self.runtime.create_process(node_name, spec, capture_output=capture_output)

        if capture_output:
            stdout_data, stderr_data = await process.communicate()
            exit_code = process.returncode
            stdout, stderr = _decode(stdout_data), _decode(stderr_data)
        else:
            exit_code = await process.wait()
            stdout, stderr = "", ""

        logger.debug("exec_completed", node=node_name, command=command[0], exit_code=exit_code)

        if exit_code != 0 and not allow_failure:
            raise CommandFailedError(exit_code, list(command), stderr)

        return ExecResult(stdout=stdout, stderr=stderr, exit_code=exit_code)
