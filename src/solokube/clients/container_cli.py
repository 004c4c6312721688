"""Async wrapper for the ``container`` command-line tool."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any

from solokube.core.exceptions import ContainerCLIError
from solokube.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandOutput:
    """Completed CLI invocation."""

    returncode: int
    stdout: str
    stderr: str


class ContainerCLI:
    """Wrapper for the container runtime CLI."""

    def __init__(self, binary: str = "container"):
        """Initialize container CLI wrapper.

        Args:
            binary: Name or path of the runtime CLI
        """
        self.binary = binary

        logger.debug("container_cli_initialized", binary=binary)

    async def run(self, args: list[str], check: bool = True) -> CommandOutput:
        """Run a container command and capture its output.

        Args:
            args: Command arguments
            check: Raise exception on non-zero exit code

        Returns:
            CommandOutput instance

        Raises:
            ContainerCLIError: If the command cannot be run or fails
        """
        cmd = [self.binary, *args]
        logger.debug("running_container_command", command=" ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            logger.error("container_cli_not_found", binary=self.binary)
            raise ContainerCLIError(f"{self.binary} command not found") from e

        stdout, stderr = await proc.communicate()
        result = CommandOutput(
            returncode=proc.returncode,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace").strip(),
        )

        logger.debug("container_command_completed", returncode=result.returncode)

        if check and result.returncode != 0:
            logger.debug(
                "container_command_failed",
                command=" ".join(cmd),
                returncode=result.returncode,
                stderr=result.stderr,
            )
            raise ContainerCLIError(
                f"{' '.join(cmd)} failed (exit {result.returncode}): {result.stderr}",
                returncode=result.returncode,
                stderr=result.stderr,
            )

        return result

    async def run_json(self, args: list[str]) -> Any:
        """Run a container command that prints JSON.

        Raises:
            ContainerCLIError: If the command fails or prints invalid JSON
        """
        result = await self.run(args)
        try:
            return json.loads(result.stdout or "null")
        except json.JSONDecodeError as e:
            raise ContainerCLIError(
                f"Failed to parse {self.binary} {args[0]} output",
                returncode=result.returncode,
            ) from e

    async def spawn(self, args: list[str], capture_output: bool) -> asyncio.subprocess.Process:
        """Start a container command without waiting for it.

        Args:
            args: Command arguments
            capture_output: Pipe stdout/stderr; otherwise inherit this process's streams

        Returns:
            Running subprocess

        Raises:
            ContainerCLIError: If the binary cannot be executed
        """
        cmd = [self.binary, *args]
        stream = asyncio.subprocess.PIPE if capture_output else None
        logger.debug("spawning_container_command", command=" ".join(cmd), capture=capture_output)

        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=stream,
                stderr=stream,
            )
        except FileNotFoundError as e:
            logger.error("container_cli_not_found", binary=self.binary)
            raise ContainerCLIError(f"{self.binary} command not found") from e
