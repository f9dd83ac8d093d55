"""Command execution utilities for sandagent."""

import shlex
import subprocess
from typing import List, Optional, Sequence, Union
from pathlib import Path

from ..utils.logging import logger


class CommandResult:
    """Represents the result of a command execution."""

    def __init__(self,
                 command: str,
                 exit_code: int,
                 stdout: str = "",
                 stderr: str = "",
                 error_message: str = ""):
        self.command = command
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        self.error_message = error_message

    @property
    def output(self) -> str:
        """Combined stdout and stderr output."""
        combined = []
        if self.stdout.strip():
            combined.append(self.stdout.strip())
        if self.stderr.strip():
            combined.append(self.stderr.strip())
        return "\n".join(combined) if combined else ""

    @property
    def success(self) -> bool:
        """Whether the command executed successfully."""
        return self.exit_code == 0 and not self.error_message

    def __str__(self) -> str:
        return f"Exit Code: {self.exit_code}. Output:\n{self.output if self.output else '(no output)'}"


class CommandExecutor:
    """Runs commands as argument vectors (never through a shell) with a timeout."""

    def __init__(self, default_timeout: int = 60, cwd: Optional[Path] = None):
        """Initialize command executor.

        Args:
            default_timeout: Default timeout for command execution in seconds
            cwd: Working directory for spawned processes
        """
        self.default_timeout = default_timeout
        self.cwd = cwd

    def execute(self, command: Union[str, Sequence[str]], timeout: Optional[int] = None) -> CommandResult:
        """Execute a command with timeout and error handling.

        Args:
            command: Command line (split with shlex) or argument vector
            timeout: Command timeout in seconds (uses default if None)

        Returns:
            CommandResult object with execution details
        """
        if timeout is None:
            timeout = self.default_timeout

        if isinstance(command, str):
            display = command
            try:
                args: List[str] = shlex.split(command)
            except ValueError as e:
                return CommandResult(command=display, exit_code=-1,
                                     error_message=f"Could not split command: {e}")
        else:
            args = list(command)
            display = shlex.join(args)

        if not args:
            return CommandResult(command=display, exit_code=-1, error_message="Empty command")

        logger.command(f"Executing command: {display} - timeout: {timeout}s")

        try:
            process = subprocess.run(
                args,
                shell=False,
                capture_output=True,
                stdin=subprocess.DEVNULL,
                text=True,
                errors='replace',
                timeout=timeout,
                cwd=str(self.cwd) if self.cwd else None,
            )

            result = CommandResult(
                command=display,
                exit_code=process.returncode,
                stdout=process.stdout or "",
                stderr=process.stderr or ""
            )

            logger.command(f"Command completed with exit code {result.exit_code}")
            logger.debug(f"Output:\n{result.output}" if result.output else "(no output)")
            return result

        except subprocess.TimeoutExpired:
            error_msg = f"Command timed out after {timeout} seconds"
            logger.warning(error_msg)
            return CommandResult(
                command=display,
                exit_code=124,  # Standard timeout exit code
                error_message=error_msg
            )

        except FileNotFoundError:
            error_msg = f"Command not found: {args[0]}"
            logger.warning(error_msg)
            return CommandResult(command=display, exit_code=127, error_message=error_msg)

        except Exception as e:
            error_msg = f"Error executing command: {e}"
            logger.error(error_msg)
            return CommandResult(
                command=display,
                exit_code=-1,
                error_message=error_msg
            )


def create_command_executor(timeout: int = 60, cwd: Optional[Path] = None) -> CommandExecutor:
    """Create a command executor with the specified default timeout."""
    return CommandExecutor(timeout, cwd)
