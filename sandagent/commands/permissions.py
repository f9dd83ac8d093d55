"""Command allow-list checks for sandagent."""

import shlex
from typing import Dict, List, Tuple

from ..utils.logging import logger


def split_command(command: str) -> List[str]:
    """Split a command line into tokens, falling back to whitespace on bad quoting."""
    try:
        return shlex.split(command)
    except ValueError:
        return command.split()


class CommandPermissionManager:
    """Decides whether a command's base token is on the allow-list."""

    def __init__(self, allowed_commands: Dict[str, str] = None):
        """Initialize permission manager.

        Args:
            allowed_commands: Map of base command name to its description
        """
        self.allowed_commands: Dict[str, str] = dict(allowed_commands or {})

    def set_allowed_commands(self, allowed: Dict[str, str]) -> None:
        """Replace the command allow-list."""
        self.allowed_commands = dict(allowed)

    def extract_command_name(self, command: str) -> str:
        """Extract the base command name (the leading token) from a command string."""
        parts = split_command(command.strip())
        return parts[0] if parts else ""

    def check_command_permission(self, command: str) -> Tuple[bool, str]:
        """Check if a command is permitted to execute.

        Args:
            command: Command to check

        Returns:
            Tuple of (is_allowed, reason)
        """
        command_name = self.extract_command_name(command)
        if not command_name:
            return False, "Command is empty"

        if command_name in self.allowed_commands:
            return True, f"Command '{command_name}' is in allowed list"

        logger.debug(f"Command '{command_name}' rejected by allow-list")
        return False, f"Command '{command_name}' not in allowed list"


def create_permission_manager(allowed_commands: Dict[str, str]) -> CommandPermissionManager:
    """Create a command permission manager."""
    return CommandPermissionManager(allowed_commands)
