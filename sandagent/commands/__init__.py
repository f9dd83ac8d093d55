"""Command execution and safety for sandagent."""

from .executor import CommandExecutor, CommandResult, create_command_executor
from .permissions import CommandPermissionManager, create_permission_manager, split_command
from .safety import CommandSafetyChecker, create_safety_checker

__all__ = [
    "CommandExecutor",
    "CommandResult",
    "create_command_executor",
    "CommandPermissionManager",
    "create_permission_manager",
    "split_command",
    "CommandSafetyChecker",
    "create_safety_checker",
]
