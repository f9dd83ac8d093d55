"""Command safety checks and validation for sandagent."""

import re
from typing import List

from ..constants import (
    FETCH_COMMANDS, FETCH_FLAG_OPTIONS, FETCH_LONG_FLAGS, FETCH_VALUE_OPTIONS, FETCH_LONG_VALUE_OPTIONS
)
from ..utils.logging import logger
from .permissions import split_command


class CommandSafetyChecker:
    """Rejects shell operators that would bypass the write-confinement check."""

    def __init__(self):
        """Initialize safety checker with the operator patterns."""
        self.operator_patterns = [
            (r'[<>]', "redirect forbidden"),
            (r'\|', "pipe forbidden"),
            (r';|&|`|\$\(', "command chaining forbidden"),
        ]

    def check_command_safety(self, command: str) -> List[str]:
        """Check a command string for forbidden operators and options.

        Any occurrence is rejected, even inside quotes, regardless of the base command.

        Args:
            command: Command to check

        Returns:
            List of violation messages (empty when the command is safe)
        """
        violations = []

        for pattern, message in self.operator_patterns:
            if re.search(pattern, command):
                violations.append(f"{message}: '{command}'")

        violations.extend(self._check_fetch_options(command))

        if violations:
            logger.warning(f"Unsafe command rejected: {command}")
        return violations

    def _check_fetch_options(self, command: str) -> List[str]:
        """Allow only the fetch options listed in constants.

        Output files, trace and header dumps, cookie jars and config files all write or
        read local files outside the confinement check, so any unlisted option is rejected.
        Short flags may be bundled (``-sSL``) and a value may be attached (``-XPOST``).
        """
        parts = split_command(command.strip())
        if not parts or parts[0] not in FETCH_COMMANDS:
            return []

        rejected = []
        args = iter(parts[1:])
        for arg in args:
            if not arg.startswith('-') or arg == '-':
                continue

            if arg.startswith('--'):
                option, has_value, _ = arg.partition('=')
                if option in FETCH_LONG_VALUE_OPTIONS or option in FETCH_VALUE_OPTIONS.values():
                    if not has_value:
                        next(args, None)
                elif has_value or (option not in FETCH_LONG_FLAGS and option not in FETCH_FLAG_OPTIONS.values()):
                    rejected.append(arg)
                continue

            for position, letter in enumerate(arg[1:], start=1):
                flag = f"-{letter}"
                if flag in FETCH_VALUE_OPTIONS:
                    if position == len(arg) - 1:
                        next(args, None)
                    break
                if flag not in FETCH_FLAG_OPTIONS:
                    rejected.append(arg)
                    break

        return [f"option '{arg}' is forbidden for '{parts[0]}'; the response body is saved automatically"
                for arg in rejected]


def create_safety_checker() -> CommandSafetyChecker:
    """Create a command safety checker with default patterns."""
    return CommandSafetyChecker()
