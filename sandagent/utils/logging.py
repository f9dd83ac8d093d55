"""Colour console logging for sandagent.

Every line starts with ``[YYYY-MM-DD HH:MM:SS] [Level]:``. Errors and warnings go to
stderr, everything else to stdout. Debug output is dropped unless enabled.
"""

import sys
import datetime
from typing import Dict, TextIO, Tuple

from ..constants import (
    CLR_RESET, CLR_CYAN, CLR_BOLD_CYAN, CLR_GREEN, CLR_BOLD_GREEN,
    CLR_MAGENTA, CLR_BOLD_MAGENTA, CLR_BLUE, CLR_BOLD_BLUE,
    CLR_YELLOW, CLR_BOLD_YELLOW, CLR_WHITE, CLR_BOLD_WHITE,
    CLR_RED, CLR_BOLD_RED
)

# level -> (header colour, body colour)
LEVEL_COLORS: Dict[str, Tuple[str, str]] = {
    "System": (CLR_CYAN, CLR_BOLD_CYAN),
    "Agent": (CLR_MAGENTA, CLR_BOLD_MAGENTA),
    "LLM": (CLR_WHITE, CLR_BOLD_WHITE),
    "Command": (CLR_YELLOW, CLR_BOLD_YELLOW),
    "Proposal": (CLR_BLUE, CLR_BOLD_BLUE),
    "State": (CLR_GREEN, CLR_BOLD_GREEN),
    "Error": (CLR_RED, CLR_BOLD_RED),
    "Warning": (CLR_YELLOW, CLR_BOLD_YELLOW),
    "Debug": (CLR_WHITE, CLR_BOLD_WHITE),
}

STDERR_LEVELS = ("Error", "Warning")


class Logger:
    """Level-tagged console logger."""

    def __init__(self, debug_enabled: bool = False):
        self.debug_enabled = debug_enabled

    def set_debug(self, enabled: bool) -> None:
        self.debug_enabled = enabled

    def log_message(self, level: str, message: str) -> None:
        """Write ``message`` under a coloured ``level`` header."""
        if level == "Debug" and not self.debug_enabled:
            return

        header_color, body_color = LEVEL_COLORS.get(level, (CLR_WHITE, CLR_BOLD_WHITE))
        # Looked up per call so redirected or captured streams are honoured
        stream: TextIO = sys.stderr if level in STDERR_LEVELS else sys.stdout

        prefix = f"[{datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')}] [{level}]: "
        lines = message.splitlines() or [""]
        stream.write(f"{header_color}{prefix}{CLR_RESET}{body_color}{lines[0]}{CLR_RESET}\n")
        padding = ' ' * len(prefix)
        for line in lines[1:]:
            stream.write(f"{padding}{body_color}{line}{CLR_RESET}\n")
        stream.flush()

    def system(self, message: str) -> None:
        self.log_message("System", message)

    def agent(self, message: str) -> None:
        """Loop progress: iterations, plan decisions, repairs."""
        self.log_message("Agent", message)

    def llm(self, message: str) -> None:
        self.log_message("LLM", message)

    def command(self, message: str) -> None:
        """Executed commands and their result lines."""
        self.log_message("Command", message)

    def proposal(self, message: str) -> None:
        self.log_message("Proposal", message)

    def state(self, message: str) -> None:
        """ActionLog, continuity and boredom updates."""
        self.log_message("State", message)

    def error(self, message: str) -> None:
        self.log_message("Error", message)

    def warning(self, message: str) -> None:
        self.log_message("Warning", message)

    def debug(self, message: str) -> None:
        self.log_message("Debug", message)


# Shared instance; the application turns debug on from --debug or enable_debug
logger = Logger()
