"""Constants used throughout the sandagent package."""

from pathlib import Path
from colorama import Fore, Style

# Configuration paths
CONFIG_DIR = Path.home() / ".config" / "sandagent"

# ANSI Color Codes (using colorama)
CLR_RESET = Style.RESET_ALL
CLR_RED = Fore.RED
CLR_BOLD_RED = Style.BRIGHT + Fore.RED
CLR_GREEN = Fore.GREEN
CLR_BOLD_GREEN = Style.BRIGHT + Fore.GREEN
CLR_YELLOW = Fore.YELLOW
CLR_BOLD_YELLOW = Style.BRIGHT + Fore.YELLOW
CLR_BLUE = Fore.BLUE
CLR_BOLD_BLUE = Style.BRIGHT + Fore.BLUE
CLR_MAGENTA = Fore.MAGENTA
CLR_BOLD_MAGENTA = Style.BRIGHT + Fore.MAGENTA
CLR_CYAN = Fore.CYAN
CLR_BOLD_CYAN = Style.BRIGHT + Fore.CYAN
CLR_WHITE = Fore.WHITE
CLR_BOLD_WHITE = Style.BRIGHT + Fore.WHITE

# Operation modes ("guided" enables the parse repair round)
OPERATION_MODES = ["basic", "guided"]

# Plan types the loop can execute
PLAN_TYPES = ["shell", "file-write", "proposal", "observe"]

# Retired plan types with the hint returned to the model
RETIRED_PLAN_TYPES = {
    "file-read": "type 'file-read' was removed; use type 'shell' with 'cat <path>' to read a file",
    "read": "type 'read' was removed; use type 'shell' with 'cat <path>' to read a file",
}

# Commands whose file arguments count as a read for the overwrite rule
READ_COMMANDS = ["cat", "head", "tail", "wc"]

# Commands whose output is a fetched network body
FETCH_COMMANDS = ["curl"]

# Fetch options that are allowed; anything else (output files, traces, cookie jars,
# config files, uploads) is rejected. Flags take no value; value options consume one.
FETCH_FLAG_OPTIONS = {
    "-s": "--silent", "-S": "--show-error", "-L": "--location", "-i": "--include",
    "-I": "--head", "-f": "--fail", "-G": "--get", "-k": "--insecure", "-v": "--verbose",
}
FETCH_LONG_FLAGS = ["--compressed", "--fail-with-body", "--no-progress-meter"]
FETCH_VALUE_OPTIONS = {
    "-X": "--request", "-H": "--header", "-d": "--data", "-A": "--user-agent",
    "-m": "--max-time", "-e": "--referer",
}
FETCH_LONG_VALUE_OPTIONS = ["--connect-timeout", "--max-redirs", "--retry", "--data-urlencode", "--url"]

# HTTP methods accepted by the outbound request capability
HTTP_METHODS = ["GET", "POST", "PUT", "DELETE"]

# Boredom penalties
REPEAT_ACTION_PENALTY = 3
REPEAT_TARGET_PENALTY = 5
FAILURE_PENALTY = 2

# Default configuration values
DEFAULT_MODEL = "qwen2.5-coder:7b"
DEFAULT_LLM_TIMEOUT = 300
DEFAULT_COMMAND_TIMEOUT = 60
DEFAULT_MAX_OUTPUT_CHARS = 4000
DEFAULT_OPERATION_MODE = "guided"
DEFAULT_ENABLE_DEBUG = False
DEFAULT_WORKSPACE_DIR = "."
DEFAULT_LOGS_DIR = "logs"
DEFAULT_PROPOSALS_DIR = "proposals"
DEFAULT_OUTPUTS_DIR = "outputs"
DEFAULT_CONTINUITY_FILE = "continuity.yaml"
DEFAULT_HTTP_TIMEOUT = 30
DEFAULT_HTTP_MAX_REQUESTS = 10
DEFAULT_HTTP_WINDOW_SECONDS = 60
DEFAULT_HTTP_MAX_REDIRECTS = 5
DEFAULT_LOOP_INTERVAL_MIN = 10
DEFAULT_LOOP_INTERVAL_MAX = 60
DEFAULT_HISTORY_LIMIT = 20
DEFAULT_RECENT_LOG_WINDOW = 10
DEFAULT_MIN_PROPOSAL_DETAILS_LENGTH = 40
DEFAULT_BOREDOM_THRESHOLD = 5
DEFAULT_GOAL = "Observe the sandbox, experiment, and record what you discover."
