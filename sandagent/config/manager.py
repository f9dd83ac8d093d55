"""Configuration manager for sandagent."""

from dataclasses import dataclass
from typing import Dict, Any, Optional
from pathlib import Path
import sys

import yaml

from ..constants import (
    CONFIG_DIR, OPERATION_MODES, DEFAULT_LLM_TIMEOUT,
    DEFAULT_OPERATION_MODE, DEFAULT_ENABLE_DEBUG, DEFAULT_COMMAND_TIMEOUT, DEFAULT_MAX_OUTPUT_CHARS,
    DEFAULT_WORKSPACE_DIR, DEFAULT_LOGS_DIR, DEFAULT_PROPOSALS_DIR, DEFAULT_OUTPUTS_DIR,
    DEFAULT_CONTINUITY_FILE, DEFAULT_HTTP_TIMEOUT, DEFAULT_HTTP_MAX_REQUESTS, DEFAULT_HTTP_WINDOW_SECONDS,
    DEFAULT_LOOP_INTERVAL_MIN, DEFAULT_LOOP_INTERVAL_MAX, DEFAULT_HISTORY_LIMIT, DEFAULT_RECENT_LOG_WINDOW,
    DEFAULT_MIN_PROPOSAL_DETAILS_LENGTH, DEFAULT_BOREDOM_THRESHOLD, DEFAULT_GOAL
)
from ..utils.logging import logger
from ..utils.helpers import safe_file_write
from .templates import CONFIG_TEMPLATE, PAYLOAD_TEMPLATE, RESPONSE_PATH_TEMPLATE

REQUIRED_FIELDS = ["endpoint", "model", "system_prompt", "loop_prompt", "repair_prompt",
                   "validation_repair_prompt", "allowed_commands", "operation_mode"]

# Integer settings: key -> (default, minimum)
INTEGER_FIELDS = {
    "llm_timeout": (DEFAULT_LLM_TIMEOUT, 1),
    "command_timeout": (DEFAULT_COMMAND_TIMEOUT, 1),
    "max_output_chars": (DEFAULT_MAX_OUTPUT_CHARS, 0),
    "http_timeout": (DEFAULT_HTTP_TIMEOUT, 1),
    "http_max_requests_per_window": (DEFAULT_HTTP_MAX_REQUESTS, 1),
    "http_window_seconds": (DEFAULT_HTTP_WINDOW_SECONDS, 1),
    "loop_interval_min": (DEFAULT_LOOP_INTERVAL_MIN, 0),
    "loop_interval_max": (DEFAULT_LOOP_INTERVAL_MAX, 0),
    "history_limit": (DEFAULT_HISTORY_LIMIT, 1),
    "recent_log_window": (DEFAULT_RECENT_LOG_WINDOW, 1),
    "min_proposal_details_length": (DEFAULT_MIN_PROPOSAL_DETAILS_LENGTH, 0),
    "boredom_threshold": (DEFAULT_BOREDOM_THRESHOLD, 0),
}

STRING_DEFAULTS = {
    "workspace_dir": DEFAULT_WORKSPACE_DIR,
    "logs_dir": DEFAULT_LOGS_DIR,
    "proposals_dir": DEFAULT_PROPOSALS_DIR,
    "outputs_dir": DEFAULT_OUTPUTS_DIR,
    "continuity_file": DEFAULT_CONTINUITY_FILE,
    "goal": DEFAULT_GOAL,
}


@dataclass
class WorkspacePaths:
    """Absolute locations of everything the agent reads and writes."""
    workspace: Path
    logs_dir: Path
    proposals_dir: Path
    outputs_dir: Path
    continuity_file: Path


class ConfigManager:
    """Manages configuration loading, validation, and setup for sandagent."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize the configuration manager.

        Args:
            config_dir: Custom configuration directory path
        """
        self.config_dir = config_dir or CONFIG_DIR
        self.config_file = self.config_dir / "config.yaml"
        self.payload_file = self.config_dir / "payload.json"
        self.response_path_file = self.config_dir / "response_path_template.txt"

        self.allowed_commands: Dict[str, str] = {}
        self._config: Optional[Dict[str, Any]] = None

    def initialize(self) -> bool:
        """Initialize configuration by setting up files and loading config.

        Returns:
            True if initialization successful, False if setup files were created
        """
        if not self._perform_initial_setup():
            return False

        self._config = self._load_config()
        self._populate_allowed_commands()
        return True

    def _perform_initial_setup(self) -> bool:
        """Creates config directory and default files if they don't exist.

        Returns:
            True if no setup was needed, False if files were created
        """
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create configuration directory {self.config_dir}: {e}")
            sys.exit(1)

        created = False
        for path, template, description in [
            (self.config_file, CONFIG_TEMPLATE, "config template"),
            (self.payload_file, PAYLOAD_TEMPLATE, "payload template"),
            (self.response_path_file, RESPONSE_PATH_TEMPLATE, "response path template"),
        ]:
            if path.exists():
                continue
            if not safe_file_write(path, template, description):
                sys.exit(1)
            created = True

        if created:
            logger.system(f"Configuration templates generated in: {self.config_dir}")
            logger.system("Required files:")
            logger.system(f"  • {self.config_file}")
            logger.system(f"  • {self.payload_file}")
            logger.system(f"  • {self.response_path_file}")
            logger.system(f"IMPORTANT: Review and edit {self.payload_file} to match your LLM API.")
            logger.system("Please review and configure them before running sandagent again.")
            return False
        return True

    def _load_config(self) -> Dict[str, Any]:
        """Load and validate the configuration file. Any invalid value is fatal."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML file {self.config_file}: {e}")
            sys.exit(1)
        except OSError as e:
            logger.error(f"Could not read {self.config_file}: {e}")
            sys.exit(1)

        if not isinstance(config_data, dict):
            logger.error(f"{self.config_file} is not a valid YAML dictionary.")
            sys.exit(1)

        for field in REQUIRED_FIELDS:
            if field not in config_data:
                logger.error(f"Required key '.{field}' missing in {self.config_file}.")
                sys.exit(1)
            if config_data[field] is None or config_data[field] == "":
                logger.error(f"Required key '.{field}' is null/empty in {self.config_file}.")
                sys.exit(1)

        enable_debug = config_data.get("enable_debug", DEFAULT_ENABLE_DEBUG)
        if not isinstance(enable_debug, bool):
            logger.warning(f"enable_debug in {self.config_file} must be true/false. Defaulting to false.")
            enable_debug = DEFAULT_ENABLE_DEBUG
        config_data["enable_debug"] = enable_debug

        op_mode = config_data.get("operation_mode", DEFAULT_OPERATION_MODE)
        if op_mode not in OPERATION_MODES:
            logger.error(f"operation_mode in {self.config_file} must be one of {OPERATION_MODES}, got '{op_mode}'.")
            sys.exit(1)

        for key, (default, minimum) in INTEGER_FIELDS.items():
            value = config_data.get(key, default)
            if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
                logger.error(f"{key} ('{value}') in {self.config_file} must be an integer >= {minimum}.")
                sys.exit(1)
            config_data[key] = value

        if config_data["loop_interval_min"] > config_data["loop_interval_max"]:
            logger.error(f"loop_interval_min must not exceed loop_interval_max in {self.config_file}.")
            sys.exit(1)

        for key, default in STRING_DEFAULTS.items():
            value = config_data.get(key)
            if value is None or value == "":
                value = default
            if not isinstance(value, str):
                logger.error(f"{key} ('{value}') in {self.config_file} must be a string.")
                sys.exit(1)
            config_data[key] = value

        blocked_topics = config_data.get("blocked_topics") or []
        if not isinstance(blocked_topics, list):
            logger.warning(f"blocked_topics in {self.config_file} is not a list. Ignoring it.")
            blocked_topics = []
        config_data["blocked_topics"] = [str(topic) for topic in blocked_topics if topic]

        logger.debug(f"Configuration loaded successfully from {self.config_file}")
        return config_data

    def _populate_allowed_commands(self) -> None:
        """Populate the allowed command map from config."""
        allowed_cmds_config = self._config.get("allowed_commands", {})
        if isinstance(allowed_cmds_config, dict):
            self.allowed_commands = {str(k): str(v) for k, v in allowed_cmds_config.items()}
        elif isinstance(allowed_cmds_config, list):
            self.allowed_commands = {str(cmd): "" for cmd in allowed_cmds_config}
        else:
            logger.warning(f"'allowed_commands' in {self.config_file} is not a map. No allowed commands loaded.")
            self.allowed_commands = {}
        logger.debug(f"Loaded {len(self.allowed_commands)} allowed commands.")

    @property
    def config(self) -> Dict[str, Any]:
        """Get the current configuration."""
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call initialize() first.")
        return self._config.copy()

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call initialize() first.")
        return self._config.get(key, default)

    def get_allowed_commands(self) -> Dict[str, str]:
        return self.allowed_commands.copy()

    def workspace_paths(self, workdir: Optional[Path] = None) -> WorkspacePaths:
        """Resolve the workspace layout.

        Args:
            workdir: Overrides ``workspace_dir`` from the configuration

        Returns:
            Absolute paths; the continuity file always lives inside the outputs directory

        The logs and proposals directories must lie outside the outputs directory, since
        everything under it is writable by plans. An overlapping layout exits with status 1.
        """
        workspace = Path(workdir) if workdir else Path(self.get("workspace_dir", DEFAULT_WORKSPACE_DIR))
        workspace = workspace.expanduser().resolve()
        outputs_dir = (workspace / self.get("outputs_dir", DEFAULT_OUTPUTS_DIR)).resolve()
        paths = WorkspacePaths(
            workspace=workspace,
            logs_dir=(workspace / self.get("logs_dir", DEFAULT_LOGS_DIR)).resolve(),
            proposals_dir=(workspace / self.get("proposals_dir", DEFAULT_PROPOSALS_DIR)).resolve(),
            outputs_dir=outputs_dir,
            continuity_file=outputs_dir / Path(self.get("continuity_file", DEFAULT_CONTINUITY_FILE)).name,
        )

        for key, directory in (("logs_dir", paths.logs_dir), ("proposals_dir", paths.proposals_dir)):
            if directory == outputs_dir or outputs_dir in directory.parents:
                logger.error(f"Configuration error: {key} ({directory}) must not be inside outputs_dir ({outputs_dir})")
                sys.exit(1)
        return paths

    def is_initialized(self) -> bool:
        """Check if the configuration has been initialized."""
        return self._config is not None


def create_config_manager(config_dir: Optional[Path] = None) -> ConfigManager:
    """Create and initialize a configuration manager.

    Args:
        config_dir: Custom configuration directory path

    Returns:
        Initialized ConfigManager instance
    """
    manager = ConfigManager(config_dir)
    if not manager.initialize():
        logger.system("Configuration setup required. Please configure the generated files and run again.")
        sys.exit(0)
    return manager
