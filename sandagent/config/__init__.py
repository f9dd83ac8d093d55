"""Configuration management for sandagent."""

from .manager import ConfigManager, WorkspacePaths, create_config_manager
from .templates import CONFIG_TEMPLATE, PAYLOAD_TEMPLATE, RESPONSE_PATH_TEMPLATE

__all__ = [
    "ConfigManager",
    "WorkspacePaths",
    "create_config_manager",
    "CONFIG_TEMPLATE",
    "PAYLOAD_TEMPLATE",
    "RESPONSE_PATH_TEMPLATE",
]
