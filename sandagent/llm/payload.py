"""Prompt rendering and JSON payload preparation for sandagent."""

import json
from typing import Dict, Any, Optional
from pathlib import Path

import yaml

from ..utils.logging import logger
from ..utils.helpers import get_current_timestamp, format_template_string
from ..constants import DEFAULT_MODEL


class PayloadBuilder:
    """Renders prompt templates and builds JSON payloads for LLM API calls."""

    PROMPT_KEYS = {
        "system": "system_prompt",
        "loop": "loop_prompt",
        "repair": "repair_prompt",
        "validation_repair": "validation_repair_prompt",
    }

    def __init__(self, config: Dict[str, Any], payload_file: Path):
        """Initialize payload builder.

        Args:
            config: Application configuration
            payload_file: Path to payload template file
        """
        self.config = config
        self.payload_file = payload_file
        self.allowed_commands: Dict[str, str] = {}

    def set_allowed_commands(self, allowed: Dict[str, str]) -> None:
        """Set the command allow-list rendered into prompts."""
        self.allowed_commands = allowed

    def render_prompt(self, name: str, **context: Any) -> Optional[str]:
        """Render one of the configured prompt templates.

        Args:
            name: Prompt name ("system", "loop", "repair", "validation_repair")
            **context: Template variables

        Returns:
            Rendered prompt or None if the template is unknown or empty
        """
        key = self.PROMPT_KEYS.get(name)
        if key is None:
            logger.error(f"Invalid prompt name '{name}' provided to render_prompt.")
            return None

        template = self.config.get(key, "")
        if not template:
            logger.error(f"Prompt template '{key}' is empty in configuration.")
            return None

        context_vars = {
            "current_time": get_current_timestamp(),
            "command_instructions": self.get_command_instructions(),
        }
        context_vars.update(context)
        return format_template_string(template, **context_vars)

    def get_command_instructions(self) -> str:
        """Describe the shell allow-list for the model."""
        if not self.allowed_commands:
            logger.warning("allowed_commands list is empty. The model is told it cannot use shell plans.")
            return (
                "The list of allowed commands is currently empty. Do not emit plans of type 'shell'."
            )

        allowed_commands_yaml = yaml.dump(
            {"allowed_commands": self.allowed_commands},
            indent=2, default_flow_style=False, sort_keys=False, allow_unicode=True
        )
        return (
            "Plans of type 'shell' may use ONLY the following base commands. Their names and descriptions "
            "are given below in YAML format:\n\n"
            f"{allowed_commands_yaml.strip()}\n\n"
            "Redirects (>, <), pipes (|), and command chaining (;, &, backticks, $( )) are always rejected. "
            "To create or change files use a plan of type 'file-write' instead."
        )

    def build_payload(self, system_prompt: str, user_prompt: str) -> Optional[str]:
        """Build the final JSON payload from template and prompts."""
        payload_data_str = ""
        try:
            payload_template = self.payload_file.read_text(encoding='utf-8')

            # Use json.dumps to correctly escape the content for JSON string values
            escaped_system_prompt = json.dumps(system_prompt.strip())[1:-1]
            escaped_user_prompt = json.dumps(user_prompt.strip())[1:-1]

            payload_data_str = payload_template.replace("<system_prompt>", escaped_system_prompt)
            payload_data_str = payload_data_str.replace("<user_prompt>", escaped_user_prompt)

            model_name = self.config.get("model", DEFAULT_MODEL)
            payload_data_str = payload_data_str.replace("<model_name>", model_name)

            # Validate JSON
            json.loads(payload_data_str)
            return payload_data_str

        except FileNotFoundError:
            logger.error(f"{self.payload_file} not found.")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"{self.payload_file} (after substitutions) is not valid JSON: {e}.")
            logger.debug(f"Problematic payload string before JSON parsing: {payload_data_str}")
            return None
        except Exception as e:
            logger.error(f"Failed to prepare payload: {e}")
            return None


def create_payload_builder(config: Dict[str, Any], payload_file: Path) -> PayloadBuilder:
    """Create a configured payload builder instance."""
    return PayloadBuilder(config, payload_file)
