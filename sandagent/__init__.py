"""
sandagent - autonomous LLM agent confined to a sandboxed directory.

Each loop iteration asks a language model for a plan, validates it against a strict
capability policy, executes it inside the sandbox and records the outcome. Privileged
actions go through durable proposals that a human approves out of band.
"""

__version__ = "1.0.0"
__author__ = "sandagent Team"

# Main API imports
from .core.application import SandAgent, create_application
from .core.agent import Agent, create_agent
from .config.manager import ConfigManager, create_config_manager

__all__ = [
    "SandAgent",
    "create_application",
    "Agent",
    "create_agent",
    "ConfigManager",
    "create_config_manager",
    "__version__",
]
