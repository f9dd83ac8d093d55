"""Main application class for sandagent."""

import random
import signal
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

from ..config.manager import create_config_manager
from ..constants import DEFAULT_LOOP_INTERVAL_MIN, DEFAULT_LOOP_INTERVAL_MAX
from ..utils.logging import logger
from .agent import create_agent
from .models import AgentState


class SandAgent:
    """Long-running foreground process that drives the agent loop."""

    def __init__(self, config_dir: Optional[str] = None, debug: bool = False,
                 workdir: Optional[str] = None):
        """Initialize the sandagent application.

        Args:
            config_dir: Custom configuration directory path
            debug: Enable debug logging
            workdir: Overrides the configured workspace directory
        """
        logger.set_debug(debug)

        config_path = Path(config_dir) if config_dir else None
        self.config_manager = create_config_manager(config_path)
        self.config = self.config_manager.config

        if not debug and self.config.get("enable_debug", False):
            logger.set_debug(True)

        self.paths = self.config_manager.workspace_paths(Path(workdir) if workdir else None)
        self.agent = create_agent(
            self.config,
            self.paths,
            self.config_manager.payload_file,
            self.config_manager.response_path_file,
            self.config_manager.get_allowed_commands(),
        )

        self.state = AgentState()
        self.stop_reason: Optional[str] = None
        self._terminal_logged = False
        self._setup_signal_handlers()

        logger.debug("Application initialization complete")

    def run(self, max_iterations: Optional[int] = None) -> int:
        """Run iterations until stopped by a signal or ``max_iterations`` is reached.

        Returns:
            Process exit code
        """
        logger.system(f"Agent started in {self.paths.workspace} (confined root: {self.paths.outputs_dir})")
        while self.state.running:
            self.agent.run_iteration(self.state)
            if max_iterations is not None and self.state.iteration >= max_iterations:
                break
            if self.state.running:
                self._sleep()

        if self.stop_reason:
            self._write_terminal_log()
        logger.system("Agent stopped")
        return 0

    def _sleep(self) -> None:
        """Wait a random interval, waking every second to honour a stop request."""
        low = self.config.get("loop_interval_min", DEFAULT_LOOP_INTERVAL_MIN)
        high = self.config.get("loop_interval_max", DEFAULT_LOOP_INTERVAL_MAX)
        duration = random.uniform(low, high)
        logger.system(f"Sleeping {duration:.1f}s...")

        deadline = time.monotonic() + duration
        while self.state.running:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                break
            time.sleep(min(1.0, remaining))

    def _write_terminal_log(self) -> None:
        if self._terminal_logged:
            return
        self._terminal_logged = True
        self.agent.write_terminal_log(self.stop_reason or "stop requested")

    def request_stop(self, reason: str) -> None:
        """Ask the loop to finish its current iteration and stop.

        A second request while already stopping writes the terminal log and exits at once.
        """
        if self.stop_reason is not None:
            logger.system(f"Received {reason} again, exiting now")
            self._write_terminal_log()
            sys.exit(0)

        logger.system(f"Received {reason}, finishing the current iteration before shutting down...")
        self.stop_reason = reason
        self.state.running = False

    def _setup_signal_handlers(self) -> None:
        """Set up signal handlers for graceful shutdown."""
        def signal_handler(sig, frame):
            self.request_stop(signal.Signals(sig).name)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    def get_config_summary(self) -> Dict[str, Any]:
        """Get a summary of the current configuration."""
        return {
            "endpoint": self.config.get("endpoint", "Not set"),
            "model": self.config.get("model", "Not set"),
            "operation_mode": self.config.get("operation_mode"),
            "workspace": str(self.paths.workspace),
            "confined_root": str(self.paths.outputs_dir),
            "command_timeout": self.config.get("command_timeout"),
            "loop_interval": f"{self.config.get('loop_interval_min')}-{self.config.get('loop_interval_max')}s",
            "enable_debug": self.config.get("enable_debug", False),
            "allowed_commands_count": len(self.config_manager.allowed_commands),
        }

    def print_config_summary(self) -> None:
        """Print a summary of the current configuration."""
        logger.system("Configuration Summary:")
        for key, value in self.get_config_summary().items():
            logger.system(f"  {key}: {value}")


def create_application(config_dir: Optional[str] = None, debug: bool = False,
                       workdir: Optional[str] = None) -> SandAgent:
    """Create and initialize a SandAgent application instance.

    Args:
        config_dir: Custom configuration directory path
        debug: Enable debug logging
        workdir: Overrides the configured workspace directory

    Returns:
        Initialized SandAgent instance
    """
    return SandAgent(config_dir, debug, workdir)
