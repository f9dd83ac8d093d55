"""Command-line interface for sandagent."""

import argparse
import sys
from typing import List, Optional

from colorama import init as colorama_init

from .core.application import create_application
from .utils.logging import logger
from . import __version__


def positive_int(value: str) -> int:
    number = int(value)
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="sandagent: autonomous LLM agent that plans, validates and acts inside a sandboxed directory.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sandagent                         # Run the loop until Ctrl+C
  sandagent --workdir ~/sandbox     # Use another workspace directory
  sandagent --once --debug          # Run a single iteration with debug output
  sandagent --iterations 5

Approving proposals:
  Proposals are written to <workspace>/proposals/<id>.yaml with 'approved: false'.
  Change it to 'approved: true' and the next iteration executes the proposal
  instead of asking the model for a new plan. The record is deleted afterwards.
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'sandagent {__version__}'
    )

    parser.add_argument(
        '--debug',
        action='store_true',
        help="Enable debug logging output"
    )

    parser.add_argument(
        '--config-dir',
        type=str,
        help="Custom configuration directory path"
    )

    parser.add_argument(
        '--workdir',
        type=str,
        help="Workspace directory (overrides workspace_dir from the configuration)"
    )

    parser.add_argument(
        '--config-summary',
        action='store_true',
        help="Show configuration summary and exit"
    )

    limit = parser.add_mutually_exclusive_group()
    limit.add_argument(
        '--once',
        action='store_true',
        help="Run a single iteration and exit"
    )
    limit.add_argument(
        '--iterations',
        type=positive_int,
        metavar='N',
        help="Stop after N iterations"
    )

    return parser


def main(args: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    colorama_init(autoreset=True)

    parser = create_parser()
    parsed_args = parser.parse_args(args)

    try:
        app = create_application(
            config_dir=parsed_args.config_dir,
            debug=parsed_args.debug,
            workdir=parsed_args.workdir,
        )
    except SystemExit:
        # Setup (exit 0) or invalid configuration (exit 1), already reported
        raise
    except Exception as e:
        logger.error(f"Failed to initialize sandagent: {e}")
        sys.exit(1)

    if parsed_args.config_summary:
        app.print_config_summary()
        return

    max_iterations = 1 if parsed_args.once else parsed_args.iterations
    try:
        exit_code = app.run(max_iterations=max_iterations)
    except Exception as e:
        logger.error(f"Agent loop failed: {e}")
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
