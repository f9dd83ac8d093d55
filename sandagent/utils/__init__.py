"""Utility functions and helpers for sandagent."""

from .logging import logger, Logger
from .helpers import (
    get_current_timestamp,
    get_local_timestamp,
    timestamp_to_filename,
    timestamp_to_compact,
    format_template_string,
    truncate_text,
    safe_file_write,
    atomic_write_text,
)

__all__ = [
    "logger",
    "Logger",
    "get_current_timestamp",
    "get_local_timestamp",
    "timestamp_to_filename",
    "timestamp_to_compact",
    "format_template_string",
    "truncate_text",
    "safe_file_write",
    "atomic_write_text",
]
