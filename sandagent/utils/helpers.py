"""Helper utility functions for sandagent."""

import datetime
import re
import shutil
import tempfile
from pathlib import Path

from ..utils.logging import logger


def get_current_timestamp() -> str:
    """Returns the current timestamp in YYYY-MM-DD HH:MM:SS format."""
    return datetime.datetime.now().strftime('%Y-%m-%d %H:%M:%S')


def get_local_timestamp(now: datetime.datetime = None) -> str:
    """Returns a zone-local timestamp with millisecond precision.

    Format: ``YYYY-MM-DD HH:MM:SS.fff`` with no UTC marker, so it can never be
    mistaken for a model-supplied UTC value.
    """
    now = now or datetime.datetime.now()
    return now.strftime('%Y-%m-%d %H:%M:%S.') + f"{now.microsecond // 1000:03d}"


def timestamp_to_filename(timestamp: str, suffix: str = ".yaml") -> str:
    """Turn a timestamp into a file name (``2026-02-10 12:28:35.001`` -> ``2026-02-10 12-28-35-001.yaml``)."""
    name = timestamp.replace(':', '-').replace('.', '-')
    name = re.sub(r'[^0-9A-Za-z _-]', '_', name)
    return f"{name}{suffix}"


def timestamp_to_compact(timestamp: str) -> str:
    """Turn a timestamp into a compact key (``2026-02-10 12:28:35.001`` -> ``20260210-122835-001``)."""
    digits = re.sub(r'[^0-9]', '', timestamp)
    if len(digits) >= 14:
        compact = f"{digits[:8]}-{digits[8:14]}"
        if len(digits) > 14:
            compact += f"-{digits[14:]}"
        return compact
    return digits or "0"


def format_template_string(template: str, **kwargs) -> str:
    """Safely format a template string with context variables."""
    try:
        return template.format(**kwargs)
    except KeyError as e:
        logger.error(f"Missing template variable: {e}")
        return template
    except Exception as e:
        logger.error(f"Template formatting error: {e}")
        return template


def truncate_text(text: str, limit: int) -> str:
    """Cut text down to ``limit`` characters, noting how much was dropped."""
    if limit <= 0 or len(text) <= limit:
        return text
    return f"{text[:limit]}... [truncated {len(text) - limit} chars]"


def safe_file_write(file_path: Path, content: str, description: str = None) -> bool:
    """Safely write content to a file with error handling."""
    desc = description or f"file {file_path}"
    try:
        file_path.write_text(content, encoding='utf-8')
        logger.system(f"Generated {desc}")
        return True
    except Exception as e:
        logger.error(f"Failed to write {desc}: {e}")
        return False


def atomic_write_text(file_path: Path, content: str) -> None:
    """Replace a file's content via a temporary file in the same directory.

    Raises:
        OSError: if the temporary file cannot be written or moved into place
    """
    file_path.parent.mkdir(parents=True, exist_ok=True)
    temp_name = None
    try:
        with tempfile.NamedTemporaryFile('w', delete=False, dir=file_path.parent,
                                         suffix='.tmp', encoding='utf-8') as tmp_f:
            tmp_f.write(content)
            temp_name = tmp_f.name
        shutil.move(temp_name, str(file_path))
    except OSError:
        if temp_name and Path(temp_name).exists():
            Path(temp_name).unlink()
        raise
