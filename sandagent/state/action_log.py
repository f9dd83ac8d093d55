"""Append-only ActionLog store: one YAML file per loop iteration."""

from pathlib import Path
from typing import List, Optional

import yaml

from ..core.models import ActionLog
from ..utils.helpers import get_local_timestamp, timestamp_to_filename
from ..utils.logging import logger


class ActionLogStore:
    """Writes each ActionLog once under ``logs_dir`` and reads recent ones back."""

    def __init__(self, logs_dir: Path):
        self.logs_dir = logs_dir

    def write(self, entry: ActionLog) -> Optional[Path]:
        """Persist an entry, assigning a zone-local timestamp when needed.

        A missing timestamp, or one ending in a UTC marker, is replaced with the
        current local time. The file name is derived from the final timestamp; an
        entry landing on the same millisecond overwrites the earlier file.

        Returns:
            Path of the written file, or None if the write failed
        """
        if not entry.timestamp or entry.timestamp.strip().upper().endswith('Z'):
            entry.timestamp = get_local_timestamp()

        file_path = self.logs_dir / timestamp_to_filename(entry.timestamp)
        try:
            self.logs_dir.mkdir(parents=True, exist_ok=True)
            with open(file_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(entry.to_dict(), f, allow_unicode=True, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to write action log {file_path}: {e}")
            return None

        logger.state(f"Action log written: {file_path.name}")
        return file_path

    def recent(self, limit: int) -> List[ActionLog]:
        """Return up to ``limit`` entries, newest first; unreadable files are skipped."""
        if limit <= 0 or not self.logs_dir.is_dir():
            return []

        entries: List[ActionLog] = []
        for file_path in sorted(self.logs_dir.glob("*.yaml"), reverse=True):
            entry = self._read(file_path)
            if entry is not None:
                entries.append(entry)
            if len(entries) >= limit:
                break
        return entries

    def last(self) -> Optional[ActionLog]:
        """Return the newest readable entry, if any."""
        entries = self.recent(1)
        return entries[0] if entries else None

    def _read(self, file_path: Path) -> Optional[ActionLog]:
        try:
            data = yaml.safe_load(file_path.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.warning(f"Skipping unreadable action log {file_path.name}: {e}")
            return None

        if not isinstance(data, dict):
            logger.warning(f"Skipping malformed action log {file_path.name}: not a mapping")
            return None
        return ActionLog.from_dict(data)
