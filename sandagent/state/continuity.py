"""ContinuityState persistence and merging."""

from pathlib import Path
from typing import Any, Dict, Iterable, List

import yaml

from ..constants import DEFAULT_HISTORY_LIMIT
from ..core.models import ContinuityState
from ..utils.helpers import atomic_write_text, get_local_timestamp
from ..utils.logging import logger

# Model-facing keys mapped to the state fields they may touch
SCALAR_FIELDS = {"goal": "goal", "progress": "progress", "nextFocus": "next_focus", "next_focus": "next_focus"}
LIST_FIELDS = {"milestones": "milestones", "blockers": "blockers"}


class ContinuityStore:
    """Reads and fully rewrites the single continuity file."""

    def __init__(self, path: Path, history_limit: int = DEFAULT_HISTORY_LIMIT,
                 blocked_topics: Iterable[str] = ()):
        self.path = path
        self.history_limit = history_limit
        self.blocked_topics = [topic.lower() for topic in blocked_topics if topic]

    def load(self) -> ContinuityState:
        """Load the stored state; missing or unreadable files give an empty state."""
        if not self.path.exists():
            logger.warning(f"Continuity file {self.path} not found; starting with empty state")
            return ContinuityState()

        try:
            data = yaml.safe_load(self.path.read_text(encoding='utf-8'))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.warning(f"Could not read continuity file {self.path} ({e}); starting with empty state")
            return ContinuityState()

        if not isinstance(data, dict):
            logger.warning(f"Continuity file {self.path} is not a mapping; starting with empty state")
            return ContinuityState()
        return ContinuityState.from_dict(data)

    def save(self, state: ContinuityState) -> bool:
        """Stamp ``updated_at`` and rewrite the file. Returns False on failure."""
        state.updated_at = get_local_timestamp()
        try:
            content = yaml.safe_dump(state.to_dict(), allow_unicode=True, sort_keys=False)
            atomic_write_text(self.path, content)
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to write continuity file {self.path}: {e}")
            return False
        logger.debug(f"Continuity state saved to {self.path}")
        return True

    def is_blocked(self, value: str) -> bool:
        """True when a value mentions any disallowed topic."""
        lowered = value.lower()
        return any(topic in lowered for topic in self.blocked_topics)

    def merge(self, state: ContinuityState, patch: Dict[str, Any]) -> List[str]:
        """Merge a model-proposed patch into ``state`` in place.

        Scalars replace the stored value when non-empty; list entries are appended
        without duplicates. History is loop-owned and never taken from the patch.

        Returns:
            Descriptions of the values that were discarded
        """
        discarded = []
        if not isinstance(patch, dict):
            return discarded

        for key, attr in SCALAR_FIELDS.items():
            value = patch.get(key)
            if not isinstance(value, str) or not value.strip():
                continue
            if self.is_blocked(value):
                discarded.append(f"{key}: {value}")
                continue
            setattr(state, attr, value.strip())

        for key, attr in LIST_FIELDS.items():
            values = patch.get(key)
            if isinstance(values, str):
                values = [values]
            if not isinstance(values, list):
                continue
            current = getattr(state, attr)
            for value in values:
                text = str(value).strip()
                if not text:
                    continue
                if self.is_blocked(text):
                    discarded.append(f"{key}: {text}")
                    continue
                if text not in current:
                    current.append(text)
            if len(current) > self.history_limit:
                del current[:len(current) - self.history_limit]

        if discarded:
            logger.warning(f"Discarded continuity values matching blocked topics: {discarded}")
        return discarded

    def record_history(self, state: ContinuityState, line: str) -> None:
        """Append one line to the history tail, evicting the oldest past the limit."""
        state.history.append(line)
        if len(state.history) > self.history_limit:
            del state.history[:len(state.history) - self.history_limit]
