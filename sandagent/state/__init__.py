"""Durable state stores for sandagent."""

from .action_log import ActionLogStore
from .continuity import ContinuityStore

__all__ = [
    "ActionLogStore",
    "ContinuityStore",
]
