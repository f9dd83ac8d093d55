"""Advisory repetition pressure ("boredom").

The value only ever reaches the prompt; nothing in the loop reads it to allow or
block an action.
"""

from typing import Iterable

from ..constants import REPEAT_ACTION_PENALTY, REPEAT_TARGET_PENALTY, FAILURE_PENALTY
from .models import ActionLog, AgentState


def repetition_penalty(recent_logs: Iterable[ActionLog]) -> int:
    """Score repetition between the two most recent logs that carry a plan type.

    Only scored when the newest log is itself a plan, so a pair that was already
    scored is not counted again after a failure log lands on top of it.

    Args:
        recent_logs: ActionLogs, newest first

    Returns:
        Penalty to add: identical action text and identical write target each count
    """
    logs = list(recent_logs)
    if not logs or not logs[0].plan_type:
        return 0

    planned = [log for log in logs if log.plan_type][:2]
    if len(planned) < 2:
        return 0

    latest, previous = planned
    penalty = 0
    if latest.action and latest.action.strip() == previous.action.strip():
        penalty += REPEAT_ACTION_PENALTY
    if (latest.plan_type == previous.plan_type == "file-write"
            and latest.target and latest.target == previous.target):
        penalty += REPEAT_TARGET_PENALTY
    return penalty


def apply_repetition(state: AgentState, recent_logs: Iterable[ActionLog]) -> int:
    penalty = repetition_penalty(recent_logs)
    state.boredom += penalty
    return penalty


def record_failure(state: AgentState) -> None:
    state.boredom += FAILURE_PENALTY


def reset(state: AgentState) -> None:
    state.boredom = 0
