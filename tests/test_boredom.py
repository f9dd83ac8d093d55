from sandagent.core import boredom
from sandagent.core.models import ActionLog, AgentState


def log(action, plan_type="shell", target=None):
    return ActionLog(action=action, plan_type=plan_type, target=target)


def test_identical_actions_add_repeat_penalty():
    state = AgentState()
    added = boredom.apply_repetition(state, [log("read directory"), log("read directory")])
    assert added == 3
    assert state.boredom == 3


def test_different_actions_add_nothing():
    assert boredom.repetition_penalty([log("ls"), log("date")]) == 0


def test_same_write_target_adds_larger_penalty():
    logs = [
        log("write poem v2", "file-write", "outputs/poem.txt"),
        log("write poem v1", "file-write", "outputs/poem.txt"),
    ]
    assert boredom.repetition_penalty(logs) == 5


def test_same_action_and_target_stack():
    logs = [
        log("write poem", "file-write", "outputs/poem.txt"),
        log("write poem", "file-write", "outputs/poem.txt"),
    ]
    assert boredom.repetition_penalty(logs) == 8


def test_failure_logs_are_skipped_when_comparing():
    logs = [log("read directory"), log("parse-failure", plan_type=None), log("read directory")]
    assert boredom.repetition_penalty(logs) == 3


def test_failure_on_top_does_not_rescore_pair():
    state = AgentState()
    repeated = [log("read directory"), log("read directory")]
    boredom.apply_repetition(state, repeated)

    added = boredom.apply_repetition(state, [log("parse-failure", plan_type=None)] + repeated)

    assert added == 0
    assert state.boredom == 3


def test_single_log_has_no_penalty():
    assert boredom.repetition_penalty([log("ls")]) == 0
    assert boredom.repetition_penalty([]) == 0


def test_failure_and_reset():
    state = AgentState(boredom=4)
    boredom.record_failure(state)
    assert state.boredom == 6
    boredom.reset(state)
    assert state.boredom == 0
