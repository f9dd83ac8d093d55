import json
from unittest.mock import patch

import yaml

from sandagent.core.models import ActionLog, AgentState


def plan_json(**fields):
    return json.dumps(fields)


WRITE_NOTE = plan_json(type="file-write", intent="leave a trace", action="write a note",
                       target="outputs/note.txt", content="hello", appendMode=False,
                       continuity={"progress": "wrote the first note", "milestones": ["first note"]})


def test_successful_plan_is_executed_logged_and_resets_boredom(make_agent, paths):
    agent = make_agent([WRITE_NOTE])
    state = AgentState(boredom=4)

    entry = agent.run_iteration(state)

    assert entry.result == ["File write (overwrite): outputs/note.txt (5 chars)"]
    assert entry.plan_type == "file-write"
    assert entry.target == "outputs/note.txt"
    assert entry.next == ["decide next iteration"]
    assert entry.response_raw == WRITE_NOTE
    assert (paths.outputs_dir / "note.txt").read_text() == "hello"
    assert state.boredom == 0
    assert state.iteration == 1

    logs = list(paths.logs_dir.glob("*.yaml"))
    assert len(logs) == 1
    assert yaml.safe_load(logs[0].read_text())["action"] == "write a note"


def test_continuity_is_merged_and_history_recorded(make_agent, paths, config):
    agent = make_agent([WRITE_NOTE])
    agent.run_iteration(AgentState())

    stored = yaml.safe_load(paths.continuity_file.read_text())
    assert stored["goal"] == config["goal"]
    assert stored["progress"] == "wrote the first note"
    assert stored["milestones"] == ["first note"]
    assert len(stored["history"]) == 1
    assert "[file-write] write a note" in stored["history"][0]


def test_prompt_carries_context(make_agent, paths):
    (paths.outputs_dir / "seen.txt").write_text("x")
    agent = make_agent([WRITE_NOTE])
    agent.run_iteration(AgentState(boredom=7))

    prompt, system_prompt = agent.llm.calls[0]
    assert "- seen.txt" in prompt
    assert "Boredom: 7" in prompt
    assert "If boredom is above 5" in prompt
    assert "ls: " in prompt
    assert "You speak JSON" in system_prompt


def test_parse_failure_in_guided_mode_repairs_once(make_agent):
    agent = make_agent(["not json at all", "still not json"])
    state = AgentState()

    entry = agent.run_iteration(state)

    assert len(agent.llm.calls) == 2
    assert "Emit valid JSON only" in agent.llm.calls[1][0]
    assert "not json at all" in agent.llm.calls[1][0]
    assert entry.result == ["Parse failed: no JSON object found in response"]
    assert entry.plan_type is None
    assert entry.response_raw == "still not json"
    assert state.boredom == 2


def test_parse_repair_can_succeed(make_agent, paths):
    agent = make_agent(["Sorry, here it is: type=file-write", WRITE_NOTE])
    entry = agent.run_iteration(AgentState())
    assert entry.plan_type == "file-write"
    assert (paths.outputs_dir / "note.txt").exists()


def test_basic_mode_has_no_parse_repair(make_agent):
    agent = make_agent(["not json", WRITE_NOTE], operation_mode="basic")
    entry = agent.run_iteration(AgentState())
    assert len(agent.llm.calls) == 1
    assert entry.result[0].startswith("Parse failed")


def test_validation_repair_round(make_agent):
    bad = plan_json(type="shell", intent="list", action="ls > outputs/x.txt")
    good = plan_json(type="shell", intent="list", action="ls outputs")
    agent = make_agent([bad, good])

    entry = agent.run_iteration(AgentState())

    assert "redirect forbidden" in agent.llm.calls[1][0]
    assert entry.result[0] == "Command: ls outputs"
    assert "Exit code: 0" in entry.result


def test_second_validation_failure_is_terminal(make_agent, paths):
    bad = plan_json(type="shell", intent="list", action="ls > outputs/x.txt")
    agent = make_agent([bad, bad, WRITE_NOTE])
    state = AgentState()

    with patch("sandagent.commands.executor.subprocess.run") as mock_run:
        entry = agent.run_iteration(state)

    mock_run.assert_not_called()
    assert len(agent.llm.calls) == 2
    assert any(line.startswith("Violation: redirect forbidden") for line in entry.result)
    assert entry.action == "ls > outputs/x.txt"
    assert state.boredom == 2
    assert not (paths.outputs_dir / "x.txt").exists()


def test_read_then_overwrite_across_iterations(make_agent, paths):
    (paths.outputs_dir / "a.txt").write_text("old")
    read = plan_json(type="shell", intent="check", action="cat outputs/a.txt")
    write = plan_json(type="file-write", intent="update", action="rewrite a",
                      target="outputs/a.txt", content="new")
    agent = make_agent([read, write])
    state = AgentState()

    first = agent.run_iteration(state)
    assert first.reads == ["outputs/a.txt"]

    second = agent.run_iteration(state)
    assert second.result[0].startswith("File write (overwrite): outputs/a.txt")
    assert (paths.outputs_dir / "a.txt").read_text() == "new"


def test_blind_overwrite_is_rejected(make_agent, paths):
    (paths.outputs_dir / "a.txt").write_text("old")
    write = plan_json(type="file-write", intent="update", action="rewrite a",
                      target="outputs/a.txt", content="new")
    agent = make_agent([write, write])

    entry = agent.run_iteration(AgentState())

    assert "read it first" in entry.result[0]
    assert (paths.outputs_dir / "a.txt").read_text() == "old"


def test_approved_proposal_preempts_plan_generation(make_agent, paths):
    paths.proposals_dir.mkdir(parents=True)
    record = paths.proposals_dir / "p1.yaml"
    record.write_text(yaml.safe_dump({
        "id": "p1", "type": "other", "title": "Say hello",
        "details": "Write a greeting for the human operator.", "approved": True,
    }))
    agent = make_agent([WRITE_NOTE])
    state = AgentState(boredom=3)

    entry = agent.run_iteration(state)

    assert agent.llm.calls == []
    assert entry.plan_type == "proposal-execution"
    assert entry.result[0] == "Approved proposal acknowledged: Say hello"
    assert not record.exists()
    assert state.boredom == 0
    assert not (paths.outputs_dir / "note.txt").exists()


def test_proposal_plan_creates_pending_record(make_agent, paths):
    proposal = {
        "type": "other", "title": "Ask for a new tool",
        "reasoning": "Listing files is getting repetitive",
        "details": "Please allow a command that shows file modification times in detail.",
        "risks": ["minor information disclosure"], "benefits": ["richer observations"],
    }
    agent = make_agent([plan_json(type="proposal", intent="grow", action="propose a tool", proposal=proposal)])

    entry = agent.run_iteration(AgentState())

    assert entry.proposal["approved"] is False
    records = list(paths.proposals_dir.glob("*.yaml"))
    assert len(records) == 1
    assert records[0].stem == entry.proposal["id"]

    # Still pending: the next iteration asks the model again and lists the proposal
    agent.llm.responses = [WRITE_NOTE]
    agent.run_iteration(AgentState())
    assert entry.proposal["id"] in agent.llm.calls[-1][0]


def test_repetition_raises_boredom_in_prompt(make_agent, log_store):
    for ts in ("2020-01-01 00:00:00.000", "2020-01-01 00:01:00.000"):
        log_store.write(ActionLog(action="read directory", plan_type="observe", timestamp=ts))
    agent = make_agent([plan_json(type="observe", intent="look", action="read directory")])
    state = AgentState()

    agent.run_iteration(state)

    assert "Boredom: 3" in agent.llm.calls[0][0]
    assert state.boredom == 0


def test_unexpected_error_becomes_failure_log(make_agent, paths):
    agent = make_agent()
    state = AgentState()

    with patch.object(agent.llm, "generate", side_effect=RuntimeError("backend exploded")):
        entry = agent.run_iteration(state)

    assert entry.action == "iteration-error"
    assert entry.result == ["Unexpected error: RuntimeError: backend exploded"]
    assert state.boredom == 2
    assert len(list(paths.logs_dir.glob("*.yaml"))) == 1


def test_terminal_log(make_agent, paths):
    agent = make_agent()
    entry = agent.write_terminal_log("SIGINT")
    assert entry.action == "STOP"
    assert entry.result == ["process terminated by signal"]
    assert entry.next == []
    stored = yaml.safe_load(next(paths.logs_dir.glob("*.yaml")).read_text())
    assert stored["action"] == "STOP"
