from unittest.mock import patch

import pytest
import yaml

from sandagent.commands import CommandResult
from sandagent.core.models import Plan
from sandagent.core.sandbox import PathOutsideRootError


def test_first_write_reports_overwrite(sandbox, workspace):
    plan = Plan(type="file-write", action="leave a note", target="outputs/note.txt",
                content="hello", append_mode=False)
    lines = sandbox.execute(plan)
    assert lines == ["File write (overwrite): outputs/note.txt (5 chars)"]
    assert (workspace / "outputs" / "note.txt").read_text() == "hello"


def test_append_mode_label_and_effect(sandbox, workspace):
    note = workspace / "outputs" / "log.txt"
    note.write_text("one\n")
    plan = Plan(type="file-write", action="extend log", target="outputs/log.txt",
                content="two\n", append_mode=True)
    lines = sandbox.execute(plan)
    assert lines[0].startswith("File write (append): outputs/log.txt")
    assert note.read_text() == "one\ntwo\n"


def test_write_creates_parent_directories(sandbox, workspace):
    plan = Plan(type="file-write", action="deep", target="outputs/a/b/c.txt", content="x")
    sandbox.execute(plan)
    assert (workspace / "outputs" / "a" / "b" / "c.txt").read_text() == "x"


@pytest.mark.parametrize("target", ["../escape.txt", "outputs/../escape.txt", "escape.txt"])
def test_write_outside_root_is_blocked(sandbox, workspace, target):
    plan = Plan(type="file-write", action="escape", target=target, content="nope")
    lines = sandbox.execute(plan)
    assert len(lines) == 1
    assert lines[0].startswith("Blocked:")
    assert not (workspace / "escape.txt").exists()
    assert not (workspace.parent / "escape.txt").exists()


def test_absolute_target_outside_root_is_blocked(sandbox, tmp_path):
    victim = tmp_path / "victim.txt"
    plan = Plan(type="file-write", action="escape", target=str(victim), content="nope")
    lines = sandbox.execute(plan)
    assert lines[0].startswith("Blocked:")
    assert not victim.exists()


def test_symlink_escape_is_blocked(sandbox, workspace, tmp_path):
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    (workspace / "outputs" / "link").symlink_to(elsewhere, target_is_directory=True)
    plan = Plan(type="file-write", action="escape", target="outputs/link/x.txt", content="nope")
    lines = sandbox.execute(plan)
    assert lines[0].startswith("Blocked:")
    assert not (elsewhere / "x.txt").exists()


def test_protected_continuity_file(sandbox, workspace):
    plan = Plan(type="file-write", action="forge memory", target="outputs/continuity.yaml", content="goal: x")
    lines = sandbox.execute(plan)
    assert "protected" in lines[0]
    assert not (workspace / "outputs" / "continuity.yaml").exists()


def test_resolve_target_raises_outside_root(sandbox):
    with pytest.raises(PathOutsideRootError):
        sandbox.resolve_target("../x.txt")
    assert sandbox.is_inside_root("outputs/x.txt")
    assert not sandbox.is_inside_root("/etc/passwd")


def test_redirect_rejected_before_spawn(sandbox):
    plan = Plan(type="shell", action="list", command="ls > outputs/x.txt")
    with patch("sandagent.commands.executor.subprocess.run") as mock_run:
        lines = sandbox.execute(plan)
    mock_run.assert_not_called()
    assert any("redirect forbidden" in line for line in lines)


def test_disallowed_command_never_spawns(sandbox):
    plan = Plan(type="shell", action="rm -rf outputs")
    with patch("sandagent.commands.executor.subprocess.run") as mock_run:
        lines = sandbox.execute(plan)
    mock_run.assert_not_called()
    assert lines == ["Blocked: Command 'rm' not in allowed list"]


def test_allowed_command_runs_and_records_reads(sandbox, workspace):
    (workspace / "outputs" / "a.txt").write_text("alpha\n")
    report = sandbox.run(Plan(type="shell", action="cat outputs/a.txt"))
    assert report.lines[0] == "Command: cat outputs/a.txt"
    assert "Exit code: 0" in report.lines
    assert "Output: alpha" in report.lines
    assert report.reads == ["outputs/a.txt"]


def test_failed_read_records_nothing(sandbox):
    report = sandbox.run(Plan(type="shell", action="cat outputs/missing.txt"))
    assert report.reads == []
    assert any(line.startswith("Stderr:") for line in report.lines)


def test_command_output_is_truncated(sandbox, workspace):
    sandbox.max_output_chars = 10
    (workspace / "outputs" / "big.txt").write_text("x" * 100)
    lines = sandbox.execute(Plan(type="shell", action="cat outputs/big.txt"))
    output = [line for line in lines if line.startswith("Output:")][0]
    assert "[truncated 90 chars]" in output


def test_fetch_body_saved_inside_root(sandbox, workspace):
    fake = CommandResult("curl -s https://example.com", 0, stdout="<html>hi</html>")
    with patch.object(sandbox.command_executor, "execute", return_value=fake):
        lines = sandbox.execute(Plan(type="shell", action="curl -s https://example.com"))

    saved = list((workspace / "outputs" / "fetched").glob("fetch-*.txt"))
    assert len(saved) == 1
    assert saved[0].read_text() == "<html>hi</html>"
    assert lines[-1] == f"Saved response body to outputs/fetched/{saved[0].name}"


def test_proposal_plan_only_persists_record(sandbox, paths):
    payload = {
        "type": "execute-code",
        "title": "Run my script",
        "reasoning": "I want to see what it prints",
        "details": "Run outputs/hello.py with the Python interpreter and record stdout.",
        "risks": ["script might loop"],
        "benefits": ["learn something"],
        "targetFile": "outputs/hello.py",
    }
    with patch("sandagent.commands.executor.subprocess.run") as mock_run:
        report = sandbox.run(Plan(type="proposal", action="ask to run script", proposal=payload))
    mock_run.assert_not_called()

    assert report.proposal is not None
    assert report.proposal.id.endswith("-execute-code")
    assert report.lines[0].startswith(f"Proposal saved: {report.proposal.id} (execute-code)")

    stored = yaml.safe_load((paths.proposals_dir / f"{report.proposal.id}.yaml").read_text())
    assert stored["approved"] is False
    assert stored["targetFile"] == "outputs/hello.py"


def test_observe_lists_root(sandbox, workspace):
    (workspace / "outputs" / "seen.txt").write_text("x")
    lines = sandbox.execute(Plan(type="observe", action="look"))
    assert lines[0] == "Observation complete."
    assert "seen.txt" in lines[1]


def test_list_root_files(sandbox, workspace):
    (workspace / "outputs" / "sub").mkdir()
    (workspace / "outputs" / "sub" / "b.txt").write_text("b")
    (workspace / "outputs" / "a.txt").write_text("a")
    names, total = sandbox.list_root_files(limit=1)
    assert names == ["a.txt"]
    assert total == 2
