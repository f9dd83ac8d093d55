import sys
from unittest.mock import MagicMock

import yaml

from sandagent.core.models import Proposal
from sandagent.core.proposals import ProposalDispatcher
from sandagent.network import HttpResponse, HttpRequestError


def store_record(paths, proposal_id, **fields):
    record = {
        "id": proposal_id,
        "type": "other",
        "title": "Say hello",
        "reasoning": "Being friendly",
        "details": "Write a greeting for the human operator.",
        "risks": ["none"],
        "benefits": ["morale"],
        "approved": False,
        "timestamp": "2026-01-01 00:00:00.000",
    }
    record.update(fields)
    paths.proposals_dir.mkdir(parents=True, exist_ok=True)
    path = paths.proposals_dir / f"{proposal_id}.yaml"
    path.write_text(yaml.safe_dump(record))
    return path


def test_approved_other_proposal_is_dispatched_and_removed(proposal_manager, paths):
    path = store_record(paths, "p-other", approved=True)

    approved = proposal_manager.scan()
    assert [p.id for p in approved] == ["p-other"]

    entries = proposal_manager.process_approved(approved)
    assert entries[0].result == [
        "Approved proposal acknowledged: Say hello",
        "Details: Write a greeting for the human operator.",
    ]
    assert entries[0].plan_type == "proposal-execution"
    assert not path.exists()

    logs = list(paths.logs_dir.glob("*.yaml"))
    assert len(logs) == 1
    logged = yaml.safe_load(logs[0].read_text())
    assert logged["proposal"]["id"] == "p-other"


def test_record_with_mismatched_id_is_dispatched_and_removed(proposal_manager, paths):
    path = store_record(paths, "other-id", approved=True)
    manual = path.rename(paths.proposals_dir / "manual.yaml")

    entries = proposal_manager.process_approved(proposal_manager.scan())

    assert entries[0].result[0] == "Approved proposal acknowledged: Say hello"
    assert not manual.exists()
    assert proposal_manager.scan() == []


def test_scan_without_approved_records_is_a_no_op(proposal_manager, paths):
    first = store_record(paths, "p1")
    second = store_record(paths, "p2", approved="false")
    before = {p: (p.read_bytes(), p.stat().st_mtime_ns) for p in (first, second)}

    assert proposal_manager.scan() == []
    assert proposal_manager.scan() == []

    assert {p: (p.read_bytes(), p.stat().st_mtime_ns) for p in (first, second)} == before
    assert not paths.logs_dir.exists()


def test_approve_alias_and_string_flag(proposal_manager, paths):
    store_record(paths, "p-alias", approve=True)
    store_record(paths, "p-string", approved="TRUE")
    store_record(paths, "p-other-alias", approvedd=True)
    assert sorted(p.id for p in proposal_manager.scan()) == ["p-alias", "p-string"]


def test_handler_error_still_deletes_record(proposal_manager, paths):
    path = store_record(paths, "p-boom", approved=True)
    proposal_manager.dispatcher = MagicMock()
    proposal_manager.dispatcher.dispatch.side_effect = RuntimeError("boom")

    entries = proposal_manager.process_approved(proposal_manager.scan())

    assert entries[0].result == ["Proposal handler failed: RuntimeError: boom"]
    assert not path.exists()
    assert proposal_manager.scan() == []
    proposal_manager.dispatcher.dispatch.assert_called_once()


def test_record_removed_between_scan_and_dispatch(proposal_manager, paths):
    path = store_record(paths, "p-gone", approved=True)
    approved = proposal_manager.scan()
    path.unlink()
    proposal_manager.dispatcher = MagicMock()

    entries = proposal_manager.process_approved(approved)

    proposal_manager.dispatcher.dispatch.assert_not_called()
    assert "removed before dispatch" in entries[0].result[0]


def test_disabled_types_fail_closed(dispatcher):
    for kind in ("start-server", "install-package", "modify-self", "allow-shell-command"):
        lines = dispatcher.dispatch(Proposal(type=kind, title="t", command="rm -rf /"))
        assert len(lines) == 1
        assert "is not available" in lines[0]


def test_unknown_type_is_reported(dispatcher):
    lines = dispatcher.dispatch(Proposal(type="teleport", title="t"))
    assert lines == ["Proposal type 'teleport' is unknown; nothing was executed"]


def test_execute_code_runs_artifact(dispatcher, workspace):
    (workspace / "outputs" / "hello.py").write_text("print('hi from artifact')\n")
    lines = dispatcher.dispatch(Proposal(type="execute-code", title="run", target_file="outputs/hello.py"))
    assert lines[0] == "Executed outputs/hello.py"
    assert "Exit code: 0" in lines
    assert "Output: hi from artifact" in lines


def test_execute_code_rechecks_confinement(dispatcher, workspace):
    (workspace / "evil.py").write_text("print('x')\n")
    lines = dispatcher.dispatch(Proposal(type="execute-code", title="run", target_file="evil.py"))
    assert lines[0].startswith("Blocked:")


def test_execute_code_unsupported_suffix(dispatcher, workspace):
    (workspace / "outputs" / "data.bin").write_text("x")
    lines = dispatcher.dispatch(Proposal(type="execute-code", title="run", target_file="outputs/data.bin"))
    assert lines[0].startswith("Unsupported artifact type '.bin'")


def test_http_request_saves_body(sandbox, command_executor, workspace):
    client = MagicMock()
    client.request.return_value = HttpResponse(status=404, reason="Not Found", body="missing",
                                               url="https://example.com/x")
    dispatcher = ProposalDispatcher(sandbox, command_executor, http_client=client)

    lines = dispatcher.dispatch(Proposal(type="http-request", title="get", url="https://example.com/x",
                                         method="get"))

    client.request.assert_called_once_with("GET", "https://example.com/x", None)
    assert lines[0] == "HTTP GET https://example.com/x: 404 Not Found"
    saved = list((workspace / "outputs" / "fetched").glob("http-*.txt"))
    assert saved[0].read_text() == "missing"


def test_http_request_transport_failure(sandbox, command_executor):
    client = MagicMock()
    client.request.side_effect = HttpRequestError("connection refused")
    dispatcher = ProposalDispatcher(sandbox, command_executor, http_client=client)

    lines = dispatcher.dispatch(Proposal(type="http-request", title="get", url="https://example.com"))
    assert lines == ["HTTP GET https://example.com failed: connection refused"]


def test_store_skips_unreadable_records(proposal_store, paths):
    store_record(paths, "good")
    (paths.proposals_dir / "broken.yaml").write_text("key: [unclosed")
    (paths.proposals_dir / "scalar.yaml").write_text("just a string")
    assert [p.id for p in proposal_store.load_all()] == ["good"]


def test_store_uses_file_stem_when_id_missing(proposal_store, paths):
    store_record(paths, "from-stem", id="")
    assert [p.id for p in proposal_store.load_all()] == ["from-stem"]


def test_delete_missing_record_is_tolerated(proposal_store):
    assert proposal_store.delete("never-existed") is False


def test_interpreter_for_python_artifacts():
    from sandagent.core.proposals import ARTIFACT_INTERPRETERS
    assert ARTIFACT_INTERPRETERS[".py"] == [sys.executable]
