import signal
from pathlib import Path

import pytest
import yaml

from sandagent.commands import CommandExecutor, create_permission_manager, create_safety_checker
from sandagent.config.manager import WorkspacePaths
from sandagent.config.templates import CONFIG_TEMPLATE, PAYLOAD_TEMPLATE, RESPONSE_PATH_TEMPLATE
from sandagent.core.agent import create_agent
from sandagent.core.proposals import ProposalDispatcher, ProposalManager, ProposalStore
from sandagent.core.sandbox import SandboxedExecutor
from sandagent.core.validator import PlanValidator
from sandagent.state import ActionLogStore, ContinuityStore

ALLOWED_COMMANDS = {
    "ls": "List directory contents.",
    "cat": "Display file content.",
    "wc": "Count lines.",
    "echo": "Print text.",
    "date": "Print the date.",
    "curl": "Fetch a URL.",
}


class FakeLLM:
    """Scripted stand-in for the model: returns queued responses in order, then ''."""

    def __init__(self, responses=()):
        self.responses = list(responses)
        self.calls = []

    def generate(self, prompt, system_prompt):
        self.calls.append((prompt, system_prompt))
        return self.responses.pop(0) if self.responses else ""


@pytest.fixture
def workspace(tmp_path) -> Path:
    ws = tmp_path / "ws"
    (ws / "outputs").mkdir(parents=True)
    return ws


@pytest.fixture
def paths(workspace) -> WorkspacePaths:
    return WorkspacePaths(
        workspace=workspace.resolve(),
        logs_dir=workspace.resolve() / "logs",
        proposals_dir=workspace.resolve() / "proposals",
        outputs_dir=workspace.resolve() / "outputs",
        continuity_file=workspace.resolve() / "outputs" / "continuity.yaml",
    )


@pytest.fixture
def config():
    data = yaml.safe_load(CONFIG_TEMPLATE)
    data["allowed_commands"] = dict(ALLOWED_COMMANDS)
    data["loop_interval_min"] = 0
    data["loop_interval_max"] = 0
    return data


@pytest.fixture
def command_executor(workspace):
    return CommandExecutor(default_timeout=10, cwd=workspace)


@pytest.fixture
def proposal_store(paths):
    return ProposalStore(paths.proposals_dir)


@pytest.fixture
def log_store(paths):
    return ActionLogStore(paths.logs_dir)


@pytest.fixture
def continuity_store(paths):
    return ContinuityStore(paths.continuity_file, history_limit=5, blocked_topics=["password"])


@pytest.fixture
def sandbox(paths, command_executor, proposal_store):
    return SandboxedExecutor(
        workspace=paths.workspace,
        root=paths.outputs_dir,
        permission_manager=create_permission_manager(ALLOWED_COMMANDS),
        safety_checker=create_safety_checker(),
        command_executor=command_executor,
        proposal_store=proposal_store,
        protected_paths=[paths.continuity_file],
    )


@pytest.fixture
def validator(sandbox):
    return PlanValidator(sandbox, sandbox.permission_manager, sandbox.safety_checker, min_details_length=40)


@pytest.fixture
def dispatcher(sandbox, command_executor):
    return ProposalDispatcher(sandbox, command_executor, http_client=None)


@pytest.fixture
def proposal_manager(proposal_store, dispatcher, log_store):
    return ProposalManager(proposal_store, dispatcher, log_store)


@pytest.fixture
def config_files(tmp_path):
    """Payload and response-path templates as written on first run."""
    payload_file = tmp_path / "payload.json"
    payload_file.write_text(PAYLOAD_TEMPLATE, encoding='utf-8')
    response_path_file = tmp_path / "response_path_template.txt"
    response_path_file.write_text(RESPONSE_PATH_TEMPLATE, encoding='utf-8')
    return payload_file, response_path_file


@pytest.fixture
def make_agent(config, paths, config_files):
    """Build a fully wired Agent whose model is a FakeLLM."""
    def _make(responses=(), **overrides):
        cfg = dict(config)
        cfg.update(overrides)
        payload_file, response_path_file = config_files
        agent = create_agent(cfg, paths, payload_file, response_path_file, cfg["allowed_commands"])
        agent.llm = FakeLLM(responses)
        return agent
    return _make


@pytest.fixture
def restore_signals():
    saved = {sig: signal.getsignal(sig) for sig in (signal.SIGINT, signal.SIGTERM)}
    yield
    for sig, handler in saved.items():
        signal.signal(sig, handler)
