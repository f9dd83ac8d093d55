"""Proposal lifecycle: durable store, approval scan, dispatch and finalization.

A proposal moves Created(approved=false) -> Approved(approved=true) -> executed and
deleted. Approval is an out-of-band edit of the stored YAML record; this module only
scans for it. Execution is at-most-once: the record is deleted after dispatch
whether the handler succeeded, failed or raised.
"""

import re
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union

import yaml

from ..commands import CommandExecutor
from ..constants import DEFAULT_MAX_OUTPUT_CHARS
from ..network import HttpClient, HttpRequestError
from ..state.action_log import ActionLogStore
from ..utils.helpers import get_local_timestamp, timestamp_to_compact, truncate_text
from ..utils.logging import logger
from .models import ActionLog, Proposal, ProposalType
from .sandbox import PathOutsideRootError, SandboxedExecutor

# Interpreters for execute-code artifacts, keyed by file suffix
ARTIFACT_INTERPRETERS = {
    ".py": [sys.executable],
    ".sh": ["bash"],
    ".js": ["node"],
}


class ProposalStore:
    """One YAML file per proposal under ``proposals_dir``, keyed by proposal id."""

    def __init__(self, proposals_dir: Path):
        self.proposals_dir = proposals_dir

    def path_for(self, proposal_id: str) -> Path:
        safe_id = re.sub(r'[^A-Za-z0-9_-]', '_', proposal_id) or "unnamed"
        return self.proposals_dir / f"{safe_id}.yaml"

    def save(self, proposal: Proposal) -> Path:
        """Write a proposal record.

        Raises:
            OSError: if the record cannot be written
        """
        self.proposals_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(proposal.id)
        with open(path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(proposal.to_dict(), f, allow_unicode=True, sort_keys=False)
        return path

    def record_path(self, proposal: Union[Proposal, str]) -> Path:
        """The file backing a proposal: where it was loaded from, else where its id maps."""
        if isinstance(proposal, Proposal):
            return proposal.source_path or self.path_for(proposal.id)
        return self.path_for(proposal)

    def exists(self, proposal: Union[Proposal, str]) -> bool:
        return self.record_path(proposal).is_file()

    def load_all(self) -> List[Proposal]:
        """Load every readable record; unreadable ones are skipped with a warning."""
        if not self.proposals_dir.is_dir():
            return []

        proposals = []
        for path in sorted(self.proposals_dir.glob("*.yaml")):
            try:
                data = yaml.safe_load(path.read_text(encoding='utf-8'))
            except FileNotFoundError:
                continue
            except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
                logger.warning(f"Skipping unreadable proposal {path.name}: {e}")
                continue
            if not isinstance(data, dict):
                logger.warning(f"Skipping malformed proposal {path.name}: not a mapping")
                continue

            proposal = Proposal.from_dict(data)
            if not proposal.id:
                proposal.id = path.stem
            proposal.source_path = path
            proposals.append(proposal)
        return proposals

    def delete(self, proposal: Union[Proposal, str]) -> bool:
        """Delete a record; a record that is already gone is tolerated."""
        path = self.record_path(proposal)
        proposal_id = proposal.id if isinstance(proposal, Proposal) else proposal
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning(f"Proposal {proposal_id} was already removed")
            return False
        except OSError as e:
            logger.error(f"Could not delete proposal {proposal_id}: {e}")
            return False
        return True


class ProposalDispatcher:
    """Routes an approved proposal to the handler for its type."""

    UNAVAILABLE_TYPES = [
        ProposalType.START_SERVER,
        ProposalType.INSTALL_PACKAGE,
        ProposalType.MODIFY_SELF,
        ProposalType.ALLOW_SHELL_COMMAND,
    ]

    def __init__(self,
                 sandbox: SandboxedExecutor,
                 command_executor: CommandExecutor,
                 http_client: Optional[HttpClient] = None,
                 max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS):
        self.sandbox = sandbox
        self.command_executor = command_executor
        self.http_client = http_client
        self.max_output_chars = max_output_chars

        self.handlers: Dict[ProposalType, Callable[[Proposal], List[str]]] = {
            ProposalType.EXECUTE_CODE: self._execute_code,
            ProposalType.HTTP_REQUEST: self._http_request,
            ProposalType.OTHER: self._other,
        }
        for proposal_type in self.UNAVAILABLE_TYPES:
            self.handlers[proposal_type] = self._unavailable

    def dispatch(self, proposal: Proposal) -> List[str]:
        """Run the handler for a proposal's type. Handlers may raise."""
        proposal_type = proposal.proposal_type
        if proposal_type is None:
            return [f"Proposal type '{proposal.type}' is unknown; nothing was executed"]
        return self.handlers[proposal_type](proposal)

    def _unavailable(self, proposal: Proposal) -> List[str]:
        return [f"Proposal type '{proposal.type}' is not available; no action was taken for '{proposal.title}'"]

    def _other(self, proposal: Proposal) -> List[str]:
        return [
            f"Approved proposal acknowledged: {proposal.title}",
            f"Details: {proposal.details}",
        ]

    def _execute_code(self, proposal: Proposal) -> List[str]:
        if not proposal.target_file:
            return ["execute-code proposal has no targetFile; nothing was executed"]

        # Re-checked at dispatch time: the artifact may have changed since validation
        try:
            path = self.sandbox.resolve_target(proposal.target_file)
        except PathOutsideRootError:
            return [f"Blocked: '{proposal.target_file}' is outside the confined root"]
        if not path.is_file():
            return [f"Artifact '{proposal.target_file}' does not exist; nothing was executed"]

        interpreter = ARTIFACT_INTERPRETERS.get(path.suffix.lower())
        if interpreter is None:
            supported = ", ".join(sorted(ARTIFACT_INTERPRETERS))
            return [f"Unsupported artifact type '{path.suffix or '(none)'}'; supported: {supported}"]

        result = self.command_executor.execute(interpreter + [str(path)])
        lines = [f"Executed {self.sandbox.display_path(path)}", f"Exit code: {result.exit_code}"]
        if result.error_message:
            lines.append(f"Error: {result.error_message}")
        if result.output:
            lines.append(f"Output: {truncate_text(result.output, self.max_output_chars)}")
        return lines

    def _http_request(self, proposal: Proposal) -> List[str]:
        if self.http_client is None:
            return ["HTTP requests are not configured; nothing was sent"]
        if not proposal.url:
            return ["http-request proposal has no url; nothing was sent"]

        method = (proposal.method or "GET").upper()
        try:
            response = self.http_client.request(method, proposal.url, proposal.data)
        except HttpRequestError as e:
            return [f"HTTP {method} {proposal.url} failed: {e}"]

        lines = [f"HTTP {method} {response.url}: {response.status} {response.reason}".rstrip()]
        body_file = self.sandbox.root / "fetched" / f"http-{timestamp_to_compact(get_local_timestamp())}.txt"
        try:
            body_file.parent.mkdir(parents=True, exist_ok=True)
            body_file.write_text(response.body, encoding='utf-8')
            lines.append(f"Saved response body to {self.sandbox.display_path(body_file)}")
        except (OSError, UnicodeError) as e:
            lines.append(f"Could not save response body: {e}")
        return lines


class ProposalManager:
    """Scans for approved proposals and finalizes each one exactly once."""

    def __init__(self, store: ProposalStore, dispatcher: ProposalDispatcher, log_store: ActionLogStore):
        self.store = store
        self.dispatcher = dispatcher
        self.log_store = log_store

    def scan(self) -> List[Proposal]:
        """Return the approved proposals. Reads only; never modifies the store."""
        approved = [proposal for proposal in self.store.load_all() if proposal.approved]
        if approved:
            logger.proposal(f"Found {len(approved)} approved proposal(s): {', '.join(p.id for p in approved)}")
        return approved

    def pending(self) -> List[Proposal]:
        """Proposals still waiting for approval."""
        return [proposal for proposal in self.store.load_all() if not proposal.approved]

    def process_approved(self, approved: List[Proposal]) -> List[ActionLog]:
        """Dispatch, log and delete each approved proposal."""
        return [self._finalize(proposal) for proposal in approved]

    def _finalize(self, proposal: Proposal) -> ActionLog:
        if not self.store.exists(proposal):
            logger.warning(f"Approved proposal {proposal.id} disappeared before dispatch")
            lines = [f"Proposal record {proposal.id} was removed before dispatch; nothing was executed"]
        else:
            logger.proposal(f"Dispatching approved proposal {proposal.id} ({proposal.type})")
            try:
                lines = self.dispatcher.dispatch(proposal)
            except Exception as e:
                logger.error(f"Proposal handler for {proposal.id} failed: {e}")
                lines = [f"Proposal handler failed: {type(e).__name__}: {e}"]

        entry = ActionLog(
            intent=f"Execute approved proposal: {proposal.title or proposal.id}",
            action=f"Execute approved {proposal.type} proposal {proposal.id}",
            result=lines or ["Proposal handler returned no result"],
            next=[],
            proposal=proposal.to_dict(),
            plan_type="proposal-execution",
        )
        self.log_store.write(entry)
        self.store.delete(proposal)
        logger.proposal(f"Proposal {proposal.id} finalized and removed")
        return entry
