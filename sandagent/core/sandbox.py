"""Sandboxed execution of validated plans.

Every effect is confined: shell plans only run allow-listed commands without shell
operators, file writes only land inside the confined root, and proposal plans only
persist a record. Policy violations and filesystem errors come back as result lines;
``execute`` never raises for them.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..commands import CommandExecutor, CommandPermissionManager, CommandSafetyChecker, split_command
from ..constants import READ_COMMANDS, FETCH_COMMANDS, DEFAULT_MAX_OUTPUT_CHARS
from ..utils.helpers import get_local_timestamp, timestamp_to_compact, truncate_text
from ..utils.logging import logger
from .models import Plan, Proposal, make_proposal_id


class PathOutsideRootError(ValueError):
    """Raised when a path resolves outside the confined root."""


@dataclass
class ExecutionReport:
    """Everything one executed plan produced."""
    lines: List[str] = field(default_factory=list)
    proposal: Optional[Proposal] = None
    reads: List[str] = field(default_factory=list)


class SandboxedExecutor:
    """Executes validated plans inside the workspace."""

    def __init__(self,
                 workspace: Path,
                 root: Path,
                 permission_manager: CommandPermissionManager,
                 safety_checker: CommandSafetyChecker,
                 command_executor: CommandExecutor,
                 proposal_store=None,
                 protected_paths: Iterable[Path] = (),
                 max_output_chars: int = DEFAULT_MAX_OUTPUT_CHARS):
        """Initialize the executor.

        Args:
            workspace: Directory relative targets and commands are resolved against
            root: The confined root; the only place writes may land
            permission_manager: Shell allow-list
            safety_checker: Shell operator checks
            command_executor: Subprocess runner
            proposal_store: Store that persists proposals created by proposal plans
            protected_paths: Files inside the root that plans may never write
            max_output_chars: Limit for captured command output in result lines
        """
        self.workspace = workspace.resolve()
        self.root = root.resolve()
        self.permission_manager = permission_manager
        self.safety_checker = safety_checker
        self.command_executor = command_executor
        self.proposal_store = proposal_store
        self.protected_paths = [path.resolve() for path in protected_paths]
        self.max_output_chars = max_output_chars

    # ------------------------------------------------------------------
    # Path handling
    # ------------------------------------------------------------------

    def resolve_path(self, target: str) -> Path:
        """Resolve a target to an absolute, symlink-normalized path (no confinement check)."""
        candidate = Path(target).expanduser()
        if not candidate.is_absolute():
            candidate = self.workspace / candidate
        return candidate.resolve()

    def resolve_target(self, target: str) -> Path:
        """Resolve a write target and require it to lie inside the confined root.

        Raises:
            PathOutsideRootError: if the resolved path is outside the root
        """
        resolved = self.resolve_path(target)
        if resolved != self.root and self.root not in resolved.parents:
            raise PathOutsideRootError(f"'{target}' resolves to {resolved}, outside {self.root}")
        return resolved

    def is_inside_root(self, target: str) -> bool:
        try:
            self.resolve_target(target)
        except (PathOutsideRootError, OSError, RuntimeError):
            return False
        return True

    def is_protected(self, path: Path) -> bool:
        return path in self.protected_paths

    def display_path(self, path: Path) -> str:
        """Path relative to the workspace when possible, absolute otherwise."""
        try:
            return path.relative_to(self.workspace).as_posix()
        except ValueError:
            return path.as_posix()

    def read_targets(self, command: str) -> List[str]:
        """Files a read command touches, as workspace-relative display paths."""
        parts = split_command(command)
        if not parts or parts[0] not in READ_COMMANDS:
            return []

        reads = []
        for arg in parts[1:]:
            if arg.startswith('-'):
                continue
            try:
                path = self.resolve_path(arg)
            except (OSError, RuntimeError):
                continue
            if path.is_file():
                reads.append(self.display_path(path))
        return reads

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, plan: Plan) -> List[str]:
        """Execute a plan and return human-readable result lines."""
        return self.run(plan).lines

    def run(self, plan: Plan) -> ExecutionReport:
        """Execute a plan and return the full report."""
        if plan.type == "shell":
            return self._run_shell(plan)
        if plan.type == "file-write":
            return ExecutionReport(lines=self._write_file(plan))
        if plan.type == "proposal":
            return self._save_proposal(plan)
        if plan.type == "observe":
            return ExecutionReport(lines=self._observe())
        return ExecutionReport(lines=[f"Blocked: plan type '{plan.raw_type}' is not executable"])

    def _run_shell(self, plan: Plan) -> ExecutionReport:
        command = plan.shell_command
        if not command:
            return ExecutionReport(lines=["Blocked: shell plan has no command"])

        allowed, reason = self.permission_manager.check_command_permission(command)
        violations = self.safety_checker.check_command_safety(command)
        if not allowed or violations:
            lines = [] if allowed else [f"Blocked: {reason}"]
            lines.extend(f"Blocked: {violation}" for violation in violations)
            logger.warning(f"Shell plan blocked: {command}")
            return ExecutionReport(lines=lines)

        result = self.command_executor.execute(command)
        lines = [f"Command: {command}", f"Exit code: {result.exit_code}"]
        if result.error_message:
            lines.append(f"Error: {result.error_message}")
        if result.stdout.strip():
            lines.append(f"Output: {truncate_text(result.stdout.strip(), self.max_output_chars)}")
        if result.stderr.strip():
            lines.append(f"Stderr: {truncate_text(result.stderr.strip(), self.max_output_chars)}")
        if not result.output and not result.error_message:
            lines.append("Output: (no output)")

        base = self.permission_manager.extract_command_name(command)
        if base in FETCH_COMMANDS and result.success and result.stdout:
            lines.append(self._save_fetched_body(result.stdout))

        return ExecutionReport(lines=lines, reads=self.read_targets(command) if result.success else [])

    def _save_fetched_body(self, body: str) -> str:
        stamp = timestamp_to_compact(get_local_timestamp())
        file_path = self.root / "fetched" / f"fetch-{stamp}.txt"
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(body, encoding='utf-8')
        except (OSError, UnicodeError) as e:
            return f"Could not save response body: {e}"
        return f"Saved response body to {self.display_path(file_path)}"

    def _write_file(self, plan: Plan) -> List[str]:
        if not plan.target:
            return ["Blocked: file-write plan has no target"]

        try:
            path = self.resolve_target(plan.target)
        except PathOutsideRootError:
            logger.warning(f"Write outside confined root blocked: {plan.target}")
            return [f"Blocked: write target '{plan.target}' is outside the confined root {self.display_path(self.root)}"]
        except (OSError, RuntimeError) as e:
            return [f"Blocked: write target '{plan.target}' could not be resolved: {e}"]

        if self.is_protected(path):
            return [f"Blocked: '{plan.target}' is a protected file"]

        content = plan.content or ""
        mode, label = ('a', "append") if plan.append_mode else ('w', "overwrite")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, mode, encoding='utf-8') as f:
                f.write(content)
        except (OSError, UnicodeError) as e:
            logger.warning(f"File write failed for {path}: {e}")
            return [f"File write ({label}) failed for {self.display_path(path)}: {e}"]

        logger.agent(f"File write ({label}): {self.display_path(path)}")
        return [f"File write ({label}): {self.display_path(path)} ({len(content)} chars)"]

    def _save_proposal(self, plan: Plan) -> ExecutionReport:
        if self.proposal_store is None:
            return ExecutionReport(lines=["Blocked: no proposal store configured"])

        proposal = Proposal.from_dict(plan.proposal or {})
        proposal.timestamp = get_local_timestamp()
        proposal.id = make_proposal_id(proposal.timestamp, proposal.type)
        proposal.approved = False

        try:
            path = self.proposal_store.save(proposal)
        except (OSError, UnicodeError) as e:
            return ExecutionReport(lines=[f"Could not save proposal: {e}"], proposal=proposal)

        logger.proposal(f"Proposal created: {proposal.id} ({proposal.title})")
        return ExecutionReport(
            lines=[f"Proposal saved: {proposal.id} ({proposal.type}) awaiting approval in {path.name}"],
            proposal=proposal,
        )

    def _observe(self) -> List[str]:
        try:
            entries = sorted(p.name + ("/" if p.is_dir() else "") for p in self.root.iterdir())
        except FileNotFoundError:
            entries = []
        except OSError as e:
            return ["Observation complete.", f"Could not list {self.display_path(self.root)}: {e}"]

        listing = ", ".join(entries[:50]) if entries else "(empty)"
        if len(entries) > 50:
            listing += f", ... ({len(entries) - 50} more)"
        return ["Observation complete.", f"Files in {self.display_path(self.root)}: {listing}"]

    def list_root_files(self, limit: int = 50) -> Tuple[List[str], int]:
        """Names of files under the root (relative), capped at ``limit``, plus the total count."""
        if not self.root.is_dir():
            return [], 0
        names = []
        try:
            for path in sorted(self.root.rglob("*")):
                if path.is_file():
                    names.append(path.relative_to(self.root).as_posix())
        except OSError as e:
            logger.warning(f"Could not list {self.root}: {e}")
        return names[:limit], len(names)
