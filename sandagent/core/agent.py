"""The autonomous plan loop: one iteration at a time, one ActionLog per iteration."""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..commands import create_command_executor, create_permission_manager, create_safety_checker
from ..constants import (
    DEFAULT_GOAL, DEFAULT_RECENT_LOG_WINDOW, DEFAULT_BOREDOM_THRESHOLD, DEFAULT_MAX_OUTPUT_CHARS,
    DEFAULT_COMMAND_TIMEOUT, DEFAULT_HISTORY_LIMIT, DEFAULT_MIN_PROPOSAL_DETAILS_LENGTH
)
from ..llm import LLMClient, PayloadBuilder, create_llm_client, create_payload_builder, parse_plan
from ..network import create_http_client
from ..state import ActionLogStore, ContinuityStore
from ..utils.logging import logger
from ..utils.helpers import truncate_text
from . import boredom
from .models import ActionLog, AgentState, ContinuityState, Plan
from .proposals import ProposalDispatcher, ProposalManager, ProposalStore
from .sandbox import SandboxedExecutor
from .validator import PlanValidator, create_plan_validator

DEFAULT_NEXT = ["decide next iteration"]


class Agent:
    """Runs plan iterations: scan proposals, ask the model, validate, execute, persist."""

    def __init__(self,
                 config: Dict[str, Any],
                 llm: LLMClient,
                 payload_builder: PayloadBuilder,
                 validator: PlanValidator,
                 sandbox: SandboxedExecutor,
                 proposal_manager: ProposalManager,
                 log_store: ActionLogStore,
                 continuity_store: ContinuityStore):
        """Initialize the agent.

        Args:
            config: Application configuration
            llm: Model client exposing ``generate(prompt, system_prompt)``
            payload_builder: Prompt renderer
            validator: Capability policy checks
            sandbox: Executor for validated plans
            proposal_manager: Approved-proposal scanner and dispatcher
            log_store: ActionLog persistence
            continuity_store: ContinuityState persistence
        """
        self.config = config
        self.llm = llm
        self.payload_builder = payload_builder
        self.validator = validator
        self.sandbox = sandbox
        self.proposal_manager = proposal_manager
        self.log_store = log_store
        self.continuity_store = continuity_store

        self.guided = config.get("operation_mode") == "guided"
        self.recent_log_window = config.get("recent_log_window", DEFAULT_RECENT_LOG_WINDOW)
        self.boredom_threshold = config.get("boredom_threshold", DEFAULT_BOREDOM_THRESHOLD)

    def run_iteration(self, state: AgentState) -> ActionLog:
        """Run one iteration; always returns the ActionLog that was written for it."""
        state.iteration += 1
        logger.system(f"--- Iteration {state.iteration} (boredom {state.boredom}) ---")
        try:
            return self._iterate(state)
        except Exception as e:
            logger.error(f"Iteration {state.iteration} failed: {type(e).__name__}: {e}")
            entry = ActionLog(
                intent="Iteration aborted by an unexpected error",
                action="iteration-error",
                result=[f"Unexpected error: {type(e).__name__}: {e}"],
                next=["retry in the next iteration"],
            )
            self.log_store.write(entry)
            boredom.record_failure(state)
            return entry

    def _iterate(self, state: AgentState) -> ActionLog:
        approved = self.proposal_manager.scan()
        if approved:
            return self._run_approved(state, approved)

        recent = self.log_store.recent(self.recent_log_window)
        penalty = boredom.apply_repetition(state, recent)
        if penalty:
            logger.state(f"Repetition detected; boredom +{penalty} -> {state.boredom}")

        continuity = self.continuity_store.load()
        if not continuity.goal:
            continuity.goal = self.config.get("goal") or DEFAULT_GOAL

        system_prompt = self.payload_builder.render_prompt("system") or ""
        prompt = self._build_prompt(state, recent, continuity)

        raw = self.llm.generate(prompt, system_prompt)
        plan, error = parse_plan(raw)
        if plan is None and self.guided:
            logger.agent(f"Plan could not be parsed ({error}); requesting repair")
            raw, plan, error = self._repair("repair", system_prompt, raw_response=raw, error=error)
        if plan is None:
            return self._record_failure(state, continuity, "parse", [f"Parse failed: {error}"], raw)

        violations = self.validator.validate(plan, recent)
        if violations:
            logger.agent(f"Plan rejected with {len(violations)} violation(s); requesting repair")
            feedback = "\n".join(f"- {violation}" for violation in violations)
            raw, repaired, error = self._repair("validation_repair", system_prompt,
                                                raw_response=raw, violations=feedback)
            if repaired is None:
                lines = [f"Violation: {violation}" for violation in violations]
                lines.append(f"Repair failed: {error}")
                return self._record_failure(state, continuity, "validation", lines, raw, plan)
            plan = repaired
            violations = self.validator.validate(plan, recent)
            if violations:
                lines = [f"Violation: {violation}" for violation in violations]
                return self._record_failure(state, continuity, "validation", lines, raw, plan)

        return self._execute(state, continuity, plan, raw)

    def _repair(self, prompt_name: str, system_prompt: str, **context: Any) -> Tuple[str, Optional[Plan], str]:
        """Exactly one extra model round-trip. Returns (raw, plan, error)."""
        prompt = self.payload_builder.render_prompt(prompt_name, **context)
        if prompt is None:
            return context.get("raw_response", ""), None, f"{prompt_name} prompt is not configured"
        raw = self.llm.generate(prompt, system_prompt)
        plan, error = parse_plan(raw)
        return raw, plan, error

    def _execute(self, state: AgentState, continuity: ContinuityState, plan: Plan, raw: str) -> ActionLog:
        logger.agent(f"Executing {plan.type} plan: {plan.action_text}")
        report = self.sandbox.run(plan)
        for line in report.lines:
            logger.command(line)

        entry = ActionLog(
            intent=plan.intent,
            action=plan.action_text,
            result=report.lines,
            next=plan.next or list(DEFAULT_NEXT),
            proposal=report.proposal.to_dict() if report.proposal else None,
            response_raw=raw,
            plan_type=plan.type,
            target=self._display_target(plan),
            reads=report.reads,
        )
        if self.log_store.write(entry) is not None:
            boredom.reset(state)
            state.last_action_timestamp = entry.timestamp

        if plan.continuity:
            self.continuity_store.merge(continuity, plan.continuity)
        self.continuity_store.record_history(
            continuity, f"{entry.timestamp} [{plan.type}] {entry.action}: {self._summarize(report.lines)}"
        )
        self.continuity_store.save(continuity)
        return entry

    def _run_approved(self, state: AgentState, approved) -> ActionLog:
        logger.proposal("Approved proposals pending; skipping plan generation this iteration")
        entries = self.proposal_manager.process_approved(approved)

        continuity = self.continuity_store.load()
        for entry in entries:
            self.continuity_store.record_history(
                continuity, f"{entry.timestamp} [proposal-execution] {entry.action}: {self._summarize(entry.result)}"
            )
        self.continuity_store.save(continuity)

        boredom.reset(state)
        state.last_action_timestamp = entries[-1].timestamp
        return entries[-1]

    def _record_failure(self, state: AgentState, continuity: ContinuityState, stage: str,
                        lines: List[str], raw: str, plan: Optional[Plan] = None) -> ActionLog:
        logger.warning(f"Iteration {state.iteration} ended with a {stage} failure")
        entry = ActionLog(
            intent=plan.intent if plan and plan.intent else f"Plan {stage} failed",
            action=plan.action_text if plan and plan.action_text else f"{stage}-failure",
            result=lines,
            next=["emit a valid plan next iteration"],
            response_raw=raw,
        )
        self.log_store.write(entry)
        boredom.record_failure(state)

        self.continuity_store.record_history(continuity, f"{entry.timestamp} [{stage}-failure] {lines[0]}")
        self.continuity_store.save(continuity)
        return entry

    def write_terminal_log(self, reason: str) -> ActionLog:
        """Write the final entry when the process is asked to stop."""
        entry = ActionLog(
            intent=f"Stop requested ({reason})",
            action="STOP",
            result=["process terminated by signal"],
            next=[],
        )
        self.log_store.write(entry)
        logger.system(f"Terminal action log written ({reason})")
        return entry

    def _build_prompt(self, state: AgentState, recent: List[ActionLog], continuity: ContinuityState) -> str:
        files, total = self.sandbox.list_root_files()
        if files:
            listing = "\n".join(f"- {name}" for name in files)
            if total > len(files):
                listing += f"\n- ... ({total - len(files)} more)"
        else:
            listing = "(no files yet)"

        if recent:
            last = recent[0].to_dict()
            last.pop("responseRaw", None)
            last_action = yaml.safe_dump(last, allow_unicode=True, sort_keys=False).strip()
        else:
            last_action = "(no previous action)"

        pending = self.proposal_manager.pending()
        pending_text = "\n".join(f"- {p.id}: {p.title} ({p.type})" for p in pending) or "(none)"

        prompt = self.payload_builder.render_prompt(
            "loop",
            goal=continuity.goal,
            files=listing,
            file_count=total,
            boredom=state.boredom,
            boredom_threshold=self.boredom_threshold,
            last_action=last_action,
            continuity=yaml.safe_dump(continuity.to_dict(), allow_unicode=True, sort_keys=False).strip(),
            pending_proposals=pending_text,
            outputs_dir=self.sandbox.display_path(self.sandbox.root),
            min_details_length=self.validator.min_details_length,
        )
        if prompt is None:
            raise ValueError("loop_prompt is not configured")
        logger.debug(f"Loop prompt:\n{prompt}")
        return prompt

    def _display_target(self, plan: Plan) -> Optional[str]:
        if plan.type != "file-write" or not plan.target:
            return None
        try:
            return self.sandbox.display_path(self.sandbox.resolve_path(plan.target))
        except (OSError, RuntimeError):
            return plan.target

    def _summarize(self, lines: List[str]) -> str:
        return truncate_text(" | ".join(lines), 200) if lines else "(no result)"


def create_agent(config: Dict[str, Any], paths, payload_file: Path, response_path_file: Path,
                 allowed_commands: Dict[str, str]) -> Agent:
    """Wire an Agent and all of its collaborators from configuration.

    Args:
        config: Application configuration
        paths: Resolved WorkspacePaths
        payload_file: Model request template
        response_path_file: Response path template
        allowed_commands: Shell allow-list (command -> description)

    Returns:
        Configured Agent instance
    """
    max_output = config.get("max_output_chars", DEFAULT_MAX_OUTPUT_CHARS)

    permission_manager = create_permission_manager(allowed_commands)
    safety_checker = create_safety_checker()
    command_executor = create_command_executor(config.get("command_timeout", DEFAULT_COMMAND_TIMEOUT),
                                               cwd=paths.workspace)

    log_store = ActionLogStore(paths.logs_dir)
    proposal_store = ProposalStore(paths.proposals_dir)
    continuity_store = ContinuityStore(
        paths.continuity_file,
        history_limit=config.get("history_limit", DEFAULT_HISTORY_LIMIT),
        blocked_topics=config.get("blocked_topics") or [],
    )

    sandbox = SandboxedExecutor(
        workspace=paths.workspace,
        root=paths.outputs_dir,
        permission_manager=permission_manager,
        safety_checker=safety_checker,
        command_executor=command_executor,
        proposal_store=proposal_store,
        protected_paths=[paths.continuity_file],
        max_output_chars=max_output,
    )
    validator = create_plan_validator(
        sandbox, permission_manager, safety_checker,
        config.get("min_proposal_details_length", DEFAULT_MIN_PROPOSAL_DETAILS_LENGTH),
    )

    dispatcher = ProposalDispatcher(sandbox, command_executor, create_http_client(config), max_output)
    proposal_manager = ProposalManager(proposal_store, dispatcher, log_store)

    payload_builder = create_payload_builder(config, payload_file)
    payload_builder.set_allowed_commands(allowed_commands)
    llm = create_llm_client(config, payload_builder, response_path_file)

    paths.outputs_dir.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Agent wired: workspace={paths.workspace} root={paths.outputs_dir}")
    return Agent(config, llm, payload_builder, validator, sandbox, proposal_manager, log_store, continuity_store)
