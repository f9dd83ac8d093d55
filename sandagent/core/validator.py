"""Capability policy checks for candidate plans."""

from typing import Any, Dict, Iterable, List

from ..commands import CommandPermissionManager, CommandSafetyChecker
from ..constants import PLAN_TYPES, RETIRED_PLAN_TYPES, HTTP_METHODS, DEFAULT_MIN_PROPOSAL_DETAILS_LENGTH
from .models import ActionLog, Plan, ProposalType
from .sandbox import PathOutsideRootError, SandboxedExecutor


class PlanValidator:
    """Collects every policy violation in a plan; rules never short-circuit each other."""

    def __init__(self,
                 sandbox: SandboxedExecutor,
                 permission_manager: CommandPermissionManager,
                 safety_checker: CommandSafetyChecker,
                 min_details_length: int = DEFAULT_MIN_PROPOSAL_DETAILS_LENGTH):
        self.sandbox = sandbox
        self.permission_manager = permission_manager
        self.safety_checker = safety_checker
        self.min_details_length = min_details_length

    def validate(self, plan: Plan, recent_logs: Iterable[ActionLog] = ()) -> List[str]:
        """Check a plan against the capability policy.

        Args:
            plan: Candidate plan
            recent_logs: Recent ActionLogs, used for the read-before-overwrite rule

        Returns:
            List of violations; empty when the plan may execute
        """
        violations = []
        violations.extend(self._check_type(plan))

        if not isinstance(plan.action, str) or not plan.action.strip():
            violations.append("action must be a non-empty text description")

        if plan.type == "shell":
            violations.extend(self._check_shell(plan))
        elif plan.type == "proposal":
            if plan.proposal is None:
                violations.append("proposal plan must include a 'proposal' object")
            else:
                violations.extend(self.validate_proposal(plan.proposal))
        elif plan.type == "file-write":
            violations.extend(self._check_file_write(plan, list(recent_logs)))

        return violations

    def _check_type(self, plan: Plan) -> List[str]:
        if plan.type in PLAN_TYPES:
            return []
        if plan.type in RETIRED_PLAN_TYPES:
            return [f"type '{plan.raw_type}' is retired: {RETIRED_PLAN_TYPES[plan.type]}"]
        if not plan.type:
            return [f"type is required; use one of {', '.join(PLAN_TYPES)}"]
        return [f"type '{plan.raw_type}' is not allowed; use one of {', '.join(PLAN_TYPES)}"]

    def _check_shell(self, plan: Plan) -> List[str]:
        command = plan.shell_command
        if not command:
            return ["shell plan has no command"]

        violations = []
        allowed, reason = self.permission_manager.check_command_permission(command)
        if not allowed:
            violations.append(f"{reason}; allowed: {', '.join(sorted(self.permission_manager.allowed_commands))}")
        violations.extend(self.safety_checker.check_command_safety(command))
        return violations

    def _check_file_write(self, plan: Plan, recent_logs: List[ActionLog]) -> List[str]:
        if not plan.target:
            return ["file-write plan requires a target path"]

        try:
            path = self.sandbox.resolve_target(plan.target)
        except PathOutsideRootError:
            return [f"write target '{plan.target}' is outside the confined root {self.sandbox.display_path(self.sandbox.root)}"]
        except (OSError, RuntimeError) as e:
            return [f"write target '{plan.target}' could not be resolved: {e}"]

        if self.sandbox.is_protected(path):
            return [f"write target '{plan.target}' is a protected file"]
        if path.is_dir():
            return [f"write target '{plan.target}' is a directory"]

        if path.exists():
            shown = self.sandbox.display_path(path)
            if not any(shown in log.reads for log in recent_logs):
                return [f"target '{shown}' already exists; read it first (e.g. 'cat {shown}') before writing to it"]
        return []

    def validate_proposal(self, payload: Dict[str, Any]) -> List[str]:
        """Check an embedded proposal payload."""
        violations = []

        raw_type = payload.get("type")
        proposal_type = ProposalType.from_value(raw_type)
        if not raw_type:
            violations.append("proposal.type is required")
        elif proposal_type is None:
            choices = ", ".join(member.value for member in ProposalType)
            violations.append(f"proposal.type '{raw_type}' is not one of: {choices}")

        texts = {}
        for key in ("title", "reasoning", "details"):
            value = payload.get(key)
            if not isinstance(value, str) or not value.strip():
                violations.append(f"proposal.{key} must be a non-empty string")
                texts[key] = ""
            else:
                texts[key] = value.strip()

        if texts["title"] and texts["title"].lower() == texts["reasoning"].lower():
            violations.append("proposal.title must differ from proposal.reasoning")
        if texts["details"]:
            if texts["details"].lower() == texts["reasoning"].lower():
                violations.append("proposal.details must differ from proposal.reasoning")
            if len(texts["details"]) < self.min_details_length:
                violations.append(
                    f"proposal.details must be at least {self.min_details_length} characters of concrete detail"
                )

        for key in ("risks", "benefits"):
            value = payload.get(key)
            if not isinstance(value, list) or not any(str(item).strip() for item in value if item is not None):
                violations.append(f"proposal.{key} must be a non-empty list")

        if proposal_type is ProposalType.EXECUTE_CODE:
            violations.extend(self._check_artifact(payload.get("targetFile") or payload.get("target_file")))
        elif proposal_type is ProposalType.HTTP_REQUEST:
            url = payload.get("url")
            if not isinstance(url, str) or not url.startswith(("http://", "https://")):
                violations.append("proposal.url must be an http(s) URL")
            method = payload.get("method")
            if not isinstance(method, str) or method.upper() not in HTTP_METHODS:
                violations.append(f"proposal.method must be one of {', '.join(HTTP_METHODS)}")
        elif proposal_type is ProposalType.ALLOW_SHELL_COMMAND:
            if not isinstance(payload.get("command"), str) or not payload.get("command").strip():
                violations.append("proposal.command is required for allow-shell-command")

        return violations

    def _check_artifact(self, target: Any) -> List[str]:
        if not isinstance(target, str) or not target.strip():
            return ["proposal.targetFile is required for execute-code"]
        try:
            path = self.sandbox.resolve_target(target)
        except PathOutsideRootError:
            return [f"proposal.targetFile '{target}' is outside the confined root"]
        except (OSError, RuntimeError) as e:
            return [f"proposal.targetFile '{target}' could not be resolved: {e}"]
        if not path.is_file():
            return [f"proposal.targetFile '{target}' does not exist; write it first"]
        return []


def create_plan_validator(sandbox: SandboxedExecutor,
                          permission_manager: CommandPermissionManager,
                          safety_checker: CommandSafetyChecker,
                          min_details_length: int = DEFAULT_MIN_PROPOSAL_DETAILS_LENGTH) -> PlanValidator:
    """Create a plan validator."""
    return PlanValidator(sandbox, permission_manager, safety_checker, min_details_length)
