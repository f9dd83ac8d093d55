"""Core plan engine for sandagent: models, validation and sandboxed execution.

The loop itself lives in ``sandagent.core.agent`` and ``sandagent.core.application``;
they are not imported here because they depend on ``sandagent.state``, which in turn
imports ``sandagent.core.models``.
"""

from .models import ActionLog, AgentState, ContinuityState, Plan, Proposal, ProposalType
from .sandbox import ExecutionReport, PathOutsideRootError, SandboxedExecutor
from .validator import PlanValidator, create_plan_validator

__all__ = [
    "ActionLog",
    "AgentState",
    "ContinuityState",
    "Plan",
    "Proposal",
    "ProposalType",
    "ExecutionReport",
    "PathOutsideRootError",
    "SandboxedExecutor",
    "PlanValidator",
    "create_plan_validator",
]
