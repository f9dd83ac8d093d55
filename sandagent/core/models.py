"""Data types shared by the agent loop, validator, executor and state stores."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..utils.helpers import timestamp_to_compact


class ProposalType(Enum):
    """Closed set of privileged actions a proposal can request."""
    EXECUTE_CODE = "execute-code"
    START_SERVER = "start-server"
    INSTALL_PACKAGE = "install-package"
    MODIFY_SELF = "modify-self"
    ALLOW_SHELL_COMMAND = "allow-shell-command"
    HTTP_REQUEST = "http-request"
    OTHER = "other"

    @classmethod
    def from_value(cls, value: Any) -> Optional["ProposalType"]:
        """Look up a proposal type by its wire value, tolerating case and underscores."""
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower().replace("_", "-")
        for member in cls:
            if member.value == normalized:
                return member
        return None


def normalize_plan_type(value: Any) -> str:
    """Normalize a plan type ('FILE_WRITE' -> 'file-write'); non-strings become ''."""
    if not isinstance(value, str):
        return ""
    return value.strip().lower().replace("_", "-")


def _as_text_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if item is not None and str(item).strip()]
    text = str(value).strip()
    return [text] if text else []


def _first_text(value: Any) -> Any:
    """Lists of actions collapse to their first text element; anything else is left alone."""
    if isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, str) and item.strip():
                return item
        return None
    return value


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


def make_proposal_id(timestamp: str, proposal_type: str) -> str:
    """Derive the durable proposal key from its creation timestamp and type."""
    kind = normalize_plan_type(proposal_type) or "unknown"
    return f"{timestamp_to_compact(timestamp)}-{kind}"


@dataclass
class Plan:
    """One iteration's instruction as decoded from the model."""
    type: str = ""
    action: Any = None
    intent: str = ""
    target: Optional[str] = None
    content: Optional[str] = None
    append_mode: bool = False
    command: Optional[str] = None
    proposal: Optional[Dict[str, Any]] = None
    continuity: Optional[Dict[str, Any]] = None
    next: List[str] = field(default_factory=list)
    raw_type: Any = None

    @property
    def shell_command(self) -> str:
        """The command a shell plan runs: the explicit command field, else the action text."""
        if isinstance(self.command, str) and self.command.strip():
            return self.command.strip()
        if isinstance(self.action, str):
            return self.action.strip()
        return ""

    @property
    def action_text(self) -> str:
        if isinstance(self.action, str):
            return self.action.strip()
        return "" if self.action is None else str(self.action)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Plan":
        """Build a plan from a decoded model object, accepting both camelCase and snake_case."""
        proposal = data.get("proposal")
        continuity = data.get("continuity") or data.get("state")
        content = data.get("content")
        target = data.get("target")
        command = data.get("command")
        append_mode = data.get("appendMode", data.get("append_mode", data.get("append", False)))

        return cls(
            type=normalize_plan_type(data.get("type")),
            raw_type=data.get("type"),
            action=_first_text(data.get("action")),
            intent=str(data.get("intent") or "").strip(),
            target=str(target).strip() if target is not None and str(target).strip() else None,
            content=content if content is None or isinstance(content, str) else str(content),
            append_mode=_as_bool(append_mode),
            command=command if isinstance(command, str) else None,
            proposal=proposal if isinstance(proposal, dict) else None,
            continuity=continuity if isinstance(continuity, dict) else None,
            next=_as_text_list(data.get("next")),
        )


@dataclass
class Proposal:
    """A durable request for a privileged action that waits for external approval."""
    type: str
    title: str = ""
    reasoning: str = ""
    details: str = ""
    risks: List[str] = field(default_factory=list)
    benefits: List[str] = field(default_factory=list)
    target_file: Optional[str] = None
    command: Optional[str] = None
    url: Optional[str] = None
    method: Optional[str] = None
    data: Any = None
    approved: bool = False
    timestamp: str = ""
    id: str = ""
    # File the record was loaded from; never serialized
    source_path: Optional[Path] = field(default=None, repr=False, compare=False)

    @property
    def proposal_type(self) -> Optional[ProposalType]:
        return ProposalType.from_value(self.type)

    def to_dict(self) -> Dict[str, Any]:
        record = {
            "id": self.id,
            "type": self.type,
            "title": self.title,
            "reasoning": self.reasoning,
            "details": self.details,
            "risks": list(self.risks),
            "benefits": list(self.benefits),
        }
        optional = {
            "targetFile": self.target_file,
            "command": self.command,
            "url": self.url,
            "method": self.method,
            "data": self.data,
        }
        record.update({key: value for key, value in optional.items() if value is not None})
        record["approved"] = self.approved
        record["timestamp"] = self.timestamp
        return record

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Proposal":
        """Build a proposal from a stored record or a model payload.

        Both ``approved`` and the older ``approve`` spelling mark a record as approved.
        """
        approved = _as_bool(data.get("approved")) or _as_bool(data.get("approve"))
        return cls(
            type=normalize_plan_type(data.get("type")),
            title=str(data.get("title") or "").strip(),
            reasoning=str(data.get("reasoning") or "").strip(),
            details=str(data.get("details") or "").strip(),
            risks=_as_text_list(data.get("risks")),
            benefits=_as_text_list(data.get("benefits")),
            target_file=data.get("targetFile") or data.get("target_file"),
            command=data.get("command"),
            url=data.get("url"),
            method=data.get("method"),
            data=data.get("data"),
            approved=approved,
            timestamp=str(data.get("timestamp") or ""),
            id=str(data.get("id") or ""),
        )


@dataclass
class ActionLog:
    """One record per loop iteration; written once and never modified."""
    intent: str = ""
    action: str = ""
    result: List[str] = field(default_factory=list)
    next: List[str] = field(default_factory=list)
    timestamp: str = ""
    proposal: Optional[Dict[str, Any]] = None
    response_raw: Optional[str] = None
    plan_type: Optional[str] = None
    target: Optional[str] = None
    reads: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        record = {
            "timestamp": self.timestamp,
            "intent": self.intent,
            "action": self.action,
            "result": list(self.result),
            "next": list(self.next),
        }
        if self.plan_type:
            record["planType"] = self.plan_type
        if self.target:
            record["target"] = self.target
        if self.reads:
            record["reads"] = list(self.reads)
        if self.proposal is not None:
            record["proposal"] = self.proposal
        if self.response_raw is not None:
            record["responseRaw"] = self.response_raw
        return record

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActionLog":
        action = data.get("action")
        if isinstance(action, list):
            action = " / ".join(str(item) for item in action)
        proposal = data.get("proposal")
        return cls(
            timestamp=str(data.get("timestamp") or ""),
            intent=str(data.get("intent") or ""),
            action=str(action or ""),
            result=_as_text_list(data.get("result")),
            next=_as_text_list(data.get("next")),
            proposal=proposal if isinstance(proposal, dict) else None,
            response_raw=data.get("responseRaw"),
            plan_type=data.get("planType"),
            target=data.get("target"),
            reads=_as_text_list(data.get("reads")),
        )


@dataclass
class ContinuityState:
    """The agent's working memory carried across iterations."""
    goal: str = ""
    milestones: List[str] = field(default_factory=list)
    progress: str = ""
    next_focus: str = ""
    blockers: List[str] = field(default_factory=list)
    history: List[str] = field(default_factory=list)
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal": self.goal,
            "milestones": list(self.milestones),
            "progress": self.progress,
            "nextFocus": self.next_focus,
            "blockers": list(self.blockers),
            "history": list(self.history),
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContinuityState":
        return cls(
            goal=str(data.get("goal") or ""),
            milestones=_as_text_list(data.get("milestones")),
            progress=str(data.get("progress") or ""),
            next_focus=str(data.get("nextFocus") or data.get("next_focus") or ""),
            blockers=_as_text_list(data.get("blockers")),
            history=_as_text_list(data.get("history")),
            updated_at=str(data.get("updatedAt") or data.get("updated_at") or ""),
        )


@dataclass
class AgentState:
    """Loop-owned mutable values threaded through every iteration."""
    boredom: int = 0
    running: bool = True
    iteration: int = 0
    last_action_timestamp: str = ""
