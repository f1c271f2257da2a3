# domain/models/agent_task.py
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import uuid

from domain.errors import InvalidTransitionError
from domain.models.task_intent import IntentCategory, TaskIntent, intent_from_dict


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Aware UTC copy of ``value``; naive datetimes are taken to be UTC already"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


class ScopeType(str, Enum):
    FILE = "file"
    MODULE = "module"
    FEATURE = "feature"
    PROJECT = "project"


@dataclass(frozen=True)
class TaskScope:
    """Boundary of what a task is allowed to touch"""
    type: ScopeType
    name: str = ""

    @classmethod
    def file(cls, path: str) -> "TaskScope":
        return cls(ScopeType.FILE, path)

    @classmethod
    def module(cls, name: str) -> "TaskScope":
        return cls(ScopeType.MODULE, name)

    @classmethod
    def project(cls) -> "TaskScope":
        return cls(ScopeType.PROJECT, "")

    @property
    def is_single_file(self) -> bool:
        return self.type == ScopeType.FILE

    @property
    def allowed_paths(self) -> List[str]:
        if self.type == ScopeType.FILE:
            return [self.name]
        if self.type == ScopeType.MODULE:
            return [f"Sources/{self.name}/**"]
        if self.type == ScopeType.FEATURE:
            return [f"Features/{self.name}/**"]
        return ["**"]

    def __str__(self) -> str:
        if self.type == ScopeType.PROJECT:
            return "project-wide"
        return f"{self.type.value}: {self.name}"


class DiffType(str, Enum):
    ADD_PROPERTY = "addProperty"
    ADD_METHOD = "addMethod"
    ADD_IMPORT = "addImport"
    MODIFY_BODY = "modifyBody"
    ADD_FILE = "addFile"
    DELETE_LINES = "deleteLines"
    RENAME_SYMBOL = "renameSymbol"
    ADD_WRAPPER = "addWrapper"
    ADD_TYPE = "addType"


@dataclass(frozen=True)
class TaskStep:
    """One human-readable step of a task's plan"""
    description: str
    allowed_files: Tuple[str, ...] = ()
    expected_diff_type: DiffType = DiffType.MODIFY_BODY


class TaskStatus(Enum):
    PROPOSED = "proposed"
    APPROVED = "approved"
    REJECTED = "rejected"
    DEFERRED = "deferred"
    COMPLETED = "completed"
    FAILED = "failed"


class ApprovalDecision(Enum):
    APPROVED = "approved"
    REJECTED = "rejected"
    MODIFIED = "modified"
    DEFERRED = "deferred"


@dataclass(frozen=True)
class TaskFeedback:
    """Immutable record of the decision taken on a task"""
    decision: ApprovalDecision
    reason: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)


@dataclass
class AgentTask:
    """A proposed unit of work wrapping one intent.

    Tasks are created by the TaskGenerator; their status is only moved by the
    host through the transition methods below.
    """
    title: str
    intent: TaskIntent
    scope: TaskScope
    confidence: float
    source_findings: Tuple[str, ...]
    steps: Tuple[TaskStep, ...] = ()
    requires_approval: bool = True
    status: TaskStatus = TaskStatus.PROPOSED
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utc_now)
    feedback: Optional[TaskFeedback] = None

    def __post_init__(self):
        self.confidence = clamp_confidence(self.confidence)
        self.source_findings = tuple(self.source_findings)
        self.steps = tuple(self.steps)
        if not self.source_findings:
            raise ValueError("An AgentTask must trace back to at least one finding")

    @property
    def category(self) -> IntentCategory:
        return self.intent.category

    # Transitions

    def approve(self, reason: Optional[str] = None, modified: bool = False):
        self._transition({TaskStatus.PROPOSED}, TaskStatus.APPROVED)
        decision = ApprovalDecision.MODIFIED if modified else ApprovalDecision.APPROVED
        self.feedback = TaskFeedback(decision=decision, reason=reason)

    def reject(self, reason: Optional[str] = None):
        self._transition({TaskStatus.PROPOSED}, TaskStatus.REJECTED)
        self.feedback = TaskFeedback(decision=ApprovalDecision.REJECTED, reason=reason)

    def defer(self, reason: Optional[str] = None):
        self._transition({TaskStatus.PROPOSED}, TaskStatus.DEFERRED)
        self.feedback = TaskFeedback(decision=ApprovalDecision.DEFERRED, reason=reason)

    def mark_completed(self):
        self._transition({TaskStatus.APPROVED}, TaskStatus.COMPLETED)

    def mark_failed(self):
        self._transition({TaskStatus.APPROVED}, TaskStatus.FAILED)

    def _transition(self, allowed_from, target: TaskStatus):
        if self.status not in allowed_from:
            raise InvalidTransitionError(self.id, self.status.value, target.value)
        self.status = target

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "intent": self.intent.to_dict(),
            "scope": {"type": self.scope.type.value, "name": self.scope.name},
            "confidence": self.confidence,
            "source_findings": list(self.source_findings),
            "steps": [
                {
                    "description": step.description,
                    "allowed_files": list(step.allowed_files),
                    "expected_diff_type": step.expected_diff_type.value,
                }
                for step in self.steps
            ],
            "requires_approval": self.requires_approval,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
            "feedback": {
                "decision": self.feedback.decision.value,
                "reason": self.feedback.reason,
                "timestamp": self.feedback.timestamp.isoformat(),
            } if self.feedback else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AgentTask":
        feedback = data.get("feedback")
        return cls(
            id=data["id"],
            title=data["title"],
            intent=intent_from_dict(data["intent"]),
            scope=TaskScope(ScopeType(data["scope"]["type"]), data["scope"].get("name", "")),
            confidence=data["confidence"],
            source_findings=tuple(data["source_findings"]),
            steps=tuple(
                TaskStep(
                    description=step["description"],
                    allowed_files=tuple(step.get("allowed_files", ())),
                    expected_diff_type=DiffType(step.get("expected_diff_type", DiffType.MODIFY_BODY.value)),
                )
                for step in data.get("steps", [])
            ),
            requires_approval=data.get("requires_approval", True),
            status=TaskStatus(data.get("status", TaskStatus.PROPOSED.value)),
            created_at=as_utc(datetime.fromisoformat(data["created_at"])),
            feedback=TaskFeedback(
                decision=ApprovalDecision(feedback["decision"]),
                reason=feedback.get("reason"),
                timestamp=as_utc(datetime.fromisoformat(feedback["timestamp"])),
            ) if feedback else None,
        )


@dataclass(frozen=True)
class TaskApprovalResult:
    """Pure decision value returned by a policy or an approval callback"""
    task: AgentTask
    decision: ApprovalDecision
    reason: Optional[str] = None

    @property
    def is_approved(self) -> bool:
        return self.decision in (ApprovalDecision.APPROVED, ApprovalDecision.MODIFIED)
