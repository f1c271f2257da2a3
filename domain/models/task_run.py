# domain/models/task_run.py
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from domain.models.agent_task import AgentTask, ApprovalDecision, TaskApprovalResult, as_utc, utc_now
from domain.models.finding import Finding
from domain.models.transform import TransformResult


class RunOutcome(Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    PARTIAL = "partial"
    FAILED = "failed"
    SKIPPED = "skipped"


class ApprovalSource(Enum):
    HUMAN = "human"
    POLICY = "policy"
    CALLBACK = "callback"


@dataclass(frozen=True)
class ApprovalRecord:
    """Immutable audit entry for one approval decision"""
    decision: ApprovalDecision
    source: ApprovalSource
    reason: Optional[str] = None
    policy_name: Optional[str] = None
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "decision": self.decision.value,
            "source": self.source.value,
            "reason": self.reason,
            "policy_name": self.policy_name,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApprovalRecord":
        return cls(
            decision=ApprovalDecision(data["decision"]),
            source=ApprovalSource(data["source"]),
            reason=data.get("reason"),
            policy_name=data.get("policy_name"),
            timestamp=as_utc(datetime.fromisoformat(data["timestamp"])),
        )


@dataclass(frozen=True)
class TaskRecord:
    """A task, the decision taken on it and, if executed, its result"""
    task: AgentTask
    approval: ApprovalRecord
    result: Optional[TransformResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": self.task.to_dict(),
            "approval": self.approval.to_dict(),
            "result": self.result.to_dict() if self.result else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskRecord":
        return cls(
            task=AgentTask.from_dict(data["task"]),
            approval=ApprovalRecord.from_dict(data["approval"]),
            result=TransformResult.from_dict(data["result"]) if data.get("result") else None,
        )


@dataclass
class TaskRun:
    """Persisted audit record of one generate -> approve -> execute cycle"""
    project_path: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=utc_now)
    completed_at: Optional[datetime] = None
    outcome: RunOutcome = RunOutcome.PENDING
    tasks: List[TaskRecord] = field(default_factory=list)
    metadata: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.started_at = as_utc(self.started_at)
        if self.completed_at is not None:
            self.completed_at = as_utc(self.completed_at)

    @property
    def duration_seconds(self) -> Optional[float]:
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def combined_diff(self) -> str:
        return "\n\n".join(
            record.result.diff
            for record in self.tasks
            if record.result and record.result.success and record.result.diff
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "project_path": self.project_path,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "outcome": self.outcome.value,
            "tasks": [record.to_dict() for record in self.tasks],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskRun":
        completed_at = data.get("completed_at")
        return cls(
            id=data["id"],
            project_path=data["project_path"],
            started_at=datetime.fromisoformat(data["started_at"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            outcome=RunOutcome(data.get("outcome", RunOutcome.PENDING.value)),
            tasks=[TaskRecord.from_dict(record) for record in data.get("tasks", [])],
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class HostRunResult:
    """Aggregate produced once per host invocation"""
    run_id: str
    findings: List[Finding]
    tasks_proposed: int
    tasks_processed: int
    tasks_succeeded: int
    results: Dict[str, TransformResult]
    decisions: Dict[str, TaskApprovalResult]
    sources: Dict[str, str]

    @property
    def outcome(self) -> RunOutcome:
        executed = len(self.results)
        if executed == 0:
            return RunOutcome.SKIPPED
        if self.tasks_succeeded == executed:
            return RunOutcome.SUCCEEDED
        if self.tasks_succeeded == 0:
            return RunOutcome.FAILED
        return RunOutcome.PARTIAL

    @property
    def summary(self) -> str:
        return (
            f"Findings: {len(self.findings)}\n"
            f"Tasks proposed: {self.tasks_proposed}\n"
            f"Tasks processed: {self.tasks_processed}\n"
            f"Tasks succeeded: {self.tasks_succeeded}"
        )
