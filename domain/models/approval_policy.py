# domain/models/approval_policy.py
"""
Declarative approval policies.

A policy is an ordered table of rules; the first rule whose condition matches
a task decides it. Tasks that match no rule fall back to the policy's default,
which is never ``allow``: a task is only auto-approved by an explicit rule.
"""
from dataclasses import dataclass
from enum import Enum
from fnmatch import fnmatchcase
from typing import ClassVar, Dict, Optional, Tuple, Union

from domain.errors import PolicySchemaError
from domain.models.agent_task import AgentTask, ApprovalDecision, ScopeType, TaskApprovalResult
from domain.models.task_intent import IntentCategory


class PolicyDecision(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    REQUIRE_HUMAN = "requireHuman"


_DECISION_TO_APPROVAL = {
    PolicyDecision.ALLOW: ApprovalDecision.APPROVED,
    PolicyDecision.DENY: ApprovalDecision.REJECTED,
    PolicyDecision.REQUIRE_HUMAN: ApprovalDecision.DEFERRED,
}


# Conditions

@dataclass(frozen=True)
class IntentCategoryIs:
    category: IntentCategory
    type_name: ClassVar[str] = "intentCategory"

    def matches(self, task: AgentTask) -> bool:
        return task.intent.category == self.category


@dataclass(frozen=True)
class IntentTypeIs:
    kind: str
    type_name: ClassVar[str] = "intentType"

    def matches(self, task: AgentTask) -> bool:
        return task.intent.kind == self.kind


@dataclass(frozen=True)
class ScopeTypeIs:
    scope_type: ScopeType
    type_name: ClassVar[str] = "scopeType"

    def matches(self, task: AgentTask) -> bool:
        return task.scope.type == self.scope_type


@dataclass(frozen=True)
class ConfidenceAbove:
    threshold: float
    type_name: ClassVar[str] = "confidenceAbove"

    def matches(self, task: AgentTask) -> bool:
        return task.confidence > self.threshold


@dataclass(frozen=True)
class ConfidenceBelow:
    threshold: float
    type_name: ClassVar[str] = "confidenceBelow"

    def matches(self, task: AgentTask) -> bool:
        return task.confidence < self.threshold


@dataclass(frozen=True)
class FilePattern:
    """Matches single-file tasks whose path contains or globs the pattern"""
    pattern: str
    type_name: ClassVar[str] = "filePattern"

    def matches(self, task: AgentTask) -> bool:
        if not task.scope.is_single_file:
            return False
        path = task.scope.name
        return self.pattern in path or fnmatchcase(path, self.pattern)


@dataclass(frozen=True)
class MaxSteps:
    limit: int
    type_name: ClassVar[str] = "maxSteps"

    def matches(self, task: AgentTask) -> bool:
        return len(task.steps) <= self.limit


@dataclass(frozen=True)
class AllOf:
    conditions: Tuple["PolicyCondition", ...]
    type_name: ClassVar[str] = "all"

    def matches(self, task: AgentTask) -> bool:
        return all(condition.matches(task) for condition in self.conditions)


@dataclass(frozen=True)
class AnyOf:
    conditions: Tuple["PolicyCondition", ...]
    type_name: ClassVar[str] = "any"

    def matches(self, task: AgentTask) -> bool:
        return any(condition.matches(task) for condition in self.conditions)


@dataclass(frozen=True)
class Not:
    condition: "PolicyCondition"
    type_name: ClassVar[str] = "not"

    def matches(self, task: AgentTask) -> bool:
        return not self.condition.matches(task)


PolicyCondition = Union[
    IntentCategoryIs,
    IntentTypeIs,
    ScopeTypeIs,
    ConfidenceAbove,
    ConfidenceBelow,
    FilePattern,
    MaxSteps,
    AllOf,
    AnyOf,
    Not,
]


@dataclass(frozen=True)
class PolicyRule:
    condition: PolicyCondition
    decision: PolicyDecision
    reason: Optional[str] = None

    def matches(self, task: AgentTask) -> bool:
        return self.condition.matches(task)


@dataclass(frozen=True)
class ApprovalPolicy:
    """Named, ordered rule table; first match wins"""
    name: str
    rules: Tuple[PolicyRule, ...] = ()
    description: str = ""
    default_decision: PolicyDecision = PolicyDecision.REQUIRE_HUMAN

    def __post_init__(self):
        object.__setattr__(self, "rules", tuple(self.rules))
        if self.default_decision == PolicyDecision.ALLOW:
            raise PolicySchemaError(
                f"Policy '{self.name}' cannot auto-approve unmatched tasks",
                identifier=self.name,
            )

    def match(self, task: AgentTask) -> Optional[PolicyRule]:
        for rule in self.rules:
            if rule.matches(task):
                return rule
        return None

    def evaluate(self, task: AgentTask) -> PolicyDecision:
        rule = self.match(task)
        return rule.decision if rule else self.default_decision

    def decide(self, task: AgentTask) -> TaskApprovalResult:
        """Map the policy decision onto an approval result for ``task``"""
        rule = self.match(task)
        if rule is None:
            decision = self.default_decision
            reason = f"No rule matched (policy: {self.name})"
        else:
            decision = rule.decision
            reason = f"{rule.reason or decision.value} (policy: {self.name})"
        return TaskApprovalResult(
            task=task,
            decision=_DECISION_TO_APPROVAL[decision],
            reason=reason,
        )


# Built-in policies

_ARCHITECTURE = IntentCategoryIs(IntentCategory.ARCHITECTURE)

CONSERVATIVE = ApprovalPolicy(
    name="Conservative",
    description="Only auto-approve documentation and comments",
    rules=(
        PolicyRule(IntentCategoryIs(IntentCategory.DOCUMENTATION), PolicyDecision.ALLOW,
                   "Documentation changes are low-risk"),
        PolicyRule(_ARCHITECTURE, PolicyDecision.DENY, "Architecture changes require review"),
    ),
)

MODERATE = ApprovalPolicy(
    name="Moderate",
    description="Auto-approve high-confidence, single-file changes",
    rules=(
        PolicyRule(
            AllOf((ScopeTypeIs(ScopeType.FILE), ConfidenceAbove(0.8), MaxSteps(3))),
            PolicyDecision.ALLOW,
            "High-confidence, small scope",
        ),
        PolicyRule(_ARCHITECTURE, PolicyDecision.DENY, "Architecture changes require review"),
        PolicyRule(ScopeTypeIs(ScopeType.PROJECT), PolicyDecision.DENY,
                   "Project-wide changes require review"),
    ),
)

PERMISSIVE = ApprovalPolicy(
    name="Permissive",
    description="Auto-approve most changes, review architecture",
    rules=(
        PolicyRule(_ARCHITECTURE, PolicyDecision.REQUIRE_HUMAN, "Architecture changes need review"),
        PolicyRule(ConfidenceBelow(0.5), PolicyDecision.REQUIRE_HUMAN, "Low confidence needs review"),
        PolicyRule(
            AnyOf(tuple(
                IntentCategoryIs(category)
                for category in IntentCategory
                if category != IntentCategory.ARCHITECTURE
            )),
            PolicyDecision.ALLOW,
            "Non-architectural change with sufficient confidence",
        ),
    ),
)

STRICT = ApprovalPolicy(
    name="Strict",
    description="Require human approval for everything",
)

CI = ApprovalPolicy(
    name="CI",
    description="Report findings but never auto-approve",
)

BUILTIN_POLICIES: Dict[str, ApprovalPolicy] = {
    "conservative": CONSERVATIVE,
    "moderate": MODERATE,
    "permissive": PERMISSIVE,
    "strict": STRICT,
    "ci": CI,
}
