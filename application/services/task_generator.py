# application/services/task_generator.py
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Callable, Dict, FrozenSet, List, Optional, Sequence, Tuple

from domain.models.agent_task import AgentTask, DiffType, TaskScope, TaskStep, clamp_confidence
from domain.models.finding import Finding, FindingType, Severity
from domain.models.task_intent import (
    AddBinding,
    AddStateObject,
    ExtractFunction,
    IntentCategory,
    ReduceNesting,
    ReduceParameters,
    SplitFile,
    TaskIntent,
)
from shared.logging import logger

# Base confidence contributed by the finding's severity
SEVERITY_BASE: Dict[Severity, float] = {
    Severity.INFO: 0.3,
    Severity.WARNING: 0.5,
    Severity.ERROR: 0.65,
    Severity.CRITICAL: 0.8,
}

# Bonus per populated context field the rule expects
CONTEXT_FIELD_BONUS = 0.1


@dataclass
class TaskGenerationConfig:
    minimum_confidence: float = 0.6
    max_tasks_per_run: int = 10
    enabled_intent_categories: FrozenSet[IntentCategory] = field(
        default_factory=lambda: frozenset(IntentCategory)
    )
    # Stable sort by descending confidence before truncating
    prioritize_by_confidence: bool = False

    def __post_init__(self):
        if not 0.0 <= self.minimum_confidence <= 1.0:
            raise ValueError(f"minimum_confidence must be within [0, 1], got {self.minimum_confidence}")
        if self.max_tasks_per_run < 0:
            raise ValueError(f"max_tasks_per_run must be >= 0, got {self.max_tasks_per_run}")
        self.enabled_intent_categories = frozenset(self.enabled_intent_categories)


def _file_scope(finding: Finding) -> TaskScope:
    return TaskScope.file(finding.location.file)


def _module_scope(finding: Finding) -> TaskScope:
    # Signature and file-layout changes ripple into sibling files
    return TaskScope.module(PurePosixPath(finding.location.file).parent.name)


@dataclass(frozen=True)
class TaskGenerationRule:
    """How one (finding type, metric) pair turns into a task"""
    finding_type: FindingType
    build_intent: Callable[[Finding], TaskIntent]
    expected_context: Tuple[str, ...]
    step_template: Tuple[Tuple[str, DiffType], ...]
    metric: Optional[str] = None
    scope: Callable[[Finding], TaskScope] = _file_scope

    def applies_to(self, finding: Finding) -> bool:
        if finding.type != self.finding_type:
            return False
        return self.metric is None or finding.context_value("metric") == self.metric

    def confidence_for(self, finding: Finding) -> float:
        populated = sum(1 for key in self.expected_context if finding.context_value(key))
        return clamp_confidence(SEVERITY_BASE[finding.severity] + CONTEXT_FIELD_BONUS * populated)

    def steps_for(self, finding: Finding) -> Tuple[TaskStep, ...]:
        return tuple(
            TaskStep(
                description=description,
                allowed_files=(finding.location.file,),
                expected_diff_type=diff_type,
            )
            for description, diff_type in self.step_template
        )


MISSING_STATE_OBJECT_RULE = TaskGenerationRule(
    finding_type=FindingType.MISSING_STATE_OBJECT,
    build_intent=lambda f: AddStateObject(
        property=f.context_value("property") or "viewModel",
        type=f.context_value("type") or "ViewModel",
        file=f.location.file,
    ),
    expected_context=("property", "type"),
    step_template=(
        ("Locate the property declaration", DiffType.MODIFY_BODY),
        ("Add @StateObject or @ObservedObject wrapper", DiffType.ADD_WRAPPER),
        ("Verify view updates correctly", DiffType.MODIFY_BODY),
    ),
)

MISSING_BINDING_RULE = TaskGenerationRule(
    finding_type=FindingType.MISSING_BINDING,
    build_intent=lambda f: AddBinding(
        property=f.context_value("property") or "value",
        file=f.location.file,
    ),
    expected_context=("property",),
    step_template=(
        ("Locate view initializer", DiffType.MODIFY_BODY),
        ("Identify missing binding type", DiffType.MODIFY_BODY),
        ("Add @Binding property wrapper", DiffType.ADD_WRAPPER),
        ("Update call sites to pass binding", DiffType.MODIFY_BODY),
    ),
)

LONG_FUNCTION_RULE = TaskGenerationRule(
    finding_type=FindingType.HIGH_COMPLEXITY,
    metric="functionLines",
    build_intent=lambda f: ExtractFunction(
        function=f.context_value("function") or "unknown",
        file=f.location.file,
    ),
    expected_context=("function", "value", "threshold"),
    step_template=(
        ("Identify logical sections in the function", DiffType.MODIFY_BODY),
        ("Extract cohesive code blocks into helper methods", DiffType.ADD_METHOD),
        ("Update original function to call extracted methods", DiffType.MODIFY_BODY),
        ("Verify behavior is preserved", DiffType.MODIFY_BODY),
    ),
)

HIGH_COMPLEXITY_RULE = TaskGenerationRule(
    finding_type=FindingType.HIGH_COMPLEXITY,
    metric="cyclomaticComplexity",
    build_intent=lambda f: ExtractFunction(
        function=f.context_value("function") or "unknown",
        file=f.location.file,
    ),
    expected_context=("function", "value", "threshold"),
    step_template=(
        ("Identify decision points (if/switch/loops)", DiffType.MODIFY_BODY),
        ("Extract conditional branches into separate methods", DiffType.ADD_METHOD),
        ("Verify all paths are covered", DiffType.MODIFY_BODY),
    ),
)

DEEP_NESTING_RULE = TaskGenerationRule(
    finding_type=FindingType.HIGH_COMPLEXITY,
    metric="nestingDepth",
    build_intent=lambda f: ReduceNesting(file=f.location.file, line=f.location.line),
    expected_context=("function", "value", "threshold"),
    step_template=(
        ("Identify nested conditions that can become early exits", DiffType.MODIFY_BODY),
        ("Apply guard statements for early returns", DiffType.MODIFY_BODY),
        ("Verify control flow is preserved", DiffType.MODIFY_BODY),
    ),
)

TOO_MANY_PARAMETERS_RULE = TaskGenerationRule(
    finding_type=FindingType.HIGH_COMPLEXITY,
    metric="parameterCount",
    build_intent=lambda f: ReduceParameters(
        function=f.context_value("function") or "unknown",
        file=f.location.file,
    ),
    expected_context=("function", "value", "threshold"),
    step_template=(
        ("Identify related parameters that form a concept", DiffType.MODIFY_BODY),
        ("Create a parameter object or struct", DiffType.ADD_TYPE),
        ("Update function signature to use new type", DiffType.MODIFY_BODY),
        ("Update all call sites", DiffType.MODIFY_BODY),
    ),
    scope=_module_scope,
)

LARGE_FILE_RULE = TaskGenerationRule(
    finding_type=FindingType.HIGH_COMPLEXITY,
    metric="fileLines",
    build_intent=lambda f: SplitFile(path=f.location.file),
    expected_context=("value", "threshold"),
    step_template=(
        ("Identify distinct responsibilities in the file", DiffType.MODIFY_BODY),
        ("Group related types and extensions", DiffType.MODIFY_BODY),
        ("Create new files for each responsibility", DiffType.ADD_FILE),
        ("Update imports in dependent files", DiffType.MODIFY_BODY),
    ),
    scope=_module_scope,
)

DEFAULT_RULES: Tuple[TaskGenerationRule, ...] = (
    MISSING_STATE_OBJECT_RULE,
    MISSING_BINDING_RULE,
    LONG_FUNCTION_RULE,
    HIGH_COMPLEXITY_RULE,
    DEEP_NESTING_RULE,
    TOO_MANY_PARAMETERS_RULE,
    LARGE_FILE_RULE,
)


class TaskGenerator:
    """Turns findings into bounded, filtered, confidence-scored tasks.

    Pure: the same findings and config always yield the same task set (ids and
    timestamps aside).
    """

    def __init__(self,
                 config: Optional[TaskGenerationConfig] = None,
                 rules: Sequence[TaskGenerationRule] = DEFAULT_RULES):
        self.config = config or TaskGenerationConfig()
        self.rules = tuple(rules)

    def rule_for(self, finding: Finding) -> Optional[TaskGenerationRule]:
        for rule in self.rules:
            if rule.applies_to(finding):
                return rule
        return None

    def generate_tasks(self, findings: Sequence[Finding]) -> List[AgentTask]:
        candidates: List[AgentTask] = []

        for finding in findings:
            rule = self.rule_for(finding)
            if rule is None:
                continue

            intent = rule.build_intent(finding)
            if intent.category not in self.config.enabled_intent_categories:
                continue

            confidence = rule.confidence_for(finding)
            if confidence < self.config.minimum_confidence:
                continue

            candidates.append(AgentTask(
                title=intent.description,
                intent=intent,
                scope=rule.scope(finding),
                confidence=confidence,
                source_findings=(finding.id,),
                steps=rule.steps_for(finding),
                requires_approval=True,
            ))

        if self.config.prioritize_by_confidence:
            candidates.sort(key=lambda task: task.confidence, reverse=True)

        tasks = candidates[:self.config.max_tasks_per_run]

        logger.info("Tasks generated",
                   findings=len(findings),
                   candidates=len(candidates),
                   emitted=len(tasks),
                   min_confidence=self.config.minimum_confidence)
        return tasks
