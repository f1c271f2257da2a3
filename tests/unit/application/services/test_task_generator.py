# tests/unit/application/services/test_task_generator.py
import pytest

from application.services.task_generator import (
    CONTEXT_FIELD_BONUS,
    SEVERITY_BASE,
    TaskGenerationConfig,
    TaskGenerator,
)
from domain.models.agent_task import ScopeType, TaskStatus
from domain.models.finding import Finding, FindingType, Severity, SourceLocation
from domain.models.task_intent import (
    AddBinding,
    AddStateObject,
    ExtractFunction,
    IntentCategory,
    ReduceNesting,
    ReduceParameters,
    SplitFile,
)


def state_object_finding(index=0, severity=Severity.WARNING, **context):
    context = context or {"property": f"model{index}", "type": "ProfileViewModel"}
    return Finding(
        type=FindingType.MISSING_STATE_OBJECT,
        location=SourceLocation(f"Views/View{index}.swift", 10 + index),
        message="View creates an observable object without a wrapper",
        severity=severity,
        context=context,
    )


def complexity_finding(metric, severity=Severity.WARNING, **context):
    context.setdefault("metric", metric)
    return Finding(
        type=FindingType.HIGH_COMPLEXITY,
        location=SourceLocation("Sources/Feed/FeedLoader.swift", 42),
        message=f"{metric} over threshold",
        severity=severity,
        context=context,
    )


class TestTaskGenerationConfig:
    """Test config validation"""

    def test_defaults_enable_every_category(self):
        config = TaskGenerationConfig()

        assert config.minimum_confidence == 0.6
        assert config.max_tasks_per_run == 10
        assert config.enabled_intent_categories == frozenset(IntentCategory)

    @pytest.mark.parametrize("kwargs", [
        {"minimum_confidence": 1.5},
        {"minimum_confidence": -0.1},
        {"max_tasks_per_run": -1},
    ])
    def test_invalid_values_are_rejected(self, kwargs):
        with pytest.raises(ValueError):
            TaskGenerationConfig(**kwargs)


class TestTaskGenerator:
    """Test finding -> task conversion"""

    def test_state_object_finding_becomes_task(self):
        finding = state_object_finding()

        tasks = TaskGenerator().generate_tasks([finding])

        assert len(tasks) == 1
        task = tasks[0]
        assert task.intent == AddStateObject(property="model0", type="ProfileViewModel", file="Views/View0.swift")
        assert task.scope.type == ScopeType.FILE
        assert task.scope.name == "Views/View0.swift"
        assert task.source_findings == (finding.id,)
        assert task.status == TaskStatus.PROPOSED
        assert task.requires_approval
        assert len(task.steps) == 3
        assert all(step.allowed_files == ("Views/View0.swift",) for step in task.steps)

    def test_confidence_grows_with_severity_and_context(self):
        generator = TaskGenerator(TaskGenerationConfig(minimum_confidence=0.0))

        bare = generator.generate_tasks([state_object_finding(severity=Severity.INFO, other="x")])[0]
        full = generator.generate_tasks([state_object_finding(severity=Severity.INFO)])[0]
        critical = generator.generate_tasks([state_object_finding(severity=Severity.CRITICAL)])[0]

        assert bare.confidence == pytest.approx(SEVERITY_BASE[Severity.INFO])
        assert full.confidence == pytest.approx(SEVERITY_BASE[Severity.INFO] + 2 * CONTEXT_FIELD_BONUS)
        assert critical.confidence == 1.0

    def test_findings_below_minimum_confidence_are_dropped(self):
        low = state_object_finding(severity=Severity.INFO, other="x")
        high = state_object_finding(index=1)

        tasks = TaskGenerator().generate_tasks([low, high])

        assert [t.source_findings for t in tasks] == [(high.id,)]
        assert all(t.confidence >= 0.6 for t in tasks)

    def test_bounded_output(self):
        """20 findings with a limit of 5 yield exactly 5 tasks"""
        findings = [state_object_finding(index=i) for i in range(20)]
        generator = TaskGenerator(TaskGenerationConfig(max_tasks_per_run=5))

        tasks = generator.generate_tasks(findings)

        assert len(tasks) == 5
        # Input order is kept by default
        assert [t.intent.property for t in tasks] == [f"model{i}" for i in range(5)]

    def test_prioritize_by_confidence_before_truncating(self):
        findings = [
            state_object_finding(index=0),
            state_object_finding(index=1, severity=Severity.CRITICAL),
            state_object_finding(index=2, severity=Severity.ERROR),
        ]
        generator = TaskGenerator(TaskGenerationConfig(max_tasks_per_run=2, prioritize_by_confidence=True))

        tasks = generator.generate_tasks(findings)

        assert [t.intent.property for t in tasks] == ["model1", "model2"]

    def test_disabled_categories_are_skipped(self):
        config = TaskGenerationConfig(enabled_intent_categories={IntentCategory.QUALITY})

        tasks = TaskGenerator(config).generate_tasks([state_object_finding()])

        assert tasks == []

    def test_findings_without_rule_are_ignored(self):
        finding = Finding(FindingType.VIEW_WITHOUT_PREVIEW, SourceLocation("A.swift"), "no preview")

        assert TaskGenerator().generate_tasks([finding]) == []

    def test_binding_finding(self):
        finding = Finding(
            type=FindingType.MISSING_BINDING,
            location=SourceLocation("Views/Toggle.swift", 5),
            message="state passed by value",
            severity=Severity.ERROR,
            context={"property": "isOn"},
        )

        task = TaskGenerator().generate_tasks([finding])[0]

        assert task.intent == AddBinding(property="isOn", file="Views/Toggle.swift")
        assert len(task.steps) == 4

    @pytest.mark.parametrize("metric,expected", [
        ("functionLines", ExtractFunction(function="load", file="Sources/Feed/FeedLoader.swift")),
        ("cyclomaticComplexity", ExtractFunction(function="load", file="Sources/Feed/FeedLoader.swift")),
        ("nestingDepth", ReduceNesting(file="Sources/Feed/FeedLoader.swift", line=42)),
    ])
    def test_complexity_metrics_select_intent(self, metric, expected):
        finding = complexity_finding(metric, function="load", value="60", threshold="40")

        task = TaskGenerator().generate_tasks([finding])[0]

        assert task.intent == expected
        assert task.scope.type == ScopeType.FILE

    def test_parameter_and_file_size_findings_use_module_scope(self):
        findings = [
            complexity_finding("parameterCount", function="load", value="8", threshold="5"),
            complexity_finding("fileLines", value="900", threshold="400"),
        ]

        tasks = TaskGenerator().generate_tasks(findings)

        assert tasks[0].intent == ReduceParameters(function="load", file="Sources/Feed/FeedLoader.swift")
        assert tasks[1].intent == SplitFile(path="Sources/Feed/FeedLoader.swift")
        assert [t.scope.type for t in tasks] == [ScopeType.MODULE, ScopeType.MODULE]
        assert tasks[0].scope.name == "Feed"

    def test_generation_is_deterministic(self):
        findings = [state_object_finding(index=i) for i in range(4)]
        generator = TaskGenerator()

        first = [(t.intent, t.confidence, t.scope) for t in generator.generate_tasks(findings)]
        second = [(t.intent, t.confidence, t.scope) for t in generator.generate_tasks(findings)]

        assert first == second
