# tests/unit/application/services/test_transform_pipeline.py
import pytest

from application.services.transform_pipeline import TransformPipeline, order_by_dependency
from domain.errors import RefactorError
from domain.models.task_intent import (
    AddBinding,
    AddImport,
    AddStateObject,
    ExtractFunction,
    SplitFile,
)
from domain.models.transform import TransformContext
from infrastructure.transforms.registry import TransformRegistry

VIEW_SOURCE = """struct ProfileView: View {
    var viewModel: ProfileViewModel

    var body: some View {
        Text("Hi")
    }
}
"""


@pytest.fixture
def context():
    return TransformContext(file_path="Views/ProfileView.swift")


@pytest.fixture
def text_pipeline():
    return TransformPipeline(TransformRegistry.text_based())


class TestOrderByDependency:
    """Test dependency ordering of intents"""

    def test_imports_first_then_wrappers_then_structural(self):
        intents = [
            SplitFile(path="A.swift"),
            ExtractFunction(function="load", file="A.swift"),
            AddStateObject(property="vm", type="VM", file="A.swift"),
            AddImport(module="SwiftUI"),
        ]

        ordered = order_by_dependency(intents)

        assert [i.kind for i in ordered] == ["addImport", "addStateObject", "extractFunction", "splitFile"]

    def test_ordering_is_stable_within_a_rank(self):
        first = AddStateObject(property="a", type="VM", file="A.swift")
        second = AddBinding(property="b", file="A.swift")

        assert order_by_dependency([first, second]) == [first, second]
        assert order_by_dependency([second, first]) == [second, first]


class TestTransformPipeline:
    """Test sequential application of intents"""

    def test_intents_chain_through_the_buffer(self, text_pipeline, context):
        result = text_pipeline.execute(
            [AddImport(module="SwiftUI"),
             AddStateObject(property="viewModel", type="ProfileViewModel", file=context.file_path)],
            VIEW_SOURCE,
            context,
        )

        assert result.success
        assert result.transformed_source.startswith("import SwiftUI\nstruct ProfileView")
        assert "    @StateObject var viewModel: ProfileViewModel\n" in result.transformed_source
        assert [record.intent.kind for record in result.applied] == ["addImport", "addStateObject"]
        assert result.total_lines_changed == 2

    def test_failure_returns_original_buffer(self, text_pipeline, context):
        """The first error stops the pass and nothing is kept"""
        result = text_pipeline.execute(
            [AddImport(module="SwiftUI"), AddBinding(property="missing", file=context.file_path)],
            VIEW_SOURCE,
            context,
        )

        assert not result.success
        assert result.transformed_source == VIEW_SOURCE
        assert len(result.applied) == 1
        assert result.failed_intent == AddBinding(property="missing", file=context.file_path)
        assert result.error["kind"] == "propertyNotFound"
        assert result.error["identifier"] == "missing"

        collapsed = result.to_transform_result()
        assert not collapsed.success
        assert collapsed.transformed_source == VIEW_SOURCE
        assert any(w.startswith("propertyNotFound") for w in collapsed.warnings)
        assert "rolled back after applying: addImport" in collapsed.warnings

    def test_unsupported_intent_fails_the_pass(self, text_pipeline, context):
        result = text_pipeline.execute([SplitFile(path=context.file_path)], VIEW_SOURCE, context)

        assert not result.success
        assert result.error["kind"] == "unsupportedIntent"
        assert result.error["identifier"] == "splitFile"

    def test_dependency_ordering_is_opt_in(self, text_pipeline, context):
        intents = [
            AddStateObject(property="viewModel", type="ProfileViewModel", file=context.file_path),
            AddImport(module="SwiftUI"),
        ]

        plain = text_pipeline.execute(intents, VIEW_SOURCE, context)
        ordered = text_pipeline.execute(intents, VIEW_SOURCE, context, order_by_dependency_first=True)

        assert [r.intent.kind for r in plain.applied] == ["addStateObject", "addImport"]
        assert [r.intent.kind for r in ordered.applied] == ["addImport", "addStateObject"]
        assert plain.transformed_source == ordered.transformed_source

    def test_empty_intent_list_is_a_no_op(self, text_pipeline, context):
        result = text_pipeline.execute([], VIEW_SOURCE, context)

        assert result.success
        assert result.transformed_source == VIEW_SOURCE
        assert result.combined_diff == ""
        assert result.to_transform_result().lines_changed == 0

    def test_syntax_and_text_strategies_agree_on_simple_input(self, context):
        intents = [AddStateObject(property="viewModel", type="ProfileViewModel", file=context.file_path)]

        text = TransformPipeline(TransformRegistry.text_based()).execute(intents, VIEW_SOURCE, context)
        syntax = TransformPipeline(TransformRegistry.syntax_based()).execute(intents, VIEW_SOURCE, context)

        assert text.transformed_source == syntax.transformed_source


def state_object_on_model():
    return AddStateObject(property="model", type="ProfileViewModel", file="Views/ProfileView.swift")


def outcome(registry, source, intent, context):
    """Either ("ok", transformed source) or (error kind, match count)"""
    try:
        result = registry.apply(source, intent, context)
    except RefactorError as e:
        return e.kind, getattr(e, "count", None)
    return "ok", result.transformed_source


class TestStrategyAgreement:
    """Both strategies give the same answer where the line-based one can act"""

    @pytest.mark.parametrize("source,intent,expected", [
        pytest.param(
            "struct B {\n    var other: ProfileViewModel\n}\n",
            state_object_on_model(),
            ("propertyNotFound", None),
            id="no-declaration",
        ),
        pytest.param(
            "struct B {\n    var model: ProfileViewModel\n}\n",
            state_object_on_model(),
            ("ok", "struct B {\n    @StateObject var model: ProfileViewModel\n}\n"),
            id="one-declaration",
        ),
        pytest.param(
            "struct A { var model: ProfileViewModel }\nstruct B {\n    var model: ProfileViewModel\n}\n",
            state_object_on_model(),
            ("multipleMatches", 2),
            id="two-declarations-one-sharing-a-line",
        ),
        pytest.param(
            "struct A { var model: ProfileViewModel }\nstruct B {\n    var model: ProfileViewModel\n}\n"
            "var model: ProfileViewModel\n",
            state_object_on_model(),
            ("multipleMatches", 3),
            id="three-declarations",
        ),
        pytest.param(
            "struct B {\n    @ObservedObject\n    var model: ProfileViewModel\n}\n",
            state_object_on_model(),
            ("alreadyHasWrapper", None),
            id="wrapper-on-line-above",
        ),
        pytest.param(
            'var url: String = "http://example.com"\n',
            AddBinding(property="url", file="Views/ProfileView.swift"),
            ("ok", "@Binding var url: String\n"),
            id="comment-marker-in-string",
        ),
        pytest.param(
            "    var isOn: Bool = false // toggles\n",
            AddBinding(property="isOn", file="Views/ProfileView.swift"),
            ("ok", "    @Binding var isOn: Bool // toggles\n"),
            id="trailing-comment",
        ),
    ])
    def test_same_result_from_both_registries(self, context, source, intent, expected):
        text = outcome(TransformRegistry.text_based(), source, intent, context)
        syntax = outcome(TransformRegistry.syntax_based(), source, intent, context)

        assert text == expected
        assert syntax == expected
