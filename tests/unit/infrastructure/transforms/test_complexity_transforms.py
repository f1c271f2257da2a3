# tests/unit/infrastructure/transforms/test_complexity_transforms.py
import pytest

from domain.errors import MultipleMatchesError, TargetNotFoundError, TransformFailedError
from domain.models.task_intent import ExtractFunction, ReduceNesting
from domain.models.transform import TransformContext
from infrastructure.transforms.complexity_transforms import ExtractFunctionTransform, GuardClauseTransform

FILE = "Sources/Feed/FeedLoader.swift"


@pytest.fixture
def context():
    return TransformContext(file_path=FILE)


class TestGuardClauseTransform:
    """Test if -> guard rewrites"""

    def test_trailing_if_becomes_guard(self, context):
        source = 'func load() {\n    if isReady {\n        print("ready")\n        start()\n    }\n}'

        result = GuardClauseTransform().apply(source, ReduceNesting(file=FILE, line=2), context)

        assert result.transformed_source == (
            'func load() {\n    guard isReady else { return }\n    print("ready")\n    start()\n}'
        )

    def test_reported_line_may_be_slightly_off(self, context):
        source = "func load() {\n    prepare()\n    if isReady {\n        start()\n    }\n}\n"

        result = GuardClauseTransform().apply(source, ReduceNesting(file=FILE, line=4), context)

        assert result.transformed_source == (
            "func load() {\n    prepare()\n    guard isReady else { return }\n    start()\n}\n"
        )

    @pytest.mark.parametrize("source", [
        # else branch
        "func load() {\n    if isReady {\n        start()\n    } else {\n        stop()\n    }\n}\n",
        # non-Void function
        "func load() -> Bool {\n    if isReady {\n        return true\n    }\n}\n",
        # if is not the last statement
        "func load() {\n    if isReady {\n        start()\n    }\n    finish()\n}\n",
    ])
    def test_unsafe_shapes_are_rejected(self, context, source):
        with pytest.raises(TransformFailedError):
            GuardClauseTransform().apply(source, ReduceNesting(file=FILE, line=2), context)

    def test_line_too_far_away(self, context):
        source = 'func load() {\n    if isReady {\n        start()\n    }\n}\n'

        with pytest.raises(TransformFailedError):
            GuardClauseTransform().apply(source, ReduceNesting(file=FILE, line=20), context)


class TestExtractFunctionTransform:
    """Test helper extraction"""

    def test_self_contained_run_moves_into_helper(self, context):
        source = (
            "func render(title: String) {\n"
            "    let header = makeHeader(title)\n"
            "    logStart()\n"
            "    resetCounters()\n"
            "    refreshCache()\n"
            "    show(header)\n"
            "}"
        )

        result = ExtractFunctionTransform().apply(source, ExtractFunction(function="render", file=FILE), context)

        assert result.transformed_source == (
            "func render(title: String) {\n"
            "    let header = makeHeader(title)\n"
            "    renderHelper()\n"
            "    show(header)\n"
            "}\n"
            "\n"
            "private func renderHelper() {\n"
            "    logStart()\n"
            "    resetCounters()\n"
            "    refreshCache()\n"
            "}"
        )

    def test_static_modifier_is_carried_over(self, context):
        source = (
            "enum Setup {\n"
            "    static func boot() {\n"
            "        configureLogging()\n"
            "        loadFonts()\n"
            "        registerDefaults()\n"
            "    }\n"
            "}\n"
        )

        result = ExtractFunctionTransform().apply(source, ExtractFunction(function="boot", file=FILE), context)

        assert "        bootHelper()\n" in result.transformed_source
        assert "    private static func bootHelper() {\n" in result.transformed_source

    def test_statements_using_locals_or_parameters_stay(self, context):
        source = (
            "func render(title: String) {\n"
            "    let header = makeHeader(title)\n"
            "    show(header)\n"
            "    print(title)\n"
            "    try save()\n"
            "}\n"
        )

        with pytest.raises(TransformFailedError):
            ExtractFunctionTransform().apply(source, ExtractFunction(function="render", file=FILE), context)

    def test_unknown_function(self, context):
        with pytest.raises(TargetNotFoundError) as exc_info:
            ExtractFunctionTransform().apply("func a() {}\n", ExtractFunction(function="render", file=FILE), context)

        assert exc_info.value.identifier == "render"

    def test_overloaded_function_is_ambiguous(self, context):
        source = "func render() {}\nfunc render(_ x: Int) {}\n"

        with pytest.raises(MultipleMatchesError):
            ExtractFunctionTransform().apply(source, ExtractFunction(function="render", file=FILE), context)

    def test_existing_helper_name_blocks_extraction(self, context):
        source = (
            "func render() {\n    a()\n    b()\n    c()\n}\n"
            "func renderHelper() {}\n"
        )

        with pytest.raises(TransformFailedError) as exc_info:
            ExtractFunctionTransform().apply(source, ExtractFunction(function="render", file=FILE), context)

        assert exc_info.value.identifier == "renderHelper"
