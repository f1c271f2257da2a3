# tests/unit/infrastructure/transforms/test_text_transforms.py
import pytest

from domain.errors import (
    AlreadyHasWrapperError,
    MultipleMatchesError,
    PropertyNotFoundError,
    TargetNotFoundError,
    TransformFailedError,
    UnsupportedIntentError,
)
from domain.models.task_intent import AddBinding, AddImport, AddInlineComment, AddStateObject
from domain.models.transform import TransformContext
from infrastructure.transforms.base import count_changed_lines, unified_diff, wrapper_for_type
from infrastructure.transforms.text_transforms import (
    BindingTransform,
    ImportTransform,
    InlineCommentTransform,
    StateObjectTransform,
    code_lines,
    leading_import_index,
)

FILE = "Views/ProfileView.swift"


@pytest.fixture
def context():
    return TransformContext(file_path=FILE)


def state_object(property_name="viewModel", type_name="ProfileViewModel"):
    return AddStateObject(property=property_name, type=type_name, file=FILE)


class TestHelpers:
    """Test shared diff and wrapper helpers"""

    @pytest.mark.parametrize("type_name,wrapper", [
        ("ProfileViewModel", "StateObject"),
        ("AppStore", "StateObject"),
        ("SessionManager", "ObservedObject"),
    ])
    def test_wrapper_for_type(self, type_name, wrapper):
        assert wrapper_for_type(type_name) == wrapper

    def test_unified_diff_uses_prefixed_paths(self):
        diff = unified_diff("a\nb\n", "a\nc\n", FILE)

        assert diff.splitlines()[:2] == [f"--- a/{FILE}", f"+++ b/{FILE}"]
        assert "-b" in diff.splitlines()
        assert "+c" in diff.splitlines()

    def test_count_changed_lines(self):
        assert count_changed_lines("a\nb\nc", "a\nB\nc") == 1
        assert count_changed_lines("a\nb", "import X\na\nb") == 1
        assert count_changed_lines("same", "same") == 0


class TestStateObjectTransform:
    """Test the line-based @StateObject rewrite"""

    def test_adds_wrapper(self, context):
        source = "struct ProfileView: View {\n    var viewModel: ProfileViewModel\n}"

        result = StateObjectTransform().apply(source, state_object(), context)

        assert result.success
        assert result.transformed_source == "struct ProfileView: View {\n    @StateObject var viewModel: ProfileViewModel\n}"
        assert result.lines_changed == 1
        assert "+    @StateObject var viewModel: ProfileViewModel" in result.diff

    def test_let_becomes_var_and_modifiers_are_kept(self, context):
        source = "    private let viewModel: ProfileViewModel = ProfileViewModel()"

        result = StateObjectTransform().apply(source, state_object(), context)

        assert result.transformed_source == "    @StateObject private var viewModel: ProfileViewModel = ProfileViewModel()"

    def test_non_owned_type_is_observed(self, context):
        source = "let session: SessionManager"

        result = StateObjectTransform().apply(source, state_object("session", "SessionManager"), context)

        assert result.transformed_source == "@ObservedObject var session: SessionManager"

    def test_second_application_is_rejected(self, context):
        source = "var viewModel: ProfileViewModel"
        once = StateObjectTransform().apply(source, state_object(), context)

        with pytest.raises(AlreadyHasWrapperError) as exc_info:
            StateObjectTransform().apply(once.transformed_source, state_object(), context)

        assert exc_info.value.identifier == "viewModel"
        assert exc_info.value.wrapper == "StateObject"

    def test_ambiguous_declaration_is_rejected(self, context):
        source = (
            "struct A { var model: ProfileViewModel }\n"
            "struct B {\n"
            "    var model: ProfileViewModel\n"
            "}\n"
            "var model: ProfileViewModel"
        )

        with pytest.raises(MultipleMatchesError) as exc_info:
            StateObjectTransform().apply(source, state_object("model"), context)

        assert exc_info.value.count == 3
        assert exc_info.value.to_dict()["kind"] == "multipleMatches"

    def test_declaration_sharing_a_line_counts_as_a_match(self, context):
        source = (
            "struct A { var model: ProfileViewModel }\n"
            "struct B {\n"
            "    var model: ProfileViewModel\n"
            "}\n"
        )

        with pytest.raises(MultipleMatchesError) as exc_info:
            StateObjectTransform().apply(source, state_object("model"), context)

        assert exc_info.value.count == 2

    def test_single_declaration_sharing_a_line_is_not_rewritten(self, context):
        source = "struct A { var model: ProfileViewModel }\n"

        with pytest.raises(TransformFailedError) as exc_info:
            StateObjectTransform().apply(source, state_object("model"), context)

        assert exc_info.value.identifier == "model"

    def test_wrapper_on_the_line_above_is_rejected(self, context):
        source = "struct B {\n    @ObservedObject\n    var model: ProfileViewModel\n}\n"

        with pytest.raises(AlreadyHasWrapperError) as exc_info:
            StateObjectTransform().apply(source, state_object("model"), context)

        assert exc_info.value.wrapper == "ObservedObject"

    def test_unrelated_attribute_lines_above_are_kept(self, context):
        source = "struct B {\n    @available(iOS 15, *)\n    var model: ProfileViewModel\n}\n"

        result = StateObjectTransform().apply(source, state_object("model"), context)

        assert result.transformed_source == (
            "struct B {\n    @available(iOS 15, *)\n    @StateObject var model: ProfileViewModel\n}\n"
        )

    def test_multiple_matches_win_over_existing_wrapper(self, context):
        source = "@StateObject var model: ProfileViewModel\nvar model: ProfileViewModel\n"

        with pytest.raises(MultipleMatchesError):
            StateObjectTransform().apply(source, state_object("model"), context)

    def test_strings_and_comments_are_not_declarations(self, context):
        source = (
            "// var viewModel: ProfileViewModel\n"
            "let hint = \"var viewModel: ProfileViewModel\"\n"
            "/* var viewModel: ProfileViewModel */\n"
            "var viewModel: ProfileViewModel\n"
        )

        result = StateObjectTransform().apply(source, state_object(), context)

        assert result.lines_changed == 1
        assert result.transformed_source.endswith("\n@StateObject var viewModel: ProfileViewModel\n")
        assert result.transformed_source.startswith("// var viewModel: ProfileViewModel\n")

    def test_conditional_binding_is_not_a_declaration(self, context):
        source = "var model: ProfileViewModel\nif let model = cache.model {\n    use(model)\n}\n"

        result = StateObjectTransform().apply(source, state_object("model"), context)

        assert result.transformed_source.startswith("@StateObject var model: ProfileViewModel\n")

    def test_missing_property(self, context):
        with pytest.raises(PropertyNotFoundError):
            StateObjectTransform().apply("var other: ProfileViewModel", state_object(), context)

    def test_type_must_match(self, context):
        with pytest.raises(PropertyNotFoundError):
            StateObjectTransform().apply("var viewModel: ProfileViewModelFactory", state_object(), context)

    def test_wrong_intent(self, context):
        with pytest.raises(UnsupportedIntentError):
            StateObjectTransform().apply("", AddImport(module="SwiftUI"), context)


class TestBindingTransform:
    """Test the line-based @Binding rewrite"""

    def test_initializer_is_dropped_and_comment_kept(self, context):
        source = "    var isOn: Bool = false // toggles"

        result = BindingTransform().apply(source, AddBinding(property="isOn", file=FILE), context)

        assert result.transformed_source == "    @Binding var isOn: Bool // toggles"

    def test_let_without_initializer(self, context):
        result = BindingTransform().apply("let title: String", AddBinding(property="title", file=FILE), context)

        assert result.transformed_source == "@Binding var title: String"

    def test_existing_wrapper_is_rejected(self, context):
        with pytest.raises(AlreadyHasWrapperError) as exc_info:
            BindingTransform().apply("@State var isOn: Bool = false",
                                     AddBinding(property="isOn", file=FILE), context)

        assert exc_info.value.wrapper == "State"

    def test_comment_marker_inside_string_initializer_is_not_a_comment(self, context):
        source = '    var url: String = "http://example.com"\n'

        result = BindingTransform().apply(source, AddBinding(property="url", file=FILE), context)

        assert result.transformed_source == "    @Binding var url: String\n"

    def test_real_comment_after_string_initializer_is_kept(self, context):
        source = 'var url: String = "http://example.com" // home page\n'

        result = BindingTransform().apply(source, AddBinding(property="url", file=FILE), context)

        assert result.transformed_source == "@Binding var url: String // home page\n"

    def test_second_statement_on_the_line_is_not_dropped(self, context):
        with pytest.raises(TransformFailedError):
            BindingTransform().apply("var isOn: Bool = false; var other = 1",
                                     AddBinding(property="isOn", file=FILE), context)

    def test_wrapper_on_the_line_above_is_rejected(self, context):
        with pytest.raises(AlreadyHasWrapperError) as exc_info:
            BindingTransform().apply("@State\nvar isOn: Bool = false\n",
                                     AddBinding(property="isOn", file=FILE), context)

        assert exc_info.value.wrapper == "State"


class TestCodeLines:
    """Test blanking of strings and comments"""

    def test_offsets_and_line_count_are_preserved(self):
        source = 'let a = "x // y" // note\n/* one\ntwo */ var b = 1\n'

        lines = code_lines(source)

        assert len(lines) == 4
        assert [len(line) for line in lines] == [len(line) for line in source.split("\n")]
        assert lines[0].rstrip() == "let a ="
        assert lines[2].strip() == "var b = 1"


class TestImportTransform:
    """Test the line-based import insertion"""

    def test_inserted_after_leading_imports(self, context):
        source = "// Header\nimport SwiftUI\nimport Combine\n\nstruct A {}\n"

        result = ImportTransform().apply(source, AddImport(module="Kingfisher"), context)

        assert result.transformed_source == "// Header\nimport SwiftUI\nimport Combine\nimport Kingfisher\n\nstruct A {}\n"
        assert result.lines_changed == 1

    def test_inserted_at_top_without_imports(self, context):
        result = ImportTransform().apply("struct A {}\n", AddImport(module="SwiftUI"), context)

        assert result.transformed_source == "import SwiftUI\nstruct A {}\n"

    def test_already_imported_is_a_no_op(self, context):
        source = "@testable import SwiftUI\nstruct A {}\n"

        result = ImportTransform().apply(source, AddImport(module="SwiftUI"), context)

        assert result.success
        assert not result.has_changes
        assert result.lines_changed == 0
        assert result.warnings == ("Module 'SwiftUI' is already imported",)

    def test_leading_import_index(self):
        assert leading_import_index(["import A", "", "import struct B.C", "let x = 1", "import D"]) == 2
        assert leading_import_index(["let x = 1"]) is None


class TestInlineCommentTransform:
    """Test comment insertion above a line"""

    def test_comment_uses_target_indentation(self, context):
        source = "func f() {\n    doWork()\n}\n"
        intent = AddInlineComment(file=FILE, line=2, reason="Runs on the main thread")

        result = InlineCommentTransform().apply(source, intent, context)

        assert result.transformed_source == "func f() {\n    // Runs on the main thread\n    doWork()\n}\n"

    def test_duplicate_comment_is_a_no_op(self, context):
        source = "func f() {\n    // Runs on the main thread\n    doWork()\n}\n"
        intent = AddInlineComment(file=FILE, line=3, reason="Runs on the main thread")

        result = InlineCommentTransform().apply(source, intent, context)

        assert not result.has_changes
        assert result.warnings

    @pytest.mark.parametrize("line", [0, 4, 99])
    def test_line_out_of_range(self, context, line):
        source = "a\nb\nc\n"

        with pytest.raises(TargetNotFoundError):
            InlineCommentTransform().apply(source, AddInlineComment(file=FILE, line=line, reason="x"), context)
