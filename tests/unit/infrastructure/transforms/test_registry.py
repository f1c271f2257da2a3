# tests/unit/infrastructure/transforms/test_registry.py
import pytest

from domain.errors import UnsupportedIntentError
from domain.models.task_intent import AddImport, AddStateObject, ExtractFunction, SplitFile
from domain.models.transform import TransformContext
from infrastructure.transforms.registry import TransformRegistry
from infrastructure.transforms.syntax_transforms import SyntaxStateObjectTransform
from infrastructure.transforms.text_transforms import ImportTransform, StateObjectTransform


class TestTransformRegistry:
    """Test intent -> transform lookup"""

    def test_text_based_registry(self):
        registry = TransformRegistry.text_based()

        assert registry.available == ["addBinding", "addImport", "addInlineComment", "addStateObject"]
        assert isinstance(registry.transform_for(AddStateObject(property="a", type="VM", file="A.swift")),
                          StateObjectTransform)
        assert not registry.supports(ExtractFunction(function="f", file="A.swift"))

    def test_syntax_based_registry_covers_more_intents(self):
        registry = TransformRegistry.syntax_based()

        assert registry.available == [
            "addBinding",
            "addImport",
            "addInlineComment",
            "addStateObject",
            "extractFunction",
            "reduceNesting",
            "removeUnusedImport",
        ]
        assert isinstance(registry.transform_for(AddStateObject(property="a", type="VM", file="A.swift")),
                          SyntaxStateObjectTransform)

    def test_unsupported_intent(self):
        with pytest.raises(UnsupportedIntentError) as exc_info:
            TransformRegistry.syntax_based().transform_for(SplitFile(path="A.swift"))

        assert exc_info.value.identifier == "splitFile"

    def test_later_registration_replaces_earlier(self):
        registry = TransformRegistry.syntax_based()
        text_import = ImportTransform()

        registry.register(text_import)

        assert registry.transform_for(AddImport(module="SwiftUI")) is text_import

    def test_apply_dispatches(self):
        registry = TransformRegistry.text_based()

        result = registry.apply("struct A {}", AddImport(module="SwiftUI"), TransformContext(file_path="A.swift"))

        assert result.transformed_source == "import SwiftUI\nstruct A {}"

    @pytest.mark.parametrize("strategy", ["syntax", "text"])
    def test_for_strategy(self, strategy):
        assert TransformRegistry.for_strategy(strategy).supports(AddImport(module="SwiftUI"))

    def test_unknown_strategy(self):
        with pytest.raises(ValueError):
            TransformRegistry.for_strategy("regex")
