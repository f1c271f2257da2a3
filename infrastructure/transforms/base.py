# infrastructure/transforms/base.py
import difflib
from abc import ABC, abstractmethod
from typing import ClassVar, Sequence, Tuple, Type

from domain.errors import UnsupportedIntentError
from domain.models.task_intent import TaskIntent
from domain.models.transform import TransformContext, TransformResult

# Wrappers that make a property ineligible for another wrapper
EXISTING_WRAPPERS = frozenset({
    "StateObject",
    "ObservedObject",
    "State",
    "Binding",
    "Environment",
    "EnvironmentObject",
})

# Modules whose symbols are used unqualified, so usage cannot be detected
IMPLICIT_MODULES = frozenset({"Foundation", "SwiftUI", "UIKit", "AppKit", "Combine"})


def wrapper_for_type(type_name: str) -> str:
    """Objects a view creates itself are owned (@StateObject); others are observed"""
    if type_name.endswith("ViewModel") or type_name.endswith("Store"):
        return "StateObject"
    return "ObservedObject"


def unified_diff(original: str, modified: str, file_path: str) -> str:
    return "\n".join(
        difflib.unified_diff(
            original.splitlines(),
            modified.splitlines(),
            fromfile=f"a/{file_path}",
            tofile=f"b/{file_path}",
            lineterm="",
        )
    )


def count_changed_lines(original: str, modified: str) -> int:
    matcher = difflib.SequenceMatcher(a=original.splitlines(), b=modified.splitlines(), autojunk=False)
    return sum(
        max(i2 - i1, j2 - j1)
        for tag, i1, i2, j1, j2 in matcher.get_opcodes()
        if tag != "equal"
    )


class DeterministicTransform(ABC):
    """A pure source rewrite for one or more intent kinds.

    ``apply`` either returns a result or raises a ``RefactorError``; it never
    touches the filesystem.
    """

    supported_intents: ClassVar[Tuple[str, ...]] = ()

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        ...

    def _expect(self, intent: TaskIntent, *intent_types: Type) -> None:
        if not isinstance(intent, intent_types):
            raise UnsupportedIntentError(intent.kind, f"{self.name} handles {', '.join(self.supported_intents)}")

    def _result(self, source: str, transformed: str, context: TransformContext,
                warnings: Sequence[str] = ()) -> TransformResult:
        return TransformResult(
            original_source=source,
            transformed_source=transformed,
            diff=unified_diff(source, transformed, context.file_path),
            lines_changed=count_changed_lines(source, transformed),
            warnings=tuple(warnings),
        )

    def _no_op(self, source: str, warning: str) -> TransformResult:
        return TransformResult.unchanged(source, warnings=(warning,))
