# infrastructure/transforms/syntax_transforms.py
from typing import List, Optional, Tuple

from domain.errors import (
    AlreadyHasWrapperError,
    MultipleMatchesError,
    PropertyNotFoundError,
    TransformFailedError,
)
from domain.models.task_intent import AddBinding, AddImport, AddStateObject, RemoveUnusedImport, TaskIntent
from domain.models.transform import TransformContext, TransformResult
from infrastructure.syntax.swift_tree import SourceTree, SwiftSyntaxCapability, VariableDecl, splice
from infrastructure.transforms.base import (
    EXISTING_WRAPPERS,
    IMPLICIT_MODULES,
    DeterministicTransform,
    wrapper_for_type,
)


class SyntaxTransform(DeterministicTransform):
    """Base for transforms that work on the parsed declaration tree"""

    def __init__(self, syntax: Optional[SwiftSyntaxCapability] = None):
        self.syntax = syntax or SwiftSyntaxCapability()

    def _single_property(self, tree: SourceTree, property_name: str,
                         type_name: Optional[str] = None) -> VariableDecl:
        matches = self.syntax.locate(tree, property_name, type_name)
        if not matches:
            raise PropertyNotFoundError(property_name)
        if len(matches) > 1:
            raise MultipleMatchesError(property_name, len(matches))

        decl = matches[0]
        for attribute in decl.attribute_names:
            if attribute in EXISTING_WRAPPERS:
                raise AlreadyHasWrapperError(property_name, attribute)
        return decl


class SyntaxStateObjectTransform(SyntaxTransform):
    supported_intents = ("addStateObject",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, AddStateObject)

        tree = self.syntax.parse(source)
        decl = self._single_property(tree, intent.property, intent.type)
        rewritten = self.syntax.mutate_attributes(
            tree, decl,
            add=(wrapper_for_type(intent.type),),
            specifier="var",
        )
        return self._result(source, self.syntax.render(rewritten), context)


class SyntaxBindingTransform(SyntaxTransform):
    supported_intents = ("addBinding",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, AddBinding)

        tree = self.syntax.parse(source)
        decl = self._single_property(tree, intent.property)
        if decl.type_text is None:
            raise TransformFailedError(
                f"Property '{intent.property}' needs an explicit type to become a @Binding",
                identifier=intent.property,
            )

        rewritten = self.syntax.mutate_attributes(
            tree, decl,
            add=("Binding",),
            specifier="var",
            drop_initializer=True,
        )
        return self._result(source, self.syntax.render(rewritten), context)


class SyntaxImportTransform(SyntaxTransform):
    supported_intents = ("addImport",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, AddImport)

        tree = self.syntax.parse(source)
        if any(decl.module == intent.module for decl in tree.imports):
            return self._no_op(source, f"Module '{intent.module}' is already imported")

        leading = tree.leading_imports()
        if leading:
            at = tree.line_end(leading[-1].end)
            edit = (at, at, f"\nimport {intent.module}")
        else:
            edit = (0, 0, f"import {intent.module}\n")

        return self._result(source, self.syntax.render(splice(tree, [edit])), context)


class RemoveUnusedImportTransform(SyntaxTransform):
    """Drops imports whose module is never referenced.

    Modules in IMPLICIT_MODULES and imports carrying attributes
    (``@testable``, ``@_exported``) are always kept.
    """

    supported_intents = ("removeUnusedImport",)

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        self._expect(intent, RemoveUnusedImport)

        tree = self.syntax.parse(source)
        used = tree.identifiers(exclude=[(decl.start, decl.end) for decl in tree.imports])

        unused = [
            decl for decl in tree.imports
            if not decl.attributes
            and decl.module not in IMPLICIT_MODULES
            and decl.root_module not in IMPLICIT_MODULES
            and decl.root_module not in used
        ]
        if not unused:
            return self._no_op(source, "No unused imports found")

        edits: List[Tuple[int, int, str]] = []
        for decl in unused:
            start = tree.line_start(decl.start)
            end = tree.line_end(decl.end)
            if source.startswith("\r\n", end):
                end += 2
            elif end < len(source):
                end += 1
            edits.append((start, end, ""))

        removed = ", ".join(decl.module for decl in unused)
        return self._result(
            source,
            self.syntax.render(splice(tree, edits)),
            context,
            warnings=(f"Removed unused imports: {removed}",),
        )
