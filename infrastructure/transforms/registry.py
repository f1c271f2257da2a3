# infrastructure/transforms/registry.py
from typing import Dict, List, Optional

from domain.errors import UnsupportedIntentError
from domain.models.task_intent import TaskIntent
from domain.models.transform import TransformContext, TransformResult
from infrastructure.syntax.swift_tree import SwiftSyntaxCapability
from infrastructure.transforms.base import DeterministicTransform
from infrastructure.transforms.complexity_transforms import ExtractFunctionTransform, GuardClauseTransform
from infrastructure.transforms.syntax_transforms import (
    RemoveUnusedImportTransform,
    SyntaxBindingTransform,
    SyntaxImportTransform,
    SyntaxStateObjectTransform,
)
from infrastructure.transforms.text_transforms import (
    BindingTransform,
    ImportTransform,
    InlineCommentTransform,
    StateObjectTransform,
)
from shared.logging import logger


class TransformRegistry:
    """Maps each intent kind to exactly one transform.

    Built once (usually through ``text_based()`` or ``syntax_based()``) and
    handed to the pipeline; there is no process-wide instance.
    """

    def __init__(self, transforms: Optional[List[DeterministicTransform]] = None):
        self._transforms: Dict[str, DeterministicTransform] = {}
        for transform in transforms or []:
            self.register(transform)

    def register(self, transform: DeterministicTransform):
        """Register a transform; a later registration for a kind replaces the earlier one"""
        for kind in transform.supported_intents:
            previous = self._transforms.get(kind)
            if previous is not None and previous is not transform:
                logger.debug("Transform replaced",
                            intent=kind,
                            previous=previous.name,
                            transform=transform.name)
            self._transforms[kind] = transform

    def transform_for(self, intent: TaskIntent) -> DeterministicTransform:
        transform = self._transforms.get(intent.kind)
        if transform is None:
            raise UnsupportedIntentError(intent.kind)
        return transform

    def supports(self, intent: TaskIntent) -> bool:
        return intent.kind in self._transforms

    def apply(self, source: str, intent: TaskIntent, context: TransformContext) -> TransformResult:
        return self.transform_for(intent).apply(source, intent, context)

    @property
    def available(self) -> List[str]:
        return sorted(self._transforms)

    @classmethod
    def text_based(cls) -> "TransformRegistry":
        return cls([
            StateObjectTransform(),
            BindingTransform(),
            ImportTransform(),
            InlineCommentTransform(),
        ])

    @classmethod
    def syntax_based(cls, syntax: Optional[SwiftSyntaxCapability] = None) -> "TransformRegistry":
        """Tree-based transforms; inline comments stay line-based"""
        syntax = syntax or SwiftSyntaxCapability()
        return cls([
            SyntaxStateObjectTransform(syntax),
            SyntaxBindingTransform(syntax),
            SyntaxImportTransform(syntax),
            RemoveUnusedImportTransform(syntax),
            GuardClauseTransform(syntax),
            ExtractFunctionTransform(syntax),
            InlineCommentTransform(),
        ])

    @classmethod
    def for_strategy(cls, strategy: str) -> "TransformRegistry":
        if strategy == "text":
            return cls.text_based()
        if strategy == "syntax":
            return cls.syntax_based()
        raise ValueError(f"Unknown transform strategy: {strategy!r} (expected 'syntax' or 'text')")
