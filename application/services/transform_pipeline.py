# application/services/transform_pipeline.py
from typing import Dict, List, Sequence

from domain.errors import RefactorError
from domain.models.task_intent import TaskIntent
from domain.models.transform import PipelineResult, TransformContext, TransformRecord
from infrastructure.transforms.registry import TransformRegistry
from shared.logging import log_transform_applied

# Lower runs first when ordering by dependency
INTENT_PRIORITY: Dict[str, int] = {
    "addImport": 0,
    "addStateObject": 1,
    "addBinding": 1,
    "extractFunction": 2,
    "reduceNesting": 3,
    "reduceParameters": 3,
    "splitFile": 4,
}
_UNRANKED = 99


def order_by_dependency(intents: Sequence[TaskIntent]) -> List[TaskIntent]:
    """Imports, then wrappers, then structural rewrites; stable within a rank"""
    return sorted(intents, key=lambda intent: INTENT_PRIORITY.get(intent.kind, _UNRANKED))


class TransformPipeline:
    """Applies an ordered list of intents to one source buffer.

    Fail-fast: the first error stops the pass and the original buffer is
    returned untouched; ``applied`` still lists what succeeded before the
    failure so the caller can report it. Holds no state between calls.
    """

    def __init__(self, registry: TransformRegistry):
        self.registry = registry

    def execute(self,
                intents: Sequence[TaskIntent],
                source: str,
                context: TransformContext,
                order_by_dependency_first: bool = False) -> PipelineResult:
        ordered = order_by_dependency(intents) if order_by_dependency_first else list(intents)

        current = source
        applied: List[TransformRecord] = []
        warnings: List[str] = []

        for intent in ordered:
            try:
                transform = self.registry.transform_for(intent)
                result = transform.apply(current, intent, context)
            except RefactorError as e:
                log_transform_applied(
                    file_path=context.file_path,
                    intent_kind=intent.kind,
                    transform=self._transform_name(intent),
                    lines_changed=0,
                    success=False,
                    error_kind=e.kind,
                    identifier=e.identifier,
                )
                return PipelineResult(
                    original_source=source,
                    transformed_source=source,
                    applied=tuple(applied),
                    failed_intent=intent,
                    error=e.to_dict(),
                    warnings=tuple(warnings),
                )

            current = result.transformed_source
            warnings.extend(result.warnings)
            applied.append(TransformRecord(
                intent=intent,
                transform=transform.name,
                lines_changed=result.lines_changed,
                diff=result.diff,
                warnings=result.warnings,
            ))
            log_transform_applied(
                file_path=context.file_path,
                intent_kind=intent.kind,
                transform=transform.name,
                lines_changed=result.lines_changed,
                success=True,
            )

        return PipelineResult(
            original_source=source,
            transformed_source=current,
            applied=tuple(applied),
            warnings=tuple(warnings),
        )

    def _transform_name(self, intent: TaskIntent) -> str:
        if self.registry.supports(intent):
            return self.registry.transform_for(intent).name
        return "none"
