# domain/models/transform.py
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from domain.models.task_intent import TaskIntent


@dataclass(frozen=True)
class TransformContext:
    """Parameters a transform needs beyond the intent itself"""
    file_path: str
    property_name: Optional[str] = None
    type_name: Optional[str] = None
    line_number: Optional[int] = None


@dataclass(frozen=True)
class TransformResult:
    """Immutable outcome of one transform (or of a whole pipeline pass)"""
    original_source: str
    transformed_source: str
    diff: str
    lines_changed: int
    warnings: Tuple[str, ...] = ()
    success: bool = True

    def __post_init__(self):
        object.__setattr__(self, "warnings", tuple(self.warnings))
        if not self.success and self.transformed_source != self.original_source:
            raise ValueError("A failed transform must not carry a mutated source")

    @property
    def has_changes(self) -> bool:
        return self.original_source != self.transformed_source

    @classmethod
    def unchanged(cls, source: str, diff: str = "", warnings: Tuple[str, ...] = ()) -> "TransformResult":
        return cls(
            original_source=source,
            transformed_source=source,
            diff=diff,
            lines_changed=0,
            warnings=warnings,
        )

    @classmethod
    def failed(cls, source: str, warnings: Tuple[str, ...] = ()) -> "TransformResult":
        return cls(
            original_source=source,
            transformed_source=source,
            diff="",
            lines_changed=0,
            warnings=warnings,
            success=False,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "original_source": self.original_source,
            "transformed_source": self.transformed_source,
            "diff": self.diff,
            "lines_changed": self.lines_changed,
            "warnings": list(self.warnings),
            "success": self.success,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransformResult":
        return cls(
            original_source=data["original_source"],
            transformed_source=data["transformed_source"],
            diff=data.get("diff", ""),
            lines_changed=data.get("lines_changed", 0),
            warnings=tuple(data.get("warnings", ())),
            success=data.get("success", True),
        )


@dataclass(frozen=True)
class TransformRecord:
    """One intent that was applied successfully inside a pipeline pass"""
    intent: TaskIntent
    transform: str
    lines_changed: int
    diff: str
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PipelineResult:
    """Outcome of applying an ordered list of intents to one buffer.

    On failure ``transformed_source`` is the original buffer; ``applied``
    still lists the intents that succeeded before the failing one.
    """
    original_source: str
    transformed_source: str
    applied: Tuple[TransformRecord, ...] = ()
    failed_intent: Optional[TaskIntent] = None
    error: Optional[Dict[str, Any]] = None
    warnings: Tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        return self.failed_intent is None and self.error is None

    @property
    def total_lines_changed(self) -> int:
        return sum(record.lines_changed for record in self.applied)

    @property
    def combined_diff(self) -> str:
        return "\n".join(record.diff for record in self.applied if record.diff)

    def to_transform_result(self) -> TransformResult:
        warnings: List[str] = list(self.warnings)
        if self.error:
            warnings.append(f"{self.error['kind']}: {self.error['message']}")
        if not self.success:
            if self.applied:
                done = ", ".join(record.intent.kind for record in self.applied)
                warnings.append(f"rolled back after applying: {done}")
            return TransformResult.failed(self.original_source, warnings=tuple(warnings))
        return TransformResult(
            original_source=self.original_source,
            transformed_source=self.transformed_source,
            diff=self.combined_diff,
            lines_changed=self.total_lines_changed,
            warnings=tuple(warnings),
        )
