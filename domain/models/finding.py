# domain/models/finding.py
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping
import uuid


class FindingType(str, Enum):
    # Structural gaps
    MISSING_BINDING = "missingBinding"
    UNUSED_DEPENDENCY = "unusedDependency"
    ORPHANED_VIEW = "orphanedView"
    CIRCULAR_REFERENCE = "circularReference"

    # Quality signals
    UNTESTED = "untested"
    UNDOCUMENTED = "undocumented"
    HIGH_COMPLEXITY = "highComplexity"
    DUPLICATED_LOGIC = "duplicatedLogic"
    DEAD_CODE = "deadCode"
    NAMING_VIOLATION = "namingViolation"
    UNUSED_IMPORT = "unusedImport"
    SECURITY_ISSUE = "securityIssue"

    # Architecture violations
    MODULE_BOUNDARY_VIOLATION = "moduleBoundaryViolation"
    LAYER_VIOLATION = "layerViolation"
    MISSING_ABSTRACTION = "missingAbstraction"

    # SwiftUI specific
    MISSING_STATE_OBJECT = "missingStateObject"
    MISSING_ENVIRONMENT_OBJECT = "missingEnvironmentObject"
    VIEW_WITHOUT_PREVIEW = "viewWithoutPreview"


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.INFO: 0,
    Severity.WARNING: 1,
    Severity.ERROR: 2,
    Severity.CRITICAL: 3,
}


@dataclass(frozen=True)
class SourceLocation:
    """A position in a source file; line and column are 1-based, 0 means unknown"""
    file: str
    line: int = 0
    column: int = 0

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass(frozen=True)
class Finding:
    """Immutable observation emitted by a finding producer"""
    type: FindingType
    location: SourceLocation
    message: str
    severity: Severity = Severity.WARNING
    context: Mapping[str, str] = field(default_factory=dict, hash=False)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        # Snapshot the context so the producer's dict cannot change a finding later
        object.__setattr__(self, "context", MappingProxyType(dict(self.context)))

    def context_value(self, key: str) -> str:
        """Return a populated context value or an empty string"""
        return (self.context.get(key) or "").strip()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "location": {
                "file": self.location.file,
                "line": self.location.line,
                "column": self.location.column,
            },
            "severity": self.severity.value,
            "context": dict(self.context),
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Finding":
        location = data.get("location") or {}
        kwargs = {}
        if data.get("id"):
            kwargs["id"] = data["id"]
        return cls(
            type=FindingType(data["type"]),
            location=SourceLocation(
                file=location.get("file", ""),
                line=int(location.get("line", 0)),
                column=int(location.get("column", 0)),
            ),
            message=data.get("message", ""),
            severity=Severity(data.get("severity", Severity.WARNING.value)),
            context=data.get("context") or {},
            **kwargs,
        )
