# domain/models/task_intent.py
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, Type, Union


class IntentCategory(str, Enum):
    STRUCTURAL = "structural"
    DATA_FLOW = "dataFlow"
    QUALITY = "quality"
    ARCHITECTURE = "architecture"
    DOCUMENTATION = "documentation"


@dataclass(frozen=True)
class _Intent:
    kind: ClassVar[str] = ""
    category: ClassVar[IntentCategory] = IntentCategory.QUALITY

    @property
    def description(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind}
        for f in fields(self):
            data[f.name] = getattr(self, f.name)
        return data


# Data flow

@dataclass(frozen=True)
class AddStateObject(_Intent):
    property: str
    type: str
    file: str
    kind: ClassVar[str] = "addStateObject"
    category: ClassVar[IntentCategory] = IntentCategory.DATA_FLOW

    @property
    def description(self) -> str:
        return f"Add @StateObject '{self.property}: {self.type}' to {self.file}"


@dataclass(frozen=True)
class AddBinding(_Intent):
    property: str
    file: str
    kind: ClassVar[str] = "addBinding"
    category: ClassVar[IntentCategory] = IntentCategory.DATA_FLOW

    @property
    def description(self) -> str:
        return f"Add binding '{self.property}' to {self.file}"


# Structural

@dataclass(frozen=True)
class AddImport(_Intent):
    module: str
    kind: ClassVar[str] = "addImport"
    category: ClassVar[IntentCategory] = IntentCategory.STRUCTURAL

    @property
    def description(self) -> str:
        return f"Import {self.module}"


@dataclass(frozen=True)
class InjectDependency(_Intent):
    type: str
    into: str
    kind: ClassVar[str] = "injectDependency"
    category: ClassVar[IntentCategory] = IntentCategory.STRUCTURAL

    @property
    def description(self) -> str:
        return f"Inject {self.type} into {self.into}"


# Quality

@dataclass(frozen=True)
class ExtractFunction(_Intent):
    function: str
    file: str
    kind: ClassVar[str] = "extractFunction"
    category: ClassVar[IntentCategory] = IntentCategory.QUALITY

    @property
    def description(self) -> str:
        return f"Extract function from '{self.function}' in {self.file}"


@dataclass(frozen=True)
class ReduceNesting(_Intent):
    file: str
    line: int
    kind: ClassVar[str] = "reduceNesting"
    category: ClassVar[IntentCategory] = IntentCategory.QUALITY

    @property
    def description(self) -> str:
        return f"Reduce nesting depth at line {self.line} in {self.file}"


@dataclass(frozen=True)
class ReduceParameters(_Intent):
    function: str
    file: str
    kind: ClassVar[str] = "reduceParameters"
    category: ClassVar[IntentCategory] = IntentCategory.QUALITY

    @property
    def description(self) -> str:
        return f"Reduce parameters in '{self.function}' in {self.file}"


@dataclass(frozen=True)
class SplitFile(_Intent):
    path: str
    kind: ClassVar[str] = "splitFile"
    category: ClassVar[IntentCategory] = IntentCategory.QUALITY

    @property
    def description(self) -> str:
        return f"Split large file {self.path}"


@dataclass(frozen=True)
class RemoveUnusedImport(_Intent):
    file: str
    kind: ClassVar[str] = "removeUnusedImport"
    category: ClassVar[IntentCategory] = IntentCategory.QUALITY

    @property
    def description(self) -> str:
        return f"Remove unused imports in {self.file}"


# Architecture

@dataclass(frozen=True)
class RefactorToProtocol(_Intent):
    concrete: str
    kind: ClassVar[str] = "refactorToProtocol"
    category: ClassVar[IntentCategory] = IntentCategory.ARCHITECTURE

    @property
    def description(self) -> str:
        return f"Extract protocol from {self.concrete}"


@dataclass(frozen=True)
class EnforceModuleBoundary(_Intent):
    source: str
    target: str
    kind: ClassVar[str] = "enforceModuleBoundary"
    category: ClassVar[IntentCategory] = IntentCategory.ARCHITECTURE

    @property
    def description(self) -> str:
        return f"Enforce boundary: {self.source} -> {self.target}"


# Documentation

@dataclass(frozen=True)
class DocumentPublicAPI(_Intent):
    file: str
    kind: ClassVar[str] = "documentPublicAPI"
    category: ClassVar[IntentCategory] = IntentCategory.DOCUMENTATION

    @property
    def description(self) -> str:
        return f"Document public API in {self.file}"


@dataclass(frozen=True)
class AddInlineComment(_Intent):
    file: str
    line: int
    reason: str
    kind: ClassVar[str] = "addInlineComment"
    category: ClassVar[IntentCategory] = IntentCategory.DOCUMENTATION

    @property
    def description(self) -> str:
        return f"Add comment at {self.file}:{self.line}"


TaskIntent = Union[
    AddStateObject,
    AddBinding,
    AddImport,
    InjectDependency,
    ExtractFunction,
    ReduceNesting,
    ReduceParameters,
    SplitFile,
    RemoveUnusedImport,
    RefactorToProtocol,
    EnforceModuleBoundary,
    DocumentPublicAPI,
    AddInlineComment,
]

INTENT_TYPES: Dict[str, Type[_Intent]] = {
    cls.kind: cls
    for cls in (
        AddStateObject,
        AddBinding,
        AddImport,
        InjectDependency,
        ExtractFunction,
        ReduceNesting,
        ReduceParameters,
        SplitFile,
        RemoveUnusedImport,
        RefactorToProtocol,
        EnforceModuleBoundary,
        DocumentPublicAPI,
        AddInlineComment,
    )
}


def intent_from_dict(data: Dict[str, Any]) -> TaskIntent:
    """Rebuild an intent from its ``{"kind": ..., **params}`` form"""
    payload = dict(data)
    kind = payload.pop("kind", None)
    intent_cls = INTENT_TYPES.get(kind)
    if intent_cls is None:
        raise ValueError(f"Unknown intent kind: {kind!r}")
    return intent_cls(**payload)
