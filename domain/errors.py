# domain/errors.py
from typing import Any, Dict, Optional


class RefactorError(Exception):
    """Base error for the task pipeline.

    Every error carries a stable ``kind`` and the offending ``identifier``
    (property, function, module or policy name) so callers can surface the
    specific failure instead of a generic message.
    """

    kind = "refactorError"

    def __init__(self, message: str, identifier: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.identifier = identifier

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "identifier": self.identifier,
            "message": self.message,
        }


# Transform errors

class UnsupportedIntentError(RefactorError):
    kind = "unsupportedIntent"

    def __init__(self, intent_kind: str, detail: Optional[str] = None):
        message = f"No transform can handle intent '{intent_kind}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message, identifier=intent_kind)


class PropertyNotFoundError(RefactorError):
    kind = "propertyNotFound"

    def __init__(self, property_name: str):
        super().__init__(f"Property '{property_name}' not found", identifier=property_name)


class TargetNotFoundError(RefactorError):
    """Zero matches for a non-property target (function, line, import)"""

    kind = "targetNotFound"

    def __init__(self, target: str, detail: Optional[str] = None):
        super().__init__(detail or f"Target '{target}' not found", identifier=target)


class MultipleMatchesError(RefactorError):
    kind = "multipleMatches"

    def __init__(self, identifier: str, count: int):
        super().__init__(
            f"'{identifier}' matched {count} declarations; refusing to pick one",
            identifier=identifier,
        )
        self.count = count

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["count"] = self.count
        return data


class AlreadyHasWrapperError(RefactorError):
    kind = "alreadyHasWrapper"

    def __init__(self, property_name: str, wrapper: Optional[str] = None):
        message = f"Property '{property_name}' already has a property wrapper"
        if wrapper:
            message = f"{message} (@{wrapper})"
        super().__init__(message, identifier=property_name)
        self.wrapper = wrapper


class TransformFailedError(RefactorError):
    kind = "transformFailed"


# Policy errors

class UnknownPolicyError(RefactorError):
    kind = "unknownPolicy"

    def __init__(self, name: str):
        super().__init__(f"Unknown approval policy '{name}'", identifier=name)


class PolicySchemaError(RefactorError):
    kind = "invalidPolicy"


# Task lifecycle errors

class InvalidTransitionError(RefactorError):
    kind = "invalidTransition"

    def __init__(self, task_id: str, current: str, target: str):
        super().__init__(
            f"Task {task_id} cannot move from '{current}' to '{target}'",
            identifier=task_id,
        )
        self.current = current
        self.target = target


class TaskNotApprovedError(RefactorError):
    kind = "taskNotApproved"

    def __init__(self, task_id: str):
        super().__init__(f"Task {task_id} has not been approved", identifier=task_id)


# Persistence

class RunStoreError(RefactorError):
    """Opaque persistence failure, raised with the original error chained"""

    kind = "runStoreError"
