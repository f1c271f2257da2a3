# domain/models/policy_schema.py
"""
JSON interchange format for approval policies.

Teams keep custom policies in version-controlled JSON documents:

    {
      "name": "Team",
      "version": "1.0",
      "rules": [
        {"condition": {"type": "intentCategory", "value": "documentation"},
         "decision": "allow", "reason": "Docs are low-risk"}
      ],
      "defaultDecision": "requireHuman"
    }
"""
import json
from pathlib import Path
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from domain.errors import PolicySchemaError, UnknownPolicyError
from domain.models.agent_task import ScopeType
from domain.models.approval_policy import (
    AllOf,
    AnyOf,
    ApprovalPolicy,
    BUILTIN_POLICIES,
    ConfidenceAbove,
    ConfidenceBelow,
    FilePattern,
    IntentCategoryIs,
    IntentTypeIs,
    MaxSteps,
    Not,
    PolicyCondition,
    PolicyDecision,
    PolicyRule,
    ScopeTypeIs,
)
from domain.models.task_intent import INTENT_TYPES, IntentCategory


class ConditionSchema(BaseModel):
    type: str = Field(..., description="Condition type, e.g. intentCategory or all")
    value: Optional[Union[int, float, str]] = Field(None, description="Scalar operand")
    conditions: Optional[List["ConditionSchema"]] = Field(None, description="Operands of all/any/not")

    def to_condition(self) -> PolicyCondition:
        if self.type == "intentCategory":
            return IntentCategoryIs(_enum_value(IntentCategory, self._string(), self.type))
        if self.type == "intentType":
            kind = self._string()
            if kind not in INTENT_TYPES:
                raise PolicySchemaError(f"intentType: unknown intent kind '{kind}'", identifier=kind)
            return IntentTypeIs(kind)
        if self.type == "scopeType":
            return ScopeTypeIs(_enum_value(ScopeType, self._string(), self.type))
        if self.type == "confidenceAbove":
            return ConfidenceAbove(self._number())
        if self.type == "confidenceBelow":
            return ConfidenceBelow(self._number())
        if self.type == "filePattern":
            return FilePattern(self._string())
        if self.type == "maxSteps":
            return MaxSteps(int(self._number()))
        if self.type in ("all", "any"):
            if not self.conditions:
                raise PolicySchemaError(f"{self.type} requires a conditions array", identifier=self.type)
            operands = tuple(sub.to_condition() for sub in self.conditions)
            return AllOf(operands) if self.type == "all" else AnyOf(operands)
        if self.type == "not":
            if not self.conditions or len(self.conditions) != 1:
                raise PolicySchemaError("not requires exactly one condition", identifier=self.type)
            return Not(self.conditions[0].to_condition())
        raise PolicySchemaError(f"Unknown condition type: {self.type}", identifier=self.type)

    def _string(self) -> str:
        if not isinstance(self.value, str):
            raise PolicySchemaError(f"{self.type} requires a string value", identifier=self.type)
        return self.value

    def _number(self) -> float:
        if isinstance(self.value, bool) or not isinstance(self.value, (int, float)):
            raise PolicySchemaError(f"{self.type} requires a numeric value", identifier=self.type)
        return float(self.value)


ConditionSchema.model_rebuild()


class RuleSchema(BaseModel):
    condition: ConditionSchema
    decision: str
    reason: Optional[str] = None

    def to_rule(self) -> PolicyRule:
        return PolicyRule(
            condition=self.condition.to_condition(),
            decision=_decision(self.decision),
            reason=self.reason,
        )


class PolicySchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    version: str = "1.0"
    rules: List[RuleSchema] = Field(default_factory=list)
    default_decision: str = Field(PolicyDecision.REQUIRE_HUMAN.value, alias="defaultDecision")

    def to_policy(self) -> ApprovalPolicy:
        return ApprovalPolicy(
            name=self.name,
            description=self.description or "",
            rules=tuple(rule.to_rule() for rule in self.rules),
            default_decision=_decision(self.default_decision),
        )


def _decision(raw: str) -> PolicyDecision:
    return _enum_value(PolicyDecision, raw, "decision")


def _enum_value(enum_cls, raw: str, field_name: str):
    try:
        return enum_cls(raw)
    except ValueError:
        raise PolicySchemaError(f"Invalid {field_name}: {raw}", identifier=raw) from None


# Policy -> document

def condition_to_schema(condition: PolicyCondition) -> ConditionSchema:
    if isinstance(condition, IntentCategoryIs):
        return ConditionSchema(type=condition.type_name, value=condition.category.value)
    if isinstance(condition, IntentTypeIs):
        return ConditionSchema(type=condition.type_name, value=condition.kind)
    if isinstance(condition, ScopeTypeIs):
        return ConditionSchema(type=condition.type_name, value=condition.scope_type.value)
    if isinstance(condition, (ConfidenceAbove, ConfidenceBelow)):
        return ConditionSchema(type=condition.type_name, value=float(condition.threshold))
    if isinstance(condition, FilePattern):
        return ConditionSchema(type=condition.type_name, value=condition.pattern)
    if isinstance(condition, MaxSteps):
        return ConditionSchema(type=condition.type_name, value=int(condition.limit))
    if isinstance(condition, (AllOf, AnyOf)):
        return ConditionSchema(
            type=condition.type_name,
            conditions=[condition_to_schema(sub) for sub in condition.conditions],
        )
    if isinstance(condition, Not):
        return ConditionSchema(type=condition.type_name, conditions=[condition_to_schema(condition.condition)])
    raise PolicySchemaError(f"Cannot serialize condition {condition!r}")


def policy_to_schema(policy: ApprovalPolicy) -> PolicySchema:
    return PolicySchema(
        name=policy.name,
        description=policy.description or None,
        rules=[
            RuleSchema(
                condition=condition_to_schema(rule.condition),
                decision=rule.decision.value,
                reason=rule.reason,
            )
            for rule in policy.rules
        ],
        default_decision=policy.default_decision.value,
    )


def policy_to_json(policy: ApprovalPolicy, indent: Optional[int] = 2) -> str:
    document = policy_to_schema(policy).model_dump(by_alias=True, exclude_none=True)
    return json.dumps(document, indent=indent, sort_keys=True)


# Document -> policy

def policy_from_json(text: str) -> ApprovalPolicy:
    try:
        schema = PolicySchema.model_validate_json(text)
    except ValidationError as e:
        raise PolicySchemaError(f"Policy parse error: {e}") from e
    return schema.to_policy()


def load_policy(path: Union[str, Path]) -> ApprovalPolicy:
    policy_path = Path(path)
    if not policy_path.is_file():
        raise PolicySchemaError(f"Policy file not found: {policy_path}", identifier=str(policy_path))
    return policy_from_json(policy_path.read_text(encoding="utf-8"))


def resolve_policy(name_or_path: str) -> ApprovalPolicy:
    """Return a built-in policy by name, or load a policy document from disk"""
    builtin = BUILTIN_POLICIES.get(name_or_path.strip().lower())
    if builtin is not None:
        return builtin
    if Path(name_or_path).is_file():
        return load_policy(name_or_path)
    raise UnknownPolicyError(name_or_path)
