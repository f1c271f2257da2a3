# infrastructure/web/policy_api.py
import json
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from domain.errors import UnknownPolicyError
from domain.models.approval_policy import BUILTIN_POLICIES, ApprovalPolicy
from domain.models.policy_schema import policy_from_json, policy_to_schema
from shared.logging import logger

router = APIRouter(prefix="/policies", tags=["approval-policies"])


class PolicySummary(BaseModel):
    key: str
    name: str
    description: Optional[str] = None
    rule_count: int
    default_decision: str


class PolicyValidationResponse(BaseModel):
    valid: bool
    name: str
    rule_count: int
    document: Dict[str, Any]


def builtin_policy(name: str) -> ApprovalPolicy:
    # Only built-ins are served; policy files on the server are not exposed
    policy = BUILTIN_POLICIES.get(name.strip().lower())
    if policy is None:
        raise UnknownPolicyError(name)
    return policy


@router.get("", response_model=List[PolicySummary])
async def list_policies():
    """List the built-in approval policies"""
    return [
        PolicySummary(
            key=key,
            name=policy.name,
            description=policy.description or None,
            rule_count=len(policy.rules),
            default_decision=policy.default_decision.value,
        )
        for key, policy in BUILTIN_POLICIES.items()
    ]


@router.get("/{name}")
async def get_policy(name: str):
    """Return a built-in policy as an interchange document"""
    return policy_to_schema(builtin_policy(name)).model_dump(by_alias=True, exclude_none=True)


@router.post("/validate", response_model=PolicyValidationResponse)
async def validate_policy(document: Dict[str, Any]):
    """Parse a policy document; invalid documents come back as invalidPolicy errors"""
    policy = policy_from_json(json.dumps(document))

    logger.info("Policy document validated", policy=policy.name, rules=len(policy.rules))

    return PolicyValidationResponse(
        valid=True,
        name=policy.name,
        rule_count=len(policy.rules),
        document=policy_to_schema(policy).model_dump(by_alias=True, exclude_none=True),
    )

