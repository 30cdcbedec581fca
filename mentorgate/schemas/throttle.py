from __future__ import annotations

import math
from typing import Literal

from pydantic import BaseModel, Field

from mentorgate.throttling.binder import RouteBinding
from mentorgate.throttling.guard import DecisionReason, ThrottleDecision
from mentorgate.throttling.policies import RateLimitPolicy


class PolicyResponse(BaseModel):
    """A registered rate limit policy."""

    name: str
    limit: int = Field(..., description="Maximum admitted requests per window")
    window_seconds: int = Field(..., description="Window length in seconds")

    @classmethod
    def from_policy(cls, policy: RateLimitPolicy) -> "PolicyResponse":
        return cls(name=policy.name, limit=policy.limit, window_seconds=policy.window_seconds)


class RouteBindingResponse(BaseModel):
    """The policy (and tier overrides) bound to a route."""

    route_id: str
    policy: PolicyResponse
    scope: Literal["route", "policy"]
    tiers: dict[str, PolicyResponse] = Field(default_factory=dict)

    @classmethod
    def from_binding(cls, binding: RouteBinding) -> "RouteBindingResponse":
        return cls(
            route_id=binding.route_id,
            policy=PolicyResponse.from_policy(binding.policy),
            scope=binding.scope,
            tiers={
                tier: PolicyResponse.from_policy(policy)
                for tier, policy in binding.tier_policies.items()
            },
        )


class CheckRequest(BaseModel):
    """Admission check issued on behalf of another service."""

    route_id: str = Field(..., min_length=1, description="Route id, e.g. 'POST /learning/roadmap'")
    identity: str = Field(..., min_length=1, description="Authenticated caller id or IP")
    tier: str | None = Field(None, description="Optional subscription tier, e.g. 'premium'")


class DecisionResponse(BaseModel):
    """Admission verdict for one counted request."""

    admitted: bool
    reason: DecisionReason
    route_id: str
    policy: str
    limit: int
    remaining: int
    reset_at: int = Field(..., description="UNIX epoch seconds when the window ends")

    @classmethod
    def from_decision(cls, decision: ThrottleDecision) -> "DecisionResponse":
        return cls(
            admitted=decision.admitted,
            reason=decision.reason,
            route_id=decision.route_id,
            policy=decision.policy,
            limit=decision.limit,
            remaining=decision.remaining,
            reset_at=math.ceil(decision.reset_at),
        )


class ResetRequest(BaseModel):
    route_id: str = Field(..., min_length=1)
    identity: str = Field(..., min_length=1)
    tier: str | None = None


class ResetResponse(BaseModel):
    removed: bool
