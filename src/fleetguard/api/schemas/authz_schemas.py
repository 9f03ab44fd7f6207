"""Request/response schemas for the authorization sidecar."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from fleetguard.core.domain.decision import AccessDecision, ActionLevel, ManagedScope


class AuthorizeRequest(BaseModel):
    """Body of ``POST /authorize``."""

    model_config = ConfigDict(populate_by_name=True)

    acting_user_id: str = Field(default="", alias="actingUserId")
    target_party_id: str = Field(..., min_length=1, alias="targetPartyId")
    level: Optional[ActionLevel] = None


class AuthorizeResponse(BaseModel):
    """Verdict returned to the calling service."""

    allowed: bool
    path: str

    @classmethod
    def from_decision(cls, decision: AccessDecision) -> "AuthorizeResponse":
        return cls(allowed=decision.allowed, path=decision.path.value)


class ScopeGrantResponse(BaseModel):
    path: str
    organization_id: Optional[str] = Field(default=None, serialization_alias="organizationId")
    location_id: Optional[str] = Field(default=None, serialization_alias="locationId")


class ManagedScopeResponse(BaseModel):
    """Operator view of what an actor controls."""

    user_id: str = Field(serialization_alias="userId")
    management_level: str = Field(serialization_alias="managementLevel")
    grants: list[ScopeGrantResponse]

    @classmethod
    def from_scope(cls, scope: ManagedScope, level: str) -> "ManagedScopeResponse":
        return cls(
            user_id=scope.user_id,
            management_level=level,
            grants=[
                ScopeGrantResponse(
                    path=g.path.value,
                    organization_id=g.organization_id,
                    location_id=g.location_id,
                )
                for g in scope.grants
            ],
        )
