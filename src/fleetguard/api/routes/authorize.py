"""Sidecar authorization endpoints.

``POST /authorize`` is the service-to-service contract: ``{allowed, path}``
on a decision, 503 when the decision is indeterminate.
"""

from fastapi import APIRouter, Depends, status

from fleetguard.api.dependencies import get_acting_user, get_engine
from fleetguard.api.errors import http_exception, http_exception_from
from fleetguard.api.schemas.authz_schemas import (
    AuthorizeRequest,
    AuthorizeResponse,
    ManagedScopeResponse,
)
from fleetguard.application.policy.engine import DecisionEngine
from fleetguard.core.domain.errors import (
    AccessDenied,
    AuthorizationIndeterminate,
    StoreUnavailable,
)

router = APIRouter()


@router.post("/authorize", response_model=AuthorizeResponse)
async def authorize(
    body: AuthorizeRequest,
    engine: DecisionEngine = Depends(get_engine),
) -> AuthorizeResponse:
    """Decide whether ``actingUserId`` may access ``targetPartyId``'s records."""
    if not body.acting_user_id.strip():
        raise http_exception(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="unauthenticated",
            message="Authentication required",
        )

    decision = await engine.authorize(
        body.acting_user_id, body.target_party_id, level=body.level
    )
    if decision.indeterminate:
        raise http_exception_from(AuthorizationIndeterminate())
    return AuthorizeResponse.from_decision(decision)


@router.get("/scope/{user_id}", response_model=ManagedScopeResponse, response_model_by_alias=True)
async def managed_scope(
    user_id: str,
    acting_user: str = Depends(get_acting_user),
    engine: DecisionEngine = Depends(get_engine),
) -> ManagedScopeResponse:
    """List the organizations and locations ``user_id`` controls.

    Only the actor's own scope can be listed.
    """
    if acting_user != user_id:
        raise http_exception_from(AccessDenied())
    try:
        scope = await engine.managed_scope(user_id)
        level = await engine.management_level(user_id)
    except StoreUnavailable as e:
        raise http_exception_from(AuthorizationIndeterminate()) from e
    return ManagedScopeResponse.from_scope(scope, level.value)
