"""FastAPI dependencies for enforcement points.

Record endpoints (licenses, MVRs, drug/alcohol tests, maintenance, ...)
declare ``Depends(require_party_access(...))`` instead of carrying their own
access-control block.
"""

from typing import Awaitable, Callable, Optional

import structlog
from fastapi import Depends, Request, status

from fleetguard.api.errors import http_exception, http_exception_from
from fleetguard.api.middleware.decision_scope import ACTOR_HEADER
from fleetguard.application.policy.enforcement import raise_for_decision
from fleetguard.application.policy.engine import DecisionEngine
from fleetguard.core.domain.decision import AccessDecision, ActionLevel
from fleetguard.core.domain.errors import FleetguardError


logger = structlog.get_logger(__name__)


def get_engine(request: Request) -> DecisionEngine:
    """Return the decision engine attached to the application."""
    engine = getattr(request.app.state, "engine", None)
    if engine is None:
        raise http_exception(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="not_ready",
            message="Service temporarily unavailable",
        )
    return engine


def get_acting_user(request: Request) -> str:
    """Read the authenticated user id forwarded by the upstream auth layer."""
    user_id = request.headers.get(ACTOR_HEADER)
    if not user_id:
        raise http_exception(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code="unauthenticated",
            message="Authentication required",
        )
    return user_id


def require_party_access(
    level: Optional[ActionLevel] = None,
    party_param: str = "party_id",
) -> Callable[..., Awaitable[AccessDecision]]:
    """Build a dependency that authorizes access to the party in the path.

    Usage:
        @router.delete("/drivers/{party_id}/licenses/{license_id}")
        async def delete_license(
            license_id: str,
            decision: AccessDecision = Depends(require_party_access(ActionLevel.DELETE)),
        ):
            ...

    Args:
        level: Action level of the endpoint
        party_param: Path parameter holding the target party id

    Returns:
        FastAPI dependency returning the allowing decision
    """

    async def dependency(
        request: Request,
        user_id: str = Depends(get_acting_user),
        engine: DecisionEngine = Depends(get_engine),
    ) -> AccessDecision:
        party_id = request.path_params.get(party_param)
        if not party_id:
            raise http_exception(
                status_code=status.HTTP_400_BAD_REQUEST,
                code="bad_request",
                message=f"Missing path parameter '{party_param}'",
            )

        decision = await engine.authorize(user_id, party_id, level=level)
        try:
            raise_for_decision(decision)
        except FleetguardError as e:
            logger.info(
                "authz.pep.rejected",
                path=request.url.path,
                status_code=e.status_code,
                outcome=decision.outcome.value,
            )
            raise http_exception_from(e) from e
        return decision

    return dependency
