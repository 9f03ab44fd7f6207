from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from fleetguard import __version__
from fleetguard.api.dependencies import get_engine
from fleetguard.api.errors import http_exception
from fleetguard.application.policy.engine import DecisionEngine
from fleetguard.application.policy.resolver import RoleHierarchyResolver
from fleetguard.core.domain.errors import StoreUnavailable

router = APIRouter()

READINESS_PROBE_PARTY = "__readiness_probe__"


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str
    checks: dict[str, str] | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness probe - is the service running?"""
    return HealthResponse(status="healthy", version=__version__)


@router.get("/health/ready", response_model=HealthResponse)
async def readiness_check(
    engine: DecisionEngine = Depends(get_engine),
) -> HealthResponse:
    """Readiness probe - does the graph store answer within the read timeout?"""
    resolver = RoleHierarchyResolver(
        engine.graph, cache=None, timeout=engine.config.store_timeout_seconds
    )
    try:
        await resolver.party(READINESS_PROBE_PARTY)
    except StoreUnavailable as e:
        raise http_exception(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            code="not_ready",
            message="Graph store unavailable",
            details={"graph_store": f"failed: {e.message}"},
        ) from e
    return HealthResponse(
        status="ready", version=__version__, checks={"graph_store": "ok"}
    )
