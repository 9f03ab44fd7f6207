"""API schemas."""

from fleetguard.api.schemas.authz_schemas import (
    AuthorizeRequest,
    AuthorizeResponse,
    ManagedScopeResponse,
    ScopeGrantResponse,
)
from fleetguard.api.schemas.errors import ErrorResponse

__all__ = [
    "AuthorizeRequest",
    "AuthorizeResponse",
    "ManagedScopeResponse",
    "ScopeGrantResponse",
    "ErrorResponse",
]
