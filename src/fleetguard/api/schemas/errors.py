"""Error payload returned by the sidecar and by enforcement dependencies."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from fleetguard.core.domain.errors import FleetguardError


class ErrorResponse(BaseModel):
    """Generic error body; never names the predicate that failed."""

    code: str = Field(..., description="Machine-readable code, e.g. forbidden")
    message: str
    details: dict[str, Any] | None = None
    detail: str | None = None

    @classmethod
    def from_error(cls, error: FleetguardError) -> "ErrorResponse":
        """Build the public payload for a domain error, dropping its details."""
        return cls(code=error.code, message=error.message, detail=error.message)
