"""Domain-specific exception types for Fleetguard."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass
class FleetguardError(Exception):
    """Base exception for Fleetguard domain errors."""

    message: str
    code: str = "fleetguard_error"
    details: Dict[str, Any] | None = None
    status_code: int | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)
        if self.details is None:
            self.details = {}


class StoreUnavailable(FleetguardError):
    """The party/role store could not answer (failure or timeout).

    Never interpreted as "no role found".
    """

    def __init__(
        self,
        message: str = "Authorization store unavailable",
        *,
        operation: str | None = None,
        details: Dict[str, Any] | None = None,
    ) -> None:
        details = dict(details or {})
        if operation:
            details.setdefault("operation", operation)
        self.operation = operation
        super().__init__(
            message=message, code="store_unavailable", details=details, status_code=503
        )


class Unauthenticated(FleetguardError):
    """No acting user was supplied."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message=message, code="unauthenticated", status_code=401)


class SubjectNotFound(FleetguardError):
    """The target party does not exist in the graph."""

    def __init__(self, message: str = "Not found", *, party_id: str | None = None) -> None:
        details = {"party_id": party_id} if party_id else None
        super().__init__(message=message, code="not_found", details=details, status_code=404)


class AccessDenied(FleetguardError):
    """Authenticated, subject exists, no predicate matched."""

    def __init__(self, message: str = "Access denied") -> None:
        super().__init__(message=message, code="forbidden", status_code=403)


class AuthorizationIndeterminate(FleetguardError):
    """The decision could not be computed; callers must fail closed."""

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(message=message, code="indeterminate", status_code=503)


class ConfigError(FleetguardError):
    """Error raised for configuration failures."""

    def __init__(self, message: str, *, details: Dict[str, Any] | None = None) -> None:
        super().__init__(message=message, code="config_error", details=details)
