"""Domain models for authorization resolution."""

from fleetguard.core.domain.decision import (
    AccessDecision,
    AccessPath,
    ActionLevel,
    DecisionOutcome,
    ManagedScope,
    ManagementLevel,
    ScopeGrant,
)
from fleetguard.core.domain.errors import (
    AccessDenied,
    AuthorizationIndeterminate,
    ConfigError,
    FleetguardError,
    StoreUnavailable,
    SubjectNotFound,
    Unauthenticated,
)
from fleetguard.core.domain.models import (
    Location,
    Organization,
    Party,
    PartyKind,
    Role,
    RoleType,
    Scope,
)

__all__ = [
    "AccessDecision",
    "AccessPath",
    "ActionLevel",
    "DecisionOutcome",
    "ManagedScope",
    "ManagementLevel",
    "ScopeGrant",
    "AccessDenied",
    "AuthorizationIndeterminate",
    "ConfigError",
    "FleetguardError",
    "StoreUnavailable",
    "SubjectNotFound",
    "Unauthenticated",
    "Location",
    "Organization",
    "Party",
    "PartyKind",
    "Role",
    "RoleType",
    "Scope",
]
