"""Authorization resolution: resolver, decision engine, cache, audit and enforcement."""

from fleetguard.application.policy.audit import AuditEmitter
from fleetguard.application.policy.cache import (
    DecisionCache,
    async_decision_scope,
    decision_scope,
    get_decision_cache,
    invalidate_decision_cache,
)
from fleetguard.application.policy.engine import (
    DecisionEngine,
    EngineConfig,
    get_decision_engine,
    set_decision_engine,
)
from fleetguard.application.policy.enforcement import (
    AccessContext,
    check_access,
    enforce_access,
    raise_for_decision,
    require_access,
)
from fleetguard.application.policy.resolver import RoleHierarchyResolver

__all__ = [
    "AuditEmitter",
    "DecisionCache",
    "async_decision_scope",
    "decision_scope",
    "get_decision_cache",
    "invalidate_decision_cache",
    "DecisionEngine",
    "EngineConfig",
    "get_decision_engine",
    "set_decision_engine",
    "AccessContext",
    "check_access",
    "enforce_access",
    "raise_for_decision",
    "require_access",
    "RoleHierarchyResolver",
]
