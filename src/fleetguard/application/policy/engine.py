"""Authorization decision engine.

Answers "may acting user U operate on the records owned by party P?" by
running an ordered, short-circuiting predicate chain:

1. direct ownership of the party
2. master delegation from the actor's home organization
3. organization management (owner / consultant / organization_manager)
4. location management (location_manager)

Steps 2-4 existentially quantify over *all* of the target's active roles;
a party affiliated with several organizations is accessible if any one
affiliation qualifies. The predicates are logically an OR, the order only
decides which path gets reported.

Store failures never degrade into a verdict: they yield an INDETERMINATE
decision, which enforcement points must treat as an error.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

import structlog
import yaml

from fleetguard.application.policy.audit import AuditEmitter
from fleetguard.application.policy.cache import get_decision_cache
from fleetguard.application.policy.resolver import (
    DEFAULT_STORE_TIMEOUT_SECONDS,
    RoleHierarchyResolver,
)
from fleetguard.core.domain.decision import (
    GRANTING_PATHS,
    AccessDecision,
    AccessPath,
    ActionLevel,
    DecisionOutcome,
    ManagedScope,
    ManagementLevel,
)
from fleetguard.core.domain.errors import ConfigError, StoreUnavailable, Unauthenticated
from fleetguard.core.interfaces.graph import GraphAdapterProtocol
from fleetguard.core.utils.time import utc_now


logger = structlog.get_logger(__name__)


def _default_level_paths() -> Dict[ActionLevel, FrozenSet[AccessPath]]:
    return {
        ActionLevel.READ: GRANTING_PATHS,
        ActionLevel.WRITE: GRANTING_PATHS,
        ActionLevel.DELETE: frozenset(
            {
                AccessPath.DIRECT_OWNER,
                AccessPath.MASTER_DELEGATION,
                AccessPath.ORG_MANAGER,
            }
        ),
    }


def _as_bool(data: Dict[str, Any], key: str, default: bool = True) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean, got {value!r}")
    return value


@dataclass
class EngineConfig:
    """Configuration for the decision engine.

    Attributes:
        store_timeout_seconds: Bound for each graph adapter read
        audit_enabled: Whether decisions are sent to the audit emitter
        cache_enabled: Whether to use the request-scoped cache when open
        level_paths: Paths accepted per action level
    """

    store_timeout_seconds: float = DEFAULT_STORE_TIMEOUT_SECONDS
    audit_enabled: bool = True
    cache_enabled: bool = True
    level_paths: Dict[ActionLevel, FrozenSet[AccessPath]] = field(
        default_factory=_default_level_paths
    )

    def accepted_paths(self, level: Optional[ActionLevel]) -> FrozenSet[AccessPath]:
        """Paths that may grant access at ``level`` (all of them when no level)."""
        if level is None:
            return GRANTING_PATHS
        return self.level_paths.get(level, GRANTING_PATHS)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        """Build a config from a plain mapping (the ``authz`` section).

        Raises:
            ConfigError: If a value cannot be interpreted
        """
        try:
            level_paths = _default_level_paths()
            for level_name, path_names in (data.get("level_paths") or {}).items():
                paths = frozenset(AccessPath(str(name).upper()) for name in path_names)
                if AccessPath.NONE in paths:
                    raise ValueError("NONE cannot grant access")
                level_paths[ActionLevel(str(level_name).lower())] = paths

            timeout = float(
                data.get("store_timeout_seconds", DEFAULT_STORE_TIMEOUT_SECONDS)
            )
            if timeout <= 0:
                raise ValueError("store_timeout_seconds must be positive")

            return cls(
                store_timeout_seconds=timeout,
                audit_enabled=_as_bool(data, "audit_enabled"),
                cache_enabled=_as_bool(data, "cache_enabled"),
                level_paths=level_paths,
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"Invalid authorization config: {e}", details={"config": data}
            ) from e

    @classmethod
    def from_yaml(cls, path: str | Path) -> "EngineConfig":
        """Load engine configuration from a YAML file.

        Args:
            path: Path to the YAML configuration file

        Returns:
            EngineConfig instance (defaults when the file is missing)
        """
        config_path = Path(path)
        if not config_path.exists():
            logger.warning("authz.config.not_found", path=str(path))
            return cls()

        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigError("Authorization config must be a mapping", details={"path": str(path)})
        return cls.from_dict(data.get("authz", {}) or {})


class DecisionEngine:
    """Evaluates access decisions against the party/role graph.

    The graph adapter is injected; there is no module-level store client.
    """

    def __init__(
        self,
        graph: GraphAdapterProtocol,
        audit: Optional[AuditEmitter] = None,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], Any] = utc_now,
    ):
        """Initialize the decision engine.

        Args:
            graph: Read-only graph adapter
            audit: Audit emitter receiving every decision
            config: Engine configuration
            clock: Source of the evaluation instant
        """
        self.graph = graph
        self.config = config or EngineConfig()
        self.audit = audit
        self._clock = clock

        logger.info(
            "authz.engine.initialized",
            store_timeout=self.config.store_timeout_seconds,
            audit_enabled=self.config.audit_enabled and audit is not None,
            cache_enabled=self.config.cache_enabled,
        )

    def resolver(self, at=None) -> RoleHierarchyResolver:
        """Create a resolver bound to this engine's graph and the current request scope."""
        cache = get_decision_cache() if self.config.cache_enabled else None
        return RoleHierarchyResolver(
            self.graph,
            at=at or self._clock(),
            cache=cache,
            timeout=self.config.store_timeout_seconds,
        )

    async def authorize(
        self,
        acting_user_id: str,
        target_party_id: str,
        level: Optional[ActionLevel] = None,
    ) -> AccessDecision:
        """Decide whether ``acting_user_id`` may access ``target_party_id``'s records.

        Args:
            acting_user_id: Authenticated account performing the operation
            target_party_id: Party owning the records
            level: Optional action level restricting the accepted paths

        Returns:
            AccessDecision with outcome ALLOW, DENY, SUBJECT_NOT_FOUND or
            INDETERMINATE

        Raises:
            Unauthenticated: If no acting user is supplied
        """
        if not acting_user_id:
            raise Unauthenticated()

        cache = get_decision_cache() if self.config.cache_enabled else None
        if cache is not None:
            hit = cache.get_decision(acting_user_id, target_party_id, level)
            if hit is not None:
                decision = hit.as_cached()
                self._emit(decision)
                return decision

        evaluated_at = self._clock()
        try:
            decision = await self._evaluate(
                acting_user_id, target_party_id, level, evaluated_at
            )
        except StoreUnavailable as e:
            logger.warning(
                "authz.indeterminate",
                acting_user_id=acting_user_id,
                target_party_id=target_party_id,
                operation=e.operation,
                error=e.message,
            )
            decision = AccessDecision.deny(
                acting_user_id,
                target_party_id,
                evaluated_at,
                level=level,
                reason=f"store unavailable: {e.message}",
                outcome=DecisionOutcome.INDETERMINATE,
            )

        if cache is not None:
            cache.put_decision(decision)
        self._emit(decision)
        return decision

    async def _evaluate(
        self,
        acting_user_id: str,
        target_party_id: str,
        level: Optional[ActionLevel],
        evaluated_at,
    ) -> AccessDecision:
        resolver = self.resolver(at=evaluated_at)
        accepted = self.config.accepted_paths(level)

        def allow(path: AccessPath, reason: str) -> AccessDecision:
            return AccessDecision.allow(
                acting_user_id, target_party_id, path, evaluated_at, level=level, reason=reason
            )

        # 1. Direct ownership
        if AccessPath.DIRECT_OWNER in accepted and await resolver.is_direct_owner(
            acting_user_id, target_party_id
        ):
            return allow(AccessPath.DIRECT_OWNER, "actor owns the party")

        if await resolver.party(target_party_id) is None:
            return AccessDecision.deny(
                acting_user_id,
                target_party_id,
                evaluated_at,
                level=level,
                reason="subject not found",
                outcome=DecisionOutcome.SUBJECT_NOT_FOUND,
            )

        # 2. Affiliations of the subject
        target_roles = await resolver.target_roles(target_party_id)
        org_ids = _distinct(role.organization_id for role in target_roles)
        location_ids = _distinct(role.location_id for role in target_roles)

        # 3. Master delegation
        if AccessPath.MASTER_DELEGATION in accepted and org_ids:
            home = await resolver.home_organization_of(acting_user_id)
            if home is not None:
                matched = await _first_match(
                    org_ids,
                    lambda org_id: resolver.has_master_delegation(home.party_id, org_id),
                )
                if matched is not None:
                    return allow(
                        AccessPath.MASTER_DELEGATION,
                        f"master organization {home.organization_id} manages {matched}",
                    )

        # 4. Organization management
        if AccessPath.ORG_MANAGER in accepted and org_ids:
            matched = await _first_match(
                org_ids,
                lambda org_id: resolver.has_org_management_role(acting_user_id, org_id),
            )
            if matched is not None:
                return allow(AccessPath.ORG_MANAGER, f"actor manages organization {matched}")

        # 5. Location management
        if AccessPath.LOCATION_MANAGER in accepted and location_ids:
            matched = await _first_match(
                location_ids,
                lambda location_id: resolver.has_location_management_role(
                    acting_user_id, location_id
                ),
            )
            if matched is not None:
                return allow(AccessPath.LOCATION_MANAGER, f"actor manages location {matched}")

        # 6. Default deny
        reason = "no predicate matched" if target_roles else "subject has no active affiliation"
        if level is not None and accepted != GRANTING_PATHS:
            reason = f"{reason} among paths accepted for {level.value}"
        return AccessDecision.deny(
            acting_user_id, target_party_id, evaluated_at, level=level, reason=reason
        )

    async def managed_scope(self, user_id: str) -> ManagedScope:
        """Resolve the organizations/locations ``user_id`` controls.

        Raises:
            StoreUnavailable: If the graph cannot be read
        """
        if not user_id:
            raise Unauthenticated()
        return await self.resolver().managed_scope(user_id)

    async def management_level(self, user_id: str) -> ManagementLevel:
        """Classify ``user_id``'s management level.

        Raises:
            StoreUnavailable: If the graph cannot be read
        """
        if not user_id:
            raise Unauthenticated()
        return await self.resolver().management_level(user_id)

    def _emit(self, decision: AccessDecision) -> None:
        logger.info(
            "authz.decision",
            acting_user_id=decision.acting_user_id,
            target_party_id=decision.target_party_id,
            outcome=decision.outcome.value,
            path=decision.path.value,
            level=decision.level.value if decision.level else None,
            cached=decision.cached,
        )
        if self.config.audit_enabled and self.audit is not None:
            self.audit.record(decision)


def _distinct(values: Iterable[Optional[str]]) -> List[str]:
    seen: Dict[str, None] = {}
    for value in values:
        if value is not None:
            seen.setdefault(value, None)
    return list(seen)


async def _first_match(
    candidates: Sequence[str], predicate: Callable[[str], Awaitable[bool]]
) -> Optional[str]:
    """Evaluate ``predicate`` for all candidates concurrently; return the first that holds."""
    results = await asyncio.gather(*(predicate(candidate) for candidate in candidates))
    for candidate, ok in zip(candidates, results):
        if ok:
            return candidate
    return None


# Singleton instance for convenience
_default_engine: Optional[DecisionEngine] = None


def get_decision_engine() -> DecisionEngine:
    """Get the default decision engine instance.

    Raises:
        RuntimeError: If no engine has been configured
    """
    if _default_engine is None:
        raise RuntimeError("No decision engine configured - call set_decision_engine()")
    return _default_engine


def set_decision_engine(engine: Optional[DecisionEngine]) -> None:
    """Set the default decision engine instance.

    Args:
        engine: The DecisionEngine to use as default (None to clear)
    """
    global _default_engine
    _default_engine = engine
