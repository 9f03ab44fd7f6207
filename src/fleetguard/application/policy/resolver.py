"""Role hierarchy resolution.

Answers the individual questions the decision engine asks about an actor's
position in the master organization -> managed organization -> location
hierarchy. Facts are resolved lazily, one read at a time, and memoized in the
request-scoped cache when one is open. The hierarchy is fixed at three levels
and delegation is one hop: a master role over an organization says nothing
about the locations inside it.

Every graph read is bounded by a timeout; a timeout is reported as
``StoreUnavailable`` exactly like a store failure.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Hashable, List, Optional, Sequence, TypeVar

import structlog

from fleetguard.application.policy.cache import DecisionCache
from fleetguard.core.domain.decision import (
    AccessPath,
    ManagedScope,
    ManagementLevel,
    ScopeGrant,
)
from fleetguard.core.domain.errors import StoreUnavailable
from fleetguard.core.domain.models import (
    LOCATION_MANAGEMENT_ROLE_TYPES,
    MASTER_ROLE_TYPES,
    ORG_MANAGEMENT_ROLE_TYPES,
    Organization,
    Party,
    Role,
    RoleType,
    Scope,
)
from fleetguard.core.interfaces.graph import GraphAdapterProtocol


logger = structlog.get_logger(__name__)

T = TypeVar("T")

DEFAULT_STORE_TIMEOUT_SECONDS = 2.0


class RoleHierarchyResolver:
    """Lazily resolves delegation facts for one evaluation instant.

    Args:
        graph: Read-only graph adapter
        at: Evaluation instant used for every active-role filter
        cache: Request-scoped cache for memoizing reads (none disables memoization)
        timeout: Upper bound in seconds for each graph read
    """

    def __init__(
        self,
        graph: GraphAdapterProtocol,
        at: Optional[datetime] = None,
        cache: Optional[DecisionCache] = None,
        timeout: float = DEFAULT_STORE_TIMEOUT_SECONDS,
    ):
        self._graph = graph
        self._at = at
        self._cache = cache
        self._timeout = timeout

    async def _read(
        self,
        operation: str,
        key: Hashable,
        call: Callable[[], Awaitable[T]],
        temporal: bool = False,
    ) -> T:
        """Issue one bounded graph read, memoized per request when possible."""

        async def bounded() -> T:
            try:
                return await asyncio.wait_for(call(), timeout=self._timeout)
            except asyncio.TimeoutError as exc:
                logger.warning(
                    "authz.store.timeout", operation=operation, timeout=self._timeout
                )
                raise StoreUnavailable(
                    "Authorization store timed out", operation=operation
                ) from exc

        if self._cache is None:
            return await bounded()
        # Active-role filters depend on the evaluation instant
        memo_key = (operation, key, self._at) if temporal else (operation, key)
        return await self._cache.memo(memo_key, bounded)

    # --- Graph facts ------------------------------------------------------

    async def party(self, party_id: str) -> Optional[Party]:
        return await self._read(
            "get_party", party_id, lambda: self._graph.get_party(party_id)
        )

    async def target_roles(self, party_id: str) -> Sequence[Role]:
        """All active affiliations of a subject (driver, equipment, ...)."""
        roles = await self._read(
            "active_roles",
            party_id,
            lambda: self._graph.active_roles(party_id, at=self._at),
            temporal=True,
        )
        return list(roles)

    async def holder_parties(self, user_id: str) -> Sequence[str]:
        """Parties through which ``user_id`` holds roles."""
        parties = await self._read(
            "parties_owned_by",
            user_id,
            lambda: self._graph.parties_owned_by(user_id),
        )
        return list(parties)

    async def _find_role(
        self, holder_party_id: str, scope: Scope, role_types: frozenset[str]
    ) -> Optional[Role]:
        return await self._read(
            "find_role",
            (holder_party_id, scope.key, role_types),
            lambda: self._graph.find_role(
                holder_party_id, scope, role_types, at=self._at
            ),
            temporal=True,
        )

    async def _actor_holds(
        self, user_id: str, scope: Scope, role_types: frozenset[str]
    ) -> Optional[Role]:
        holders = await self.holder_parties(user_id)
        if not holders:
            return None
        found = await asyncio.gather(
            *(self._find_role(holder, scope, role_types) for holder in holders)
        )
        return next((role for role in found if role is not None), None)

    # --- Predicates ---------------------------------------------------------

    async def is_direct_owner(self, user_id: str, target_party_id: str) -> bool:
        """True iff ``owner_of(target) == user_id``."""
        owner = await self._read(
            "owner_of",
            target_party_id,
            lambda: self._graph.owner_of(target_party_id),
        )
        return owner is not None and owner == user_id

    async def home_organization_of(self, user_id: str) -> Optional[Organization]:
        """The master organization ``user_id`` owns, if any."""
        return await self._read(
            "home_organization",
            user_id,
            lambda: self._graph.home_organization(user_id),
        )

    async def has_master_delegation(
        self, master_org_party_id: str, target_org_id: str
    ) -> bool:
        """True iff the master org's party holds an active ``master`` role on the target org."""
        role = await self._find_role(
            master_org_party_id, Scope.organization(target_org_id), MASTER_ROLE_TYPES
        )
        return role is not None

    async def has_org_management_role(self, user_id: str, target_org_id: str) -> bool:
        """True iff the actor holds an active owner/consultant/organization_manager role on the org."""
        role = await self._actor_holds(
            user_id, Scope.organization(target_org_id), ORG_MANAGEMENT_ROLE_TYPES
        )
        return role is not None

    async def has_location_management_role(
        self, user_id: str, target_location_id: str
    ) -> bool:
        """True iff the actor holds an active location_manager role on the location."""
        role = await self._actor_holds(
            user_id, Scope.location(target_location_id), LOCATION_MANAGEMENT_ROLE_TYPES
        )
        return role is not None

    # --- Derived views ------------------------------------------------------

    async def managed_scope(self, user_id: str) -> ManagedScope:
        """Compute every organization/location the actor controls and how.

        Returns:
            ManagedScope with one grant per qualifying active role
        """
        scope = ManagedScope(user_id=user_id)

        home = await self.home_organization_of(user_id)
        if home is not None:
            for role in await self.target_roles(home.party_id):
                if role.has_type(MASTER_ROLE_TYPES) and role.organization_id:
                    scope.grants.append(
                        ScopeGrant(
                            path=AccessPath.MASTER_DELEGATION,
                            organization_id=role.organization_id,
                            via_role_id=role.role_id,
                        )
                    )

        for role in await self._actor_roles(user_id):
            if role.has_type(ORG_MANAGEMENT_ROLE_TYPES) and role.organization_id:
                scope.grants.append(
                    ScopeGrant(
                        path=AccessPath.ORG_MANAGER,
                        organization_id=role.organization_id,
                        via_role_id=role.role_id,
                    )
                )
            elif role.has_type(LOCATION_MANAGEMENT_ROLE_TYPES) and role.location_id:
                scope.grants.append(
                    ScopeGrant(
                        path=AccessPath.LOCATION_MANAGER,
                        location_id=role.location_id,
                        via_role_id=role.role_id,
                    )
                )

        return scope

    async def management_level(self, user_id: str) -> ManagementLevel:
        """Classify the actor; consultant wins, then master, organization, location."""
        roles = await self._actor_roles(user_id)
        role_types = {role.role_type for role in roles}

        if RoleType.CONSULTANT.value in role_types:
            return ManagementLevel.CONSULTANT

        home = await self.home_organization_of(user_id)
        if home is not None:
            home_roles = await self.target_roles(home.party_id)
            if any(role.has_type(MASTER_ROLE_TYPES) for role in home_roles):
                return ManagementLevel.MASTER
        if RoleType.MASTER.value in role_types:
            return ManagementLevel.MASTER

        if role_types & {RoleType.ORGANIZATION_MANAGER.value, RoleType.OWNER.value}:
            return ManagementLevel.ORGANIZATION
        if RoleType.LOCATION_MANAGER.value in role_types:
            return ManagementLevel.LOCATION
        return ManagementLevel.NONE

    async def _actor_roles(self, user_id: str) -> List[Role]:
        holders = await self.holder_parties(user_id)
        if not holders:
            return []
        per_holder = await asyncio.gather(
            *(self.target_roles(holder) for holder in holders)
        )
        return [role for roles in per_holder for role in roles]
