"""In-memory graph adapter.

Implements ``GraphAdapterProtocol`` over plain dictionaries. Used by the
sidecar (loaded from a snapshot), the CLI and tests. The ``add_*`` and
``revoke_role`` helpers build and administer the graph and invalidate the
open request cache; the resolver only ever calls the read methods.
"""

from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

import structlog

from fleetguard.application.policy.cache import invalidate_decision_cache
from fleetguard.core.domain.models import (
    Location,
    Organization,
    Party,
    PartyKind,
    Role,
    Scope,
)
from fleetguard.core.utils.time import utc_now


logger = structlog.get_logger(__name__)


class InMemoryGraphAdapter:
    """Dictionary-backed party/role graph implementing GraphAdapterProtocol."""

    def __init__(self) -> None:
        self._parties: Dict[str, Party] = {}
        self._organizations: Dict[str, Organization] = {}
        self._locations: Dict[str, Location] = {}
        self._roles: Dict[str, Role] = {}

    # --- Building -------------------------------------------------------------

    def add_party(
        self,
        party_id: str,
        kind: PartyKind = PartyKind.PERSON,
        owner_user_id: Optional[str] = None,
    ) -> Party:
        existing = self._parties.get(party_id)
        if existing is not None and existing.kind is not kind:
            raise ValueError(f"Party {party_id} already exists as {existing.kind.value}")
        party = Party(party_id=party_id, kind=kind, owner_user_id=owner_user_id)
        self._parties[party_id] = party
        invalidate_decision_cache()
        return party

    def add_organization(
        self,
        organization_id: str,
        party_id: str,
        name: str,
        regulatory_id: Optional[str] = None,
        owner_user_id: Optional[str] = None,
    ) -> Organization:
        """Register an organization; its backing party is created if missing."""
        if party_id not in self._parties:
            self.add_party(party_id, PartyKind.ORGANIZATION, owner_user_id=owner_user_id)
        org = Organization(
            organization_id=organization_id,
            party_id=party_id,
            name=name,
            regulatory_id=regulatory_id,
        )
        self._organizations[organization_id] = org
        invalidate_decision_cache()
        return org

    def add_location(self, location_id: str, organization_id: str, name: str) -> Location:
        if organization_id not in self._organizations:
            raise ValueError(f"Unknown organization {organization_id} for location {location_id}")
        location = Location(location_id=location_id, organization_id=organization_id, name=name)
        self._locations[location_id] = location
        return location

    def add_role(self, role: Role) -> Role:
        if role.holder_party_id not in self._parties:
            raise ValueError(f"Unknown holder party {role.holder_party_id} for role {role.role_id}")
        self._roles[role.role_id] = role
        invalidate_decision_cache()
        return role

    def revoke_role(self, role_id: str, at: Optional[datetime] = None) -> Role:
        """Soft-revoke a role: deactivate and end it, never delete it."""
        role = self._roles[role_id]
        revoked = replace(role, is_active=False, end_date=at or utc_now())
        self._roles[role_id] = revoked
        invalidate_decision_cache()
        logger.info("authz.graph.role_revoked", role_id=role_id)
        return revoked

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "parties": len(self._parties),
            "organizations": len(self._organizations),
            "locations": len(self._locations),
            "roles": len(self._roles),
        }

    # --- GraphAdapterProtocol -------------------------------------------------

    async def get_party(self, party_id: str) -> Optional[Party]:
        return self._parties.get(party_id)

    async def owner_of(self, party_id: str) -> Optional[str]:
        party = self._parties.get(party_id)
        return party.owner_user_id if party else None

    async def active_roles(
        self, party_id: str, at: Optional[datetime] = None
    ) -> Sequence[Role]:
        moment = at or utc_now()
        return [
            role
            for role in self._roles.values()
            if role.holder_party_id == party_id and role.is_active_at(moment)
        ]

    async def home_organization(self, user_id: str) -> Optional[Organization]:
        for org in self._organizations.values():
            party = self._parties.get(org.party_id)
            if party is not None and party.owner_user_id == user_id:
                return org
        return None

    async def find_role(
        self,
        holder_party_id: str,
        scope: Scope,
        role_types: Iterable[str],
        at: Optional[datetime] = None,
    ) -> Optional[Role]:
        moment = at or utc_now()
        wanted = set(role_types)
        for role in self._roles.values():
            if (
                role.holder_party_id == holder_party_id
                and role.has_type(wanted)
                and scope.matches(role)
                and role.is_active_at(moment)
            ):
                return role
        return None

    async def parties_owned_by(self, user_id: str) -> Sequence[str]:
        owned: List[str] = [
            party.party_id
            for party in self._parties.values()
            if party.owner_user_id == user_id
        ]
        return owned
