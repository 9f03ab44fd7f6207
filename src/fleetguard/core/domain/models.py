"""Party/role graph domain models.

The graph is owned by an external store; these types are the read-only
shapes the resolver works with. A ``Role`` links a holder party to an
organization and/or location scope. Master delegation is an ordinary role of
type ``master`` held by a master organization's party and scoped to the
managed organization.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from fleetguard.core.utils.time import ensure_utc, utc_now


class PartyKind(str, Enum):
    """Kinds of addressable subjects. A party never changes kind."""

    PERSON = "person"
    ORGANIZATION = "organization"
    EQUIPMENT = "equipment"


class RoleType(str, Enum):
    """Well-known role types.

    Stores may carry additional role types; ``Role.role_type`` therefore
    holds the raw string and compares equal to these members.
    """

    OWNER = "owner"
    MASTER = "master"
    CONSULTANT = "consultant"
    ORGANIZATION_MANAGER = "organization_manager"
    LOCATION_MANAGER = "location_manager"
    DRIVER = "driver"
    EQUIPMENT = "equipment"
    STAFF = "staff"


ORG_MANAGEMENT_ROLE_TYPES: frozenset[str] = frozenset(
    {
        RoleType.ORGANIZATION_MANAGER.value,
        RoleType.OWNER.value,
        RoleType.CONSULTANT.value,
    }
)
LOCATION_MANAGEMENT_ROLE_TYPES: frozenset[str] = frozenset(
    {RoleType.LOCATION_MANAGER.value}
)
MASTER_ROLE_TYPES: frozenset[str] = frozenset({RoleType.MASTER.value})


@dataclass(frozen=True)
class Party:
    """An addressable subject: person, organization or equipment.

    Attributes:
        party_id: Unique party identifier
        kind: Party kind
        owner_user_id: Authenticated account that created/owns the party
    """

    party_id: str
    kind: PartyKind
    owner_user_id: Optional[str] = None


@dataclass(frozen=True)
class Organization:
    """A tenant, backed by an organization party."""

    organization_id: str
    party_id: str
    name: str
    regulatory_id: Optional[str] = None


@dataclass(frozen=True)
class Location:
    """A sub-unit of exactly one organization."""

    location_id: str
    organization_id: str
    name: str


@dataclass(frozen=True)
class Scope:
    """Role scope predicate: either an organization id or a location id."""

    organization_id: Optional[str] = None
    location_id: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.organization_id is None) == (self.location_id is None):
            raise ValueError("Scope needs exactly one of organization_id or location_id")

    @classmethod
    def organization(cls, organization_id: str) -> "Scope":
        return cls(organization_id=organization_id)

    @classmethod
    def location(cls, location_id: str) -> "Scope":
        return cls(location_id=location_id)

    def matches(self, role: "Role") -> bool:
        """Check whether a role is scoped to this organization/location."""
        if self.organization_id is not None:
            return role.organization_id == self.organization_id
        return role.location_id == self.location_id

    @property
    def key(self) -> str:
        if self.organization_id is not None:
            return f"organization:{self.organization_id}"
        return f"location:{self.location_id}"


@dataclass(frozen=True)
class Role:
    """A time-bounded grant linking a holder party to a scope.

    Attributes:
        role_id: Unique role identifier
        holder_party_id: Party holding the role
        role_type: Role type (see ``RoleType``)
        organization_id: Organization scope, if any
        location_id: Location scope, if any
        is_active: Soft-revocation flag
        start_date: Inclusive start of validity (None = always started)
        end_date: Exclusive end of validity (None = open-ended)
    """

    role_id: str
    holder_party_id: str
    role_type: str
    organization_id: Optional[str] = None
    location_id: Optional[str] = None
    is_active: bool = True
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        if isinstance(self.role_type, Enum):
            object.__setattr__(self, "role_type", self.role_type.value)

    def is_active_at(self, moment: Optional[datetime] = None) -> bool:
        """Check whether the role is active at ``moment`` (defaults to now).

        A role is active only if ``is_active`` is set and ``moment`` falls in
        ``[start_date, end_date)``.
        """
        if not self.is_active:
            return False
        at = ensure_utc(moment) if moment is not None else utc_now()
        if self.start_date is not None and at < ensure_utc(self.start_date):
            return False
        if self.end_date is not None and at >= ensure_utc(self.end_date):
            return False
        return True

    def has_type(self, role_types: frozenset[str] | set[str]) -> bool:
        return self.role_type in role_types
