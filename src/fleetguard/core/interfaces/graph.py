"""Graph adapter protocol.

Read-only boundary over the store that backs parties, roles, organizations
and locations. The resolver knows nothing about schema or storage technology
beyond this protocol.

Every method must be side-effect-free and safe to call concurrently. Store
failures must surface as ``StoreUnavailable``; they are never to be reported
as an empty result.
"""

from datetime import datetime
from typing import Iterable, Optional, Protocol, Sequence, runtime_checkable

from fleetguard.core.domain.models import Organization, Party, Role, Scope


@runtime_checkable
class GraphAdapterProtocol(Protocol):
    """Protocol for read-only party/role graph access."""

    async def get_party(self, party_id: str) -> Optional[Party]:
        """Look up a party.

        Args:
            party_id: The party identifier

        Returns:
            Party if it exists, None otherwise
        """
        ...

    async def owner_of(self, party_id: str) -> Optional[str]:
        """Return the user id that directly owns ``party_id``, if any."""
        ...

    async def active_roles(
        self, party_id: str, at: Optional[datetime] = None
    ) -> Sequence[Role]:
        """Return the roles held by ``party_id`` that are active at ``at``.

        Args:
            party_id: The holder party
            at: Evaluation instant (defaults to now)

        Returns:
            Active roles, in no particular order
        """
        ...

    async def home_organization(self, user_id: str) -> Optional[Organization]:
        """Return the organization whose backing party is owned by ``user_id``."""
        ...

    async def find_role(
        self,
        holder_party_id: str,
        scope: Scope,
        role_types: Iterable[str],
        at: Optional[datetime] = None,
    ) -> Optional[Role]:
        """Find an active role of one of ``role_types`` held in ``scope``.

        Args:
            holder_party_id: Party that must hold the role
            scope: Organization or location predicate
            role_types: Acceptable role type values
            at: Evaluation instant (defaults to now)

        Returns:
            A matching active role, or None
        """
        ...

    async def parties_owned_by(self, user_id: str) -> Sequence[str]:
        """Return the ids of the parties owned by ``user_id``.

        These are the holder parties through which an account holds roles.
        """
        ...
