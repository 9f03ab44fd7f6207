"""Access decision domain types.

An ``AccessDecision`` is the only thing the engine hands back to policy
enforcement points. Its ``outcome`` carries the four-way taxonomy
(allow, deny, subject-not-found, indeterminate); ``path`` records which
delegation predicate granted access and is meant for audit only.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional


class AccessPath(str, Enum):
    """Delegation path through which access was granted."""

    DIRECT_OWNER = "DIRECT_OWNER"
    MASTER_DELEGATION = "MASTER_DELEGATION"
    ORG_MANAGER = "ORG_MANAGER"
    LOCATION_MANAGER = "LOCATION_MANAGER"
    NONE = "NONE"


GRANTING_PATHS: FrozenSet[AccessPath] = frozenset(
    {
        AccessPath.DIRECT_OWNER,
        AccessPath.MASTER_DELEGATION,
        AccessPath.ORG_MANAGER,
        AccessPath.LOCATION_MANAGER,
    }
)


class ActionLevel(str, Enum):
    """Operation level requested by an enforcement point."""

    READ = "read"
    WRITE = "write"
    DELETE = "delete"


class DecisionOutcome(str, Enum):
    """Final verdict taxonomy."""

    ALLOW = "allow"
    DENY = "deny"
    SUBJECT_NOT_FOUND = "subject_not_found"
    INDETERMINATE = "indeterminate"


class ManagementLevel(str, Enum):
    """Coarse management level of an actor, highest applicable wins."""

    CONSULTANT = "consultant"
    MASTER = "master"
    ORGANIZATION = "organization"
    LOCATION = "location"
    NONE = "none"


@dataclass(frozen=True)
class AccessDecision:
    """Result of one authorization evaluation.

    Attributes:
        acting_user_id: The authenticated account that asked
        target_party_id: The party whose records are being accessed
        outcome: Allow / deny / subject-not-found / indeterminate
        path: Granting path (NONE unless allowed)
        evaluated_at: Evaluation instant used for the active-role filter
        level: Action level the decision was made for, if any
        reason: Internal explanation for logs and audit, never user-facing
        cached: Whether the decision was served from the request cache
    """

    acting_user_id: str
    target_party_id: str
    outcome: DecisionOutcome
    path: AccessPath
    evaluated_at: datetime
    level: Optional[ActionLevel] = None
    reason: str = ""
    cached: bool = False

    @property
    def allowed(self) -> bool:
        return self.outcome is DecisionOutcome.ALLOW

    @property
    def indeterminate(self) -> bool:
        return self.outcome is DecisionOutcome.INDETERMINATE

    @property
    def subject_missing(self) -> bool:
        return self.outcome is DecisionOutcome.SUBJECT_NOT_FOUND

    @classmethod
    def allow(
        cls,
        acting_user_id: str,
        target_party_id: str,
        path: AccessPath,
        evaluated_at: datetime,
        level: Optional[ActionLevel] = None,
        reason: str = "",
    ) -> "AccessDecision":
        return cls(
            acting_user_id=acting_user_id,
            target_party_id=target_party_id,
            outcome=DecisionOutcome.ALLOW,
            path=path,
            evaluated_at=evaluated_at,
            level=level,
            reason=reason,
        )

    @classmethod
    def deny(
        cls,
        acting_user_id: str,
        target_party_id: str,
        evaluated_at: datetime,
        level: Optional[ActionLevel] = None,
        reason: str = "no predicate matched",
        outcome: DecisionOutcome = DecisionOutcome.DENY,
    ) -> "AccessDecision":
        return cls(
            acting_user_id=acting_user_id,
            target_party_id=target_party_id,
            outcome=outcome,
            path=AccessPath.NONE,
            evaluated_at=evaluated_at,
            level=level,
            reason=reason,
        )

    def as_cached(self) -> "AccessDecision":
        """Return a copy flagged as served from the request cache."""
        return AccessDecision(
            acting_user_id=self.acting_user_id,
            target_party_id=self.target_party_id,
            outcome=self.outcome,
            path=self.path,
            evaluated_at=self.evaluated_at,
            level=self.level,
            reason=self.reason,
            cached=True,
        )

    def to_audit_record(self) -> Dict[str, Any]:
        """Convert to the append-only audit record shape."""
        return {
            "acting_user_id": self.acting_user_id,
            "target_party_id": self.target_party_id,
            "allowed": self.allowed,
            "outcome": self.outcome.value,
            "path": self.path.value,
            "level": self.level.value if self.level else None,
            "evaluated_at": self.evaluated_at.isoformat(),
            "reason": self.reason,
            "cached": self.cached,
        }


@dataclass(frozen=True)
class ScopeGrant:
    """One organization or location an actor controls, and by which path."""

    path: AccessPath
    organization_id: Optional[str] = None
    location_id: Optional[str] = None
    via_role_id: Optional[str] = None


@dataclass
class ManagedScope:
    """Derived set of scopes an actor controls; recomputed per request."""

    user_id: str
    grants: List[ScopeGrant] = field(default_factory=list)

    def organization_ids(self, path: Optional[AccessPath] = None) -> set[str]:
        return {
            g.organization_id
            for g in self.grants
            if g.organization_id is not None and (path is None or g.path is path)
        }

    def location_ids(self) -> set[str]:
        return {g.location_id for g in self.grants if g.location_id is not None}

    def is_empty(self) -> bool:
        return not self.grants

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "grants": [
                {
                    "path": g.path.value,
                    "organization_id": g.organization_id,
                    "location_id": g.location_id,
                    "role_id": g.via_role_id,
                }
                for g in self.grants
            ],
        }
