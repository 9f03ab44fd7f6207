"""Policy enforcement helpers for record handlers.

Every handler that touches a party's compliance records goes through one
of these helpers instead of re-implementing the access check. They turn a
decision into the error taxonomy:

- ALLOW -> proceed
- DENY -> ``AccessDenied`` (generic message, the failing predicate is never revealed)
- SUBJECT_NOT_FOUND -> ``SubjectNotFound``
- INDETERMINATE -> ``AuthorizationIndeterminate`` (fail closed)
"""

from functools import wraps
from typing import Awaitable, Callable, Optional, ParamSpec, TypeVar

import structlog

from fleetguard.application.policy.engine import DecisionEngine, get_decision_engine
from fleetguard.core.domain.decision import AccessDecision, ActionLevel, DecisionOutcome
from fleetguard.core.domain.errors import (
    AccessDenied,
    AuthorizationIndeterminate,
    SubjectNotFound,
)
from fleetguard.core.domain.request_context import require_actor


logger = structlog.get_logger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


def raise_for_decision(decision: AccessDecision) -> None:
    """Raise the taxonomy error matching a non-allow decision.

    Raises:
        AccessDenied: For DENY
        SubjectNotFound: For SUBJECT_NOT_FOUND
        AuthorizationIndeterminate: For INDETERMINATE
    """
    if decision.outcome is DecisionOutcome.ALLOW:
        return
    if decision.outcome is DecisionOutcome.INDETERMINATE:
        raise AuthorizationIndeterminate()
    if decision.outcome is DecisionOutcome.SUBJECT_NOT_FOUND:
        raise SubjectNotFound(party_id=decision.target_party_id)
    raise AccessDenied()


async def check_access(
    target_party_id: str,
    level: Optional[ActionLevel] = None,
    user_id: Optional[str] = None,
    engine: Optional[DecisionEngine] = None,
) -> AccessDecision:
    """Perform an access check programmatically.

    Usage:
        decision = await check_access(driver_party_id, ActionLevel.DELETE)
        if decision.allowed:
            ...

    Args:
        target_party_id: Party owning the records
        level: Optional action level
        user_id: Acting user (uses the current actor if not provided)
        engine: Engine to use (defaults to the configured default engine)

    Returns:
        The AccessDecision
    """
    if user_id is None:
        user_id = require_actor()
    engine = engine or get_decision_engine()
    return await engine.authorize(user_id, target_party_id, level=level)


async def enforce_access(
    target_party_id: str,
    level: Optional[ActionLevel] = None,
    user_id: Optional[str] = None,
    engine: Optional[DecisionEngine] = None,
) -> AccessDecision:
    """Check access and raise if it is not granted.

    Returns:
        The allowing AccessDecision
    """
    decision = await check_access(target_party_id, level=level, user_id=user_id, engine=engine)
    if not decision.allowed:
        logger.warning(
            "authz.enforcement.rejected",
            acting_user_id=decision.acting_user_id,
            target_party_id=target_party_id,
            outcome=decision.outcome.value,
            level=level.value if level else None,
        )
    raise_for_decision(decision)
    return decision


def require_access(
    level: Optional[ActionLevel] = None,
    party_param: str = "party_id",
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Decorator enforcing access to the party named by a keyword argument.

    Usage:
        @require_access(ActionLevel.WRITE, party_param="driver_party_id")
        async def update_license(driver_party_id: str, payload: dict):
            ...

    Args:
        level: Action level of the decorated operation
        party_param: Name of the keyword argument holding the target party id

    Returns:
        Decorated function
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            target_party_id = kwargs.get(party_param)
            if not target_party_id:
                raise ValueError(f"Missing keyword argument '{party_param}' for access check")
            await enforce_access(str(target_party_id), level=level)
            return await func(*args, **kwargs)

        return wrapper

    return decorator


class AccessContext:
    """Async context manager form of an access check.

    Usage:
        async with AccessContext(party_id, ActionLevel.READ) as ctx:
            if ctx.allowed:
                ...
    """

    def __init__(
        self,
        target_party_id: str,
        level: Optional[ActionLevel] = None,
        user_id: Optional[str] = None,
        engine: Optional[DecisionEngine] = None,
        raise_on_deny: bool = False,
    ):
        self.target_party_id = target_party_id
        self.level = level
        self.user_id = user_id
        self.engine = engine
        self.raise_on_deny = raise_on_deny
        self.decision: Optional[AccessDecision] = None

    @property
    def allowed(self) -> bool:
        return self.decision is not None and self.decision.allowed

    async def __aenter__(self) -> "AccessContext":
        self.decision = await check_access(
            self.target_party_id, level=self.level, user_id=self.user_id, engine=self.engine
        )
        if self.raise_on_deny:
            raise_for_decision(self.decision)
        elif self.decision.indeterminate:
            # Indeterminate is never a quiet "no"
            raise AuthorizationIndeterminate()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        pass
