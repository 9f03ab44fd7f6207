"""Request-scoped actor propagation.

The acting user is established upstream (session/authentication is not this
package's concern); enforcement points publish it here so that handlers and
decorators can pick it up without threading it through every call.
"""

from contextvars import ContextVar
from typing import Optional

from fleetguard.core.domain.errors import Unauthenticated


_current_actor: ContextVar[Optional[str]] = ContextVar("current_actor", default=None)


def get_current_actor() -> Optional[str]:
    """Get the acting user id from the request scope."""
    return _current_actor.get()


def set_current_actor(user_id: Optional[str]) -> None:
    """Set the acting user id for the request scope."""
    _current_actor.set(user_id)


def require_actor() -> str:
    """Get the acting user id, raising if not set.

    Raises:
        Unauthenticated: If no actor is set in the current context
    """
    user_id = get_current_actor()
    if not user_id:
        raise Unauthenticated()
    return user_id
