"""Request-scope middleware.

Opens a fresh decision cache for each HTTP request and publishes the acting
user (identity is established upstream and forwarded in a header). Both are
torn down when the response is produced, so no decision outlives the request
that computed it.
"""

from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from fleetguard.application.policy.cache import decision_scope
from fleetguard.core.domain.request_context import set_current_actor


logger = structlog.get_logger(__name__)

ACTOR_HEADER = "X-User-Id"


class DecisionScopeMiddleware(BaseHTTPMiddleware):
    """Wraps every request in its own decision cache scope."""

    def __init__(self, app, actor_header: Optional[str] = ACTOR_HEADER):
        """Initialize the middleware.

        Args:
            app: The ASGI application
            actor_header: Header carrying the authenticated user id
                (None disables actor propagation)
        """
        super().__init__(app)
        self.actor_header = actor_header

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        actor = request.headers.get(self.actor_header) if self.actor_header else None
        with decision_scope() as cache:
            set_current_actor(actor or None)
            try:
                response = await call_next(request)
            finally:
                set_current_actor(None)
            logger.debug(
                "authz.request_scope.closed",
                path=request.url.path,
                decisions=len(cache),
                cache_hits=cache.hits,
            )
            return response
