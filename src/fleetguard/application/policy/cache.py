"""Request-scoped decision cache.

A ``DecisionCache`` lives for exactly one logical request. It is published
through a ``ContextVar`` so concurrently handled requests (each running in
its own task/context) never see each other's entries, and it is dropped when
the scope closes. Nothing here is process-wide: a role revocation is visible
to the next request that opens a fresh scope, and a graph write made inside a
scope must be followed by ``invalidate_decision_cache()``.
"""

from __future__ import annotations

from contextlib import asynccontextmanager, contextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Hashable, Iterator, Optional, Tuple, TypeVar

import structlog

from fleetguard.core.domain.decision import AccessDecision, ActionLevel


logger = structlog.get_logger(__name__)

T = TypeVar("T")

DecisionKey = Tuple[str, str, Optional[ActionLevel]]


class DecisionCache:
    """Memo table for one request.

    Holds final decisions keyed by ``(acting_user_id, target_party_id, level)``
    plus sub-resolution facts (holder parties, home organization, active
    roles, role lookups) keyed by whatever inputs they depend on.
    """

    def __init__(self) -> None:
        self._decisions: Dict[DecisionKey, AccessDecision] = {}
        self._facts: Dict[Hashable, Any] = {}
        self.hits = 0
        self.misses = 0

    def get_decision(
        self,
        acting_user_id: str,
        target_party_id: str,
        level: Optional[ActionLevel] = None,
    ) -> Optional[AccessDecision]:
        decision = self._decisions.get((acting_user_id, target_party_id, level))
        if decision is None:
            self.misses += 1
        else:
            self.hits += 1
        return decision

    def put_decision(self, decision: AccessDecision) -> None:
        """Store a final decision. Indeterminate results are not kept."""
        if decision.indeterminate:
            return
        key = (decision.acting_user_id, decision.target_party_id, decision.level)
        self._decisions[key] = decision

    async def memo(self, key: Hashable, factory: Callable[[], Awaitable[T]]) -> T:
        """Return the memoized value for ``key``, computing it on first use.

        Exceptions from ``factory`` propagate and nothing is stored.
        """
        if key in self._facts:
            return self._facts[key]
        value = await factory()
        self._facts[key] = value
        return value

    def invalidate(self) -> None:
        """Drop every decision and memoized fact.

        Must be called after any write to the role graph made while the scope
        is open; later checks in the same request then re-read the graph.
        """
        dropped = len(self._decisions)
        self.clear()
        logger.debug("authz.cache.invalidated", decisions=dropped)

    def __len__(self) -> int:
        return len(self._decisions)

    def clear(self) -> None:
        self._decisions.clear()
        self._facts.clear()


_current_cache: ContextVar[Optional[DecisionCache]] = ContextVar(
    "decision_cache", default=None
)


def get_decision_cache() -> Optional[DecisionCache]:
    """Get the cache of the current request scope, if one is open."""
    return _current_cache.get()


def invalidate_decision_cache() -> None:
    """Invalidate the cache of the current request scope, if one is open."""
    cache = _current_cache.get()
    if cache is not None:
        cache.invalidate()


@contextmanager
def decision_scope() -> Iterator[DecisionCache]:
    """Open a fresh decision cache for the duration of one request.

    Usage:
        with decision_scope():
            decision = await engine.authorize(user_id, party_id)
    """
    cache = DecisionCache()
    token = _current_cache.set(cache)
    try:
        yield cache
    finally:
        _current_cache.reset(token)
        logger.debug("authz.cache.closed", decisions=len(cache), hits=cache.hits)
        cache.clear()


@asynccontextmanager
async def async_decision_scope() -> AsyncIterator[DecisionCache]:
    """Async variant of ``decision_scope`` for ``async with`` call sites."""
    with decision_scope() as cache:
        yield cache
