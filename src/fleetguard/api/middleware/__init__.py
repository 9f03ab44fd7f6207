"""API middleware implementations."""

from fleetguard.api.middleware.decision_scope import ACTOR_HEADER, DecisionScopeMiddleware

__all__ = ["ACTOR_HEADER", "DecisionScopeMiddleware"]
