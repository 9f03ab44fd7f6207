"""Test configuration and shared fixtures.

The ``fleet_graph`` fixture models a small three-tier hierarchy::

    master org M (owned by user_b) --master--> org X
    org X: driver D (org X / location X1), expired driver (org X)
    org Y: driver E (org Y / location Y1), user_c manages location Y1
    org A / org B: driver K affiliated with both, user_h manages org B
    org Z: driver G, nobody relevant manages it
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Dict, List

import pytest

from fleetguard.application.policy.audit import AuditEmitter
from fleetguard.application.policy.engine import DecisionEngine, EngineConfig
from fleetguard.core.domain.models import PartyKind, Role, RoleType
from fleetguard.infrastructure.audit.sinks import InMemoryAuditSink
from fleetguard.infrastructure.graph.in_memory import InMemoryGraphAdapter

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)
YESTERDAY = NOW - timedelta(days=1)
LAST_YEAR = NOW - timedelta(days=365)


def build_fleet_graph() -> InMemoryGraphAdapter:
    graph = InMemoryGraphAdapter()

    # Organizations
    graph.add_organization("org-master", "p-org-master", "Master Fleet", owner_user_id="user_b")
    graph.add_organization("org-x", "p-org-x", "Speedy Freight", regulatory_id="1234567")
    graph.add_organization("org-y", "p-org-y", "Yard Logistics")
    graph.add_organization("org-a", "p-org-a", "Alpha Haulage")
    graph.add_organization("org-b", "p-org-b", "Bravo Transport")
    graph.add_organization("org-z", "p-org-z", "Zulu Lines")
    graph.add_location("loc-x1", "org-x", "X Depot")
    graph.add_location("loc-y1", "org-y", "Y Depot")

    # People and equipment
    graph.add_party("p-driver-a", PartyKind.PERSON, owner_user_id="user_a")
    graph.add_party("p-driver-d", PartyKind.PERSON)
    graph.add_party("p-driver-e", PartyKind.PERSON)
    graph.add_party("p-driver-g", PartyKind.PERSON)
    graph.add_party("p-driver-k", PartyKind.PERSON)
    graph.add_party("p-driver-exp", PartyKind.PERSON)
    graph.add_party("p-truck-1", PartyKind.EQUIPMENT)
    graph.add_party("p-person-c", PartyKind.PERSON, owner_user_id="user_c")
    graph.add_party("p-person-f", PartyKind.PERSON, owner_user_id="user_f")
    graph.add_party("p-person-h", PartyKind.PERSON, owner_user_id="user_h")
    graph.add_party("p-person-i", PartyKind.PERSON, owner_user_id="user_i")

    roles = [
        # Master delegation M -> X
        Role("r-master-x", "p-org-master", RoleType.MASTER, organization_id="org-x",
             start_date=LAST_YEAR),
        # Affiliations
        Role("r-d-x", "p-driver-d", RoleType.DRIVER, organization_id="org-x",
             location_id="loc-x1", start_date=LAST_YEAR),
        Role("r-e-y", "p-driver-e", RoleType.DRIVER, organization_id="org-y",
             location_id="loc-y1"),
        Role("r-g-z", "p-driver-g", RoleType.DRIVER, organization_id="org-z"),
        Role("r-k-a", "p-driver-k", RoleType.DRIVER, organization_id="org-a"),
        Role("r-k-b", "p-driver-k", RoleType.DRIVER, organization_id="org-b"),
        Role("r-exp-x", "p-driver-exp", RoleType.DRIVER, organization_id="org-x",
             end_date=YESTERDAY),
        Role("r-truck-y", "p-truck-1", RoleType.EQUIPMENT, location_id="loc-y1"),
        # Management
        Role("r-c-loc", "p-person-c", RoleType.LOCATION_MANAGER, location_id="loc-y1"),
        Role("r-h-b", "p-person-h", RoleType.ORGANIZATION_MANAGER, organization_id="org-b"),
        Role("r-i-x", "p-person-i", RoleType.ORGANIZATION_MANAGER, organization_id="org-x"),
    ]
    for role in roles:
        graph.add_role(role)
    return graph


@pytest.fixture
def fleet_graph() -> InMemoryGraphAdapter:
    """Provide a fresh fleet hierarchy graph."""
    return build_fleet_graph()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    """Provide an in-memory audit sink."""
    return InMemoryAuditSink()


@pytest.fixture
def audit_emitter(audit_sink) -> AuditEmitter:
    """Provide an emitter writing to the in-memory sink."""
    return AuditEmitter([audit_sink])


@pytest.fixture
def engine(fleet_graph, audit_emitter) -> DecisionEngine:
    """Provide a decision engine over the fleet graph with a fixed clock."""
    return DecisionEngine(
        fleet_graph,
        audit=audit_emitter,
        config=EngineConfig(store_timeout_seconds=1.0),
        clock=lambda: NOW,
    )


class RecordingGraph:
    """Wraps a graph adapter and records every read it serves."""

    def __init__(self, inner: InMemoryGraphAdapter):
        self.inner = inner
        self.calls: List[tuple] = []

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def __getattr__(self, name: str) -> Any:
        target = getattr(self.inner, name)

        async def recorded(*args: Any, **kwargs: Dict[str, Any]) -> Any:
            self.calls.append((name, args))
            return await target(*args, **kwargs)

        return recorded


@pytest.fixture
def recording_graph(fleet_graph) -> RecordingGraph:
    """Provide a call-recording wrapper around the fleet graph."""
    return RecordingGraph(fleet_graph)
