"""Unit tests for the authorization decision engine."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from conftest import NOW, RecordingGraph
from fleetguard.application.policy.cache import decision_scope
from fleetguard.application.policy.engine import (
    DecisionEngine,
    EngineConfig,
    get_decision_engine,
    set_decision_engine,
)
from fleetguard.core.domain.decision import AccessPath, ActionLevel, DecisionOutcome
from fleetguard.core.domain.errors import ConfigError, StoreUnavailable, Unauthenticated
from fleetguard.core.domain.models import Role, RoleType


class TestScenarios:
    """The reference scenarios for the predicate chain."""

    @pytest.mark.asyncio
    async def test_direct_owner(self, engine):
        decision = await engine.authorize("user_a", "p-driver-a")
        assert decision.allowed is True
        assert decision.path is AccessPath.DIRECT_OWNER

    @pytest.mark.asyncio
    async def test_master_delegation(self, engine):
        decision = await engine.authorize("user_b", "p-driver-d")
        assert decision.allowed is True
        assert decision.path is AccessPath.MASTER_DELEGATION

    @pytest.mark.asyncio
    async def test_location_manager(self, engine):
        decision = await engine.authorize("user_c", "p-driver-e")
        assert decision.allowed is True
        assert decision.path is AccessPath.LOCATION_MANAGER

    @pytest.mark.asyncio
    async def test_unrelated_user_is_denied(self, engine):
        decision = await engine.authorize("user_f", "p-driver-g")
        assert decision.allowed is False
        assert decision.outcome is DecisionOutcome.DENY
        assert decision.path is AccessPath.NONE

    @pytest.mark.asyncio
    async def test_expired_affiliation_does_not_grant(self, engine):
        # user_i manages org-x, but the driver's org-x role ended yesterday
        decision = await engine.authorize("user_i", "p-driver-exp")
        assert decision.outcome is DecisionOutcome.DENY

    @pytest.mark.asyncio
    async def test_expired_affiliation_with_another_active_role(self, engine, fleet_graph):
        fleet_graph.add_role(
            Role("r-exp-x-2", "p-driver-exp", RoleType.DRIVER, organization_id="org-x")
        )
        decision = await engine.authorize("user_i", "p-driver-exp")
        assert decision.allowed is True
        assert decision.path is AccessPath.ORG_MANAGER


class TestProperties:
    """Cross-cutting guarantees of the engine."""

    @pytest.mark.asyncio
    async def test_default_deny_for_every_unrelated_pair(self, engine):
        for target in ["p-driver-a", "p-driver-d", "p-driver-e", "p-driver-g", "p-driver-k"]:
            decision = await engine.authorize("user_nobody", target)
            assert decision.outcome is DecisionOutcome.DENY, target

    @pytest.mark.asyncio
    async def test_ownership_wins_over_contradictory_roles(self, engine, fleet_graph):
        fleet_graph.add_party("p-owned", owner_user_id="user_f")
        fleet_graph.add_role(
            Role("r-owned-old", "p-owned", RoleType.DRIVER, organization_id="org-z",
                 is_active=False)
        )
        decision = await engine.authorize("user_f", "p-owned")
        assert decision.allowed is True
        assert decision.path is AccessPath.DIRECT_OWNER

    @pytest.mark.asyncio
    async def test_revocation_changes_next_evaluation(self, engine, fleet_graph):
        with decision_scope():
            before = await engine.authorize("user_c", "p-driver-e")
        assert before.allowed is True

        fleet_graph.revoke_role("r-c-loc", at=NOW - timedelta(minutes=1))

        with decision_scope():
            after = await engine.authorize("user_c", "p-driver-e")
        assert after.outcome is DecisionOutcome.DENY

    @pytest.mark.asyncio
    async def test_master_delegation_is_one_hop(self, engine, fleet_graph):
        # Affiliated with a location of org-x only, no organization scope
        fleet_graph.add_party("p-driver-loc")
        fleet_graph.add_role(
            Role("r-loc-only", "p-driver-loc", RoleType.DRIVER, location_id="loc-x1")
        )
        decision = await engine.authorize("user_b", "p-driver-loc")
        assert decision.outcome is DecisionOutcome.DENY

    @pytest.mark.asyncio
    async def test_every_active_affiliation_is_considered(self, engine):
        # p-driver-k: org-a (nobody) and org-b (user_h manages)
        decision = await engine.authorize("user_h", "p-driver-k")
        assert decision.allowed is True
        assert decision.path is AccessPath.ORG_MANAGER

    @pytest.mark.asyncio
    async def test_equipment_subject_by_location(self, engine):
        decision = await engine.authorize("user_c", "p-truck-1")
        assert decision.path is AccessPath.LOCATION_MANAGER

    @pytest.mark.asyncio
    async def test_subject_not_found(self, engine):
        decision = await engine.authorize("user_a", "p-missing")
        assert decision.allowed is False
        assert decision.outcome is DecisionOutcome.SUBJECT_NOT_FOUND
        assert decision.subject_missing is True

    @pytest.mark.asyncio
    async def test_missing_actor_is_rejected(self, engine):
        with pytest.raises(Unauthenticated):
            await engine.authorize("", "p-driver-a")

    @pytest.mark.asyncio
    async def test_subject_without_affiliations_is_denied(self, engine, fleet_graph):
        fleet_graph.add_party("p-loner")
        decision = await engine.authorize("user_b", "p-loner")
        assert decision.outcome is DecisionOutcome.DENY
        assert "no active affiliation" in decision.reason

    @pytest.mark.asyncio
    async def test_decision_uses_engine_clock(self, engine):
        decision = await engine.authorize("user_a", "p-driver-a")
        assert decision.evaluated_at == NOW


class TestStoreFailures:
    """StoreUnavailable must surface as INDETERMINATE, never ALLOW."""

    @pytest.mark.parametrize(
        "failing_method",
        ["owner_of", "get_party", "active_roles", "home_organization", "find_role", "parties_owned_by"],
    )
    @pytest.mark.asyncio
    async def test_failure_at_any_step_is_indeterminate(self, fleet_graph, failing_method):
        graph = RecordingGraph(fleet_graph)
        setattr(
            graph,
            failing_method,
            AsyncMock(side_effect=StoreUnavailable(operation=failing_method)),
        )
        engine = DecisionEngine(graph, clock=lambda: NOW)

        # user_h reaches p-driver-k only after the master and org checks
        decision = await engine.authorize("user_h", "p-driver-k")

        assert decision.outcome is DecisionOutcome.INDETERMINATE
        assert decision.allowed is False
        assert decision.indeterminate is True

    @pytest.mark.asyncio
    async def test_timeout_is_indeterminate(self, fleet_graph):
        graph = RecordingGraph(fleet_graph)

        async def slow_roles(*args, **kwargs):
            await asyncio.sleep(1)
            return []

        graph.active_roles = slow_roles
        engine = DecisionEngine(
            graph, config=EngineConfig(store_timeout_seconds=0.01), clock=lambda: NOW
        )

        decision = await engine.authorize("user_b", "p-driver-d")
        assert decision.outcome is DecisionOutcome.INDETERMINATE

    @pytest.mark.asyncio
    async def test_indeterminate_is_audited(self, fleet_graph, audit_emitter, audit_sink):
        graph = RecordingGraph(fleet_graph)
        graph.owner_of = AsyncMock(side_effect=StoreUnavailable())
        engine = DecisionEngine(graph, audit=audit_emitter, clock=lambda: NOW)

        await engine.authorize("user_a", "p-driver-a")
        await audit_emitter.flush()

        assert audit_sink.records[0]["outcome"] == "indeterminate"
        assert audit_sink.records[0]["allowed"] is False


class TestActionLevels:
    """Minimum required paths per action level."""

    @pytest.mark.asyncio
    async def test_location_manager_cannot_delete_by_default(self, engine):
        read = await engine.authorize("user_c", "p-driver-e", level=ActionLevel.READ)
        delete = await engine.authorize("user_c", "p-driver-e", level=ActionLevel.DELETE)

        assert read.allowed is True
        assert delete.outcome is DecisionOutcome.DENY
        assert delete.level is ActionLevel.DELETE

    @pytest.mark.asyncio
    async def test_lower_priority_path_still_grants_when_higher_one_excluded(self, fleet_graph):
        # user_b is both master of org-x and organization manager of it
        fleet_graph.add_party("p-person-b", owner_user_id="user_b")
        fleet_graph.add_role(
            Role("r-b-x", "p-person-b", RoleType.ORGANIZATION_MANAGER, organization_id="org-x")
        )
        config = EngineConfig(
            level_paths={ActionLevel.DELETE: frozenset({AccessPath.ORG_MANAGER})}
        )
        engine = DecisionEngine(fleet_graph, config=config, clock=lambda: NOW)

        plain = await engine.authorize("user_b", "p-driver-d")
        delete = await engine.authorize("user_b", "p-driver-d", level=ActionLevel.DELETE)

        assert plain.path is AccessPath.MASTER_DELEGATION
        assert delete.allowed is True
        assert delete.path is AccessPath.ORG_MANAGER

    @pytest.mark.asyncio
    async def test_owner_can_delete(self, engine):
        decision = await engine.authorize("user_a", "p-driver-a", level=ActionLevel.DELETE)
        assert decision.path is AccessPath.DIRECT_OWNER


class TestAuditAndCache:
    """Audit emission and request-scoped memoization."""

    @pytest.mark.asyncio
    async def test_one_audit_record_per_call(self, engine, audit_emitter, audit_sink):
        await engine.authorize("user_a", "p-driver-a")
        await engine.authorize("user_f", "p-driver-g")
        await audit_emitter.flush()

        assert len(audit_sink.records) == 2
        allowed, denied = audit_sink.records
        assert allowed["allowed"] is True
        assert allowed["path"] == "DIRECT_OWNER"
        assert denied["allowed"] is False
        assert denied["path"] == "NONE"
        assert set(allowed) >= {
            "acting_user_id",
            "target_party_id",
            "allowed",
            "path",
            "evaluated_at",
        }

    @pytest.mark.asyncio
    async def test_cache_hit_is_still_audited(self, engine, audit_emitter, audit_sink):
        with decision_scope():
            first = await engine.authorize("user_b", "p-driver-d")
            second = await engine.authorize("user_b", "p-driver-d")
        await audit_emitter.flush()

        assert first.cached is False
        assert second.cached is True
        assert second.path is first.path
        assert len(audit_sink.records) == 2

    @pytest.mark.asyncio
    async def test_revocation_inside_scope_drops_cached_grant(self, engine, fleet_graph):
        with decision_scope() as cache:
            before = await engine.authorize("user_h", "p-driver-k")
            fleet_graph.revoke_role("r-h-b", at=NOW - timedelta(minutes=1))
            after = await engine.authorize("user_h", "p-driver-k")

        assert before.path is AccessPath.ORG_MANAGER
        assert after.outcome is DecisionOutcome.DENY
        assert after.cached is False
        assert cache.hits == 0

    @pytest.mark.asyncio
    async def test_new_role_inside_scope_is_seen(self, engine, fleet_graph):
        with decision_scope():
            before = await engine.authorize("user_f", "p-driver-g")
            fleet_graph.add_role(
                Role("r-f-z", "p-person-f", RoleType.ORGANIZATION_MANAGER, organization_id="org-z")
            )
            after = await engine.authorize("user_f", "p-driver-g")

        assert before.allowed is False
        assert after.path is AccessPath.ORG_MANAGER

    @pytest.mark.asyncio
    async def test_repeated_check_does_not_reread_graph(self, recording_graph):
        engine = DecisionEngine(recording_graph, clock=lambda: NOW)

        with decision_scope():
            await engine.authorize("user_h", "p-driver-k")
            reads = len(recording_graph.calls)
            await engine.authorize("user_h", "p-driver-k")

        assert len(recording_graph.calls) == reads

    @pytest.mark.asyncio
    async def test_home_organization_resolved_once_per_request(self, recording_graph):
        engine = DecisionEngine(recording_graph, clock=lambda: NOW)

        with decision_scope():
            await engine.authorize("user_b", "p-driver-d")
            await engine.authorize("user_b", "p-driver-k")

        assert recording_graph.count("home_organization") == 1

    @pytest.mark.asyncio
    async def test_no_caching_without_scope(self, recording_graph):
        engine = DecisionEngine(recording_graph, clock=lambda: NOW)

        await engine.authorize("user_a", "p-driver-a")
        await engine.authorize("user_a", "p-driver-a")

        assert recording_graph.count("owner_of") == 2

    @pytest.mark.asyncio
    async def test_cache_disabled_by_config(self, recording_graph):
        engine = DecisionEngine(
            recording_graph, config=EngineConfig(cache_enabled=False), clock=lambda: NOW
        )
        with decision_scope():
            await engine.authorize("user_a", "p-driver-a")
            await engine.authorize("user_a", "p-driver-a")

        assert recording_graph.count("owner_of") == 2


class TestManagedScope:
    """Managed scope and management level views."""

    @pytest.mark.asyncio
    async def test_master_scope(self, engine):
        scope = await engine.managed_scope("user_b")
        assert scope.organization_ids(AccessPath.MASTER_DELEGATION) == {"org-x"}

    @pytest.mark.asyncio
    async def test_location_scope(self, engine):
        scope = await engine.managed_scope("user_c")
        assert scope.location_ids() == {"loc-y1"}
        assert scope.organization_ids() == set()

    @pytest.mark.asyncio
    async def test_management_levels(self, engine):
        assert (await engine.management_level("user_b")).value == "master"
        assert (await engine.management_level("user_h")).value == "organization"
        assert (await engine.management_level("user_c")).value == "location"
        assert (await engine.management_level("user_f")).value == "none"


class TestEngineConfig:
    """Tests for EngineConfig loading."""

    def test_defaults(self):
        config = EngineConfig()
        assert config.store_timeout_seconds > 0
        assert AccessPath.LOCATION_MANAGER not in config.accepted_paths(ActionLevel.DELETE)
        assert AccessPath.LOCATION_MANAGER in config.accepted_paths(ActionLevel.WRITE)
        assert AccessPath.NONE not in config.accepted_paths(None)

    def test_from_yaml(self, tmp_path):
        path = tmp_path / "authz.yaml"
        path.write_text(
            "authz:\n"
            "  store_timeout_seconds: 0.5\n"
            "  audit_enabled: false\n"
            "  level_paths:\n"
            "    delete: [direct_owner]\n"
        )
        config = EngineConfig.from_yaml(path)

        assert config.store_timeout_seconds == 0.5
        assert config.audit_enabled is False
        assert config.accepted_paths(ActionLevel.DELETE) == frozenset({AccessPath.DIRECT_OWNER})

    def test_boolean_flags(self):
        config = EngineConfig.from_dict({"audit_enabled": False, "cache_enabled": False})
        assert config.audit_enabled is False
        assert config.cache_enabled is False

    def test_missing_file_falls_back_to_defaults(self, tmp_path):
        config = EngineConfig.from_yaml(tmp_path / "missing.yaml")
        assert config == EngineConfig()

    @pytest.mark.parametrize(
        "data",
        [
            {"store_timeout_seconds": 0},
            {"level_paths": {"delete": ["superuser"]}},
            {"level_paths": {"delete": ["none"]}},
            {"level_paths": {"purge": ["direct_owner"]}},
            {"audit_enabled": "false"},
            {"cache_enabled": "no"},
            {"cache_enabled": 0},
        ],
    )
    def test_invalid_values_raise(self, data):
        with pytest.raises(ConfigError):
            EngineConfig.from_dict(data)


class TestDefaultEngine:
    """Tests for the process-wide engine accessor."""

    def test_unset_raises(self):
        set_decision_engine(None)
        with pytest.raises(RuntimeError, match="No decision engine"):
            get_decision_engine()

    def test_set_and_get(self, engine):
        set_decision_engine(engine)
        try:
            assert get_decision_engine() is engine
        finally:
            set_decision_engine(None)
