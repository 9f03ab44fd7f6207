"""
Graph Snapshot Loading
======================

Builds an ``InMemoryGraphAdapter`` from a YAML or JSON export of the
party/role store::

    parties:
      - {id: p-driver-1, kind: person, owner_user_id: user_a}
    organizations:
      - {id: org-x, party_id: p-org-x, name: Speedy Freight, regulatory_id: "1234567"}
    locations:
      - {id: loc-1, organization_id: org-x, name: Depot North}
    roles:
      - {id: r-1, holder_party_id: p-driver-1, role_type: driver,
         organization_id: org-x, location_id: loc-1, start_date: 2024-01-01}

Dates are ISO-8601; naive values are taken as UTC.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

import structlog
import yaml

from fleetguard.core.domain.errors import ConfigError
from fleetguard.core.domain.models import PartyKind, Role
from fleetguard.core.utils.time import parse_timestamp
from fleetguard.infrastructure.graph.in_memory import InMemoryGraphAdapter


logger = structlog.get_logger(__name__)


def _section(data: Mapping[str, Any], name: str) -> Iterable[Dict[str, Any]]:
    items = data.get(name) or []
    if not isinstance(items, list):
        raise ConfigError(f"Snapshot section '{name}' must be a list")
    for item in items:
        if not isinstance(item, dict):
            raise ConfigError(
                f"Snapshot section '{name}' entries must be mappings",
                details={"entry": item},
            )
    return items


def _required(item: Mapping[str, Any], key: str, section: str) -> str:
    value = item.get(key)
    if value is None or value == "":
        raise ConfigError(
            f"Snapshot {section} entry is missing '{key}'", details={"entry": dict(item)}
        )
    return str(value)


_FLAG_STRINGS = {"true": True, "false": False}


def _flag(item: Mapping[str, Any], key: str, default: bool) -> bool:
    """Read a boolean flag; strings other than "true"/"false" are rejected."""
    value = item.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in _FLAG_STRINGS:
        return _FLAG_STRINGS[value.strip().lower()]
    raise ConfigError(
        f"Snapshot flag '{key}' must be true or false", details={"entry": dict(item)}
    )


def build_graph(data: Mapping[str, Any]) -> InMemoryGraphAdapter:
    """Build an in-memory graph from a parsed snapshot mapping.

    Raises:
        ConfigError: If an entry is missing required keys or is inconsistent
    """
    graph = InMemoryGraphAdapter()
    try:
        for item in _section(data, "parties"):
            graph.add_party(
                _required(item, "id", "party"),
                kind=PartyKind(item.get("kind", PartyKind.PERSON.value)),
                owner_user_id=item.get("owner_user_id"),
            )

        for item in _section(data, "organizations"):
            graph.add_organization(
                _required(item, "id", "organization"),
                party_id=_required(item, "party_id", "organization"),
                name=item.get("name", ""),
                regulatory_id=(
                    str(item["regulatory_id"]) if item.get("regulatory_id") is not None else None
                ),
                owner_user_id=item.get("owner_user_id"),
            )

        for item in _section(data, "locations"):
            graph.add_location(
                _required(item, "id", "location"),
                organization_id=_required(item, "organization_id", "location"),
                name=item.get("name", ""),
            )

        for item in _section(data, "roles"):
            graph.add_role(
                Role(
                    role_id=_required(item, "id", "role"),
                    holder_party_id=_required(item, "holder_party_id", "role"),
                    role_type=_required(item, "role_type", "role"),
                    organization_id=item.get("organization_id"),
                    location_id=item.get("location_id"),
                    is_active=_flag(item, "is_active", True),
                    start_date=parse_timestamp(item.get("start_date")),
                    end_date=parse_timestamp(item.get("end_date")),
                )
            )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid graph snapshot: {e}") from e

    logger.info("authz.graph.snapshot_loaded", **graph.stats)
    return graph


def load_graph_snapshot(path: str | Path) -> InMemoryGraphAdapter:
    """Load a YAML/JSON snapshot file into an in-memory graph.

    Args:
        path: Snapshot file path (JSON is valid YAML)

    Raises:
        ConfigError: If the file is missing or malformed
    """
    snapshot_path = Path(path)
    if not snapshot_path.exists():
        raise ConfigError(f"Graph snapshot not found: {snapshot_path}")

    with open(snapshot_path, "r", encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Graph snapshot is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError("Graph snapshot must be a mapping")
    return build_graph(data)
