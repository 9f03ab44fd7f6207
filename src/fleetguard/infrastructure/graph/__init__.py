"""Graph adapter bindings."""

from fleetguard.infrastructure.graph.in_memory import InMemoryGraphAdapter
from fleetguard.infrastructure.graph.snapshot import build_graph, load_graph_snapshot

__all__ = ["InMemoryGraphAdapter", "build_graph", "load_graph_snapshot"]
