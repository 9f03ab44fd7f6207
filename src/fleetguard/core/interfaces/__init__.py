"""Protocols at the boundaries of the authorization engine."""

from fleetguard.core.interfaces.audit import AuditSinkProtocol
from fleetguard.core.interfaces.graph import GraphAdapterProtocol

__all__ = ["AuditSinkProtocol", "GraphAdapterProtocol"]
