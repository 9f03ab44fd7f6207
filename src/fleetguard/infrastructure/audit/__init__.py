"""Audit sink implementations."""

from fleetguard.infrastructure.audit.sinks import (
    InMemoryAuditSink,
    JsonlAuditSink,
    StructlogAuditSink,
)

__all__ = ["InMemoryAuditSink", "JsonlAuditSink", "StructlogAuditSink"]
