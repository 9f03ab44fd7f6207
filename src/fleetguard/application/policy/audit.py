"""Audit emitter for authorization decisions.

Every decision (allow or deny) is forwarded to the configured append-only
sinks. Delivery is fire-and-forget: ``record`` schedules the writes and
returns immediately, and a failing or slow sink is logged and skipped. Audit
failure never fails or delays the authorization call.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Set

import structlog

from fleetguard.core.domain.decision import AccessDecision
from fleetguard.core.interfaces.audit import AuditSinkProtocol


logger = structlog.get_logger(__name__)


class AuditEmitter:
    """Best-effort fan-out of decision records to audit sinks."""

    def __init__(
        self,
        sinks: Optional[Iterable[AuditSinkProtocol]] = None,
        timeout: float = 5.0,
    ):
        """Initialize the emitter.

        Args:
            sinks: Destinations for decision records
            timeout: Upper bound in seconds for one sink write
        """
        self._sinks: List[AuditSinkProtocol] = list(sinks or [])
        self._timeout = timeout
        self._pending: Set[asyncio.Task] = set()
        self.dropped = 0

    @property
    def sinks(self) -> List[AuditSinkProtocol]:
        return list(self._sinks)

    def add_sink(self, sink: AuditSinkProtocol) -> None:
        self._sinks.append(sink)

    def record(self, decision: AccessDecision) -> None:
        """Schedule delivery of one decision record without waiting for it."""
        if not self._sinks:
            return
        record = decision.to_audit_record()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.dropped += 1
            logger.warning(
                "authz.audit.no_event_loop",
                acting_user_id=decision.acting_user_id,
                target_party_id=decision.target_party_id,
            )
            return

        for sink in self._sinks:
            task = loop.create_task(self._deliver(sink, record))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _deliver(self, sink: AuditSinkProtocol, record: Dict[str, Any]) -> None:
        try:
            await asyncio.wait_for(sink.append(record), timeout=self._timeout)
        except Exception as e:
            # Audit failure is not a security failure: log and continue.
            self.dropped += 1
            logger.warning(
                "authz.audit.sink_failed",
                sink=type(sink).__name__,
                error=str(e) or type(e).__name__,
                acting_user_id=record.get("acting_user_id"),
                target_party_id=record.get("target_party_id"),
            )

    async def flush(self) -> None:
        """Wait for all scheduled deliveries to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending))
