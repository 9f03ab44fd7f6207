"""Audit sink protocol.

Sinks receive one append-only record per authorization decision. They may
fail; the emitter treats sink failure as non-fatal.
"""

from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class AuditSinkProtocol(Protocol):
    """Protocol for append-only audit destinations."""

    async def append(self, record: Dict[str, Any]) -> None:
        """Append one decision record.

        Args:
            record: Mapping with acting_user_id, target_party_id, allowed,
                path and evaluated_at (plus optional extras)
        """
        ...
