"""Audit sink implementations.

- ``StructlogAuditSink``: decision records on the log stream
- ``JsonlAuditSink``: one JSON object per line appended to a file
- ``InMemoryAuditSink``: list-backed, for tests and local development
"""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List

import aiofiles
import structlog


logger = structlog.get_logger(__name__)


class StructlogAuditSink:
    """Writes decision records to the structured log stream."""

    def __init__(self, event: str = "authz.audit"):
        self._event = event
        self._logger = structlog.get_logger("fleetguard.audit")

    async def append(self, record: Dict[str, Any]) -> None:
        self._logger.info(self._event, **record)


class JsonlAuditSink:
    """Append-only JSONL audit file.

    Each line is a JSON object with the decision record. Writes are
    serialized with a lock so lines never interleave.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("authz.audit.jsonl_sink_initialized", path=str(self.path))

    async def append(self, record: Dict[str, Any]) -> None:
        line = json.dumps(record, ensure_ascii=False, default=str)
        async with self._lock:
            async with aiofiles.open(self.path, "a", encoding="utf-8") as f:
                await f.write(line + "\n")


class InMemoryAuditSink:
    """Collects decision records in memory."""

    def __init__(self) -> None:
        self.records: List[Dict[str, Any]] = []

    async def append(self, record: Dict[str, Any]) -> None:
        self.records.append(dict(record))

    def clear(self) -> None:
        self.records.clear()
