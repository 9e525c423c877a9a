from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import AsyncIterator

from adaptive_ids.models.events import ConnectionEvent
from adaptive_ids.security.validators import InvalidEventError, validate_event

logger = logging.getLogger(__name__)

EVENT_FIELDS = ("source_id", "dest_id", "source_port", "dest_port", "timestamp_ms", "size_bytes")


class ReplayError(RuntimeError):
    """Raised when a replay file cannot be opened."""


def parse_event(record: dict) -> ConnectionEvent:
    missing = [name for name in EVENT_FIELDS if name not in record]
    if missing:
        raise InvalidEventError(f"Missing fields: {', '.join(missing)}")
    try:
        event = ConnectionEvent(
            source_id=str(record["source_id"]),
            dest_id=str(record["dest_id"]),
            source_port=int(record["source_port"]),
            dest_port=int(record["dest_port"]),
            timestamp_ms=int(record["timestamp_ms"]),
            size_bytes=int(record["size_bytes"]),
        )
    except (TypeError, ValueError) as exc:
        raise InvalidEventError(f"Malformed event: {exc}") from exc
    return validate_event(event)


class EventReplaySource:
    """Reproduce eventos de conexión desde un archivo JSON-lines."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.skipped = 0

    async def stream(self) -> AsyncIterator[ConnectionEvent]:
        if not self.path.exists():
            raise ReplayError(f"Replay file not found: {self.path}")

        logger.info("Reproduciendo eventos de conexión desde %s", self.path)
        with self.path.open(encoding="utf-8") as fh:
            for line_no, line in enumerate(fh, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    record = json.loads(line)
                    if not isinstance(record, dict):
                        raise InvalidEventError("Event record must be a JSON object")
                    event = parse_event(record)
                except (json.JSONDecodeError, InvalidEventError) as exc:
                    self.skipped += 1
                    logger.warning("Línea %d de %s descartada: %s", line_no, self.path, exc)
                    continue
                yield event
                await asyncio.sleep(0)

    def __aiter__(self) -> AsyncIterator[ConnectionEvent]:
        return self.stream()
