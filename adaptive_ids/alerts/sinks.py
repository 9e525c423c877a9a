from __future__ import annotations

import json
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import requests

from adaptive_ids.core.logging_setup import decision_fields
from adaptive_ids.models.events import Alert

logger = logging.getLogger(__name__)


def utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


class LoggingAlertSink:
    name = "logging"

    def __init__(self, logger_name: str = "adaptive_ids.alerts") -> None:
        self._logger = logging.getLogger(logger_name)

    def emit(self, alert: Alert) -> None:
        self._logger.warning(
            "Alerta %s [%s %.2f] %s -> %s:%d acción=%s",
            alert.attack_type.value,
            alert.description,
            alert.confidence,
            alert.source_id,
            alert.dest_id,
            alert.dest_port,
            alert.action_taken.value,
            extra=decision_fields(alert.source_id, alert.attack_type, alert.action_taken),
        )


class RecentAlertsBuffer:
    name = "recent"

    def __init__(self, maxlen: int = 300) -> None:
        self._alerts: deque[Alert] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def emit(self, alert: Alert) -> None:
        with self._lock:
            self._alerts.append(alert)

    def items(self) -> list[Alert]:
        with self._lock:
            return list(self._alerts)

    def __len__(self) -> int:
        return len(self._alerts)


class JsonlAlertSink:
    name = "jsonl"

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def emit(self, alert: Alert) -> None:
        line = json.dumps(alert.to_dict(), ensure_ascii=False)
        with self._lock, self.path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")


class WebhookAlertSink:
    """Entrega defensiva de alertas por HTTP POST (JSON)."""

    name = "webhook"

    def __init__(self, url: str, timeout: float = 8.0, session: requests.Session | None = None) -> None:
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        self.last_result: dict[str, Any] | None = None

    def send(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = self._session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return {"ok": True, "status": response.status_code, "response": response.text[:500], "ts": utc_now()}
        except requests.RequestException as exc:
            logger.warning("Fallo al entregar webhook a %s: %s", self.url, exc)
            return {"ok": False, "error": str(exc), "ts": utc_now()}

    def emit(self, alert: Alert) -> None:
        self.last_result = self.send({"type": "alert", "alert": alert.to_dict()})
