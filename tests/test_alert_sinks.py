import json
from pathlib import Path

import requests

from adaptive_ids.alerts.dispatcher import AlertDispatcher
from adaptive_ids.alerts.repository import AlertRepository
from adaptive_ids.alerts.sinks import JsonlAlertSink, LoggingAlertSink, RecentAlertsBuffer, WebhookAlertSink
from adaptive_ids.core.logging_setup import JsonFormatter
from adaptive_ids.models.events import Action, Alert, AttackType


def _alert(source: str = "10.0.0.1", ts: int = 1_700_000_000_000) -> Alert:
    return Alert(
        source_id=source,
        dest_id="192.168.1.2",
        source_port=1234,
        dest_port=80,
        timestamp_ms=ts,
        attack_type=AttackType.DOS,
        confidence=0.8,
        description="Denial of service detected",
        action_taken=Action.BLOCK,
    )


class _FakeResponse:
    status_code = 202
    text = "accepted"

    def raise_for_status(self) -> None:
        return None


class _FakeSession:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict] = []

    def post(self, url, json=None, timeout=None):
        self.calls.append({"url": url, "json": json, "timeout": timeout})
        if self.fail:
            raise requests.ConnectionError("connection refused")
        return _FakeResponse()


class _BrokenSink:
    name = "broken"

    def emit(self, alert: Alert) -> None:
        raise RuntimeError("sink offline")


def test_alert_serializes_enums_as_values() -> None:
    payload = _alert().to_dict()
    assert payload["attack_type"] == "DoS"
    assert payload["action_taken"] == "Block"
    assert "ALERT: 10.0.0.1 -> 192.168.1.2:80" in str(_alert())


def test_jsonl_sink_appends_one_line_per_alert(tmp_path: Path) -> None:
    sink = JsonlAlertSink(tmp_path / "out" / "alerts.jsonl")
    sink.emit(_alert(ts=1))
    sink.emit(_alert(ts=2))

    lines = (tmp_path / "out" / "alerts.jsonl").read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["timestamp_ms"] for line in lines] == [1, 2]


def test_repository_keeps_hash_chain(tmp_path: Path) -> None:
    repo = AlertRepository(str(tmp_path / "alerts.db"))
    repo.emit(_alert(ts=1))
    repo.emit(_alert(ts=2))

    exported = repo.export_json()
    assert len(exported) == 2
    assert exported[0]["prev_hash"] == ""
    assert exported[1]["prev_hash"] == exported[0]["record_hash"]
    assert exported[1]["action_taken"] == "Block"
    assert repo.verify_chain()

    csv_path = tmp_path / "alerts.csv"
    assert repo.export_csv(csv_path) == 2
    assert csv_path.read_text(encoding="utf-8").startswith("id,ts_ms,source_id")


def test_webhook_sink_posts_json() -> None:
    session = _FakeSession()
    sink = WebhookAlertSink("http://soc.example/hook", timeout=2.0, session=session)
    sink.emit(_alert())

    assert session.calls[0]["url"] == "http://soc.example/hook"
    assert session.calls[0]["json"]["alert"]["attack_type"] == "DoS"
    assert session.calls[0]["timeout"] == 2.0
    assert sink.last_result["ok"] is True
    assert sink.last_result["status"] == 202


def test_webhook_failure_is_reported_not_raised(caplog) -> None:
    sink = WebhookAlertSink("http://soc.example/hook", session=_FakeSession(fail=True))
    sink.emit(_alert())

    assert sink.last_result["ok"] is False
    assert "connection refused" in sink.last_result["error"]
    assert "Fallo al entregar webhook" in caplog.text


def test_logging_sink_writes_warning(caplog) -> None:
    LoggingAlertSink().emit(_alert())
    assert "Alerta DoS" in caplog.text
    record = caplog.records[-1]
    assert record.levelname == "WARNING"
    assert (record.source_id, record.attack_type, record.action) == ("10.0.0.1", "DoS", "Block")

    payload = json.loads(JsonFormatter().format(record))
    assert payload["source_id"] == "10.0.0.1"
    assert payload["attack_type"] == "DoS"
    assert payload["action"] == "Block"


def test_dispatcher_isolates_failing_sinks(caplog) -> None:
    recent = RecentAlertsBuffer()
    dispatcher = AlertDispatcher([_BrokenSink(), recent], maxsize=10)
    dispatcher.submit(_alert(ts=1))
    dispatcher.submit(_alert(ts=2))

    assert dispatcher.pump() == 2
    assert [a.timestamp_ms for a in recent.items()] == [1, 2]
    assert dispatcher.sink_failures == 2
    assert "Fallo en destino de alertas broken" in caplog.text


def test_dispatcher_pump_respects_max_items() -> None:
    recent = RecentAlertsBuffer()
    dispatcher = AlertDispatcher([recent])
    for ts in range(5):
        dispatcher.submit(_alert(ts=ts))

    assert dispatcher.pump(max_items=3) == 3
    assert dispatcher.pending == 2


def test_dispatcher_worker_drains_queue_on_stop() -> None:
    recent = RecentAlertsBuffer(maxlen=50)
    dispatcher = AlertDispatcher([recent])
    dispatcher.start()
    for ts in range(20):
        dispatcher.submit(_alert(ts=ts))
    dispatcher.stop()

    assert [a.timestamp_ms for a in recent.items()] == list(range(20))
    assert dispatcher.delivered == 20


def test_recent_buffer_is_bounded() -> None:
    recent = RecentAlertsBuffer(maxlen=3)
    for ts in range(5):
        recent.emit(_alert(ts=ts))
    assert [a.timestamp_ms for a in recent.items()] == [2, 3, 4]


def test_dropped_alert_is_logged_with_context(caplog) -> None:
    dispatcher = AlertDispatcher([], maxsize=1)
    assert dispatcher.submit(_alert(ts=1)) is True
    assert dispatcher.submit(_alert(source="10.0.0.7", ts=2)) is False

    assert dispatcher.dropped == 1
    record = caplog.records[-1]
    assert record.levelname == "WARNING"
    assert "Cola de alertas llena" in record.getMessage()
    assert (record.source_id, record.attack_type, record.action) == ("10.0.0.7", "DoS", "Block")
