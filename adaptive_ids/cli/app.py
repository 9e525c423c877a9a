from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from adaptive_ids.alerts.dispatcher import AlertSink
from adaptive_ids.alerts.repository import AlertRepository
from adaptive_ids.alerts.sinks import JsonlAlertSink, LoggingAlertSink, WebhookAlertSink
from adaptive_ids.capture.replay import EventReplaySource, ReplayError
from adaptive_ids.config.settings import AppSettings, SettingsLoader
from adaptive_ids.core.logging_setup import configure_logging
from adaptive_ids.core.orchestrator import DecisionOrchestrator


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="adaptive-ids", description="Adaptive intrusion detection engine")
    parser.add_argument("--config", default="adaptive_ids.yaml", help="Path to the YAML settings file")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-config", help="Write the default YAML settings")

    p_replay = sub.add_parser("replay", help="Score connection events from a JSON-lines file")
    p_replay.add_argument("--events", required=True)
    p_replay.add_argument("--max-events", type=int, default=None)

    p_export = sub.add_parser("export-alerts", help="Export stored alerts")
    p_export.add_argument("--output", required=True)
    p_export.add_argument("--format", choices=("json", "csv"), default="json")
    return parser


def build_sinks(settings: AppSettings) -> list[AlertSink]:
    alerts = settings.alerts
    sinks: list[AlertSink] = []
    if alerts.log_alerts:
        sinks.append(LoggingAlertSink())
    if alerts.sqlite_path:
        sinks.append(AlertRepository(alerts.sqlite_path))
    if alerts.jsonl_path:
        sinks.append(JsonlAlertSink(alerts.jsonl_path))
    if alerts.webhook_url:
        sinks.append(WebhookAlertSink(alerts.webhook_url, timeout=alerts.webhook_timeout_s))
    return sinks


def build_orchestrator(settings: AppSettings) -> DecisionOrchestrator:
    return DecisionOrchestrator.from_defaults(
        detection=settings.detection_config(),
        policy=settings.policy_config(),
        sinks=build_sinks(settings),
        queue_maxsize=settings.alerts.queue_maxsize,
        tracker=settings.tracker_config(),
    )


def _load_settings(config_path: str) -> AppSettings:
    if Path(config_path).exists():
        return SettingsLoader.load(config_path)
    return AppSettings()


def run_replay(settings: AppSettings, events_path: str, max_events: int | None) -> dict[str, int]:
    orchestrator = build_orchestrator(settings)
    source = EventReplaySource(events_path)
    orchestrator.dispatcher.start()
    try:
        asyncio.run(orchestrator.run(source, max_events=max_events))
    finally:
        orchestrator.dispatcher.stop()
    return {**orchestrator.metrics(), "skipped_events": source.skipped}


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "init-config":
        SettingsLoader.dump_default(args.config)
        print(f"Settings written to {args.config}")
        return

    settings = _load_settings(args.config)
    configure_logging(settings.log_level)

    if args.command == "replay":
        try:
            metrics = run_replay(settings, args.events, args.max_events)
        except ReplayError as exc:
            parser.error(str(exc))
        print(json.dumps(metrics, indent=2))
    elif args.command == "export-alerts":
        repo = AlertRepository(settings.alerts.sqlite_path)
        if args.format == "csv":
            count = repo.export_csv(args.output)
        else:
            data = repo.export_json()
            Path(args.output).write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
            count = len(data)
        print(f"Exported {count} alerts to {args.output}")


if __name__ == "__main__":
    main()
