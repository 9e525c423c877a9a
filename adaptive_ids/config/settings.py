from __future__ import annotations

from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from adaptive_ids.detection.analyzer import DetectionConfig
from adaptive_ids.rl.policy import PolicyConfig
from adaptive_ids.tracking.host_stats import TrackerConfig


@dataclass(slots=True)
class DetectionSettings:
    connection_threshold: int = 50
    port_scan_threshold: int = 15
    bandwidth_threshold: int = 10_000_000
    time_window_ms: int = 10_000


@dataclass(slots=True)
class TrackerSettings:
    cleanup_every_n_updates: int = 64
    max_tracked_hosts: int = 10_000


@dataclass(slots=True)
class PolicySettings:
    alpha: float = 0.1
    gamma: float = 0.9
    epsilon: float = 0.3
    bins: int = 10
    seed: int | None = None


@dataclass(slots=True)
class AlertSettings:
    queue_maxsize: int = 1000
    log_alerts: bool = True
    sqlite_path: str = "data/alerts.db"
    jsonl_path: str = ""
    webhook_url: str = ""
    webhook_timeout_s: float = 8.0


@dataclass(slots=True)
class AppSettings:
    app_name: str = "ADAPTIVE IDS"
    log_level: str = "INFO"
    detection: DetectionSettings = field(default_factory=DetectionSettings)
    tracker: TrackerSettings = field(default_factory=TrackerSettings)
    policy: PolicySettings = field(default_factory=PolicySettings)
    alerts: AlertSettings = field(default_factory=AlertSettings)

    def detection_config(self) -> DetectionConfig:
        return DetectionConfig(**asdict(self.detection))

    def tracker_config(self) -> TrackerConfig:
        return TrackerConfig(time_window_ms=self.detection.time_window_ms, **asdict(self.tracker))

    def policy_config(self) -> PolicyConfig:
        return PolicyConfig(**asdict(self.policy))


class SettingsLoader:
    @staticmethod
    def _loads(text: str) -> dict[str, Any]:
        data = yaml.safe_load(text) or {}
        if not isinstance(data, dict):
            raise ValueError("Invalid configuration: expected a mapping at the top level")
        return data

    @staticmethod
    def load(path: str | Path) -> AppSettings:
        content = SettingsLoader._loads(Path(path).read_text(encoding="utf-8"))

        return AppSettings(
            app_name=content.get("app_name", "ADAPTIVE IDS"),
            log_level=content.get("log_level", "INFO"),
            detection=DetectionSettings(**content.get("detection", {})),
            tracker=TrackerSettings(**content.get("tracker", {})),
            policy=PolicySettings(**content.get("policy", {})),
            alerts=AlertSettings(**content.get("alerts", {})),
        )

    @staticmethod
    def dump_default(path: str | Path) -> None:
        defaults = AppSettings()
        payload: dict[str, Any] = {
            "app_name": defaults.app_name,
            "log_level": defaults.log_level,
            "detection": asdict(defaults.detection),
            "tracker": asdict(defaults.tracker),
            "policy": asdict(defaults.policy),
            "alerts": asdict(defaults.alerts),
        }
        Path(path).write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
