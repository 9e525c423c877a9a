from __future__ import annotations

import logging
import threading
import zlib
from dataclasses import asdict, dataclass
from typing import AsyncIterable, Iterable

from adaptive_ids.alerts.dispatcher import AlertDispatcher, AlertSink
from adaptive_ids.core.logging_setup import decision_fields
from adaptive_ids.detection.analyzer import AttackAnalyzer, DetectionConfig
from adaptive_ids.models.events import Action, Alert, AnalysisResult, ConnectionEvent
from adaptive_ids.rl.policy import PolicyConfig, PolicyEngine
from adaptive_ids.rl.reward import score_action
from adaptive_ids.rl.state import State, StateEncoder
from adaptive_ids.security.validators import validate_event
from adaptive_ids.tracking.host_stats import HostStatsTracker, TrackerConfig

logger = logging.getLogger(__name__)

SOURCE_LOCK_STRIPES = 64


@dataclass(slots=True)
class DecisionCounters:
    packets_analyzed: int = 0
    alerts_generated: int = 0
    false_positives: int = 0
    false_negatives: int = 0


@dataclass(frozen=True, slots=True)
class Decision:
    event: ConnectionEvent
    result: AnalysisResult
    state: State
    action: Action
    reward: float
    alert: Alert | None = None


class DecisionOrchestrator:
    def __init__(
        self,
        tracker: HostStatsTracker,
        analyzer: AttackAnalyzer,
        encoder: StateEncoder,
        policy: PolicyEngine,
        dispatcher: AlertDispatcher,
    ) -> None:
        self.tracker = tracker
        self.analyzer = analyzer
        self.encoder = encoder
        self.policy = policy
        self.dispatcher = dispatcher
        self._counters = DecisionCounters()
        self._counters_lock = threading.Lock()
        self._source_locks = [threading.Lock() for _ in range(SOURCE_LOCK_STRIPES)]

    @classmethod
    def from_defaults(
        cls,
        detection: DetectionConfig | None = None,
        policy: PolicyConfig | None = None,
        sinks: Iterable[AlertSink] = (),
        queue_maxsize: int = 1000,
        tracker: TrackerConfig | None = None,
    ) -> "DecisionOrchestrator":
        detection = detection or DetectionConfig()
        tracker = tracker or TrackerConfig(time_window_ms=detection.time_window_ms)
        return cls(
            tracker=HostStatsTracker(tracker),
            analyzer=AttackAnalyzer(detection),
            encoder=StateEncoder(),
            policy=PolicyEngine(policy),
            dispatcher=AlertDispatcher(sinks, maxsize=queue_maxsize),
        )

    def process(self, event: ConnectionEvent) -> Decision:
        validate_event(event)
        source_id = event.source_id

        with self._lock_for(source_id):
            _, result, profile = self.tracker.record(
                source_id, event, lambda stats: self.analyzer.classify(stats, source_id)
            )
            state = self.encoder.encode(profile)
            action = self.policy.select_action(state)

            outcome = score_action(action, result)
            alert = None
            if outcome.raise_alert:
                alert = Alert.from_decision(event, result, action)
                self.dispatcher.submit(alert)

            self.policy.update(state, action, outcome.reward, state)

            with self._counters_lock:
                self._counters.packets_analyzed += 1
                if alert is not None:
                    self._counters.alerts_generated += 1
                if outcome.false_positive:
                    self._counters.false_positives += 1
                if outcome.false_negative:
                    self._counters.false_negatives += 1

        logger.debug(
            "Decisión %s: %s acción=%s recompensa=%.2f",
            source_id,
            result,
            action.value,
            outcome.reward,
            extra=decision_fields(source_id, result.attack_type, action),
        )
        return Decision(event=event, result=result, state=state, action=action, reward=outcome.reward, alert=alert)

    async def run(self, source: AsyncIterable[ConnectionEvent], max_events: int | None = None) -> int:
        processed = 0
        async for event in source:
            self.process(event)
            processed += 1
            if max_events is not None and processed >= max_events:
                break
        return processed

    def tick(self, now_ms: int) -> dict[str, int]:
        evicted = self.tracker.evict_stale(now_ms)
        delivered = self.dispatcher.pump()
        return {"evicted_hosts": len(evicted), "delivered_alerts": delivered}

    @property
    def counters(self) -> DecisionCounters:
        with self._counters_lock:
            return DecisionCounters(**asdict(self._counters))

    @property
    def packets_analyzed(self) -> int:
        return self.counters.packets_analyzed

    @property
    def alerts_generated(self) -> int:
        return self.counters.alerts_generated

    @property
    def false_positives(self) -> int:
        return self.counters.false_positives

    @property
    def false_negatives(self) -> int:
        return self.counters.false_negatives

    def metrics(self) -> dict[str, int]:
        return {
            **asdict(self.counters),
            "dropped_alerts": self.dispatcher.dropped,
            "pending_alerts": self.dispatcher.pending,
            "q_table_size": self.policy.table_size,
            "tracked_hosts": self.tracker.tracked_hosts,
        }

    def _lock_for(self, source_id: str) -> threading.Lock:
        return self._source_locks[zlib.crc32(source_id.encode("utf-8")) % SOURCE_LOCK_STRIPES]
