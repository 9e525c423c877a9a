from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field, replace
from typing import Callable

from adaptive_ids.models.events import AnalysisResult, AttackType, ConnectionEvent

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TrackerConfig:
    time_window_ms: int = 10_000
    cleanup_every_n_updates: int = 64
    max_tracked_hosts: int = 10_000

    def __post_init__(self) -> None:
        if self.time_window_ms <= 0:
            raise ValueError(f"time_window_ms must be positive, got {self.time_window_ms}")
        if self.cleanup_every_n_updates < 1:
            raise ValueError(f"cleanup_every_n_updates must be >= 1, got {self.cleanup_every_n_updates}")
        if self.max_tracked_hosts < 1:
            raise ValueError(f"max_tracked_hosts must be >= 1, got {self.max_tracked_hosts}")

    @property
    def eviction_threshold_ms(self) -> int:
        return 2 * self.time_window_ms


@dataclass(slots=True)
class HostStats:
    connection_count: int = 0
    destination_ports: set[int] = field(default_factory=set)
    total_bytes: int = 0
    first_seen_ms: int = 0
    last_seen_ms: int = 0

    @property
    def unique_destination_ports(self) -> int:
        return len(self.destination_ports)

    @property
    def bandwidth(self) -> float:
        """Bytes per second across the observed span; 0 when the span is empty."""
        span = self.last_seen_ms - self.first_seen_ms
        if span <= 0:
            return 0.0
        return self.total_bytes * 1000 / span

    def copy(self) -> "HostStats":
        return replace(self, destination_ports=set(self.destination_ports))


@dataclass(slots=True)
class HostBehaviorProfile:
    connection_count: int = 0
    max_port_seen: int = 0
    bytes_accumulated: int = 0
    last_confidence: float = 0.0
    last_attack_type: AttackType = AttackType.NONE
    consecutive_suspicious: int = 0

    def observe(self, event: ConnectionEvent, result: AnalysisResult) -> None:
        self.connection_count += 1
        self.max_port_seen = max(self.max_port_seen, event.dest_port)
        self.bytes_accumulated += event.size_bytes
        self.last_confidence = result.confidence
        self.last_attack_type = result.attack_type
        if result.attack_detected:
            self.consecutive_suspicious += 1
        else:
            self.consecutive_suspicious = 0

    def copy(self) -> "HostBehaviorProfile":
        return replace(self)


@dataclass(slots=True, eq=False)
class _HostSlot:
    stats: HostStats = field(default_factory=HostStats)
    profile: HostBehaviorProfile = field(default_factory=HostBehaviorProfile)
    lock: threading.Lock = field(default_factory=threading.Lock)
    evicted: bool = False


class HostStatsTracker:
    """Estadísticas recientes por origen, con expiración por inactividad y capacidad."""

    def __init__(self, config: TrackerConfig | None = None) -> None:
        self.config = config or TrackerConfig()
        self._slots: dict[str, _HostSlot] = {}
        self._lock = threading.Lock()
        self._updates_since_cleanup = 0
        self._metrics: dict[str, int] = {
            "cleanup_runs": 0,
            "evicted_hosts": 0,
            "ttl_expired_hosts": 0,
            "capacity_evicted_hosts": 0,
        }

    @property
    def tracked_hosts(self) -> int:
        return len(self._slots)

    def update(self, source_id: str, event: ConnectionEvent) -> HostStats:
        while True:
            slot = self._slot_for(source_id)
            with slot.lock:
                if slot.evicted:
                    continue
                snapshot = self._apply(slot.stats, event)
            break

        self._maybe_cleanup(event.timestamp_ms)
        return snapshot

    def record(
        self,
        source_id: str,
        event: ConnectionEvent,
        classify: Callable[[HostStats], AnalysisResult],
    ) -> tuple[HostStats, AnalysisResult, HostBehaviorProfile]:
        """Update, classify and observe under one record lock.

        The stats and the profile always belong to the same record, even if a
        sweep triggered by another source runs concurrently.
        """
        while True:
            slot = self._slot_for(source_id)
            with slot.lock:
                if slot.evicted:
                    continue
                stats = self._apply(slot.stats, event)
                result = classify(stats)
                slot.profile.observe(event, result)
                profile = slot.profile.copy()
            break

        self._maybe_cleanup(event.timestamp_ms)
        return stats, result, profile

    def observe(self, source_id: str, event: ConnectionEvent, result: AnalysisResult) -> HostBehaviorProfile:
        slot = self._slots.get(source_id)
        if slot is not None:
            with slot.lock:
                if not slot.evicted:
                    slot.profile.observe(event, result)
                    return slot.profile.copy()
        # no live record: nothing is stored
        logger.debug("Perfil descartado para %s: registro expirado", source_id)
        detached = HostBehaviorProfile()
        detached.observe(event, result)
        return detached

    def get(self, source_id: str) -> HostStats | None:
        slot = self._slots.get(source_id)
        if slot is None:
            return None
        with slot.lock:
            return slot.stats.copy()

    def get_profile(self, source_id: str) -> HostBehaviorProfile | None:
        slot = self._slots.get(source_id)
        if slot is None:
            return None
        with slot.lock:
            return slot.profile.copy()

    def evict_stale(self, now_ms: int) -> list[str]:
        threshold = self.config.eviction_threshold_ms
        evicted: list[str] = []
        with self._lock:
            candidates = [
                source_id
                for source_id, slot in self._slots.items()
                if now_ms - slot.stats.last_seen_ms > threshold
            ]
            for source_id in candidates:
                slot = self._slots[source_id]
                with slot.lock:
                    # re-checked under the record lock: an update may have landed meanwhile
                    if now_ms - slot.stats.last_seen_ms <= threshold:
                        continue
                    self._evict(source_id, slot)
                self._metrics["ttl_expired_hosts"] += 1
                evicted.append(source_id)
            self._metrics["cleanup_runs"] += 1

        if evicted:
            logger.debug("Expirados %d orígenes inactivos", len(evicted))
        return evicted

    def get_internal_metrics(self) -> dict[str, int]:
        return {**self._metrics, "tracked_hosts": self.tracked_hosts}

    def _slot_for(self, source_id: str) -> _HostSlot:
        with self._lock:
            slot = self._slots.get(source_id)
            if slot is None:
                slot = _HostSlot()
                self._slots[source_id] = slot
                self._ensure_capacity(keep=source_id)
            return slot

    @staticmethod
    def _apply(stats: HostStats, event: ConnectionEvent) -> HostStats:
        if stats.connection_count == 0:
            stats.first_seen_ms = event.timestamp_ms
        stats.connection_count += 1
        stats.destination_ports.add(event.dest_port)
        stats.total_bytes += event.size_bytes
        stats.last_seen_ms = event.timestamp_ms
        return stats.copy()

    def _maybe_cleanup(self, now_ms: int) -> None:
        with self._lock:
            self._updates_since_cleanup += 1
            due = self._updates_since_cleanup >= self.config.cleanup_every_n_updates
            if due:
                self._updates_since_cleanup = 0
        if due:
            self.evict_stale(now_ms)

    def _ensure_capacity(self, keep: str) -> None:
        while len(self._slots) > self.config.max_tracked_hosts:
            oldest = min(
                (source_id for source_id in self._slots if source_id != keep),
                key=lambda source_id: self._slots[source_id].stats.last_seen_ms,
            )
            slot = self._slots[oldest]
            with slot.lock:
                self._evict(oldest, slot)
            self._metrics["capacity_evicted_hosts"] += 1

    def _evict(self, source_id: str, slot: _HostSlot) -> None:
        slot.evicted = True
        self._slots.pop(source_id, None)
        self._metrics["evicted_hosts"] += 1
