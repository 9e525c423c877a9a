from __future__ import annotations

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any


class AttackType(str, Enum):
    NONE = "None"
    DOS = "DoS"
    PORT_SCAN = "PortScan"
    BANDWIDTH_ABUSE = "BandwidthAbuse"

    @property
    def state_index(self) -> int:
        return _ATTACK_TYPE_INDEX[self]


_ATTACK_TYPE_INDEX = {
    AttackType.NONE: 0,
    AttackType.DOS: 1,
    AttackType.PORT_SCAN: 2,
    AttackType.BANDWIDTH_ABUSE: 3,
}


class Action(str, Enum):
    """Respuestas posibles; el orden de declaración desempata la política."""

    ALLOW = "Allow"
    MONITOR = "Monitor"
    BLOCK = "Block"


ACTIONS: tuple[Action, ...] = tuple(Action)


@dataclass(frozen=True, slots=True)
class ConnectionEvent:
    source_id: str
    dest_id: str
    source_port: int
    dest_port: int
    timestamp_ms: int
    size_bytes: int


@dataclass(frozen=True, slots=True)
class AnalysisResult:
    attack_detected: bool
    attack_type: AttackType
    confidence: float
    description: str
    source_id: str

    def __str__(self) -> str:
        return "%s [type=%s, confidence=%.2f%%] - %s" % (
            "ALERT" if self.attack_detected else "NORMAL",
            self.attack_type.value,
            self.confidence * 100,
            self.description,
        )


@dataclass(frozen=True, slots=True)
class Alert:
    source_id: str
    dest_id: str
    source_port: int
    dest_port: int
    timestamp_ms: int
    attack_type: AttackType
    confidence: float
    description: str
    action_taken: Action

    @classmethod
    def from_decision(cls, event: ConnectionEvent, result: AnalysisResult, action: Action) -> "Alert":
        return cls(
            source_id=event.source_id,
            dest_id=event.dest_id,
            source_port=event.source_port,
            dest_port=event.dest_port,
            timestamp_ms=event.timestamp_ms,
            attack_type=result.attack_type,
            confidence=result.confidence,
            description=result.description,
            action_taken=action,
        )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["attack_type"] = self.attack_type.value
        payload["action_taken"] = self.action_taken.value
        return payload

    def __str__(self) -> str:
        return "ALERT: %s -> %s:%d (%s, confidence: %.2f%%) - %s - Action: %s" % (
            self.source_id,
            self.dest_id,
            self.dest_port,
            self.attack_type.value,
            self.confidence * 100,
            self.description,
            self.action_taken.value,
        )
