from __future__ import annotations

from dataclasses import dataclass, fields

from adaptive_ids.tracking.host_stats import HostBehaviorProfile

EQUALITY_BINS = 1000
CONTINUOUS_FEATURES = (
    "connection_rate",
    "port_diversity",
    "bandwidth",
    "attack_probability",
    "consecutive_alerts",
)


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def bucket(value: float, bins: int) -> int:
    """Index of ``value`` (already in [0, 1]) among ``bins`` equal-width buckets."""
    return min(int(value * bins), bins - 1)


@dataclass(frozen=True, slots=True, eq=False)
class State:
    connection_rate: float = 0.0
    port_diversity: float = 0.0
    bandwidth: float = 0.0
    attack_probability: float = 0.0
    consecutive_alerts: float = 0.0
    attack_type_index: int = 0

    def __post_init__(self) -> None:
        for name in CONTINUOUS_FEATURES:
            object.__setattr__(self, name, clamp(float(getattr(self, name))))
        object.__setattr__(self, "attack_type_index", max(0, int(self.attack_type_index)))

    def discretize(self, bins: int) -> tuple[int, ...]:
        return tuple(bucket(getattr(self, name), bins) for name in CONTINUOUS_FEATURES) + (
            self.attack_type_index,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, State):
            return NotImplemented
        return self.discretize(EQUALITY_BINS) == other.discretize(EQUALITY_BINS)

    def __hash__(self) -> int:
        return hash(self.discretize(EQUALITY_BINS))

    def __repr__(self) -> str:
        values = ", ".join(
            f"{f.name}={getattr(self, f.name):.3f}" if f.name in CONTINUOUS_FEATURES else f"{f.name}={getattr(self, f.name)}"
            for f in fields(self)
        )
        return f"State({values})"


@dataclass(slots=True)
class EncoderConfig:
    connection_scale: float = 100.0
    port_scale: float = 1000.0
    bytes_scale: float = 10_000_000.0
    consecutive_scale: float = 10.0


class StateEncoder:
    """Convierte el perfil de comportamiento de un origen en un ``State`` normalizado.

    ``port_diversity`` uses the highest destination port seen as a rough proxy
    for how spread out the source's targets are, not the distinct-port count.
    """

    def __init__(self, config: EncoderConfig | None = None) -> None:
        self.config = config or EncoderConfig()

    def encode(self, profile: HostBehaviorProfile) -> State:
        cfg = self.config
        return State(
            connection_rate=min(1.0, profile.connection_count / cfg.connection_scale),
            port_diversity=min(1.0, profile.max_port_seen / cfg.port_scale),
            bandwidth=min(1.0, profile.bytes_accumulated / cfg.bytes_scale),
            attack_probability=profile.last_confidence,
            consecutive_alerts=min(1.0, profile.consecutive_suspicious / cfg.consecutive_scale),
            attack_type_index=profile.last_attack_type.state_index,
        )
