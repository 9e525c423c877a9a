from __future__ import annotations

from dataclasses import dataclass

from adaptive_ids.models.events import AnalysisResult, AttackType
from adaptive_ids.tracking.host_stats import HostStats


@dataclass(slots=True)
class DetectionConfig:
    connection_threshold: int = 50
    port_scan_threshold: int = 15
    bandwidth_threshold: int = 10_000_000
    time_window_ms: int = 10_000

    def __post_init__(self) -> None:
        for name in ("connection_threshold", "port_scan_threshold", "bandwidth_threshold", "time_window_ms"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive")


def exceedance_confidence(metric: float, threshold: float) -> float:
    """0 at the threshold, saturating at 1 once the metric reaches three times it."""
    value = min(1.0, (metric - threshold) / (threshold * 2))
    return max(0.0, value)


class AttackAnalyzer:
    """Clasificador por umbrales fijos: DoS > PortScan > BandwidthAbuse > None."""

    def __init__(self, config: DetectionConfig | None = None) -> None:
        self.config = config or DetectionConfig()

    def classify(self, stats: HostStats, source_id: str = "") -> AnalysisResult:
        cfg = self.config
        window_s = cfg.time_window_ms // 1000

        if stats.connection_count > cfg.connection_threshold:
            return AnalysisResult(
                attack_detected=True,
                attack_type=AttackType.DOS,
                confidence=exceedance_confidence(stats.connection_count, cfg.connection_threshold),
                description=f"Denial of service detected - {stats.connection_count} connections in {window_s} seconds",
                source_id=source_id,
            )

        ports = stats.unique_destination_ports
        if ports > cfg.port_scan_threshold:
            return AnalysisResult(
                attack_detected=True,
                attack_type=AttackType.PORT_SCAN,
                confidence=exceedance_confidence(ports, cfg.port_scan_threshold),
                description=f"Port scan detected - {ports} ports scanned",
                source_id=source_id,
            )

        bandwidth = stats.bandwidth
        if bandwidth > cfg.bandwidth_threshold:
            return AnalysisResult(
                attack_detected=True,
                attack_type=AttackType.BANDWIDTH_ABUSE,
                confidence=exceedance_confidence(bandwidth, cfg.bandwidth_threshold),
                description=f"Bandwidth abuse detected - {bandwidth / 1_000_000:.2f} MB/s",
                source_id=source_id,
            )

        # confidence here means "confidently normal"
        return AnalysisResult(
            attack_detected=False,
            attack_type=AttackType.NONE,
            confidence=1.0,
            description="Normal traffic",
            source_id=source_id,
        )
