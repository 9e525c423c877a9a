import pytest

from adaptive_ids.detection.analyzer import AttackAnalyzer, DetectionConfig, exceedance_confidence
from adaptive_ids.models.events import AttackType
from adaptive_ids.tracking.host_stats import HostStats

BASE_MS = 1_700_000_000_000


def _stats(connections: int = 1, ports: int = 1, total_bytes: int = 100, span_ms: int = 1000) -> HostStats:
    return HostStats(
        connection_count=connections,
        destination_ports=set(range(1, ports + 1)),
        total_bytes=total_bytes,
        first_seen_ms=BASE_MS,
        last_seen_ms=BASE_MS + span_ms,
    )


def test_traffic_at_thresholds_is_normal_with_full_confidence() -> None:
    analyzer = AttackAnalyzer()
    result = analyzer.classify(_stats(connections=50, ports=15, total_bytes=10_000_000), "10.0.0.1")
    assert not result.attack_detected
    assert result.attack_type is AttackType.NONE
    assert result.confidence == 1.0
    assert result.source_id == "10.0.0.1"


def test_dos_just_above_threshold() -> None:
    result = AttackAnalyzer().classify(_stats(connections=51))
    assert result.attack_detected
    assert result.attack_type is AttackType.DOS
    assert result.confidence == pytest.approx(0.01)
    assert "51 connections in 10 seconds" in result.description


def test_dos_has_priority_over_port_scan_and_bandwidth() -> None:
    stats = _stats(connections=80, ports=40, total_bytes=100_000_000)
    result = AttackAnalyzer().classify(stats)
    assert result.attack_type is AttackType.DOS
    assert result.confidence == pytest.approx(0.3)


def test_port_scan_has_priority_over_bandwidth() -> None:
    stats = _stats(connections=20, ports=16, total_bytes=100_000_000)
    result = AttackAnalyzer().classify(stats)
    assert result.attack_type is AttackType.PORT_SCAN
    assert result.confidence == pytest.approx(1 / 30)
    assert "16 ports" in result.description


def test_bandwidth_abuse() -> None:
    result = AttackAnalyzer().classify(_stats(total_bytes=20_000_000, span_ms=1000))
    assert result.attack_type is AttackType.BANDWIDTH_ABUSE
    assert result.confidence == pytest.approx(0.5)


def test_single_event_never_counts_as_bandwidth_abuse() -> None:
    result = AttackAnalyzer().classify(_stats(total_bytes=10**12, span_ms=0))
    assert result.attack_type is AttackType.NONE


def test_confidence_is_monotonic_and_saturates() -> None:
    threshold = 50
    values = [exceedance_confidence(metric, threshold) for metric in range(threshold, 4 * threshold)]
    assert values[0] == 0.0
    assert all(a <= b for a, b in zip(values, values[1:]))
    assert exceedance_confidence(3 * threshold, threshold) == 1.0
    assert exceedance_confidence(10 * threshold, threshold) == 1.0
    assert exceedance_confidence(threshold - 10, threshold) == 0.0


def test_thresholds_are_configurable() -> None:
    analyzer = AttackAnalyzer(DetectionConfig(connection_threshold=5, port_scan_threshold=2))
    assert analyzer.classify(_stats(connections=6)).attack_type is AttackType.DOS
    assert analyzer.classify(_stats(connections=3, ports=3)).attack_type is AttackType.PORT_SCAN


def test_non_positive_thresholds_are_rejected() -> None:
    with pytest.raises(ValueError):
        DetectionConfig(bandwidth_threshold=0)
