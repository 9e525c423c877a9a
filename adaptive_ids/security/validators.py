from __future__ import annotations

import ipaddress

from adaptive_ids.models.events import ConnectionEvent


class InvalidEventError(ValueError):
    """Raised when a connection event cannot enter the decision pipeline."""


def validate_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def validate_port(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value <= 65535


def _is_count(value: int) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def validate_event(event: ConnectionEvent) -> ConnectionEvent:
    if not isinstance(event.source_id, str) or not validate_ip(event.source_id):
        raise InvalidEventError(f"Invalid source identity: {event.source_id!r}")
    if not isinstance(event.dest_id, str) or not validate_ip(event.dest_id):
        raise InvalidEventError(f"Invalid destination identity: {event.dest_id!r}")
    if not validate_port(event.source_port):
        raise InvalidEventError(f"Source port out of range: {event.source_port!r}")
    if not validate_port(event.dest_port):
        raise InvalidEventError(f"Destination port out of range: {event.dest_port!r}")
    if not _is_count(event.size_bytes):
        raise InvalidEventError(f"Negative or non-integer size: {event.size_bytes!r}")
    if not _is_count(event.timestamp_ms):
        raise InvalidEventError(f"Invalid timestamp: {event.timestamp_ms!r}")
    return event
