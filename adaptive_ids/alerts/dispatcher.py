from __future__ import annotations

import logging
import queue
import threading
from typing import Iterable, Protocol

from adaptive_ids.core.logging_setup import decision_fields
from adaptive_ids.models.events import Alert

logger = logging.getLogger(__name__)

_STOP = object()


class AlertSink(Protocol):
    name: str

    def emit(self, alert: Alert) -> None: ...


class AlertDispatcher:
    """Entrega acotada y no bloqueante de alertas entre la decisión y los destinos.

    ``submit`` never blocks: when the queue is full the alert is dropped and
    counted. Delivery runs either on a worker thread (``start``/``stop``) or
    synchronously via ``pump`` when the host drives it from its own scheduler.
    Queue order is preserved, so alerts from one source reach every sink in
    the order they were submitted.
    """

    def __init__(self, sinks: Iterable[AlertSink] = (), maxsize: int = 1000) -> None:
        self.sinks: list[AlertSink] = list(sinks)
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._worker: threading.Thread | None = None
        self._lock = threading.Lock()
        self.dropped = 0
        self.delivered = 0
        self.sink_failures = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def submit(self, alert: Alert) -> bool:
        try:
            self._queue.put_nowait(alert)
        except queue.Full:
            with self._lock:
                self.dropped += 1
            logger.warning(
                "Cola de alertas llena, alerta descartada de %s (%s)",
                alert.source_id,
                alert.attack_type.value,
                extra=decision_fields(alert.source_id, alert.attack_type, alert.action_taken),
            )
            return False
        return True

    def pump(self, max_items: int | None = None) -> int:
        delivered = 0
        while max_items is None or delivered < max_items:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is _STOP:
                self._queue.put_nowait(_STOP)
                break
            self._deliver(item)
            delivered += 1
        return delivered

    def start(self) -> None:
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._run, name="alert-dispatcher", daemon=True)
        self._worker.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        if self._worker is None:
            return
        self._queue.put(_STOP)
        self._worker.join(timeout)
        self._worker = None

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            self._deliver(item)

    def _deliver(self, alert: Alert) -> None:
        for sink in self.sinks:
            try:
                sink.emit(alert)
            except Exception:
                with self._lock:
                    self.sink_failures += 1
                logger.exception("Fallo en destino de alertas %s", getattr(sink, "name", type(sink).__name__))
        with self._lock:
            self.delivered += 1
