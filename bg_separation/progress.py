from __future__ import annotations

import threading
from typing import Callable, Optional

import structlog
from tqdm import tqdm

log = structlog.get_logger(__name__)

# (message, percent_complete in [0, 100])
ProgressSink = Callable[[str, float], None]


class ProgressReporter:
    """
    Image-granularity progress for a batch of `total` items.

    Items share the first `items_span` percent; callbacks are serialized so a
    sink never sees interleaved calls from worker threads.
    """

    def __init__(self, sink: Optional[ProgressSink], total: int, items_span: float):
        self._sink = sink
        self._total = max(1, int(total))
        self._span = float(items_span)
        self._finished = 0
        self._lock = threading.Lock()

    def _emit(self, message: str, percent: float) -> None:
        if self._sink is None:
            return
        try:
            self._sink(message, max(0.0, min(100.0, float(percent))))
        except Exception as e:  # noqa: BLE001
            log.warning("progress sink failed", message=message, error=repr(e))

    def _items_percent(self) -> float:
        return (self._finished * self._span) / self._total

    def started(self, index: int) -> None:
        with self._lock:
            self._emit(f"Processing image {index + 1}/{self._total}...", self._items_percent())

    def finished(self, index: int) -> None:
        with self._lock:
            self._finished += 1
            self._emit(f"Finished image {index + 1}/{self._total}", self._items_percent())

    def update(self, message: str, percent: float) -> None:
        with self._lock:
            self._emit(message, percent)


def tqdm_sink(bar: tqdm) -> ProgressSink:
    """Adapt a tqdm bar (total=100) into a progress sink."""

    def _sink(message: str, percent: float) -> None:
        bar.set_description_str(message)
        bar.n = percent
        bar.refresh()

    return _sink
