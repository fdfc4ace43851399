import concurrent.futures
import logging
import threading
from pathlib import Path
from typing import Callable, Optional, Tuple
from vmcompress.domain.events import ProgressUpdated
from vmcompress.domain.models import ProgressEvent
from vmcompress.infrastructure.event_bus import EventBus

ProgressSink = Callable[[float, str], None]

STEP_TOLERANCE = 1e-9

class ProgressReporter:
    """Delivers throttled, non-decreasing progress to the caller's sink.

    Deliveries run on a dedicated single worker thread, so the sink is never
    called from the encode/demux threads and never concurrently with itself.
    Call ``close()`` to drain pending deliveries.
    """

    def __init__(
        self,
        sink: Optional[ProgressSink],
        step: float = 0.05,
        event_bus: Optional[EventBus] = None,
        source_path: Optional[Path] = None,
    ):
        self.sink = sink
        self.step = step
        self.event_bus = event_bus
        self.source_path = source_path
        self.logger = logging.getLogger(__name__)

        self._lock = threading.Lock()
        self._executor = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="progress")
        self._closed = False
        self._last_fraction = 0.0
        self._range: Tuple[float, float] = (0.0, 1.0)
        self._last_local = 0.0
        self.last_event: Optional[ProgressEvent] = None

    @property
    def last_fraction(self) -> float:
        with self._lock:
            return self._last_fraction

    def report(self, fraction: float, message: str):
        """Emits a milestone unconditionally (fractions still never decrease)."""
        with self._lock:
            self._emit(fraction, message)

    def begin_range(self, start: float, end: float):
        """Maps subsequent track() fractions into [start, end] of the overall scale."""
        with self._lock:
            self._range = (start, end)
            self._last_local = 0.0

    def track(self, local_fraction: float, label: str) -> bool:
        """Reports progress within the current range when it moved forward by at least one step."""
        local_fraction = min(max(local_fraction, 0.0), 1.0)
        with self._lock:
            advance = local_fraction - self._last_local
            # the end of a range always gets through once
            if advance <= 0 or (advance < self.step - STEP_TOLERANCE and local_fraction < 1.0):
                return False
            self._last_local = local_fraction
            start, end = self._range
            self._emit(start + local_fraction * (end - start), f"{label}: {round(local_fraction * 100)}%")
            return True

    def _emit(self, fraction: float, message: str):
        if self._closed:
            return
        fraction = min(max(fraction, 0.0), 1.0)
        fraction = max(fraction, self._last_fraction)
        self._last_fraction = fraction
        event = ProgressEvent(fraction=fraction, message=message)
        self.last_event = event
        # Submitted under the lock so the executor queue order matches fraction order
        future = self._executor.submit(self._deliver, event)
        future.add_done_callback(self._log_failure)

    def _deliver(self, event: ProgressEvent):
        if self.sink:
            self.sink(event.fraction, event.message)
        if self.event_bus and self.source_path is not None:
            self.event_bus.publish(ProgressUpdated(
                source_path=self.source_path, fraction=event.fraction, message=event.message
            ))

    def _log_failure(self, future: concurrent.futures.Future):
        error = future.exception()
        if error is not None:
            self.logger.error(f"Progress callback raised: {error!r}")

    def close(self):
        """Waits until every queued delivery has reached the sink."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._executor.shutdown(wait=True)
