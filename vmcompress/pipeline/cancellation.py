import threading
from typing import Optional
from vmcompress.domain.errors import CompressionCancelled

class CancellationToken:
    """Caller-owned flag that may be set from any thread at any time."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Blocks until cancelled or the timeout elapses; returns the flag."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self):
        if self._event.is_set():
            raise CompressionCancelled()
