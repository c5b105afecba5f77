# admission.py
# Process-wide limit on concurrent halftone renders.

import threading
from contextlib import contextmanager

from halftone_errors import BusyError


class AdmissionGate:
    """Counting guard that rejects work instead of queueing it.

    Each render holds a decoded input raster and an output canvas, so on small
    hosts the number of renders in flight is what bounds peak memory.
    """

    def __init__(self, limit: int = 1):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.limit = limit
        self._active = 0
        self._lock = threading.Lock()

    @property
    def active(self) -> int:
        with self._lock:
            return self._active

    def try_acquire(self) -> bool:
        with self._lock:
            if self._active >= self.limit:
                return False
            self._active += 1
            return True

    def release(self) -> None:
        with self._lock:
            if self._active <= 0:
                raise RuntimeError("release() called more times than acquire()")
            self._active -= 1

    @contextmanager
    def slot(self):
        if not self.try_acquire():
            raise BusyError("Processor busy. Please wait a moment and try again.")
        try:
            yield self
        finally:
            self.release()
