"""Last-dispatch timestamp shared by the Celery consumer and the HTTP server.

The worker's consumer thread records a timestamp whenever it receives a
task; the heartbeat server thread reads it for liveness checks. The value
lives in memory only and starts unset in every new process.
"""

import threading
import time
from typing import Optional


class Heartbeat:
    """Thread-safe holder for the unix time of the last job dispatch."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._last_emitted: Optional[int] = None

    def record(self, now: Optional[float] = None) -> int:
        """Store the current (or given) time in whole unix seconds."""
        timestamp = int(time.time() if now is None else now)
        with self._lock:
            self._last_emitted = timestamp
        return timestamp

    def last_emitted(self) -> Optional[int]:
        with self._lock:
            return self._last_emitted

    def reset(self) -> None:
        with self._lock:
            self._last_emitted = None


heartbeat = Heartbeat()
