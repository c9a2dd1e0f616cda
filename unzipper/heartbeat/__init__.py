"""Worker liveness heartbeat.

Public API:
    heartbeat  - process-wide Heartbeat instance
    Heartbeat  - thread-safe last-dispatch timestamp
    router     - FastAPI router serving GET /last-emitted
"""

from unzipper.heartbeat.router import router
from unzipper.heartbeat.state import Heartbeat, heartbeat

__all__ = ["Heartbeat", "heartbeat", "router"]
