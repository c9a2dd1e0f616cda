"""Sentry SDK integration for the unzip worker.

Captures job failures without leaking credentials.

Key decisions:
  - `send_default_pii=False` - no user data sent by default.
  - `before_send` hook scrubs any event field whose key contains a
    sensitive keyword (token, authorization, password, secret, dsn). The
    unzip task receives the store access token as an argument, so task
    args and kwargs are scrubbed as well.
  - No-op when SENTRY_DSN is empty so local and CI runs are unaffected.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

_SENSITIVE_KEYS = frozenset({"token", "authorization", "password", "secret", "dsn"})


def _scrub_secrets(event: dict[str, Any], hint: Any) -> dict[str, Any]:
    """Sentry before_send hook: redact values for sensitive keys."""
    _scrub_dict(event.get("extra", {}))
    headers = event.get("request", {}).get("headers", {})
    if isinstance(headers, dict):
        _scrub_dict(headers)
    celery_job = event.get("extra", {}).get("celery-job")
    if isinstance(celery_job, dict):
        # args are positional (build_id, token); drop everything after the ID
        args = celery_job.get("args")
        if isinstance(args, (list, tuple)) and len(args) > 1:
            celery_job["args"] = [args[0]] + ["[REDACTED]"] * (len(args) - 1)
    return event


def _scrub_dict(d: dict[str, Any]) -> None:
    """Recursively redact sensitive values in-place."""
    for key in list(d.keys()):
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
            d[key] = "[REDACTED]"
        elif isinstance(d[key], dict):
            _scrub_dict(d[key])


def init_sentry(dsn: str, environment: str = "production") -> None:
    """Initialise the Sentry SDK with the Celery integration.

    Args:
        dsn: Sentry DSN string. Empty string disables Sentry entirely.
        environment: Sentry environment tag ("development" | "production").
    """
    if not dsn or not dsn.strip():
        logger.debug("Sentry DSN not configured - skipping initialisation")
        return

    import sentry_sdk
    from sentry_sdk.integrations.celery import CeleryIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=environment,
        integrations=[CeleryIntegration()],
        send_default_pii=False,
        before_send=_scrub_secrets,
    )
    logger.info("Sentry initialised (environment=%s)", environment)
