"""Structured logging via structlog.

Configures structlog once at worker startup. All subsequent calls to
`structlog.get_logger()` (or `logging.getLogger()` via the stdlib bridge)
will use this configuration.

Renderer selection:
  debug=True  - `ConsoleRenderer` with colours for local development.
  debug=False - `JSONRenderer` for machine-parseable logs in production.

ContextVar injection:
  The `build_id` field is injected into every log line from
  `_build_id_var`. Stdlib records go through a `ProcessorFormatter` on the
  root handler, so the field reaches `logging.getLogger()` lines as well.
  The unzip job binds it for the duration of one run so store client and
  job logs are correlated without passing the ID around.
  The access token is never bound.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional, TextIO

import structlog

_build_id_var: ContextVar[Optional[int]] = ContextVar("build_id", default=None)


def get_build_id() -> Optional[int]:
    """Return the build ID bound to the current context, if any."""
    return _build_id_var.get()


@contextmanager
def bind_build_id(build_id: int) -> Iterator[None]:
    """Bind `build_id` to every log line emitted inside the block."""
    token = _build_id_var.set(build_id)
    try:
        yield
    finally:
        _build_id_var.reset(token)


def _inject_context_vars(
    logger: logging.Logger,
    method: str,
    event_dict: dict,
) -> dict:
    """Structlog processor: inject build_id from the ContextVar."""
    build_id = get_build_id()
    if build_id is not None:
        event_dict["build_id"] = build_id
    return event_dict


_HANDLER_NAME = "unzipper"


def configure_structlog(debug: bool = False, stream: Optional[TextIO] = None) -> None:
    """Configure structlog for the process lifetime.

    Called once when the Celery app is created. Calling multiple times is
    safe: the root handler installed by a previous call is replaced.

    Args:
        debug: Pick the console renderer and DEBUG level.
        stream: Output stream for both structlog and stdlib records.
            Defaults to stdout.
    """
    stream = stream or sys.stdout
    shared_processors: list = [
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        _inject_context_vars,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        context_class=dict,
        logger_factory=structlog.WriteLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )

    # Stdlib records (ours, celery, httpx) run through the same processors,
    # so they carry the level, timestamp and bound build_id too.
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )
    handler = logging.StreamHandler(stream)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if debug else logging.INFO)
