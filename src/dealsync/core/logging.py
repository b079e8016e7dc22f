"""Structured logging setup for the command-line runs.

Every run renders JSON in production and console output elsewhere, filtered
at Settings.LOG_LEVEL. A run label bound here is merged into every event
logged afterwards, so interleaved license logs can be traced to their run.
"""

from __future__ import annotations

import logging
import uuid

import structlog

from src.dealsync.config import Settings, get_settings


def _renderer(settings: Settings) -> structlog.types.Processor:
    if settings.is_production:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def configure_structlog(
    run_label: str | None = None,
    settings: Settings | None = None,
) -> str | None:
    """Configure structlog and bind the run's context.

    Args:
        run_label: Name of the run, e.g. ``"deal_generator"``. When given,
            ``run`` and a fresh ``run_id`` are bound for all later events.
        settings: Application settings. Uses get_settings() if None.

    Returns:
        The bound run_id, or None when no label was given.
    """
    if settings is None:
        settings = get_settings()

    logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            _renderer(settings),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    if run_label is None:
        return None

    run_id = uuid.uuid4().hex[:12]
    structlog.contextvars.bind_contextvars(run=run_label, run_id=run_id)
    return run_id
