"""Select the CRM adapter a deal generation run writes to."""

from __future__ import annotations

import structlog

from src.dealsync.config import Settings, get_settings
from src.dealsync.deals.crm.adapter import CRMAdapter
from src.dealsync.deals.crm.memory import InMemoryCRMAdapter

logger = structlog.get_logger(__name__)


class CRMNotConfiguredError(RuntimeError):
    """Raised when a live CRM is requested but no live adapter is available."""


def create_crm_adapter(settings: Settings | None = None) -> CRMAdapter:
    """Return the adapter matching ``Settings.DRY_RUN``.

    Args:
        settings: Application settings. Uses get_settings() if None.

    Returns:
        A fresh InMemoryCRMAdapter when DRY_RUN is set.

    Raises:
        CRMNotConfiguredError: DRY_RUN is off. Only the in-memory adapter
            ships, so a live run is refused instead of silently replaying
            into memory.
    """
    if settings is None:
        settings = get_settings()

    if not settings.DRY_RUN:
        logger.error("crm.live_adapter_unavailable", dry_run=False)
        raise CRMNotConfiguredError(
            "DRY_RUN is disabled but no live CRM adapter is configured"
        )

    logger.info("crm.adapter_selected", adapter="memory", dry_run=True)
    return InMemoryCRMAdapter()
