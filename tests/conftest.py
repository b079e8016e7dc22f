"""Shared fixtures for deal generation and snapshot audit tests.

Provides:
- make_license: factory for marketplace licenses with a given hosting
- make_deal: factory for CRM deals at a given stage
- make_event: factory for deal-relevant events with increasing timestamps
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from src.dealsync.deals.schemas import (
    Deal,
    DealProperties,
    DealRelevantEvent,
    DealStage,
    EventType,
)
from src.dealsync.marketplace.schemas import License, LicenseData

BASE_TIME = datetime(2026, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def make_license() -> Callable[..., License]:
    """Build a License with sensible defaults."""

    def _make(hosting: str = "Server", license_id: str = "L-100", **data) -> License:
        defaults = {
            "addon_key": "com.example.addon",
            "addon_name": "Example Addon",
            "hosting": hosting,
        }
        defaults.update(data)
        return License(id=license_id, data=LicenseData(**defaults))

    return _make


@pytest.fixture
def make_deal() -> Callable[..., Deal]:
    """Build a Deal at a given stage."""

    def _make(
        stage: DealStage = DealStage.EVAL,
        deal_id: str = "deal-1",
        license_id: str = "L-100",
    ) -> Deal:
        return Deal(
            id=deal_id,
            license_id=license_id,
            properties=DealProperties(dealstage=stage),
        )

    return _make


@pytest.fixture
def make_event() -> Callable[..., DealRelevantEvent]:
    """Build events whose timestamps increase by one day per call."""
    days = count()

    def _make(
        event_type: EventType | str,
        license_id: str = "L-100",
        timestamp: datetime | None = None,
    ) -> DealRelevantEvent:
        return DealRelevantEvent(
            type=event_type,
            license_id=license_id,
            timestamp=timestamp or BASE_TIME + timedelta(days=next(days)),
        )

    return _make
