"""In-memory CRM adapter -- insertion-ordered deal store for dry runs and tests.

Deals are listed in creation order, which keeps state-predicate
representative selection deterministic across runs.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

import structlog

from src.dealsync.deals.crm.adapter import CRMAdapter
from src.dealsync.deals.schemas import Deal, DealCreate, DealProperties, DealUpdate

logger = structlog.get_logger(__name__)


class DealNotFoundError(KeyError):
    """Raised when updating a deal ID the store does not hold."""

    def __init__(self, deal_id: str) -> None:
        self.deal_id = deal_id
        super().__init__(f"Deal not found: {deal_id}")


class InMemoryCRMAdapter(CRMAdapter):
    """CRM adapter backed by a dict of deals keyed by ID.

    Args:
        deals: Optional pre-existing deals to seed the store with.
    """

    def __init__(self, deals: list[Deal] | None = None) -> None:
        self._deals: dict[str, Deal] = {}
        for deal in deals or []:
            self._deals[deal.id] = deal

    async def list_deals(self, license_id: str) -> list[Deal]:
        return [d for d in self._deals.values() if d.license_id == license_id]

    async def get_deal(self, deal_id: str) -> Deal | None:
        return self._deals.get(deal_id)

    async def create_deal(self, deal: DealCreate) -> str:
        deal_id = str(uuid.uuid4())
        self._deals[deal_id] = Deal(
            id=deal_id,
            license_id=deal.license_id,
            properties=DealProperties(
                dealstage=deal.dealstage,
                dealname=deal.dealname,
                closedate=deal.closedate,
            ),
            updated_at=datetime.now(timezone.utc),
        )
        logger.info(
            "memory_crm.deal_created",
            deal_id=deal_id,
            license_id=deal.license_id,
            dealstage=deal.dealstage.value,
        )
        return deal_id

    async def update_deal(self, deal_id: str, data: DealUpdate) -> None:
        existing = self._deals.get(deal_id)
        if existing is None:
            raise DealNotFoundError(deal_id)

        changes = data.model_dump(exclude_none=True)
        properties = existing.properties.model_copy(update=changes)
        # Replacing the value keeps the key's insertion position
        self._deals[deal_id] = existing.model_copy(
            update={
                "properties": properties,
                "updated_at": datetime.now(timezone.utc),
            }
        )
        logger.info(
            "memory_crm.deal_updated",
            deal_id=deal_id,
            changed_fields=sorted(changes),
        )

    def all_deals(self) -> list[Deal]:
        """Every stored deal in creation order."""
        return list(self._deals.values())
