"""CRM adapter abstract base class -- the interface the deal generator talks to.

Every CRM backend (the in-memory store used for dry runs, a future HubSpot
client) implements this ABC. All blocking I/O lives behind it; the decision
engine itself never calls it.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.dealsync.deals.schemas import Deal, DealCreate, DealUpdate


class CRMAdapter(ABC):
    """Abstract interface for CRM deal operations.

    Methods:
        list_deals: Deals associated with a license, in a stable order.
        get_deal: Fetch a deal by ID.
        create_deal: Create a deal, return its ID.
        update_deal: Update deal fields by ID (an empty update is a touch).
    """

    @abstractmethod
    async def list_deals(self, license_id: str) -> list[Deal]:
        """Deals for a license, in a stable order."""
        ...

    @abstractmethod
    async def get_deal(self, deal_id: str) -> Deal | None:
        """Fetch deal by ID."""
        ...

    @abstractmethod
    async def create_deal(self, deal: DealCreate) -> str:
        """Create deal, return its ID."""
        ...

    @abstractmethod
    async def update_deal(self, deal_id: str, data: DealUpdate) -> None:
        """Update deal fields by ID."""
        ...
