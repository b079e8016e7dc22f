"""CRM integration layer -- pluggable adapter pattern for deal mutations.

Provides the abstract CRMAdapter interface with concrete implementations:
- InMemoryCRMAdapter: insertion-ordered store for dry runs and tests
- create_crm_adapter: picks the adapter from Settings.DRY_RUN
"""

from src.dealsync.deals.crm.adapter import CRMAdapter
from src.dealsync.deals.crm.factory import CRMNotConfiguredError, create_crm_adapter
from src.dealsync.deals.crm.memory import DealNotFoundError, InMemoryCRMAdapter

__all__ = [
    "CRMAdapter",
    "CRMNotConfiguredError",
    "DealNotFoundError",
    "InMemoryCRMAdapter",
    "create_crm_adapter",
]
