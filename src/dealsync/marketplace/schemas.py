"""Pydantic schemas for marketplace records as observed in one snapshot.

Defines:
- LicenseData / License: a marketplace entitlement, immutable per snapshot
- TransactionData / Transaction: a sale, renewal, upgrade or refund line
- DataSnapshot: all licenses and transactions downloaded at one point in time

Records carry several identifiers because the marketplace has renamed its
license IDs over time; ``identifiers`` lists the record id plus every
alternate id that is present, so records can be matched across snapshots
by any of them.
"""

from __future__ import annotations

from datetime import date

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field


# ── Licenses ────────────────────────────────────────────────────────────────


class LicenseData(BaseModel):
    """Attributes of a license that are compared between snapshots."""

    model_config = ConfigDict(frozen=True)

    addon_key: str
    addon_name: str
    hosting: str
    maintenance_start_date: date | None = None
    maintenance_end_date: date | None = None
    addon_license_id: str | None = None
    app_entitlement_id: str | None = None
    app_entitlement_number: str | None = None


class License(BaseModel):
    """A marketplace license record."""

    model_config = ConfigDict(frozen=True)

    id: str
    data: LicenseData

    @property
    def hosting(self) -> str:
        return self.data.hosting

    @property
    def identifiers(self) -> tuple[str, ...]:
        ids = (
            self.data.addon_license_id,
            self.data.app_entitlement_id,
            self.data.app_entitlement_number,
        )
        return (self.id, *(i for i in ids if i))


# ── Transactions ────────────────────────────────────────────────────────────


class TransactionData(BaseModel):
    """Attributes of a transaction that are compared between snapshots."""

    model_config = ConfigDict(frozen=True)

    sale_date: date
    sale_type: str
    addon_key: str
    addon_name: str
    hosting: str
    country: str = ""
    region: str = ""
    purchase_price: float = 0.0
    vendor_amount: float = 0.0
    billing_period: str = ""
    maintenance_start_date: date | None = None
    maintenance_end_date: date | None = None


class Transaction(BaseModel):
    """A marketplace transaction line, tied to one license."""

    model_config = ConfigDict(frozen=True)

    id: str
    license_id: str
    data: TransactionData

    @property
    def identifiers(self) -> tuple[str, ...]:
        # A transaction id is only unique together with its license
        return (f"{self.id}[{self.license_id}]",)


# ── Snapshots ───────────────────────────────────────────────────────────────


class DataSnapshot(BaseModel):
    """All marketplace records downloaded at ``timestamp``."""

    timestamp: AwareDatetime
    licenses: list[License] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
