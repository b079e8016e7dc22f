"""Pydantic schemas for deal generation -- CRM deals, events, outcomes, mutations.

Defines all structured types flowing through the decision engine:
- Enums: DealStage, EventType
- CRM records: DealProperties, Deal
- Marketplace-derived input: DealRelevantEvent
- Outcomes: CreateOutcome, CloseOutcome, UpdateOutcome (discriminated on ``type``)
- CRM payloads: DealCreate, DealUpdate, DealMutation
- Run summary: DealAction, GenerationResult
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import AwareDatetime, BaseModel, ConfigDict, Field, field_validator


# ── Enums ───────────────────────────────────────────────────────────────────


class DealStage(str, Enum):
    """CRM pipeline stage for a license deal."""

    EVAL = "eval"
    NEGOTIATION = "negotiation"
    CLOSED_WON = "closed_won"
    CLOSED_LOST = "closed_lost"


TERMINAL_STAGES: frozenset[DealStage] = frozenset(
    {DealStage.CLOSED_WON, DealStage.CLOSED_LOST}
)


class EventType(str, Enum):
    """Kind of deal-relevant event derived from a license's transaction history."""

    EVAL = "eval"
    PURCHASE = "purchase"
    RENEWAL = "renewal"
    UPGRADE = "upgrade"
    REFUND = "refund"


# ── CRM Records ─────────────────────────────────────────────────────────────


class DealProperties(BaseModel):
    """CRM-side deal properties the engine reads and writes."""

    model_config = ConfigDict(frozen=True)

    dealstage: DealStage
    dealname: str | None = None
    closedate: datetime | None = None


class Deal(BaseModel):
    """A CRM deal tied to one marketplace license."""

    model_config = ConfigDict(frozen=True)

    id: str
    license_id: str
    properties: DealProperties
    updated_at: datetime | None = None

    @property
    def stage(self) -> DealStage:
        return self.properties.dealstage


# ── Events ──────────────────────────────────────────────────────────────────


class DealRelevantEvent(BaseModel):
    """A classified business event for one license.

    ``type`` is stored as the plain EventType value. Strings outside
    EventType are kept as-is so unknown kinds reach the matrix and simply
    match nothing.
    """

    model_config = ConfigDict(frozen=True)

    type: str
    license_id: str
    timestamp: AwareDatetime
    transaction_ids: list[str] = Field(default_factory=list)

    @field_validator("type", mode="before")
    @classmethod
    def _unwrap_enum(cls, value: object) -> object:
        if isinstance(value, EventType):
            return value.value
        return value


# ── Outcomes ────────────────────────────────────────────────────────────────


class CreateOutcome(BaseModel):
    """Create a new deal for the license at ``stage``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["create"] = "create"
    stage: DealStage

    @property
    def requires_deal(self) -> bool:
        return False


class CloseOutcome(BaseModel):
    """Move the representative deal to the terminal ``stage``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["close"] = "close"
    stage: DealStage

    @property
    def requires_deal(self) -> bool:
        return True


class UpdateOutcome(BaseModel):
    """Touch the representative deal without changing its stage."""

    model_config = ConfigDict(frozen=True)

    type: Literal["update"] = "update"

    @property
    def requires_deal(self) -> bool:
        return True


Outcome = Annotated[
    Union[CreateOutcome, CloseOutcome, UpdateOutcome],
    Field(discriminator="type"),
]


# ── CRM Payloads ────────────────────────────────────────────────────────────


class DealCreate(BaseModel):
    """Schema for creating a new deal."""

    license_id: str
    dealstage: DealStage
    dealname: str | None = None
    closedate: datetime | None = None


class DealUpdate(BaseModel):
    """Schema for updating a deal (all fields optional; empty means touch)."""

    dealstage: DealStage | None = None
    closedate: datetime | None = None


class DealMutation(BaseModel):
    """The single CRM mutation an outcome resolves to."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["create", "close", "update"]
    license_id: str
    deal_id: str | None = None
    stage: DealStage | None = None


# ── Run Summary ─────────────────────────────────────────────────────────────


class DealAction(BaseModel):
    """What happened for one event during a generator run."""

    license_id: str
    event_type: str
    event_timestamp: datetime
    rule_index: int | None = None
    mutation: DealMutation | None = None
    deal_id: str | None = None


class GenerationResult(BaseModel):
    """Summary of a deal generator run."""

    created: int = 0
    closed: int = 0
    updated: int = 0
    unmatched: int = 0
    actions: list[DealAction] = Field(default_factory=list)
    finished_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
