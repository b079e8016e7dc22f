"""Predicate families used by the deal decision matrix.

Three closed families, each an enum with one pure evaluation function per
member:

- HostingPredicate: matches a license's hosting string (SERVER, DATA_CENTER,
  CLOUD, or ANY which matches every value including unrecognised ones).
- EventPredicate: matches a deal-relevant event's type.
- StatePredicate: queries the license's current CRM deals and returns the
  representative deal alongside the match.

None of these raise. Values outside the known enumerations fail every
specific predicate and only satisfy the ANY variants.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from src.dealsync.deals.schemas import Deal, DealStage, EventType


# ── Hosting ─────────────────────────────────────────────────────────────────


class HostingCategory(str, Enum):
    """Deployment type of a licensed product."""

    SERVER = "Server"
    DATA_CENTER = "Data Center"
    CLOUD = "Cloud"


def classify_hosting(hosting: str | None) -> HostingCategory | None:
    """Map a license's hosting string to its category, or None if unrecognised."""
    try:
        return HostingCategory(hosting)
    except ValueError:
        return None


class HostingPredicate(str, Enum):
    SERVER = "is_server"
    DATA_CENTER = "is_data_center"
    CLOUD = "is_cloud"
    ANY = "is_any"


def is_server(hosting: str | None) -> bool:
    return classify_hosting(hosting) is HostingCategory.SERVER


def is_data_center(hosting: str | None) -> bool:
    return classify_hosting(hosting) is HostingCategory.DATA_CENTER


def is_cloud(hosting: str | None) -> bool:
    return classify_hosting(hosting) is HostingCategory.CLOUD


def is_any(hosting: str | None) -> bool:
    return True


_HOSTING_CHECKS: dict[HostingPredicate, Callable[[str | None], bool]] = {
    HostingPredicate.SERVER: is_server,
    HostingPredicate.DATA_CENTER: is_data_center,
    HostingPredicate.CLOUD: is_cloud,
    HostingPredicate.ANY: is_any,
}


def hosting_matches(predicate: HostingPredicate, hosting: str | None) -> bool:
    return _HOSTING_CHECKS[predicate](hosting)


# ── Events ──────────────────────────────────────────────────────────────────


class EventPredicate(str, Enum):
    NEW_TRIAL = "is_new_trial"
    PURCHASE = "is_purchase"
    RENEWAL = "is_renewal"
    UPGRADED = "is_upgraded"
    REFUNDED = "is_refunded"


def is_new_trial(event_type: str) -> bool:
    return event_type == EventType.EVAL


def is_purchase(event_type: str) -> bool:
    return event_type == EventType.PURCHASE


def is_renewal(event_type: str) -> bool:
    return event_type == EventType.RENEWAL


def is_upgraded(event_type: str) -> bool:
    return event_type == EventType.UPGRADE


def is_refunded(event_type: str) -> bool:
    return event_type == EventType.REFUND


_EVENT_CHECKS: dict[EventPredicate, Callable[[str], bool]] = {
    EventPredicate.NEW_TRIAL: is_new_trial,
    EventPredicate.PURCHASE: is_purchase,
    EventPredicate.RENEWAL: is_renewal,
    EventPredicate.UPGRADED: is_upgraded,
    EventPredicate.REFUNDED: is_refunded,
}


def event_matches(predicate: EventPredicate, event_type: str) -> bool:
    return _EVENT_CHECKS[predicate](event_type)


# ── Deal State ──────────────────────────────────────────────────────────────


class StatePredicate(str, Enum):
    NOTHING = "has_nothing"
    TRIAL = "has_trial"
    NON_LOST = "has_non_lost"
    ANY = "any"


@dataclass(frozen=True)
class StateMatch:
    """Result of a state query: whether it matched and the deal it points at."""

    matched: bool
    deal: Deal | None = None


def has_nothing(deals: Sequence[Deal]) -> StateMatch:
    return StateMatch(matched=len(deals) == 0)


def has_trial(deals: Sequence[Deal]) -> StateMatch:
    deal = next((d for d in deals if d.properties.dealstage == DealStage.EVAL), None)
    return StateMatch(matched=deal is not None, deal=deal)


def has_non_lost(deals: Sequence[Deal]) -> StateMatch:
    deal = next(
        (d for d in deals if d.properties.dealstage != DealStage.CLOSED_LOST), None
    )
    return StateMatch(matched=deal is not None, deal=deal)


def any_state(deals: Sequence[Deal]) -> StateMatch:
    return StateMatch(matched=True, deal=deals[0] if deals else None)


_STATE_CHECKS: dict[StatePredicate, Callable[[Sequence[Deal]], StateMatch]] = {
    StatePredicate.NOTHING: has_nothing,
    StatePredicate.TRIAL: has_trial,
    StatePredicate.NON_LOST: has_non_lost,
    StatePredicate.ANY: any_state,
}


def evaluate_state(predicate: StatePredicate, deals: Sequence[Deal]) -> StateMatch:
    """Run a state query over the deals in the order the caller supplied them."""
    return _STATE_CHECKS[predicate](deals)


def can_supply_deal(predicate: StatePredicate) -> bool:
    """Whether a match of this predicate can ever carry a representative deal."""
    return predicate is not StatePredicate.NOTHING
