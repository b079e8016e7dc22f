"""Deal decision matrix -- ordered rules mapping marketplace events to CRM outcomes.

Each rule is (hosting predicate, event predicate, state predicate, outcome).
Evaluation walks the rules in authored order and stops at the first rule
whose three predicates all match. The order is part of the contract:
hosting-specific rules come first and the cross-hosting refund rule comes
last, so reordering silently changes decisions.

IMPORTANT: Cloud's purchase rules are authored TRIAL before NOTHING, unlike
Server and Data Center. Keep the order as written.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence

import structlog
from pydantic import BaseModel, ConfigDict

from src.dealsync.deals.predicates import (
    EventPredicate,
    HostingPredicate,
    StatePredicate,
    can_supply_deal,
    evaluate_state,
    event_matches,
    hosting_matches,
)
from src.dealsync.deals.schemas import (
    CloseOutcome,
    CreateOutcome,
    Deal,
    DealStage,
    Outcome,
    UpdateOutcome,
)

logger = structlog.get_logger(__name__)


class MalformedRuleOutcomeError(ValueError):
    """Raised when a rule's outcome needs an existing deal its state predicate cannot supply."""

    def __init__(self, rule_index: int, outcome_type: str, reason: str) -> None:
        self.rule_index = rule_index
        self.outcome_type = outcome_type
        super().__init__(
            f"Malformed decision rule #{rule_index}: '{outcome_type}' outcome {reason}"
        )


# ── Rules ───────────────────────────────────────────────────────────────────


class Rule(BaseModel):
    """One row of the decision matrix."""

    model_config = ConfigDict(frozen=True)

    hosting: HostingPredicate
    event: EventPredicate
    state: StatePredicate
    outcome: Outcome

    def describe(self) -> str:
        stage = getattr(self.outcome, "stage", None)
        target = f" {stage.value}" if stage is not None else ""
        return (
            f"{self.hosting.value} & {self.event.value} & {self.state.value}"
            f" -> {self.outcome.type}{target}"
        )


class Decision(BaseModel):
    """The winning rule for one event and the deal its state predicate picked."""

    model_config = ConfigDict(frozen=True)

    rule_index: int
    rule: Rule
    outcome: Outcome
    deal: Deal | None = None


class DecisionMatrix:
    """Immutable, ordered collection of decision rules.

    Rules that can never be applied (an outcome needing an existing deal
    paired with a state predicate that never supplies one) are rejected at
    construction.

    Args:
        rules: Rules in priority order; the first full match wins.
    """

    def __init__(self, rules: Sequence[Rule]) -> None:
        for index, rule in enumerate(rules):
            if rule.outcome.requires_deal and not can_supply_deal(rule.state):
                raise MalformedRuleOutcomeError(
                    index,
                    rule.outcome.type,
                    f"is paired with state predicate '{rule.state.value}', "
                    "which never yields a deal",
                )
        self._rules: tuple[Rule, ...] = tuple(rules)

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules)

    def __getitem__(self, index: int) -> Rule:
        return self._rules[index]

    def describe(self) -> list[str]:
        """Human-readable rows in authored order, for docs and debugging."""
        return [f"{i:>2} {rule.describe()}" for i, rule in enumerate(self._rules)]


# ── Default Matrix ──────────────────────────────────────────────────────────

_CREATE_TRIAL = CreateOutcome(stage=DealStage.EVAL)
_CREATE_WON = CreateOutcome(stage=DealStage.CLOSED_WON)
_CLOSE_WON = CloseOutcome(stage=DealStage.CLOSED_WON)
_CLOSE_LOST = CloseOutcome(stage=DealStage.CLOSED_LOST)
_UPDATE = UpdateOutcome()

_H = HostingPredicate
_E = EventPredicate
_S = StatePredicate


def _rule(
    hosting: HostingPredicate, event: EventPredicate, state: StatePredicate, outcome: Outcome
) -> Rule:
    return Rule(hosting=hosting, event=event, state=state, outcome=outcome)


DEFAULT_DECISION_MATRIX = DecisionMatrix([
    _rule(_H.SERVER, _E.NEW_TRIAL, _S.NOTHING, _CREATE_TRIAL),
    _rule(_H.SERVER, _E.NEW_TRIAL, _S.TRIAL, _UPDATE),
    _rule(_H.SERVER, _E.PURCHASE, _S.NOTHING, _CREATE_WON),
    _rule(_H.SERVER, _E.PURCHASE, _S.TRIAL, _CLOSE_WON),
    _rule(_H.SERVER, _E.RENEWAL, _S.ANY, _CREATE_WON),
    _rule(_H.SERVER, _E.UPGRADED, _S.ANY, _CREATE_WON),

    _rule(_H.DATA_CENTER, _E.NEW_TRIAL, _S.NOTHING, _CREATE_TRIAL),
    _rule(_H.DATA_CENTER, _E.NEW_TRIAL, _S.TRIAL, _UPDATE),
    _rule(_H.DATA_CENTER, _E.PURCHASE, _S.NOTHING, _CREATE_WON),
    _rule(_H.DATA_CENTER, _E.PURCHASE, _S.TRIAL, _CLOSE_WON),
    _rule(_H.DATA_CENTER, _E.RENEWAL, _S.ANY, _CREATE_WON),
    _rule(_H.DATA_CENTER, _E.UPGRADED, _S.ANY, _CREATE_WON),

    _rule(_H.CLOUD, _E.NEW_TRIAL, _S.NOTHING, _CREATE_TRIAL),
    _rule(_H.CLOUD, _E.NEW_TRIAL, _S.TRIAL, _UPDATE),
    _rule(_H.CLOUD, _E.PURCHASE, _S.TRIAL, _CLOSE_WON),
    _rule(_H.CLOUD, _E.PURCHASE, _S.NOTHING, _CREATE_WON),
    _rule(_H.CLOUD, _E.RENEWAL, _S.ANY, _CREATE_WON),
    _rule(_H.CLOUD, _E.UPGRADED, _S.ANY, _CREATE_WON),

    _rule(_H.ANY, _E.REFUNDED, _S.NON_LOST, _CLOSE_LOST),
])


# ── Engine ──────────────────────────────────────────────────────────────────


class DealDecisionEngine:
    """Evaluates one event against a decision matrix.

    Pure computation over in-memory data: the deals passed to ``decide`` are
    treated as an immutable snapshot and nothing is fetched or written.

    Args:
        matrix: Rule table to evaluate. Defaults to DEFAULT_DECISION_MATRIX.
    """

    def __init__(self, matrix: DecisionMatrix = DEFAULT_DECISION_MATRIX) -> None:
        self._matrix = matrix

    @property
    def matrix(self) -> DecisionMatrix:
        return self._matrix

    def decide(
        self,
        hosting: str | None,
        event_type: str,
        deals: Sequence[Deal],
    ) -> Decision | None:
        """Return the first fully matching rule's decision, or None for no match.

        Args:
            hosting: The license's hosting attribute.
            event_type: The event's type value.
            deals: The license's current CRM deals, in a stable order.

        Returns:
            Decision carrying the outcome and the matching rule's
            representative deal, or None when no rule applies.
        """
        for index, rule in enumerate(self._matrix):
            if not hosting_matches(rule.hosting, hosting):
                continue
            if not event_matches(rule.event, event_type):
                continue
            match = evaluate_state(rule.state, deals)
            if not match.matched:
                continue

            logger.debug(
                "deal_engine.decided",
                rule_index=index,
                rule=rule.describe(),
                deal_id=match.deal.id if match.deal else None,
            )
            return Decision(
                rule_index=index,
                rule=rule,
                outcome=rule.outcome,
                deal=match.deal,
            )

        logger.debug(
            "deal_engine.no_match",
            hosting=hosting,
            event_type=event_type,
            deal_count=len(deals),
        )
        return None
