"""Integration tests for DealGenerator over the in-memory CRM.

Tests cover:
- the Cloud eval -> eval -> purchase lifecycle
- repeat purchase after close-won matching no rule
- refunds closing deals lost, and not repeating once lost
- chronological ordering of out-of-order events
- per-license isolation and run summary counts
- malformed rule tables propagating out of a run
"""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError

from src.dealsync.deals.crm.memory import InMemoryCRMAdapter
from src.dealsync.deals.generator import DealGenerator
from src.dealsync.deals.matrix import (
    DealDecisionEngine,
    DecisionMatrix,
    MalformedRuleOutcomeError,
    Rule,
)
from src.dealsync.deals.predicates import EventPredicate, HostingPredicate, StatePredicate
from src.dealsync.deals.schemas import DealRelevantEvent, DealStage, EventType, UpdateOutcome


@pytest.fixture
def crm() -> InMemoryCRMAdapter:
    return InMemoryCRMAdapter()


@pytest.fixture
def generator(crm) -> DealGenerator:
    return DealGenerator(crm, max_concurrency=2)


def _stages(deals) -> list[DealStage]:
    return [d.properties.dealstage for d in deals]


# ── Single License ──────────────────────────────────────────────────────────


class TestProcessLicense:
    """Tests for the per-license decide-then-apply loop."""

    async def test_cloud_trial_lifecycle(self, generator, crm, make_license, make_event) -> None:
        """eval -> create EVAL, eval again -> update, purchase -> close won on that deal."""
        license = make_license(hosting="Cloud")
        events = [
            make_event(EventType.EVAL),
            make_event(EventType.EVAL),
            make_event(EventType.PURCHASE),
        ]

        actions = await generator.process_license(license, events)

        kinds = [(a.mutation.kind, a.mutation.stage) for a in actions]
        assert kinds == [
            ("create", DealStage.EVAL),
            ("update", None),
            ("close", DealStage.CLOSED_WON),
        ]
        created_id = actions[0].deal_id
        assert actions[1].deal_id == created_id
        assert actions[2].deal_id == created_id

        deals = await crm.list_deals(license.id)
        assert len(deals) == 1
        assert deals[0].properties.dealstage == DealStage.CLOSED_WON
        assert deals[0].properties.closedate is not None

    async def test_repeat_purchase_after_close_won_is_no_match(
        self, generator, crm, make_license, make_event
    ) -> None:
        """After close-won neither the NOTHING nor the TRIAL purchase rule applies."""
        license = make_license(hosting="Server")
        events = [
            make_event(EventType.EVAL),
            make_event(EventType.PURCHASE),
            make_event(EventType.PURCHASE),
        ]

        actions = await generator.process_license(license, events)

        assert [a.mutation.kind for a in actions[:2]] == ["create", "close"]
        assert actions[2].mutation is None
        assert _stages(await crm.list_deals(license.id)) == [DealStage.CLOSED_WON]

    async def test_renewal_after_purchase_creates_new_won_deal(
        self, generator, crm, make_license, make_event
    ) -> None:
        """Renewals never touch existing deals; each one is a new won deal."""
        license = make_license(hosting="Cloud")
        events = [
            make_event(EventType.EVAL),
            make_event(EventType.PURCHASE),
            make_event(EventType.RENEWAL),
        ]

        actions = await generator.process_license(license, events)

        assert [a.mutation.kind for a in actions] == ["create", "close", "create"]
        assert _stages(await crm.list_deals(license.id)) == [
            DealStage.CLOSED_WON,
            DealStage.CLOSED_WON,
        ]

    async def test_refund_closes_lost_once(
        self, generator, crm, make_license, make_event
    ) -> None:
        license = make_license(hosting="Data Center")
        events = [
            make_event(EventType.PURCHASE),
            make_event(EventType.REFUND),
            make_event(EventType.REFUND),
        ]

        actions = await generator.process_license(license, events)

        assert actions[0].mutation.kind == "create"
        assert actions[1].mutation.kind == "close"
        assert actions[1].mutation.stage == DealStage.CLOSED_LOST
        # Already lost: the repeated refund is not re-applied
        assert actions[2].mutation is None
        assert _stages(await crm.list_deals(license.id)) == [DealStage.CLOSED_LOST]

    async def test_events_are_applied_chronologically(
        self, generator, crm, make_license, make_event
    ) -> None:
        license = make_license(hosting="Server")
        trial = make_event(EventType.EVAL)
        purchase = make_event(EventType.PURCHASE, timestamp=trial.timestamp + timedelta(days=5))

        actions = await generator.process_license(license, [purchase, trial])

        assert [a.event_type for a in actions] == ["eval", "purchase"]
        assert [a.mutation.kind for a in actions] == ["create", "close"]

    def test_naive_event_timestamp_is_rejected(self) -> None:
        """Naive and aware timestamps cannot be ordered against each other."""
        with pytest.raises(ValidationError):
            DealRelevantEvent(
                type=EventType.EVAL, license_id="L-100", timestamp=datetime(2026, 3, 1)
            )

    async def test_unknown_hosting_only_refunds_act(
        self, generator, crm, make_license, make_event
    ) -> None:
        license = make_license(hosting="Mystery")
        actions = await generator.process_license(license, [make_event(EventType.EVAL)])
        assert actions[0].mutation is None
        assert crm.all_deals() == []


# ── Runs ────────────────────────────────────────────────────────────────────


class TestRun:
    """Tests for multi-license runs."""

    async def test_run_counts_and_isolation(self, generator, crm, make_license, make_event) -> None:
        server = make_license(hosting="Server", license_id="L-1")
        cloud = make_license(hosting="Cloud", license_id="L-2")
        idle = make_license(hosting="Data Center", license_id="L-3")
        events = {
            "L-1": [make_event(EventType.EVAL, "L-1"), make_event(EventType.PURCHASE, "L-1")],
            "L-2": [
                make_event(EventType.EVAL, "L-2"),
                make_event(EventType.EVAL, "L-2"),
                make_event(EventType.REFUND, "L-2"),
                make_event(EventType.REFUND, "L-2"),
            ],
        }

        result = await generator.run([server, cloud, idle], events)

        assert result.created == 2
        assert result.closed == 2
        assert result.updated == 1
        assert result.unmatched == 1
        assert len(result.actions) == 6
        assert _stages(await crm.list_deals("L-1")) == [DealStage.CLOSED_WON]
        assert _stages(await crm.list_deals("L-2")) == [DealStage.CLOSED_LOST]
        assert await crm.list_deals("L-3") == []

    async def test_run_without_events(self, generator, make_license) -> None:
        result = await generator.run([make_license()], {})
        assert result.actions == []
        assert result.created == result.closed == result.updated == result.unmatched == 0

    async def test_malformed_rule_propagates(self, crm, make_license, make_event) -> None:
        """A rule whose ANY state meets an empty deal list cannot update anything."""
        matrix = DecisionMatrix([
            Rule(
                hosting=HostingPredicate.ANY,
                event=EventPredicate.RENEWAL,
                state=StatePredicate.ANY,
                outcome=UpdateOutcome(),
            )
        ])
        generator = DealGenerator(crm, engine=DealDecisionEngine(matrix), max_concurrency=1)

        with pytest.raises(MalformedRuleOutcomeError):
            await generator.run([make_license()], {"L-100": [make_event(EventType.RENEWAL)]})

        assert crm.all_deals() == []
