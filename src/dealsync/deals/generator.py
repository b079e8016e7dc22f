"""Deal generator -- replays deal-relevant events through the decision engine.

Per license, events are evaluated in chronological order and the license's
CRM deals are re-read before every decision, because each decision depends
on the effects of the ones before it. Licenses share nothing, so they are
processed concurrently up to a configurable limit.

MalformedRuleOutcomeError is never caught here: a malformed rule table must
stop the run rather than close the wrong deal.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Mapping

import structlog

from src.dealsync.config import get_settings
from src.dealsync.core.monitoring import deal_decisions_total
from src.dealsync.deals.applier import OutcomeApplier
from src.dealsync.deals.crm.adapter import CRMAdapter
from src.dealsync.deals.matrix import DealDecisionEngine
from src.dealsync.deals.schemas import (
    DealAction,
    DealRelevantEvent,
    GenerationResult,
)
from src.dealsync.marketplace.schemas import License

logger = structlog.get_logger(__name__)


class DealGenerator:
    """Drives events for many licenses through decide-then-apply.

    Args:
        crm: CRM adapter supplying current deals and receiving mutations.
        engine: Decision engine. Defaults to one over the default matrix.
        max_concurrency: Licenses processed at once. Defaults to
            Settings.MAX_CONCURRENT_LICENSES.
    """

    def __init__(
        self,
        crm: CRMAdapter,
        engine: DealDecisionEngine | None = None,
        max_concurrency: int | None = None,
    ) -> None:
        self._crm = crm
        self._engine = engine or DealDecisionEngine()
        self._applier = OutcomeApplier(crm)
        self._max_concurrency = max_concurrency or get_settings().MAX_CONCURRENT_LICENSES

    async def process_license(
        self,
        license: License,
        events: Iterable[DealRelevantEvent],
    ) -> list[DealAction]:
        """Evaluate and apply one license's events in chronological order.

        Args:
            license: The license the events belong to.
            events: Deal-relevant events for this license, in any order.

        Returns:
            One DealAction per event, in the order they were evaluated.
        """
        log = logger.bind(license_id=license.id, hosting=license.hosting)
        actions: list[DealAction] = []

        for event in sorted(events, key=lambda e: e.timestamp):
            deals = await self._crm.list_deals(license.id)
            decision = self._engine.decide(license.hosting, event.type, deals)

            if decision is None:
                deal_decisions_total.labels(outcome="no_match").inc()
                log.debug("deal_generator.no_action", event_type=event.type)
                actions.append(
                    DealAction(
                        license_id=license.id,
                        event_type=event.type,
                        event_timestamp=event.timestamp,
                    )
                )
                continue

            deal_decisions_total.labels(outcome=decision.outcome.type).inc()
            mutation = await self._applier.apply(decision, license)
            actions.append(
                DealAction(
                    license_id=license.id,
                    event_type=event.type,
                    event_timestamp=event.timestamp,
                    rule_index=decision.rule_index,
                    mutation=mutation,
                    deal_id=mutation.deal_id,
                )
            )

        return actions

    async def run(
        self,
        licenses: Iterable[License],
        events_by_license: Mapping[str, list[DealRelevantEvent]],
    ) -> GenerationResult:
        """Process every license's events and summarise what was done.

        Args:
            licenses: Licenses to process.
            events_by_license: Events keyed by license ID. Licenses with no
                entry are skipped.

        Returns:
            GenerationResult with per-kind counts and all actions.
        """
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _bounded(license: License) -> list[DealAction]:
            async with semaphore:
                return await self.process_license(
                    license, events_by_license.get(license.id, [])
                )

        license_list = list(licenses)
        per_license = await asyncio.gather(*(_bounded(lic) for lic in license_list))

        result = GenerationResult()
        for actions in per_license:
            for action in actions:
                result.actions.append(action)
                if action.mutation is None:
                    result.unmatched += 1
                elif action.mutation.kind == "create":
                    result.created += 1
                elif action.mutation.kind == "close":
                    result.closed += 1
                else:
                    result.updated += 1

        logger.info(
            "deal_generator.run_complete",
            licenses=len(license_list),
            created=result.created,
            closed=result.closed,
            updated=result.updated,
            unmatched=result.unmatched,
        )
        return result
