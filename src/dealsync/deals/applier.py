"""Outcome applier -- turns a matrix decision into exactly one CRM mutation.

``plan`` resolves the decision to a DealMutation without touching the CRM;
``apply`` plans and then issues the single CRM call. A close or update
outcome without a representative deal means the rule table is malformed,
so MalformedRuleOutcomeError is raised before anything is written.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog

from src.dealsync.core.monitoring import deal_mutations_total
from src.dealsync.deals.crm.adapter import CRMAdapter
from src.dealsync.deals.matrix import Decision, MalformedRuleOutcomeError
from src.dealsync.deals.schemas import (
    CloseOutcome,
    CreateOutcome,
    DealCreate,
    DealMutation,
    DealUpdate,
    TERMINAL_STAGES,
)
from src.dealsync.marketplace.schemas import License

logger = structlog.get_logger(__name__)


class OutcomeApplier:
    """Executes decided outcomes against a CRM adapter.

    Args:
        crm: CRM adapter receiving the mutation.
    """

    def __init__(self, crm: CRMAdapter) -> None:
        self._crm = crm

    def plan(self, decision: Decision, license: License) -> DealMutation:
        """Resolve a decision to the mutation it requests.

        Raises:
            MalformedRuleOutcomeError: If the outcome targets an existing deal
                but the matching rule's state predicate supplied none.
        """
        outcome = decision.outcome

        if isinstance(outcome, CreateOutcome):
            return DealMutation(
                kind="create",
                license_id=license.id,
                stage=outcome.stage,
            )

        if decision.deal is None:
            raise MalformedRuleOutcomeError(
                decision.rule_index,
                outcome.type,
                "requires an existing deal but no representative deal was matched",
            )

        if isinstance(outcome, CloseOutcome):
            return DealMutation(
                kind="close",
                license_id=license.id,
                deal_id=decision.deal.id,
                stage=outcome.stage,
            )

        return DealMutation(
            kind="update",
            license_id=license.id,
            deal_id=decision.deal.id,
        )

    async def apply(self, decision: Decision, license: License) -> DealMutation:
        """Plan the decision and perform its CRM mutation.

        Returns:
            The executed mutation; for creates, ``deal_id`` holds the new ID.
        """
        mutation = self.plan(decision, license)

        if mutation.kind == "create":
            deal_id = await self._crm.create_deal(
                DealCreate(
                    license_id=license.id,
                    dealstage=mutation.stage,
                    dealname=_deal_name(license),
                    closedate=_close_date_for(mutation),
                )
            )
            mutation = mutation.model_copy(update={"deal_id": deal_id})
        elif mutation.kind == "close":
            await self._crm.update_deal(
                mutation.deal_id,
                DealUpdate(dealstage=mutation.stage, closedate=datetime.now(timezone.utc)),
            )
        else:
            await self._crm.update_deal(mutation.deal_id, DealUpdate())

        deal_mutations_total.labels(kind=mutation.kind).inc()
        logger.info(
            "outcome_applier.applied",
            kind=mutation.kind,
            license_id=license.id,
            deal_id=mutation.deal_id,
            stage=mutation.stage.value if mutation.stage else None,
            rule_index=decision.rule_index,
        )
        return mutation


def _deal_name(license: License) -> str:
    return f"{license.data.addon_name} at {license.id}"


def _close_date_for(mutation: DealMutation) -> datetime | None:
    # Deals created directly in a terminal stage are closed on creation
    if mutation.stage in TERMINAL_STAGES:
        return datetime.now(timezone.utc)
    return None
