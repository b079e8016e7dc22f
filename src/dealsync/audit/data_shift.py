"""Data shift analyzer -- audits successive marketplace snapshots.

A read-only pass over snapshots ordered oldest first. It shares no state
with deal generation and never mutates its input. Checks, in order:

1. Licenses that disappear between consecutive snapshots (warning).
2. Transactions that disappear between consecutive snapshots (warning).
3. Transactions that first appear long after their claimed sale date,
   i.e. were backdated (error). Records already present in the earliest
   snapshot are skipped since their real arrival date is unknown.
4. Transactions whose tracked fields change between sightings (error).
5. Licenses whose tracked fields change between sightings (error).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime, time
from typing import Any

import structlog

from src.dealsync.audit.record_index import RecordIndex
from src.dealsync.audit.schemas import DataShiftFinding, FindingKind, FindingSeverity
from src.dealsync.config import get_settings
from src.dealsync.core.monitoring import data_shift_findings_total
from src.dealsync.marketplace.schemas import (
    DataSnapshot,
    License,
    LicenseData,
    Transaction,
    TransactionData,
)

logger = structlog.get_logger(__name__)

TRANSACTION_KEYS_TO_EXAMINE: tuple[str, ...] = (
    "sale_date",
    "sale_type",
    "addon_key",
    "addon_name",
    "hosting",
    "country",
    "region",
    "purchase_price",
    "vendor_amount",
    "billing_period",
    "maintenance_start_date",
    "maintenance_end_date",
)

LICENSE_KEYS_TO_EXAMINE: tuple[str, ...] = (
    "addon_key",
    "addon_name",
    "hosting",
    "maintenance_start_date",
)

_RECORD_ACCESSORS: dict[
    str, tuple[Callable[[DataSnapshot], Sequence[License | Transaction]], FindingKind]
] = {
    "license": (lambda s: s.licenses, FindingKind.DELETED_LICENSE),
    "transaction": (lambda s: s.transactions, FindingKind.DELETED_TRANSACTION),
}


class DataShiftAnalyzer:
    """Runs all snapshot checks and collects their findings.

    Args:
        late_threshold_days: Days between a transaction's sale date and its
            first sighting beyond which it counts as backdated. Defaults to
            Settings.LATE_TRANSACTION_THRESHOLD_DAYS.
    """

    def __init__(self, late_threshold_days: int | None = None) -> None:
        if late_threshold_days is None:
            late_threshold_days = get_settings().LATE_TRANSACTION_THRESHOLD_DAYS
        self._threshold_days = late_threshold_days
        self._log = logger.bind(label="analyze_data_shift")

    def run(self, snapshots_asc: Sequence[DataSnapshot]) -> list[DataShiftFinding]:
        """Run every check over snapshots sorted oldest first."""
        if not snapshots_asc:
            return []

        findings: list[DataShiftFinding] = []
        findings += self.check_deleted_records(snapshots_asc, "license")
        findings += self.check_deleted_records(snapshots_asc, "transaction")
        findings += self.check_late_transactions(snapshots_asc)
        findings += self.check_altered_transactions(snapshots_asc)
        findings += self.check_altered_licenses(snapshots_asc)

        for finding in findings:
            data_shift_findings_total.labels(kind=finding.kind.value).inc()
        return findings

    def check_deleted_records(
        self,
        snapshots_asc: Sequence[DataSnapshot],
        kind: str,
    ) -> list[DataShiftFinding]:
        """Report records present in one snapshot but missing from the next."""
        if kind not in _RECORD_ACCESSORS:
            raise ValueError(f"Unknown record kind: {kind}")
        get_records, finding_kind = _RECORD_ACCESSORS[kind]

        self._log.info("data_shift.deleted_check_started", kind=kind)
        findings: list[DataShiftFinding] = []
        if not snapshots_asc:
            return findings

        first, *remaining = snapshots_asc
        last_index: RecordIndex[License | Transaction, bool] = RecordIndex()
        for record in get_records(first):
            last_index.set(record, True)

        for snapshot in remaining:
            current_index: RecordIndex[License | Transaction, bool] = RecordIndex()
            for record in get_records(snapshot):
                current_index.set(record, True)

            for record, _ in last_index.entries():
                if record not in current_index:
                    self._log.warning(
                        "data_shift.record_missing",
                        kind=kind,
                        record_id=record.id,
                        timestamp_checked=snapshot.timestamp.isoformat(),
                    )
                    findings.append(
                        DataShiftFinding(
                            kind=finding_kind,
                            severity=FindingSeverity.WARNING,
                            record_id=record.id,
                            snapshot_timestamp=snapshot.timestamp,
                        )
                    )

            last_index = current_index

        self._log.info("data_shift.deleted_check_done", kind=kind, found=len(findings))
        return findings

    def check_late_transactions(
        self, snapshots_asc: Sequence[DataSnapshot]
    ) -> list[DataShiftFinding]:
        """Report transactions first seen more than the threshold after their sale date."""
        self._log.info("data_shift.late_check_started")
        findings: list[DataShiftFinding] = []
        if not snapshots_asc:
            return findings

        # Walk newest to oldest so each transaction ends up with its earliest sighting
        first_seen: RecordIndex[Transaction, datetime] = RecordIndex()
        for snapshot in reversed(snapshots_asc):
            for transaction in snapshot.transactions:
                first_seen.set(transaction, snapshot.timestamp)

        earliest = snapshots_asc[0].timestamp

        for transaction, found in first_seen.entries():
            if found == earliest:
                continue

            claimed = datetime.combine(transaction.data.sale_date, time(), tzinfo=found.tzinfo)
            late_by_days = (found - claimed).total_seconds() / 86400
            if late_by_days > self._threshold_days:
                self._log.error(
                    "data_shift.late_transaction",
                    transaction_id=transaction.id,
                    expected=transaction.data.sale_date.isoformat(),
                    found=found.isoformat(),
                )
                findings.append(
                    DataShiftFinding(
                        kind=FindingKind.LATE_TRANSACTION,
                        severity=FindingSeverity.ERROR,
                        record_id=transaction.id,
                        snapshot_timestamp=found,
                        details={
                            "expected": transaction.data.sale_date.isoformat(),
                            "found": found.isoformat(),
                            "late_by_days": round(late_by_days, 2),
                        },
                    )
                )

        self._log.info("data_shift.late_check_done", found=len(findings))
        return findings

    def check_altered_transactions(
        self, snapshots_asc: Sequence[DataSnapshot]
    ) -> list[DataShiftFinding]:
        """Report tracked transaction fields that change between sightings."""
        self._log.info("data_shift.altered_transactions_check_started")
        last_seen: RecordIndex[Transaction, TransactionData] = RecordIndex()
        findings: list[DataShiftFinding] = []

        for snapshot in snapshots_asc:
            for transaction in snapshot.transactions:
                previous = last_seen.get(transaction)
                if previous is not None:
                    findings += self._compare(
                        FindingKind.ALTERED_TRANSACTION,
                        transaction.id,
                        snapshot.timestamp,
                        transaction.data,
                        previous,
                        TRANSACTION_KEYS_TO_EXAMINE,
                    )
                last_seen.set(transaction, transaction.data)

        self._log.info("data_shift.altered_transactions_check_done", found=len(findings))
        return findings

    def check_altered_licenses(
        self, snapshots_asc: Sequence[DataSnapshot]
    ) -> list[DataShiftFinding]:
        """Report tracked license fields that change between sightings."""
        self._log.info("data_shift.altered_licenses_check_started")
        last_seen: RecordIndex[License, LicenseData] = RecordIndex()
        findings: list[DataShiftFinding] = []

        for snapshot in snapshots_asc:
            for license in snapshot.licenses:
                previous = last_seen.get(license)
                if previous is not None:
                    findings += self._compare(
                        FindingKind.ALTERED_LICENSE,
                        license.id,
                        snapshot.timestamp,
                        license.data,
                        previous,
                        LICENSE_KEYS_TO_EXAMINE,
                    )
                last_seen.set(license, license.data)

        self._log.info("data_shift.altered_licenses_check_done", found=len(findings))
        return findings

    def _compare(
        self,
        kind: FindingKind,
        record_id: str,
        timestamp: datetime,
        current: Any,
        previous: Any,
        keys: tuple[str, ...],
    ) -> list[DataShiftFinding]:
        findings: list[DataShiftFinding] = []
        for key in keys:
            val = getattr(current, key)
            last_val = getattr(previous, key)
            if val != last_val:
                self._log.error(
                    f"data_shift.{kind.value}",
                    record_id=record_id,
                    key=key,
                    val=val,
                    last_val=last_val,
                )
                findings.append(
                    DataShiftFinding(
                        kind=kind,
                        severity=FindingSeverity.ERROR,
                        record_id=record_id,
                        snapshot_timestamp=timestamp,
                        details={"key": key, "val": val, "last_val": last_val},
                    )
                )
        return findings
