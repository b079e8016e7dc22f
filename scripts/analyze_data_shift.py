#!/usr/bin/env python3
"""Audit successive marketplace snapshots for deleted, backdated and altered records.

Usage:
    python scripts/analyze_data_shift.py snapshots/*.json
    python scripts/analyze_data_shift.py snapshots/*.json --threshold-days 45

Each file holds one DataSnapshot as JSON ({"timestamp", "licenses",
"transactions"}). Files are sorted by snapshot timestamp, not by name.

Exit code 0 if no error-level findings, 1 otherwise.
"""

from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Ensure project root is on sys.path so we can import src.dealsync
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from src.dealsync.audit.data_shift import DataShiftAnalyzer  # noqa: E402
from src.dealsync.audit.schemas import DataShiftFinding, FindingSeverity  # noqa: E402
from src.dealsync.core.logging import configure_structlog  # noqa: E402
from src.dealsync.marketplace.schemas import DataSnapshot  # noqa: E402


def load_snapshots(paths: list[str]) -> list[DataSnapshot]:
    """Parse snapshot files and order them oldest first."""
    snapshots = [DataSnapshot.model_validate_json(Path(p).read_text()) for p in paths]
    return sorted(snapshots, key=lambda s: s.timestamp)


def print_findings(findings: list[DataShiftFinding]) -> None:
    """Print a formatted table of findings."""
    header = f"{'SEVERITY':<10} {'KIND':<22} {'RECORD':<30} {'DETAIL'}"
    separator = "-" * 90
    print()
    print(separator)
    print(header)
    print(separator)
    for f in findings:
        detail = ", ".join(f"{k}={v}" for k, v in f.details.items())
        print(f"{f.severity.value:<10} {f.kind.value:<22} {f.record_id:<30} {detail}")
    print(separator)
    print()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Check marketplace snapshots for deleted, late and altered records"
    )
    parser.add_argument("snapshots", nargs="+", help="Snapshot JSON files")
    parser.add_argument(
        "--threshold-days",
        type=int,
        default=None,
        help="Days after the sale date beyond which a transaction counts as late",
    )
    args = parser.parse_args()

    configure_structlog(run_label="analyze_data_shift")

    snapshots = load_snapshots(args.snapshots)
    findings = DataShiftAnalyzer(late_threshold_days=args.threshold_days).run(snapshots)

    print_findings(findings)

    errors = [f for f in findings if f.severity == FindingSeverity.ERROR]
    print(f"{len(findings)} findings, {len(errors)} errors across {len(snapshots)} snapshots.")
    sys.exit(1 if errors else 0)


if __name__ == "__main__":
    main()
