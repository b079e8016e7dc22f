#!/usr/bin/env python3
"""Replay deal-relevant events against an in-memory CRM and report the decisions.

Usage:
    python scripts/run_deal_generator.py --snapshot snapshot.json --events events.json
    python scripts/run_deal_generator.py --snapshot snapshot.json --events events.json --show-matrix

The snapshot file holds one DataSnapshot; the events file holds a JSON list
of DealRelevantEvent objects. Runs only with DRY_RUN enabled (the default);
nothing is written to a real CRM.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections import defaultdict
from pathlib import Path

# Ensure project root is on sys.path so we can import src.dealsync
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from pydantic import TypeAdapter  # noqa: E402

from src.dealsync.core.logging import configure_structlog  # noqa: E402
from src.dealsync.core.monitoring import get_metrics_text  # noqa: E402
from src.dealsync.deals.crm.factory import CRMNotConfiguredError, create_crm_adapter  # noqa: E402
from src.dealsync.deals.generator import DealGenerator  # noqa: E402
from src.dealsync.deals.matrix import DEFAULT_DECISION_MATRIX  # noqa: E402
from src.dealsync.deals.schemas import DealRelevantEvent, GenerationResult  # noqa: E402
from src.dealsync.marketplace.schemas import DataSnapshot  # noqa: E402

_events_adapter = TypeAdapter(list[DealRelevantEvent])


async def replay(snapshot_path: str, events_path: str) -> GenerationResult:
    """Load inputs and run the generator against the configured CRM adapter."""
    snapshot = DataSnapshot.model_validate_json(Path(snapshot_path).read_text())
    events = _events_adapter.validate_json(Path(events_path).read_text())

    events_by_license: dict[str, list[DealRelevantEvent]] = defaultdict(list)
    for event in events:
        events_by_license[event.license_id].append(event)

    generator = DealGenerator(create_crm_adapter())
    return await generator.run(snapshot.licenses, events_by_license)


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Dry-run the deal decision matrix over marketplace events"
    )
    parser.add_argument("--snapshot", required=True, help="DataSnapshot JSON file")
    parser.add_argument("--events", required=True, help="JSON list of deal-relevant events")
    parser.add_argument(
        "--show-matrix",
        action="store_true",
        help="Print the decision matrix rules in evaluation order first",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print Prometheus metrics after the run",
    )
    args = parser.parse_args()

    configure_structlog(run_label="deal_generator")

    if args.show_matrix:
        for row in DEFAULT_DECISION_MATRIX.describe():
            print(row)
        print()

    try:
        result = asyncio.run(replay(args.snapshot, args.events))
    except CRMNotConfiguredError as exc:
        print(f"ERROR: {exc}. Set DRY_RUN=true to replay against memory.", file=sys.stderr)
        sys.exit(2)

    print(
        f"created={result.created} closed={result.closed} "
        f"updated={result.updated} unmatched={result.unmatched}"
    )
    if args.metrics:
        print(get_metrics_text())


if __name__ == "__main__":
    main()
