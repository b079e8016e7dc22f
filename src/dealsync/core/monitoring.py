"""Prometheus metrics for deal decisions and snapshot audits.

Provides:
- deal_decisions_total: one increment per evaluated event, labelled by outcome
- deal_mutations_total: CRM mutations actually requested
- data_shift_findings_total: audit findings by kind
- get_metrics_text(): exposition text for scraping or dumping after a run
"""

from __future__ import annotations

from prometheus_client import REGISTRY, Counter, generate_latest

# ── Deal Engine Metrics ──────────────────────────────────────────────────────

deal_decisions_total = Counter(
    "deal_decisions_total",
    "Deal-relevant events evaluated against the decision matrix",
    ["outcome"],
)

deal_mutations_total = Counter(
    "deal_mutations_total",
    "CRM deal mutations requested by the outcome applier",
    ["kind"],
)

# ── Audit Metrics ────────────────────────────────────────────────────────────

data_shift_findings_total = Counter(
    "data_shift_findings_total",
    "Findings reported by the data shift analyzer",
    ["kind"],
)


def get_metrics_text() -> str:
    """Render all registered metrics in Prometheus text format."""
    return generate_latest(REGISTRY).decode("utf-8")
