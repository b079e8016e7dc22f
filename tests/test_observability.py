"""Tests for settings, structlog configuration and Prometheus counters."""

from __future__ import annotations

import pytest
import structlog
from prometheus_client import REGISTRY

from src.dealsync.config import Environment, Settings, get_settings
from src.dealsync.core.logging import configure_structlog
from src.dealsync.core.monitoring import get_metrics_text
from src.dealsync.deals.crm.memory import InMemoryCRMAdapter
from src.dealsync.deals.generator import DealGenerator
from src.dealsync.deals.matrix import DealDecisionEngine
from src.dealsync.deals.schemas import EventType


def _sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestSettings:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.delenv("DRY_RUN", raising=False)
        settings = Settings()
        assert settings.ENVIRONMENT == Environment.development
        assert settings.LATE_TRANSACTION_THRESHOLD_DAYS == 30
        assert settings.MAX_CONCURRENT_LICENSES == 8
        assert settings.DRY_RUN is True
        assert settings.is_production is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "production")
        monkeypatch.setenv("LATE_TRANSACTION_THRESHOLD_DAYS", "45")
        monkeypatch.setenv("DRY_RUN", "false")
        settings = Settings()
        assert settings.is_production is True
        assert settings.LATE_TRANSACTION_THRESHOLD_DAYS == 45
        assert settings.DRY_RUN is False

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()


class TestLogging:
    @pytest.fixture(autouse=True)
    def _clear_context(self):
        yield
        structlog.contextvars.clear_contextvars()

    def test_configure_structlog_sets_processors(self):
        configure_structlog(settings=Settings(ENVIRONMENT=Environment.development))
        processors = structlog.get_config()["processors"]
        assert structlog.contextvars.merge_contextvars in processors
        assert any(isinstance(p, structlog.processors.TimeStamper) for p in processors)
        assert isinstance(processors[-1], structlog.dev.ConsoleRenderer)

    def test_production_renders_json(self):
        configure_structlog(settings=Settings(ENVIRONMENT=Environment.production))
        processors = structlog.get_config()["processors"]
        assert isinstance(processors[-1], structlog.processors.JSONRenderer)

    def test_run_label_is_bound_to_context(self):
        run_id = configure_structlog(run_label="deal_generator")
        context = structlog.contextvars.get_contextvars()
        assert context["run"] == "deal_generator"
        assert context["run_id"] == run_id

    def test_no_label_clears_previous_context(self):
        configure_structlog(run_label="analyze_data_shift")
        assert configure_structlog() is None
        assert structlog.contextvars.get_contextvars() == {}


class TestMetrics:
    async def test_decisions_are_counted_per_processed_event(self, make_license, make_event):
        created_before = _sample("deal_decisions_total", {"outcome": "create"})
        unmatched_before = _sample("deal_decisions_total", {"outcome": "no_match"})
        generator = DealGenerator(InMemoryCRMAdapter(), max_concurrency=1)

        await generator.process_license(
            make_license(hosting="Server"),
            [make_event(EventType.EVAL), make_event("chargeback")],
        )

        assert _sample("deal_decisions_total", {"outcome": "create"}) == created_before + 1
        assert _sample("deal_decisions_total", {"outcome": "no_match"}) == unmatched_before + 1

    def test_engine_decide_does_not_touch_counters(self):
        before = _sample("deal_decisions_total", {"outcome": "create"})
        DealDecisionEngine().decide("Server", "eval", [])
        assert _sample("deal_decisions_total", {"outcome": "create"}) == before

    def test_metrics_text_lists_counters(self):
        assert "deal_decisions_total" in get_metrics_text()
