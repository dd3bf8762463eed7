"""Tests for the run cost calculator."""

from __future__ import annotations

import pytest

from resume_pipeline.telemetry.cost_calculator import (
    MODEL_PRICING,
    TAVILY_COST_PER_SEARCH,
    calculate_cost,
    calculate_phase_costs,
    call_cost,
    most_expensive_phase,
)

HAIKU = "claude-haiku-4-5-20251001"
SONNET = "claude-sonnet-4-5-20250929"


class TestCallCost:
    def test_haiku(self):
        # 1M input + 1M output for Haiku: $1.00 + $5.00
        assert call_cost(HAIKU, 1_000_000, 1_000_000) == pytest.approx(6.00)

    def test_sonnet(self):
        assert call_cost(SONNET, 1_000_000, 1_000_000) == pytest.approx(18.00)

    def test_unknown_model_is_free(self):
        assert call_cost("some-other-model", 1_000_000, 1_000_000) == 0.0

    def test_known_models(self):
        assert set(MODEL_PRICING) == {HAIKU, SONNET}


class TestCalculateCost:
    def test_calls_and_searches(self):
        calls = [(HAIKU, 1000, 500), (SONNET, 2000, 1000)]
        expected = (
            (1000 / 1e6) * 1.00 + (500 / 1e6) * 5.00
            + (2000 / 1e6) * 3.00 + (1000 / 1e6) * 15.00
            + 3 * TAVILY_COST_PER_SEARCH
        )
        assert calculate_cost(calls, search_count=3) == pytest.approx(expected)

    def test_empty(self):
        assert calculate_cost([]) == 0.0


class TestPhaseCosts:
    def test_split_by_phase_with_searches_in_research(self):
        by_phase = {
            "research": [(HAIKU, 10_000, 2_000)],
            "generation": [(SONNET, 4_000, 2_000), (SONNET, 4_000, 2_000)],
        }

        costs = calculate_phase_costs(by_phase, search_count=2)

        assert costs["research"] == pytest.approx(0.01 + 0.01 + 2 * TAVILY_COST_PER_SEARCH)
        assert costs["generation"] == pytest.approx(2 * (0.012 + 0.03))
        assert sum(costs.values()) == pytest.approx(
            calculate_cost([c for calls in by_phase.values() for c in calls], search_count=2)
        )

    def test_searches_without_research_calls(self):
        assert calculate_phase_costs({}, search_count=1) == {"research": TAVILY_COST_PER_SEARCH}

    def test_no_usage(self):
        assert calculate_phase_costs({}) == {}

    def test_most_expensive_phase(self):
        assert most_expensive_phase({"research": 0.01, "generation": 0.05}) == "generation"
        assert most_expensive_phase({}) is None
