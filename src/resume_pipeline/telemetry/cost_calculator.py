"""Cost estimates for a pipeline run, overall and per phase."""

from __future__ import annotations

# USD per 1M tokens
MODEL_PRICING: dict[str, dict[str, float]] = {
    "claude-haiku-4-5-20251001": {"input": 1.00, "output": 5.00},
    "claude-sonnet-4-5-20250929": {"input": 3.00, "output": 15.00},
}

TAVILY_COST_PER_SEARCH = 0.008

# Company research is the only phase that searches
SEARCH_PHASE = "research"


def call_cost(model_id: str, input_tokens: int, output_tokens: int) -> float:
    """Cost of one completion; models missing from MODEL_PRICING cost nothing."""
    pricing = MODEL_PRICING.get(model_id)
    if pricing is None:
        return 0.0
    return (
        input_tokens / 1_000_000 * pricing["input"]
        + output_tokens / 1_000_000 * pricing["output"]
    )


def calculate_cost(
    calls: list[tuple[str, int, int]],
    search_count: int = 0,
) -> float:
    """Estimate the USD cost of a run from LLMClient.get_token_summary()["calls"]."""
    tokens = sum(call_cost(*call) for call in calls)
    return tokens + search_count * TAVILY_COST_PER_SEARCH


def calculate_phase_costs(
    by_phase: dict[str, list[tuple[str, int, int]]],
    search_count: int = 0,
) -> dict[str, float]:
    """Split a run's cost across the phases that incurred it.

    Args:
        by_phase: Completions grouped by phase, as in
            LLMClient.get_token_summary()["by_phase"].
        search_count: Tavily searches, all charged to the research phase.
    """
    costs = {phase: calculate_cost(calls) for phase, calls in by_phase.items()}
    if search_count:
        costs[SEARCH_PHASE] = costs.get(SEARCH_PHASE, 0.0) + search_count * TAVILY_COST_PER_SEARCH
    return costs


def most_expensive_phase(phase_costs: dict[str, float]) -> str | None:
    if not phase_costs:
        return None
    return max(phase_costs, key=phase_costs.__getitem__)
