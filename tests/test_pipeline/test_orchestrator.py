"""Tests for pipeline orchestrator."""

from __future__ import annotations

import asyncio

import pytest

from resume_pipeline.clients.llm_client import LLMResponse
from resume_pipeline.config import AppConfig, PipelineConfig
from resume_pipeline.errors import PipelineCancelledError, RequirementExtractionError
from resume_pipeline.library.resume_library import ResumeLibrary
from resume_pipeline.models.assembly import GapSeverity, GapType
from resume_pipeline.models.confidence import ConfidenceTier
from resume_pipeline.pipeline.orchestrator import (
    GenerationOptions,
    GenerationResult,
    PipelineOrchestrator,
)

BARE_RESUME = "Jane Doe\nSoftware engineer building Python services."

REQUIREMENTS_JSON = [
    {"name": "Python", "category": "programming_language", "importance": "required"},
    {"name": "Kubernetes", "category": "devops", "importance": "required"},
]

COMPANY_JSON = {
    "name": "Globex",
    "industry": "Logistics",
    "description": "Logistics software",
    "culture_values": ["Ownership"],
    "tech_stack": ["Python"],
    "recent_news": [],
}


def _make_json_dispatch(requirements=REQUIREMENTS_JSON, relevance=90):
    """Create a side_effect for generate_json that dispatches by prompt content.

    Scoring calls run concurrently, so call order cannot be relied on.
    """

    async def _dispatch(prompt, **kwargs):
        if "Extract all skills" in prompt:
            return requirements
        if "Write the company profile" in prompt:
            return COMPANY_JSON
        if "Analyze how well the candidate's content matches" in prompt:
            return {
                "breakdown": {"keyword": 95, "transferable": 90, "adjacent": 85, "impact": 70},
                "bestMatchIndex": 0,
                "rationale": "Python listed as a core skill.",
            }
        if "Analyze this resume gap" in prompt:
            return []
        if "Evaluate the relevance" in prompt:
            return {"score": relevance, "issues": []}
        raise AssertionError(f"Unexpected prompt: {prompt[:80]}")

    return _dispatch


def _make_text_dispatch(documents):
    """Return successive documents for generation calls and fixed cover letter phrasing."""
    remaining = list(documents)
    prompts = []

    async def _dispatch(prompt, **kwargs):
        if "Write a single sentence" in prompt:
            return LLMResponse(
                text="My Docker deployment work gives me a strong start with Kubernetes.",
                input_tokens=10,
                output_tokens=10,
            )
        prompts.append(prompt)
        text = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        return LLMResponse(text=text, input_tokens=500, output_tokens=800)

    _dispatch.prompts = prompts
    return _dispatch


class TestOrchestrator:
    async def test_full_pipeline(self, mock_llm_client, sample_job, sample_profile, sample_resume_markdown):
        mock_llm_client.generate_json.side_effect = _make_json_dispatch()
        mock_llm_client.generate.side_effect = _make_text_dispatch([sample_resume_markdown])
        phases = []

        orchestrator = PipelineOrchestrator(
            mock_llm_client, on_phase=lambda phase, detail: phases.append(phase)
        )
        result = await orchestrator.generate(sample_job, sample_profile)

        assert isinstance(result, GenerationResult)
        assert result.document == sample_resume_markdown.strip()
        assert result.generation_attempts == 1
        assert result.quality_score == 89
        assert result.ats_score == 100
        assert result.quality.passed is True
        # (89*2 + 0*1) / 3 = 59.3, minus 10 for the critical Kubernetes gap
        assert result.match_score == 49

        python, kubernetes = result.assembly_plan.matched_requirements
        assert python.confidence.tier == ConfidenceTier.TRANSFERABLE
        assert python.selected_content == "Python"
        assert kubernetes.confidence.tier == ConfidenceTier.GAP

        assert len(result.gaps) == 1
        gap = result.gaps[0]
        assert gap.gap_type == GapType.TECHNICAL_GAP
        assert gap.severity == GapSeverity.CRITICAL
        assert result.critical_gaps_count == 1
        assert result.assembly_plan.cover_letter_recommendations[0].gap_id == "req-kubernetes"
        assert result.highlights == ["Key skills: Python, Django, PostgreSQL, Docker, AWS"]
        assert {"research", "template", "assembly", "generation", "total"} <= set(result.phase_durations)
        assert "library_search" not in result.phase_durations
        assert phases[:3] == ["research", "template", "assembly"]
        assert phases[-1] == "done"

    async def test_regenerates_with_feedback(self, mock_llm_client, sample_job, sample_profile, sample_resume_markdown):
        mock_llm_client.generate_json.side_effect = _make_json_dispatch()
        text_dispatch = _make_text_dispatch([BARE_RESUME, sample_resume_markdown])
        mock_llm_client.generate.side_effect = text_dispatch

        orchestrator = PipelineOrchestrator(mock_llm_client)
        result = await orchestrator.generate(sample_job, sample_profile)

        assert result.generation_attempts == 2
        assert result.quality_score == 89
        first_prompt, second_prompt = text_dispatch.prompts
        assert "Improvements Needed" not in first_prompt
        assert "Improvements Needed" in second_prompt
        assert "Simplify formatting to improve ATS compatibility" in second_prompt

    async def test_stops_at_attempt_limit(self, mock_llm_client, sample_job, sample_profile):
        mock_llm_client.generate_json.side_effect = _make_json_dispatch()
        text_dispatch = _make_text_dispatch([BARE_RESUME])
        mock_llm_client.generate.side_effect = text_dispatch

        orchestrator = PipelineOrchestrator(mock_llm_client)
        result = await orchestrator.generate(
            sample_job, sample_profile, options=GenerationOptions(max_regeneration_attempts=3)
        )

        assert result.generation_attempts == 3
        assert len(text_dispatch.prompts) == 3
        assert result.quality_score == 55
        assert result.quality.passed is False

    async def test_default_attempts_come_from_config(self, mock_llm_client, sample_job, sample_profile):
        mock_llm_client.generate_json.side_effect = _make_json_dispatch()
        text_dispatch = _make_text_dispatch([BARE_RESUME])
        mock_llm_client.generate.side_effect = text_dispatch
        config = AppConfig(pipeline=PipelineConfig(max_regeneration_attempts=1))

        orchestrator = PipelineOrchestrator(mock_llm_client, config=config)
        result = await orchestrator.generate(sample_job, sample_profile)

        assert result.generation_attempts == 1

    async def test_extraction_failure_aborts(self, mock_llm_client, sample_job, sample_profile):
        mock_llm_client.generate_json.side_effect = _make_json_dispatch(requirements=[{"bogus": True}])

        orchestrator = PipelineOrchestrator(mock_llm_client)
        with pytest.raises(RequirementExtractionError):
            await orchestrator.generate(sample_job, sample_profile)
        mock_llm_client.generate.assert_not_called()

    async def test_research_enriches_context(
        self, mock_llm_client, mock_search_client, sample_job, sample_profile, sample_resume_markdown
    ):
        mock_llm_client.generate_json.side_effect = _make_json_dispatch()
        mock_llm_client.generate.side_effect = _make_text_dispatch([sample_resume_markdown])

        orchestrator = PipelineOrchestrator(mock_llm_client, mock_search_client)
        result = await orchestrator.generate(
            sample_job, sample_profile, options=GenerationOptions(include_research=True)
        )

        assert result.company_research is not None
        assert result.company_research.industry == "Logistics"
        assert mock_search_client.search.call_count == 3

    async def test_extraction_failure_cancels_company_research(
        self, mock_llm_client, mock_search_client, sample_job, sample_profile
    ):
        searching = asyncio.Event()
        cancelled = []

        async def _hanging_search(query, **kwargs):
            searching.set()
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                cancelled.append(query)
                raise

        async def _dispatch(prompt, **kwargs):
            if "Extract all skills" in prompt:
                await searching.wait()
                return [{"bogus": True}]
            raise AssertionError(f"Unexpected prompt: {prompt[:80]}")

        mock_search_client.search.side_effect = _hanging_search
        mock_llm_client.generate_json.side_effect = _dispatch

        orchestrator = PipelineOrchestrator(mock_llm_client, mock_search_client)
        with pytest.raises(RequirementExtractionError):
            await orchestrator.generate(
                sample_job, sample_profile, options=GenerationOptions(include_research=True)
            )

        assert len(cancelled) == 3

    async def test_llm_calls_are_tagged_by_phase(
        self, mock_llm_client, sample_job, sample_profile, sample_resume_markdown
    ):
        seen = []
        json_dispatch = _make_json_dispatch()
        text_dispatch = _make_text_dispatch([sample_resume_markdown])

        async def _json(prompt, **kwargs):
            seen.append(mock_llm_client.phase)
            return await json_dispatch(prompt, **kwargs)

        async def _text(prompt, **kwargs):
            seen.append(mock_llm_client.phase)
            return await text_dispatch(prompt, **kwargs)

        mock_llm_client.generate_json.side_effect = _json
        mock_llm_client.generate.side_effect = _text

        orchestrator = PipelineOrchestrator(mock_llm_client)
        await orchestrator.generate(sample_job, sample_profile)

        assert seen[0] == "research"
        assert {"research", "template", "generation"} <= set(seen)
        assert None not in seen
        assert mock_llm_client.phase is None

    async def test_research_failure_is_not_fatal(
        self, mock_llm_client, mock_search_client, sample_job, sample_profile, sample_resume_markdown
    ):
        mock_llm_client.generate_json.side_effect = _make_json_dispatch()
        mock_llm_client.generate.side_effect = _make_text_dispatch([sample_resume_markdown])
        mock_search_client.search.side_effect = RuntimeError("search down")

        orchestrator = PipelineOrchestrator(mock_llm_client, mock_search_client)
        result = await orchestrator.generate(
            sample_job, sample_profile, options=GenerationOptions(include_research=True)
        )

        assert result.company_research is None
        assert result.generation_attempts == 1

    async def test_cancellation_propagates(self, mock_llm_client, sample_job, sample_profile):
        cancel = asyncio.Event()
        cancel.set()

        orchestrator = PipelineOrchestrator(mock_llm_client)
        with pytest.raises(PipelineCancelledError):
            await orchestrator.generate(sample_job, sample_profile, cancel_event=cancel)
        mock_llm_client.generate_json.assert_not_called()

    async def test_library_updated_after_good_run(
        self, tmp_path, mock_llm_client, sample_job, sample_profile, sample_resume_markdown
    ):
        mock_llm_client.generate_json.side_effect = _make_json_dispatch()
        mock_llm_client.generate.side_effect = _make_text_dispatch([sample_resume_markdown])
        library = ResumeLibrary(tmp_path / "library.db")

        orchestrator = PipelineOrchestrator(mock_llm_client, library=library)
        result = await orchestrator.generate(
            sample_job, sample_profile, options=GenerationOptions(use_library=True)
        )

        assert library.count(sample_profile.id) == 1
        assert "library_search" in result.phase_durations
        assert "library_update" in result.phase_durations
        stored = library.get_entries(sample_profile.id)[0]
        assert stored.job_id == sample_job.id
        assert stored.ats_score == 100
        assert len(stored.matched_requirements) == 2

    async def test_library_not_updated_below_ats_threshold(
        self, tmp_path, mock_llm_client, sample_job, sample_profile
    ):
        mock_llm_client.generate_json.side_effect = _make_json_dispatch()
        mock_llm_client.generate.side_effect = _make_text_dispatch([BARE_RESUME])
        library = ResumeLibrary(tmp_path / "library.db")

        orchestrator = PipelineOrchestrator(mock_llm_client, library=library)
        await orchestrator.generate(
            sample_job, sample_profile, options=GenerationOptions(use_library=True)
        )

        assert library.count() == 0


class TestGenerationOptions:
    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError, match="max_regeneration_attempts"):
            GenerationOptions(max_regeneration_attempts=0)

    def test_rejects_unknown_length(self):
        with pytest.raises(ValueError, match="max_length"):
            GenerationOptions(max_length="three_page")

    def test_from_config_with_overrides(self):
        config = AppConfig(pipeline=PipelineConfig(quality_threshold=80, max_regeneration_attempts=4))
        options = GenerationOptions.from_config(config, include_research=True)

        assert options.quality_threshold == 80
        assert options.max_regeneration_attempts == 4
        assert options.include_research is True
