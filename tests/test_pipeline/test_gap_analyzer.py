"""Tests for the Gap Analyzer."""

from __future__ import annotations

import asyncio

import pytest

from resume_pipeline.clients.llm_client import LLMResponse, LLMTransportError
from resume_pipeline.errors import PipelineCancelledError
from resume_pipeline.models.assembly import (
    CoverLetterPlacement,
    GapSeverity,
    GapType,
    MitigationType,
)
from resume_pipeline.models.confidence import ConfidenceScore, MatchedContent
from resume_pipeline.models.profile import CandidateProfile, ExperienceItem
from resume_pipeline.models.requirement import Importance, Requirement, SkillCategory
from resume_pipeline.pipeline.gap_analyzer import (
    PHRASING_TEMPLATES,
    GapAnalyzer,
    GapOptions,
    adjacent_confidence,
    classify_gap_type,
    extract_keywords,
    extract_relevant_snippet,
    transferability,
)


def _match(req: Requirement, overall: int) -> MatchedContent:
    return MatchedContent(
        requirement_id=req.requirement_id,
        requirement=req.name,
        confidence=ConfidenceScore(overall=overall),
    )


@pytest.fixture
def empty_profile() -> CandidateProfile:
    return CandidateProfile(id="p-empty", full_name="Sam Roe")


@pytest.fixture
def frontend_profile() -> CandidateProfile:
    return CandidateProfile(
        id="p-frontend",
        full_name="Ana Lee",
        skills=["React Native", "Vue"],
        experience=[
            ExperienceItem(
                title="Frontend Developer",
                company="Initech",
                description="Built dashboards in JavaScript and TypeScript for sales teams.",
                skills=["JavaScript", "TypeScript"],
            ),
        ],
    )


class TestHelpers:
    def test_extract_keywords_drops_stop_words_and_short_tokens(self):
        assert extract_keywords("Experience with the AWS cloud") == ["aws", "cloud"]

    @pytest.mark.parametrize(
        ("name", "category", "confidence", "expected"),
        [
            ("AWS Certified Architect", SkillCategory.CLOUD, 0, GapType.MISSING_CERTIFICATION),
            ("PMP", SkillCategory.OTHER, 0, GapType.MISSING_CERTIFICATION),
            ("5+ years of backend work", SkillCategory.OTHER, 30, GapType.INSUFFICIENT_EXPERIENCE),
            ("Senior engineering", SkillCategory.OTHER, 0, GapType.SENIORITY_GAP),
            ("Healthcare", SkillCategory.DOMAIN, 0, GapType.INDUSTRY_MISMATCH),
            ("Kubernetes", SkillCategory.DEVOPS, 0, GapType.TECHNICAL_GAP),
            ("Negotiation", SkillCategory.SOFT_SKILL, 0, GapType.MISSING_SKILL),
        ],
    )
    def test_classify_gap_type(self, name, category, confidence, expected):
        req = Requirement(name=name, category=category)
        assert classify_gap_type(req, confidence) == expected

    def test_adjacent_confidence_close_relation_bonus(self):
        assert adjacent_confidence("javascript", "react") == 70
        assert adjacent_confidence("container", "docker") == 55

    def test_transferability(self):
        assert transferability("react native", ["react"]) == 65
        assert transferability("vue", ["react"]) == 25
        assert transferability("python", ["kubernetes"]) == 0

    def test_extract_relevant_snippet(self):
        text = "a" * 40 + " javascript " + "b" * 80
        snippet = extract_relevant_snippet(text, "JavaScript")
        assert snippet.startswith("...")
        assert snippet.endswith("...")
        assert "javascript" in snippet
        assert extract_relevant_snippet("short text", "missing") == "short text"


class TestGapAnalyzer:
    async def test_required_technical_gap_gets_cover_letter(self, mock_llm_client, sample_profile):
        req = Requirement(name="Kubernetes", category=SkillCategory.DEVOPS, importance=Importance.REQUIRED)
        mock_llm_client.generate_json.return_value = []
        mock_llm_client.generate.return_value = LLMResponse(
            text="My Docker deployment work maps directly onto Kubernetes operations.",
            input_tokens=10,
            output_tokens=10,
        )
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([req], [_match(req, 0)], sample_profile)

        assert len(report.gaps) == 1
        gap = report.gaps[0]
        assert gap.gap_type == GapType.TECHNICAL_GAP
        assert gap.severity == GapSeverity.CRITICAL
        cover = [s for s in gap.mitigation_strategies if s.type == MitigationType.COVER_LETTER]
        assert cover and cover[0].confidence == 60
        assert report.critical_gaps_count == 1
        assert report.mitigation_coverage == 100

    async def test_strategies_sorted_and_learning_filler_added(self, mock_llm_client, empty_profile):
        req = Requirement(name="Kubernetes", category=SkillCategory.DEVOPS)
        mock_llm_client.generate_json.return_value = []
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([req], [], empty_profile, GapOptions(include_cover_letter_recs=False))

        strategies = report.gaps[0].mitigation_strategies
        assert [s.type for s in strategies] == [
            MitigationType.COVER_LETTER,
            MitigationType.ACKNOWLEDGE_LEARNING,
        ]
        assert [s.confidence for s in strategies] == [60, 45]

    async def test_escalation_adds_model_strategies(self, mock_llm_client, empty_profile):
        req = Requirement(name="Kubernetes", category=SkillCategory.DEVOPS)
        mock_llm_client.generate_json.return_value = [
            {"type": "something_else", "description": "Highlight container work", "content": "...", "confidence": 65},
            {"description": 42},
        ]
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([req], [], empty_profile, GapOptions(include_cover_letter_recs=False))

        strategies = report.gaps[0].mitigation_strategies
        assert strategies[0].type == MitigationType.HIGHLIGHT_TRANSFERABLE
        assert strategies[0].confidence == 65
        assert [s.confidence for s in strategies] == [65, 60, 45]
        assert mock_llm_client.generate_json.call_args.kwargs["expect"] is list

    async def test_non_finite_escalation_confidence_is_zeroed(self, mock_llm_client, empty_profile):
        req = Requirement(name="Kubernetes", category=SkillCategory.DEVOPS)
        mock_llm_client.generate_json.return_value = [
            {"type": "reframe_adjacent", "description": "Mention Docker Compose work", "confidence": float("inf")},
            {"type": "highlight_transferable", "description": "Highlight on-call ownership", "confidence": float("nan")},
        ]
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze(
            [req], [], empty_profile, GapOptions(include_cover_letter_recs=False, max_mitigations_per_gap=5)
        )

        escalated = {
            s.description: s.confidence
            for s in report.gaps[0].mitigation_strategies
            if s.type not in (MitigationType.COVER_LETTER, MitigationType.ACKNOWLEDGE_LEARNING)
        }
        assert escalated == {"Mention Docker Compose work": 0, "Highlight on-call ownership": 0}

    async def test_escalation_failure_is_not_fatal(self, mock_llm_client, empty_profile):
        req = Requirement(name="Kubernetes", category=SkillCategory.DEVOPS)
        mock_llm_client.generate_json.side_effect = LLMTransportError("down")
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([req], [], empty_profile, GapOptions(include_cover_letter_recs=False))

        types = [s.type for s in report.gaps[0].mitigation_strategies]
        assert types == [MitigationType.COVER_LETTER, MitigationType.ACKNOWLEDGE_LEARNING]

    async def test_preferred_gap_uses_adjacent_and_transferable(self, mock_llm_client, frontend_profile):
        req = Requirement(name="React", category=SkillCategory.FRAMEWORK, importance=Importance.PREFERRED)
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([req], [_match(req, 40)], frontend_profile)

        strategies = report.gaps[0].mitigation_strategies
        by_type = {s.type: s.confidence for s in strategies}
        assert by_type == {
            MitigationType.REFRAME_ADJACENT: 70,
            MitigationType.COVER_LETTER: 70,
            MitigationType.HIGHLIGHT_TRANSFERABLE: 65,
        }
        assert strategies[-1].type == MitigationType.HIGHLIGHT_TRANSFERABLE
        mock_llm_client.generate_json.assert_not_called()

    async def test_nice_to_have_gap(self, mock_llm_client, empty_profile):
        req = Requirement(name="GraphQL", category=SkillCategory.TOOL, importance=Importance.NICE_TO_HAVE)
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([req], [], empty_profile)

        gap = report.gaps[0]
        assert gap.severity == GapSeverity.MINOR
        assert [(s.type, s.confidence) for s in gap.mitigation_strategies] == [
            (MitigationType.ACKNOWLEDGE_LEARNING, 75)
        ]
        assert report.cover_letter_recommendations == []
        assert report.critical_gaps_count == 0

    async def test_threshold_separates_gaps(self, mock_llm_client, empty_profile):
        covered = Requirement(name="SQL", category=SkillCategory.DATABASE, importance=Importance.PREFERRED)
        missing = Requirement(name="Rust", category=SkillCategory.PROGRAMMING_LANGUAGE, importance=Importance.PREFERRED)
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze(
            [covered, missing], [_match(covered, 60), _match(missing, 59)], empty_profile
        )

        assert [g.requirement for g in report.gaps] == ["Rust"]

    async def test_no_gaps_gives_full_coverage(self, mock_llm_client, empty_profile):
        req = Requirement(name="Python", category=SkillCategory.PROGRAMMING_LANGUAGE)
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([req], [_match(req, 95)], empty_profile)

        assert report.gaps == []
        assert report.mitigation_coverage == 100

    async def test_max_mitigations_respected(self, mock_llm_client, frontend_profile):
        req = Requirement(name="React", category=SkillCategory.FRAMEWORK, importance=Importance.PREFERRED)
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze(
            [req], [], frontend_profile, GapOptions(max_mitigations_per_gap=1)
        )

        assert len(report.gaps[0].mitigation_strategies) == 1


class TestCoverLetterRecommendations:
    async def test_critical_first_and_placements(self, mock_llm_client, empty_profile):
        preferred = Requirement(name="Terraform", category=SkillCategory.DEVOPS, importance=Importance.PREFERRED)
        required = Requirement(name="Kubernetes", category=SkillCategory.DEVOPS, importance=Importance.REQUIRED)
        mock_llm_client.generate_json.return_value = []
        mock_llm_client.generate.return_value = LLMResponse(
            text="My container deployments give me a running start on Kubernetes.",
            input_tokens=10,
            output_tokens=10,
        )
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([preferred, required], [], empty_profile)

        first, second = report.cover_letter_recommendations
        assert first.gap_id == required.requirement_id
        assert first.placement == CoverLetterPlacement.BODY
        assert first.suggested_phrasing.startswith("My container deployments")
        assert "proactive" in first.recommendation
        assert second.gap_id == preferred.requirement_id
        assert second.placement == CoverLetterPlacement.CLOSING
        assert second.suggested_phrasing == PHRASING_TEMPLATES[GapType.TECHNICAL_GAP].format(req="Terraform")

    async def test_hedging_phrasing_replaced_by_template(self, mock_llm_client, empty_profile):
        req = Requirement(name="Kubernetes", category=SkillCategory.DEVOPS)
        mock_llm_client.generate_json.return_value = []
        mock_llm_client.generate.return_value = LLMResponse(
            text="While I have not used Kubernetes, I learn fast.", input_tokens=1, output_tokens=1
        )
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([req], [], empty_profile)

        rec = report.cover_letter_recommendations[0]
        assert rec.suggested_phrasing == PHRASING_TEMPLATES[GapType.TECHNICAL_GAP].format(req="Kubernetes")

    async def test_phrasing_failure_uses_template(self, mock_llm_client, empty_profile):
        req = Requirement(name="Kubernetes", category=SkillCategory.DEVOPS)
        mock_llm_client.generate_json.return_value = []
        mock_llm_client.generate.side_effect = LLMTransportError("down")
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze([req], [], empty_profile)

        rec = report.cover_letter_recommendations[0]
        assert rec.suggested_phrasing == PHRASING_TEMPLATES[GapType.TECHNICAL_GAP].format(req="Kubernetes")

    async def test_at_most_four_recommendations(self, mock_llm_client, empty_profile):
        reqs = [
            Requirement(name=name, category=SkillCategory.TOOL, importance=Importance.PREFERRED)
            for name in ("Jira", "Figma", "Tableau", "Looker", "Airflow")
        ]
        analyzer = GapAnalyzer(mock_llm_client)

        report = await analyzer.analyze(reqs, [], empty_profile)

        assert len(report.cover_letter_recommendations) == 4
        mock_llm_client.generate.assert_not_called()


async def test_cancelled_gap_analysis(mock_llm_client, empty_profile):
    cancel = asyncio.Event()
    cancel.set()
    analyzer = GapAnalyzer(mock_llm_client)

    with pytest.raises(PipelineCancelledError):
        await analyzer.analyze([Requirement(name="Go")], [], empty_profile, cancel_event=cancel)
