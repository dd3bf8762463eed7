"""Main pipeline orchestrator - runs every phase of resume tailoring."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from resume_pipeline.clients.llm_client import LLMClient
from resume_pipeline.clients.search_client import SearchClient
from resume_pipeline.config import AppConfig
from resume_pipeline.errors import PipelineCancelledError
from resume_pipeline.library.resume_library import ResumeLibrary
from resume_pipeline.models.assembly import AssemblyPlan, GapAnalysis
from resume_pipeline.models.company import CompanyProfile
from resume_pipeline.models.confidence import ConfidenceTier, MatchedContent
from resume_pipeline.models.library import ApplicablePattern, LibraryEntry
from resume_pipeline.models.profile import CandidateProfile, JobContext, JobPosting
from resume_pipeline.models.quality import ContentType, QualityScore
from resume_pipeline.models.requirement import Requirement
from resume_pipeline.pipeline.assembly_planner import (
    AssemblyPlanner,
    build_content_sources,
    calculate_match_score,
)
from resume_pipeline.pipeline.company_researcher import CompanyResearcher
from resume_pipeline.pipeline.confidence_scorer import ConfidenceScorer
from resume_pipeline.pipeline.content_reframer import ContentReframer
from resume_pipeline.pipeline.gap_analyzer import GapAnalyzer, GapOptions
from resume_pipeline.pipeline.quality_scorer import QualityScorer
from resume_pipeline.pipeline.requirement_extractor import RequirementExtractor
from resume_pipeline.pipeline.resume_generator import GenerationContext, ResumeGenerator

logger = logging.getLogger(__name__)

MAX_LENGTHS = ("one_page", "two_page")
MAX_HIGHLIGHTS = 5


@dataclass
class GenerationOptions:
    include_research: bool = False
    use_library: bool = False
    quality_threshold: int = 70
    max_regeneration_attempts: int = 2
    focus_areas: list[str] = field(default_factory=list)
    max_length: str | None = None

    def __post_init__(self) -> None:
        if self.max_regeneration_attempts < 1:
            raise ValueError(
                f"max_regeneration_attempts must be at least 1, got {self.max_regeneration_attempts}"
            )
        if not 0 <= self.quality_threshold <= 100:
            raise ValueError(f"quality_threshold must be between 0 and 100, got {self.quality_threshold}")
        if self.max_length is not None and self.max_length not in MAX_LENGTHS:
            raise ValueError(f"max_length must be one of {MAX_LENGTHS}, got {self.max_length!r}")

    @classmethod
    def from_config(cls, config: AppConfig, **overrides) -> GenerationOptions:
        values = {
            "quality_threshold": config.pipeline.quality_threshold,
            "max_regeneration_attempts": config.pipeline.max_regeneration_attempts,
        }
        values.update(overrides)
        return cls(**values)


@dataclass
class GenerationResult:
    """Complete result from one pipeline run."""

    document: str
    match_score: int
    ats_score: int
    quality_score: int
    quality: QualityScore
    gaps: list[GapAnalysis]
    assembly_plan: AssemblyPlan
    generation_attempts: int
    phase_durations: dict[str, float] = field(default_factory=dict)
    highlights: list[str] = field(default_factory=list)
    critical_gaps_count: int = 0
    mitigation_coverage: int = 100
    company_research: CompanyProfile | None = None
    library_patterns: list[ApplicablePattern] = field(default_factory=list)


def extract_highlights(plan: AssemblyPlan, profile: CandidateProfile) -> list[str]:
    highlights = []
    direct = sorted(
        (m for m in plan.matched_requirements if m.confidence.tier == ConfidenceTier.DIRECT),
        key=lambda m: m.confidence.overall,
        reverse=True,
    )
    highlights.extend(f"Strong match for {m.requirement}" for m in direct[:3])

    reframed = [
        m for m in plan.matched_requirements
        if m.reframing_strategy is not None
        and m.best_source is not None
        and m.selected_content != m.best_source.original_text
    ]
    if reframed:
        plural = "s" if len(reframed) > 1 else ""
        highlights.append(
            f"Strategically reframed {len(reframed)} experience{plural} for better alignment"
        )

    if profile.skills:
        highlights.append(f"Key skills: {', '.join(profile.skills[:5])}")
    return highlights[:MAX_HIGHLIGHTS]


class _PhaseTimer:
    """Time a phase and tag the LLM calls made during it."""

    def __init__(self, durations: dict[str, float], llm: LLMClient, name: str):
        self.durations = durations
        self.llm = llm
        self.name = name

    def __enter__(self) -> _PhaseTimer:
        self.llm.phase = self.name
        self.start = time.monotonic()
        return self

    def __exit__(self, *exc_info) -> None:
        self.durations[self.name] = time.monotonic() - self.start
        self.llm.phase = None


class PipelineOrchestrator:
    """Runs library search, research, scoring, assembly, generation and library update."""

    def __init__(
        self,
        llm: LLMClient,
        search: SearchClient | None = None,
        library: ResumeLibrary | None = None,
        *,
        config: AppConfig | None = None,
        on_phase: Callable[[str, str], None] | None = None,
    ):
        self.config = config or AppConfig()
        fast = self.config.llm.fast_model
        self.extractor = RequirementExtractor(llm, model=fast)
        self.researcher = CompanyResearcher(llm, search, model=fast) if search else None
        self.scorer = ConfidenceScorer(llm, model=fast)
        self.gap_analyzer = GapAnalyzer(llm, model=fast)
        self.planner = AssemblyPlanner(
            ContentReframer(llm, model=fast, min_confidence=self.config.scoring.reframe_min_confidence),
            min_confidence=self.config.scoring.reframe_min_confidence,
        )
        self.generator = ResumeGenerator(
            llm,
            model=self.config.llm.quality_model,
            temperature=self.config.pipeline.generation_temperature,
        )
        self.llm = llm
        self.library = library
        self.on_phase = on_phase

    def _notify(self, phase: str, detail: str = "") -> None:
        logger.info("[%s] %s", phase, detail)
        if self.on_phase:
            self.on_phase(phase, detail)

    async def generate(
        self,
        job: JobPosting,
        profile: CandidateProfile,
        existing_resume: str | None = None,
        options: GenerationOptions | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> GenerationResult:
        """Run the full tailoring pipeline for one job and candidate.

        Raises:
            PipelineCancelledError: *cancel_event* was set at a phase boundary.
            RequirementExtractionError: the posting could not be analysed.
            GenerationError: the completion service failed while writing.
        """
        options = options or GenerationOptions.from_config(self.config)
        durations: dict[str, float] = {}
        start = time.monotonic()

        patterns: list[ApplicablePattern] = []
        if options.use_library and self.library is not None:
            with _PhaseTimer(durations, self.llm, "library_search"):
                patterns = self._search_library(profile, job)

        with _PhaseTimer(durations, self.llm, "research"):
            self._notify("research", f"Analyzing {job.title} at {job.company}")
            requirements, company = await self._research(job, options, cancel_event)

        job_context = JobContext(
            title=job.title,
            company=job.company,
            industry=company.industry if company else None,
            keywords=[r.name for r in requirements],
        )

        with _PhaseTimer(durations, self.llm, "template"):
            self._notify("template", f"Scoring {len(requirements)} requirements")
            matches = await self._score_requirements(requirements, profile, job_context, cancel_event)
            report = await self.gap_analyzer.analyze(
                requirements,
                matches,
                profile,
                options=GapOptions(
                    gap_threshold=self.config.scoring.gap_threshold,
                    include_cover_letter_recs=self.config.scoring.include_cover_letter_recs,
                    max_mitigations_per_gap=self.config.scoring.max_mitigations_per_gap,
                ),
                cancel_event=cancel_event,
            )
            match_score = calculate_match_score(matches, report.gaps)

        with _PhaseTimer(durations, self.llm, "assembly"):
            self._notify("assembly", f"Match score {match_score}, {len(report.gaps)} gaps")
            plan = await self.planner.plan(
                job.id,
                matches,
                report.gaps,
                report.cover_letter_recommendations,
                job_context,
                cancel_event=cancel_event,
            )

        with _PhaseTimer(durations, self.llm, "generation"):
            context = GenerationContext(
                job=job,
                profile=profile,
                company=company,
                existing_resume=existing_resume,
                focus_areas=list(options.focus_areas),
                max_length=options.max_length,
                library_patterns=patterns,
            )
            document, quality, attempts = await self._generate_with_feedback(
                context, plan, options, cancel_event
            )

        if options.use_library and self.library is not None:
            if quality.ats_compatibility >= options.quality_threshold:
                with _PhaseTimer(durations, self.llm, "library_update"):
                    self._update_library(job, profile, document, match_score, quality, plan, company)

        durations["total"] = time.monotonic() - start
        self._notify("done", f"Quality {quality.overall} after {attempts} attempt(s)")

        return GenerationResult(
            document=document,
            match_score=match_score,
            ats_score=quality.ats_compatibility,
            quality_score=quality.overall,
            quality=quality,
            gaps=list(plan.gaps),
            assembly_plan=plan,
            generation_attempts=attempts,
            phase_durations=durations,
            highlights=extract_highlights(plan, profile),
            critical_gaps_count=report.critical_gaps_count,
            mitigation_coverage=report.mitigation_coverage,
            company_research=company,
            library_patterns=patterns,
        )

    async def _research(
        self,
        job: JobPosting,
        options: GenerationOptions,
        cancel_event: asyncio.Event | None,
    ) -> tuple[list[Requirement], CompanyProfile | None]:
        if not (options.include_research and self.researcher is not None):
            return await self.extractor.extract(job, cancel_event=cancel_event), None

        research = asyncio.create_task(self._research_company(job, cancel_event))
        try:
            requirements = await self.extractor.extract(job, cancel_event=cancel_event)
        except BaseException:
            research.cancel()
            await asyncio.gather(research, return_exceptions=True)
            raise
        return requirements, await research

    async def _research_company(
        self,
        job: JobPosting,
        cancel_event: asyncio.Event | None,
    ) -> CompanyProfile | None:
        """Best-effort company research; failures are logged and yield None."""
        try:
            return await self.researcher.research(
                job.company,
                JobContext(title=job.title, company=job.company),
                cancel_event=cancel_event,
            )
        except PipelineCancelledError:
            raise
        except Exception:
            logger.warning("Company research failed for %s; continuing without it", job.company, exc_info=True)
            return None

    async def _score_requirements(
        self,
        requirements: list[Requirement],
        profile: CandidateProfile,
        job_context: JobContext,
        cancel_event: asyncio.Event | None,
    ) -> list[MatchedContent]:
        results = await asyncio.gather(*(
            self.scorer.score(
                req.name,
                build_content_sources(profile, req),
                job_context,
                cancel_event=cancel_event,
            )
            for req in requirements
        ))
        return [
            MatchedContent(
                requirement_id=req.requirement_id,
                requirement=req.name,
                confidence=result.score,
                source_content=[result.best_match] if result.best_match else [],
                reframing_strategy=result.reframing_strategy,
                selected_content=result.best_match.original_text if result.best_match else None,
            )
            for req, result in zip(requirements, results)
        ]

    async def _generate_with_feedback(
        self,
        context: GenerationContext,
        plan: AssemblyPlan,
        options: GenerationOptions,
        cancel_event: asyncio.Event | None,
    ) -> tuple[str, QualityScore, int]:
        """Generate and score until the quality threshold or the attempt limit is reached."""
        scorer = QualityScorer(
            self.llm, model=self.config.llm.fast_model, threshold=options.quality_threshold
        )
        feedback: list[str] = []
        for attempt in range(1, options.max_regeneration_attempts + 1):
            self._notify("generation", f"Attempt {attempt}/{options.max_regeneration_attempts}")
            document = await self.generator.generate(
                context, plan, feedback=feedback if attempt > 1 else None, cancel_event=cancel_event
            )
            quality = await scorer.score(
                document,
                ContentType.RESUME,
                target_job=context.job,
                original_profile=context.profile,
                cancel_event=cancel_event,
            )
            if quality.overall >= options.quality_threshold:
                break
            logger.info(
                "Quality %d below threshold %d on attempt %d",
                quality.overall, options.quality_threshold, attempt,
            )
            feedback = quality.suggestions
        return document, quality, attempt

    def _search_library(self, profile: CandidateProfile, job: JobPosting) -> list[ApplicablePattern]:
        try:
            return self.library.search_patterns(profile, job, list(job.requirements))
        except (sqlite3.Error, OSError, ValueError):
            logger.warning("Library search failed; continuing without patterns", exc_info=True)
            return []

    def _update_library(
        self,
        job: JobPosting,
        profile: CandidateProfile,
        document: str,
        match_score: int,
        quality: QualityScore,
        plan: AssemblyPlan,
        company: CompanyProfile | None,
    ) -> None:
        entry = LibraryEntry(
            profile_id=profile.id,
            job_id=job.id,
            job_title=job.title,
            company=job.company,
            industry=company.industry if company else None,
            resume_content=document,
            match_score=match_score,
            ats_score=quality.ats_compatibility,
            quality_score=quality.overall,
            matched_requirements=list(plan.matched_requirements),
            gaps=list(plan.gaps),
        )
        try:
            self.library.store(entry)
        except (sqlite3.Error, OSError):
            logger.warning("Library update failed", exc_info=True)
