"""Quality Scorer - grades a generated document on four weighted axes."""

from __future__ import annotations

import asyncio
import logging
import re

from resume_pipeline.clients.llm_client import DEFAULT_MODEL, LLMClient, LLMError
from resume_pipeline.errors import check_cancelled
from resume_pipeline.models.profile import CandidateProfile, JobPosting
from resume_pipeline.models.quality import (
    ContentType,
    IssueCategory,
    IssueType,
    QualityIssue,
    QualityScore,
)
from resume_pipeline.utils.normalize import clamp_score, parse_or_default, round_half_up

logger = logging.getLogger(__name__)

ATS_WEIGHT = 0.3
KEYWORD_WEIGHT = 0.25
FORMAT_WEIGHT = 0.2
CONTENT_WEIGHT = 0.25

DEFAULT_THRESHOLD = 70
RELEVANCE_FALLBACK = 80
MAX_KEYWORDS = 50
RELEVANCE_CONTENT_CHARS = 2000

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "from", "as", "is", "was", "are", "were", "been",
    "be", "have", "has", "had", "do", "does", "did", "will", "would",
    "could", "should", "may", "might", "must", "shall", "can", "need",
    "we", "you", "they", "them", "their", "our", "your", "its", "this",
    "that", "these", "those", "which", "who", "whom", "what", "when",
    "where", "why", "how", "all", "each", "every", "both", "few", "more",
    "most", "other", "some", "such", "no", "nor", "not", "only", "own",
    "same", "so", "than", "too", "very", "just", "also", "any",
})

HEADER_PATTERNS = (
    re.compile(r"#{1,3}\s*(experience|work|employment)", re.IGNORECASE),
    re.compile(r"#{1,3}\s*(education|academic)", re.IGNORECASE),
    re.compile(r"#{1,3}\s*(skills|competencies|expertise)", re.IGNORECASE),
)
IMAGE_RE = re.compile(r"!\[.*\]\(.*\)")
EMAIL_RE = re.compile(r"[\w.-]+@[\w.-]+\.\w+")
PHONE_RE = re.compile(r"[\d\s\-()]{10,}")
BULLET_RE = re.compile(r"^[-*]\s", re.MULTILINE)
HEADING_RE = re.compile(r"^#{1,3}\s", re.MULTILINE)

RELEVANCE_SYSTEM_PROMPT = """\
You review resumes and cover letters for relevance, accuracy and tone. \
You answer only with JSON."""


def extract_keywords(text: str) -> list[str]:
    words = re.sub(r"[^\w\s]", " ", text.lower()).split()
    return [w for w in words if len(w) > 2 and w not in STOP_WORDS][:MAX_KEYWORDS]


def _issue(
    type_: IssueType,
    category: IssueCategory,
    message: str,
    location: str | None = "document",
) -> QualityIssue:
    return QualityIssue(type=type_, category=category, message=message, location=location)


def check_ats_compatibility(content: str, content_type: ContentType) -> tuple[int, list[QualityIssue]]:
    issues = []
    score = 100
    is_resume = content_type == ContentType.RESUME

    if "|---" in content or "<table>" in content:
        issues.append(_issue(IssueType.WARNING, IssueCategory.ATS, "Tables may not parse correctly in ATS systems"))
        score -= 15
    if IMAGE_RE.search(content) or "<img" in content:
        issues.append(_issue(IssueType.WARNING, IssueCategory.ATS, "Images and graphics are ignored by ATS systems"))
        score -= 10
    if sum(1 for ch in content if ord(ch) > 127) > 10:
        issues.append(_issue(IssueType.INFO, IssueCategory.ATS, "Contains special characters that may not render correctly"))
        score -= 5

    if is_resume:
        missing = [p for p in HEADER_PATTERNS if not p.search(content)]
        if missing:
            issues.append(_issue(
                IssueType.WARNING, IssueCategory.ATS,
                "Missing standard section headers that ATS systems look for",
            ))
            score -= 10 * len(missing)
        if not EMAIL_RE.search(content):
            issues.append(_issue(IssueType.ERROR, IssueCategory.ATS, "Missing email address", "header"))
            score -= 20
        if not PHONE_RE.search(content):
            issues.append(_issue(IssueType.WARNING, IssueCategory.ATS, "Missing phone number", "header"))
            score -= 10

    return max(0, score), issues


def check_keyword_coverage(content: str, target_job: JobPosting | None) -> tuple[int, list[QualityIssue]]:
    if target_job is None:
        return 100, []

    keywords = list(dict.fromkeys(
        extract_keywords(target_job.description)
        + [k for r in target_job.requirements for k in extract_keywords(r)]
    ))
    content_lower = content.lower()
    missing = [k for k in keywords if k not in content_lower]
    coverage = (len(keywords) - len(missing)) / len(keywords) if keywords else 1.0

    issues = []
    if missing:
        issues.append(_issue(
            IssueType.ERROR if coverage < 0.5 else IssueType.WARNING,
            IssueCategory.KEYWORD,
            f"Missing keywords: {', '.join(missing[:5])}",
        ))
    return round_half_up(coverage * 100), issues


def check_format_quality(content: str, content_type: ContentType) -> tuple[int, list[QualityIssue]]:
    issues = []
    score = 100
    word_count = len(content.split())

    if content_type == ContentType.RESUME:
        if word_count < 200:
            issues.append(_issue(IssueType.WARNING, IssueCategory.FORMAT, "Resume seems too short"))
            score -= 20
        elif word_count > 1000:
            issues.append(_issue(IssueType.INFO, IssueCategory.FORMAT, "Resume may be too long (consider condensing)"))
            score -= 10
        if len(BULLET_RE.findall(content)) < 5:
            issues.append(_issue(
                IssueType.INFO, IssueCategory.FORMAT,
                "Consider using more bullet points for better readability", "experience",
            ))
            score -= 5
        if not HEADING_RE.search(content):
            issues.append(_issue(IssueType.WARNING, IssueCategory.FORMAT, "No section headers found"))
            score -= 15
    elif content_type == ContentType.COVER_LETTER:
        if word_count < 150:
            issues.append(_issue(IssueType.WARNING, IssueCategory.FORMAT, "Cover letter seems too short"))
            score -= 15
        elif word_count > 500:
            issues.append(_issue(
                IssueType.INFO, IssueCategory.FORMAT,
                "Cover letter may be too long (aim for 300-400 words)",
            ))
            score -= 10

    return max(0, score), issues


def generate_suggestions(issues: list[QualityIssue], content_type: ContentType) -> list[str]:
    categories = {i.category for i in issues}
    is_resume = content_type == ContentType.RESUME
    suggestions = []

    if any(i.category == IssueCategory.ATS and i.type != IssueType.INFO for i in issues):
        suggestions.append("Simplify formatting to improve ATS compatibility")
        if is_resume:
            suggestions.append("Use standard section headers (Experience, Education, Skills)")
    if IssueCategory.KEYWORD in categories:
        suggestions.append("Incorporate more keywords from the job description naturally")
    if IssueCategory.FORMAT in categories:
        if is_resume:
            suggestions.append("Use bullet points to highlight achievements")
            suggestions.append("Keep resume to 1-2 pages")
        else:
            suggestions.append("Keep cover letter to 3-4 paragraphs")
    if IssueCategory.CONTENT in categories:
        suggestions.append("Focus on quantifiable achievements")
        suggestions.append("Tailor content more specifically to the role")
    return suggestions


def weighted_overall(ats: int, keyword: int, fmt: int, content: int) -> int:
    return round_half_up(
        ats * ATS_WEIGHT + keyword * KEYWORD_WEIGHT + fmt * FORMAT_WEIGHT + content * CONTENT_WEIGHT
    )


class QualityScorer:
    def __init__(
        self,
        llm: LLMClient,
        model: str = DEFAULT_MODEL,
        threshold: int = DEFAULT_THRESHOLD,
    ):
        self.llm = llm
        self.model = model
        self.threshold = threshold

    async def score(
        self,
        content: str,
        content_type: ContentType = ContentType.RESUME,
        target_job: JobPosting | None = None,
        original_profile: CandidateProfile | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> QualityScore:
        """Score *content*; only the relevance axis calls the model."""
        ats, ats_issues = check_ats_compatibility(content, content_type)
        keyword, keyword_issues = check_keyword_coverage(content, target_job)
        fmt, format_issues = check_format_quality(content, content_type)
        relevance, relevance_issues = await self._check_relevance(
            content, target_job, original_profile, cancel_event
        )

        issues = ats_issues + keyword_issues + format_issues + relevance_issues
        overall = weighted_overall(ats, keyword, fmt, relevance)
        passed = overall >= self.threshold and not any(i.type == IssueType.ERROR for i in issues)
        logger.info(
            "Quality: overall=%d ats=%d keyword=%d format=%d relevance=%d passed=%s",
            overall, ats, keyword, fmt, relevance, passed,
        )

        return QualityScore(
            overall=overall,
            ats_compatibility=ats,
            keyword_coverage=keyword,
            format_quality=fmt,
            content_relevance=relevance,
            issues=issues,
            suggestions=generate_suggestions(issues, content_type),
            passed=passed,
        )

    async def _check_relevance(
        self,
        content: str,
        target_job: JobPosting | None,
        original_profile: CandidateProfile | None,
        cancel_event: asyncio.Event | None,
    ) -> tuple[int, list[QualityIssue]]:
        if target_job is None and original_profile is None:
            return 100, []
        check_cancelled(cancel_event, "Relevance check")

        context = []
        if target_job is not None:
            context.append(f"TARGET JOB: {target_job.title} at {target_job.company}")
        if original_profile is not None:
            context.append(f"ORIGINAL SKILLS: {', '.join(original_profile.skills[:10])}")

        prompt = f"""Evaluate the relevance and accuracy of this resume/cover letter content.

CONTENT:
{content[:RELEVANCE_CONTENT_CHARS]}

{chr(10).join(context)}

Score from 0-100 based on:
1. Relevance to target job (if provided)
2. Accuracy - no fabricated information
3. Professional tone and language
4. Clear value proposition

Return JSON:
{{"score": <number>, "issues": [{{"type": "error|warning|info", "message": "string"}}]}}"""

        try:
            data = await self.llm.generate_json(
                prompt=prompt,
                system=RELEVANCE_SYSTEM_PROMPT,
                model=self.model,
                temperature=0.2,
                max_tokens=500,
                expect=dict,
            )
        except LLMError:
            logger.warning("Relevance check failed; using fallback score", exc_info=True)
            return RELEVANCE_FALLBACK, []

        issues = []
        raw_issues = data.get("issues")
        for item in raw_issues if isinstance(raw_issues, list) else []:
            if isinstance(item, dict) and isinstance(item.get("message"), str):
                issues.append(_issue(
                    parse_or_default(item.get("type"), IssueType.WARNING),
                    IssueCategory.CONTENT,
                    item["message"],
                    location=None,
                ))
        return clamp_score(data.get("score"), default=RELEVANCE_FALLBACK), issues
