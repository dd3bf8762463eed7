"""SQLite-backed library of past tailored resumes and their reusable patterns."""

from __future__ import annotations

import json
import logging
import re
import sqlite3
from contextlib import closing
from datetime import datetime
from pathlib import Path

from pydantic import TypeAdapter

from resume_pipeline.models.assembly import GapAnalysis
from resume_pipeline.models.confidence import MatchedContent
from resume_pipeline.models.library import (
    ApplicablePattern,
    LibraryEntry,
    LibraryOutcome,
    LibrarySearchResult,
    OutcomeResponse,
    PatternType,
)
from resume_pipeline.models.profile import CandidateProfile, JobPosting
from resume_pipeline.utils.normalize import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path.home() / ".resume-pipeline" / "library.db"
DEFAULT_LIMIT = 5
MAX_PATTERNS = 8

_MATCHES = TypeAdapter(list[MatchedContent])
_GAPS = TypeAdapter(list[GapAnalysis])

FALLBACK_TECH_KEYWORDS = (
    "javascript", "typescript", "python", "java", "react", "node", "aws",
    "docker", "kubernetes", "sql", "postgresql", "mongodb", "git", "agile", "scrum",
)
OUTCOME_BONUS = {
    OutcomeResponse.OFFER: 20,
    OutcomeResponse.INTERVIEW: 15,
    OutcomeResponse.NO_RESPONSE: 5,
}
PATTERN_ORDER = (
    PatternType.SKILL_MATCH,
    PatternType.REFRAMING,
    PatternType.GAP_MITIGATION,
    PatternType.STRUCTURE,
)

_TITLE_RE = re.compile(r"^#\s*(.+)$", re.MULTILINE)
_FIRST_LINE_RE = re.compile(r"^(.+)\n")
_SKILLS_RE = re.compile(
    r"(?:skills|technologies|tech stack)[:\s]*([^\n]+(?:\n[-*].*)*)", re.IGNORECASE
)
_SECTION_RE = re.compile(r"^#{1,3}\s*(.+)$", re.MULTILINE)


def title_from_content(content: str) -> str:
    match = _TITLE_RE.search(content) or _FIRST_LINE_RE.search(content)
    return match.group(1).strip() if match else ""


def skills_from_content(content: str) -> list[str]:
    match = _SKILLS_RE.search(content)
    if match:
        parts = (re.sub(r"^[-*•]\s*", "", s).strip() for s in re.split(r"[,\n]", match.group(1)))
        return [s for s in parts if 0 < len(s) < 50]
    lower = content.lower()
    return [k for k in FALLBACK_TECH_KEYWORDS if k in lower]


def section_structure(content: str) -> list[str]:
    return [h.strip() for h in _SECTION_RE.findall(content)][:6]


def text_similarity(entry: LibraryEntry, target_role: str, required_skills: list[str]) -> int:
    """0-100 score: title up to 30, skill overlap up to 50, outcome up to 20."""
    score = 0
    role = target_role.lower()
    title = title_from_content(entry.resume_content).lower()
    if title == role:
        score += 30
    elif title and (role in title or title in role):
        score += 20
    else:
        role_words = set(role.split())
        common = sum(1 for w in title.split() if w in role_words)
        score += min(common * 5, 15)

    if required_skills:
        entry_skills = [s.lower() for s in skills_from_content(entry.resume_content)]
        matched = sum(
            1 for skill in required_skills
            if any(skill.lower() in es for es in entry_skills)
        )
        score += round_half_up(matched / len(required_skills) * 50)

    outcome = entry.outcome
    if outcome is not None and outcome.applied and outcome.response is not None:
        score += OUTCOME_BONUS.get(outcome.response, 0)
    return min(score, 100)


def extract_patterns(entry: LibraryEntry, required_skills: list[str]) -> list[ApplicablePattern]:
    patterns = []
    wanted = [s.lower() for s in required_skills]

    relevant = [
        m for m in entry.matched_requirements
        if m.confidence.overall >= 70 and any(s in m.requirement.lower() for s in wanted)
    ]
    for match in relevant[:2]:
        patterns.append(ApplicablePattern(
            pattern_type=PatternType.SKILL_MATCH,
            description=f'High-confidence match for requirement: "{match.requirement[:60]}"',
            confidence=match.confidence.overall,
        ))

    reframed = [m for m in entry.matched_requirements if m.reframing_strategy is not None]
    for match in reframed[:2]:
        patterns.append(ApplicablePattern(
            pattern_type=PatternType.REFRAMING,
            description=(
                f"{match.reframing_strategy.type} strategy: reframed content to align "
                f'with "{match.requirement[:40]}"'
            ),
            confidence=match.confidence.overall,
        ))

    mitigated = [g for g in entry.gaps if g.mitigation_strategies]
    for gap in mitigated[:2]:
        best = gap.mitigation_strategies[0]
        patterns.append(ApplicablePattern(
            pattern_type=PatternType.GAP_MITIGATION,
            description=f"{best.type}: {best.description[:60]}",
            confidence=best.confidence,
        ))

    if entry.ats_score >= 80 or entry.match_score >= 80:
        sections = section_structure(entry.resume_content)
        if len(sections) >= 3:
            patterns.append(ApplicablePattern(
                pattern_type=PatternType.STRUCTURE,
                description=(
                    f"High-performing structure (ATS: {entry.ats_score}, "
                    f"Match: {entry.match_score}): {' > '.join(sections[:4])}"
                ),
                confidence=max(entry.ats_score, entry.match_score),
            ))
    return patterns


def aggregate_patterns(results: list[LibrarySearchResult]) -> list[ApplicablePattern]:
    """Keep the best pattern of each type, boosted by how often it recurs."""
    by_type: dict[PatternType, list[ApplicablePattern]] = {}
    for result in results:
        for pattern in result.applicable_patterns:
            by_type.setdefault(pattern.pattern_type, []).append(pattern)

    recommended = []
    for pattern_type in PATTERN_ORDER:
        patterns = by_type.get(pattern_type)
        if not patterns:
            continue
        best = max(patterns, key=lambda p: p.confidence)
        frequency = len(patterns)
        description = best.description
        if frequency > 1:
            description += f" (found in {frequency} successful resumes)"
        recommended.append(ApplicablePattern(
            pattern_type=pattern_type,
            description=description,
            confidence=min(best.confidence + frequency * 5, 100),
        ))

    recommended.sort(key=lambda p: p.confidence, reverse=True)
    return recommended[:MAX_PATTERNS]


class ResumeLibrary:
    """SQLite store of generated resumes, searchable by role and skills."""

    def __init__(self, db_path: str | Path = DEFAULT_DB_PATH):
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _init_db(self) -> None:
        with closing(self._connect()) as conn, conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS resume_library (
                    id TEXT PRIMARY KEY,
                    profile_id TEXT NOT NULL,
                    job_id TEXT NOT NULL,
                    job_title TEXT NOT NULL,
                    company TEXT NOT NULL,
                    industry TEXT,
                    resume_content TEXT NOT NULL,
                    match_score INTEGER NOT NULL DEFAULT 0,
                    ats_score INTEGER NOT NULL DEFAULT 0,
                    quality_score INTEGER NOT NULL DEFAULT 0,
                    matched_requirements TEXT NOT NULL DEFAULT '[]',
                    gaps TEXT NOT NULL DEFAULT '[]',
                    outcome TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_library_profile ON resume_library (profile_id)"
            )

    def store(self, entry: LibraryEntry) -> None:
        """Persist a library entry, replacing any entry with the same id."""
        with closing(self._connect()) as conn, conn:
            conn.execute(
                """INSERT OR REPLACE INTO resume_library
                   (id, profile_id, job_id, job_title, company, industry,
                    resume_content, match_score, ats_score, quality_score,
                    matched_requirements, gaps, outcome, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    entry.id,
                    entry.profile_id,
                    entry.job_id,
                    entry.job_title,
                    entry.company,
                    entry.industry,
                    entry.resume_content,
                    entry.match_score,
                    entry.ats_score,
                    entry.quality_score,
                    _MATCHES.dump_json(entry.matched_requirements).decode(),
                    _GAPS.dump_json(entry.gaps).decode(),
                    entry.outcome.model_dump_json() if entry.outcome else None,
                    entry.created_at.isoformat(),
                ),
            )
        logger.info("Stored library entry %s for %s at %s", entry.id, entry.job_title, entry.company)

    def record_outcome(self, entry_id: str, response: OutcomeResponse, applied: bool = True) -> bool:
        """Attach an application outcome. Returns False if the entry is unknown."""
        outcome = LibraryOutcome(applied=applied, response=response)
        with closing(self._connect()) as conn, conn:
            cursor = conn.execute(
                "UPDATE resume_library SET outcome = ? WHERE id = ?",
                (outcome.model_dump_json(), entry_id),
            )
            return cursor.rowcount > 0

    def get_entries(self, profile_id: str, limit: int = 50) -> list[LibraryEntry]:
        with closing(self._connect()) as conn, conn:
            rows = conn.execute(
                "SELECT * FROM resume_library WHERE profile_id = ? ORDER BY created_at DESC LIMIT ?",
                (profile_id, limit),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def search(
        self,
        profile_id: str,
        target_role: str,
        required_skills: list[str],
        limit: int = DEFAULT_LIMIT,
    ) -> list[LibrarySearchResult]:
        """Rank this profile's past resumes by similarity to the target role."""
        role_filter = f"%{target_role.lower()}%"
        with closing(self._connect()) as conn, conn:
            rows = conn.execute(
                """SELECT * FROM resume_library
                   WHERE profile_id = ?
                     AND (LOWER(job_title) LIKE ? OR LOWER(COALESCE(industry, '')) LIKE ?)
                   LIMIT ?""",
                (profile_id, role_filter, role_filter, limit * 3),
            ).fetchall()
        entries = [self._row_to_entry(row) for row in rows]
        if not entries:
            entries = self.get_entries(profile_id, limit=limit)

        results = [
            LibrarySearchResult(
                entry=entry,
                similarity=text_similarity(entry, target_role, required_skills),
                applicable_patterns=extract_patterns(entry, required_skills),
            )
            for entry in entries
        ]
        results.sort(key=lambda r: r.similarity, reverse=True)
        return results[:limit]

    def search_patterns(
        self,
        profile: CandidateProfile,
        job: JobPosting,
        required_skills: list[str],
        limit: int = DEFAULT_LIMIT,
    ) -> list[ApplicablePattern]:
        """Recommend patterns drawn from past resumes that led to interviews or offers."""
        results = self.search(profile.id, job.title, required_skills, limit=limit)
        successful = [r for r in results if r.entry.is_successful]
        patterns = aggregate_patterns(successful)
        logger.info(
            "Library search: %d similar resumes, %d successful, %d patterns",
            len(results), len(successful), len(patterns),
        )
        return patterns

    def count(self, profile_id: str | None = None) -> int:
        with closing(self._connect()) as conn, conn:
            if profile_id is None:
                row = conn.execute("SELECT COUNT(*) FROM resume_library").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) FROM resume_library WHERE profile_id = ?", (profile_id,)
                ).fetchone()
        return row[0]

    @staticmethod
    def _row_to_entry(row: tuple) -> LibraryEntry:
        return LibraryEntry(
            id=row[0],
            profile_id=row[1],
            job_id=row[2],
            job_title=row[3],
            company=row[4],
            industry=row[5],
            resume_content=row[6],
            match_score=row[7],
            ats_score=row[8],
            quality_score=row[9],
            matched_requirements=_MATCHES.validate_json(row[10]),
            gaps=_GAPS.validate_json(row[11]),
            outcome=LibraryOutcome(**json.loads(row[12])) if row[12] else None,
            created_at=datetime.fromisoformat(row[13]),
        )
