"""Shared test fixtures."""

from __future__ import annotations

import sqlite3
from unittest.mock import AsyncMock

import pytest

from resume_pipeline.clients.llm_client import LLMClient, LLMResponse
from resume_pipeline.clients.search_client import SearchClient
from resume_pipeline.models.company import CompanyProfile
from resume_pipeline.models.profile import (
    CandidateProfile,
    EducationItem,
    ExperienceItem,
    JobContext,
    JobPosting,
)

SAMPLE_RESUME = """# Jane Doe
jane.doe@example.com | (555) 123-4567 | Seattle, WA

## Summary
Data-minded backend engineer who ships reliable Python services and leads experiments.
Comfortable owning services from design review through on-call, and happiest when
product, data and infrastructure teams share one roadmap and one set of metrics.

## Experience
### Senior Software Engineer - Acme Analytics (2021 - Present)
- Built Python and Django services handling 2M requests per day
- Led experimental design for A/B tests across 12 product teams
- Reduced report latency by 40% with PostgreSQL query tuning
- Automated deployment pipelines with Docker and GitHub Actions
- Mentored four junior engineers through code review and pairing
- Partnered with product managers to define success metrics for new features
- Ran weekly incident reviews and wrote runbooks adopted by three other teams

### Software Engineer - Northwind Labs (2018 - 2021)
- Developed REST APIs in Flask for internal analytics tools
- Wrote data pipelines with pandas feeding weekly business reviews
- Migrated batch jobs to AWS Lambda and cut hosting cost by 30%
- Introduced typed configuration and contract tests for every public endpoint
- Documented service ownership and onboarding guides for new hires

## Education
- B.S. Computer Science - University of Washington (2014 - 2018)

## Skills
Python, Django, Flask, PostgreSQL, Docker, AWS, pandas, A/B testing
"""


@pytest.fixture
def sample_job() -> JobPosting:
    return JobPosting(
        id="job-123",
        title="Senior Backend Engineer",
        company="Globex",
        description="Build Python services and lead data science experiments.",
        requirements=["Python", "Kubernetes", "data science leadership"],
        location="Remote",
        is_remote=True,
    )


@pytest.fixture
def sample_profile() -> CandidateProfile:
    return CandidateProfile(
        id="profile-1",
        full_name="Jane Doe",
        email="jane.doe@example.com",
        phone="(555) 123-4567",
        headline="Backend Engineer",
        summary="Backend engineer who ships reliable Python services.",
        skills=["Python", "Django", "PostgreSQL", "Docker", "AWS"],
        experience=[
            ExperienceItem(
                title="Senior Software Engineer",
                company="Acme Analytics",
                start_date="2021-01",
                current=True,
                description="Led experimental design for A/B tests. Built Python and Django services.",
                skills=["Python", "Django", "Docker"],
            ),
            ExperienceItem(
                title="Software Engineer",
                company="Northwind Labs",
                start_date="2018-06",
                end_date="2020-12",
                description="Developed REST APIs in Flask for internal analytics tools.",
                skills=["Flask", "pandas"],
            ),
        ],
        education=[
            EducationItem(
                institution="University of Washington",
                degree="B.S.",
                field="Computer Science",
            ),
        ],
    )


@pytest.fixture
def job_context() -> JobContext:
    return JobContext(
        title="Senior Backend Engineer",
        company="Globex",
        keywords=["Python", "Kubernetes"],
    )


@pytest.fixture
def sample_company_profile() -> CompanyProfile:
    return CompanyProfile(
        name="Globex",
        industry="Software",
        description="Globex builds logistics software for mid-size retailers.",
        culture_values=["Ownership", "Curiosity"],
        tech_stack=["Python", "Kubernetes", "PostgreSQL"],
        recent_news=["Opened a Seattle office"],
    )


@pytest.fixture
def sample_resume_markdown() -> str:
    return SAMPLE_RESUME


@pytest.fixture
def mock_llm_client() -> LLMClient:
    """Create a mock LLM client."""
    client = AsyncMock(spec=LLMClient)
    client.generate = AsyncMock(
        return_value=LLMResponse(text="{}", input_tokens=100, output_tokens=50)
    )
    client.generate_json = AsyncMock(return_value={})
    return client


@pytest.fixture
def mock_search_client() -> SearchClient:
    """Create a mock search client."""
    client = AsyncMock(spec=SearchClient)
    client.search = AsyncMock(
        return_value=[
            {"title": "Test", "url": "https://example.com", "content": "Test content"}
        ]
    )
    return client


@pytest.fixture
def opened_connections(monkeypatch) -> list[sqlite3.Connection]:
    """Record every sqlite connection opened during a test."""
    connections: list[sqlite3.Connection] = []
    real_connect = sqlite3.connect

    def _connect(*args, **kwargs):
        conn = real_connect(*args, **kwargs)
        connections.append(conn)
        return conn

    monkeypatch.setattr(sqlite3, "connect", _connect)
    return connections
