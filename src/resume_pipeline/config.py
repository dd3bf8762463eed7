"""Pipeline configuration loaded from config.yaml."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml


def _check_range(name: str, value: float, low: float, high: float) -> None:
    if not low <= value <= high:
        raise ValueError(f"{name} must be between {low} and {high}, got {value}")


@dataclass(frozen=True)
class LLMConfig:
    fast_model: str = "claude-haiku-4-5-20251001"
    quality_model: str = "claude-sonnet-4-5-20250929"
    max_retries: int = 3
    timeout: int = 120

    def __post_init__(self) -> None:
        _check_range("timeout", self.timeout, 1, 600)
        _check_range("max_retries", self.max_retries, 1, 10)


@dataclass(frozen=True)
class ScoringConfig:
    gap_threshold: int = 60
    max_mitigations_per_gap: int = 3
    include_cover_letter_recs: bool = True
    reframe_min_confidence: int = 50

    def __post_init__(self) -> None:
        _check_range("gap_threshold", self.gap_threshold, 0, 100)
        _check_range("max_mitigations_per_gap", self.max_mitigations_per_gap, 1, 10)
        _check_range("reframe_min_confidence", self.reframe_min_confidence, 0, 100)


@dataclass(frozen=True)
class PipelineConfig:
    quality_threshold: int = 70
    max_regeneration_attempts: int = 2
    generation_temperature: float = 0.5

    def __post_init__(self) -> None:
        _check_range("quality_threshold", self.quality_threshold, 0, 100)
        _check_range("max_regeneration_attempts", self.max_regeneration_attempts, 1, 10)
        _check_range("generation_temperature", self.generation_temperature, 0.0, 1.0)


@dataclass(frozen=True)
class SearchConfig:
    max_results: int = 3
    search_depth: str = "advanced"


@dataclass(frozen=True)
class StorageConfig:
    library_db_path: str = "~/.resume-pipeline/library.db"
    runs_db_path: str = "~/.resume-pipeline/runs.db"

    @property
    def resolved_library_path(self) -> Path:
        return Path(self.library_db_path).expanduser()

    @property
    def resolved_runs_path(self) -> Path:
        return Path(self.runs_db_path).expanduser()


@dataclass(frozen=True)
class AppConfig:
    llm: LLMConfig = field(default_factory=LLMConfig)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)


def load_config(path: str | Path | None = None) -> AppConfig:
    """Load config from a YAML file, falling back to defaults.

    Raises ValueError when a value is outside its allowed range.
    """
    if path is None:
        candidate = Path.cwd() / "config.yaml"
        if candidate.exists():
            path = candidate

    raw: dict = {}
    if path is not None:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text()) or {}

    return AppConfig(
        llm=LLMConfig(**raw.get("llm", {})),
        scoring=ScoringConfig(**raw.get("scoring", {})),
        pipeline=PipelineConfig(**raw.get("pipeline", {})),
        search=SearchConfig(**raw.get("search", {})),
        storage=StorageConfig(**raw.get("storage", {})),
    )
