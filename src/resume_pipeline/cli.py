"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from resume_pipeline.clients.llm_client import LLMClient
from resume_pipeline.clients.search_client import SearchClient
from resume_pipeline.config import load_config
from resume_pipeline.errors import PipelineError
from resume_pipeline.library.resume_library import ResumeLibrary
from resume_pipeline.models.library import OutcomeResponse
from resume_pipeline.models.profile import CandidateProfile, JobPosting
from resume_pipeline.pipeline.orchestrator import GenerationOptions, PipelineOrchestrator
from resume_pipeline.telemetry.cost_calculator import (
    calculate_cost,
    calculate_phase_costs,
    most_expensive_phase,
)
from resume_pipeline.telemetry.models import RunLog
from resume_pipeline.telemetry.run_store import RunStore

app = typer.Typer(
    name="resume-pipeline",
    help="Tailor a resume to a job posting",
    no_args_is_help=True,
)
console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _load_yaml(path: Path, model: type, label: str):
    if not path.exists():
        console.print(f"[red]{label} file not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return model(**(yaml.safe_load(path.read_text(encoding="utf-8")) or {}))
    except (yaml.YAMLError, ValidationError) as exc:
        console.print(f"[red]Invalid {label.lower()} file {path}:[/red] {escape(str(exc))}")
        raise typer.Exit(1)


@app.command()
def generate(
    job_path: Path = typer.Option(..., "--job", help="Job posting YAML file"),
    profile_path: Path = typer.Option(..., "--profile", help="Candidate profile YAML file"),
    resume: Path = typer.Option(None, "--resume", help="Existing resume (Markdown or text)"),
    research: bool = typer.Option(False, "--research", help="Enrich with company research (needs TAVILY_API_KEY)"),
    library: bool = typer.Option(False, "--library", help="Use and update the resume library"),
    threshold: int = typer.Option(None, "--threshold", help="Quality threshold (0-100)"),
    attempts: int = typer.Option(None, "--attempts", help="Maximum generation attempts"),
    max_length: str = typer.Option(None, "--max-length", help="one_page or two_page"),
    output: Path = typer.Option(None, "--output", "-o", help="Output Markdown path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Generate a tailored resume for a job posting."""
    _setup_logging(verbose)
    config = load_config()
    job = _load_yaml(job_path, JobPosting, "Job")
    profile = _load_yaml(profile_path, CandidateProfile, "Profile")
    existing = None
    if resume is not None:
        if not resume.exists():
            console.print(f"[red]Resume file not found: {resume}[/red]")
            raise typer.Exit(1)
        existing = resume.read_text(encoding="utf-8")

    overrides = {"include_research": research, "use_library": library, "max_length": max_length}
    if threshold is not None:
        overrides["quality_threshold"] = threshold
    if attempts is not None:
        overrides["max_regeneration_attempts"] = attempts
    try:
        options = GenerationOptions.from_config(config, **overrides)
    except ValueError as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1)

    llm = LLMClient(timeout=config.llm.timeout)
    search = (
        SearchClient(max_results=config.search.max_results, search_depth=config.search.search_depth)
        if research
        else None
    )
    resume_library = ResumeLibrary(config.storage.resolved_library_path) if library else None
    store = RunStore(config.storage.resolved_runs_path)
    log = RunLog(profile_id=profile.id, job_id=job.id, company=job.company, job_title=job.title)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Generating resume...", total=None)

        def on_phase(phase: str, detail: str) -> None:
            progress.update(task, description=detail)

        orchestrator = PipelineOrchestrator(
            llm, search, resume_library, config=config, on_phase=on_phase
        )
        try:
            result = asyncio.run(orchestrator.generate(job, profile, existing, options))
        except PipelineError as exc:
            log.success = False
            log.error_message = str(exc)
            result = None

    tokens = llm.get_token_summary()
    searches = search.get_search_count() if search else 0
    log.total_input_tokens = tokens["input"]
    log.total_output_tokens = tokens["output"]
    log.search_count = searches
    log.estimated_cost_usd = calculate_cost(tokens["calls"], searches)
    log.phase_costs = calculate_phase_costs(tokens["by_phase"], searches)

    if result is None:
        store.save(log)
        console.print(f"[red]Generation failed:[/red] {escape(log.error_message or '')}")
        raise typer.Exit(1)

    log.match_score = result.match_score
    log.ats_score = result.ats_score
    log.quality_score = result.quality_score
    log.generation_attempts = result.generation_attempts
    log.gaps_count = len(result.gaps)
    log.critical_gaps_count = result.critical_gaps_count
    log.phase_durations = result.phase_durations
    store.save(log)

    if output is None:
        output = Path(f"./output/{job.company}_{job.title}.md".replace(" ", "_"))
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(result.document, encoding="utf-8")
    console.print(f"\n[green]Resume saved: {output}[/green]")

    quality = result.quality
    color = "green" if quality.passed else "yellow"
    console.print(Panel(
        f"Match: {result.match_score} | ATS: {quality.ats_compatibility} | "
        f"Keywords: {quality.keyword_coverage} | Format: {quality.format_quality} | "
        f"Relevance: {quality.content_relevance} | "
        f"[bold {color}]Overall: {quality.overall}[/bold {color}]\n"
        f"Attempts: {result.generation_attempts} | "
        f"Mitigation coverage: {result.mitigation_coverage}% | "
        f"Cost: ${log.estimated_cost_usd:.4f} (most in {most_expensive_phase(log.phase_costs) or '-'})",
        title="Quality",
    ))

    if result.gaps:
        table = Table(title="Gaps")
        table.add_column("Requirement")
        table.add_column("Severity")
        table.add_column("Type")
        table.add_column("Best mitigation")
        for gap in result.gaps:
            best = gap.mitigation_strategies[0].description if gap.mitigation_strategies else "-"
            table.add_row(gap.requirement, str(gap.severity), str(gap.gap_type), best)
        console.print(table)

    if quality.issues:
        console.print("\n[yellow]Issues:[/yellow]")
        for issue in quality.issues:
            console.print(f"  - {escape(f'[{issue.type}]')} {escape(issue.message)}")

    if verbose:
        timing = Table(title="Phase timing (s)")
        timing.add_column("Phase")
        timing.add_column("Seconds", justify="right")
        timing.add_column("Cost (USD)", justify="right")
        for phase, seconds in result.phase_durations.items():
            cost = log.phase_costs.get(phase)
            timing.add_row(phase, f"{seconds:.2f}", f"${cost:.4f}" if cost is not None else "-")
        console.print(timing)


@app.command()
def stats() -> None:
    """Show run statistics for the current month."""
    config = load_config()
    data = RunStore(config.storage.resolved_runs_path).get_monthly_stats()
    table = Table(title=f"Runs in {data['month']}")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Runs", str(data["total_runs"]))
    table.add_row("Success rate", f"{data['success_rate']:.1f}%")
    table.add_row("Avg quality", str(data["avg_quality_score"] or "-"))
    table.add_row("Avg match", str(data["avg_match_score"] or "-"))
    table.add_row("Avg attempts", str(data["avg_attempts"] or "-"))
    table.add_row("Tokens in/out", f"{data['total_input_tokens']}/{data['total_output_tokens']}")
    table.add_row("Searches", str(data["total_searches"]))
    table.add_row("Cost (USD)", f"${data['total_cost_usd']:.4f}")
    for phase, cost in sorted(data["cost_by_phase"].items()):
        table.add_row(f"  {phase}", f"${cost:.4f}")
    console.print(table)


@app.command()
def outcome(
    entry_id: str = typer.Argument(help="Library entry id"),
    response: OutcomeResponse = typer.Argument(help="interview, rejection, offer or no_response"),
) -> None:
    """Record what happened after applying with a stored resume."""
    config = load_config()
    library = ResumeLibrary(config.storage.resolved_library_path)
    if not library.record_outcome(entry_id, response):
        console.print(f"[red]No library entry with id {entry_id}[/red]")
        raise typer.Exit(1)
    console.print(f"[green]Recorded {response} for {entry_id}[/green]")
