"""Command-line interface for the Q&A extraction service."""

import asyncio
import csv
import json
import sys
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx
import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from qa_extractor import __version__
from qa_extractor.config import get_settings
from qa_extractor.config.logging_setup import configure_logging
from qa_extractor.jobs import JobCancelledByUserError, JobFailedError, JobManager, wait_for_job_completion
from qa_extractor.models import AssignmentInputRow, InterviewInputRow, JobRecord, WorkflowResult
from qa_extractor.pipeline import (
    PipelineServices,
    build_services,
    run_assignments,
    run_drilldown,
    run_interview_analyzer,
    sample_csv,
)

app = typer.Typer(
    name="qa-extractor",
    help="Recruiting Q&A extraction - interviews, drilldown notes, assessments and assignments",
    add_completion=False,
)
console = Console()

WorkflowRunner = Callable[[PipelineServices, Any, Any], Awaitable[WorkflowResult]]

CSV_ARGUMENT = typer.Argument(
    ...,
    help="CSV file with one input row per line",
    exists=True,
    file_okay=True,
    dir_okay=False,
    readable=True,
)
PRODUCT_OPTION = typer.Option("N/A", "--product", "-p", help="Product label written to every row")
PROVIDER_OPTION = typer.Option("mistral", "--provider", help="AI provider: mistral or openai")
OUTPUT_OPTION = typer.Option(None, "--output", "-o", help="Write the result JSON to this file")
VERBOSE_OPTION = typer.Option(False, "--verbose", "-v", help="Enable verbose logging")


def _read_csv(path: Path) -> list[dict[str, str]]:
    with open(path, "r", encoding="utf-8-sig", newline="") as f:
        return [dict(row) for row in csv.DictReader(f)]


async def _run_workflow(runner: WorkflowRunner) -> WorkflowResult:
    """Run a workflow through a local job manager and poll it to completion."""
    settings = get_settings()
    async with httpx.AsyncClient() as http:
        services = build_services(settings, http)
        manager = JobManager(ttl_seconds=settings.job_ttl_seconds)
        job = manager.create_job(lambda update, control: runner(services, update, control))

        async def fetch() -> JobRecord | None:
            return manager.get_job(job.id)

        with Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>5.1f}%"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Queued...", total=100)

            def on_update(status: JobRecord) -> None:
                percent = status.progress.percent if status.progress else 0
                progress.update(task, description=status.message[:90], completed=percent)

            try:
                result = await wait_for_job_completion(fetch, on_update, settings.job_poll_interval_seconds)
            except asyncio.CancelledError:
                manager.cancel_job(job.id)
                raise
            finally:
                await manager.shutdown()

    return WorkflowResult.model_validate(result)


def _execute(runner: WorkflowRunner, title: str, output: Path | None, verbose: bool) -> None:
    configure_logging("DEBUG" if verbose else "WARNING", json_output=not verbose)
    console.print(Panel.fit(f"[bold blue]Q&A Extractor[/bold blue]\n{title}", border_style="blue"))

    try:
        result = asyncio.run(_run_workflow(runner))
    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled.[/yellow]")
        sys.exit(130)
    except JobCancelledByUserError as e:
        console.print(f"\n[yellow]Cancelled:[/yellow] {e}")
        sys.exit(130)
    except JobFailedError as e:
        console.print(f"\n[red]Job failed:[/red] {e}")
        sys.exit(1)

    _display_summary(result)

    if output is not None:
        with open(output, "w", encoding="utf-8") as f:
            json.dump(result.model_dump(by_alias=True), f, indent=2, ensure_ascii=False)
        console.print(f"\n[green]Result saved to:[/green] {output}")


@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(4000, "--port", help="Bind port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API server."""
    import uvicorn

    configure_logging(get_settings().log_level)
    uvicorn.run("qa_extractor.api.main:create_app", factory=True, host=host, port=port, reload=reload)


@app.command()
def drilldown(
    csv_path: Path = CSV_ARGUMENT,
    product: str = PRODUCT_OPTION,
    provider: str = PROVIDER_OPTION,
    output: Path = OUTPUT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Analyze drilldown interview notes from a CSV export."""
    rows = _read_csv(csv_path)
    console.print(f"[dim]Input:[/dim] {csv_path} ({len(rows)} candidate(s))")
    _execute(
        lambda services, update, control: run_drilldown(services, rows, product, provider, update, control),
        "Drilldown analysis",
        output,
        verbose,
    )


@app.command()
def assignments(
    csv_path: Path = CSV_ARGUMENT,
    product: str = PRODUCT_OPTION,
    provider: str = PROVIDER_OPTION,
    output: Path = OUTPUT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Analyze assignment links listed in a CSV file."""
    rows = [AssignmentInputRow.model_validate(row) for row in _read_csv(csv_path)]
    console.print(f"[dim]Input:[/dim] {csv_path} ({len(rows)} assignment(s))")
    _execute(
        lambda services, update, control: run_assignments(services, rows, product, provider, update, control),
        "Assignment analysis",
        output,
        verbose,
    )


@app.command()
def interview(
    csv_path: Path = CSV_ARGUMENT,
    product: str = PRODUCT_OPTION,
    provider: str = PROVIDER_OPTION,
    output: Path = OUTPUT_OPTION,
    verbose: bool = VERBOSE_OPTION,
) -> None:
    """Analyze Drive-hosted interview recordings listed in a CSV file."""
    rows = [InterviewInputRow.model_validate(row) for row in _read_csv(csv_path)]
    console.print(f"[dim]Input:[/dim] {csv_path} ({len(rows)} candidate(s))")
    _execute(
        lambda services, update, control: run_interview_analyzer(
            services, rows, product, provider, update, control
        ),
        "Interview analysis",
        output,
        verbose,
    )


@app.command("sample-template")
def sample_template(
    output: Path = typer.Option(None, "--output", "-o", help="Write the template here instead of stdout"),
) -> None:
    """Print the drilldown CSV template."""
    content = sample_csv()
    if output is None:
        console.print(content, markup=False, highlight=False)
        return
    output.write_text(content + "\n", encoding="utf-8")
    console.print(f"[green]Template saved to:[/green] {output}")


@app.command()
def info() -> None:
    """Display version and effective configuration."""
    settings = get_settings()

    console.print(Panel.fit("[bold blue]Q&A Extractor[/bold blue]", border_style="blue"))

    table = Table(show_header=False, box=None)
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Version", __version__)
    table.add_row("Mistral chat model", settings.mistral_chat_model)
    table.add_row("OpenAI chat model", settings.openai_chat_model)
    table.add_row("Chunk size", f"{settings.qna_chunk_size} chars")
    table.add_row("Chunk overlap", f"{settings.qna_chunk_overlap} chars")
    table.add_row("Data dir", str(settings.data_dir))
    table.add_row("Spreadsheet", settings.gsheet_id or "[red]not configured[/red]")
    table.add_row("Drilldown workers", str(settings.drilldown_worker_count))

    console.print(table)


def _display_summary(result: WorkflowResult) -> None:
    """Display row counts, sheet status and skipped items."""
    console.print("\n[bold]Summary[/bold]")
    console.print("-" * 40)

    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", justify="right")
    table.add_row("Rows", str(len(result.rows)))
    table.add_row("Saved to sheet", "[green]yes[/green]" if result.saved_to_sheet else "[yellow]no[/yellow]")
    table.add_row("Skipped items", str(len(result.skipped)))
    console.print(table)

    if result.skipped:
        console.print("\n[yellow]Skipped[/yellow]")
        for reason in result.skipped:
            console.print(f"  - {reason}", markup=False)


if __name__ == "__main__":
    app()
