"""
careermatch Command Line Interface

Provides CLI commands for inspecting configuration, warming up the
embedding model, scoring job descriptions against a resume, and mining
improvements from a tailored resume.
"""

import asyncio
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="careermatch",
    help="Semantic job matching and context retrieval CLI",
    add_completion=False,
)
console = Console()


def _read_text(path: Path) -> str:
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(1)
    return path.read_text(encoding="utf-8")


@app.command()
def version():
    """Show application version."""
    from careermatch import __version__, __app_name__

    console.print(f"[bold blue]{__app_name__}[/bold blue] version [green]{__version__}[/green]")


@app.command()
def info():
    """Show configuration."""
    from careermatch.utils.config import get_settings

    settings = get_settings()

    table = Table(title="careermatch Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Environment", settings.environment)
    table.add_row("Debug Mode", str(settings.debug))
    table.add_row("Embedding Model", settings.embedding.model_name)
    table.add_row("Embedding Device", settings.embedding.device)
    table.add_row("Max Input Chars", str(settings.embedding.max_chars))
    table.add_row(
        "Similarity Band",
        f"{settings.scoring.min_similarity:.2f} - {settings.scoring.max_similarity:.2f}",
    )
    table.add_row(
        "Score Band", f"{settings.scoring.min_score} - {settings.scoring.max_score}"
    )
    table.add_row("Requirements Weight", f"{settings.scoring.requirements_weight:.2f}")
    table.add_row("Retrieval Threshold", f"{settings.retrieval.threshold:.2f}")
    table.add_row(
        "Retrieval Caps",
        f"{settings.retrieval.max_stories} stories / {settings.retrieval.max_documents} documents",
    )
    table.add_row("Log Level", settings.logging.level)

    console.print(table)


@app.command()
def warmup():
    """Load the embedding model so later commands start faster."""
    from rich.progress import Progress, SpinnerColumn, TextColumn

    from careermatch.ml.embeddings import get_embedding_service
    from careermatch.utils.config import get_settings
    from careermatch.utils.exceptions import InitializationError

    settings = get_settings()
    console.print("[yellow]Warming up embedding model...[/yellow]")
    console.print(f"  Device: [cyan]{settings.embedding.device}[/cyan]")
    console.print(f"  Embedding Model: [cyan]{settings.embedding.model_name}[/cyan]")

    service = get_embedding_service()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Loading embedding model...", total=None)

        def on_progress(event) -> None:
            progress.update(
                task, description=f"Loading embedding model ({event.stage.value} {event.progress:.0f}%)"
            )

        try:
            asyncio.run(service.initialize(on_progress=on_progress))
            progress.update(task, description="[green]✓[/green] Embedding model loaded")
        except InitializationError as e:
            progress.update(task, description=f"[red]✗[/red] Embedding model failed: {e}")
            raise typer.Exit(1)
        finally:
            service.terminate()


@app.command()
def score(
    resume_file: Path = typer.Argument(..., help="Resume text file"),
    job_files: list[Path] = typer.Argument(..., help="Job description text files"),
    context_file: Optional[Path] = typer.Option(
        None, "--context", "-c", help="Additional context about the candidate"
    ),
    top_n: int = typer.Option(10, "--top", "-n", help="Number of jobs to show"),
):
    """Score job descriptions against a resume and rank them."""
    from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn

    from careermatch.core.matching import get_match_scorer
    from careermatch.data.content_store import get_content_store
    from careermatch.data.models import JobPosting
    from careermatch.ml.embeddings import get_embedding_service
    from careermatch.utils.constants import MatchStatus
    from careermatch.utils.exceptions import InitializationError, ProfileUnavailableError

    store = get_content_store()
    store.set_resume_text(_read_text(resume_file))
    store.set_additional_context(_read_text(context_file) if context_file else "")
    postings = [
        JobPosting(job_id=path.stem, title=path.stem, description=_read_text(path))
        for path in job_files
    ]

    service = get_embedding_service()
    scorer = get_match_scorer()

    console.print(f"[yellow]Scoring {len(postings)} job(s)...[/yellow]")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        console=console,
    ) as progress:
        task = progress.add_task("Scoring jobs...", total=len(postings))

        def on_progress(completed: int, total: int) -> None:
            progress.update(task, completed=completed)

        try:
            results = asyncio.run(scorer.score_postings(postings, on_progress=on_progress))
        except (ProfileUnavailableError, InitializationError) as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)
        finally:
            service.terminate()

    table = Table(title=f"Top {min(top_n, len(results))} Matches")
    table.add_column("Rank", style="dim", width=4)
    table.add_column("Job", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Grade", justify="center")
    table.add_column("Requirements Split", justify="center")

    for i, result in enumerate(results[:top_n], 1):
        if result.status == MatchStatus.ERROR:
            table.add_row(str(i), result.posting.title, "-", "[red]error[/red]", "-")
            continue

        if result.score >= 80:
            color = "green"
        elif result.score >= 65:
            color = "blue"
        elif result.score >= 50:
            color = "yellow"
        else:
            color = "red"

        table.add_row(
            str(i),
            result.posting.title,
            str(result.score),
            f"[{color}]{result.grade}[/{color}]",
            "✓" if result.used_requirements_split else "",
        )

    console.print(table)


@app.command()
def improvements(
    original_file: Path = typer.Argument(..., help="Original resume text file"),
    tailored_file: Path = typer.Argument(..., help="AI-tailored resume text file"),
    company: str = typer.Option("", "--company", help="Company the resume was tailored for"),
    title: str = typer.Option("", "--title", help="Job title the resume was tailored for"),
    max_results: Optional[int] = typer.Option(None, "--max", "-m", help="Maximum improvements"),
):
    """Show reusable improvements between an original and a tailored resume."""
    from careermatch.core.improvements import (
        ResumeImprovementExtractor,
        format_improvements_context,
    )
    from careermatch.data.models import Job

    job = Job(
        title=title or tailored_file.stem,
        company=company,
        resume_text=_read_text(original_file),
        tailored_resume=_read_text(tailored_file),
    )

    extractor = ResumeImprovementExtractor()
    found = extractor.extract_improvements("", [job], max_results=max_results)

    if not found:
        console.print("[yellow]No reusable improvements found.[/yellow]")
        raise typer.Exit(0)

    console.print(format_improvements_context(found))


if __name__ == "__main__":
    app()
