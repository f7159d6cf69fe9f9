"""
CLI commands for rollscan.
"""

import asyncio
import sys
import time
from pathlib import Path
from typing import Optional

import click
from pydantic import ValidationError
from pydantic_settings import SettingsError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from rollscan import __version__

console = Console()


def run_async(coro):
    """Run an async function in sync context."""
    return asyncio.run(coro)


def load_settings(**overrides):
    """
    Build settings from the environment plus command line overrides.

    Raises:
        ConfigurationError: If any value is invalid
    """
    from config.settings import Settings
    from rollscan.core.exceptions import ConfigurationError

    try:
        return Settings(**{k: v for k, v in overrides.items() if v is not None})
    except ValidationError as e:
        raise ConfigurationError(
            message=f"Invalid configuration: {e.error_count()} error(s)",
            details={"errors": e.errors(include_url=False)},
            cause=e,
        )
    except SettingsError as e:
        raise ConfigurationError(
            message=(
                "Cannot parse configuration from the environment. "
                'OPENAI_API_KEYS must use JSON array syntax like: ["key1","key2",...]'
            ),
            cause=e,
        )


@click.group()
@click.version_option(version=__version__, prog_name="rollscan")
def cli():
    """
    rollscan: electoral roll OCR extraction.

    Splits PDFs into chunks, extracts voters from each chunk in parallel
    across a pool of API keys, and merges everything into one result.
    """
    pass


@cli.command()
@click.argument("pdf_path", type=click.Path(dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Output JSON path")
@click.option("--pages-per-chunk", "-p", type=int, help="Pages per chunk (1-10)")
@click.option("--csv/--no-csv", "write_csv", default=True, help="Also write a CSV export")
@click.option("--keep-scratch", is_flag=True, default=False, help="Keep per-chunk records")
def extract(
    pdf_path: str,
    output: Optional[str],
    pages_per_chunk: Optional[int],
    write_csv: bool,
    keep_scratch: bool,
):
    """
    Extract voters from a PDF electoral roll.

    Examples:

        rollscan extract roll.pdf

        rollscan extract roll.pdf -p 3 -o results/roll.json --no-csv
    """
    from rollscan.core.exceptions import RollscanError
    from rollscan.core.log_config import configure_logging
    from rollscan.processors.pipeline import ExtractionPipeline, default_output_path
    from rollscan.storage.output import export_csv

    if not pdf_path.lower().endswith(".pdf"):
        console.print("[red]Error:[/red] Must be a .pdf file.")
        sys.exit(1)

    async def _extract():
        start = time.monotonic()

        settings = load_settings(
            max_pages_per_chunk=pages_per_chunk,
            keep_scratch=True if keep_scratch else None,
        )
        configure_logging(settings.log_level)
        output_path = Path(output) if output else default_output_path(settings, pdf_path)

        pipeline = ExtractionPipeline(settings=settings)
        console.print(
            f"\n[bold]Configuration:[/bold] [green]{settings.max_pages_per_chunk}[/green] pages/chunk, "
            f"[green]{pipeline.pool.size}[/green] threads"
        )

        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
            ) as progress:
                task = progress.add_task("Extracting voters...", total=None)
                result = await pipeline.run(pdf_path, output_path)
                progress.update(task, description="Complete!")
        finally:
            await pipeline.close()

        csv_rows = 0
        if write_csv and result.total_records:
            csv_rows = export_csv(output_path, output_path.with_suffix(".csv"))

        duration = time.monotonic() - start
        _print_summary(result, output_path, duration, csv_rows)

    try:
        run_async(_extract())
    except RollscanError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        sys.exit(1)


def _print_summary(result, output_path: Path, duration: float, csv_rows: int) -> None:
    table = Table(title="Chunks")
    table.add_column("Pages", style="cyan")
    table.add_column("Chunk", style="dim")
    table.add_column("Voters", style="green", justify="right")
    table.add_column("Status")

    for entry in result.per_chunk_summary:
        status_style = "green" if entry.status.value == "success" else "red"
        table.add_row(
            entry.page_label,
            entry.chunk_id,
            str(entry.record_count),
            f"[{status_style}]{entry.status.value}[/{status_style}]",
        )

    console.print()
    console.print(table)
    console.print(f"\n[bold]Total Voters Extracted:[/bold] [green]{result.total_records}[/green]")
    console.print(f"[bold]Processing Time:[/bold] [yellow]{duration:.2f}[/yellow] seconds")
    console.print(f"[bold]Output Saved:[/bold] [cyan]{output_path}[/cyan]")
    if csv_rows:
        console.print(f"[bold]CSV:[/bold] [cyan]{output_path.with_suffix('.csv')}[/cyan] ({csv_rows} voters)")
    if result.failed_chunks:
        console.print(
            f"[yellow]{len(result.failed_chunks)} chunk(s) failed on every API key.[/yellow]"
        )


@cli.command()
@click.argument("json_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="CSV path")
def export(json_path: str, output: Optional[str]):
    """
    Convert an existing result JSON into CSV.

    Examples:

        rollscan export results/roll_ocr.json
    """
    from rollscan.core.exceptions import RollscanError
    from rollscan.storage.output import export_csv

    csv_path = Path(output) if output else Path(json_path).with_suffix(".csv")
    try:
        rows = export_csv(json_path, csv_path)
    except RollscanError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        sys.exit(1)

    if not rows:
        console.print("[yellow]No voters found, nothing exported.[/yellow]")
        return
    console.print(f"[green]✓ CSV created:[/green] {csv_path} ({rows} voters)")


@cli.command()
def config():
    """
    Show the effective configuration.
    """
    from rollscan.core.exceptions import RollscanError
    from rollscan.core.schemas import mask_credential

    try:
        settings = load_settings()
    except RollscanError as e:
        console.print(f"[red]Error:[/red] {str(e)}")
        sys.exit(1)

    table = Table(title="rollscan configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    keys = ", ".join(mask_credential(k) for k in settings.openai_api_keys) or "[red]none[/red]"
    table.add_row("API keys", f"{len(settings.openai_api_keys)} ({keys})")
    table.add_row("Model", settings.openai_model)
    table.add_row("Pages per chunk", str(settings.max_pages_per_chunk))
    table.add_row("Requests before break", str(settings.requests_before_break))
    table.add_row("Break duration (ms)", str(settings.break_duration_ms))
    table.add_row("Failover cooldown (ms)", str(settings.cooldown_ms))
    table.add_row("Scratch directory", settings.temp_dir)
    table.add_row("Output directory", settings.output_dir)
    table.add_row("Keep scratch", str(settings.keep_scratch))
    console.print(table)


# Entry point
if __name__ == "__main__":
    cli()
