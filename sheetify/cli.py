"""CLI interface for sheetify."""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)

from . import __version__
from .config import Config
from .exceptions import ConfigurationError, SheetifyError
from .export import download_name, to_csv, to_xlsx
from .modes import MODES, get_mode
from .processor import DocumentProcessor
from .progress import ProgressRecord, Stage
from .providers import ProviderFactory
from .renderers import PDFRenderer
from .sheets import SheetAssembler, SheetFile, session_key
from .store import MemoryStore
from .utils import new_id, setup_logging, validate_api_key

# Load environment variables
load_dotenv()

console = Console()


@click.group()
@click.version_option(version=__version__, prog_name="sheetify")
def cli() -> None:
    """sheetify CLI - Extract script and name tables from PDF pages."""
    pass


@cli.command()
@click.option("--host", default="0.0.0.0", help="Interface to bind")
@click.option("--port", "-p", type=int, default=8000, help="Port to listen on")
@click.option("--workers", "-w", type=int, default=1, help="Worker processes")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: str, port: int, workers: int, reload: bool) -> None:
    """Run the HTTP API."""
    import uvicorn

    uvicorn.run(
        "sheetify.api:app",
        host=host,
        port=port,
        workers=workers,
        reload=reload,
        log_level="info",
    )


async def _run_extraction(
    config: Config,
    store: MemoryStore,
    session_id: str,
    renderer: PDFRenderer,
    filename: str,
    start: int,
    end: int,
    mode_name: str,
    progress: Progress,
) -> SheetFile:
    mode = get_mode(mode_name)
    provider = ProviderFactory.from_config(config)
    processor = DocumentProcessor(config, provider, store)

    scan_task = progress.add_task("Scanning pages...", total=100)
    extract_task = progress.add_task("Extracting rows...", total=100)

    def on_progress(record: ProgressRecord) -> None:
        if record.stage == Stage.SCANNING:
            progress.update(scan_task, completed=record.progress)
        elif record.stage == Stage.EXTRACTING:
            progress.update(extract_task, completed=record.progress)

    try:
        return await processor.process_range(
            session_id, renderer, filename, start, end, mode, progress_callback=on_progress
        )
    finally:
        provider.close()


def _write_sheet(sheet_file: SheetFile, output_path: Path, output_format: str) -> None:
    if output_format == "csv":
        output_path.write_text(to_csv(sheet_file), encoding="utf-8")
    else:
        output_path.write_bytes(to_xlsx(sheet_file))


@cli.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--start-page", "-s", type=int, default=1, help="First page to extract")
@click.option(
    "--end-page",
    "-e",
    type=int,
    help="Last page to extract (default: last page of the document)",
)
@click.option(
    "--mode",
    type=click.Choice(sorted(MODES)),
    default="lines",
    help="What to extract: dialogue lines or foreign names",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False),
    help="Output file (default: next to the PDF)",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["xlsx", "csv"]),
    default="xlsx",
    help="Output format",
)
@click.option("--model", "-m", default="gpt-4o-mini", help="OpenAI model to use")
@click.option(
    "--max-retries",
    "-r",
    type=int,
    default=3,
    help="Maximum number of attempts per remote call",
)
@click.option(
    "--temperature",
    "-t",
    type=float,
    default=0.1,
    help="Temperature for model generation (0.0 to 1.0)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
def extract(
    file_path: str,
    start_page: int,
    end_page: Optional[int],
    mode: str,
    output: Optional[str],
    output_format: str,
    model: str,
    max_retries: int,
    temperature: float,
    verbose: bool,
) -> None:
    """Extract a page range of a PDF into a spreadsheet."""
    try:
        validate_api_key()
    except ConfigurationError as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        sys.exit(1)

    setup_logging(verbose)
    file_path_obj = Path(file_path)

    try:
        config = Config(
            model=model,
            max_retries=max_retries,
            temperature=temperature,
            verbose=verbose,
            redis_url=None,
        )
        renderer = PDFRenderer(file_path_obj.read_bytes(), scale=config.render_scale)
    except SheetifyError as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        sys.exit(1)

    last_page = end_page or renderer.page_count
    output_path = (
        Path(output)
        if output
        else file_path_obj.with_name(
            download_name(file_path_obj.name, f".{output_format}")
        )
    )

    console.print(f"[green]PDF file:[/green] {file_path_obj}")
    console.print(f"[green]Pages:[/green] {start_page}-{last_page}")
    console.print(f"[green]Mode:[/green] {mode}")
    console.print(f"[green]Model:[/green] {model}")

    store = MemoryStore()
    session_id = new_id()

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=console,
        ) as progress:
            sheet_file = asyncio.run(
                _run_extraction(
                    config,
                    store,
                    session_id,
                    renderer,
                    file_path_obj.name,
                    start_page,
                    last_page,
                    mode,
                    progress,
                )
            )
    except KeyboardInterrupt:
        console.print("\n[yellow]Processing interrupted by user[/yellow]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error processing PDF: {str(e)}[/red]")
        if verbose:
            console.print_exception()

        partial = asyncio.run(SheetAssembler(store).load(session_key(session_id)))
        if partial is not None and partial.sheet:
            _write_sheet(partial, output_path, output_format)
            console.print(
                f"[yellow]Saved {len(partial.sheet)} rows extracted before the "
                f"failure to:[/yellow] {output_path}"
            )
        sys.exit(1)

    _write_sheet(sheet_file, output_path, output_format)

    console.print(
        f"[green]Extracted {len(sheet_file.sheet)} rows to:[/green] {output_path}"
    )


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
