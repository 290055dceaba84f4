"""
Recipe Migrator - CLI Entry Point.

Usage:
    recipe-migrator process FILES...   Extract recipes and write JSON files
    recipe-migrator test-tandoor       Upload a sample recipe to Tandoor
    recipe-migrator serve              Start the web API
    recipe-migrator health             Check configuration
    recipe-migrator --help             Show help
"""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from recipe_migrator.recipe_import import ProcessStatus, QueueItem

app = typer.Typer(
    name="recipe-migrator",
    help="Recipe Migrator - digitize recipe images, PDFs, TXT and DOCX files.",
    add_completion=False,
)
console = Console()

STATUS_STYLES = {
    ProcessStatus.PENDING: "dim",
    ProcessStatus.PROCESSING: "blue",
    ProcessStatus.REVIEW: "yellow",
    ProcessStatus.COMPLETED: "green",
    ProcessStatus.ERROR: "red",
}


def _print_progress(items: list[QueueItem], seen: dict[str, ProcessStatus]) -> None:
    """Print each item once per status change."""
    for item in items:
        if seen.get(item.id) is item.status:
            continue
        seen[item.id] = item.status
        style = STATUS_STYLES[item.status]
        line = f"[{style}]{item.status.value:<10}[/{style}] {escape(item.file_name)}"
        if item.error:
            line += f" [red]({item.error.kind.value}: {escape(item.error.message)})[/red]"
        console.print(line)


@app.command()
def process(
    files: list[Path] = typer.Argument(..., exists=True, dir_okay=False, help="Recipe files"),
    out: Path = typer.Option(Path("recipes"), "--out", "-o", help="Directory for JSON output"),
    upload: bool = typer.Option(False, "--upload", "-u", help="Upload confirmed recipes to Tandoor"),
    log_prompts: bool = typer.Option(False, "--log-prompts", "-l", help="Log all LLM prompts to prompt_logs/"),
) -> None:
    """Extract recipes from files, confirm them as extracted, and write JSON."""
    from recipe_migrator.config import configure_logging
    from recipe_migrator.llm.prompt_logger import enable_prompt_logging, get_session_log_dir
    from recipe_migrator.recipe_import import (
        BATCH_FILE_NAME,
        ExportError,
        ReaderError,
        RecipeQueue,
        ReviewForm,
        SourceFile,
        download_all_json,
        download_json,
        export_to_tandoor,
        write_json_file,
    )

    configure_logging("WARNING")
    if log_prompts:
        enable_prompt_logging(True)

    queue = RecipeQueue()
    seen: dict[str, ProcessStatus] = {}
    queue.subscribe(lambda items: _print_progress(items, seen))

    sources = []
    for path in files:
        try:
            sources.append(SourceFile.from_path(path))
        except ReaderError as e:
            console.print(f"[red]Skipping {path}: {escape(str(e))}[/red]")
    queue.add(sources)

    summary = asyncio.run(queue.start_processing())

    # No interactive editor here: every extracted recipe is confirmed as-is
    form = ReviewForm(queue)
    for item in queue.snapshot():
        if item.status is ProcessStatus.REVIEW:
            queue.select_for_review(item.id)
            form.sync()
            form.confirm()

    recipes = queue.completed_recipes()
    # Same-named recipes get numbered files; the batch file name is reserved
    written = {BATCH_FILE_NAME.lower()}
    for recipe in recipes:
        write_json_file(out, download_json(recipe), taken=written)
    batch = download_all_json(recipes)
    if batch:
        path = write_json_file(out, batch)
        console.print(f"\n[green]Wrote {len(recipes)} recipe(s) to {path.parent}[/green]")

    if upload:
        for recipe in recipes:
            try:
                result = asyncio.run(export_to_tandoor(recipe))
                console.print(f"[green]Uploaded[/green] {recipe.name} (Status {result.status_code})")
            except ExportError as e:
                console.print(f"[red]Upload failed for {escape(recipe.name)}: {escape(str(e))}[/red]")

    _print_summary(queue.snapshot())

    log_dir = get_session_log_dir()
    if log_dir:
        console.print(f"\n[dim]Prompts logged to: {log_dir}[/dim]")

    if summary.failed:
        raise typer.Exit(1)


def _print_summary(items: list[QueueItem]) -> None:
    table = Table(title="Batch summary")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Recipe / error")

    for item in items:
        style = STATUS_STYLES[item.status]
        detail = item.recipe.name if item.recipe else (item.error.message if item.error else "")
        table.add_row(escape(item.file_name), f"[{style}]{item.status.value}[/{style}]", escape(detail))

    console.print(table)


@app.command("test-tandoor")
def tandoor_check() -> None:
    """Upload a sample recipe to verify the Tandoor integration."""
    from recipe_migrator.recipe_import import ExportError, check_tandoor_connection

    try:
        result = asyncio.run(check_tandoor_connection())
    except ExportError as e:
        console.print(f"[red]FAIL {escape(str(e))}[/red]")
        if e.status_code is not None:
            console.print("[dim]Tandoor API might require pre-existing Food IDs.[/dim]")
        raise typer.Exit(1)

    console.print(f"[green]OK[/green] Successfully uploaded to Tandoor (Status {result.status_code})")


@app.command()
def health() -> None:
    """Check configuration."""
    from recipe_migrator.config import get_settings

    console.print("\n[bold]Recipe Migrator Health Check[/bold]\n")

    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"\n[red]FAIL Configuration error: {e}[/red]")
        console.print("[dim]Check your .env file.[/dim]")
        raise typer.Exit(1)

    console.print("[green]OK[/green] Configuration loaded")
    console.print(f"   Environment: {settings.migrator_env}")
    console.print(f"   Log level: {settings.log_level}")
    console.print(f"   Extraction model: {settings.extraction_model}")

    ok = True
    if settings.openai_api_key:
        console.print("[green]OK[/green] OpenAI API key configured")
    else:
        console.print("[red]FAIL[/red] OpenAI API key missing (OPENAI_API_KEY)")
        ok = False

    if settings.tandoor_api_key:
        console.print(f"[green]OK[/green] Tandoor API key configured ({settings.tandoor_url})")
    else:
        console.print("[dim]INFO[/dim] Tandoor API key not set, uploads disabled")

    if not ok:
        raise typer.Exit(1)
    console.print("\n[green]All checks passed![/green]")


@app.command()
def version() -> None:
    """Show version information."""
    from recipe_migrator import __version__

    console.print(f"Recipe Migrator version {__version__}")


@app.command()
def serve(
    port: int = typer.Option(8000, "--port", "-p", help="Port to run on"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload for development"),
) -> None:
    """Start the web API server."""
    import uvicorn

    console.print("\n[bold green]Recipe Migrator API[/bold green]")
    console.print(f"Starting server on http://localhost:{port}")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    uvicorn.run(
        "recipe_migrator.web.app:app",
        host="0.0.0.0",
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
