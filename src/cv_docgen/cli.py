"""CLI interface using typer + rich."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from cv_docgen.config import load_config
from cv_docgen.errors import FillError
from cv_docgen.logging.usage_store import GenerationLogStore
from cv_docgen.pipeline.orchestrator import GenerationOrchestrator, GenerationStage
from cv_docgen.templates.filler import DocumentFiller
from cv_docgen.templates.registry import TemplateRegistry

app = typer.Typer(
    name="cv-docgen",
    help="Résumé document generation from Word templates",
    no_args_is_help=True,
)
console = Console()

_STAGE_LABELS = {
    GenerationStage.VALIDATED: "Validated résumé data",
    GenerationStage.MAPPED: "Mapped fields to template",
    GenerationStage.FILLED: "Filled Word template",
    GenerationStage.CONVERTING: "Converting to PDF...",
    GenerationStage.PACKAGED: "Packaging output",
}


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


@app.command()
def generate(
    cv_file: Path = typer.Argument(help="Résumé JSON file (cvData)"),
    template: str = typer.Option(..., "--template", "-t", help="Template id"),
    fmt: str = typer.Option("primary", "--format", "-f", help="primary | secondary | both"),
    language: str = typer.Option("en", "--language", "-l", help="Output language (en, ar)"),
    output_dir: Path = typer.Option(Path("."), "--output-dir", "-o", help="Where to write the files"),
    file_name: str = typer.Option(None, "--name", help="Output file name without extension"),
    remove_empty: bool = typer.Option(False, "--remove-empty", help="Drop paragraphs left empty"),
    max_pages: int = typer.Option(None, "--max-pages", help="Warn when the PDF is longer"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Generate a Word document (and optionally a PDF) from a résumé JSON file."""
    _setup_logging(verbose)
    if not cv_file.exists():
        console.print(f"[red]File not found: {cv_file}[/red]")
        raise typer.Exit(1)

    config = load_config()
    registry = TemplateRegistry.from_directory(config.templates.resolved_directory)
    log_store = GenerationLogStore(config.log_store.resolved_db_path) if config.log_store.enabled else None

    try:
        cv_data = json.loads(cv_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Invalid JSON in {cv_file}: {e}[/red]")
        raise typer.Exit(1)
    # Accept either a bare résumé or a full request body
    cv_data = cv_data.get("cvData", cv_data) if isinstance(cv_data, dict) else cv_data

    options: dict = {"templateId": template, "format": fmt, "language": language}
    if file_name:
        options["fileName"] = file_name
    customizations: dict = {"removeEmptySections": remove_empty}
    if max_pages:
        customizations["maxPages"] = max_pages
    options["customizations"] = customizations
    body = json.dumps({"cvData": cv_data, "options": options})

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Generating...", total=None)

        def on_stage(stage: GenerationStage, detail: str) -> None:
            if stage in _STAGE_LABELS:
                progress.update(task, description=_STAGE_LABELS[stage])

        orchestrator = GenerationOrchestrator(
            registry, config=config, log_store=log_store, on_stage=on_stage,
        )
        result = asyncio.run(orchestrator.handle(body, client_id="cli"))

    if result.status_code >= 400:
        payload = result.payload or {}
        console.print(f"[red]{payload.get('error', 'Generation failed')}[/red]")
        details = payload.get("details")
        if details:
            for line in details.split("; "):
                console.print(f"  - {line}")
        if payload.get("supportedLanguages"):
            console.print(f"[dim]Supported languages: {', '.join(payload['supportedLanguages'])}[/dim]")
        raise typer.Exit(1)

    output_dir.mkdir(parents=True, exist_ok=True)
    artifact = result.artifact
    for file in (artifact.document, artifact.rendering):
        if file is None:
            continue
        if fmt in ("secondary", "pdf") and file is artifact.document:
            continue
        path = output_dir / file.filename
        path.write_bytes(file.data)
        console.print(f"[green]Saved: {path}[/green] ({file.size:,} bytes)")

    meta = artifact.metadata
    summary = f"[dim]{meta.template_used}, {meta.processing_time_ms} ms"
    if meta.conversion_method:
        summary += f", PDF via {meta.conversion_method}"
    if meta.page_count:
        summary += f", {meta.page_count} page(s)"
    console.print(summary + "[/dim]")
    if meta.warnings:
        console.print("\n[yellow]Warnings:[/yellow]")
        for warning in meta.warnings:
            console.print(f"  - {warning}")


@app.command()
def templates(
    category: str = typer.Option(None, "--category", "-c", help="Filter by category"),
    language: str = typer.Option(None, "--language", "-l", help="Filter by supported language"),
    industry: str = typer.Option(None, "--industry", "-i", help="Show recommendations for an industry"),
    premium_user: bool = typer.Option(False, "--premium-user", help="Include premium templates in recommendations"),
) -> None:
    """List available templates, or recommend some for an industry."""
    config = load_config()
    registry = TemplateRegistry.from_directory(config.templates.resolved_directory)
    if industry:
        items = registry.get_recommended_templates(industry=industry, is_premium_user=premium_user)
    else:
        items = registry.find_templates(category=category, language=language)
    if not items:
        console.print("[yellow]No templates found.[/yellow]")
        return

    table = Table(title="Templates")
    table.add_column("ID", style="bold")
    table.add_column("Name")
    table.add_column("Category")
    table.add_column("Languages")
    table.add_column("Premium")
    for t in items:
        table.add_row(
            t.id, t.name, t.category, ", ".join(t.supported_languages), "yes" if t.is_premium else "",
        )
    console.print(table)


@app.command()
def placeholders(
    file: Path = typer.Argument(help="DOCX template to scan"),
) -> None:
    """List the placeholders and sections used in a DOCX template."""
    if not file.exists():
        console.print(f"[red]File not found: {file}[/red]")
        raise typer.Exit(1)

    try:
        found = DocumentFiller().list_placeholders(file.read_bytes())
    except FillError as e:
        console.print(f"[red]Could not read template: {e}[/red]")
        raise typer.Exit(1)

    if not found:
        console.print("[yellow]No placeholders found.[/yellow]")
        console.print("[dim]Tip: add markers such as {{FULL_NAME}} or {{#WORK_EXPERIENCE}} to the document.[/dim]")
        return

    console.print(f"\n[bold]Placeholders ({len(found)}):[/bold]")
    for name in found:
        console.print(f"  {name}")


@app.command()
def serve(
    host: str = typer.Option(None, "--host", help="Bind address"),
    port: int = typer.Option(None, "--port", "-p", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Auto-reload on code changes"),
) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    config = load_config()
    uvicorn.run(
        "cv_docgen.api.app:create_app",
        factory=True,
        host=host or config.server.host,
        port=port or config.server.port,
        reload=reload,
    )


if __name__ == "__main__":
    app()
