"""
CLI Main - Typer-based command-line interface.

Usage:
    councilsearch status
    councilsearch validate athens chania
    councilsearch apply athens chania
    councilsearch preview athens --limit 3
    councilsearch search "παιδικές χαρές στο κέντρο"
    councilsearch serve
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from councilsearch.config import CouncilSearchError, configure_logging, get_settings
from councilsearch.domains.sync import SyncValidationReport, ValidationResult

app = typer.Typer(
    name="councilsearch",
    help="CouncilSearch - council subject search and index sync tools",
    add_completion=False,
)
console = Console()

T = TypeVar("T")


def _run(operation: Callable[[], Awaitable[T]], description: str) -> T:
    """Run an async operation behind a spinner and release clients afterwards."""
    from councilsearch.interfaces.api.deps import cleanup_services

    configure_logging(get_settings().log_level)

    async def runner() -> T:
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task(description, total=None)
                return await operation()
        finally:
            await cleanup_services()

    try:
        return asyncio.run(runner())
    except CouncilSearchError as e:
        console.print(f"[red]Error:[/red] [{e.code.value}] {e.message}")
        raise typer.Exit(1)
    except asyncio.TimeoutError:
        console.print("[red]Error:[/red] operation timed out")
        raise typer.Exit(1)


def _result_line(name: str, result: ValidationResult | None) -> tuple[str, str, str]:
    if result is None:
        return name, "[dim]skipped[/dim]", ""
    mark = "[green]ok[/green]" if result.is_valid else "[red]failed[/red]"
    rows = "" if result.row_count is None else str(result.row_count)
    return name, mark, rows


def _print_report(report: SyncValidationReport) -> None:
    table = Table(title=f"Sync validation: {', '.join(report.scope_ids)}")
    table.add_column("Check", style="cyan")
    table.add_column("Result")
    table.add_column("Rows", justify="right")

    table.add_row(*_result_line("City existence", report.existence))
    table.add_row(*_result_line("Deployed query", report.remote))
    table.add_row(*_result_line("Proposed query", report.proposed))
    table.add_row(*_result_line("Matches deployed", report.comparison))
    console.print(table)

    for result in (report.existence, report.remote, report.proposed, report.comparison):
        if result is not None and result.error_message:
            console.print(f"[yellow]{result.error_message}[/yellow]")

    verdict = "[green]SAFE[/green]" if report.is_safe else "[red]UNSAFE[/red]"
    console.print(f"\nStage: {report.stage.value}  Verdict: {verdict}")


@app.command()
def status() -> None:
    """Show the connector scope, latest sync job and per-city index status."""
    from councilsearch.interfaces.api.deps import get_connector_service, get_index_status_service

    async def collect():
        connector = get_connector_service()
        return (
            await connector.get_connector_status(),
            await connector.get_latest_sync_job(),
            await get_index_status_service().city_status(),
        )

    connector_status, job, index = _run(collect, "Reading connector and index...")

    connected = "[green]yes[/green]" if connector_status.is_connected else "[red]no[/red]"
    lines = [
        f"[bold]Cities:[/bold] {', '.join(connector_status.current_scope_ids) or '-'}",
        f"[bold]Connected:[/bold] {connected} (last seen {connector_status.last_seen or '-'})",
        f"[bold]Query updated:[/bold] {connector_status.query_updated_at or '-'}",
    ]
    if job is not None:
        lines.append(
            f"[bold]Latest sync:[/bold] {job.status} ({job.job_type}) "
            f"indexed={job.indexed_document_count} deleted={job.deleted_document_count}"
        )
    console.print(Panel("\n".join(lines), title="Connector"))

    table = Table(title=f"Index status (last sync {index.last_sync or '-'})")
    table.add_column("City", style="cyan")
    table.add_column("Meetings (db)", justify="right")
    table.add_column("Meetings (index)", justify="right")
    table.add_column("Subjects (index)", justify="right")
    table.add_column("In sync")
    for city in index.cities:
        table.add_row(
            city.city_name,
            str(city.total_meetings_db),
            str(city.total_meetings_index),
            str(city.total_subjects_index),
            "[green]yes[/green]" if city.in_sync else "[red]no[/red]",
        )
    console.print(table)


@app.command()
def validate(
    city_ids: list[str] = typer.Argument(..., help="Cities the connector should sync"),
    require_remote_health: bool = typer.Option(
        False, "--require-remote-health", help="Fail when the deployed query is unhealthy"
    ),
) -> None:
    """Validate a proposed city scope without changing the connector."""
    from councilsearch.interfaces.api.deps import get_sync_validator

    report = _run(
        lambda: get_sync_validator().validate(
            city_ids, require_remote_health=require_remote_health
        ),
        "Validating...",
    )
    _print_report(report)
    if not report.is_safe:
        raise typer.Exit(1)


@app.command()
def apply(
    city_ids: list[str] = typer.Argument(..., help="Cities the connector should sync"),
    require_remote_health: bool = typer.Option(
        False, "--require-remote-health", help="Fail when the deployed query is unhealthy"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Validate a city scope and push it to the connector when safe."""
    from councilsearch.interfaces.api.deps import get_sync_validator

    if not yes:
        typer.confirm(f"Update the connector to sync {', '.join(city_ids)}?", abort=True)

    report = _run(
        lambda: get_sync_validator().validate_and_apply(
            city_ids, require_remote_health=require_remote_health
        ),
        "Validating and applying...",
    )
    _print_report(report)
    if not report.applied:
        console.print("[red]Connector not updated.[/red]")
        raise typer.Exit(1)
    console.print("[green]Connector updated.[/green] The next sync uses the new cities.")


@app.command()
def preview(
    city_ids: list[str] = typer.Argument(..., help="Proposed cities"),
    limit: int = typer.Option(5, "--limit", "-n", min=1, max=10, help="Sample size"),
    city_id: str | None = typer.Option(None, "--city", help="Only this city"),
    meeting_id: str | None = typer.Option(None, "--meeting", help="Only this meeting"),
    subject_id: str | None = typer.Option(None, "--subject", help="Only this subject"),
) -> None:
    """Show sample documents the proposed cities would sync."""
    from councilsearch.interfaces.api.deps import get_preview_service

    result = _run(
        lambda: get_preview_service().preview(
            city_ids,
            limit=limit,
            city_id=city_id,
            meeting_id=meeting_id,
            subject_id=subject_id,
        ),
        "Sampling documents...",
    )

    console.print(
        f"\n[green]{result.total_documents}[/green] documents "
        f"[dim]({result.execution_time_ms}ms)[/dim]\n"
    )
    table = Table(title="Sample documents")
    table.add_column("Subject", style="cyan")
    table.add_column("Name")
    table.add_column("City")
    table.add_column("Meeting date")
    for doc in result.sample_documents:
        table.add_row(
            str(doc.get("id", "")),
            str(doc.get("name", "")),
            str(doc.get("city_id", "")),
            str(doc.get("meeting_date", "")),
        )
    console.print(table)


@app.command()
def search(
    query: str = typer.Argument(..., help="Search query"),
    city_ids: list[str] | None = typer.Option(None, "--city", "-c", help="Restrict to city"),
    size: int | None = typer.Option(None, "--limit", "-n", help="Number of results"),
    semantic: bool = typer.Option(True, "--semantic/--keyword", help="Use semantic ranking"),
) -> None:
    """Search subjects of released council meetings."""
    from councilsearch.domains.search import SearchConfig, SearchRequest
    from councilsearch.interfaces.api.deps import get_search_service

    config = SearchConfig.from_settings(get_settings()).merged(
        size=size,
        enable_semantic_search=None if semantic else False,
    )
    request = SearchRequest(query=query, city_ids=city_ids or None, config=config)

    response = _run(lambda: get_search_service().search(request), "Searching...")

    filters = response.filters
    if filters is not None:
        console.print(
            f"[dim]cities={filters.city_ids} date_range={filters.date_range} "
            f"locations={len(filters.locations or [])}[/dim]"
        )

    table = Table(title=f"{response.total} results ({response.took_ms}ms)")
    table.add_column("Score", justify="right", style="green")
    table.add_column("Subject", style="cyan")
    table.add_column("Name")
    table.add_column("Speaker matches", justify="right")
    for hit in response.hits:
        table.add_row(
            f"{hit.score:.4f}",
            hit.subject_id,
            str(hit.source.get("public_subject_name", "")),
            str(len(hit.matched_segment_ids)),
        )
    console.print(table)


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", "-h", help="Host to bind"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port to bind"),
    reload: bool = typer.Option(False, "--reload", "-r", help="Enable auto-reload"),
) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print("\n[green]Starting CouncilSearch API server[/green]")
    console.print(f"[dim]http://{host}:{port}[/dim]\n")

    uvicorn.run(
        "councilsearch.interfaces.api:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
    )


@app.command()
def version() -> None:
    """Show version information."""
    from councilsearch import __version__

    console.print(f"CouncilSearch v{__version__}")


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
