"""Command-line interface for publishing portal contributions to HydroShare."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import httpx
import structlog
import typer
from pydantic import ValidationError as PydanticValidationError
from rich.console import Console
from rich.table import Table

from hsportal.contributions import CONTRIBUTIONS, Contribution, get_contribution
from hsportal.errors import AuthenticationRequiredError, TransportError
from hsportal.models import SubmissionDraft, UploadFile
from hsportal.services import (
    HydroShareClient,
    PipelineRun,
    S3Uploader,
    SessionContinuity,
    SQLiteStore,
    StoredTokenAuth,
    SubmissionPipeline,
)
from hsportal.settings import Settings, get_settings

console = Console()
app = typer.Typer(help="hsportal – publish contributions to HydroShare")
draft_app = typer.Typer(help="Saved drafts")
app.add_typer(draft_app, name="draft")
logger = structlog.get_logger(__name__)


def _contribution(value: str) -> Contribution:
    try:
        return get_contribution(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load_draft(path: Path) -> SubmissionDraft:
    if not path.exists():
        raise typer.BadParameter(f"Draft file not found: {path}")
    try:
        return SubmissionDraft.model_validate_json(path.read_text(encoding="utf-8"))
    except PydanticValidationError as exc:
        raise typer.BadParameter(f"Draft file is not a valid submission: {exc}") from exc


def _components(settings: Settings, kind: Contribution) -> tuple[SQLiteStore, StoredTokenAuth, SessionContinuity]:
    store = SQLiteStore(settings.db_path)
    auth = StoredTokenAuth(
        store, settings, on_login=lambda url: typer.echo(f"Open this URL to log in:\n{url}")
    )
    return store, auth, SessionContinuity(store, kind.key)


def _print_run(run: PipelineRun) -> None:
    if run.succeeded and run.resource:
        for message in run.messages:
            console.print(f"[green]✓[/green] {message}")
        console.print(f"[bold green]Resource URL:[/bold green] {run.resource.url}")
        return
    console.print(f"[red]{run.error_message}[/red]")
    if isinstance(run.error, AuthenticationRequiredError):
        console.print("Run `hsportal login <type> --draft <file>` first.")
    if run.orphaned:
        console.print(
            f"[yellow]Resource {run.resource_id} was created on HydroShare but left "
            "incomplete; finish or delete it there.[/yellow]"
        )


@app.command()
def config(
    json_output: bool = typer.Option(False, "--json", help="Output settings as JSON"),
) -> None:
    """Display the resolved settings."""
    settings = get_settings()
    if json_output:
        typer.echo(settings.model_dump_json(indent=2, exclude={"s3_secret_key"}))
        return
    table = Table(title="hsportal Settings")
    table.add_column("Key")
    table.add_column("Value", overflow="fold")
    for key, value in settings.model_dump(exclude={"s3_secret_key"}).items():
        table.add_row(key, str(value))
    console.print(table)


@app.command("types")
def list_types() -> None:
    """List the contribution types and their HydroShare mapping."""
    table = Table(title="Contribution Types")
    table.add_column("Type")
    table.add_column("Label")
    table.add_column("Resource type")
    table.add_column("Keyword")
    for kind in CONTRIBUTIONS.values():
        table.add_row(kind.key, kind.label, kind.resource_type, kind.keyword)
    console.print(table)


@app.command()
def login(
    kind: str = typer.Argument(..., help="Contribution type (app, dataset, presentation, course)"),
    draft: Optional[Path] = typer.Option(None, "--draft", help="Draft JSON to keep across the login"),
) -> None:
    """Save the draft, mark a login as pending, and print the authorization URL."""
    contribution = _contribution(kind)
    settings = get_settings()
    _, auth, session = _components(settings, contribution)
    if draft:
        session.save_draft(_load_draft(draft))
    session.save_last_tab()
    session.mark_auth_pending()
    auth.log_in()


@app.command()
def callback(
    kind: str = typer.Argument(..., help="Contribution type the login was started from"),
    code: str = typer.Argument(..., help="Authorization code from the redirect"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the restored draft here"),
) -> None:
    """Finish the login and restore the draft saved before it."""
    contribution = _contribution(kind)
    settings = get_settings()
    _, auth, session = _components(settings, contribution)

    async def runner() -> None:
        async with httpx.AsyncClient(timeout=30) as client:
            await auth.complete_login(client, code)

    try:
        asyncio.run(runner())
    except TransportError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc
    console.print("[green]Authenticated with HydroShare.")

    restored = session.resume(has_token=auth.token is not None)
    if restored is None:
        return
    if output:
        output.write_text(restored.model_dump_json(indent=2), encoding="utf-8")
        console.print(f"[green]Restored draft written to {output}")
    else:
        typer.echo(restored.model_dump_json(indent=2))


@app.command()
def logout() -> None:
    """Forget the stored HydroShare token."""
    settings = get_settings()
    store = SQLiteStore(settings.db_path)
    StoredTokenAuth(store, settings).log_out()
    console.print("Logged out.")


@draft_app.command("show")
def draft_show(kind: str = typer.Argument(..., help="Contribution type")) -> None:
    """Print the saved draft for a contribution type, if still fresh."""
    contribution = _contribution(kind)
    _, _, session = _components(get_settings(), contribution)
    restored = session.restore_draft()
    if restored is None:
        console.print("[yellow]No saved draft.")
        return
    typer.echo(restored.model_dump_json(indent=2))


@draft_app.command("clear")
def draft_clear(kind: str = typer.Argument(..., help="Contribution type")) -> None:
    """Discard the saved draft and any pending-login marker."""
    contribution = _contribution(kind)
    _, _, session = _components(get_settings(), contribution)
    session.clear_draft()
    session.clear_auth_pending()
    console.print("Draft cleared.")


@app.command()
def submit(
    kind: str = typer.Argument(..., help="Contribution type"),
    draft: Path = typer.Argument(..., help="Draft JSON file"),
    file: Optional[list[Path]] = typer.Option(None, "--file", "-f", help="File to attach"),
    thumbnail: Optional[Path] = typer.Option(None, "--thumbnail", help="Image uploaded to S3"),
) -> None:
    """Publish a draft to HydroShare."""
    contribution = _contribution(kind)
    settings = get_settings()
    submission = _load_draft(draft)

    paths = list(file or [])
    for path in [*paths, *([thumbnail] if thumbnail else [])]:
        if not path.is_file():
            raise typer.BadParameter(f"Not a file: {path}")
    if paths and not contribution.accepts_files:
        raise typer.BadParameter(f"{contribution.label} contributions do not take files.")
    if len(paths) > 1 and contribution.single_file:
        raise typer.BadParameter(f"{contribution.label} contributions take a single file.")
    if submission.docs_url.strip() and not contribution.accepts_docs_url:
        raise typer.BadParameter(f"{contribution.label} contributions do not take a documentation URL.")
    if paths:
        submission.attach_files(
            [UploadFile.from_path(path) for path in paths],
            presentation=contribution.key == "presentation",
        )
    if thumbnail:
        submission.thumbnail = UploadFile.from_path(thumbnail, sanitize=False)

    _, auth, session = _components(settings, contribution)

    async def runner() -> PipelineRun:
        async with httpx.AsyncClient(timeout=60) as client:
            repository = HydroShareClient(
                client,
                auth.token or "",
                base_url=settings.hydroshare_api_url,
                host=settings.hydroshare_host,
            )
            pipeline = SubmissionPipeline(
                repository,
                auth,
                session,
                contribution,
                uploader=S3Uploader.from_settings(settings) if submission.thumbnail else None,
            )
            return await pipeline.submit(submission)

    run = asyncio.run(runner())
    _print_run(run)
    if not run.succeeded:
        raise typer.Exit(code=1)
