"""Typer CLI definition for trackforge."""

import asyncio
import logging
import signal
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer

from .cache import Service
from .config import load_config
from .core import Workspace
from .generation.errors import (
    GenerationError,
    ScheduleNotFoundError,
    ServiceAPIError,
    ServiceAuthError,
)
from .generation.models import GenerationRequest, GenerationResult, ProgressEvent
from .scheduler import ScheduleDefinition
from .sync import parse_id_list
from .titles import TitleHints

app = typer.Typer(help="Bulk AI music generation: titles, synthesis, covers and deployment")
cache_app = typer.Typer(help="Inspect and clear the generation cache")
titles_app = typer.Typer(help="Manage the pre-generated title pool")
tracks_app = typer.Typer(help="Browse generated tracks")
schedule_app = typer.Typer(help="Manage recurring generation schedules")
app.add_typer(cache_app, name="cache")
app.add_typer(titles_app, name="titles")
app.add_typer(tracks_app, name="tracks")
app.add_typer(schedule_app, name="schedule")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_state: dict = {"debug": False, "config_path": None}


@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", help="Show verbose errors and debug logging"),
    config: Path | None = typer.Option(
        None, "-c", "--config", help="Config file (default ~/.config/trackforge/config.toml)"
    ),
) -> None:
    """Bulk AI music generation orchestrator."""
    _state["debug"] = debug
    _state["config_path"] = config
    if debug:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT)


def _workspace() -> Workspace:
    return Workspace(load_config(_state["config_path"]))


def _fail(label: str, message: str, error: Exception) -> None:
    if _state["debug"]:
        typer.echo(f"Debug - {label}: {error!r}", err=True)
    else:
        typer.echo(f"Error: {message}", err=True)
    raise typer.Exit(1) from None


@contextmanager
def cli_errors() -> Iterator[None]:
    """Map exceptions to one-line ``Error:`` messages and exit status 1."""
    try:
        yield
    except typer.Exit:
        raise
    except ServiceAuthError as e:
        _fail("Authentication error", str(e), e)
    except ScheduleNotFoundError as e:
        _fail("Schedule lookup error", str(e), e)
    except ServiceAPIError as e:
        _fail("Service API error", str(e), e)
    except GenerationError as e:
        _fail("Generation error", str(e), e)
    except ValueError as e:
        _fail("Invalid input", str(e), e)
    except KeyError as e:
        _fail("Lookup error", str(e).strip("'\""), e)
    except OSError as e:
        _fail("File system error", f"File system error: {e}", e)
    except Exception as e:
        _fail("Unexpected error", "An unexpected error occurred", e)


def format_duration(seconds: float) -> str:
    """Render seconds as m:ss."""
    total = int(round(seconds or 0))
    return f"{total // 60}:{total % 60:02d}"


def format_progress(event: ProgressEvent) -> str:
    line = (
        f"[batch {event.current_batch}/{event.total_batches}] "
        f"{event.phase.value:<8} track {event.current_track}/{event.total_tracks}"
    )
    if event.current_title:
        line += f"  {event.current_title}"
    return line


async def _run_generation(workspace: Workspace, request: GenerationRequest, quiet: bool) -> GenerationResult:
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_sigint() -> None:
        typer.echo("Cancelling after the current step...", err=True)
        cancel_event.set()

    loop.add_signal_handler(signal.SIGINT, handle_sigint)
    try:
        result = None
        async for event in workspace.orchestrator.stream(request, cancel_event=cancel_event):
            if not quiet:
                typer.echo(format_progress(event))
            result = event.result
        return result
    finally:
        loop.remove_signal_handler(signal.SIGINT)


@app.command()
def generate(
    count: int = typer.Argument(..., help="Number of tracks (positive, even)"),
    style: str = typer.Option(..., "-s", "--style", help="Musical style"),
    mood: str = typer.Option(..., "-m", "--mood", help="Mood"),
    keywords: str = typer.Option(
        "", "-k", "--keywords", help="Comma-separated theme keywords (generated if omitted)"
    ),
    vocals: bool = typer.Option(False, "--vocals", help="Allow vocals (default instrumental)"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Only print the final summary"),
    template: str | None = typer.Option(
        None, "--template", help="Prompt template using {mood}, {style}, {keywords}, {title}"
    ),
) -> None:
    """Generate tracks in batches of two."""
    with cli_errors():
        workspace = _workspace()
        request = GenerationRequest(
            track_count=count,
            style=style,
            mood=mood,
            keywords=keywords,
            instrumental=not vocals and workspace.config.audio.instrumental,
            prompt_template=template or None,
        )
        result = asyncio.run(_run_generation(workspace, request, quiet))

    for track in result.tracks:
        typer.echo(f"  {track.id}  {track.title}  {format_duration(track.duration)}")

    if result.cancelled:
        typer.echo(f"Cancelled: kept {len(result.tracks)} tracks ({result.batch_id})", err=True)
        raise typer.Exit(1)
    if result.error:
        typer.echo(f"Error: {result.error}", err=True)
        typer.echo(f"Kept {len(result.tracks)} tracks ({result.batch_id})", err=True)
        raise typer.Exit(1)
    typer.echo(f"Generated {len(result.tracks)} tracks ({result.batch_id})")


@app.command()
def usage(
    history: bool = typer.Option(False, "--history", help="Show every retained day"),
) -> None:
    """Show external service usage over the retained window."""
    with cli_errors():
        summary = _workspace().cache_store.usage_summary()

    def show(label: str, per_service: dict) -> None:
        typer.echo(label)
        for service in Service:
            counts = per_service[service]
            typer.echo(
                f"  {service.value:<6} calls={counts.calls} ok={counts.success} "
                f"failed={counts.failed} units={counts.units_produced}"
            )

    show(f"Today ({summary.today.date}):", summary.today.per_service)
    if history:
        for record in summary.history:
            show(f"{record.date}:", record.per_service)
    show("Total (retained window):", summary.totals)


@cache_app.command("list")
def cache_list(
    service: Service | None = typer.Option(None, "--service", help="Only this service"),
) -> None:
    """List cache entries."""
    with cli_errors():
        entries = _workspace().cache_store.list_entries(service)

    if not entries:
        typer.echo("Cache is empty")
        return
    for entry in entries:
        details = [entry.service.value, entry.key]
        if entry.job_id:
            details.append(f"job={entry.job_id}")
        if entry.status:
            details.append(f"status={entry.status}")
        details.append(entry.created_at.strftime("%Y-%m-%d %H:%M"))
        typer.echo("  ".join(details))


@cache_app.command("clear")
def cache_clear(
    service: Service | None = typer.Option(None, "--service", help="Only this service"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Do not ask for confirmation"),
) -> None:
    """Delete cache entries."""
    scope = service.value if service else "all"
    if not yes:
        typer.confirm(f"Clear {scope} cache entries?", abort=True)
    with cli_errors():
        removed = _workspace().cache_store.clear(service)
    typer.echo(f"Removed {removed} {scope} cache entries")


@titles_app.command("status")
def titles_status(
    category: str | None = typer.Option(None, "--category", help="Pool category (from config if omitted)"),
) -> None:
    """Show how many unused titles remain."""
    with cli_errors():
        workspace = _workspace()
        pool = workspace.title_pool.check_availability(
            category or workspace.config.generation.category
        )
    typer.echo(f"{pool.category}: {pool.available}/{pool.total} titles available")
    if pool.needs_replenish:
        typer.echo("Pool is running low; run 'trackforge titles replenish'")


@titles_app.command("replenish")
def titles_replenish(
    count: int = typer.Argument(20, help="Titles to request"),
    category: str | None = typer.Option(None, "--category", help="Pool category (from config if omitted)"),
    keywords: str = typer.Option("", "-k", "--keywords", help="Theme keywords"),
    style: str = typer.Option("", "-s", "--style", help="Style hint"),
    mood: str = typer.Option("", "-m", "--mood", help="Mood hint"),
) -> None:
    """Generate new titles into the pool."""
    with cli_errors():
        workspace = _workspace()
        category = category or workspace.config.generation.category
        added = asyncio.run(
            workspace.title_pool.replenish(
                category, count, TitleHints(keywords=keywords, style=style, mood=mood)
            )
        )
    typer.echo(f"Added {added} titles to {category}")


@titles_app.command("reset")
def titles_reset(
    category: str | None = typer.Option(None, "--category", help="Pool category (from config if omitted)"),
) -> None:
    """Mark every title in the pool unused again."""
    with cli_errors():
        workspace = _workspace()
        category = category or workspace.config.generation.category
        reset = workspace.title_pool.reset_used(category)
    typer.echo(f"Reset {reset} titles in {category}")


@tracks_app.command("list")
def tracks_list(
    deployed: bool | None = typer.Option(
        None, "--deployed/--pending", help="Only deployed or only undeployed tracks"
    ),
    batch: str | None = typer.Option(None, "--batch", help="Only tracks from this batch"),
) -> None:
    """List generated tracks."""
    with cli_errors():
        records = _workspace().tracks.list_tracks(deployed=deployed, batch_id=batch)

    if not records:
        typer.echo("No tracks")
        return
    for record in records:
        marker = "✓" if record.deployed else " "
        typer.echo(
            f"{marker} {record.id}  {record.title}  {format_duration(record.duration)}  "
            f"{record.style}/{record.mood}"
        )


@tracks_app.command("delete")
def tracks_delete(track_id: str = typer.Argument(..., help="Track id")) -> None:
    """Delete a generated track record."""
    with cli_errors():
        deleted = _workspace().tracks.delete(track_id)
    if not deleted:
        typer.echo(f"Error: Track not found: {track_id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Deleted {track_id}")


def format_schedule(definition: ScheduleDefinition) -> str:
    state = "active" if definition.active else "inactive"
    deploy = ", auto-deploy" if definition.auto_deploy else ""
    prompt = ", custom prompt" if definition.template else ""
    return (
        f"{definition.id}  {definition.name}  {definition.frequency.value}"
        f"/{definition.interval_days}d at {definition.run_time}  "
        f"{definition.track_count} x {definition.style}/{definition.mood}{deploy}{prompt}  "
        f"next {definition.next_run_at:%Y-%m-%d %H:%M} ({state})"
    )


@schedule_app.command("add")
def schedule_add(
    name: str = typer.Argument(..., help="Schedule name"),
    frequency: str = typer.Option("daily", "-f", "--frequency", help="daily, weekly, monthly or once"),
    run_time: str = typer.Option(..., "-t", "--time", help="Time of day, HH:MM"),
    count: int = typer.Option(2, "-n", "--count", help="Tracks per run (positive, even)"),
    style: str = typer.Option(..., "-s", "--style", help="Musical style"),
    mood: str = typer.Option(..., "-m", "--mood", help="Mood"),
    auto_deploy: bool = typer.Option(False, "--auto-deploy", help="Deploy tracks after each run"),
    interval_days: int | None = typer.Option(
        None, "--interval-days", help="Days between runs (default from frequency)"
    ),
    template: str | None = typer.Option(
        None, "--template", help="Prompt template using {mood}, {style}, {keywords}, {title}"
    ),
) -> None:
    """Create a schedule."""
    with cli_errors():
        definition = _workspace().schedule_admin.create(
            name,
            frequency,
            run_time,
            count,
            style,
            mood,
            auto_deploy=auto_deploy,
            interval_days=interval_days,
            template=template,
        )
    typer.echo(f"Created {format_schedule(definition)}")


@schedule_app.command("list")
def schedule_list(
    active_only: bool = typer.Option(False, "--active", help="Only active schedules"),
) -> None:
    """List schedules."""
    with cli_errors():
        definitions = _workspace().schedules.list_schedules(active_only=active_only)
    if not definitions:
        typer.echo("No schedules")
        return
    for definition in definitions:
        typer.echo(format_schedule(definition))


@schedule_app.command("update")
def schedule_update(
    schedule_id: str = typer.Argument(..., help="Schedule id"),
    name: str | None = typer.Option(None, "--name"),
    frequency: str | None = typer.Option(None, "-f", "--frequency"),
    run_time: str | None = typer.Option(None, "-t", "--time"),
    count: int | None = typer.Option(None, "-n", "--count"),
    style: str | None = typer.Option(None, "-s", "--style"),
    mood: str | None = typer.Option(None, "-m", "--mood"),
    auto_deploy: bool | None = typer.Option(None, "--auto-deploy/--no-auto-deploy"),
    active: bool | None = typer.Option(None, "--active/--inactive"),
    interval_days: int | None = typer.Option(None, "--interval-days"),
    template: str | None = typer.Option(None, "--template", help="Prompt template (\"\" clears it)"),
) -> None:
    """Edit a schedule."""
    changes = {
        "name": name,
        "frequency": frequency,
        "run_time": run_time,
        "track_count": count,
        "style": style,
        "mood": mood,
        "auto_deploy": auto_deploy,
        "active": active,
        "interval_days": interval_days,
        "template": template,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if "template" in changes:
        changes["template"] = changes["template"] or None
    if not changes:
        typer.echo("Error: Nothing to update", err=True)
        raise typer.Exit(1)

    with cli_errors():
        definition = _workspace().schedule_admin.update(schedule_id, **changes)
    typer.echo(f"Updated {format_schedule(definition)}")


@schedule_app.command("delete")
def schedule_delete(schedule_id: str = typer.Argument(..., help="Schedule id")) -> None:
    """Delete a schedule."""
    with cli_errors():
        deleted = _workspace().schedule_admin.delete(schedule_id)
    if not deleted:
        typer.echo(f"Error: Schedule not found: {schedule_id}", err=True)
        raise typer.Exit(1)
    typer.echo(f"Deleted {schedule_id}")


@schedule_app.command("run")
def schedule_run(schedule_id: str = typer.Argument(..., help="Schedule id")) -> None:
    """Run a schedule now, regardless of when it is due."""
    with cli_errors():
        run = asyncio.run(_workspace().scheduler.run_now(schedule_id))

    generation = run.generation
    typer.echo(f"Generated {len(generation.tracks)} tracks ({generation.batch_id})")
    for outcome in run.deployments:
        typer.echo(f"  {outcome.track_id}: {outcome.status.value}")
    if generation.error:
        typer.echo(f"Error: {generation.error}", err=True)
        raise typer.Exit(1)


@app.command("import")
def import_jobs(
    job_ids: list[str] = typer.Argument(..., help="Synthesis job ids (comma or space separated)"),
) -> None:
    """Import finished synthesis jobs that were never cached."""
    ids = parse_id_list(" ".join(job_ids))
    with cli_errors():
        result = asyncio.run(_workspace().importer.import_by_external_id(ids))

    for record in result.imported:
        typer.echo(f"  {record.id}  {record.title}  {format_duration(record.duration)}")
    typer.echo(
        f"Imported {len(result.imported)} tracks; "
        f"skipped {len(result.skipped_known)} known, "
        f"{len(result.skipped_unfinished)} unfinished"
    )
    if result.failed:
        typer.echo(f"Error: Could not fetch {', '.join(result.failed)}", err=True)
        raise typer.Exit(1)


@app.command()
def deploy(
    track_ids: list[str] = typer.Argument(..., help="Generated track ids"),
    category: str | None = typer.Option(None, "--category", help="Catalog category (default: track style)"),
) -> None:
    """Promote generated tracks to the catalog."""
    with cli_errors():
        outcomes = asyncio.run(_workspace().deployer.deploy(track_ids, category=category))

    failed = False
    for outcome in outcomes:
        line = f"  {outcome.track_id}: {outcome.status.value}"
        if outcome.catalog_track_id:
            line += f" ({outcome.catalog_track_id})"
        if outcome.error:
            line += f" - {outcome.error}"
            failed = True
        typer.echo(line)
    if failed:
        raise typer.Exit(1)


@app.command()
def credits() -> None:
    """Show remaining audio-synthesis credits."""
    with cli_errors():
        info = asyncio.run(_workspace().synthesizer.credits())
    typer.echo(
        f"Credits remaining: {info.remaining} "
        f"(about {info.estimated_tracks_available} tracks)"
    )


@app.command()
def jobs(
    page: int = typer.Option(1, "--page", min=1, help="Page number"),
    limit: int = typer.Option(20, "-n", "--limit", min=1, help="Jobs per page"),
) -> None:
    """List recent synthesis jobs known to the audio service."""
    with cli_errors():
        records = asyncio.run(_workspace().synthesizer.list_records(page=page, limit=limit))

    if not records.records:
        typer.echo("No jobs")
        return
    for record in records.records:
        created = record.created_at or "-"
        typer.echo(f"  {record.job_id}  {record.status}  {created}  {len(record.tracks)} tracks")
    typer.echo(f"Page {records.page}: {len(records.records)} of {records.total} jobs")


@app.command()
def worker() -> None:
    """Run the scheduler worker in the foreground."""
    if not _state["debug"]:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    with cli_errors():
        scheduler_worker = _workspace().worker()
        try:
            asyncio.run(scheduler_worker.start())
        except KeyboardInterrupt:
            typer.echo("Worker stopped")
        except RuntimeError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from None
