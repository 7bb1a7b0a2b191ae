import signal
import threading
import typer
import yaml
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from streamrec.config.loader import load_config
from streamrec.config.models import AppConfig
from streamrec.domain.errors import PersistenceReadError
from streamrec.domain.events import JobCompleted, JobFailed, JobsRecovered
from streamrec.domain.models import AccessLevel, JobStatus, RecordingJob
from streamrec.infrastructure.catalog import RecordingCatalog
from streamrec.infrastructure.event_bus import EventBus
from streamrec.infrastructure.hls import HlsTranscodeAdapter
from streamrec.infrastructure.logging import setup_logging
from streamrec.infrastructure.persistence import JsonScheduleStore
from streamrec.infrastructure.vlc import VlcCaptureAdapter
from streamrec.pipeline.scheduler import RecordingScheduler

app = typer.Typer(help="streamrec - scheduled live-stream capture and HLS publishing")

CONFIG_OPTION = typer.Option(Path("conf/streamrec.yaml"), "--config", "-c", help="Path to YAML config")

STATUS_STYLES = {
    JobStatus.PENDING: "cyan",
    JobStatus.CAPTURING: "yellow",
    JobStatus.TRANSCODING: "magenta",
    JobStatus.COMPLETED: "green",
    JobStatus.FAILED: "red",
}


def _load(config_path: Path) -> AppConfig:
    try:
        return load_config(config_path)
    except (ValueError, OSError, yaml.YAMLError) as e:
        typer.secho(f"Invalid config {config_path}: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def _read_jobs(config: AppConfig):
    try:
        return JsonScheduleStore(config.scheduler.schedules_path).load()
    except PersistenceReadError as e:
        typer.secho(f"Error: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)


def build_scheduler(config: AppConfig, bus: EventBus) -> RecordingScheduler:
    catalog = RecordingCatalog(config.catalog.database_path) if config.catalog.enabled else None
    return RecordingScheduler(
        config=config.scheduler,
        store=JsonScheduleStore(config.scheduler.schedules_path),
        capture=VlcCaptureAdapter(config.capture),
        transcoder=HlsTranscodeAdapter(config.transcode),
        event_bus=bus,
        catalog=catalog,
    )


def render_jobs(jobs) -> Table:
    table = Table(title="Scheduled recordings")
    table.add_column("ID", no_wrap=True)
    table.add_column("Name")
    table.add_column("Start (UTC)")
    table.add_column("Length", justify="right")
    table.add_column("Status")
    table.add_column("Error", overflow="fold")
    for job in jobs:
        style = STATUS_STYLES.get(job.status, "")
        table.add_row(
            job.id,
            escape(job.name),
            job.start_time.strftime("%Y-%m-%d %H:%M:%S"),
            f"{job.duration_seconds}s",
            f"[{style}]{job.status.value}[/{style}]",
            escape(job.error_detail or ""),
        )
    return table


@app.command()
def serve(
    config_path: Path = CONFIG_OPTION,
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Run the scheduler until interrupted."""
    config = _load(config_path)
    if debug:
        config.logging.debug = True
    logger = setup_logging(config.logging.log_dir, debug=config.logging.debug)
    logger.info(f"streamrec started: schedules={config.scheduler.schedules_path}, recordings={config.capture.recordings_dir}")

    bus = EventBus()
    bus.subscribe(JobsRecovered, lambda e: logger.info(f"Recovered {len(e.rearmed)} pending, {len(e.missed)} missed"))
    bus.subscribe(JobCompleted, lambda e: logger.info(f"Published {e.job.name}"))
    bus.subscribe(JobFailed, lambda e: logger.error(f"{e.job.name} failed: {e.error_message}"))

    scheduler = build_scheduler(config, bus)
    try:
        scheduler.start()
    except PersistenceReadError as e:
        logger.error(f"Refusing to start with a corrupt schedules file: {e}")
        if scheduler.catalog is not None:
            scheduler.catalog.close()
        raise typer.Exit(code=1)

    stop = threading.Event()
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    try:
        while not stop.wait(1.0):
            pass
    except KeyboardInterrupt:
        typer.echo("\nInterrupted by user")
    finally:
        scheduler.shutdown()
        if scheduler.catalog is not None:
            scheduler.catalog.close()


@app.command()
def jobs(
    config_path: Path = CONFIG_OPTION,
    status: Optional[JobStatus] = typer.Option(None, "--status", "-s", help="Only show jobs in this state"),
):
    """List the persisted scheduled recordings."""
    config = _load(config_path)
    records = _read_jobs(config)
    if status is not None:
        records = [job for job in records if job.status is status]
    Console().print(render_jobs(records))


@app.command()
def show(job_id: str = typer.Argument(..., help="Job id"), config_path: Path = CONFIG_OPTION):
    """Show a single scheduled recording."""
    config = _load(config_path)
    job: Optional[RecordingJob] = next((j for j in _read_jobs(config) if j.id == job_id), None)
    if job is None:
        typer.secho(f"Recording {job_id} not found", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    Console().print_json(job.model_dump_json())


@app.command()
def catalog(config_path: Path = CONFIG_OPTION):
    """List published recordings in the catalog."""
    config = _load(config_path)
    registry = RecordingCatalog(config.catalog.database_path)
    try:
        entries = registry.find_all()
    finally:
        registry.close()
    table = Table(title="Catalog")
    for column in ("ID", "Folder", "Access", "Created", "Path"):
        table.add_column(column)
    for entry in entries:
        table.add_row(str(entry.id), escape(entry.folder_name), entry.access_level.value, entry.created_at, escape(entry.file_path))
    Console().print(table)


@app.command("set-access")
def set_access(
    folder_name: str = typer.Argument(..., help="Catalog folder name"),
    level: AccessLevel = typer.Argument(..., help="public, authenticated or admin"),
    config_path: Path = CONFIG_OPTION,
):
    """Change who may view a published recording."""
    config = _load(config_path)
    registry = RecordingCatalog(config.catalog.database_path)
    try:
        updated = registry.update_access_level(folder_name, level)
    finally:
        registry.close()
    if not updated:
        typer.secho(f"Recording {folder_name} not found", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(f"{folder_name} -> {level.value}")


if __name__ == "__main__":
    app()
