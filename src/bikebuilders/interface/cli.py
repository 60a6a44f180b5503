"""
BikeBuilders CLI entry point.

Typer application with Rich output. Command groups:
- top level: init, export, import, reminders
- vehicles: search
- services: queue
- sync: signin, signout, status, upload, download, auto
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from bikebuilders import __version__
from bikebuilders.application.container import Container
from bikebuilders.application.sync_service import RemoteSyncService
from bikebuilders.domain.errors import BikeBuildersError, StoreUnavailable
from bikebuilders.infrastructure.logging_config import setup_logging

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    name="bikebuilders",
    help="Garage records: local store, export files and remote backup.",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)
vehicles_app = typer.Typer(help="Look up registered vehicles.", no_args_is_help=True)
services_app = typer.Typer(help="Service jobs.", no_args_is_help=True)
sync_app = typer.Typer(help="Remote backup.", no_args_is_help=True)

app.add_typer(vehicles_app, name="vehicles")
app.add_typer(services_app, name="services")
app.add_typer(sync_app, name="sync")

EXIT_ERROR = 1
EXIT_STORE_UNAVAILABLE = 2


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"bikebuilders {__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    config_dir: Path = typer.Option(
        Path("config"), "--config-dir", help="Directory holding bikebuilders.json."
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging."),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Write logs to file."),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show the version and exit.",
    ),
):
    """BikeBuilders garage records."""
    container = Container(config_dir)
    try:
        settings = container.settings
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(EXIT_ERROR)

    setup_logging(logging.DEBUG if verbose else logging.WARNING, log_file or settings.log_file)
    ctx.obj = container
    ctx.call_on_close(container.close)


def _container(ctx: typer.Context) -> Container:
    return ctx.obj


def _fail(error: Exception) -> None:
    """Report an error and exit non-zero."""
    if isinstance(error, StoreUnavailable):
        console.print(f"[red]Local store unavailable:[/red] {error}")
        raise typer.Exit(EXIT_STORE_UNAVAILABLE)
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(EXIT_ERROR)


def _money(amount: Optional[float]) -> str:
    return f"₹{amount:,.2f}" if amount is not None else "-"


# ============================================================================
# Top-level commands
# ============================================================================

@app.command()
def init(ctx: typer.Context):
    """Create the local store and a default settings file."""
    container = _container(ctx)
    try:
        store = container.store
    except StoreUnavailable as e:
        _fail(e)

    settings_path = container.config_dir / "bikebuilders.json"
    if not settings_path.exists():
        container.settings_repository.save_settings(container.settings)
        console.print(f"Wrote default settings to [cyan]{settings_path}[/cyan]")
    console.print(f"[green]Store ready:[/green] {store.db_path}")


@app.command("export")
def export_cmd(ctx: typer.Context):
    """Write the whole dataset to a timestamped JSON file."""
    try:
        path = _container(ctx).export_service.export_snapshot()
    except BikeBuildersError as e:
        _fail(e)
    console.print(f"[green]Exported to[/green] {path}")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="Export file to restore."),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    """Replace the local dataset with an export file."""
    if not yes and not typer.confirm("This replaces every local record. Continue?"):
        console.print("Import cancelled")
        raise typer.Exit()

    service = _container(ctx).export_service
    try:
        service.import_file(path)
    except BikeBuildersError as e:
        _fail(e)

    report = service.last_restore
    console.print(
        f"[green]Imported[/green] {report.customers} customers, {report.vehicles} vehicles, "
        f"{report.services} services, {report.service_parts} parts, "
        f"{report.common_services} catalog entries"
    )
    if report.total_skipped:
        console.print(f"[yellow]Skipped orphan rows:[/yellow] {report.skipped}")


@app.command()
def reminders(
    ctx: typer.Context,
    as_of: Optional[datetime] = typer.Option(
        None, "--as-of", formats=["%Y-%m-%d"], help="Reference date (default: today)."
    ),
):
    """List vehicles whose service reminder is due."""
    try:
        due = _container(ctx).workshop_service.due_reminders(as_of)
    except BikeBuildersError as e:
        _fail(e)

    if not due:
        console.print("No reminders due")
        return
    table = Table(title="Service reminders due")
    table.add_column("Reg number", style="cyan")
    table.add_column("Owner")
    table.add_column("Phone")
    table.add_column("Last service")
    table.add_column("Days", justify="right")
    for candidate in due:
        v = candidate.vehicle
        table.add_row(
            v.reg_number, v.owner_name or "", v.owner_phone or "",
            (v.last_service_date or "")[:10], str(candidate.days_since_service),
        )
    console.print(table)


# ============================================================================
# vehicles / services
# ============================================================================

@vehicles_app.command("search")
def vehicles_search(
    ctx: typer.Context,
    fragment: str = typer.Argument(..., help="Part of a registration number."),
):
    """Find vehicles by registration number (case-insensitive)."""
    try:
        found = _container(ctx).repository.search_vehicles(fragment)
    except BikeBuildersError as e:
        _fail(e)

    table = Table(title=f"Vehicles matching '{fragment}'")
    table.add_column("Reg number", style="cyan")
    table.add_column("Vehicle")
    table.add_column("Owner")
    table.add_column("Phone")
    table.add_column("Last reading", justify="right")
    for v in found:
        table.add_row(
            v.reg_number, v.name or "", v.owner_name or "", v.owner_phone or "",
            str(v.last_reading) if v.last_reading is not None else "",
        )
    console.print(table)


@services_app.command("queue")
def services_queue(ctx: typer.Context):
    """Show open service jobs, newest first."""
    try:
        queue = _container(ctx).workshop_service.in_progress_queue()
    except BikeBuildersError as e:
        _fail(e)

    table = Table(title="In progress")
    table.add_column("ID", justify="right")
    table.add_column("Reg number", style="cyan")
    table.add_column("Owner")
    table.add_column("Total", justify="right")
    table.add_column("Balance", justify="right")
    table.add_column("Payment")
    for s in queue:
        table.add_row(
            str(s.id), s.reg_number, s.owner_name or "",
            _money(s.total_amount), _money(s.outstanding_balance), s.payment_status.value,
        )
    console.print(table)


# ============================================================================
# sync
# ============================================================================

def _signed_in(ctx: typer.Context) -> RemoteSyncService:
    sync = _container(ctx).sync_service
    if sync.restore_session():
        return sync
    result = sync.sign_in()
    if not result.ok:
        console.print(f"[red]Sign-in failed:[/red] {result.error.message}")
        raise typer.Exit(EXIT_ERROR)
    return sync


@sync_app.command("signin")
def sync_signin(ctx: typer.Context):
    """Sign in to remote storage (cached when a token passphrase is set)."""
    sync = _signed_in(ctx)
    if sync.token_cache is None or not sync.token_cache.enabled:
        console.print("[yellow]No token passphrase configured; the session is not kept.[/yellow]")
    console.print("[green]Signed in[/green]")


@sync_app.command("signout")
def sync_signout(ctx: typer.Context):
    """Forget the remote session."""
    _container(ctx).sync_service.sign_out()
    console.print("Signed out")


@sync_app.command("status")
def sync_status(ctx: typer.Context):
    """Show session, auto-sync flag and last sync time."""
    sync = _container(ctx).sync_service
    signed_in = sync.restore_session()
    last = sync.get_last_sync_time()

    table = Table(show_header=False)
    table.add_row("Signed in", "[green]yes[/green]" if signed_in else "[dim]no[/dim]")
    table.add_row("Auto-sync", "on" if sync.is_auto_sync_enabled() else "off")
    table.add_row("Last sync", last.isoformat() if last else "never")
    table.add_row("Remote folder", sync.settings.folder_name)
    console.print(table)


@sync_app.command("upload")
def sync_upload(ctx: typer.Context):
    """Upload the dataset, replacing the remote backup."""
    result = _signed_in(ctx).upload_backup()
    if not result.ok:
        console.print(f"[red]Upload failed[/red] ({result.error})")
        raise typer.Exit(EXIT_ERROR)
    console.print(f"[green]Backup uploaded[/green] {result.metadata['counts']}")


@sync_app.command("download")
def sync_download(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
):
    """Replace the local dataset with the remote backup."""
    if not yes and not typer.confirm("This replaces every local record. Continue?"):
        raise typer.Exit()
    result = _signed_in(ctx).download_backup()
    if not result.ok:
        console.print(f"[red]Download failed[/red] ({result.error})")
        raise typer.Exit(EXIT_ERROR)
    report = result.value
    console.print(
        f"[green]Backup restored[/green] {report.customers} customers, "
        f"{report.vehicles} vehicles, {report.services} services"
    )


@sync_app.command("auto")
def sync_auto(
    ctx: typer.Context,
    enable: Optional[bool] = typer.Option(None, "--enable/--disable", help="Turn auto-sync on or off."),
):
    """Turn background upload after each change on or off."""
    if enable is None:
        console.print("[red]Error:[/red] pass --enable or --disable")
        raise typer.Exit(EXIT_ERROR)
    _container(ctx).sync_service.set_auto_sync_enabled(enable)
    console.print(f"Auto-sync {'enabled' if enable else 'disabled'}")


def main() -> int:
    """Main entry point for the BikeBuilders CLI."""
    try:
        app()
    except SystemExit as e:
        if e.code is None:
            return 0
        return e.code if isinstance(e.code, int) else EXIT_ERROR
    return 0
