"""shiptrack CLI: shipment status imports and tracking lookups.

Usage:
    shiptrack init-db                     Create the database tables
    shiptrack import csv export.csv       Import shipments with full history
    shiptrack import status export.csv    Re-import histories by tracking id
    shiptrack import updates updates.json Append status events in bulk
    shiptrack import legacy dump.json     Import a legacy JSON export
    shiptrack track TRK-001               Look up a shipment by tracking code
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich.console import Console
from rich.markup import escape

from shiptrack.cli.config import ShipTrackConfig, load_config_or_default
from shiptrack.cli.output import (
    format_bulk_report,
    format_dashboard,
    format_import_report,
    format_shipment_detail,
    format_shipment_table,
    format_status_options,
)
from shiptrack.db.connection import configure_engine, get_db_context, init_db
from shiptrack.errors.domain import DomainError
from shiptrack.errors.formatter import ShipTrackError, format_error
from shiptrack.services.reconciler import MergeMode

_log = logging.getLogger(__name__)

app = typer.Typer(
    name="shiptrack",
    help="Shipment status imports, reconciliation and tracking",
    no_args_is_help=True,
)
import_app = typer.Typer(help="Import shipments and status histories")
shipment_app = typer.Typer(help="Inspect and maintain shipments")
customer_app = typer.Typer(help="Manage customers")
config_app = typer.Typer(help="Configuration management")

app.add_typer(import_app, name="import")
app.add_typer(shipment_app, name="shipment")
app.add_typer(customer_app, name="customer")
app.add_typer(config_app, name="config")

console = Console()

# --- Global state ---
_config: ShipTrackConfig = ShipTrackConfig()


def _configure_logging(cfg: ShipTrackConfig, verbose: bool) -> None:
    level = logging.DEBUG if verbose else getattr(logging, cfg.logging.level.upper())
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if cfg.logging.file:
        log_path = Path(cfg.logging.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))
    logging.basicConfig(
        level=level,
        format=cfg.logging.format,
        handlers=handlers,
        force=True,
    )


def _emit(output: str) -> None:
    """Write formatter output (already rendered) to stdout."""
    typer.echo(output.rstrip("\n"))


def _fail(error: ShipTrackError) -> None:
    """Print a coded error and exit with status 1."""
    console.print(f"[red]{escape(format_error(error))}[/red]")
    raise typer.Exit(code=1)


@app.callback()
def main(
    config: Optional[str] = typer.Option(
        None, "--config", help="Path to shiptrack.yaml config file"
    ),
    db: Optional[str] = typer.Option(
        None, "--db", help="Database URL (overrides config and DATABASE_URL)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """shiptrack: shipment status reconciliation."""
    global _config
    try:
        _config = load_config_or_default(config)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Config loading error:[/red] {escape(str(e))}")
        raise typer.Exit(code=1)
    _configure_logging(_config, verbose)
    configure_engine(db or _config.database.url)


@app.command("init-db")
def init_db_command():
    """Create database tables (safe to run repeatedly)."""
    init_db()
    console.print("[green]Database ready.[/green]")


# --- Import commands ---


def _orchestrator(db, **overrides):
    from shiptrack.services.import_service import ImportOrchestrator

    options = _config.imports.to_options()
    for name, value in overrides.items():
        if value is not None:
            setattr(options, name, value)
    return ImportOrchestrator(db, options)


def _read_csv_or_fail(path: Path) -> list[dict]:
    from shiptrack.services.csv_source import read_shipment_csv

    rows = read_shipment_csv(path)
    if not rows:
        _fail(ShipTrackError.from_code("E-1002", source=str(path)))
    return rows


@import_app.command("csv")
def import_csv(
    path: Path = typer.Argument(..., help="Shipment CSV export"),
    mode: Optional[MergeMode] = typer.Option(
        None, "--mode", help="History merge mode (default from config: replace_all)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Import shipments, customers and their full status histories."""
    try:
        rows = _read_csv_or_fail(path)
        with get_db_context() as db:
            report = _orchestrator(db, csv_merge_mode=mode).import_csv_rows(rows)
            _emit(format_import_report(report, "CSV import", as_json=as_json))
    except DomainError as e:
        _fail(ShipTrackError.from_exception(e))


@import_app.command("status")
def import_status(
    path: Path = typer.Argument(..., help="CSV export with tracking ids and status updates"),
    mode: Optional[MergeMode] = typer.Option(
        None, "--mode", help="History merge mode (default from config: append)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Import status histories for existing shipments, matched by tracking id."""
    try:
        rows = _read_csv_or_fail(path)
        with get_db_context() as db:
            report = _orchestrator(db, status_merge_mode=mode).import_status_rows(rows)
            _emit(format_import_report(report, "Status import", as_json=as_json))
    except DomainError as e:
        _fail(ShipTrackError.from_exception(e))


@import_app.command("updates")
def import_updates(
    path: Path = typer.Argument(..., help='JSON list (or {"updates": [...]}) of update requests'),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Append one status event per request; unknown shipments are skipped."""
    from shiptrack.errors.domain import ImportSourceError
    from shiptrack.services.legacy_export import load_json_document

    try:
        document = load_json_document(path)
        updates = document.get("updates") if isinstance(document, dict) else document
        if not isinstance(updates, list):
            raise ImportSourceError("Expected a JSON array of updates")
        with get_db_context() as db:
            report = _orchestrator(db).apply_bulk_updates(updates)
            _emit(format_bulk_report(report, as_json=as_json))
    except DomainError as e:
        _fail(ShipTrackError.from_exception(e))


@import_app.command("legacy")
def import_legacy(
    path: Path = typer.Argument(..., help="Legacy JSON export (nested or flattened)"),
    suffix: Optional[bool] = typer.Option(
        None,
        "--suffix/--no-suffix",
        help="Append -<id> to legacy tracking codes (default from config: on)",
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Import a legacy export, keeping its ids and replacing histories."""
    from shiptrack.services.legacy_export import flatten_legacy_export, load_json_document

    try:
        export = flatten_legacy_export(load_json_document(path))
        with get_db_context() as db:
            report = _orchestrator(
                db, suffix_legacy_tracking_ids=suffix
            ).import_legacy_export(export)
            _emit(format_import_report(report, "Legacy import", as_json=as_json))
    except DomainError as e:
        _fail(ShipTrackError.from_exception(e))


# --- Lookup commands ---


@app.command()
def track(
    tracking_id: str = typer.Argument(..., help="Tracking code, any common spelling"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show a published shipment and its history by tracking code."""
    from shiptrack.services.tracking_resolver import TrackingResolver

    with get_db_context() as db:
        match = TrackingResolver(db).resolve(tracking_id)
        if match is None:
            _fail(ShipTrackError.from_code("E-3001", key=tracking_id))
        _emit(
            format_shipment_detail(
                match.shipment, matched_by=match.strategy.value, as_json=as_json
            )
        )


@app.command("status-options")
def status_options(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List the shipment status values and their labels."""
    from shiptrack.services.status_constants import get_status_options

    _emit(format_status_options(get_status_options(), as_json=as_json))


@app.command()
def dashboard(
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show shipment counts and the most recent orders."""
    from shiptrack.services.shipment_service import ShipmentService

    with get_db_context() as db:
        _emit(format_dashboard(ShipmentService(db).dashboard_stats(), as_json=as_json))


# --- Shipment commands ---


@shipment_app.command("show")
def shipment_show(
    shipment_id: int = typer.Argument(..., help="Shipment id"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Show a shipment (published or not) with its history."""
    from shiptrack.services.shipment_service import ShipmentService

    with get_db_context() as db:
        try:
            shipment = ShipmentService(db).get_shipment(shipment_id)
        except DomainError as e:
            _fail(ShipTrackError.from_exception(e))
        _emit(format_shipment_detail(shipment, as_json=as_json))


@shipment_app.command("delete")
def shipment_delete(
    shipment_id: int = typer.Argument(..., help="Shipment id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete a shipment and all of its status updates."""
    from shiptrack.services.shipment_service import ShipmentService

    if not yes:
        typer.confirm(f"Delete shipment {shipment_id} and its history?", abort=True)
    with get_db_context() as db:
        try:
            removed = ShipmentService(db).delete_shipment(shipment_id)
        except DomainError as e:
            _fail(ShipTrackError.from_exception(e))
    console.print(
        f"[green]Deleted shipment {shipment_id}[/green] ({removed} status update(s))"
    )


@shipment_app.command("add-status")
def shipment_add_status(
    shipment_id: int = typer.Argument(..., help="Shipment id"),
    status: Optional[str] = typer.Option(None, "--status", "-s", help="New status"),
    details: Optional[str] = typer.Option(None, "--details", "-d", help="Event details"),
    location: Optional[str] = typer.Option(None, "--location", "-l", help="Event location"),
    timestamp: Optional[str] = typer.Option(
        None, "--timestamp", "-t", help="Event time (default: now)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """Append one status event to a shipment."""
    with get_db_context() as db:
        try:
            outcome = _orchestrator(db).append_status(
                shipment_id, status, details, location, timestamp
            )
        except DomainError as e:
            _fail(ShipTrackError.from_exception(e))
        if outcome.skipped_duplicates:
            console.print("[yellow]Identical event already recorded; nothing added.[/yellow]")
        _emit(format_shipment_detail(outcome.shipment, as_json=as_json))


@shipment_app.command("delete-status")
def shipment_delete_status(
    status_update_id: int = typer.Argument(..., help="Status update id"),
):
    """Delete one status event and re-derive the shipment status."""
    from shiptrack.services.shipment_service import ShipmentService

    with get_db_context() as db:
        try:
            shipment = ShipmentService(db).delete_status_update(status_update_id)
        except DomainError as e:
            _fail(ShipTrackError.from_exception(e))
        console.print(
            f"[green]Deleted status update {status_update_id}.[/green] "
            f"Shipment {shipment.id} is now {shipment.order_status}."
        )


@shipment_app.command("search")
def shipment_search(
    pattern: Optional[str] = typer.Argument(None, help="Tracking code substring"),
    as_json: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """List published shipments by tracking code (all when no pattern)."""
    from shiptrack.services.tracking_resolver import TrackingResolver

    with get_db_context() as db:
        resolver = TrackingResolver(db)
        shipments = resolver.search(pattern) if pattern else resolver.list_tracking_ids()
        _emit(format_shipment_table(shipments, "Tracking ids", as_json=as_json))


@shipment_app.command("publish-all")
def shipment_publish_all():
    """Publish every unpublished shipment."""
    from shiptrack.services.shipment_service import ShipmentService

    with get_db_context() as db:
        count = ShipmentService(db).publish_all()
    console.print(f"[green]Published {count} shipment(s).[/green]")


# --- Customer commands ---


def _print_customers(customers, title: str) -> None:
    from rich.table import Table

    if not customers:
        console.print("No customers found.")
        return
    table = Table(title=title)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Phone")
    table.add_column("Address")
    table.add_column("Shipments", justify="right")
    for customer in customers:
        table.add_row(
            str(customer.id),
            escape(customer.name),
            escape(customer.phone),
            escape(customer.address),
            str(len(customer.shipments)),
        )
    console.print(table)


@customer_app.command("list")
def customer_list():
    """List published customers."""
    from shiptrack.services.customer_service import CustomerService

    with get_db_context() as db:
        _print_customers(CustomerService(db).list_customers(), "Customers")


@customer_app.command("search")
def customer_search(
    query: str = typer.Argument(..., help="Name or phone substring"),
):
    """Find published customers by name (any case) or phone."""
    from shiptrack.services.customer_service import CustomerService

    with get_db_context() as db:
        try:
            customers = CustomerService(db).search_customers(query)
        except DomainError as e:
            _fail(ShipTrackError.from_exception(e))
        _print_customers(customers, f"Customers matching '{escape(query)}'")


@customer_app.command("add")
def customer_add(
    name: str = typer.Option(..., "--name", "-n", help="Customer name"),
    address: str = typer.Option(..., "--address", "-a", help="Address"),
    phone: str = typer.Option(..., "--phone", "-p", help="Phone number"),
):
    """Add a customer."""
    from shiptrack.services.customer_service import CustomerService

    with get_db_context() as db:
        try:
            customer = CustomerService(db).create_customer(name, address, phone)
        except DomainError as e:
            _fail(ShipTrackError.from_exception(e))
        console.print(f"[green]Created customer {customer.id}[/green] ({escape(name)})")


@customer_app.command("update")
def customer_update(
    customer_id: int = typer.Argument(..., help="Customer id"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="New name"),
    address: Optional[str] = typer.Option(None, "--address", "-a", help="New address"),
    phone: Optional[str] = typer.Option(None, "--phone", "-p", help="New phone number"),
    published: Optional[bool] = typer.Option(
        None, "--published/--unpublished", help="Change visibility"
    ),
):
    """Update the given fields of a customer."""
    from shiptrack.services.customer_service import CustomerService

    with get_db_context() as db:
        try:
            customer = CustomerService(db).update_customer(
                customer_id, name=name, address=address, phone=phone,
                is_published=published,
            )
        except DomainError as e:
            _fail(ShipTrackError.from_exception(e))
        console.print(
            f"[green]Updated customer {customer.id}[/green] ({escape(customer.name)})"
        )


@customer_app.command("delete")
def customer_delete(
    customer_id: int = typer.Argument(..., help="Customer id"),
):
    """Delete a customer that has no shipments."""
    from shiptrack.services.customer_service import CustomerService

    with get_db_context() as db:
        try:
            CustomerService(db).delete_customer(customer_id)
        except DomainError as e:
            _fail(ShipTrackError.from_exception(e))
    console.print(f"[green]Deleted customer {customer_id}.[/green]")


# --- Config commands ---


@config_app.command("show")
def config_show():
    """Display the resolved configuration."""
    console.print(escape(yaml.safe_dump(_config.model_dump(mode="json"), sort_keys=False)))


if __name__ == "__main__":
    app()
