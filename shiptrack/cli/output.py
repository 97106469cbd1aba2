"""CLI output formatters for Rich tables and JSON.

Provides human-readable Rich output (default) and machine-parseable JSON
(--json flag). All formatting goes through these functions so the CLI
commands stay clean.
"""

import json

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from shiptrack.db.models import OrderStatus, Shipment, StatusUpdate
from shiptrack.errors.formatter import format_error_summary
from shiptrack.services.import_models import BulkUpdateReport, ImportReport
from shiptrack.services.shipment_service import DashboardStats
from shiptrack.services.status_constants import STATUS_LABELS

console = Console()

STATUS_COLORS = {
    "yet_to_be_picked": "yellow",
    "picked_up": "cyan",
    "intransit": "blue",
    "on_the_way": "blue",
    "out_for_delivery": "magenta",
    "delivered": "green",
    "cancelled": "dim",
}


def _render(*renderables) -> str:
    with console.capture() as capture:
        for renderable in renderables:
            console.print(renderable)
    return capture.get()


def status_markup(status: str) -> str:
    """Colored status label, e.g. ``[green]Delivered[/green]``."""
    color = STATUS_COLORS.get(status, "white")
    try:
        label = STATUS_LABELS[OrderStatus(status)]
    except ValueError:
        label = status
    return f"[{color}]{label}[/{color}]"


def status_update_to_dict(update: StatusUpdate) -> dict:
    return {
        "id": update.id,
        "status": update.order_status,
        "details": update.details,
        "location": update.location,
        "timestamp": update.timestamp,
        "status_update_ord": update.status_update_ord,
    }


def shipment_to_dict(shipment: Shipment, include_history: bool = True) -> dict:
    """Serialize a shipment; history is newest-first."""
    data = {
        "id": shipment.id,
        "orderId": shipment.order_id,
        "trackingId": shipment.tracking_id,
        "order_status": shipment.order_status,
        "orderDate": shipment.order_date,
        "estimatedDelivery": shipment.estimated_delivery,
        "originAddress": shipment.origin_address,
        "deliveryAddress": shipment.delivery_address,
        "isPublished": shipment.is_published,
        "customer": (
            {
                "id": shipment.customer.id,
                "name": shipment.customer.name,
                "address": shipment.customer.address,
            }
            if shipment.customer
            else None
        ),
    }
    if include_history:
        data["statusUpdates"] = [
            status_update_to_dict(u) for u in shipment.history_desc()
        ]
    return data


def format_import_report(
    report: ImportReport, title: str = "Import", as_json: bool = False
) -> str:
    """Format a batch import manifest."""
    if as_json:
        return json.dumps(report.to_dict(), indent=2, default=str)

    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Key", style="cyan")
    table.add_column("Result")
    table.add_column("Updates", justify="right")
    table.add_column("Status / Error")

    for result in report.results:
        if result.success:
            table.add_row(
                str(result.row_number),
                escape(str(result.key)),
                "[green]ok[/green]",
                str(result.updated_status_count or 0),
                status_markup(result.order_status or ""),
            )
        else:
            table.add_row(
                str(result.row_number),
                escape(str(result.key)),
                f"[red]{result.error_code}[/red]",
                "",
                escape(result.error or ""),
            )

    summary = (
        f"[bold]{report.rows_processed}[/bold] row(s): "
        f"[green]{report.succeeded} succeeded[/green], "
        f"[red]{report.failed} failed[/red]"
    )
    renderables = [table, summary]
    if report.failed:
        renderables.append(escape(format_error_summary(report.errors())))
    return _render(*renderables)


def format_bulk_report(report: BulkUpdateReport, as_json: bool = False) -> str:
    """Format the outcome of a bulk append run."""
    if as_json:
        return json.dumps(report.to_dict(), indent=2, default=str)

    lines = [
        f"[bold]Applied:[/bold] [green]{len(report.applied)}[/green]",
        f"[bold]Skipped:[/bold] [yellow]{len(report.skipped)}[/yellow]"
        + (
            f" (no such shipment: {', '.join(str(s) for s in report.skipped)})"
            if report.skipped
            else ""
        ),
        f"[bold]Failed:[/bold]  [red]{len(report.failed)}[/red]",
    ]
    renderables = [Panel("\n".join(lines), title="Bulk status update")]
    if report.failed:
        renderables.append(escape(format_error_summary(report.errors())))
    return _render(*renderables)


def format_shipment_detail(
    shipment: Shipment, matched_by: str | None = None, as_json: bool = False
) -> str:
    """Format one shipment with its newest-first status history."""
    if as_json:
        data = shipment_to_dict(shipment)
        if matched_by:
            data["matchedBy"] = matched_by
        return json.dumps(data, indent=2, default=str)

    lines = [
        f"[bold]Order:[/bold]     {escape(shipment.order_id)}",
        f"[bold]Tracking:[/bold]  {escape(shipment.tracking_id)}",
        f"[bold]Status:[/bold]    {status_markup(shipment.order_status)}",
        f"[bold]Ordered:[/bold]   {shipment.order_date[:19]}",
        f"[bold]ETA:[/bold]       {(shipment.estimated_delivery or '-')[:19]}",
    ]
    if shipment.customer:
        lines.append(f"[bold]Customer:[/bold]  {escape(shipment.customer.name)}")
    if shipment.delivery_address:
        lines.append(f"[bold]Deliver to:[/bold] {escape(shipment.delivery_address)}")
    if matched_by:
        lines.append(f"[dim]matched by {matched_by}[/dim]")

    history = Table(title="History", show_header=True)
    history.add_column("#", justify="right", style="dim")
    history.add_column("Status")
    history.add_column("Details")
    history.add_column("Location")
    history.add_column("When")
    for update in shipment.history_desc():
        history.add_row(
            str(update.status_update_ord),
            status_markup(update.order_status),
            escape(update.details or ""),
            escape(update.location or ""),
            update.timestamp[:19],
        )

    return _render(Panel("\n".join(lines), title=f"Shipment {shipment.id}"), history)


def format_shipment_table(
    shipments: list[Shipment], title: str = "Shipments", as_json: bool = False
) -> str:
    """Format a list of shipments without history."""
    if as_json:
        return json.dumps(
            [shipment_to_dict(s, include_history=False) for s in shipments],
            indent=2,
            default=str,
        )
    if not shipments:
        return "No shipments found."

    table = Table(title=title)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Order", style="cyan")
    table.add_column("Tracking")
    table.add_column("Status")
    for shipment in shipments:
        table.add_row(
            str(shipment.id),
            escape(shipment.order_id),
            escape(shipment.tracking_id),
            status_markup(shipment.order_status),
        )
    return _render(table)


def format_dashboard(stats: DashboardStats, as_json: bool = False) -> str:
    """Format dashboard counts and recent shipments."""
    if as_json:
        return json.dumps(stats.to_dict(), indent=2, default=str)

    counts = "\n".join([
        f"[bold]Total:[/bold]      {stats.total}",
        f"[bold]Delivered:[/bold]  [green]{stats.delivered}[/green]",
        f"[bold]In transit:[/bold] [blue]{stats.in_transit}[/blue]",
        f"[bold]Pending:[/bold]    [yellow]{stats.pending}[/yellow]",
    ])
    recent = Table(title="Recent shipments")
    recent.add_column("Order", style="cyan")
    recent.add_column("Tracking")
    recent.add_column("Customer")
    recent.add_column("Status")
    recent.add_column("Ordered")
    for shipment in stats.recent:
        recent.add_row(
            escape(shipment.order_id),
            escape(shipment.tracking_id),
            escape(shipment.customer.name) if shipment.customer else "-",
            status_markup(shipment.order_status),
            shipment.order_date[:10],
        )
    return _render(Panel(counts, title="Dashboard"), recent)


def format_status_options(options: list[dict[str, str]], as_json: bool = False) -> str:
    """Format the ordered status value/label pairs."""
    if as_json:
        return json.dumps(options, indent=2)
    table = Table(title="Status options")
    table.add_column("Value", style="cyan")
    table.add_column("Label")
    for option in options:
        table.add_row(option["value"], option["label"])
    return _render(table)
