"""PropTrust - CLI for property portfolio, inspection and logbook management."""

import uuid
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import click
import typer
from dateutil import parser as date_parser
from rich.console import Console
from rich.table import Table

from config import configure_logging, get_config
from database import Database
from errors import ProptrustError
from models import (
    CalendarEvent,
    CalendarEventType,
    FollowUpCategory,
    MaintenancePriority,
    MaintenanceStatus,
    MaintenanceTask,
    PartnerSettings,
    Property,
    PropertyStatus,
    PropertyType,
    RentFrequency,
    Severity,
    TripCategory,
)
from services import inspections
from services.logbook import LogbookService, export_csv, export_filename
from services.notifications import NotificationService
from services.partners import connect_utilities
from services.portfolio import TENANCY_VIEWS, dashboard_stats, filter_tenancies, tenancy_stats, upcoming_inspections
from services.state_store import StateStore

app = typer.Typer(
    name="proptrust",
    help="CLI tool for property managers: portfolio alerts, inspections and vehicle logbook.",
    no_args_is_help=True,
)
property_app = typer.Typer(help="Manage properties and inspections")
tenancy_app = typer.Typer(help="Review tenancies")
maintenance_app = typer.Typer(help="Manage maintenance requests")
calendar_app = typer.Typer(help="Manage the appointment schedule")
logbook_app = typer.Typer(help="Vehicle logbook")
notifications_app = typer.Typer(help="Dashboard notifications")
settings_app = typer.Typer(help="Integration settings")
app.add_typer(property_app, name="property")
app.add_typer(tenancy_app, name="tenancy")
app.add_typer(maintenance_app, name="maintenance")
app.add_typer(calendar_app, name="calendar")
app.add_typer(logbook_app, name="logbook")
app.add_typer(notifications_app, name="notifications")
app.add_typer(settings_app, name="settings")

console = Console()

SEVERITY_STYLES = {
    Severity.CRITICAL: "red",
    Severity.WARNING: "yellow",
    Severity.INFO: "cyan",
}


@app.callback()
def main_callback():
    """Configure logging before any command runs."""
    configure_logging()


def get_db() -> Database:
    """Get database instance."""
    config = get_config()
    db = Database(config.database_path)
    db.initialize()
    return db


def _fail(message: str) -> None:
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(1)


def _parse_date(value: str) -> date:
    """Parse a user-supplied date (ISO or day-first)."""
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return date_parser.parse(value, dayfirst=True).date()
    except (ValueError, OverflowError):
        _fail(f"Invalid date: {value}. Use YYYY-MM-DD")


def _parse_amount(value: str) -> Decimal:
    try:
        return Decimal(value.replace(",", "").replace("$", "").strip() or "0")
    except InvalidOperation:
        _fail(f"Invalid amount: {value}")


def _get_property_or_exit(db: Database, property_id: str) -> Property:
    prop = db.get_property(property_id)
    if not prop:
        _fail(f"Property {property_id} not found")
    return prop


@app.command()
def init():
    """Initialize the database and configuration."""
    config = get_config()
    config.ensure_directories()
    get_db()
    console.print(f"[green]Database initialized at {config.database_path}[/green]")


@app.command()
def dashboard():
    """Show portfolio statistics, alerts and the inspection outlook."""
    db = get_db()
    properties = db.list_properties()
    stats = dashboard_stats(properties)

    if stats.total_assets == 0:
        console.print("Welcome! Start by onboarding your first property with 'proptrust property add'")
    else:
        console.print(f"\n[bold]Portfolio Dashboard[/bold] - {stats.total_assets} management agreements")
    console.print(f"  Occupancy: {stats.occupancy_rate}% ({stats.leased_count} leased)")
    console.print(f"  Est. monthly rent roll: ${stats.estimated_monthly_yield:,.2f}")
    console.print(f"  Bond held: ${stats.total_bond_held:,.2f}")

    notifications = NotificationService(db).get_notifications()
    console.print(f"\n[bold]Notifications ({len(notifications)})[/bold]")
    for item in notifications:
        style = SEVERITY_STYLES[item.severity]
        console.print(f"  [{style}]{item.title}[/{style}] {item.message} [dim]({item.time})[/dim]")

    upcoming = upcoming_inspections(properties, datetime.now())
    console.print("\n[bold]Upcoming Inspections (14 day outlook)[/bold]")
    if not upcoming:
        console.print("  [dim]No inspections scheduled in the next 14 days.[/dim]")
    for prop in upcoming:
        console.print(
            f"  {prop.next_inspection_date.strftime('%d %b')}  {prop.address} "
            f"- Tenant: {prop.tenant_name or 'VACANT'}"
        )


# Notification commands


@notifications_app.command("list")
def notifications_list():
    """List visible notifications."""
    db = get_db()
    notifications = NotificationService(db).get_notifications()

    if not notifications:
        console.print("[green]You're all caught up.[/green]")
        return

    table = Table(title="Notifications")
    table.add_column("ID", style="cyan")
    table.add_column("Severity")
    table.add_column("Title", style="white")
    table.add_column("Message", style="white")
    table.add_column("When", style="dim")
    table.add_column("Category", style="white")

    for item in notifications:
        style = SEVERITY_STYLES[item.severity]
        table.add_row(
            item.id,
            f"[{style}]{item.severity.value}[/{style}]",
            item.title,
            item.message,
            item.time,
            item.category,
        )

    console.print(table)


@notifications_app.command("dismiss")
def notifications_dismiss(notification_id: str = typer.Argument(..., help="Notification ID")):
    """Dismiss a single notification."""
    NotificationService(get_db()).dismiss(notification_id)
    console.print(f"[green]Dismissed {notification_id}[/green]")


@notifications_app.command("dismiss-all")
def notifications_dismiss_all():
    """Dismiss every visible notification."""
    count = NotificationService(get_db()).dismiss_all()
    console.print(f"[green]Dismissed {count} notification(s)[/green]")


# Property commands


@property_app.command("add")
def property_add(
    address: Optional[str] = typer.Option(None, "--address", "-a", help="Property address"),
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Owner name"),
    tenant: Optional[str] = typer.Option(None, "--tenant", help="Tenant name (omit if vacant)"),
    property_type: Optional[str] = typer.Option(
        None, "--type", "-t", help="Property type (Residential, Commercial)"
    ),
    rent: Optional[str] = typer.Option(None, "--rent", help="Rent amount"),
    frequency: str = typer.Option("Weekly", "--frequency", help="Rent frequency (Weekly, Monthly, Annually)"),
    bond: str = typer.Option("0", "--bond", help="Bond amount"),
    next_inspection: Optional[str] = typer.Option(None, "--next-inspection", help="Next inspection date"),
):
    """Onboard a new property."""
    # Interactive prompts if not provided
    if not address:
        address = typer.prompt("Property address")
    if not owner:
        owner = typer.prompt("Owner name")
    if not property_type:
        property_type = typer.prompt(
            "Property type",
            default="Residential",
            show_choices=True,
            type=click.Choice([t.value for t in PropertyType]),
        )
    if rent is None:
        rent = typer.prompt("Rent amount ($)", default="0")

    try:
        prop_type = PropertyType(property_type)
        rent_frequency = RentFrequency(frequency)
    except ValueError as e:
        _fail(str(e))

    prop = Property(
        id=f"prop-{uuid.uuid4().hex[:8]}",
        address=address,
        owner_name=owner,
        tenant_name=tenant or None,
        status=PropertyStatus.LEASED if tenant else PropertyStatus.VACANT,
        property_type=prop_type,
        rent_amount=_parse_amount(rent),
        rent_frequency=rent_frequency,
        bond_amount=_parse_amount(bond),
        next_inspection_date=_parse_date(next_inspection) if next_inspection else None,
    )

    db = get_db()
    db.save_property(prop)
    console.print(f"[green]Property created with ID: {prop.id}[/green]")


@property_app.command("list")
def property_list():
    """List all properties."""
    db = get_db()
    properties = db.list_properties()

    if not properties:
        console.print("[yellow]No properties found. Add one with 'proptrust property add'[/yellow]")
        return

    table = Table(title="Properties")
    table.add_column("ID", style="cyan")
    table.add_column("Address", style="white")
    table.add_column("Owner", style="white")
    table.add_column("Tenant", style="white")
    table.add_column("Status", style="white")
    table.add_column("Type", style="white")

    for prop in properties:
        table.add_row(
            prop.id,
            prop.address,
            prop.owner_name,
            prop.tenant_name or "-",
            prop.status.value,
            prop.property_type.value,
        )

    console.print(table)


@property_app.command("show")
def property_show(property_id: str = typer.Argument(..., help="Property ID")):
    """Show details for a property."""
    db = get_db()
    prop = _get_property_or_exit(db, property_id)

    console.print(f"\n[bold]Property {prop.id}[/bold]")
    console.print(f"  Address: {prop.address}")
    console.print(f"  Owner: {prop.owner_name}")
    console.print(f"  Tenant: {prop.tenant_name or 'VACANT'}")
    console.print(f"  Status: {prop.status.value}")
    console.print(f"  Type: {prop.property_type.value}")
    console.print(f"  Rent: ${prop.rent_amount:,.2f} {prop.rent_frequency.value}")
    console.print(f"  Bond: ${prop.bond_amount:,.2f}")
    _print_inspection(prop)


def _print_inspection(prop: Property) -> None:
    state = inspections.property_due_state(prop, datetime.now())
    console.print(f"\n[bold]Inspection[/bold]: {state.label}")
    if prop.next_inspection_date:
        console.print(f"  Next routine inspection: {prop.next_inspection_date.isoformat()}")
    if prop.inspection_follow_ups:
        console.print(f"\n[bold]Follow-up items ({len(prop.inspection_follow_ups)}):[/bold]")
        for item in prop.inspection_follow_ups:
            mark = "[green]x[/green]" if item.status.value == "Completed" else " "
            console.print(f"  [{mark}] {item.id}: {item.description} ({item.category.value})")


@property_app.command("inspect")
def property_inspect(property_id: str = typer.Argument(..., help="Property ID")):
    """Show the inspection state and follow-up items for a property."""
    prop = _get_property_or_exit(get_db(), property_id)
    console.print(f"\n[bold]{prop.address}[/bold]")
    _print_inspection(prop)


@property_app.command("complete-inspection")
def property_complete_inspection(property_id: str = typer.Argument(..., help="Property ID")):
    """Mark the routine inspection done and schedule the next one."""
    db = get_db()
    prop = _get_property_or_exit(db, property_id)
    updated = inspections.complete_inspection(prop, date.today())
    db.save_property(updated)
    months = inspections.inspection_interval(updated).months
    console.print(
        f"[green]Inspection completed. Next routine inspection auto-scheduled for "
        f"{updated.next_inspection_date.isoformat()} ({months} months).[/green]"
    )


@property_app.command("reschedule")
def property_reschedule(
    property_id: str = typer.Argument(..., help="Property ID"),
    new_date: str = typer.Argument(..., help="Next inspection date"),
):
    """Set the next inspection date."""
    db = get_db()
    prop = _get_property_or_exit(db, property_id)
    db.save_property(inspections.reschedule_inspection(prop, _parse_date(new_date)))
    console.print("[green]Date updated successfully.[/green]")


@property_app.command("followup-add")
def property_followup_add(
    property_id: str = typer.Argument(..., help="Property ID"),
    description: str = typer.Argument(..., help="What needs doing"),
    category: str = typer.Option(
        "Cleaning", "--category", "-c", help="Cleaning, Damage, Garden or Other"
    ),
):
    """Add an inspection follow-up item."""
    db = get_db()
    prop = _get_property_or_exit(db, property_id)
    try:
        follow_up_category = FollowUpCategory(category)
    except ValueError as e:
        _fail(str(e))
    updated = inspections.add_follow_up(prop, description, follow_up_category)
    if updated is prop:
        _fail("Description is required")
    db.save_property(updated)
    console.print(f"[green]Added follow-up {updated.inspection_follow_ups[-1].id}[/green]")


@property_app.command("followup-toggle")
def property_followup_toggle(
    property_id: str = typer.Argument(..., help="Property ID"),
    item_id: str = typer.Argument(..., help="Follow-up item ID"),
):
    """Flip a follow-up item between pending and completed."""
    db = get_db()
    prop = _get_property_or_exit(db, property_id)
    if inspections.find_follow_up(prop, item_id) is None:
        _fail("Follow-up item not found")
    db.save_property(inspections.toggle_follow_up(prop, item_id))
    console.print(f"[green]Toggled {item_id}[/green]")


@property_app.command("followup-remove")
def property_followup_remove(
    property_id: str = typer.Argument(..., help="Property ID"),
    item_id: str = typer.Argument(..., help="Follow-up item ID"),
):
    """Remove a follow-up item."""
    db = get_db()
    prop = _get_property_or_exit(db, property_id)
    if inspections.find_follow_up(prop, item_id) is None:
        _fail("Follow-up item not found")
    db.save_property(inspections.remove_follow_up(prop, item_id))
    console.print(f"[green]Removed {item_id}[/green]")


@property_app.command("connect-utilities")
def property_connect_utilities(property_id: str = typer.Argument(..., help="Property ID")):
    """Refer the tenant to the utilities connection partner."""
    db = get_db()
    prop = _get_property_or_exit(db, property_id)
    settings = StateStore(db).load_partner_settings().value
    outcome = connect_utilities(prop, settings)
    if not outcome.is_configured:
        console.print(
            "[yellow]No utilities partner configured. "
            "Set one up with 'proptrust settings partner'.[/yellow]"
        )
        raise typer.Exit(1)
    console.print(f"[green]Connecting {outcome.tenant} with {outcome.provider}[/green]")
    console.print(f"  Referral link: {outcome.referral_url}")


# Tenancy commands


@tenancy_app.command("list")
def tenancy_list(
    view: str = typer.Option(
        "all", "--view", "-v", help="all, occupied, vacant or arrears",
        click_type=click.Choice(TENANCY_VIEWS),
    ),
    search: str = typer.Option("", "--search", "-s", help="Search tenant, address or owner"),
):
    """List tenancies with inspection status."""
    db = get_db()
    properties = db.list_properties()
    stats = tenancy_stats(properties)
    console.print(
        f"Active occupants: {stats.occupied_count}  "
        f"Arrears alerts: {stats.arrears_count}  "
        f"Portfolio vacancy: {stats.vacancy_rate}%"
    )

    matches = filter_tenancies(properties, search=search, view=view)
    if not matches:
        console.print("[yellow]No tenancies found[/yellow]")
        return

    now = datetime.now()
    table = Table(title="Tenancies")
    table.add_column("ID", style="cyan")
    table.add_column("Property", style="white")
    table.add_column("Tenant", style="white")
    table.add_column("Owner", style="white")
    table.add_column("Rent", style="white")
    table.add_column("Status", style="white")
    table.add_column("Inspection", style="white")

    for prop in matches:
        table.add_row(
            prop.id,
            prop.address[:30],
            prop.tenant_name or "VACANT",
            prop.owner_name,
            f"${prop.rent_amount:,.2f}/{prop.rent_frequency.value[:2].lower()}",
            prop.status.value,
            inspections.property_due_state(prop, now).label,
        )

    console.print(table)


# Maintenance commands


@maintenance_app.command("add")
def maintenance_add(
    property_id: str = typer.Argument(..., help="Property ID"),
    issue: str = typer.Argument(..., help="Issue description"),
    priority: str = typer.Option(
        "Medium", "--priority", "-p",
        click_type=click.Choice([p.value for p in MaintenancePriority]),
    ),
):
    """Log a maintenance request."""
    db = get_db()
    prop = _get_property_or_exit(db, property_id)
    task = MaintenanceTask(
        id=f"mt-{uuid.uuid4().hex[:8]}",
        property_id=prop.id,
        property_address=prop.address,
        issue=issue,
        priority=MaintenancePriority(priority),
        status=MaintenanceStatus.NEW,
        request_date=date.today(),
    )
    db.save_maintenance_task(task)
    console.print(f"[green]Maintenance request created with ID: {task.id}[/green]")


@maintenance_app.command("list")
def maintenance_list():
    """List maintenance requests."""
    tasks = get_db().list_maintenance_tasks()
    if not tasks:
        console.print("[yellow]No maintenance requests[/yellow]")
        return

    table = Table(title="Maintenance")
    table.add_column("ID", style="cyan")
    table.add_column("Property", style="white")
    table.add_column("Issue", style="white")
    table.add_column("Priority", style="white")
    table.add_column("Status", style="white")
    table.add_column("Requested", style="white")
    for task in tasks:
        table.add_row(
            task.id,
            task.property_address[:30],
            task.issue,
            task.priority.value,
            task.status.value,
            task.request_date.isoformat(),
        )
    console.print(table)


# Calendar commands


@calendar_app.command("add")
def calendar_add(
    title: str = typer.Argument(..., help="Appointment title"),
    on_date: Optional[str] = typer.Option(None, "--date", "-d", help="Date (defaults to today)"),
    at_time: Optional[str] = typer.Option(None, "--time", help="Time (HH:MM)"),
    address: Optional[str] = typer.Option(None, "--address", "-a", help="Property address"),
    event_type: str = typer.Option(
        "Other", "--type", "-t",
        click_type=click.Choice([t.value for t in CalendarEventType]),
    ),
):
    """Add an appointment to the schedule."""
    event = CalendarEvent(
        id=f"ev-{uuid.uuid4().hex[:8]}",
        title=title,
        event_date=_parse_date(on_date) if on_date else date.today(),
        time=at_time,
        event_type=CalendarEventType(event_type),
        property_address=address,
    )
    get_db().add_calendar_event(event)
    console.print(f"[green]Appointment created with ID: {event.id}[/green]")


@calendar_app.command("list")
def calendar_list(
    on_date: Optional[str] = typer.Option(None, "--date", "-d", help="Only this date"),
):
    """List appointments."""
    events = get_db().list_calendar_events(on_date=_parse_date(on_date) if on_date else None)
    if not events:
        console.print("[yellow]No appointments[/yellow]")
        return

    table = Table(title="Schedule")
    table.add_column("ID", style="cyan")
    table.add_column("Date", style="white")
    table.add_column("Time", style="white")
    table.add_column("Title", style="white")
    table.add_column("Address", style="white")
    table.add_column("Checked out", style="white")
    for event in events:
        table.add_row(
            event.id,
            event.event_date.isoformat(),
            event.time or "-",
            event.title,
            event.property_address or "-",
            "[green]Yes[/green]" if event.checked_out else "[dim]No[/dim]",
        )
    console.print(table)


@calendar_app.command("checkout")
def calendar_checkout(
    event_id: str = typer.Argument(..., help="Appointment ID"),
    undo: bool = typer.Option(False, "--undo", help="Clear the check-out"),
):
    """Confirm attendance at an appointment."""
    if not get_db().set_event_checked_out(event_id, not undo):
        _fail(f"Appointment {event_id} not found")
    console.print(f"[green]{'Cleared check-out for' if undo else 'Checked out'} {event_id}[/green]")


# Logbook commands


@logbook_app.command("list")
def logbook_list():
    """List logbook trips, latest first."""
    service = LogbookService(get_db())
    entries = service.entries()
    stats = service.stats()
    console.print(
        f"Business km: {stats.business_km}  "
        f"Est. claim: ${stats.estimated_claim:,.2f}  "
        f"Business trips: {stats.business_trips}"
    )
    if not entries:
        console.print("[yellow]No trips logged[/yellow]")
        return

    table = Table(title="Vehicle Logbook")
    table.add_column("Date", style="white")
    table.add_column("Vehicle", style="white")
    table.add_column("Driver", style="white")
    table.add_column("Purpose", style="white")
    table.add_column("Category", style="white")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("km", justify="right", style="cyan")
    for e in entries:
        table.add_row(
            e.trip_date.isoformat(),
            e.vehicle,
            e.driver,
            e.purpose,
            e.category.value,
            str(e.start_odo),
            str(e.end_odo),
            str(e.distance),
        )
    console.print(table)


@logbook_app.command("add")
def logbook_add(
    purpose: Optional[str] = typer.Option(None, "--purpose", "-p", help="Trip purpose"),
    end_odo: Optional[int] = typer.Option(None, "--end", help="End odometer"),
    start_odo: Optional[int] = typer.Option(None, "--start", help="Start odometer (defaults to last reading)"),
    category: str = typer.Option(
        "Business", "--category", "-c",
        click_type=click.Choice([c.value for c in TripCategory]),
    ),
    vehicle: Optional[str] = typer.Option(None, "--vehicle", help="Vehicle"),
    on_date: Optional[str] = typer.Option(None, "--date", "-d", help="Trip date (defaults to today)"),
):
    """Log a manual trip, continuing from the last odometer reading."""
    service = LogbookService(get_db())
    draft = service.new_trip(
        today=_parse_date(on_date) if on_date else None,
        vehicle=vehicle,
    )
    if start_odo is not None:
        draft.start_odo = start_odo
    if end_odo is None:
        end_odo = typer.prompt("End odometer", default=draft.end_odo, type=int)
    draft.end_odo = end_odo
    if purpose is None:
        purpose = typer.prompt("Purpose")
    draft.purpose = purpose
    draft.category = TripCategory(category)

    try:
        entry = service.add_trip(draft)
    except ProptrustError as e:
        _fail(e.user_message)
    console.print(f"[green]Logged {entry.distance} km ({entry.start_odo} -> {entry.end_odo})[/green]")


@logbook_app.command("import")
def logbook_import(
    start_point: Optional[str] = typer.Option(None, "--from", help="Start/end address (defaults to the office)"),
):
    """Import today's checked-out appointments using AI route estimation."""
    service = LogbookService(get_db())
    start = start_point or get_config().office_address
    try:
        with console.status("Estimating today's route..."):
            entries = service.import_today(start_point=start)
    except ProptrustError as e:
        _fail(e.user_message)
    console.print(
        f"[green]Success! Generated {len(entries)} logbook entries based on your "
        f"verified schedule starting from \"{start}\".[/green]"
    )


@logbook_app.command("export")
def logbook_export(
    output_dir: Path = typer.Option(Path("."), "--output-dir", "-o", help="Directory for the CSV file"),
):
    """Export the logbook to CSV."""
    entries = LogbookService(get_db()).entries()
    path = output_dir / export_filename(date.today())
    path.write_text(export_csv(entries), encoding="utf-8")
    console.print(f"[green]Exported {len(entries)} trips to {path}[/green]")


@logbook_app.command("stats")
def logbook_stats_command():
    """Show business distance and estimated claim."""
    stats = LogbookService(get_db()).stats()
    console.print(f"  Business km: {stats.business_km}")
    console.print(f"  Est. claim: ${stats.estimated_claim:,.2f}")
    console.print(f"  Business trips: {stats.business_trips}")


# Settings commands


@settings_app.command("partner")
def settings_partner(
    utilities_id: Optional[str] = typer.Option(None, "--utilities-id", help="Partner account ID"),
    provider: Optional[str] = typer.Option(None, "--provider", help="Partner name"),
):
    """Show or update the utilities partner settings."""
    store = StateStore(get_db())
    settings = store.load_partner_settings().value
    if utilities_id is None and provider is None:
        console.print(f"  Utilities partner ID: {settings.utilities_id or '[dim]not set[/dim]'}")
        console.print(f"  Provider: {settings.utilities_provider or '[dim]not set[/dim]'}")
        return
    store.save_partner_settings(PartnerSettings(
        utilities_id=utilities_id if utilities_id is not None else settings.utilities_id,
        utilities_provider=provider if provider is not None else settings.utilities_provider,
    ))
    console.print("[green]Partner settings saved[/green]")


if __name__ == "__main__":
    app()
