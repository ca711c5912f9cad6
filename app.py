"""Flask web interface for PropTrust."""

import os
from datetime import date, datetime

from flask import Flask, Response, flash, redirect, render_template, request, url_for

from config import configure_logging, get_config
from database import Database
from errors import ProptrustError
from models import FollowUpCategory, PartnerSettings, TripCategory
from services import inspections
from services.logbook import LogbookService, export_csv, export_filename, toggle_purpose_tag
from services.notifications import NotificationService
from services.partners import connect_utilities
from services.portfolio import TENANCY_VIEWS, dashboard_stats, filter_tenancies, tenancy_stats, upcoming_inspections
from services.route_estimator import RouteEstimator
from services.state_store import StateStore

app = Flask(__name__)
app.secret_key = get_config().secret_key

# Quick tags offered under the purpose field on the logbook form
PURPOSE_TAGS = ("Inspection", "Maintenance", "Leasing", "Office", "Client Meeting")


def get_db() -> Database:
    """Get database instance."""
    config = get_config()
    db = Database(app.config.get("DATABASE_PATH") or config.database_path)
    db.initialize()
    return db


def get_route_estimator():
    """Route estimator used by schedule imports."""
    return RouteEstimator()


def _get_property_or_flash(db: Database, property_id: str):
    prop = db.get_property(property_id)
    if not prop:
        flash("Property not found", "error")
    return prop


@app.route("/")
def index():
    """Dashboard with portfolio stats, notifications and inspection outlook."""
    db = get_db()
    properties = db.list_properties()
    now = datetime.now()
    return render_template(
        "index.html",
        stats=dashboard_stats(properties),
        notifications=NotificationService(db).get_notifications(now),
        upcoming=upcoming_inspections(properties, now),
    )


@app.route("/notifications/dismiss/<notification_id>", methods=["POST"])
def dismiss_notification(notification_id: str):
    """Hide one notification."""
    NotificationService(get_db()).dismiss(notification_id)
    return redirect(request.referrer or url_for("index"))


@app.route("/notifications/dismiss-all", methods=["POST"])
def dismiss_all_notifications():
    """Hide every visible notification."""
    count = NotificationService(get_db()).dismiss_all()
    flash(f"Dismissed {count} notification(s)", "success")
    return redirect(request.referrer or url_for("index"))


@app.route("/tenancies")
def tenancies():
    """Tenancy list with search, view filter and inspection status."""
    db = get_db()
    properties = db.list_properties()

    search = request.args.get("q", "")
    view = request.args.get("view", "all")
    if view not in TENANCY_VIEWS:
        view = "all"

    now = datetime.now()
    rows = [
        {"property": p, "due": inspections.property_due_state(p, now)}
        for p in filter_tenancies(properties, search=search, view=view)
    ]
    return render_template(
        "tenancies.html",
        rows=rows,
        stats=tenancy_stats(properties),
        search=search,
        view=view,
        views=TENANCY_VIEWS,
    )


@app.route("/properties/<property_id>/inspection")
def inspection(property_id: str):
    """Inspection management for one property."""
    db = get_db()
    prop = _get_property_or_flash(db, property_id)
    if not prop:
        return redirect(url_for("tenancies"))
    return render_template(
        "inspection.html",
        property=prop,
        due=inspections.property_due_state(prop, datetime.now()),
        categories=FollowUpCategory,
    )


@app.route("/properties/<property_id>/inspection/complete", methods=["POST"])
def complete_inspection(property_id: str):
    """Mark the routine inspection done and schedule the next one."""
    db = get_db()
    prop = _get_property_or_flash(db, property_id)
    if not prop:
        return redirect(url_for("tenancies"))
    updated = inspections.complete_inspection(prop, date.today())
    db.save_property(updated)
    months = inspections.inspection_interval(updated).months
    flash(
        f"Inspection completed. Next routine inspection auto-scheduled for "
        f"{updated.next_inspection_date.strftime('%d/%m/%Y')} ({months} months).",
        "success",
    )
    return redirect(url_for("inspection", property_id=property_id))


@app.route("/properties/<property_id>/inspection/reschedule", methods=["POST"])
def reschedule_inspection(property_id: str):
    """Set the next inspection date."""
    db = get_db()
    prop = _get_property_or_flash(db, property_id)
    if not prop:
        return redirect(url_for("tenancies"))
    try:
        new_date = date.fromisoformat(request.form["next_inspection_date"])
    except (KeyError, ValueError):
        flash("Invalid date", "error")
        return redirect(url_for("inspection", property_id=property_id))
    db.save_property(inspections.reschedule_inspection(prop, new_date))
    flash("Date updated successfully.", "success")
    return redirect(url_for("inspection", property_id=property_id))


@app.route("/properties/<property_id>/inspection/follow-ups", methods=["POST"])
def add_follow_up(property_id: str):
    """Add a follow-up item from the inspection screen."""
    db = get_db()
    prop = _get_property_or_flash(db, property_id)
    if not prop:
        return redirect(url_for("tenancies"))
    try:
        category = FollowUpCategory(request.form.get("category", FollowUpCategory.CLEANING.value))
    except ValueError:
        category = FollowUpCategory.OTHER
    updated = inspections.add_follow_up(prop, request.form.get("description", ""), category)
    if updated is not prop:
        db.save_property(updated)
    return redirect(url_for("inspection", property_id=property_id))


@app.route("/properties/<property_id>/inspection/follow-ups/<item_id>/toggle", methods=["POST"])
def toggle_follow_up(property_id: str, item_id: str):
    """Flip a follow-up item between pending and completed."""
    db = get_db()
    prop = _get_property_or_flash(db, property_id)
    if not prop:
        return redirect(url_for("tenancies"))
    if inspections.find_follow_up(prop, item_id) is None:
        flash("Follow-up item not found", "error")
        return redirect(url_for("inspection", property_id=property_id))
    db.save_property(inspections.toggle_follow_up(prop, item_id))
    return redirect(url_for("inspection", property_id=property_id))


@app.route("/properties/<property_id>/inspection/follow-ups/<item_id>/delete", methods=["POST"])
def delete_follow_up(property_id: str, item_id: str):
    """Remove a follow-up item."""
    db = get_db()
    prop = _get_property_or_flash(db, property_id)
    if not prop:
        return redirect(url_for("tenancies"))
    if inspections.find_follow_up(prop, item_id) is None:
        flash("Follow-up item not found", "error")
        return redirect(url_for("inspection", property_id=property_id))
    db.save_property(inspections.remove_follow_up(prop, item_id))
    return redirect(url_for("inspection", property_id=property_id))


@app.route("/properties/<property_id>/connect-utilities", methods=["POST"])
def connect_property_utilities(property_id: str):
    """Send the tenant to the utilities partner, or to settings if unconfigured."""
    db = get_db()
    prop = _get_property_or_flash(db, property_id)
    if not prop:
        return redirect(url_for("tenancies"))
    outcome = connect_utilities(prop, StateStore(db).load_partner_settings().value)
    if not outcome.is_configured:
        flash("Please configure your Utilities Connection partner in Settings first.", "error")
        return redirect(url_for("settings", tab=outcome.navigate_to))
    flash(f"Referral sent for {outcome.tenant} via {outcome.provider}.", "success")
    return redirect(outcome.referral_url)


@app.route("/logbook")
def logbook():
    """Vehicle logbook with a pre-filled new trip form."""
    service = LogbookService(get_db())
    draft = service.new_trip()
    purpose = request.args.get("purpose", "")
    tag = request.args.get("tag")
    if tag:
        purpose = toggle_purpose_tag(purpose, tag)
    draft.purpose = purpose
    return render_template(
        "logbook.html",
        entries=service.entries(),
        stats=service.stats(),
        draft=draft,
        tags=PURPOSE_TAGS,
        categories=TripCategory,
        office_address=get_config().office_address,
    )


@app.route("/logbook/add", methods=["POST"])
def add_trip():
    """Save a manual trip."""
    service = LogbookService(get_db())
    draft = service.new_trip(vehicle=request.form.get("vehicle") or None)
    try:
        if request.form.get("date"):
            draft.trip_date = date.fromisoformat(request.form["date"])
        draft.start_odo = int(request.form.get("start_odo", draft.start_odo))
        draft.end_odo = int(request.form["end_odo"])
        draft.category = TripCategory(request.form.get("category", TripCategory.BUSINESS.value))
    except (KeyError, ValueError) as e:
        flash(f"Error saving trip: {e}", "error")
        return redirect(url_for("logbook"))
    draft.purpose = request.form.get("purpose", "")

    try:
        entry = service.add_trip(draft)
    except ProptrustError as e:
        flash(e.user_message, "error")
        return redirect(url_for("logbook"))
    flash(f"Logged {entry.distance} km trip.", "success")
    return redirect(url_for("logbook"))


@app.route("/logbook/import", methods=["POST"])
def import_trips():
    """Build today's trips from checked-out appointments."""
    service = LogbookService(get_db(), estimator=get_route_estimator())
    start = request.form.get("start_point") or get_config().office_address
    try:
        entries = service.import_today(start_point=start)
    except ProptrustError as e:
        flash(e.user_message, "error")
        return redirect(url_for("logbook"))
    flash(
        f"Success! Generated {len(entries)} logbook entries based on your "
        f"verified schedule starting from \"{start}\".",
        "success",
    )
    return redirect(url_for("logbook"))


@app.route("/logbook/export")
def export_logbook():
    """Download the logbook as CSV."""
    entries = LogbookService(get_db()).entries()
    return Response(
        export_csv(entries),
        mimetype="text/csv",
        headers={"Content-Disposition": f"attachment; filename={export_filename(date.today())}"},
    )


@app.route("/settings", methods=["GET", "POST"])
def settings():
    """Integration settings. The billing tab holds the utilities partner."""
    store = StateStore(get_db())
    if request.method == "POST":
        store.save_partner_settings(PartnerSettings(
            utilities_id=request.form.get("utilities_id", "").strip(),
            utilities_provider=request.form.get("utilities_provider", "").strip(),
        ))
        flash("Settings saved", "success")
        return redirect(url_for("settings", tab="billing"))

    return render_template(
        "settings.html",
        partner=store.load_partner_settings().value,
        tab=request.args.get("tab", "billing"),
    )


if __name__ == "__main__":
    configure_logging()
    port = int(os.environ.get("PORT", 5000))
    app.run(host="0.0.0.0", port=port, debug=True)
