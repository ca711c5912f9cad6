"""Dashboard alert feed derived from portfolio snapshots."""

import logging
import math
from datetime import date, datetime, time
from typing import Iterable, Optional, Union

from database import Database
from models import (
    CalendarEvent,
    MaintenancePriority,
    MaintenanceStatus,
    MaintenanceTask,
    NotificationItem,
    Property,
    PropertyStatus,
    Severity,
)
from services.state_store import StateStore

logger = logging.getLogger(__name__)

# Inspections within this many days show as "due"
INSPECTION_WINDOW_DAYS = 14

SECONDS_PER_DAY = 24 * 60 * 60


def days_until(target: date, now: Union[date, datetime]) -> int:
    """Whole days from now until the start of target, rounded up."""
    if not isinstance(now, datetime):
        now = datetime.combine(now, time.min)
    delta = datetime.combine(target, time.min) - now
    return math.ceil(delta.total_seconds() / SECONDS_PER_DAY)


def _today(now: Union[date, datetime]) -> date:
    return now.date() if isinstance(now, datetime) else now


def aggregate(
    properties: Iterable[Property],
    maintenance_tasks: Iterable[MaintenanceTask],
    calendar_events: Iterable[CalendarEvent],
    dismissed_ids: Iterable[str],
    now: Union[date, datetime],
) -> list[NotificationItem]:
    """Build the ordered notification feed.

    Items are emitted in display order (arrears, urgent repairs, new requests,
    vacancies, inspections, logbook reminder), not sorted by severity. Ids are
    derived from the source record and category so the same logical alert
    keeps its id across runs, which is what makes dismissal stick.
    """
    properties = list(properties)
    maintenance_tasks = list(maintenance_tasks)
    today = _today(now)
    items: list[NotificationItem] = []

    for prop in properties:
        if prop.status == PropertyStatus.ARREARS:
            items.append(NotificationItem(
                id=f"arr-{prop.id}",
                severity=Severity.CRITICAL,
                title="Rent Arrears",
                message=f"Tenant at {prop.address} is marked as in arrears.",
                time="Action Required",
                category="Financial",
            ))

    for task in maintenance_tasks:
        if task.priority == MaintenancePriority.URGENT and task.status != MaintenanceStatus.COMPLETED:
            items.append(NotificationItem(
                id=f"maint-urg-{task.id}",
                severity=Severity.CRITICAL,
                title="Urgent Repair",
                message=f"{task.issue} at {task.property_address}",
                time=task.request_date.strftime("%d/%m/%Y"),
                category="Maintenance",
            ))

    for task in maintenance_tasks:
        if task.status == MaintenanceStatus.NEW:
            items.append(NotificationItem(
                id=f"maint-new-{task.id}",
                severity=Severity.INFO,
                title="New Request",
                message=f"{task.issue} reported at {task.property_address}",
                time=task.request_date.strftime("%d/%m/%Y"),
                category="Maintenance",
            ))

    for prop in properties:
        if prop.status == PropertyStatus.VACANT:
            items.append(NotificationItem(
                id=f"vac-{prop.id}",
                severity=Severity.WARNING,
                title="Vacancy",
                message=f"{prop.address} is currently vacant.",
                time="Ongoing",
                category="Leasing",
            ))

    for prop in properties:
        if prop.next_inspection_date is None:
            continue
        diff = days_until(prop.next_inspection_date, now)
        if 0 <= diff <= INSPECTION_WINDOW_DAYS:
            items.append(NotificationItem(
                id=f"insp-{prop.id}",
                severity=Severity.WARNING,
                title="Inspection Due",
                message=f"Routine inspection for {prop.address} due in {diff} days.",
                time=prop.next_inspection_date.isoformat(),
                category="Inspection",
            ))
        elif diff < 0:
            items.append(NotificationItem(
                id=f"insp-over-{prop.id}",
                severity=Severity.CRITICAL,
                title="Inspection Overdue",
                message=f"Routine inspection for {prop.address} was due on {prop.next_inspection_date.isoformat()}.",
                time="Overdue",
                category="Inspection",
            ))

    unchecked_today = [e for e in calendar_events if e.event_date == today and not e.checked_out]
    if unchecked_today:
        items.append(NotificationItem(
            id=f"logbook-reminder-{today.isoformat()}",
            severity=Severity.INFO,
            title="Logbook Reminder",
            message=(
                f"You have {len(unchecked_today)} unchecked appointments today. "
                "Verify them in Schedule to auto-log your travel."
            ),
            time="End of Day",
            category="Logbook",
        ))

    dismissed = set(dismissed_ids)
    return [item for item in items if item.id not in dismissed]


class NotificationService:
    """Serve the alert feed and record dismissals."""

    def __init__(self, db: Database):
        self.db = db
        self.state = StateStore(db)

    def get_notifications(self, now: Optional[datetime] = None) -> list[NotificationItem]:
        """Recompute the visible notifications from current records."""
        dismissed = self.state.load_dismissed_ids().value
        return aggregate(
            self.db.list_properties(),
            self.db.list_maintenance_tasks(),
            self.db.list_calendar_events(),
            dismissed,
            now or datetime.now(),
        )

    def dismiss(self, notification_id: str) -> None:
        """Hide a single notification."""
        dismissed = self.state.load_dismissed_ids().value
        dismissed.add(notification_id)
        self.state.save_dismissed_ids(dismissed)

    def dismiss_all(self, now: Optional[datetime] = None) -> int:
        """Hide every currently visible notification. Returns how many were hidden."""
        visible = [item.id for item in self.get_notifications(now)]
        if not visible:
            return 0
        dismissed = self.state.load_dismissed_ids().value
        dismissed.update(visible)
        self.state.save_dismissed_ids(dismissed)
        logger.info("Dismissed %d notifications", len(visible))
        return len(visible)
