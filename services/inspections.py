"""Routine inspection scheduling and follow-up items."""

import logging
import uuid
from dataclasses import dataclass, replace
from datetime import date, datetime
from enum import Enum
from typing import Optional, Union

from dateutil.relativedelta import relativedelta

from models import (
    FollowUpCategory,
    FollowUpStatus,
    InspectionFollowUp,
    Property,
    PropertyType,
)
from services.notifications import days_until

logger = logging.getLogger(__name__)

# Months between routine inspections
RESIDENTIAL_INTERVAL_MONTHS = 6
COMMERCIAL_INTERVAL_MONTHS = 12

DUE_SOON_DAYS = 14


class DueSeverity(str, Enum):
    """How urgently a property's inspection needs attention."""
    ACTION_REQUIRED = "action_required"
    UNSET = "unset"
    OVERDUE = "overdue"
    DUE_SOON = "due_soon"
    SCHEDULED = "scheduled"


@dataclass(frozen=True)
class DueState:
    """Display state of a property's next inspection."""
    label: str
    severity: DueSeverity


def due_state(
    next_inspection_date: Optional[date],
    pending_follow_up_count: int,
    now: Union[date, datetime],
) -> DueState:
    """Work out the inspection badge for a property.

    Outstanding follow-up items take precedence over the date.
    """
    if pending_follow_up_count > 0:
        return DueState(f"{pending_follow_up_count} Action Items", DueSeverity.ACTION_REQUIRED)
    if next_inspection_date is None:
        return DueState("Not Set", DueSeverity.UNSET)

    diff = days_until(next_inspection_date, now)
    if diff < 0:
        return DueState("Overdue", DueSeverity.OVERDUE)
    if diff < DUE_SOON_DAYS:
        return DueState(f"Due ({diff}d)", DueSeverity.DUE_SOON)
    return DueState(next_inspection_date.strftime("%d/%m/%Y"), DueSeverity.SCHEDULED)


def property_due_state(prop: Property, now: Union[date, datetime]) -> DueState:
    """Convenience wrapper over due_state for a property."""
    return due_state(prop.next_inspection_date, prop.pending_follow_ups, now)


def inspection_interval(prop: Property) -> relativedelta:
    """Gap to the next routine inspection for this type of property."""
    if prop.property_type == PropertyType.COMMERCIAL:
        return relativedelta(months=COMMERCIAL_INTERVAL_MONTHS)
    return relativedelta(months=RESIDENTIAL_INTERVAL_MONTHS)


def complete_inspection(prop: Property, now: Union[date, datetime]) -> Property:
    """Record an inspection and schedule the next one.

    Follow-up items are left alone. The caller persists the result.
    """
    today = now.date() if isinstance(now, datetime) else now
    next_date = today + inspection_interval(prop)
    logger.info("Inspection completed at %s, next due %s", prop.address, next_date.isoformat())
    return replace(prop, next_inspection_date=next_date)


def reschedule_inspection(prop: Property, new_date: Optional[date]) -> Property:
    """Set the next inspection date explicitly."""
    return replace(prop, next_inspection_date=new_date)


def add_follow_up(
    prop: Property,
    description: str,
    category: FollowUpCategory = FollowUpCategory.CLEANING,
) -> Property:
    """Append a pending follow-up item. Blank descriptions are ignored."""
    description = description.strip()
    if not description:
        return prop
    item = InspectionFollowUp(
        id=f"if-{uuid.uuid4().hex[:12]}",
        description=description,
        status=FollowUpStatus.PENDING,
        category=category,
    )
    return replace(prop, inspection_follow_ups=[*prop.inspection_follow_ups, item])


def find_follow_up(prop: Property, item_id: str) -> Optional[InspectionFollowUp]:
    """Look up a follow-up item by id."""
    return next((item for item in prop.inspection_follow_ups if item.id == item_id), None)


def toggle_follow_up(prop: Property, item_id: str) -> Property:
    """Flip one follow-up item between pending and completed."""
    updated = []
    for item in prop.inspection_follow_ups:
        if item.id == item_id:
            new_status = (
                FollowUpStatus.COMPLETED if item.status == FollowUpStatus.PENDING
                else FollowUpStatus.PENDING
            )
            item = replace(item, status=new_status)
        updated.append(item)
    return replace(prop, inspection_follow_ups=updated)


def remove_follow_up(prop: Property, item_id: str) -> Property:
    """Drop a follow-up item."""
    return replace(
        prop,
        inspection_follow_ups=[item for item in prop.inspection_follow_ups if item.id != item_id],
    )
