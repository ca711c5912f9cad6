"""Tests for database operations."""

import sqlite3
from datetime import date
from decimal import Decimal

import pytest

from models import (
    CalendarEvent,
    FollowUpCategory,
    FollowUpStatus,
    InspectionFollowUp,
    LogbookEntry,
    MaintenancePriority,
    MaintenanceTask,
    Property,
    PropertyStatus,
    PropertyType,
)


def test_schema_version(db):
    """Test initialize records the schema version."""
    assert db.get_schema_version() == 1


def test_initialize_is_idempotent(db):
    """Test initializing twice keeps one schema version row."""
    db.initialize()
    assert db.get_schema_version() == 1


def test_save_and_get_property(db):
    """Test a property round-trips through the store."""
    prop = Property(
        id="p1",
        address="12 Smith St",
        owner_name="Owner",
        tenant_name="Jane",
        status=PropertyStatus.LEASED,
        property_type=PropertyType.COMMERCIAL,
        rent_amount=Decimal("650.50"),
        bond_amount=Decimal("2600"),
        next_inspection_date=date(2024, 7, 1),
    )
    db.save_property(prop)

    found = db.get_property("p1")
    assert found is not None
    assert found.tenant_name == "Jane"
    assert found.property_type == PropertyType.COMMERCIAL
    assert found.rent_amount == Decimal("650.50")
    assert found.next_inspection_date == date(2024, 7, 1)


def test_get_property_not_found(db):
    """Test finding a non-existent property returns None."""
    assert db.get_property("nope") is None


def test_save_property_updates_in_place(db):
    """Test saving the same id again updates rather than duplicates."""
    db.save_property(Property(id="p1", address="12 Smith St"))
    db.save_property(Property(id="p1", address="12 Smith Street"))

    properties = db.list_properties()
    assert len(properties) == 1
    assert properties[0].address == "12 Smith Street"


def test_follow_up_order_preserved(db):
    """Test follow-ups come back in the order they were saved."""
    items = [
        InspectionFollowUp(id=f"f{i}", description=f"Item {i}", category=FollowUpCategory.DAMAGE)
        for i in (3, 1, 2)
    ]
    items[1].status = FollowUpStatus.COMPLETED
    db.save_property(Property(id="p1", address="1 Main St", inspection_follow_ups=items))

    found = db.get_property("p1")
    assert [f.id for f in found.inspection_follow_ups] == ["f3", "f1", "f2"]
    assert found.inspection_follow_ups[1].status == FollowUpStatus.COMPLETED


def test_removed_follow_ups_are_deleted(db):
    """Test saving a shorter follow-up list drops the missing items."""
    prop = Property(id="p1", address="1 Main St", inspection_follow_ups=[
        InspectionFollowUp(id="a", description="A"),
        InspectionFollowUp(id="b", description="B"),
    ])
    db.save_property(prop)
    prop.inspection_follow_ups = prop.inspection_follow_ups[1:]
    db.save_property(prop)

    assert [f.id for f in db.get_property("p1").inspection_follow_ups] == ["b"]


def test_maintenance_tasks(db):
    """Test maintenance tasks are listed newest first."""
    db.save_maintenance_task(MaintenanceTask(id="m1", issue="Leak", request_date=date(2024, 6, 1)))
    db.save_maintenance_task(MaintenanceTask(
        id="m2", issue="No power", priority=MaintenancePriority.URGENT, request_date=date(2024, 6, 5),
    ))

    tasks = db.list_maintenance_tasks()
    assert [t.id for t in tasks] == ["m2", "m1"]
    assert tasks[0].priority == MaintenancePriority.URGENT


def test_calendar_events_by_date(db):
    """Test calendar events can be filtered to one day."""
    db.add_calendar_event(CalendarEvent(id="e1", title="A", event_date=date(2024, 6, 10), time="10:00"))
    db.add_calendar_event(CalendarEvent(id="e2", title="B", event_date=date(2024, 6, 11)))

    events = db.list_calendar_events(on_date=date(2024, 6, 10))
    assert [e.id for e in events] == ["e1"]
    assert events[0].time == "10:00"
    assert events[0].checked_out is False


def test_set_event_checked_out(db):
    """Test checking out an appointment."""
    db.add_calendar_event(CalendarEvent(id="e1", title="A", event_date=date(2024, 6, 10)))

    assert db.set_event_checked_out("e1") is True
    assert db.list_calendar_events()[0].checked_out is True
    assert db.set_event_checked_out("missing") is False


def test_logbook_same_day_latest_insert_first(db):
    """Test same-day trips list in reverse insertion order."""
    db.add_logbook_entry(LogbookEntry(id="a", trip_date=date(2024, 6, 10), start_odo=0, end_odo=5, distance=5))
    db.add_logbook_entry(LogbookEntry(id="b", trip_date=date(2024, 6, 10), start_odo=5, end_odo=9, distance=4))
    db.add_logbook_entry(LogbookEntry(id="c", trip_date=date(2024, 6, 9), start_odo=9, end_odo=20, distance=11))

    assert [e.id for e in db.list_logbook_entries()] == ["b", "a", "c"]


def test_state_roundtrip(db):
    """Test raw state blobs are stored and overwritten."""
    assert db.get_state("k") is None
    db.set_state("k", "1")
    db.set_state("k", "2")
    assert db.get_state("k") == "2"


def test_add_logbook_entries_rolls_back_batch(db):
    """Test a failing row discards the whole batch."""
    good = LogbookEntry(id="a", trip_date=date(2024, 6, 10), start_odo=0, end_odo=5, distance=5)
    clash = LogbookEntry(id="a", trip_date=date(2024, 6, 10), start_odo=5, end_odo=9, distance=4)

    with pytest.raises(sqlite3.IntegrityError):
        db.add_logbook_entries([good, clash])

    assert db.list_logbook_entries() == []
