"""Tests for the vehicle logbook."""

import sqlite3
import threading
from datetime import date
from decimal import Decimal

import pytest

from errors import (
    ImportInProgressError,
    NothingToImportError,
    NoValidRouteError,
    QuotaExceededError,
    TripValidationError,
)
from models import AI_DRIVER, MANUAL_DRIVER, CalendarEvent, LogbookEntry, TripCategory, TripDraft, TripSegment
from services import logbook as logbook_module
from services.logbook import (
    CSV_HEADER,
    LogbookService,
    events_to_import,
    export_csv,
    export_filename,
    import_from_schedule,
    latest_odometer,
    logbook_stats,
    propose_new_trip,
    submit_trip,
    toggle_purpose_tag,
)

TODAY = date(2024, 6, 10)


class FakeEstimator:
    """Returns canned segments and records the stops it was given."""

    def __init__(self, segments=None, error=None):
        self.segments = segments or []
        self.error = error
        self.calls = []

    def estimate_route(self, stops, start_address):
        self.calls.append((list(stops), start_address))
        if self.error:
            raise self.error
        return self.segments


def entry(entry_id, start, end, trip_date=TODAY, category=TripCategory.BUSINESS):
    return LogbookEntry(
        id=entry_id, trip_date=trip_date, vehicle="Car", start_odo=start, end_odo=end,
        distance=end - start, purpose="Trip", category=category,
    )


def event(event_id, time=None, checked_out=True, on=TODAY, address="1 Main St"):
    return CalendarEvent(
        id=event_id, title=event_id, event_date=on, time=time,
        property_address=address, checked_out=checked_out,
    )


def test_latest_odometer():
    """Test the first ledger entry supplies the reading."""
    assert latest_odometer([]) == 0
    assert latest_odometer([entry("b", 50, 80), entry("a", 0, 50)]) == 80


def test_propose_new_trip():
    """Test a new trip continues from the last reading."""
    draft = propose_new_trip([entry("a", 1000, 1200)], TODAY, "Car")
    assert draft.start_odo == 1200
    assert draft.end_odo == 1210
    assert draft.category == TripCategory.BUSINESS
    assert draft.purpose == ""


def test_propose_new_trip_empty_ledger():
    """Test an empty ledger starts at zero."""
    draft = propose_new_trip([], TODAY, "Car")
    assert (draft.start_odo, draft.end_odo) == (0, 10)


def test_submit_rejects_zero_distance():
    """Test end equal to start is rejected."""
    with pytest.raises(TripValidationError):
        submit_trip(TripDraft(trip_date=TODAY, start_odo=100, end_odo=100))


def test_submit_rejects_negative_distance():
    """Test end below start is rejected, also as a ValueError."""
    with pytest.raises(ValueError):
        submit_trip(TripDraft(trip_date=TODAY, start_odo=100, end_odo=90))


def test_submit_trip():
    """Test a valid draft becomes a manual entry."""
    result = submit_trip(TripDraft(trip_date=TODAY, vehicle="Car", start_odo=100, end_odo=150, purpose="Inspection"))
    assert result.distance == 50
    assert result.driver == MANUAL_DRIVER
    assert result.id.startswith("log-")


def test_events_to_import_filters_and_sorts():
    """Test only today's checked-out events are used, in time order."""
    events = [
        event("late", "15:00"),
        event("early", "09:00"),
        event("unchecked", "10:00", checked_out=False),
        event("yesterday", "08:00", on=date(2024, 6, 9)),
        event("untimed"),
    ]
    assert [e.id for e in events_to_import(events, TODAY)] == ["untimed", "early", "late"]


def test_import_chains_odometer():
    """Test imported segments chain from the starting reading with ceil distances."""
    estimator = FakeEstimator([TripSegment("Office to A", 4.2), TripSegment("A to Office", 3.1)])

    entries = import_from_schedule([event("e1", "10:00")], TODAY, 1000, "Office", estimator, vehicle="Car")

    assert [(e.start_odo, e.end_odo, e.distance) for e in entries] == [(1000, 1005, 5), (1005, 1009, 4)]
    assert all(e.driver == AI_DRIVER for e in entries)
    assert all(e.category == TripCategory.BUSINESS for e in entries)
    assert all(e.id.startswith("log-ai-") for e in entries)
    assert estimator.calls[0][1] == "Office"


def test_import_nothing_to_import():
    """Test no checked-out events raises before the estimator is called."""
    estimator = FakeEstimator([TripSegment("x", 1)])
    with pytest.raises(NothingToImportError):
        import_from_schedule([event("e1", checked_out=False)], TODAY, 0, "Office", estimator)
    assert estimator.calls == []


def test_import_no_valid_route():
    """Test an empty estimate raises NoValidRouteError."""
    with pytest.raises(NoValidRouteError):
        import_from_schedule([event("e1")], TODAY, 0, "Office", FakeEstimator([]))


def test_import_skips_unusable_distances():
    """Test zero and non-finite distances never become zero-km trips."""
    estimator = FakeEstimator([
        TripSegment("Zero", 0), TripSegment("NaN", float("nan")),
        TripSegment("Inf", float("inf")), TripSegment("Real", 0.4),
    ])

    entries = import_from_schedule([event("e1")], TODAY, 1000, "Office", estimator)

    assert [(e.purpose, e.start_odo, e.end_odo) for e in entries] == [("Real", 1000, 1001)]


def test_import_only_unusable_distances():
    """Test a route made only of unusable legs is no valid route."""
    estimator = FakeEstimator([TripSegment("Zero", 0), TripSegment("NaN", float("nan"))])
    with pytest.raises(NoValidRouteError):
        import_from_schedule([event("e1")], TODAY, 1000, "Office", estimator)


def test_import_quota_error_propagates():
    """Test quota failures surface unchanged."""
    with pytest.raises(QuotaExceededError):
        import_from_schedule([event("e1")], TODAY, 0, "Office", FakeEstimator(error=QuotaExceededError()))


def test_export_csv():
    """Test the CSV header and one row per entry."""
    csv = export_csv([entry("b", 50, 80), entry("a", 0, 50)])
    lines = csv.split("\n")
    assert lines[0] == CSV_HEADER
    assert len(lines) == 3
    assert lines[1] == '2024-06-10,Car,Current User,"Trip",Business,50,80,30'


def test_export_csv_empty():
    """Test an empty ledger exports just the header."""
    assert export_csv([]) == CSV_HEADER + "\n"


def test_export_filename():
    """Test the download name carries the date."""
    assert export_filename(TODAY) == "Logbook_Export_2024-06-10.csv"


def test_logbook_stats():
    """Test only business trips count towards the claim."""
    ledger = [entry("a", 0, 100), entry("b", 100, 150, category=TripCategory.PRIVATE), entry("c", 150, 160)]
    stats = logbook_stats(ledger)
    assert stats.business_km == 110
    assert stats.estimated_claim == Decimal("93.50")
    assert stats.business_trips == 2


def test_toggle_purpose_tag():
    """Test tags are added and removed from the purpose."""
    assert toggle_purpose_tag("", "Inspection") == "Inspection"
    assert toggle_purpose_tag("Inspection", "Leasing") == "Inspection, Leasing"
    assert toggle_purpose_tag("Inspection, Leasing", "Inspection") == "Leasing"


def test_service_add_trip_persists(db):
    """Test a manual trip is stored and the next draft continues from it."""
    service = LogbookService(db)
    draft = service.new_trip(today=TODAY, vehicle="Car")
    draft.end_odo = 25
    draft.purpose = "Viewing"
    service.add_trip(draft)

    assert [e.distance for e in service.entries()] == [25]
    assert service.new_trip(today=TODAY).start_odo == 25


def test_service_invalid_trip_not_stored(db):
    """Test a rejected trip leaves the ledger unchanged."""
    service = LogbookService(db)
    with pytest.raises(TripValidationError):
        service.add_trip(TripDraft(trip_date=TODAY, start_odo=10, end_odo=10))
    assert service.entries() == []


def test_service_import_today(db):
    """Test import persists entries chained from the ledger."""
    db.add_logbook_entry(entry("prior", 900, 1000, trip_date=date(2024, 6, 9)))
    db.add_calendar_event(event("e1", "10:00"))
    estimator = FakeEstimator([TripSegment("Office to A", 4.2), TripSegment("A to Office", 3.1)])
    service = LogbookService(db, estimator=estimator)

    service.import_today(today=TODAY, start_point="Office", vehicle="Car")

    ledger = service.entries()
    assert [(e.start_odo, e.end_odo) for e in ledger] == [(1005, 1009), (1000, 1005), (900, 1000)]
    assert latest_odometer(ledger) == 1009


def test_service_import_failure_leaves_ledger(db):
    """Test a failed estimate persists nothing."""
    db.add_calendar_event(event("e1", "10:00"))
    service = LogbookService(db, estimator=FakeEstimator(error=QuotaExceededError()))

    with pytest.raises(QuotaExceededError):
        service.import_today(today=TODAY, start_point="Office")
    assert service.entries() == []


def test_service_import_is_all_or_nothing(db, monkeypatch):
    """Test a failed insert part way through the import keeps none of its trips."""
    db.add_calendar_event(event("e1", "10:00"))
    monkeypatch.setattr(logbook_module, "_new_id", lambda prefix: f"{prefix}-same")
    service = LogbookService(db, estimator=FakeEstimator([TripSegment("Out", 5), TripSegment("Back", 4)]))

    with pytest.raises(sqlite3.IntegrityError):
        service.import_today(today=TODAY, start_point="Office")
    assert service.entries() == []


def test_service_import_in_progress(db, monkeypatch):
    """Test a second import is refused while one is pending."""
    lock = threading.Lock()
    monkeypatch.setattr(logbook_module, "_import_lock", lock)
    db.add_calendar_event(event("e1", "10:00"))
    service = LogbookService(db, estimator=FakeEstimator([TripSegment("x", 1)]))

    lock.acquire()
    try:
        with pytest.raises(ImportInProgressError):
            service.import_today(today=TODAY)
    finally:
        lock.release()

    assert len(service.import_today(today=TODAY)) == 1
