"""Vehicle logbook: odometer sequencing, schedule import and CSV export."""

import logging
import math
import threading
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Protocol, Sequence

from config import get_config
from database import Database
from errors import ImportInProgressError, NoValidRouteError, NothingToImportError, TripValidationError
from models import (
    AI_DRIVER,
    MANUAL_DRIVER,
    CalendarEvent,
    LogbookEntry,
    RouteStop,
    TripCategory,
    TripDraft,
    TripSegment,
)

logger = logging.getLogger(__name__)

# Placeholder trip length offered for a new manual entry
DEFAULT_TRIP_KM = 10

CSV_HEADER = "Date,Vehicle,Driver,Purpose,Category,Start Odo,End Odo,Distance (km)"

# One import at a time per process: two imports from the same starting
# odometer would both claim the same stretch of the chain.
_import_lock = threading.Lock()


class RouteEstimatorProtocol(Protocol):
    def estimate_route(self, stops: Sequence[RouteStop], start_address: str) -> list[TripSegment]:
        ...


@dataclass(frozen=True)
class LogbookStats:
    """Totals shown above the logbook."""
    business_km: int
    estimated_claim: Decimal
    business_trips: int


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def latest_odometer(ledger: Sequence[LogbookEntry]) -> int:
    """End reading of the latest trip; the ledger is ordered latest first."""
    if not ledger:
        return 0
    return ledger[0].end_odo


def propose_new_trip(ledger: Sequence[LogbookEntry], today: date, vehicle: str) -> TripDraft:
    """Pre-fill a manual trip that continues from the last reading."""
    start = latest_odometer(ledger)
    return TripDraft(
        trip_date=today,
        vehicle=vehicle,
        start_odo=start,
        end_odo=start + DEFAULT_TRIP_KM,
        purpose="",
        category=TripCategory.BUSINESS,
    )


def submit_trip(draft: TripDraft) -> LogbookEntry:
    """Turn a draft into a logbook entry, rejecting non-positive distances."""
    distance = draft.end_odo - draft.start_odo
    if distance <= 0:
        raise TripValidationError()
    return LogbookEntry(
        id=_new_id("log"),
        trip_date=draft.trip_date,
        vehicle=draft.vehicle,
        start_odo=draft.start_odo,
        end_odo=draft.end_odo,
        distance=distance,
        purpose=draft.purpose,
        category=draft.category,
        driver=MANUAL_DRIVER,
    )


def events_to_import(events: Sequence[CalendarEvent], today: date) -> list[CalendarEvent]:
    """Today's attended appointments, in time order."""
    verified = [e for e in events if e.event_date == today and e.checked_out]
    return sorted(verified, key=lambda e: e.time or "")


def import_from_schedule(
    events: Sequence[CalendarEvent],
    today: date,
    starting_odometer: int,
    start_point: str,
    estimator: RouteEstimatorProtocol,
    vehicle: str = "",
) -> list[LogbookEntry]:
    """Draft logbook entries for today's attended appointments.

    Each segment starts where the previous one ended, so the readings form a
    continuous chain from starting_odometer.
    """
    verified = events_to_import(events, today)
    if not verified:
        raise NothingToImportError()

    stops = [RouteStop(address=e.property_address or "", time=e.time) for e in verified]
    segments = estimator.estimate_route(stops, start_point)

    entries = []
    odometer = starting_odometer
    for segment in segments:
        if not math.isfinite(segment.distance) or segment.distance <= 0:
            logger.debug("Skipping segment without a usable distance: %r", segment)
            continue
        distance = math.ceil(segment.distance)
        entries.append(LogbookEntry(
            id=_new_id("log-ai"),
            trip_date=today,
            vehicle=vehicle,
            start_odo=odometer,
            end_odo=odometer + distance,
            distance=distance,
            purpose=segment.purpose,
            category=TripCategory.BUSINESS,
            driver=AI_DRIVER,
        ))
        odometer += distance

    if not entries:
        raise NoValidRouteError()
    return entries


def export_csv(ledger: Sequence[LogbookEntry]) -> str:
    """Render the ledger as CSV, one row per trip."""
    rows = [
        f'{e.trip_date.isoformat()},{e.vehicle},{e.driver},"{e.purpose}",{e.category.value},'
        f'{e.start_odo},{e.end_odo},{e.distance}'
        for e in ledger
    ]
    return CSV_HEADER + "\n" + "\n".join(rows)


def export_filename(today: date) -> str:
    """Download name for a CSV export."""
    return f"Logbook_Export_{today.isoformat()}.csv"


def logbook_stats(ledger: Sequence[LogbookEntry], rate_per_km: Decimal = Decimal("0.85")) -> LogbookStats:
    """Business distance, estimated tax claim and business trip count."""
    business = [e for e in ledger if e.category == TripCategory.BUSINESS]
    business_km = sum(e.distance for e in business)
    return LogbookStats(
        business_km=business_km,
        estimated_claim=(Decimal(business_km) * rate_per_km).quantize(Decimal("0.01")),
        business_trips=len(business),
    )


def toggle_purpose_tag(purpose: str, tag: str) -> str:
    """Add or remove a tag in a comma-separated purpose string."""
    tags = [t.strip() for t in purpose.split(",") if t.strip()]
    if tag in tags:
        tags = [t for t in tags if t != tag]
    else:
        tags.append(tag)
    return ", ".join(tags)


class LogbookService:
    """Persist logbook trips, keeping the odometer chain continuous."""

    def __init__(self, db: Database, estimator: Optional[RouteEstimatorProtocol] = None):
        self.db = db
        self.config = get_config()
        self._estimator = estimator

    @property
    def estimator(self) -> RouteEstimatorProtocol:
        if self._estimator is None:
            from services.route_estimator import RouteEstimator
            self._estimator = RouteEstimator()
        return self._estimator

    def entries(self) -> list[LogbookEntry]:
        """The ledger, latest trip first."""
        return self.db.list_logbook_entries()

    def new_trip(self, today: Optional[date] = None, vehicle: Optional[str] = None) -> TripDraft:
        """Draft a manual trip continuing from the last reading."""
        return propose_new_trip(
            self.entries(),
            today or date.today(),
            vehicle or self.config.vehicle_name,
        )

    def add_trip(self, draft: TripDraft) -> LogbookEntry:
        """Validate and store a manual trip."""
        entry = submit_trip(draft)
        self.db.add_logbook_entry(entry)
        logger.info("Logged %d km trip: %s", entry.distance, entry.purpose)
        return entry

    def import_today(
        self,
        today: Optional[date] = None,
        start_point: Optional[str] = None,
        vehicle: Optional[str] = None,
    ) -> list[LogbookEntry]:
        """Import today's checked-out appointments as business trips."""
        today = today or date.today()
        if not _import_lock.acquire(blocking=False):
            raise ImportInProgressError()
        try:
            entries = import_from_schedule(
                self.db.list_calendar_events(on_date=today),
                today,
                latest_odometer(self.entries()),
                start_point or self.config.office_address,
                self.estimator,
                vehicle=vehicle or self.config.vehicle_name,
            )
            self.db.add_logbook_entries(entries)
        finally:
            _import_lock.release()
        logger.info("Imported %d logbook entries from the schedule", len(entries))
        return entries

    def stats(self) -> LogbookStats:
        """Statistics over the whole ledger."""
        return logbook_stats(self.entries(), self.config.logbook_rate_per_km)
