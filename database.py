"""Database setup and connection management for the SQLite record store."""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Generator, Optional

from models import (
    CalendarEvent,
    CalendarEventType,
    FollowUpCategory,
    FollowUpStatus,
    InspectionFollowUp,
    LogbookEntry,
    MaintenancePriority,
    MaintenanceStatus,
    MaintenanceTask,
    Property,
    PropertyStatus,
    PropertyType,
    RentFrequency,
    TripCategory,
)

logger = logging.getLogger(__name__)


# Database schema version for migrations
SCHEMA_VERSION = 1

SQLITE_SCHEMA = """
-- Properties table
CREATE TABLE IF NOT EXISTS properties (
    id TEXT PRIMARY KEY,
    address TEXT NOT NULL,
    owner_name TEXT NOT NULL DEFAULT '',
    tenant_name TEXT,
    status TEXT NOT NULL DEFAULT 'Vacant',
    property_type TEXT NOT NULL DEFAULT 'Residential',
    rent_amount DECIMAL(10,2) NOT NULL DEFAULT 0,
    rent_frequency TEXT NOT NULL DEFAULT 'Weekly',
    bond_amount DECIMAL(10,2) NOT NULL DEFAULT 0,
    next_inspection_date DATE,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Inspection follow-up items, owned by one property
CREATE TABLE IF NOT EXISTS inspection_follow_ups (
    id TEXT PRIMARY KEY,
    property_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    description TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'Pending',
    category TEXT NOT NULL DEFAULT 'Other',
    FOREIGN KEY (property_id) REFERENCES properties(id)
);

-- Maintenance requests
CREATE TABLE IF NOT EXISTS maintenance_tasks (
    id TEXT PRIMARY KEY,
    property_id TEXT NOT NULL,
    property_address TEXT NOT NULL,
    issue TEXT NOT NULL,
    priority TEXT NOT NULL DEFAULT 'Medium',
    status TEXT NOT NULL DEFAULT 'New',
    request_date DATE NOT NULL
);

-- Calendar appointments
CREATE TABLE IF NOT EXISTS calendar_events (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    event_date DATE NOT NULL,
    event_time TEXT,
    event_type TEXT NOT NULL DEFAULT 'Other',
    property_address TEXT,
    description TEXT,
    checked_out BOOLEAN DEFAULT 0
);

-- Vehicle logbook (seq keeps insertion order for same-day trips)
CREATE TABLE IF NOT EXISTS logbook_entries (
    seq INTEGER PRIMARY KEY AUTOINCREMENT,
    id TEXT UNIQUE NOT NULL,
    trip_date DATE NOT NULL,
    vehicle TEXT NOT NULL,
    start_odo INTEGER NOT NULL,
    end_odo INTEGER NOT NULL,
    distance INTEGER NOT NULL,
    purpose TEXT,
    category TEXT NOT NULL DEFAULT 'Business',
    driver TEXT NOT NULL
);

-- Auxiliary state blobs (dismissed notifications, partner settings)
CREATE TABLE IF NOT EXISTS app_state (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);
"""


class Database:
    """SQLite-backed record store."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Ensure the database directory exists."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def connection(self) -> Generator[sqlite3.Connection, None, None]:
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def initialize(self) -> None:
        """Initialize the database schema."""
        with self.connection() as conn:
            conn.executescript(SQLITE_SCHEMA)
            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            if cursor.fetchone() is None:
                conn.execute(
                    "INSERT INTO schema_version (version) VALUES (?)",
                    (SCHEMA_VERSION,),
                )
                logger.debug("Initialised schema version %s at %s", SCHEMA_VERSION, self.db_path)

    def get_schema_version(self) -> int:
        """Get current schema version."""
        with self.connection() as conn:
            row = conn.execute("SELECT version FROM schema_version LIMIT 1").fetchone()
            return row["version"] if row else 0

    # Property operations

    def save_property(self, prop: Property) -> Property:
        """Insert or replace a property together with its follow-up items."""
        with self.connection() as conn:
            conn.execute(
                """INSERT INTO properties (
                    id, address, owner_name, tenant_name, status, property_type,
                    rent_amount, rent_frequency, bond_amount, next_inspection_date
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    address = excluded.address,
                    owner_name = excluded.owner_name,
                    tenant_name = excluded.tenant_name,
                    status = excluded.status,
                    property_type = excluded.property_type,
                    rent_amount = excluded.rent_amount,
                    rent_frequency = excluded.rent_frequency,
                    bond_amount = excluded.bond_amount,
                    next_inspection_date = excluded.next_inspection_date""",
                (
                    prop.id,
                    prop.address,
                    prop.owner_name,
                    prop.tenant_name or None,
                    prop.status.value,
                    prop.property_type.value,
                    str(prop.rent_amount),
                    prop.rent_frequency.value,
                    str(prop.bond_amount),
                    prop.next_inspection_date.isoformat() if prop.next_inspection_date else None,
                ),
            )
            # The follow-up list is owned by the property: replace it wholesale
            conn.execute("DELETE FROM inspection_follow_ups WHERE property_id = ?", (prop.id,))
            for position, item in enumerate(prop.inspection_follow_ups):
                conn.execute(
                    """INSERT INTO inspection_follow_ups
                    (id, property_id, position, description, status, category)
                    VALUES (?, ?, ?, ?, ?, ?)""",
                    (item.id, prop.id, position, item.description, item.status.value, item.category.value),
                )
        return prop

    def get_property(self, property_id: str) -> Optional[Property]:
        """Get a property by ID."""
        with self.connection() as conn:
            row = conn.execute("SELECT * FROM properties WHERE id = ?", (property_id,)).fetchone()
            if row is None:
                return None
            prop = self._row_to_property(row)
            prop.inspection_follow_ups = self._load_follow_ups(conn, property_id)
            return prop

    def list_properties(self) -> list[Property]:
        """List all properties, ordered by address."""
        with self.connection() as conn:
            rows = conn.execute("SELECT * FROM properties ORDER BY address").fetchall()
            properties = []
            for row in rows:
                prop = self._row_to_property(row)
                prop.inspection_follow_ups = self._load_follow_ups(conn, prop.id)
                properties.append(prop)
            return properties

    def _load_follow_ups(self, conn: sqlite3.Connection, property_id: str) -> list[InspectionFollowUp]:
        rows = conn.execute(
            "SELECT * FROM inspection_follow_ups WHERE property_id = ? ORDER BY position",
            (property_id,),
        ).fetchall()
        return [
            InspectionFollowUp(
                id=row["id"],
                description=row["description"],
                status=FollowUpStatus(row["status"]),
                category=FollowUpCategory(row["category"]),
            )
            for row in rows
        ]

    def _row_to_property(self, row) -> Property:
        """Convert database row to Property object."""
        return Property(
            id=row["id"],
            address=row["address"],
            owner_name=row["owner_name"] or "",
            tenant_name=row["tenant_name"] or None,
            status=PropertyStatus(row["status"]),
            property_type=PropertyType(row["property_type"]),
            rent_amount=Decimal(str(row["rent_amount"])),
            rent_frequency=RentFrequency(row["rent_frequency"]),
            bond_amount=Decimal(str(row["bond_amount"])),
            next_inspection_date=self._parse_date(row["next_inspection_date"]),
            created_at=self._parse_datetime(row["created_at"]),
        )

    def _parse_datetime(self, value) -> datetime:
        """Parse datetime from database (handles both string and datetime)."""
        if value is None:
            return datetime.now()
        if isinstance(value, datetime):
            return value
        return datetime.fromisoformat(value)

    def _parse_date(self, value) -> Optional[date]:
        """Parse date from database (handles both string and date)."""
        if value is None:
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return date.fromisoformat(value)

    # Maintenance operations

    def save_maintenance_task(self, task: MaintenanceTask) -> None:
        """Insert or replace a maintenance task."""
        with self.connection() as conn:
            conn.execute(
                """INSERT OR REPLACE INTO maintenance_tasks
                (id, property_id, property_address, issue, priority, status, request_date)
                VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    task.id,
                    task.property_id,
                    task.property_address,
                    task.issue,
                    task.priority.value,
                    task.status.value,
                    task.request_date.isoformat(),
                ),
            )

    def list_maintenance_tasks(self) -> list[MaintenanceTask]:
        """List maintenance tasks, newest request first."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM maintenance_tasks ORDER BY request_date DESC, rowid DESC"
            ).fetchall()
            return [
                MaintenanceTask(
                    id=row["id"],
                    property_id=row["property_id"],
                    property_address=row["property_address"],
                    issue=row["issue"],
                    priority=MaintenancePriority(row["priority"]),
                    status=MaintenanceStatus(row["status"]),
                    request_date=self._parse_date(row["request_date"]),
                )
                for row in rows
            ]

    # Calendar operations

    def add_calendar_event(self, event: CalendarEvent) -> None:
        """Add an appointment to the calendar."""
        with self.connection() as conn:
            conn.execute(
                """INSERT INTO calendar_events
                (id, title, event_date, event_time, event_type, property_address, description, checked_out)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    event.id,
                    event.title,
                    event.event_date.isoformat(),
                    event.time,
                    event.event_type.value,
                    event.property_address,
                    event.description,
                    event.checked_out,
                ),
            )

    def list_calendar_events(self, on_date: Optional[date] = None) -> list[CalendarEvent]:
        """List calendar events, optionally for a single day."""
        with self.connection() as conn:
            query = "SELECT * FROM calendar_events"
            params: list = []
            if on_date is not None:
                query += " WHERE event_date = ?"
                params.append(on_date.isoformat())
            query += " ORDER BY event_date, event_time"
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_event(row) for row in rows]

    def set_event_checked_out(self, event_id: str, checked_out: bool = True) -> bool:
        """Mark attendance on an appointment. Returns False if it does not exist."""
        with self.connection() as conn:
            cursor = conn.execute(
                "UPDATE calendar_events SET checked_out = ? WHERE id = ?",
                (checked_out, event_id),
            )
            return cursor.rowcount > 0

    def _row_to_event(self, row) -> CalendarEvent:
        """Convert database row to CalendarEvent object."""
        return CalendarEvent(
            id=row["id"],
            title=row["title"],
            event_date=self._parse_date(row["event_date"]),
            time=row["event_time"],
            event_type=CalendarEventType(row["event_type"]),
            property_address=row["property_address"],
            description=row["description"] or "",
            checked_out=bool(row["checked_out"]),
        )

    # Logbook operations

    def add_logbook_entry(self, entry: LogbookEntry) -> None:
        """Append a trip to the logbook."""
        self.add_logbook_entries([entry])

    def add_logbook_entries(self, entries: list[LogbookEntry]) -> None:
        """Append several trips in one transaction; none are kept if any insert fails."""
        with self.connection() as conn:
            conn.executemany(
                """INSERT INTO logbook_entries
                (id, trip_date, vehicle, start_odo, end_odo, distance, purpose, category, driver)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                [
                    (
                        entry.id,
                        entry.trip_date.isoformat(),
                        entry.vehicle,
                        entry.start_odo,
                        entry.end_odo,
                        entry.distance,
                        entry.purpose,
                        entry.category.value,
                        entry.driver,
                    )
                    for entry in entries
                ],
            )

    def list_logbook_entries(self) -> list[LogbookEntry]:
        """List trips latest first; same-day trips by most recent insertion."""
        with self.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM logbook_entries ORDER BY trip_date DESC, seq DESC"
            ).fetchall()
            return [
                LogbookEntry(
                    id=row["id"],
                    trip_date=self._parse_date(row["trip_date"]),
                    vehicle=row["vehicle"],
                    start_odo=row["start_odo"],
                    end_odo=row["end_odo"],
                    distance=row["distance"],
                    purpose=row["purpose"] or "",
                    category=TripCategory(row["category"]),
                    driver=row["driver"],
                )
                for row in rows
            ]

    # Auxiliary state

    def get_state(self, key: str) -> Optional[str]:
        """Get a raw state blob."""
        with self.connection() as conn:
            row = conn.execute("SELECT value FROM app_state WHERE key = ?", (key,)).fetchone()
            return row["value"] if row else None

    def set_state(self, key: str, value: str) -> None:
        """Store a raw state blob."""
        with self.connection() as conn:
            conn.execute(
                """INSERT INTO app_state (key, value) VALUES (?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value""",
                (key, value),
            )
