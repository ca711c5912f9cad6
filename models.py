"""Data models for proptrust."""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class PropertyStatus(str, Enum):
    """Management status of a property."""
    LEASED = "Leased"
    VACANT = "Vacant"
    ARREARS = "Arrears"
    MAINTENANCE = "Maintenance"


class PropertyType(str, Enum):
    """Type of managed property. Drives the routine inspection cadence."""
    RESIDENTIAL = "Residential"
    COMMERCIAL = "Commercial"


class RentFrequency(str, Enum):
    """Frequency of rent payments."""
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    ANNUALLY = "Annually"


class FollowUpStatus(str, Enum):
    """Status of an inspection follow-up item."""
    PENDING = "Pending"
    COMPLETED = "Completed"


class FollowUpCategory(str, Enum):
    """Category of an inspection follow-up item."""
    CLEANING = "Cleaning"
    DAMAGE = "Damage"
    GARDEN = "Garden"
    OTHER = "Other"


class MaintenancePriority(str, Enum):
    """Priority of a maintenance request."""
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


class MaintenanceStatus(str, Enum):
    """Workflow status of a maintenance request."""
    NEW = "New"
    QUOTE = "Quote"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class CalendarEventType(str, Enum):
    """Kind of calendar appointment."""
    INSPECTION = "Inspection"
    MAINTENANCE = "Maintenance"
    LEASE = "Lease"
    LEGAL = "Legal"
    VIEWING = "Viewing"
    CALL = "Call"
    EMAIL = "Email"
    OTHER = "Other"


class TripCategory(str, Enum):
    """Tax category of a logbook trip."""
    BUSINESS = "Business"
    PRIVATE = "Private"


class Severity(str, Enum):
    """Severity of a dashboard notification."""
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


MANUAL_DRIVER = "Current User"
AI_DRIVER = "AI Auto-Log"


@dataclass
class InspectionFollowUp:
    """An action item raised at an inspection."""
    id: str = ""
    description: str = ""
    status: FollowUpStatus = FollowUpStatus.PENDING
    category: FollowUpCategory = FollowUpCategory.OTHER


@dataclass
class Property:
    """A managed rental property."""
    id: str = ""
    address: str = ""
    owner_name: str = ""
    tenant_name: Optional[str] = None
    status: PropertyStatus = PropertyStatus.VACANT
    property_type: PropertyType = PropertyType.RESIDENTIAL
    rent_amount: Decimal = Decimal("0.00")
    rent_frequency: RentFrequency = RentFrequency.WEEKLY
    bond_amount: Decimal = Decimal("0.00")
    next_inspection_date: Optional[date] = None
    inspection_follow_ups: list[InspectionFollowUp] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)

    def __str__(self) -> str:
        return self.address

    @property
    def is_occupied(self) -> bool:
        """A named tenant means occupied, whatever the status says."""
        return bool(self.tenant_name)

    @property
    def monthly_rent(self) -> Decimal:
        """Calculate monthly rent equivalent."""
        if self.rent_frequency == RentFrequency.WEEKLY:
            return (self.rent_amount * 52) / 12
        elif self.rent_frequency == RentFrequency.ANNUALLY:
            return self.rent_amount / 12
        return self.rent_amount

    @property
    def pending_follow_ups(self) -> int:
        """Number of follow-up items still pending."""
        return sum(1 for item in self.inspection_follow_ups if item.status == FollowUpStatus.PENDING)


@dataclass
class MaintenanceTask:
    """A maintenance request against a property."""
    id: str = ""
    property_id: str = ""
    property_address: str = ""
    issue: str = ""
    priority: MaintenancePriority = MaintenancePriority.MEDIUM
    status: MaintenanceStatus = MaintenanceStatus.NEW
    request_date: date = field(default_factory=date.today)


@dataclass
class CalendarEvent:
    """An appointment in the schedule."""
    id: str = ""
    title: str = ""
    event_date: date = field(default_factory=date.today)
    time: Optional[str] = None  # "HH:MM"
    event_type: CalendarEventType = CalendarEventType.OTHER
    property_address: Optional[str] = None
    description: str = ""
    checked_out: bool = False


@dataclass
class LogbookEntry:
    """A single trip in the vehicle logbook."""
    id: str = ""
    trip_date: date = field(default_factory=date.today)
    vehicle: str = ""
    start_odo: int = 0
    end_odo: int = 0
    distance: int = 0
    purpose: str = ""
    category: TripCategory = TripCategory.BUSINESS
    driver: str = MANUAL_DRIVER


@dataclass
class TripDraft:
    """Editable state of a trip before it is submitted."""
    trip_date: date = field(default_factory=date.today)
    vehicle: str = ""
    start_odo: int = 0
    end_odo: int = 0
    purpose: str = ""
    category: TripCategory = TripCategory.BUSINESS


@dataclass(frozen=True)
class RouteStop:
    """A stop handed to the route estimator."""
    address: str
    time: Optional[str] = None


@dataclass(frozen=True)
class TripSegment:
    """A leg of the day's route as estimated by the AI service."""
    purpose: str
    distance: float


@dataclass(frozen=True)
class NotificationItem:
    """A derived dashboard alert. Never persisted."""
    id: str
    severity: Severity
    title: str
    message: str
    time: str
    category: str


@dataclass
class PartnerSettings:
    """Utilities connection partner configuration."""
    utilities_id: str = ""
    utilities_provider: str = ""
