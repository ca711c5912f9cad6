"""Portfolio statistics for the dashboard and tenancy screens."""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Union

from models import Property, PropertyStatus
from services.notifications import INSPECTION_WINDOW_DAYS, days_until

TENANCY_VIEWS = ("all", "occupied", "vacant", "arrears")


@dataclass(frozen=True)
class DashboardStats:
    """Headline figures for the portfolio dashboard."""
    total_assets: int
    leased_count: int
    occupancy_rate: str
    estimated_monthly_yield: Decimal
    total_bond_held: Decimal


@dataclass(frozen=True)
class TenancyStats:
    """Headline figures for the tenancy screen."""
    occupied_count: int
    arrears_count: int
    vacancy_rate: str


def dashboard_stats(properties: Iterable[Property]) -> DashboardStats:
    """Occupancy, rent roll and bond totals across the portfolio."""
    properties = list(properties)
    total = len(properties)
    leased = sum(1 for p in properties if p.status == PropertyStatus.LEASED)
    occupancy = f"{leased / total * 100:.1f}" if total else "0.0"
    return DashboardStats(
        total_assets=total,
        leased_count=leased,
        occupancy_rate=occupancy,
        estimated_monthly_yield=sum((p.monthly_rent for p in properties), Decimal("0")),
        total_bond_held=sum((p.bond_amount for p in properties), Decimal("0")),
    )


def tenancy_stats(properties: Iterable[Property]) -> TenancyStats:
    """Occupants, arrears and vacancy. Occupancy here means a named tenant."""
    properties = list(properties)
    total = len(properties)
    occupied = sum(1 for p in properties if p.is_occupied)
    vacancy = f"{(total - occupied) / total * 100:.1f}" if total else "0"
    return TenancyStats(
        occupied_count=occupied,
        arrears_count=sum(1 for p in properties if p.status == PropertyStatus.ARREARS),
        vacancy_rate=vacancy,
    )


def filter_tenancies(properties: Iterable[Property], search: str = "", view: str = "all") -> list[Property]:
    """Search by tenant, address or owner, then narrow to one view."""
    if view not in TENANCY_VIEWS:
        raise ValueError(f"Unknown tenancy view: {view}")
    needle = search.lower()
    matches = []
    for prop in properties:
        haystacks = (prop.tenant_name or "", prop.address, prop.owner_name)
        if not any(needle in h.lower() for h in haystacks):
            continue
        if view == "occupied" and not prop.is_occupied:
            continue
        if view == "vacant" and prop.is_occupied:
            continue
        if view == "arrears" and prop.status != PropertyStatus.ARREARS:
            continue
        matches.append(prop)
    return matches


def upcoming_inspections(
    properties: Iterable[Property],
    now: Union[date, datetime],
    days: int = INSPECTION_WINDOW_DAYS,
) -> list[Property]:
    """Properties with an inspection in the next `days` days, soonest first."""
    upcoming = [
        p for p in properties
        if p.next_inspection_date is not None and 0 <= days_until(p.next_inspection_date, now) <= days
    ]
    upcoming.sort(key=lambda p: p.next_inspection_date)
    return upcoming
