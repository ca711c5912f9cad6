"""Tests for the command line interface."""

from datetime import date

import pytest
from typer.testing import CliRunner

import main
from models import CalendarEvent, Property, PropertyStatus, TripSegment
from services.logbook import LogbookService
from services.state_store import StateStore

runner = CliRunner()


@pytest.fixture
def cli_db(db, monkeypatch):
    monkeypatch.setattr(main, "get_db", lambda: db)
    return db


class FakeEstimator:
    def __init__(self, segments):
        self.segments = segments

    def estimate_route(self, stops, start_address):
        return self.segments


def test_property_add_and_list(cli_db):
    """Test onboarding a property from options."""
    result = runner.invoke(main.app, [
        "property", "add", "--address", "12 Smith St", "--owner", "Olive",
        "--tenant", "Jane", "--type", "Residential", "--rent", "600",
    ])
    assert result.exit_code == 0
    assert "Property created" in result.output

    props = cli_db.list_properties()
    assert len(props) == 1
    assert props[0].status == PropertyStatus.LEASED

    result = runner.invoke(main.app, ["property", "list"])
    assert "12 Smith St" in result.output


def test_property_show_not_found(cli_db):
    """Test an unknown property exits with an error."""
    result = runner.invoke(main.app, ["property", "show", "missing"])
    assert result.exit_code == 1
    assert "not found" in result.output


def test_complete_inspection(cli_db):
    """Test completing an inspection schedules the next one."""
    cli_db.save_property(Property(id="p1", address="12 Smith St"))

    result = runner.invoke(main.app, ["property", "complete-inspection", "p1"])

    assert result.exit_code == 0
    assert cli_db.get_property("p1").next_inspection_date is not None


def test_followup_add_and_toggle(cli_db):
    """Test follow-ups can be added and toggled."""
    cli_db.save_property(Property(id="p1", address="12 Smith St"))

    result = runner.invoke(main.app, ["property", "followup-add", "p1", "Clean oven", "--category", "Cleaning"])
    assert result.exit_code == 0
    item_id = cli_db.get_property("p1").inspection_follow_ups[0].id

    result = runner.invoke(main.app, ["property", "followup-toggle", "p1", item_id])
    assert result.exit_code == 0
    assert cli_db.get_property("p1").pending_follow_ups == 0


def test_connect_utilities_unconfigured(cli_db):
    """Test connecting utilities without a partner points at settings."""
    cli_db.save_property(Property(id="p1", address="12 Smith St", tenant_name="Jane"))

    result = runner.invoke(main.app, ["property", "connect-utilities", "p1"])

    assert result.exit_code == 1
    assert "No utilities partner configured" in result.output


def test_settings_partner_then_connect(cli_db):
    """Test a saved partner enables the referral."""
    cli_db.save_property(Property(id="p1", address="12 Smith St", tenant_name="Jane"))

    runner.invoke(main.app, ["settings", "partner", "--utilities-id", "AG-1"])
    assert StateStore(cli_db).load_partner_settings().value.utilities_id == "AG-1"

    result = runner.invoke(main.app, ["property", "connect-utilities", "p1"])
    assert result.exit_code == 0
    assert "Movinghub" in result.output


def test_notifications_dismiss_all(cli_db):
    """Test dismiss-all empties the feed."""
    cli_db.save_property(Property(id="v", address="Vacant St", status=PropertyStatus.VACANT))

    result = runner.invoke(main.app, ["notifications", "dismiss-all"])
    assert "Dismissed 1" in result.output

    result = runner.invoke(main.app, ["notifications", "list"])
    assert "all caught up" in result.output


def test_logbook_add_rejects_bad_odometer(cli_db):
    """Test an end reading not above the start is refused."""
    result = runner.invoke(main.app, ["logbook", "add", "--start", "100", "--end", "100", "--purpose", "x"])

    assert result.exit_code == 1
    assert "End odometer must be greater than start odometer." in result.output
    assert LogbookService(cli_db).entries() == []


def test_logbook_add(cli_db):
    """Test a manual trip is logged."""
    result = runner.invoke(main.app, ["logbook", "add", "--start", "100", "--end", "150", "--purpose", "Viewing"])

    assert result.exit_code == 0
    assert LogbookService(cli_db).entries()[0].distance == 50


def test_logbook_import_nothing(cli_db):
    """Test importing without checked-out appointments explains why."""
    result = runner.invoke(main.app, ["logbook", "import"])
    assert result.exit_code == 1
    assert "No verified" in result.output


def test_logbook_import(cli_db, monkeypatch):
    """Test importing today's schedule logs the estimated trips."""
    cli_db.add_calendar_event(CalendarEvent(
        id="e1", title="Inspection", event_date=date.today(), time="10:00",
        property_address="12 Smith St", checked_out=True,
    ))
    monkeypatch.setattr(
        LogbookService, "estimator",
        property(lambda self: FakeEstimator([TripSegment("Out", 4.2), TripSegment("Back", 3.1)])),
    )

    result = runner.invoke(main.app, ["logbook", "import", "--from", "Office"])

    assert result.exit_code == 0
    assert "Generated 2 logbook entries" in result.output
    assert [e.end_odo for e in LogbookService(cli_db).entries()] == [9, 5]


def test_logbook_export(cli_db, tmp_path):
    """Test export writes a dated CSV file."""
    runner.invoke(main.app, ["logbook", "add", "--start", "0", "--end", "12", "--purpose", "Viewing"])

    result = runner.invoke(main.app, ["logbook", "export", "--output-dir", str(tmp_path)])

    assert result.exit_code == 0
    files = list(tmp_path.glob("Logbook_Export_*.csv"))
    assert len(files) == 1
    assert files[0].read_text().startswith("Date,Vehicle,Driver,Purpose")


def test_calendar_checkout(cli_db):
    """Test checking out an appointment."""
    cli_db.add_calendar_event(CalendarEvent(id="e1", title="Viewing", event_date=date.today()))

    result = runner.invoke(main.app, ["calendar", "checkout", "e1"])

    assert result.exit_code == 0
    assert cli_db.list_calendar_events()[0].checked_out


def test_tenancy_list_view(cli_db):
    """Test the arrears view lists only properties in arrears."""
    cli_db.save_property(Property(id="a", address="Arrears St", tenant_name="T", status=PropertyStatus.ARREARS))
    cli_db.save_property(Property(id="b", address="Quiet St", tenant_name="U", status=PropertyStatus.LEASED))

    result = runner.invoke(main.app, ["tenancy", "list", "--view", "arrears"])

    assert result.exit_code == 0
    assert "Arrears St" in result.output
    assert "Quiet St" not in result.output


@pytest.mark.parametrize("command", ["followup-toggle", "followup-remove"])
def test_followup_unknown_item(cli_db, command):
    """Test an unknown follow-up id is reported and nothing is saved."""
    cli_db.save_property(Property(id="p1", address="12 Smith St"))

    result = runner.invoke(main.app, ["property", command, "p1", "missing"])

    assert result.exit_code == 1
    assert "Follow-up item not found" in result.output
