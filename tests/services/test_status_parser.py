"""Tests for the status-updates tokenizer and timestamp parsing."""

from datetime import UTC, datetime

import pytest

from shiptrack.db.models import OrderStatus
from shiptrack.errors.domain import InvalidStatusError
from shiptrack.services.status_constants import get_status_options, normalize_status
from shiptrack.services.status_parser import (
    StatusEvent,
    format_status_events,
    iter_status_events,
    parse_event_timestamp,
    parse_status_entry,
    parse_status_updates,
    to_iso_timestamp,
)

RAW = "picked_up Warehouse-A 1/2/2024 | intransit Hub B 3/2/2024 10:30"


class TestParseStatusEntry:
    """Tests for single-entry tokenizing."""

    def test_status_location_and_date(self):
        event = parse_status_entry("intransit Hub B 3/2/2024 10:30")
        assert event == StatusEvent("intransit", "Hub B", "3/2/2024 10:30")

    def test_no_date_keeps_location(self):
        """Entries without a date have no timestamp; the rest is location."""
        event = parse_status_entry("delivered Front Door")
        assert event.location == "Front Door"
        assert event.timestamp is None

    def test_status_only(self):
        event = parse_status_entry("  cancelled  ")
        assert event == StatusEvent("cancelled")

    def test_date_directly_after_status(self):
        event = parse_status_entry("picked_up 01/02/2024")
        assert event.location is None
        assert event.timestamp == "01/02/2024"

    def test_first_date_wins(self):
        """Everything from the first date-like token is timestamp text."""
        event = parse_status_entry("intransit Hub 1/2/2024 then 2/2/2024")
        assert event.location == "Hub"
        assert event.timestamp == "1/2/2024 then 2/2/2024"

    def test_blank_entry(self):
        assert parse_status_entry("   ") is None


class TestParseStatusUpdates:
    """Tests for the pipe-delimited field."""

    def test_left_to_right(self):
        events = list(parse_status_updates(RAW))
        assert [e.status_type for e in events] == ["picked_up", "intransit"]
        assert events[0].location == "Warehouse-A"
        assert events[0].timestamp == "1/2/2024"

    @pytest.mark.parametrize("raw", [None, "", "   ", "|", " | | "])
    def test_empty_input_yields_nothing(self, raw):
        assert list(parse_status_updates(raw)) == []
        assert not parse_status_updates(raw)

    def test_empty_entries_skipped(self):
        events = list(iter_status_events("picked_up || delivered"))
        assert [e.status_type for e in events] == ["picked_up", "delivered"]

    def test_sequence_is_restartable(self):
        """Iterating twice tokenizes from the first entry both times."""
        seq = parse_status_updates(RAW)
        assert list(seq) == list(seq)
        assert len(seq) == 2

    def test_round_trip(self):
        assert format_status_events(parse_status_updates(RAW)) == RAW


class TestParseEventTimestamp:
    """Tests for best-effort timestamp conversion."""

    def test_day_first(self):
        assert parse_event_timestamp("1/2/2024") == datetime(2024, 2, 1, tzinfo=UTC)

    def test_month_first_when_requested(self):
        parsed = parse_event_timestamp("1/2/2024", dayfirst=False)
        assert parsed == datetime(2024, 1, 2, tzinfo=UTC)

    def test_date_and_time(self):
        parsed = parse_event_timestamp("3/2/2024 10:30")
        assert parsed == datetime(2024, 2, 3, 10, 30, tzinfo=UTC)

    def test_iso_is_not_read_day_first(self):
        parsed = parse_event_timestamp("2024-02-01T08:00:00+00:00")
        assert parsed == datetime(2024, 2, 1, 8, 0, tzinfo=UTC)

    def test_trailing_garbage_keeps_date(self):
        parsed = parse_event_timestamp("5/2/2024 garbage xyzzy")
        assert parsed == datetime(2024, 2, 5, tzinfo=UTC)

    @pytest.mark.parametrize("raw", [None, "", "   ", "soon-ish"])
    def test_unparseable_is_none(self, raw):
        assert parse_event_timestamp(raw) is None

    def test_to_iso_timestamp_is_utc(self):
        assert to_iso_timestamp(datetime(2024, 2, 1)) == "2024-02-01T00:00:00+00:00"


class TestNormalizeStatus:
    """Tests for mapping free text onto OrderStatus."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("delivered", OrderStatus.delivered),
            ("DELIVERED", OrderStatus.delivered),
            ("In Transit", OrderStatus.intransit),
            ("in_transit", OrderStatus.intransit),
            ("Out-For-Delivery", OrderStatus.out_for_delivery),
            ("canceled", OrderStatus.cancelled),
            ("on the way", OrderStatus.on_the_way),
            (OrderStatus.picked_up, OrderStatus.picked_up),
        ],
    )
    def test_known_spellings(self, raw, expected):
        assert normalize_status(raw) == expected

    def test_unknown_status_raises(self):
        with pytest.raises(InvalidStatusError) as exc_info:
            normalize_status("teleported")
        assert exc_info.value.code == "E-2001"


def test_status_options_follow_enum_order():
    """Options list every status once, in declaration order."""
    options = get_status_options()
    assert [o["value"] for o in options] == [s.value for s in OrderStatus]
    assert options[0] == {"value": "yet_to_be_picked", "label": "Yet to be Picked"}
