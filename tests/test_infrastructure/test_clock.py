"""Tests for UTC/local time conversions."""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from nudge.infrastructure.clock import (
    ensure_utc,
    format_instant,
    is_valid_hhmm,
    local_at,
    minutes_of_day,
    parse_hhmm,
    parse_instant,
    resolve_zone,
    to_local,
)


class TestZones:
    def test_resolve_known_zone(self):
        assert resolve_zone("Europe/Paris") == ZoneInfo("Europe/Paris")

    def test_unknown_zone_falls_back_to_utc(self):
        assert resolve_zone("Nowhere/Special") == ZoneInfo("UTC")
        assert resolve_zone(None) == ZoneInfo("UTC")

    def test_to_local_keeps_instant(self):
        instant = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)
        local = to_local(instant, "Asia/Tokyo")
        assert local.hour == 21
        assert local == instant

    def test_local_at_across_dst(self):
        # US clocks spring forward on 2025-03-09
        zone = ZoneInfo("America/New_York")
        before = local_at(date(2025, 3, 8), "07:00", zone)
        after = local_at(date(2025, 3, 9), "07:00", zone)
        assert ensure_utc(before).hour == 12
        assert ensure_utc(after).hour == 11

    def test_naive_treated_as_utc(self):
        naive = datetime(2025, 1, 6, 12, 0)
        assert ensure_utc(naive) == datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)


class TestTimeOfDay:
    def test_parse_hhmm(self):
        assert parse_hhmm("07:30") == (7, 30)
        assert parse_hhmm("23:59") == (23, 59)

    @pytest.mark.parametrize("value", ["7:30", "24:00", "12:60", "noon", ""])
    def test_invalid_hhmm(self, value):
        assert not is_valid_hhmm(value)
        with pytest.raises(ValueError):
            parse_hhmm(value)

    def test_minutes_of_day(self):
        assert minutes_of_day(datetime(2025, 1, 1, 13, 45)) == 13 * 60 + 45


class TestStorageFormat:
    def test_fixed_width_utc(self):
        text = format_instant(datetime(2025, 1, 6, 12, 0, tzinfo=ZoneInfo("Europe/Berlin")))
        assert text == "2025-01-06T11:00:00.000000Z"

    def test_lexical_order_is_chronological(self):
        base = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
        instants = [base + timedelta(microseconds=1), base + timedelta(hours=5), base]
        assert sorted(format_instant(i) for i in instants) == [format_instant(i) for i in sorted(instants)]

    def test_parse_round_trip(self):
        instant = datetime(2025, 1, 6, 12, 0, 0, 123456, tzinfo=timezone.utc)
        assert parse_instant(format_instant(instant)) == instant

    def test_parse_accepts_iso_offsets(self):
        assert parse_instant("2025-01-06T13:00:00+01:00") == datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)
        assert parse_instant("2025-01-06T12:00:00Z") == datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)
