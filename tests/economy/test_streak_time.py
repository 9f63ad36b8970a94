from __future__ import annotations

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.economy.streak.time import day_difference, resolve_reference_timezone, to_calendar_day

UTC = timezone.utc


def test_to_calendar_day_uses_reference_timezone() -> None:
    instant = datetime(2024, 1, 1, 23, 30, tzinfo=UTC)

    assert to_calendar_day(instant, UTC) == date(2024, 1, 1)
    assert to_calendar_day(instant, ZoneInfo("Europe/Berlin")) == date(2024, 1, 2)
    assert to_calendar_day(instant, ZoneInfo("America/New_York")) == date(2024, 1, 1)


def test_to_calendar_day_treats_naive_instant_as_utc() -> None:
    naive = datetime(2024, 1, 1, 23, 30)

    assert to_calendar_day(naive, ZoneInfo("Europe/Berlin")) == date(2024, 1, 2)


def test_instants_on_same_local_day_map_to_same_day() -> None:
    berlin = ZoneInfo("Europe/Berlin")
    early = datetime(2024, 6, 1, 22, 5, tzinfo=UTC)  # 00:05 local on June 2
    late = datetime(2024, 6, 2, 21, 55, tzinfo=UTC)  # 23:55 local on June 2

    assert to_calendar_day(early, berlin) == to_calendar_day(late, berlin) == date(2024, 6, 2)


def test_day_difference_counts_calendar_days_across_dst_change() -> None:
    assert day_difference(date(2024, 3, 31), date(2024, 3, 30)) == 1
    assert day_difference(date(2024, 1, 10), date(2024, 1, 1)) == 9
    assert day_difference(date(2024, 1, 1), date(2024, 1, 3)) == -2


def test_resolve_reference_timezone_defaults_and_unknown_names() -> None:
    assert resolve_reference_timezone(None) is UTC
    assert resolve_reference_timezone("  ") is UTC
    assert resolve_reference_timezone(None, default="Europe/Berlin") == ZoneInfo("Europe/Berlin")
    assert resolve_reference_timezone("Asia/Tokyo") == ZoneInfo("Asia/Tokyo")
    assert resolve_reference_timezone("Mars/Olympus_Mons") is None
