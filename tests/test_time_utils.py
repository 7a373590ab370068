from datetime import UTC, date, datetime

from freelance_crm.app.core.time import at_hour, ensure_aware, minutes_between, start_of_day, utc_now


def test_utc_now_is_timezone_aware_utc():
    value = utc_now()
    assert value.tzinfo is UTC


def test_ensure_aware_treats_naive_as_utc():
    naive = datetime(2026, 3, 1, 12, 0)
    assert ensure_aware(naive) == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    assert ensure_aware(None) is None


def test_day_helpers():
    assert start_of_day(date(2026, 3, 1)) == datetime(2026, 3, 1, 0, 0, tzinfo=UTC)
    assert at_hour(date(2026, 3, 1), 9) == datetime(2026, 3, 1, 9, 0, tzinfo=UTC)


def test_minutes_between_whole_minutes_only_when_end_after_start():
    start = datetime(2026, 3, 1, 9, 0, tzinfo=UTC)
    assert minutes_between(start, datetime(2026, 3, 1, 10, 30, 59, tzinfo=UTC)) == 90
    assert minutes_between(start, start) is None
    assert minutes_between(start, datetime(2026, 3, 1, 8, 0, tzinfo=UTC)) is None
    assert minutes_between(start, None) is None
