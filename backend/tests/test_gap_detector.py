"""Gap detection over literal date sets."""
from datetime import date, timedelta

from finance.services.gap_detector import find_missing_business_dates


def test_new_year_week_excludes_weekend():
    # 2025-01-01 is a Wednesday, 01-04/01-05 the weekend
    missing = find_missing_business_dates(set(), date(2025, 1, 1), date(2025, 1, 5))

    assert missing == [date(2025, 1, 1), date(2025, 1, 2), date(2025, 1, 3)]


def test_existing_dates_are_not_reported():
    existing = {date(2025, 1, 2)}

    missing = find_missing_business_dates(existing, date(2025, 1, 1), date(2025, 1, 7))

    assert missing == [date(2025, 1, 1), date(2025, 1, 3), date(2025, 1, 6), date(2025, 1, 7)]


def test_weekends_never_reported_over_long_range():
    start, end = date(2024, 1, 1), date(2024, 12, 31)

    missing = find_missing_business_dates(set(), start, end)

    assert all(d.weekday() < 5 for d in missing)
    assert missing == sorted(missing)
    assert len(missing) == 262


def test_complete_history_has_no_gaps():
    start = date(2025, 11, 3)
    existing = {start + timedelta(days=i) for i in range(5)}

    assert find_missing_business_dates(existing, start, date(2025, 11, 9)) == []


def test_inverted_range_is_empty():
    assert find_missing_business_dates(set(), date(2025, 1, 10), date(2025, 1, 1)) == []


def test_single_weekday_range():
    assert find_missing_business_dates([], date(2025, 11, 7), date(2025, 11, 7)) == [date(2025, 11, 7)]
