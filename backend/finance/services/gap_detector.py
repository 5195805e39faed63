"""
Gap Detector
Finds business dates with no stored exchange rate.
"""
from datetime import date, timedelta
from typing import Iterable, List


def find_missing_business_dates(
    existing_dates: Iterable[date],
    start_date: date,
    end_date: date
) -> List[date]:
    """
    Return every weekday in [start_date, end_date] that is not in
    existing_dates, oldest first.

    Weekends are never reported: the ECB does not publish on Saturdays
    and Sundays. TARGET holidays are not modelled and show up as gaps.
    """
    existing = set(existing_dates)
    missing_dates = []
    current_date = start_date
    while current_date <= end_date:
        # Skip weekends (Saturday=5, Sunday=6)
        if current_date.weekday() < 5 and current_date not in existing:
            missing_dates.append(current_date)
        current_date += timedelta(days=1)

    return missing_dates
