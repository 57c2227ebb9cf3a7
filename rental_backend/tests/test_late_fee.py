"""
Late-fee calculator tests.
"""

from datetime import date, datetime, timezone

import pytest

from rental_backend.app.core.exceptions import BookingValidationError
from rental_backend.app.domain.booking.late_fee import calculate_late_fee, count_late_days, to_calendar_day

END = date(2024, 1, 10)


def test_three_days_late():
    quote = calculate_late_fee(END, date(2024, 1, 13), 100_000)
    assert quote.late_days == 3
    assert quote.late_fee == 300_000


@pytest.mark.parametrize("returned", [date(2024, 1, 1), date(2024, 1, 9), END])
def test_on_time_or_early_return_is_free(returned):
    quote = calculate_late_fee(END, returned, 100_000)
    assert quote.late_days == 0
    assert quote.late_fee == 0


def test_fee_increases_with_gap():
    fees = [calculate_late_fee(END, date(2024, 1, 10 + gap), 75_000).late_fee for gap in range(1, 8)]
    assert fees == sorted(fees)
    assert len(set(fees)) == len(fees)


@pytest.mark.parametrize("rate", [0, -100, None])
def test_non_positive_rate_rejected(rate):
    with pytest.raises(BookingValidationError):
        calculate_late_fee(END, date(2024, 1, 12), rate)


def test_datetimes_truncated_to_business_day():
    # 2024-01-10 20:00 UTC is already 2024-01-11 in Jakarta
    returned = datetime(2024, 1, 10, 20, 0, tzinfo=timezone.utc)
    assert to_calendar_day(returned) == date(2024, 1, 11)
    assert count_late_days(END, returned) == 1


def test_naive_datetime_keeps_its_date():
    assert count_late_days(END, datetime(2024, 1, 12, 23, 59)) == 2


def test_non_date_rejected():
    with pytest.raises(BookingValidationError):
        to_calendar_day("2024-01-10")
