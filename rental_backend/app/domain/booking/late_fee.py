"""
Late-fee calculation.

Pure functions, no I/O. Used authoritatively when a booking is finished
and as a projected quote by the overdue report.
"""

from dataclasses import dataclass
from datetime import date, datetime
from zoneinfo import ZoneInfo

from rental_backend.app.core.config import settings
from rental_backend.app.core.exceptions import BookingValidationError


@dataclass(frozen=True)
class LateFeeQuote:
    late_days: int
    late_fee: float


def to_calendar_day(value) -> date:
    """
    Truncate a date or datetime to its calendar day.

    Aware datetimes are first converted to the business timezone so a late
    evening return is not counted on the next UTC day.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(ZoneInfo(settings.business_timezone))
        return value.date()
    if isinstance(value, date):
        return value
    raise BookingValidationError(f"Expected a date, got {type(value).__name__}")


def count_late_days(scheduled_end, actual_return) -> int:
    """Whole calendar days between the scheduled end and the actual return, never negative."""
    delta = to_calendar_day(actual_return) - to_calendar_day(scheduled_end)
    return max(0, delta.days)


def calculate_late_fee(scheduled_end, actual_return, daily_rate: float) -> LateFeeQuote:
    """
    Compute late days and the late fee for a return.

    Args:
        scheduled_end: Booking end date
        actual_return: Date (or datetime) the vehicle came back
        daily_rate: Vehicle per-day rate, must be positive

    Returns:
        LateFeeQuote with late_days >= 0 and late_fee = late_days * daily_rate

    Raises:
        BookingValidationError: daily_rate is missing or not positive
    """
    if daily_rate is None or daily_rate <= 0:
        raise BookingValidationError(
            "Vehicle daily rate must be positive to compute a late fee",
            details={"daily_rate": daily_rate}
        )

    late_days = count_late_days(scheduled_end, actual_return)
    return LateFeeQuote(late_days=late_days, late_fee=late_days * daily_rate)
