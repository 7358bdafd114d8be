"""Pure booking rules: date keys, lead time, business days and the slot set."""
import os
from datetime import date, datetime, timedelta

from errors import ValidationError

VALID_SLOTS = ("09:00", "10:00", "11:00", "13:00", "14:00", "15:00", "16:00", "17:00")

# Same-day bookings are never allowed, so the lead time is at least one day
MIN_LEAD_DAYS = 1


def clamp_lead_days(lead_days: int | str) -> int:
    return max(MIN_LEAD_DAYS, int(lead_days))


# Minimum number of days between today and a bookable date
LEAD_DAYS = clamp_lead_days(os.getenv("SCHEDULE_LEAD_DAYS", "1"))


def normalize_date(value: date | datetime | str) -> str:
    """Return the canonical YYYY-MM-DD key for a date, datetime or ISO string."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        raw = value.strip()
        try:
            # Accept full ISO timestamps too, only the calendar part is kept
            return datetime.fromisoformat(raw.replace("Z", "+00:00")).date().isoformat()
        except ValueError:
            pass
    raise ValidationError("Invalid date format, expected YYYY-MM-DD.")


def parse_date_key(value: date | datetime | str) -> date:
    return date.fromisoformat(normalize_date(value))


def earliest_bookable_date(today: date, lead_days: int = LEAD_DAYS) -> date:
    return today + timedelta(days=clamp_lead_days(lead_days))


def validate_lead_time(day: date, today: date, lead_days: int = LEAD_DAYS) -> None:
    if day < earliest_bookable_date(today, lead_days):
        raise ValidationError("Select a date starting from the next business day.")


def validate_business_day(day: date) -> None:
    # Monday=0 ... Friday=4
    if day.weekday() >= 5:
        raise ValidationError("Bookings are only available Monday to Friday.")


def validate_slot(slot: str) -> None:
    if slot not in VALID_SLOTS:
        raise ValidationError(f"Invalid time slot. Choose one of: {', '.join(VALID_SLOTS)}")


def validate_booking(value: date | datetime | str, slot: str, today: date, lead_days: int = LEAD_DAYS) -> str:
    """Run every pre-check and return the normalized date key.

    Raises ValidationError on the first rule that fails. No store access.
    """
    day = parse_date_key(value)
    validate_lead_time(day, today, lead_days)
    validate_business_day(day)
    validate_slot(slot)
    return day.isoformat()


def is_bookable_date(value: date | datetime | str, today: date, lead_days: int = LEAD_DAYS) -> bool:
    try:
        day = parse_date_key(value)
        validate_lead_time(day, today, lead_days)
        validate_business_day(day)
    except ValidationError:
        return False
    return True
