"""Admin dashboard view of the slot table."""
from collections import defaultdict

from models import ScheduleEntry
from validation import VALID_SLOTS


def group_by_date(entries: list[ScheduleEntry]) -> dict[str, list[ScheduleEntry]]:
    """Group entries by date key, each day's entries ordered by slot."""
    by_date = defaultdict(list)
    for entry in entries:
        by_date[entry.date].append(entry)

    return {day: sorted(items, key=lambda e: e.slot) for day, items in sorted(by_date.items())}


def build_dashboard(entries: list[ScheduleEntry]) -> list[dict]:
    """
    Render every booked date as the full grid of valid slots.

    Dates with no reservations are left out. Each slot is either 'occupied'
    (carrying the client's display name) or 'available'.
    """
    days = []
    for day, items in group_by_date(entries).items():
        held = {e.slot: e for e in items}
        slots = []
        for slot in VALID_SLOTS:
            entry = held.get(slot)
            if entry:
                slots.append({"slot": slot, "status": "occupied", "client_name": entry.client_name})
            else:
                slots.append({"slot": slot, "status": "available", "client_name": None})
        days.append({"date": day, "slots": slots})
    return days
