from datetime import date, timedelta

from allocator import SlotAllocator
from db import engine
from slot_store import SqlSlotStore


def upcoming_business_days(start: date, count: int) -> list[date]:
    days = []
    day = start
    while len(days) < count:
        day += timedelta(days=1)
        if day.weekday() < 5:
            days.append(day)
    return days


def seed_database():
    """Seed the database with sample reservations."""
    store = SqlSlotStore(engine)
    # Check if data already exists
    if store.list_all():
        print("Database already has data, skipping seed.")
        return

    allocator = SlotAllocator(store)
    first, second = upcoming_business_days(allocator.today() + timedelta(days=allocator.lead_days - 1), 2)

    sample_reservations = [
        ("user-alice", "Acme Corp", first, "09:00"),
        ("user-bob", "Beta Ltda", first, "10:00"),
        ("user-carol", "Carol Consulting", first, "14:00"),
        ("user-dave", "Delta Foods", second, "11:00"),
        ("user-erin", "Echo Media", second, "16:00"),
    ]

    count = 0
    for user_id, client_name, day, slot in sample_reservations:
        result = allocator.reserve(user_id, client_name, day, slot)
        if result.success:
            count += 1
        else:
            print(f"Skipped {client_name}: {result.message}")

    print(f"Seeded database with {count} sample reservations.")


if __name__ == "__main__":
    from db import create_db_and_tables

    create_db_and_tables()
    seed_database()
