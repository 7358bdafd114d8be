"""Booking policy on top of a SlotStore."""
import logging
import threading
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable

from errors import ConflictError, SchedulingError, StorageError, ValidationError
from models import ScheduleEntry
from slot_store import SlotStore
from validation import (
    LEAD_DAYS,
    VALID_SLOTS,
    clamp_lead_days,
    is_bookable_date,
    normalize_date,
    validate_booking,
)

logger = logging.getLogger(__name__)


@dataclass
class ReserveResult:
    success: bool
    entry: ScheduleEntry | None = None
    error: SchedulingError | None = None

    @property
    def message(self) -> str | None:
        return self.error.message if self.error else None


class SlotAllocator:
    """Enforces the booking rules and is the only writer of the slot table.

    ``today`` is injectable so lead-time checks can be pinned in tests.
    """

    def __init__(
        self,
        store: SlotStore,
        today: Callable[[], date] = date.today,
        lead_days: int = LEAD_DAYS,
    ):
        self.store = store
        self.today = today
        self.lead_days = clamp_lead_days(lead_days)
        # Serializes check-then-write within this process; the store's
        # conditional write covers other processes
        self._lock = threading.Lock()

    def reserve(self, user_id: str, client_name: str, day: date | datetime | str, slot: str) -> ReserveResult:
        try:
            key = validate_booking(day, slot, self.today(), self.lead_days)
        except ValidationError as e:
            logger.info(f"Rejected reservation for user {user_id}: {e.message}")
            return ReserveResult(success=False, error=e)

        with self._lock:
            if self.is_slot_taken(key, slot, excluding_user_id=user_id):
                logger.info(f"Slot {key} {slot} unavailable for user {user_id}")
                return ReserveResult(success=False, error=ConflictError())

            entry = self.store.find_by_user(user_id)
            if entry:
                entry.date = key
                entry.slot = slot
                entry.client_name = client_name
            else:
                entry = ScheduleEntry(user_id=user_id, client_name=client_name, date=key, slot=slot)

            try:
                saved = self.store.upsert(entry)
            except ConflictError as e:
                logger.info(f"Slot {key} {slot} taken concurrently, user {user_id} rejected")
                return ReserveResult(success=False, error=e)
            except StorageError as e:
                return ReserveResult(success=False, error=e)

        logger.info(f"Reserved {key} {slot} for user {user_id} ({client_name})")
        return ReserveResult(success=True, entry=saved)

    def release(self, user_id: str) -> bool:
        """Remove the user's reservation; returns False when there was none."""
        with self._lock:
            released = self.store.remove_by_user(user_id)
        if released:
            logger.info(f"Released reservation for user {user_id}")
        return released

    def is_slot_taken(self, day, slot: str, excluding_user_id: str | None = None) -> bool:
        return any(
            entry.slot == slot and entry.user_id != excluding_user_id
            for entry in self.store.list_by_date(day)
        )

    def is_day_full(self, day, excluding_user_id: str | None = None) -> bool:
        entries = self.store.list_by_date(day)
        taken_by_others = {e.slot for e in entries if e.user_id != excluding_user_id}
        holds_slot_that_day = any(e.user_id == excluding_user_id for e in entries)
        # A caller already booked that day can only move to the remaining slots
        capacity = len(VALID_SLOTS) - 1 if holds_slot_that_day else len(VALID_SLOTS)
        return len(taken_by_others & set(VALID_SLOTS)) >= capacity

    def update_client_name(self, user_id: str, client_name: str) -> ScheduleEntry | None:
        with self._lock:
            entry = self.store.find_by_user(user_id)
            if not entry:
                return None
            entry.client_name = client_name
            saved = self.store.upsert(entry)
        logger.info(f"Renamed reservation of user {user_id} to {client_name}")
        return saved

    def availability(self, day, user_id: str | None = None) -> dict:
        """Per-slot status of a date as seen by ``user_id``."""
        key = normalize_date(day)
        holders = {e.slot: e for e in self.store.list_by_date(key)}
        slots = []
        for slot in VALID_SLOTS:
            holder = holders.get(slot)
            if holder is None:
                status = "available"
            elif holder.user_id == user_id:
                status = "yours"
            else:
                status = "taken"
            slots.append({"slot": slot, "status": status})

        return {
            "date": key,
            "bookable": is_bookable_date(key, self.today(), self.lead_days),
            "day_full": self.is_day_full(key, excluding_user_id=user_id),
            "slots": slots,
        }
