"""Storage for schedule entries.

Two stores share the same interface: ``SqlSlotStore`` persists through SQLModel
and relies on the table's unique constraints to refuse double-bookings, while
``InMemorySlotStore`` keeps entries in a lock-guarded dict. Both publish the full
entry list to subscribers after every successful mutation.
"""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import UTC, date, datetime
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from errors import ConflictError, StorageError
from events import ChangeNotifier
from models import ScheduleEntry
from validation import normalize_date

logger = logging.getLogger(__name__)

OWN_ENTRY_CHANGED_MESSAGE = "Your reservation was changed in another session. Please try again."


def copy_entry(entry: ScheduleEntry) -> ScheduleEntry:
    """Detached copy so callers never share state with the store."""
    return ScheduleEntry(
        id=entry.id,
        user_id=entry.user_id,
        client_name=entry.client_name,
        date=entry.date,
        slot=entry.slot,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )


class SlotStore(ABC):
    """Common interface and change notification for schedule stores."""

    def __init__(self):
        self._notifier: ChangeNotifier[list[ScheduleEntry]] = ChangeNotifier()

    def subscribe(self, callback: Callable[[list[ScheduleEntry]], None]) -> Callable[[], None]:
        return self._notifier.subscribe(callback)

    def _notify(self) -> None:
        self._notifier.publish(self.list_all())

    @abstractmethod
    def list_all(self) -> list[ScheduleEntry]:
        pass

    @abstractmethod
    def list_by_date(self, day: date | datetime | str) -> list[ScheduleEntry]:
        pass

    @abstractmethod
    def find_by_user(self, user_id: str) -> ScheduleEntry | None:
        pass

    @abstractmethod
    def upsert(self, entry: ScheduleEntry) -> ScheduleEntry:
        """Insert or replace the user's entry; ConflictError if another user holds the pair."""
        pass

    @abstractmethod
    def remove_by_user(self, user_id: str) -> bool:
        pass


class InMemorySlotStore(SlotStore):
    def __init__(self, entries: list[ScheduleEntry] | None = None):
        super().__init__()
        self._lock = threading.RLock()
        self._entries: dict[str, ScheduleEntry] = {}
        for entry in entries or []:
            self._check_pair_free(entry)
            self._entries[entry.user_id] = copy_entry(entry)

    def _check_pair_free(self, entry: ScheduleEntry) -> None:
        for other in self._entries.values():
            if other.date == entry.date and other.slot == entry.slot and other.user_id != entry.user_id:
                raise ConflictError()

    def list_all(self) -> list[ScheduleEntry]:
        with self._lock:
            return [copy_entry(e) for e in self._entries.values()]

    def list_by_date(self, day) -> list[ScheduleEntry]:
        key = normalize_date(day)
        with self._lock:
            return [copy_entry(e) for e in self._entries.values() if e.date == key]

    def find_by_user(self, user_id: str) -> ScheduleEntry | None:
        with self._lock:
            entry = self._entries.get(user_id)
            return copy_entry(entry) if entry else None

    def upsert(self, entry: ScheduleEntry) -> ScheduleEntry:
        with self._lock:
            self._check_pair_free(entry)

            stored = copy_entry(entry)
            existing = self._entries.get(entry.user_id)
            if existing:
                # The entry id and creation time belong to the user's reservation
                stored.id = existing.id
                stored.created_at = existing.created_at
            stored.updated_at = datetime.now(UTC)
            self._entries[entry.user_id] = stored
            result = copy_entry(stored)

        self._notify()
        return result

    def remove_by_user(self, user_id: str) -> bool:
        with self._lock:
            removed = self._entries.pop(user_id, None)

        if removed is None:
            return False
        self._notify()
        return True


class SqlSlotStore(SlotStore):
    def __init__(self, engine):
        super().__init__()
        self.engine = engine

    def _session(self) -> Session:
        return Session(self.engine, expire_on_commit=False)

    def list_all(self) -> list[ScheduleEntry]:
        try:
            with self._session() as session:
                return list(session.exec(select(ScheduleEntry)).all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing schedule entries: {str(e)}")
            return []

    def list_by_date(self, day) -> list[ScheduleEntry]:
        key = normalize_date(day)
        try:
            with self._session() as session:
                stmt = select(ScheduleEntry).where(ScheduleEntry.date == key)
                return list(session.exec(stmt).all())
        except SQLAlchemyError as e:
            logger.error(f"Error listing schedule entries for {key}: {str(e)}")
            return []

    def find_by_user(self, user_id: str) -> ScheduleEntry | None:
        try:
            with self._session() as session:
                stmt = select(ScheduleEntry).where(ScheduleEntry.user_id == user_id)
                return session.exec(stmt).first()
        except SQLAlchemyError as e:
            logger.error(f"Error finding schedule entry for user {user_id}: {str(e)}")
            return None

    def upsert(self, entry: ScheduleEntry) -> ScheduleEntry:
        now = datetime.now(UTC)
        with self._session() as session:
            try:
                holder = session.exec(
                    select(ScheduleEntry)
                    .where(ScheduleEntry.date == entry.date)
                    .where(ScheduleEntry.slot == entry.slot)
                ).first()
                if holder and holder.user_id != entry.user_id:
                    raise ConflictError()

                existing = session.exec(
                    select(ScheduleEntry).where(ScheduleEntry.user_id == entry.user_id)
                ).first()

                if existing:
                    existing.client_name = entry.client_name
                    existing.date = entry.date
                    existing.slot = entry.slot
                    existing.updated_at = now
                    stored = existing
                else:
                    stored = copy_entry(entry)
                    stored.updated_at = now
                    session.add(stored)

                # Unique constraints decide races between concurrent writers
                session.commit()
                session.refresh(stored)
            except IntegrityError as e:
                session.rollback()
                logger.warning(f"Schedule write for user {entry.user_id} lost a race: {str(e.orig)}")
                if "user_id" in str(e.orig) or "uniq_schedule_user" in str(e.orig):
                    raise ConflictError(OWN_ENTRY_CHANGED_MESSAGE) from e
                raise ConflictError() from e
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Error saving schedule entry for user {entry.user_id}: {str(e)}")
                raise StorageError() from e

            result = copy_entry(stored)

        self._notify()
        return result

    def remove_by_user(self, user_id: str) -> bool:
        with self._session() as session:
            try:
                entry = session.exec(
                    select(ScheduleEntry).where(ScheduleEntry.user_id == user_id)
                ).first()
                if not entry:
                    return False
                session.delete(entry)
                session.commit()
            except SQLAlchemyError as e:
                session.rollback()
                logger.error(f"Error releasing schedule entry for user {user_id}: {str(e)}")
                raise StorageError("Could not release the reservation. Please try again later.") from e

        self._notify()
        return True
