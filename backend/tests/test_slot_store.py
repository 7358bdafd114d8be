"""Tests for the in-memory and SQL slot stores."""
from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from db import create_db_and_tables, make_engine
from errors import ConflictError, StorageError
from models import ScheduleEntry
from slot_store import InMemorySlotStore, SlotStore, SqlSlotStore


@pytest.fixture(params=["memory", "sql"])
def store(request):
    """Create an empty store of each kind."""
    if request.param == "memory":
        return InMemorySlotStore()
    engine = make_engine("sqlite://")
    create_db_and_tables(engine)
    return SqlSlotStore(engine)


def make_entry(user_id="user-a", client_name="Acme", day="2024-03-11", slot="10:00"):
    return ScheduleEntry(user_id=user_id, client_name=client_name, date=day, slot=slot)


def test_empty_store(store):
    assert store.list_all() == []
    assert store.list_by_date("2024-03-11") == []
    assert store.find_by_user("user-a") is None


def test_upsert_inserts_and_finds(store):
    saved = store.upsert(make_entry())

    assert saved.id
    found = store.find_by_user("user-a")
    assert found is not None
    assert found.id == saved.id
    assert (found.date, found.slot, found.client_name) == ("2024-03-11", "10:00", "Acme")
    assert len(store.list_all()) == 1


def test_list_by_date_normalizes_input(store):
    store.upsert(make_entry(user_id="user-a", slot="10:00"))
    store.upsert(make_entry(user_id="user-b", slot="11:00"))
    store.upsert(make_entry(user_id="user-c", day="2024-03-12", slot="10:00"))

    assert {e.user_id for e in store.list_by_date(date(2024, 3, 11))} == {"user-a", "user-b"}
    assert {e.user_id for e in store.list_by_date("2024-03-12T08:00:00")} == {"user-c"}


def test_upsert_replaces_users_entry(store):
    first = store.upsert(make_entry())
    moved = make_entry(client_name="Acme Renamed", day="2024-03-12", slot="14:00")

    saved = store.upsert(moved)

    assert saved.id == first.id
    assert saved.created_at == first.created_at
    assert saved.updated_at >= first.updated_at
    assert len(store.list_all()) == 1
    found = store.find_by_user("user-a")
    assert (found.date, found.slot, found.client_name) == ("2024-03-12", "14:00", "Acme Renamed")
    assert store.list_by_date("2024-03-11") == []


def test_upsert_refuses_pair_held_by_other_user(store):
    store.upsert(make_entry(user_id="user-a"))

    with pytest.raises(ConflictError):
        store.upsert(make_entry(user_id="user-b"))

    assert store.find_by_user("user-b") is None
    assert len(store.list_all()) == 1


def test_upsert_same_pair_by_same_user_is_not_conflict(store):
    store.upsert(make_entry())
    store.upsert(make_entry(client_name="Acme 2"))

    assert store.find_by_user("user-a").client_name == "Acme 2"


def test_returned_entries_are_detached(store):
    store.upsert(make_entry())

    found = store.find_by_user("user-a")
    found.slot = "17:00"

    assert store.find_by_user("user-a").slot == "10:00"


def test_remove_by_user(store):
    store.upsert(make_entry())

    assert store.remove_by_user("user-a") is True
    assert store.find_by_user("user-a") is None
    assert store.remove_by_user("user-a") is False


def test_subscribers_receive_full_list_after_mutations(store):
    snapshots = []
    unsubscribe = store.subscribe(snapshots.append)

    store.upsert(make_entry(user_id="user-a"))
    store.upsert(make_entry(user_id="user-b", slot="11:00"))
    store.remove_by_user("user-a")
    store.remove_by_user("nobody")  # no change, no notification

    assert [len(s) for s in snapshots] == [1, 2, 1]
    assert snapshots[-1][0].user_id == "user-b"

    unsubscribe()
    store.remove_by_user("user-b")
    assert len(snapshots) == 3


def test_refused_write_does_not_notify(store):
    store.upsert(make_entry(user_id="user-a"))
    snapshots = []
    store.subscribe(snapshots.append)

    with pytest.raises(ConflictError):
        store.upsert(make_entry(user_id="user-b"))

    assert snapshots == []


def test_sql_store_enforces_unique_pair_at_database_level():
    engine = make_engine("sqlite://")
    create_db_and_tables(engine)
    with Session(engine) as session:
        session.add(make_entry(user_id="user-a"))
        session.commit()
        session.add(make_entry(user_id="user-b"))
        with pytest.raises(IntegrityError):
            session.commit()
        session.rollback()
        assert len(session.exec(select(ScheduleEntry)).all()) == 1


def test_sql_store_reads_degrade_to_empty_when_storage_unavailable():
    # Tables never created: every query fails
    store = SqlSlotStore(make_engine("sqlite://"))

    assert store.list_all() == []
    assert store.list_by_date("2024-03-11") == []
    assert store.find_by_user("user-a") is None


def test_sql_store_writes_raise_storage_error_when_storage_unavailable():
    store = SqlSlotStore(make_engine("sqlite://"))

    with pytest.raises(StorageError):
        store.upsert(make_entry())
    with pytest.raises(StorageError):
        store.remove_by_user("user-a")


def test_store_interface_cannot_be_instantiated():
    with pytest.raises(TypeError):
        SlotStore()


def test_memory_store_seed_entries_are_checked_for_conflicts():
    seeded = InMemorySlotStore([make_entry(user_id="user-a"), make_entry(user_id="user-b", slot="11:00")])
    assert len(seeded.list_all()) == 2

    with pytest.raises(ConflictError):
        InMemorySlotStore([make_entry(user_id="user-a"), make_entry(user_id="user-b")])
