# tests/test_store_db.py
# PURPOSE: SqlTaskStore against a temp SQLite file: CRUD, owner scope, filtering, ordering.

import uuid
from datetime import UTC, datetime, timedelta

import pytest

from taskflow.db_models import TaskDB
from taskflow.domain import Task, TaskFilter, TaskStatus
from taskflow.errors import InvalidTransitionError, NotFoundError, TaskflowError
from taskflow.store import InMemoryTaskStore
from taskflow.store_db import SqlTaskStore

U1 = uuid.UUID("11111111-1111-1111-1111-111111111111")
U2 = uuid.UUID("22222222-2222-2222-2222-222222222222")
BASE = datetime(2025, 9, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def store(session_factory):
    return SqlTaskStore(session_factory)


def _seed(store, owner_id, title, *, minutes=0, status=TaskStatus.PENDING):
    task = Task.create(owner_id, title, now=BASE + timedelta(minutes=minutes))
    if status is not TaskStatus.PENDING:
        task.change_status(status, BASE + timedelta(hours=1, minutes=minutes))
    return store.create(task)


def test_create_and_get_roundtrip(store):
    created = _seed(store, U1, "Write report")

    got = store.get(U1, created.id)

    assert got == created
    assert got.created_at == BASE
    assert got.created_at.tzinfo is not None


def test_get_is_owner_scoped(store):
    created = _seed(store, U1, "Private")
    with pytest.raises(NotFoundError):
        store.get(U2, created.id)
    with pytest.raises(NotFoundError):
        store.get(U1, uuid.uuid4())


def test_update_persists_mutable_fields(store):
    created = _seed(store, U1, "Draft")
    task = store.get(U1, created.id)
    task.rename("Final")
    task.change_description("reviewed")
    task.change_status("done", BASE + timedelta(days=1))

    updated = store.update(task)

    assert updated.title == "Final"
    assert updated.description == "reviewed"
    assert updated.status is TaskStatus.DONE
    assert updated.completed_at == BASE + timedelta(days=1)
    assert updated.created_at == created.created_at
    assert store.get(U1, created.id) == updated


def test_update_and_delete_respect_owner(store):
    created = _seed(store, U1, "Mine")
    foreign = Task.from_storage(
        id=created.id, owner_id=U2, title="Hijack", description="",
        status="pending", created_at=BASE, completed_at=None,
    )
    with pytest.raises(NotFoundError):
        store.update(foreign)
    with pytest.raises(NotFoundError):
        store.delete(U2, created.id)
    assert store.get(U1, created.id).title == "Mine"


def test_delete_removes_row(store):
    created = _seed(store, U1, "Temp")
    store.delete(U1, created.id)
    with pytest.raises(NotFoundError):
        store.get(U1, created.id)
    with pytest.raises(NotFoundError):
        store.delete(U1, created.id)


def test_list_only_returns_own_tasks(store):
    _seed(store, U1, "a")
    _seed(store, U2, "b")
    _seed(store, U1, "c", minutes=1)

    titles = [t.title for t in store.list(U1, TaskFilter())]

    assert titles == ["c", "a"]  # default: newest first


def test_list_filters_by_status(store):
    _seed(store, U1, "open")
    done = _seed(store, U1, "finished", minutes=1, status=TaskStatus.DONE)
    _seed(store, U1, "dropped", minutes=2, status=TaskStatus.CANCELLED)

    tasks = store.list(U1, TaskFilter(status="done"))

    assert [t.id for t in tasks] == [done.id]


def test_list_unknown_status_matches_no_rows(store):
    _seed(store, U1, "open")
    assert store.list(U1, TaskFilter(status="archived")) == []


def test_list_search_is_case_insensitive_substring(store):
    _seed(store, U1, "Buy Milk")
    _seed(store, U1, "milkshake recipe", minutes=1)
    _seed(store, U1, "Walk dog", minutes=2)

    titles = sorted(t.title for t in store.list(U1, TaskFilter(search="MILK")))

    assert titles == ["Buy Milk", "milkshake recipe"]


def test_list_search_treats_wildcards_literally(store):
    _seed(store, U1, "100% done")
    _seed(store, U1, "1000 items", minutes=1)

    titles = [t.title for t in store.list(U1, TaskFilter(search="0%"))]

    assert titles == ["100% done"]


def test_list_pagination(store):
    for i in range(5):
        _seed(store, U1, f"t{i}", minutes=i)

    page = store.list(U1, TaskFilter(limit=2, offset=1, sort_dir="asc"))

    assert [t.title for t in page] == ["t1", "t2"]


def test_list_offset_past_end_is_empty(store):
    _seed(store, U1, "only")
    assert store.list(U1, TaskFilter(offset=10)) == []


def test_list_sort_by_title(store):
    _seed(store, U1, "banana")
    _seed(store, U1, "apple", minutes=1)
    _seed(store, U1, "cherry", minutes=2)

    asc = [t.title for t in store.list(U1, TaskFilter(sort_by="title", sort_dir="asc"))]
    desc = [t.title for t in store.list(U1, TaskFilter(sort_by="title", sort_dir="desc"))]

    assert asc == ["apple", "banana", "cherry"]
    assert desc == ["cherry", "banana", "apple"]


def test_list_sort_by_status_follows_lifecycle(store):
    _seed(store, U1, "c", status=TaskStatus.CANCELLED)
    _seed(store, U1, "d", minutes=1, status=TaskStatus.DONE)
    _seed(store, U1, "p", minutes=2)
    _seed(store, U1, "i", minutes=3, status=TaskStatus.IN_PROGRESS)

    titles = [t.title for t in store.list(U1, TaskFilter(sort_by="status", sort_dir="asc"))]

    assert titles == ["p", "i", "d", "c"]


@pytest.mark.parametrize("backend", ["sql", "memory"])
def test_list_sort_by_completed_at_puts_open_tasks_last(backend, session_factory):
    store = SqlTaskStore(session_factory) if backend == "sql" else InMemoryTaskStore()
    _seed(store, U1, "open-a")
    _seed(store, U1, "done-early", minutes=1, status=TaskStatus.DONE)
    _seed(store, U1, "open-b", minutes=2)
    _seed(store, U1, "done-late", minutes=3, status=TaskStatus.DONE)

    asc = [t.title for t in store.list(U1, TaskFilter(sort_by="completed_at", sort_dir="asc"))]
    desc = [t.title for t in store.list(U1, TaskFilter(sort_by="completed_at", sort_dir="desc"))]

    assert asc == ["done-early", "done-late", "open-a", "open-b"]
    assert desc == ["done-late", "done-early", "open-b", "open-a"]


def test_list_unknown_sort_column_falls_back_to_created_at(store):
    _seed(store, U1, "older")
    _seed(store, U1, "newer", minutes=5)

    titles = [t.title for t in store.list(U1, TaskFilter(sort_by="owner_id; DROP TABLE tasks"))]

    assert titles == ["newer", "older"]


def _insert_raw(session_factory, **overrides):
    values = dict(
        id=uuid.uuid4(),
        owner_id=U1,
        title="raw",
        description="",
        status="pending",
        created_at=BASE,
        completed_at=None,
    )
    values.update(overrides)
    with session_factory() as db:
        db.add(TaskDB(**values))
        db.commit()
    return values["id"]


def test_corrupt_row_fails_get_and_is_skipped_by_list(store, session_factory):
    good = _seed(store, U1, "good")
    bad_id = _insert_raw(session_factory, status="done", completed_at=None, title="bad")

    with pytest.raises(InvalidTransitionError):
        store.get(U1, bad_id)

    assert [t.id for t in store.list(U1, TaskFilter())] == [good.id]


def test_stored_alias_status_is_accepted(store, session_factory):
    task_id = _insert_raw(session_factory, status="canceled")
    assert store.get(U1, task_id).status is TaskStatus.CANCELLED


def test_unknown_stored_status_is_a_domain_error(store, session_factory):
    task_id = _insert_raw(session_factory, status="archived")
    with pytest.raises(TaskflowError):
        store.get(U1, task_id)


def test_status_filter_matches_alias_spelling(store, session_factory):
    legacy = _insert_raw(session_factory, status="canceled")
    current = _seed(store, U1, "dropped", minutes=1, status=TaskStatus.CANCELLED)

    ids = {t.id for t in store.list(U1, TaskFilter(status="cancelled"))}

    assert ids == {legacy, current.id}
