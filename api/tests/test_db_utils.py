from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine

from edushare.core.errors import AlreadyExistsError, NotFoundError, UnavailableError
from edushare.utils.db_utils import DocumentStore


def lecturer(email, created):
    return {"email": email, "createdAt": created, "updatedAt": created, "officeHours": {}}


async def test_add_returns_generated_id_and_get_reads_it_back(store):
    now = datetime.now(timezone.utc)
    key = await store.add("downloads", {
        "contentId": "c1",
        "contentTitle": "Syllabus",
        "contentType": "pdf",
        "studentInfo": {"email": "ada@uni.edu"},
        "downloadDate": now,
    })

    record = await store.get("downloads", key)
    assert record["id"] == key
    assert record["studentInfo"] == {"email": "ada@uni.edu"}
    assert record["ipAddress"] is None


async def test_get_missing_record_returns_none(store):
    assert await store.get("students", "nobody@uni.edu") is None


async def test_set_replaces_the_whole_record(store):
    now = datetime.now(timezone.utc)
    await store.set("lecturers", "main", {**lecturer("a@uni.edu", now), "phone": "123"})
    await store.set("lecturers", "main", lecturer("b@uni.edu", now))

    record = await store.get("lecturers", "main")
    assert record["email"] == "b@uni.edu"
    assert record["phone"] is None


async def test_update_and_increment_require_an_existing_record(store):
    with pytest.raises(NotFoundError):
        await store.update("lecturers", "ghost", {"bio": "hi"})
    with pytest.raises(NotFoundError):
        await store.increment("content", "ghost", "views")


async def test_query_filters_orders_and_limits(store):
    base = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i, email in enumerate(["first@uni.edu", "second@uni.edu", "third@uni.edu"]):
        await store.set("lecturers", f"l{i}", lecturer(email, base + timedelta(days=i)))

    newest = await store.collection("lecturers").order_by("createdAt", "desc").limit(2).get()
    assert [row["email"] for row in newest] == ["third@uni.edu", "second@uni.edu"]

    query = store.collection("lecturers").where("email", "!=", "second@uni.edu")
    assert await query.count() == 2
    assert {row["id"] for row in await query.get()} == {"l0", "l2"}

    picked = await store.collection("lecturers").where("id", "in", ["l1", "l2"]).get()
    assert {row["id"] for row in picked} == {"l1", "l2"}


async def test_query_builder_is_immutable(store):
    base = store.collection("lecturers")
    limited = base.limit(1)
    assert base.limit_count is None
    assert limited.limit_count == 1


def test_query_builder_rejects_unknown_fields_and_operators(store):
    with pytest.raises(ValueError):
        store.collection("lecturers").where("nickname", "==", "x")
    with pytest.raises(ValueError):
        store.collection("lecturers").where("email", "~", "x")
    with pytest.raises(ValueError):
        store.collection("lecturers").order_by("email", "sideways")
    with pytest.raises(ValueError):
        store.collection("nothing")


async def test_watch_notifies_until_unwatched(store):
    seen = []
    unwatch = store.watch("lecturers", seen.append)

    now = datetime.now(timezone.utc)
    await store.set("lecturers", "main", lecturer("a@uni.edu", now))
    await store.update("lecturers", "main", {"bio": "hello"})
    unwatch()
    unwatch()
    await store.delete("lecturers", "main")

    assert seen == ["lecturers", "lecturers"]


async def test_driver_failures_are_translated_to_unavailable(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'missing' / 'dir' / 'store.db'}")
    broken = DocumentStore(engine)

    with pytest.raises(UnavailableError):
        await broken.ping()
    with pytest.raises(UnavailableError):
        await broken.collection("content").get()


async def test_create_never_replaces_an_existing_record(store):
    now = datetime.now(timezone.utc)
    await store.create("lecturers", "main", {**lecturer("a@uni.edu", now), "phone": "123"})

    with pytest.raises(AlreadyExistsError):
        await store.create("lecturers", "main", lecturer("b@uni.edu", now))

    record = await store.get("lecturers", "main")
    assert record["email"] == "a@uni.edu"
    assert record["phone"] == "123"
