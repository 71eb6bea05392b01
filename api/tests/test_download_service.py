import asyncio

import pytest
from pydantic import ValidationError

from edushare.core.errors import PermissionDeniedError, RepositoryError
from edushare.models.content import ContentType

from conftest import make_metadata, make_pdf, make_student


async def test_same_student_twice_makes_one_student_and_two_downloads(store, content_service, download_service):
    content_id = await content_service.upload_content(make_metadata(), make_pdf())
    student = make_student()

    first = await download_service.record_student_download(content_id, "Syllabus", ContentType.PDF, student)
    second = await download_service.record_student_download(
        content_id, "Syllabus", ContentType.PDF, student, ip_address="10.0.0.7"
    )

    assert first != second
    assert await store.collection("students").count() == 1
    assert await store.collection("downloads").count() == 2
    assert (await content_service.get_content(content_id)).downloads == 2


async def test_download_record_snapshots_the_submitted_student(content_service, download_service):
    content_id = await content_service.upload_content(make_metadata(), make_pdf())
    await download_service.record_student_download(
        content_id, "Syllabus", ContentType.PDF, make_student(), ip_address="10.0.0.7"
    )

    record, = await download_service.get_download_records()
    assert record.contentId == content_id
    assert record.contentTitle == "Syllabus"
    assert record.contentType == ContentType.PDF
    assert record.ipAddress == "10.0.0.7"
    assert record.studentInfo.email == "ada@uni.edu"
    assert record.studentInfo.matricNumber == "CSC/2021/001"
    assert record.studentInfo.id == "ada@uni.edu"


async def test_known_student_is_not_overwritten(download_service):
    await download_service.record_student_download("c1", "Notes", ContentType.PDF, make_student(firstName="Ada"))
    await download_service.record_student_download("c1", "Notes", ContentType.PDF, make_student(firstName="Adaeze"))

    student = await download_service.get_student_info("ada@uni.edu")
    assert student.firstName == "Ada"


async def test_counter_failure_does_not_fail_the_download(store, download_service):
    async def broken_increment(*args, **kwargs):
        raise PermissionDeniedError("counters are locked")

    store.increment = broken_increment
    download_id = await download_service.record_student_download(
        "c1", "Notes", ContentType.VIDEO, make_student()
    )

    assert download_id
    assert await store.collection("downloads").count() == 1


async def test_audit_insert_failure_propagates(store, download_service):
    async def denied(*args, **kwargs):
        raise PermissionDeniedError("audit log is read-only")

    store.add = denied
    with pytest.raises(RepositoryError) as exc_info:
        await download_service.record_student_download("c1", "Notes", ContentType.PDF, make_student())
    assert exc_info.value.code == "permission-denied"


async def test_download_records_are_newest_first_and_limited(download_service):
    for i in range(4):
        await download_service.record_student_download(f"c{i}", f"Item {i}", ContentType.PDF, make_student())

    latest = await download_service.get_download_records(limit=2)
    assert [record.contentId for record in latest] == ["c3", "c2"]
    assert len(await download_service.get_download_records(limit=0)) == 4


async def test_student_lookup_is_case_insensitive(download_service):
    await download_service.record_student_download("c1", "Notes", ContentType.PDF, make_student(" Ada@Uni.EDU "))

    assert (await download_service.get_student_info("ADA@uni.edu")).email == "ada@uni.edu"
    assert await download_service.get_student_info("nobody@uni.edu") is None


def test_student_input_is_normalized_and_validated():
    student = make_student(" Ada@Uni.edu ", phoneNumber="  ")
    assert student.email == "ada@uni.edu"
    assert student.phoneNumber is None

    with pytest.raises(ValidationError):
        make_student("not-an-email")
    with pytest.raises(ValidationError):
        make_student(level="Year 9")


async def test_concurrent_first_downloads_keep_a_single_student(store, download_service):
    await asyncio.gather(
        download_service.record_student_download("c1", "Notes", ContentType.PDF, make_student(firstName="First")),
        download_service.record_student_download("c1", "Notes", ContentType.PDF, make_student(firstName="Second")),
    )

    assert await store.collection("students").count() == 1
    assert await store.collection("downloads").count() == 2
    student = await download_service.get_student_info("ada@uni.edu")
    assert student.firstName in ("First", "Second")


async def test_student_registered_in_between_is_kept(store, download_service):
    await download_service.record_student_download("c1", "Notes", ContentType.PDF, make_student(firstName="First"))
    stored = await download_service.get_student_info("ada@uni.edu")

    real_get = store.get
    stale_reads = [None]

    async def get_missing_once(collection, key):
        if collection == "students" and stale_reads:
            return stale_reads.pop()
        return await real_get(collection, key)

    store.get = get_missing_once
    await download_service.record_student_download("c1", "Notes", ContentType.PDF, make_student(firstName="Second"))
    store.get = real_get

    student = await download_service.get_student_info("ada@uni.edu")
    assert student.firstName == "First"
    assert student.createdAt == stored.createdAt
    assert await store.collection("downloads").count() == 2


async def test_returning_student_snapshot_keeps_registration_time(download_service):
    await download_service.record_student_download("c1", "Notes", ContentType.PDF, make_student())
    await asyncio.sleep(0.01)
    await download_service.record_student_download("c2", "Slides", ContentType.PDF, make_student())

    student = await download_service.get_student_info("ada@uni.edu")
    latest, _ = await download_service.get_download_records()
    assert latest.contentId == "c2"
    assert latest.studentInfo.createdAt == student.createdAt
