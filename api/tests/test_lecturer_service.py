import asyncio

import pytest
from pydantic import ValidationError

from edushare.core.errors import RepositoryError, UnavailableError
from edushare.models.lecturer import LecturerProfileCreate, LecturerProfileUpdate
from edushare.utils.db_utils import CollectionQuery


def profile(email="dr.okafor@uni.edu", **extra):
    return LecturerProfileCreate(
        firstName="Chidi",
        lastName="Okafor",
        email=email,
        department="Computer Science",
        officeHours={"Monday": "10:00-12:00"},
        **extra,
    )


async def test_create_stamps_both_timestamps(lecturer_service):
    created = await lecturer_service.create_lecturer_profile("main", profile(phone="0800"))

    assert created.createdAt == created.updatedAt
    loaded = await lecturer_service.get_lecturer_profile("main")
    assert loaded.email == "dr.okafor@uni.edu"
    assert loaded.phone == "0800"
    assert loaded.officeHours == {"monday": "10:00-12:00"}


async def test_update_only_restamps_updated_at(lecturer_service):
    await lecturer_service.create_lecturer_profile("main", profile(phone="0800"))
    before = await lecturer_service.get_lecturer_profile("main")
    await asyncio.sleep(0.01)

    await lecturer_service.update_lecturer_profile("main", LecturerProfileUpdate(bio="Teaches databases", phone=None))

    after = await lecturer_service.get_lecturer_profile("main")
    assert after.bio == "Teaches databases"
    assert after.phone is None
    assert after.firstName == "Chidi"
    assert after.createdAt == before.createdAt
    assert after.updatedAt > before.updatedAt


async def test_update_of_missing_profile_is_not_found(lecturer_service):
    with pytest.raises(RepositoryError) as exc_info:
        await lecturer_service.update_lecturer_profile("ghost", LecturerProfileUpdate(bio="hi"))
    assert exc_info.value.code == "not-found"


async def test_missing_profile_is_none(lecturer_service):
    assert await lecturer_service.get_lecturer_profile("nobody") is None


async def test_main_lecturer_is_the_earliest_created(lecturer_service):
    assert await lecturer_service.get_main_lecturer() is None

    await lecturer_service.create_lecturer_profile("first", profile("first@uni.edu"))
    await asyncio.sleep(0.01)
    await lecturer_service.create_lecturer_profile("second", profile("second@uni.edu"))

    main = await lecturer_service.get_main_lecturer()
    assert main.id == "first"


async def test_main_lecturer_is_none_while_store_is_unavailable(lecturer_service, monkeypatch):
    async def offline(self):
        raise UnavailableError("offline")

    monkeypatch.setattr(CollectionQuery, "get", offline)
    assert await lecturer_service.get_main_lecturer() is None


def test_office_hours_reject_unknown_days():
    with pytest.raises(ValidationError):
        LecturerProfileUpdate(officeHours={"Funday": "all day"})


async def test_create_refuses_to_replace_an_existing_profile(lecturer_service):
    await lecturer_service.create_lecturer_profile("main", profile(phone="0800"))
    before = await lecturer_service.get_lecturer_profile("main")

    with pytest.raises(RepositoryError) as exc_info:
        await lecturer_service.create_lecturer_profile("main", profile("other@uni.edu"))
    assert exc_info.value.code == "already-exists"

    loaded = await lecturer_service.get_lecturer_profile("main")
    assert loaded.email == "dr.okafor@uni.edu"
    assert loaded.phone == "0800"
    assert loaded.createdAt == before.createdAt


async def test_strict_lookup_raises_while_store_is_unavailable(lecturer_service, store, monkeypatch):
    async def offline(*args, **kwargs):
        raise UnavailableError("offline")

    monkeypatch.setattr(store, "get", offline)
    assert await lecturer_service.get_lecturer_profile("main") is None
    with pytest.raises(RepositoryError) as exc_info:
        await lecturer_service.get_lecturer_profile("main", strict=True)
    assert exc_info.value.code == "unavailable"
