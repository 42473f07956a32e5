"""
Unit tests for core.user_store module.
Runs against an in-memory SQLite database.
"""
from unittest.mock import patch

import pytest
from tortoise.exceptions import OperationalError

from webbridge.core.errors import StorageError
from webbridge.core.user_store import UserStore
from webbridge.models.user import User


pytestmark = pytest.mark.asyncio


async def test_first_created_user_is_admin(db, make_profile):
    store = UserStore()

    first, created_first = await store.create_user(make_profile(1))
    second, created_second = await store.create_user(make_profile(2))

    assert created_first and created_second
    assert first.is_authorized and first.is_admin
    assert not second.is_authorized and not second.is_admin


async def test_create_user_is_idempotent(db, make_profile):
    store = UserStore()
    await store.create_user(make_profile(1))

    again, created = await store.create_user(make_profile(1, first_name="Renamed"))

    assert created is False
    assert again.first_name == "User1"
    assert await store.count_users() == 1


async def test_store_user_admin_implies_authorized(db, make_profile):
    store = UserStore()

    user = await store.store_user(make_profile(5), is_authorized=False, is_admin=True)

    assert user.is_authorized and user.is_admin


async def test_get_user_and_by_chat(db, make_profile):
    store = UserStore()
    await store.create_user(make_profile(7, chat_id=70, username="seven"))

    by_id = await store.get_user(7)
    by_chat = await store.get_user_by_chat(70)

    assert by_id.username == "seven"
    assert by_chat.user_id == 7
    assert await store.get_user(8) is None


async def test_set_authorization(db, make_profile):
    store = UserStore()
    await store.create_user(make_profile(1))
    await store.create_user(make_profile(2))

    assert await store.set_authorization(2, authorized=True, admin=True) is True
    user = await store.get_user(2)
    assert user.is_authorized and user.is_admin

    assert await store.set_authorization(2, authorized=False, admin=False) is True
    user = await store.get_user(2)
    assert not user.is_authorized and not user.is_admin


async def test_set_authorization_missing_user(db):
    assert await UserStore().set_authorization(404, authorized=True, admin=False) is False


async def test_list_users_paginates_in_creation_order(db, make_profile):
    store = UserStore()
    for uid in (10, 20, 30):
        await store.create_user(make_profile(uid))

    first_page = await store.list_users(0, 2)
    second_page = await store.list_users(2, 2)

    assert [u.user_id for u in first_page] == [10, 20]
    assert [u.user_id for u in second_page] == [30]


async def test_list_admins(db, make_profile):
    store = UserStore()
    for uid in (1, 2, 3):
        await store.create_user(make_profile(uid))
    await store.set_authorization(3, authorized=True, admin=True)

    admins = await store.list_admins()

    assert [a.user_id for a in admins] == [1, 3]


async def test_is_first_user(db, make_profile):
    store = UserStore()
    assert await store.is_first_user() is True

    await store.create_user(make_profile(1))

    assert await store.is_first_user() is False


async def test_orm_errors_become_storage_error(db):
    store = UserStore()
    with patch.object(User, "get_or_none", side_effect=OperationalError("database is locked")):
        with pytest.raises(StorageError) as exc_info:
            await store.get_user(1)
    assert isinstance(exc_info.value.__cause__, OperationalError)
