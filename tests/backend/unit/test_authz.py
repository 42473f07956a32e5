"""
Unit tests for core.authz module.
Tests the registration bootstrap rule, admin-only transitions, and the
best-effort notifications they trigger.
"""
import asyncio

import pytest
import pytest_asyncio

from webbridge.core.authz import AuthorizationService
from webbridge.core.errors import NotFound, PermissionDenied
from webbridge.core.notify import Notifier
from webbridge.core.user_store import UserStore


pytestmark = pytest.mark.asyncio


@pytest_asyncio.fixture
async def notifier(chat):
    n = Notifier(chat, timeout=0.5)
    yield n
    await n.drain()


@pytest_asyncio.fixture
async def authz(db, notifier):
    return AuthorizationService(UserStore(), notifier)


class TestRegister:

    async def test_first_user_becomes_admin(self, authz, make_profile):
        user = await authz.register(make_profile(1))

        assert user.is_authorized and user.is_admin

    async def test_second_user_is_registered_unauthorized(self, authz, make_profile):
        await authz.register(make_profile(1))
        user = await authz.register(make_profile(2))

        assert not user.is_authorized and not user.is_admin

    async def test_register_is_idempotent(self, authz, make_profile):
        await authz.register(make_profile(1))
        await authz.register(make_profile(2))

        again = await authz.register(make_profile(2, first_name="Changed"))

        assert again.first_name == "User2"
        assert not again.is_authorized

    async def test_concurrent_first_contacts_yield_one_admin(self, authz, make_profile):
        users = await asyncio.gather(*(authz.register(make_profile(uid)) for uid in range(1, 9)))

        assert sum(1 for u in users if u.is_admin) == 1
        assert len(await UserStore().list_admins()) == 1

    async def test_admins_are_notified_about_newcomer(self, authz, notifier, chat, make_profile):
        await authz.register(make_profile(1, chat_id=100))
        await authz.register(make_profile(2, username="bob"))
        await notifier.drain()

        notices = chat.texts(100)
        assert len(notices) == 1
        assert "@bob" in notices[0]
        assert "/authorize 2" in notices[0]

    async def test_bootstrap_admin_triggers_no_notice(self, authz, notifier, chat, make_profile):
        await authz.register(make_profile(1))
        await notifier.drain()

        assert chat.sent == []

    async def test_existing_user_triggers_no_notice(self, authz, notifier, chat, make_profile):
        await authz.register(make_profile(1))
        await authz.register(make_profile(2))
        await notifier.drain()
        chat.sent.clear()

        await authz.register(make_profile(2))
        await notifier.drain()

        assert chat.sent == []

    async def test_notification_failure_does_not_fail_registration(self, authz, notifier, chat, make_profile):
        await authz.register(make_profile(1, chat_id=100))
        await authz.register(make_profile(3))
        await authz.authorize(1, 3, grant_admin=True)
        await notifier.drain()
        chat.sent.clear()
        chat.fail_chats.add(100)

        user = await authz.register(make_profile(4))
        await notifier.drain()

        assert user.user_id == 4
        # The other admin is still notified
        assert len(chat.texts(3)) == 1

    async def test_is_first_user(self, authz, make_profile):
        assert await authz.is_first_user() is True
        await authz.register(make_profile(1))
        assert await authz.is_first_user() is False


class TestAuthorize:

    async def test_authorize_by_admin(self, authz, notifier, chat, make_profile):
        await authz.register(make_profile(1))
        await authz.register(make_profile(2))

        await authz.authorize(1, 2, grant_admin=False)
        await notifier.drain()

        access = await authz.check_access(2)
        assert access.authorized and not access.is_admin
        assert chat.texts(2) == ["You have been authorized to use WebBridge!"]

    async def test_authorize_with_admin_grant(self, authz, notifier, chat, make_profile):
        await authz.register(make_profile(1))
        await authz.register(make_profile(2))

        await authz.authorize(1, 2, grant_admin=True)
        await notifier.drain()

        access = await authz.check_access(2)
        assert access.authorized and access.is_admin
        assert "as an admin" in chat.texts(2)[0]

    async def test_non_admin_cannot_authorize(self, authz, make_profile):
        await authz.register(make_profile(1))
        await authz.register(make_profile(2))
        await authz.register(make_profile(3))

        with pytest.raises(PermissionDenied):
            await authz.authorize(2, 3)

        assert not (await authz.check_access(3)).authorized

    async def test_permission_checked_before_target_lookup(self, authz, make_profile):
        await authz.register(make_profile(1))
        await authz.register(make_profile(2))

        with pytest.raises(PermissionDenied):
            await authz.authorize(2, 999)
        with pytest.raises(PermissionDenied):
            await authz.deauthorize(2, 999)

    async def test_unknown_acting_user_is_denied(self, authz, make_profile):
        await authz.register(make_profile(1))

        with pytest.raises(PermissionDenied):
            await authz.authorize(555, 1)

    async def test_authorize_missing_target(self, authz, make_profile):
        await authz.register(make_profile(1))

        with pytest.raises(NotFound):
            await authz.authorize(1, 999)

    async def test_notification_failure_keeps_authorization(self, authz, notifier, chat, make_profile):
        await authz.register(make_profile(1))
        await authz.register(make_profile(2))
        chat.fail_chats.add(2)

        await authz.authorize(1, 2)
        await notifier.drain()

        assert (await authz.check_access(2)).authorized


class TestDeauthorize:

    async def test_deauthorize_admin_clears_both_flags(self, authz, make_profile):
        await authz.register(make_profile(1))
        await authz.register(make_profile(2))
        await authz.authorize(1, 2, grant_admin=True)

        await authz.deauthorize(1, 2)

        access = await authz.check_access(2)
        assert not access.authorized and not access.is_admin

    async def test_deauthorize_notifies_target(self, authz, notifier, chat, make_profile):
        await authz.register(make_profile(1))
        await authz.register(make_profile(2))
        await authz.authorize(1, 2)
        await notifier.drain()
        chat.sent.clear()

        await authz.deauthorize(1, 2)
        await notifier.drain()

        assert chat.texts(2) == ["You have been deauthorized from using WebBridge."]

    async def test_deauthorize_missing_target(self, authz, make_profile):
        await authz.register(make_profile(1))

        with pytest.raises(NotFound):
            await authz.deauthorize(1, 999)

    async def test_check_access_unknown_user(self, authz):
        access = await authz.check_access(42)
        assert not access.authorized and not access.is_admin
