"""
Tests for the forum ban registry
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from beekeeper.models.forum import UserForumBan
from beekeeper.policy.bans import BanRegistry, is_ban_active
from beekeeper.utils.exceptions import Forbidden, InfrastructureError

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class TestIsBanActive:

    def test_no_record(self):
        assert not is_ban_active(None, NOW)

    def test_permanent_ban(self):
        assert is_ban_active(UserForumBan(user_id=1, expires_at=None), NOW)

    def test_future_expiry(self):
        assert is_ban_active(UserForumBan(user_id=1, expires_at=NOW + timedelta(days=1)), NOW)

    def test_past_expiry(self):
        assert not is_ban_active(UserForumBan(user_id=1, expires_at=NOW - timedelta(seconds=1)), NOW)

    def test_naive_timestamp_read_as_utc(self):
        naive = (NOW + timedelta(hours=1)).replace(tzinfo=None)
        assert is_ban_active(UserForumBan(user_id=1, expires_at=naive), NOW)


class TestBanRegistry:
    """Ban records against a real database"""

    async def test_ban_twice_keeps_one_record(self, session_factory, reader, admin, other_author):
        async with session_factory() as db:
            registry = BanRegistry(db)
            await registry.ban(reader.id, admin.id, "spam")
            await db.commit()
            expiry = datetime.now(timezone.utc) + timedelta(days=3)
            await registry.ban(reader.id, other_author.id, "trolling", expiry)
            await db.commit()

        async with session_factory() as db:
            count = await db.scalar(
                select(func.count(UserForumBan.id)).filter(UserForumBan.user_id == reader.id)
            )
            ban = await BanRegistry(db).get(reader.id)

        assert count == 1
        assert ban.reason == "trolling"
        assert ban.banned_by == other_author.id
        assert ban.expires_at is not None

    async def test_unban(self, session_factory, reader, admin):
        async with session_factory() as db:
            registry = BanRegistry(db)
            await registry.ban(reader.id, admin.id)
            await db.commit()
            assert await registry.is_banned(reader.id)

            assert await registry.unban(reader.id)
            await db.commit()
            assert not await registry.is_banned(reader.id)
            assert not await registry.unban(reader.id)

    async def test_expired_ban_does_not_block(self, session_factory, reader, admin):
        async with session_factory() as db:
            registry = BanRegistry(db)
            await registry.ban(reader.id, admin.id, "cool off", datetime.now(timezone.utc) - timedelta(minutes=1))
            await db.commit()

            await registry.ensure_not_banned(reader.id)
            assert len(await registry.list_bans()) == 1

    async def test_active_ban_raises_forbidden(self, session_factory, reader, admin):
        async with session_factory() as db:
            registry = BanRegistry(db)
            await registry.ban(reader.id, admin.id)
            await db.commit()

            with pytest.raises(Forbidden):
                await registry.ensure_not_banned(reader.id)


class BrokenSession:
    async def scalar(self, *args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("database is locked"))


async def test_lookup_failure_fails_closed():
    registry = BanRegistry(BrokenSession())

    with pytest.raises(InfrastructureError):
        await registry.is_banned(1)
    with pytest.raises(InfrastructureError):
        await registry.ensure_not_banned(1)
