import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from beekeeper.models.forum import UserForumBan
from beekeeper.utils.exceptions import Forbidden, InfrastructureError

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back naive; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_ban_active(ban: Optional[UserForumBan], now: Optional[datetime] = None) -> bool:
    """A ban counts while it exists and has not expired. A null expiry is permanent."""
    if ban is None:
        return False
    if ban.expires_at is None:
        return True
    now = now or datetime.now(timezone.utc)
    return _as_utc(ban.expires_at) > _as_utc(now)


class BanRegistry:
    """Per-user forum bans, independent of the user's role."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, user_id: int) -> Optional[UserForumBan]:
        try:
            return await self.db.scalar(select(UserForumBan).filter(UserForumBan.user_id == user_id))
        except SQLAlchemyError as e:
            logger.error(f"Ban lookup failed for user {user_id}: {str(e)}")
            raise InfrastructureError("Could not verify forum ban status", cause=e)

    async def is_banned(self, user_id: int, now: Optional[datetime] = None) -> bool:
        """
        Check whether a user is currently banned from the forum.

        Expired records are left in place; they simply stop counting.

        Raises:
            InfrastructureError: the lookup itself failed
        """
        return is_ban_active(await self.get(user_id), now)

    async def ensure_not_banned(self, user_id: int) -> None:
        # a failed lookup propagates as InfrastructureError, so the write is refused
        if await self.is_banned(user_id):
            logger.warning(f"Denied user {user_id}: banned from forum")
            raise Forbidden(reason="forum ban")

    async def ban(
        self,
        user_id: int,
        banned_by: int,
        reason: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> UserForumBan:
        """Create the user's ban, or overwrite the existing one in place."""
        existing = await self.get(user_id)
        now = datetime.now(timezone.utc)
        if existing is not None:
            existing.banned_by = banned_by
            existing.reason = reason
            existing.expires_at = expires_at
            existing.banned_at = now
            record = existing
        else:
            record = UserForumBan(
                user_id=user_id,
                banned_by=banned_by,
                reason=reason,
                expires_at=expires_at,
                banned_at=now,
            )
            self.db.add(record)
        await self.db.flush()
        logger.info(f"User {user_id} banned from forum by {banned_by} until {expires_at or 'forever'}")
        return record

    async def unban(self, user_id: int) -> bool:
        result = await self.db.execute(delete(UserForumBan).where(UserForumBan.user_id == user_id))
        if result.rowcount:
            logger.info(f"User {user_id} unbanned from forum")
        return bool(result.rowcount)

    async def list_bans(self) -> List[UserForumBan]:
        result = await self.db.execute(select(UserForumBan).order_by(UserForumBan.banned_at.desc()))
        return list(result.scalars().all())
