from sqlalchemy import Column, Integer, Text, Boolean, DateTime, ForeignKey, false
from sqlalchemy.orm import declared_attr

from beekeeper.policy.moderation import BlockPolicy


class ModerationMixin:
    """Owner and block columns shared by every moderatable table."""

    block_policy = BlockPolicy.IDEMPOTENT

    @declared_attr
    def owner_id(cls):
        return Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    @declared_attr
    def blocked_by(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=True)

    is_blocked = Column(Boolean, default=False, nullable=False)
    blocked_at = Column(DateTime(timezone=True), nullable=True)
    blocked_reason = Column(Text, nullable=True)

    def publicly_visible(self) -> bool:
        return not self.is_blocked

    @classmethod
    def public_clause(cls):
        return cls.is_blocked.is_(false())
