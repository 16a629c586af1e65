from sqlalchemy import Column, Integer, String, Text, DateTime, Enum, and_
from sqlalchemy.sql import func
from database import Base
from beekeeper.models.moderation import ModerationMixin
from beekeeper.policy.moderation import BlockPolicy
import enum


class ArticleStatus(str, enum.Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Article(ModerationMixin, Base):
    __tablename__ = "articles"

    # Re-blocking or unblocking an active article is an error, not a no-op
    block_policy = BlockPolicy.STRICT

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    slug = Column(String(255), unique=True, nullable=False)
    content = Column(Text, nullable=False)
    excerpt = Column(Text, nullable=True)
    status = Column(Enum(ArticleStatus, values_callable=lambda s: [m.value for m in s]),
                    default=ArticleStatus.DRAFT, nullable=False)
    view_count = Column(Integer, default=0)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), nullable=True)
    version_id = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version_id}

    def publicly_visible(self) -> bool:
        return super().publicly_visible() and self.status == ArticleStatus.PUBLISHED

    @classmethod
    def public_clause(cls):
        return and_(super().public_clause(), cls.status == ArticleStatus.PUBLISHED)
