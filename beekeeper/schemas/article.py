from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from beekeeper.models.article import ArticleStatus
from beekeeper.schemas.moderation import ModerationFields


class ArticleBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    content: str = Field(..., min_length=1)
    excerpt: Optional[str] = None


class ArticleCreate(ArticleBase):
    status: ArticleStatus = ArticleStatus.DRAFT


class ArticleUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    content: Optional[str] = Field(None, min_length=1)
    excerpt: Optional[str] = None
    status: Optional[ArticleStatus] = None


class ArticleResponse(ArticleBase, ModerationFields):
    id: int
    slug: str
    status: ArticleStatus
    view_count: int = 0
    published_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
