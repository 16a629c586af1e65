from pydantic import BaseModel, Field, validator
from datetime import datetime
from typing import List, Optional

from beekeeper.schemas.moderation import ModerationFields


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=3, max_length=100)
    description: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3, max_length=100)
    description: Optional[str] = None


class CategoryResponse(ModerationFields):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    thread_count: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ThreadCreate(BaseModel):
    title: str = Field(..., min_length=5, max_length=255)
    content: str = Field(..., min_length=10)
    category_id: int = Field(..., gt=0)


class ThreadUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=5, max_length=255)
    content: Optional[str] = Field(None, min_length=10)


class ThreadResponse(ModerationFields):
    id: int
    title: str
    slug: str
    content: str
    category_id: int
    is_locked: bool = False
    is_pinned: bool = False
    view_count: int = 0
    comment_count: Optional[int] = None
    last_activity_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ForumCommentBase(BaseModel):
    content: str = Field(..., min_length=1)

    @validator('content')
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError('Comment content cannot be empty')
        return v.strip()


class ForumCommentCreate(ForumCommentBase):
    thread_id: int = Field(..., gt=0)
    parent_comment_id: Optional[int] = None


class ForumCommentUpdate(ForumCommentBase):
    pass


class ForumCommentResponse(ModerationFields):
    id: int
    thread_id: int
    parent_comment_id: Optional[int] = None
    content: str
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CategoryDetail(BaseModel):
    category: CategoryResponse
    threads: List[ThreadResponse]


class ThreadDetail(BaseModel):
    thread: ThreadResponse
    comments: List[ForumCommentResponse]


class CountPair(BaseModel):
    total: int
    blocked: int


class ForumStats(BaseModel):
    categories: CountPair
    threads: CountPair
    comments: CountPair
    banned_users: int


class BlockedContent(BaseModel):
    categories: List[CategoryResponse]
    threads: List[ThreadResponse]
    comments: List[ForumCommentResponse]
