from pydantic import BaseModel, Field, validator
from datetime import datetime
from typing import Optional

from beekeeper.models.comment import CommentStatus


class CommentBase(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)

    @validator('content')
    def validate_content(cls, v):
        if not v.strip():
            raise ValueError('Comment content cannot be empty')
        return v.strip()


class CommentCreate(CommentBase):
    article_id: int = Field(..., gt=0)
    parent_id: Optional[int] = None


class CommentUpdate(CommentBase):
    pass


class CommentStatusUpdate(BaseModel):
    status: CommentStatus


class CommentResponse(CommentBase):
    id: int
    article_id: int
    owner_id: int
    parent_id: Optional[int] = None
    status: CommentStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True
