from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional


class ModerationFields(BaseModel):
    owner_id: int
    is_blocked: bool = False
    blocked_at: Optional[datetime] = None
    blocked_by: Optional[int] = None
    blocked_reason: Optional[str] = None


class BlockRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=1000)


class BlockToggle(BaseModel):
    block: bool
    reason: Optional[str] = Field(None, max_length=1000)


class LockToggle(BaseModel):
    lock: bool


class PinToggle(BaseModel):
    pin: bool


class MoveThread(BaseModel):
    category_id: int = Field(..., gt=0)


class BanToggle(BaseModel):
    ban: bool
    reason: Optional[str] = Field(None, max_length=1000)
    expires_at: Optional[datetime] = None


class BanResponse(BaseModel):
    id: int
    user_id: int
    banned_by: int
    reason: Optional[str] = None
    banned_at: datetime
    expires_at: Optional[datetime] = None
    is_active: bool

    class Config:
        from_attributes = True
