from pydantic import BaseModel
from typing import Generic, List, Optional, TypeVar

T = TypeVar("T")


class Pagination(BaseModel):
    total: int
    page: int
    pages: int
    per_page: int


class ApiResponse(BaseModel, Generic[T]):
    success: bool = True
    message: Optional[str] = None
    data: Optional[T] = None


class ApiListResponse(BaseModel, Generic[T]):
    success: bool = True
    data: List[T]
    pagination: Optional[Pagination] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
