from typing import Optional

from pydantic import BaseModel


class Pagination(BaseModel):
    total: int
    page: int
    size: int
    total_pages: int


class MessageResponse(BaseModel):
    message: str


class DeleteResponse(BaseModel):
    """Outcome of a dependency-aware delete"""

    message: str
    soft_deleted: bool
    id: Optional[str] = None
