"""
History Schemas
Pydantic models for history listing, deletion and credits.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import Field

from nanostudio.schemas.generate import CamelModel


class GenerationResponse(CamelModel):
    """Schema for one history row."""
    id: int
    prompt: str
    style: Optional[str] = None
    size: Optional[str] = None
    image: Optional[str] = Field(default=None, validation_alias="image_url")
    quality: Optional[str] = None
    status: str
    task_id: Optional[str] = None
    engine: Optional[str] = None
    is_favorite: bool = False
    reference_image_url: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class HistoryResponse(CamelModel):
    generations: List[GenerationResponse]


class DeleteRequest(CamelModel):
    ids: List[int] = Field(default_factory=list)


class DeleteResponse(CamelModel):
    success: bool = True
    deleted_count: int


class FavoriteResponse(CamelModel):
    id: int
    is_favorite: bool


class CreditsResponse(CamelModel):
    credits: int
