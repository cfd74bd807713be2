"""
History API Routes
Generation history listing, deletion and favourites.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from nanostudio.api.deps import get_current_user_id, get_db
from nanostudio.schemas.history import (
    DeleteRequest,
    DeleteResponse,
    FavoriteResponse,
    GenerationResponse,
    HistoryResponse,
)
from nanostudio.services.history import HistoryService

router = APIRouter()


@router.get("", response_model=HistoryResponse)
async def list_history(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Most recent generations first."""
    generations = HistoryService(db).list_recent(user_id)
    return HistoryResponse(generations=[GenerationResponse.model_validate(g) for g in generations])


@router.post("/delete", response_model=DeleteResponse)
async def delete_history(
    request: DeleteRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Delete generations and their cached files."""
    deleted = HistoryService(db).delete(user_id, request.ids)
    return DeleteResponse(deleted_count=deleted)


@router.post("/{generation_id}/favorite", response_model=FavoriteResponse)
async def toggle_favorite(
    generation_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    generation = HistoryService(db).toggle_favorite(user_id, generation_id)
    return FavoriteResponse(id=generation.id, is_favorite=generation.is_favorite)
