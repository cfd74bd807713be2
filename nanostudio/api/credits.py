"""
Credits API Routes
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from nanostudio.api.deps import get_current_user_id, get_db
from nanostudio.schemas.history import CreditsResponse
from nanostudio.services.credits import CreditService

router = APIRouter()


@router.get("", response_model=CreditsResponse)
async def get_credits(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Current balance, initialised with the default amount on first access."""
    return CreditsResponse(credits=CreditService(db).get_balance(user_id))
