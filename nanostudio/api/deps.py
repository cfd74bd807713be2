"""
API Dependencies
Common dependencies for FastAPI routes (database sessions, providers, user).
"""

from datetime import datetime
from functools import lru_cache
from typing import Generator, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session as DBSession

from nanostudio.core.config import settings
from nanostudio.core.database import SessionLocal
from nanostudio.models.user import Session
from nanostudio.services.engines import ProviderSet
from nanostudio.services.gemini_image import GeminiImageService
from nanostudio.services.kie_jobs import KieJobsService
from nanostudio.services.kie_midjourney import KieMidjourneyService


def get_db() -> Generator:
    """Get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@lru_cache()
def get_providers() -> ProviderSet:
    """Process-wide adapters; the Gemini key rotation lives here."""
    return ProviderSet(
        gemini=GeminiImageService(),
        kie=KieJobsService(),
        midjourney=KieMidjourneyService(),
    )


def get_current_user_id(
    authorization: Optional[str] = Header(default=None),
    db: DBSession = Depends(get_db),
) -> int:
    """
    Resolve the acting user.

    A valid, unexpired bearer session token selects its user; anything else
    falls back to the default single user.
    """
    if authorization and authorization.lower().startswith("bearer "):
        token = authorization.split(" ", 1)[1].strip()
        session = (
            db.query(Session)
            .filter(Session.token == token, Session.expires_at > datetime.utcnow())
            .first()
        )
        if session:
            return session.user_id
    return settings.DEFAULT_USER_ID
