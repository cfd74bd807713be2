"""
Generation Model
One row per generation attempt, created pending for queue engines and
completed/failed for the synchronous engine.
"""

from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime, Integer, Boolean, ForeignKey
from sqlalchemy.orm import relationship

from nanostudio.core.database import Base


class GenerationStatus:
    """Generation lifecycle constants. Terminal states never revert."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Generation(Base):
    """Generation history record."""

    __tablename__ = "generations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Request
    prompt = Column(Text, nullable=False)  # may be annotated, e.g. "a cat (Upscale 2)"
    style = Column(String, nullable=True)
    size = Column(String, nullable=True)  # "1024x1024"
    quality = Column(String, nullable=True)
    reference_image_url = Column(Text, nullable=True)

    # Result - URL or data URI, empty until resolved
    image_url = Column(Text, default="")

    # Lifecycle
    status = Column(String, default=GenerationStatus.COMPLETED, index=True)
    task_id = Column(String, nullable=True, index=True)
    engine = Column(String, nullable=True)

    # UI state
    is_favorite = Column(Boolean, default=False)
    local_path = Column(String, nullable=True)  # on-disk cached copy

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    user = relationship("User", back_populates="generations")
