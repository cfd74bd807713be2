"""
Credit Model
Per-user consumable balance gating generation requests.
"""

from sqlalchemy import Column, String, Integer, ForeignKey
from sqlalchemy.orm import relationship

from nanostudio.core.database import Base


class Credit(Base):
    """One row per user."""

    __tablename__ = "credits"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    amount = Column(Integer, default=10, nullable=False)
    last_refill_date = Column(String, nullable=True)

    user = relationship("User", back_populates="credit")
