# Database models package
from nanostudio.models.user import User, Session
from nanostudio.models.credit import Credit
from nanostudio.models.generation import Generation, GenerationStatus

__all__ = [
    "User",
    "Session",
    "Credit",
    "Generation",
    "GenerationStatus",
]
