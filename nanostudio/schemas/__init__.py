# Pydantic schemas package
from nanostudio.schemas.generate import (
    TaskState, Quality, GenerationResult, MidjourneyOptions,
    GenerateRequest, GenerateResponse,
    QueueGenerateRequest, QueueGenerateResponse,
    ActionType, ActionRequest, ActionResponse,
    SUPPORTED_ASPECT_RATIOS, dimensions_for,
)
from nanostudio.schemas.history import (
    GenerationResponse, HistoryResponse, DeleteRequest, DeleteResponse,
    FavoriteResponse, CreditsResponse,
)

__all__ = [
    "TaskState", "Quality", "GenerationResult", "MidjourneyOptions",
    "GenerateRequest", "GenerateResponse",
    "QueueGenerateRequest", "QueueGenerateResponse",
    "ActionType", "ActionRequest", "ActionResponse",
    "SUPPORTED_ASPECT_RATIOS", "dimensions_for",
    "GenerationResponse", "HistoryResponse", "DeleteRequest", "DeleteResponse",
    "FavoriteResponse", "CreditsResponse",
]
