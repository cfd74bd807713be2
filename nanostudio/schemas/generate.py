"""
Generate Schemas
Pydantic models for generation API requests, responses and the canonical
provider result.
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


SUPPORTED_ASPECT_RATIOS = ["1:1", "16:9", "9:16", "4:3", "3:4", "2:3", "3:2", "4:5", "21:9"]


class TaskState(str, Enum):
    """Canonical result state. PENDING is the only non-terminal state."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class Quality(str, Enum):
    BASE_1K = "BASE_1K"
    HIRES_2K = "HIRES_2K"
    ULTRA_4K = "ULTRA_4K"

    @property
    def long_edge(self) -> int:
        return {"BASE_1K": 1024, "HIRES_2K": 2048, "ULTRA_4K": 4096}[self.value]

    @property
    def resolution(self) -> str:
        """Kie resolution label: 1K / 2K / 4K."""
        return {"BASE_1K": "1K", "HIRES_2K": "2K", "ULTRA_4K": "4K"}[self.value]


class CamelModel(BaseModel):
    """Accepts both camelCase (browser) and snake_case field names."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class GenerationResult(CamelModel):
    """Canonical result produced by the normalizer from any provider payload."""
    status: TaskState
    image: Optional[str] = None
    fail_reason: Optional[str] = None
    progress: Optional[str] = None

    @classmethod
    def completed(cls, image: str) -> "GenerationResult":
        return cls(status=TaskState.COMPLETED, image=image)

    @classmethod
    def failed(cls, reason: str) -> "GenerationResult":
        return cls(status=TaskState.FAILED, fail_reason=reason)

    @classmethod
    def pending(cls, progress: Optional[str] = None) -> "GenerationResult":
        return cls(status=TaskState.PENDING, progress=progress)

    @property
    def is_terminal(self) -> bool:
        return self.status != TaskState.PENDING


class MidjourneyOptions(CamelModel):
    """Creative-queue parameters."""
    version: str = "6.0"
    stylize: int = 100
    weirdness: int = 0
    variety: int = 0
    speed: str = "fast"


class GenerateRequest(CamelModel):
    """Schema for POST /generate."""
    prompt: str = ""
    edit_instruction: Optional[str] = None
    style: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None
    aspect_ratio: str = "1:1"
    quality: Quality = Quality.BASE_1K
    reference_images: List[str] = Field(default_factory=list)
    edit_image: Optional[str] = None
    fixed_objects: Dict[str, bool] = Field(default_factory=dict)
    engine: Optional[str] = None
    fixed_seed: bool = False
    midjourney: Optional[MidjourneyOptions] = None

    @property
    def is_edit(self) -> bool:
        return bool(self.edit_image and self.edit_instruction)

    @property
    def display_prompt(self) -> str:
        return self.prompt or self.edit_instruction or "Image"

    def safe_aspect_ratio(self) -> str:
        return self.aspect_ratio if self.aspect_ratio in SUPPORTED_ASPECT_RATIOS else "1:1"

    def resolve_dimensions(self) -> Tuple[int, int]:
        """Explicit width/height, else aspect ratio scaled to the quality tier."""
        if self.width and self.height:
            return self.width, self.height
        return dimensions_for(self.aspect_ratio, self.quality)


def dimensions_for(aspect_ratio: str, quality: Quality = Quality.BASE_1K) -> Tuple[int, int]:
    long_edge = quality.long_edge
    try:
        w, h = (int(part) for part in aspect_ratio.split(":"))
        if w <= 0 or h <= 0:
            raise ValueError(aspect_ratio)
    except ValueError:
        w, h = 1, 1
    if w >= h:
        return long_edge, round(long_edge * h / w)
    return round(long_edge * w / h), long_edge


class GenerateResponse(CamelModel):
    """Schema for POST /generate. Queue engines return a pending task id."""
    success: bool = True
    status: TaskState
    image: Optional[str] = None
    task_id: Optional[str] = None
    generation_id: Optional[int] = None
    engine: str
    size: str
    quality: Quality
    aspect_ratio: str
    seed: Optional[int] = None
    credits: int


class QueueGenerateRequest(CamelModel):
    """Schema for POST /queue-generate (waits for the queue to finish)."""
    prompt: str = ""
    aspect_ratio: str = "1:1"
    resolution: str = "1K"
    output_format: str = "png"
    image_input: List[str] = Field(default_factory=list)


class QueueGenerateResponse(CamelModel):
    success: bool = True
    image_url: str
    aspect_ratio: str
    resolution: str
    credits: int


class ActionType(str, Enum):
    UPSCALE = "upscale"
    VARY = "vary"


class ActionRequest(CamelModel):
    """Schema for POST /generate/action."""
    action: str
    task_id: Optional[str] = None
    index: Optional[int] = None
    generation_id: Optional[int] = None


class ActionResponse(CamelModel):
    success: bool = True
    task_id: str
    status: TaskState = TaskState.PENDING
    generation_id: int
    credits: int
