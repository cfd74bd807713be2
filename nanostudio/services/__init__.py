# Services package - generation orchestration and provider integrations
from nanostudio.services.credentials import CredentialPool
from nanostudio.services.engines import Engine, ProviderSet, QueueImageProvider, SyncImageProvider
from nanostudio.services.gemini_image import GeminiImageService
from nanostudio.services.kie_client import KieClient
from nanostudio.services.kie_jobs import KieJobsService
from nanostudio.services.kie_midjourney import KieMidjourneyService
from nanostudio.services.credits import CreditService
from nanostudio.services.history import HistoryService
from nanostudio.services.storage import StorageService
from nanostudio.services.orchestrator import GenerationOrchestrator, GenerateOutcome
from nanostudio.services.task_poller import TaskPoller

__all__ = [
    "CredentialPool",
    "Engine",
    "ProviderSet",
    "QueueImageProvider",
    "SyncImageProvider",
    "GeminiImageService",
    "KieClient",
    "KieJobsService",
    "KieMidjourneyService",
    "CreditService",
    "HistoryService",
    "StorageService",
    "GenerationOrchestrator",
    "GenerateOutcome",
    "TaskPoller",
]
