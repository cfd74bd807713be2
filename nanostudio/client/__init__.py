# Client package - HTTP client and submission queue
from nanostudio.client.api import ApiError, StudioClient
from nanostudio.client.queue import ClientSubmissionQueue, FeedItem

__all__ = [
    "ApiError",
    "StudioClient",
    "ClientSubmissionQueue",
    "FeedItem",
]
