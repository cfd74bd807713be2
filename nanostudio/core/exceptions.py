"""
Application Exceptions
Error taxonomy shared by services and translated to HTTP at the route boundary.
"""

from typing import Optional


class StudioError(Exception):
    """Base exception for all application errors."""

    status_code = 500

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InputValidationError(StudioError):
    """Missing or malformed request fields. No provider call, no credit touched."""
    status_code = 400


class TaskNotFoundError(StudioError):
    status_code = 404


class QuotaExhaustedError(StudioError):
    """Credit balance is zero or negative."""
    status_code = 403


class ConfigurationError(StudioError):
    """A provider is used without its credentials configured."""
    status_code = 500


class ProviderError(StudioError):
    """Base class for third-party provider failures."""
    status_code = 500


class ProviderSubmitError(ProviderError):
    """Non-success status or malformed envelope from a create-task call."""


class GenerationRefusedError(ProviderError):
    """Provider answered with explanatory text instead of an image."""


class GenerationTimeoutError(ProviderError):
    """Poll budget exhausted before the task reached a terminal state."""
