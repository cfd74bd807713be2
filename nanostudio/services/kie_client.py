"""
Kie.ai HTTP Client
Shared transport for the Kie-hosted queue engines: auth headers, task
creation envelopes and record lookups.
"""

import logging
from typing import Any, Dict, Optional

import httpx

from nanostudio.core.config import settings
from nanostudio.core.exceptions import ConfigurationError, ProviderError, ProviderSubmitError

logger = logging.getLogger(__name__)


class KieClient:
    """Thin async wrapper over the Kie REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        upload_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = settings.KIE_API_KEY if api_key is None else api_key
        self.base_url = (base_url or settings.KIE_BASE_URL).rstrip("/")
        self.upload_url = upload_url or settings.KIE_UPLOAD_URL
        self.timeout = timeout or settings.KIE_HTTP_TIMEOUT
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        if not self.api_key:
            raise ConfigurationError("KIE_API_KEY is not configured")
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    def url(self, path: str) -> str:
        if path.startswith("http"):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    async def post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        headers = self._headers()
        async with self._client() as client:
            return await client.post(self.url(path), json=payload, headers=headers)

    async def create_task(self, path: str, payload: Dict[str, Any], label: str) -> str:
        """POST a create-task call and return data.taskId. No retry."""
        try:
            response = await self.post(path, payload)
        except httpx.HTTPError as e:
            raise ProviderSubmitError(f"{label} Submit Failed: {e}")
        return self.extract_task_id(response, label)

    @staticmethod
    def extract_task_id(response: httpx.Response, label: str) -> str:
        if not response.is_success:
            logger.error(f"[Kie] {label} API Error ({response.status_code}): {response.text}")
            raise ProviderSubmitError(
                f"{label} Submit Failed: {response.status_code} {response.reason_phrase} - {response.text}",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError:
            raise ProviderSubmitError(f"{label} returned a non-JSON response")

        code = body.get("code")
        data = body.get("data") or {}
        task_id = data.get("taskId") if isinstance(data, dict) else None

        if code is not None and code != 200:
            raise ProviderSubmitError(f"{label} Error ({code}): {body.get('msg')}", details={"code": code})
        if not task_id:
            logger.error(f"[Kie] Invalid {label} response: {body}")
            raise ProviderSubmitError(f"{label} response missing taskId")

        logger.info(f"[Kie] {label} task created: {task_id}")
        return task_id

    async def record_info(self, task_id: str) -> Dict[str, Any]:
        """Fetch the ``data`` object of jobs/recordInfo for a task."""
        headers = self._headers()
        headers.pop("Content-Type")
        async with self._client() as client:
            response = await client.get(
                self.url("jobs/recordInfo"), params={"taskId": task_id}, headers=headers
            )

        if not response.is_success:
            raise ProviderError(f"Failed to fetch task {task_id}: HTTP {response.status_code}")

        body = response.json()
        if body.get("code") != 200:
            raise ProviderError(f"Fetch Error: {body.get('msg')}")
        if not body.get("data"):
            raise ProviderError("No data received")
        return body["data"]
