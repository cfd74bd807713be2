"""
Studio HTTP Client
Async wrapper around the server routes, used by the submission queue.
"""

import logging
from typing import List, Optional

import httpx

from nanostudio.core.config import settings
from nanostudio.core.exceptions import StudioError
from nanostudio.schemas.generate import (
    ActionRequest,
    ActionResponse,
    GenerateRequest,
    GenerateResponse,
    GenerationResult,
)
from nanostudio.schemas.history import DeleteResponse, HistoryResponse

logger = logging.getLogger(__name__)


class ApiError(StudioError):
    """Non-2xx answer from the server, carrying its status and detail."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message, details={"status_code": status_code})
        self.status_code = status_code


class StudioClient:
    """Thin async client for the generation, status and history routes."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.CLIENT_BASE_URL).rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.request(method, path, json=payload, headers=self._headers())

        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise ApiError(str(detail), response.status_code)
        return response.json()

    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = await self._request("POST", "/api/generate", payload)
        return GenerateResponse.model_validate(data)

    async def action(self, request: ActionRequest) -> ActionResponse:
        payload = request.model_dump(mode="json", by_alias=True, exclude_none=True)
        data = await self._request("POST", "/api/generate/action", payload)
        return ActionResponse.model_validate(data)

    async def status(self, task_id: str) -> GenerationResult:
        data = await self._request("GET", f"/api/generate/status/{task_id}")
        return GenerationResult.model_validate(data)

    async def history(self) -> HistoryResponse:
        return HistoryResponse.model_validate(await self._request("GET", "/api/history"))

    async def delete_history(self, ids: List[int]) -> DeleteResponse:
        return DeleteResponse.model_validate(await self._request("POST", "/api/history/delete", {"ids": ids}))

    async def credits(self) -> int:
        return (await self._request("GET", "/api/credits"))["credits"]
