"""Relay client for the external AI services (ATS scoring, chat, job matching).

Request and response bodies are opaque JSON; this client never inspects them.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "ats_score": "/ats-score",
    "chat": "/chat",
    "match_job": "/match-job",
}


class AIServiceError(Exception):
    """The upstream AI service failed or returned a non-JSON body."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    return False


class AIServiceClient:
    """Async JSON relay with exponential-backoff retries on transport and 5xx errors."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 60.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
        wait=None,
    ):
        self.base_url = base_url.rstrip("/")
        self.max_retries = max(1, max_retries)
        self._wait = wait if wait is not None else wait_exponential(min=1, max=10)
        self.client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_config(cls, config) -> AIServiceClient | None:
        """``None`` when no base URL is configured."""
        if not config.base_url:
            return None
        return cls(config.base_url, timeout=config.timeout, max_retries=config.max_retries)

    async def _post(self, path: str, payload: Any) -> httpx.Response:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.max_retries),
            wait=self._wait,
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                response = await self.client.post(path, json=payload)
                response.raise_for_status()
                return response
        raise AssertionError("unreachable")

    async def relay(self, service: str, payload: Any) -> Any:
        """POST ``payload`` to ``service`` and return the decoded JSON reply."""
        path = ENDPOINTS[service]
        logger.debug("AI relay: %s", path)
        try:
            response = await self._post(path, payload)
        except httpx.HTTPStatusError as exc:
            logger.error("AI service %s returned %d", path, exc.response.status_code)
            raise AIServiceError(
                f"AI service returned {exc.response.status_code}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            logger.error("AI service %s unreachable", path, exc_info=True)
            raise AIServiceError("AI service unreachable") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise AIServiceError("AI service returned invalid JSON") from exc

    async def ats_score(self, payload: Any) -> Any:
        return await self.relay("ats_score", payload)

    async def chat(self, payload: Any) -> Any:
        return await self.relay("chat", payload)

    async def match_job(self, payload: Any) -> Any:
        return await self.relay("match_job", payload)

    async def aclose(self) -> None:
        await self.client.aclose()
