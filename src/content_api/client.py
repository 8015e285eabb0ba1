"""
Content API client.

Async HTTP wrapper around the remote content-management API that owns
sections and contents (activities). Provides:
- Listing sections of a course group and all contents
- Create/delete for sections and contents
- Batched sequence updates used by the sync dispatcher

Hardening:
- Retry with exponential backoff on timeouts, transport errors and 5xx
- No retry on 4xx (validation rejections are final)
- Responses wrapped as {"data": ..., "pagemeta": ...} are unwrapped
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
from loguru import logger

from config import get_settings


class ContentApiError(Exception):
    """Raised when the content API cannot complete a request."""

    def __init__(self, message: str, status_code: int | None = None, detail: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


class ContentApiClient:
    """HTTP client for the section/content endpoints of the content API."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        retry_attempts: int | None = None,
        retry_backoff: float | None = None,
    ) -> None:
        """
        Initialize the content API client.

        Args:
            base_url: API base URL (default from config)
            api_key: Bearer token (default from config)
            timeout: Request timeout in seconds (default from config)
            retry_attempts: Attempts per request (default from config)
            retry_backoff: Backoff factor in seconds (default from config)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.content_api_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.content_api_timeout
        self.retry_attempts = max(1, retry_attempts if retry_attempts is not None else settings.api_retry_attempts)
        self.retry_backoff = retry_backoff if retry_backoff is not None else settings.api_retry_backoff

        headers = {"Content-Type": "application/json"}
        token = api_key or settings.content_api_key
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(self.timeout),
            follow_redirects=True,
        )

        logger.debug(
            "Initialized content API client: url={}, timeout={}s, retries={}",
            self.base_url,
            self.timeout,
            self.retry_attempts,
        )

    async def __aenter__(self) -> ContentApiClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    # ========================================
    # Core request handling
    # ========================================

    @staticmethod
    def _unwrap(response: httpx.Response) -> Any:
        if response.status_code == 204 or not response.content:
            return None
        try:
            body = response.json()
        except ValueError:
            # plain-text acknowledgements such as "OK"
            return response.text
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    @staticmethod
    def _detail(response: httpx.Response) -> Any:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            return body.get("message") or body.get("detail") or body.get("error") or body
        return body

    @staticmethod
    def _expect_list(body: Any, what: str) -> list[dict[str, Any]] | None:
        if body is None or isinstance(body, list):
            return body
        raise ContentApiError(f"Expected a list of {what}, got {type(body).__name__}", detail=body)

    @staticmethod
    def _expect_record(body: Any, what: str) -> dict[str, Any]:
        if isinstance(body, dict) and "id" in body:
            return body
        raise ContentApiError(f"Expected the created {what} with an id, got {body!r}", detail=body)

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        """
        Send a request with retry on transient failures.

        Raises:
            ContentApiError: On 4xx, or when all attempts are exhausted
        """
        last_error: Exception | None = None

        for attempt in range(self.retry_attempts):
            try:
                response = await self.client.request(method, path, json=json)
                response.raise_for_status()
                return self._unwrap(response)

            except httpx.HTTPStatusError as e:
                last_error = e
                status = e.response.status_code
                if status < 500:
                    detail = self._detail(e.response)
                    logger.error("Content API rejected {} {}: {} {}", method, path, status, detail)
                    raise ContentApiError(
                        f"{method} {path} failed with {status}",
                        status_code=status,
                        detail=detail,
                    ) from e
                logger.warning(
                    "Content API server error {} on attempt {}/{} for {} {}",
                    status, attempt + 1, self.retry_attempts, method, path,
                )

            except httpx.TimeoutException as e:
                last_error = e
                logger.warning(
                    "Content API timeout on attempt {}/{} for {} {}",
                    attempt + 1, self.retry_attempts, method, path,
                )

            except httpx.RequestError as e:
                last_error = e
                logger.warning(
                    "Content API request error on attempt {}/{} for {} {}: {}",
                    attempt + 1, self.retry_attempts, method, path, e,
                )

            if attempt < self.retry_attempts - 1:
                await asyncio.sleep(self.retry_backoff * (2 ** attempt))

        status_code = None
        if isinstance(last_error, httpx.HTTPStatusError):
            status_code = last_error.response.status_code
        logger.error(
            "Content API {} {} failed after {} attempts: {}",
            method, path, self.retry_attempts, last_error,
        )
        raise ContentApiError(
            f"{method} {path} failed after {self.retry_attempts} attempts: {last_error}",
            status_code=status_code,
        ) from last_error

    # ========================================
    # Sections
    # ========================================

    async def list_sections(self, group_id: str) -> list[dict[str, Any]]:
        """Fetch all sections of a course group."""
        sections = await self._request("GET", f"/groups/{group_id}/sections")
        sections = self._expect_list(sections, "sections")
        logger.debug("Fetched {} sections for group {}", len(sections or []), group_id)
        return sections or []

    async def create_section(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._expect_record(await self._request("POST", "/sections", json=data), "section")

    async def update_sections_sequence(self, updates: list[dict[str, Any]]) -> None:
        """Set the sequence of many sections in one request."""
        await self._request("PATCH", "/sections/sequence", json={"sections": updates})
        logger.debug("Updated sequence of {} sections", len(updates))

    async def delete_section(self, section_id: str) -> None:
        await self._request("DELETE", f"/sections/{section_id}")

    # ========================================
    # Contents (activities)
    # ========================================

    async def list_activities(self) -> list[dict[str, Any]]:
        """Fetch all contents."""
        contents = await self._request("GET", "/contents")
        contents = self._expect_list(contents, "contents")
        logger.debug("Fetched {} contents", len(contents or []))
        return contents or []

    async def create_activity(self, data: dict[str, Any]) -> dict[str, Any]:
        return self._expect_record(await self._request("POST", "/contents", json=data), "content")

    async def update_contents_sequence(self, updates: list[dict[str, Any]]) -> None:
        """Set sequence (and owning section) of many contents in one request."""
        await self._request("PATCH", "/contents/sequence", json={"contents": updates})
        logger.debug("Updated sequence of {} contents", len(updates))

    async def delete_activity(self, activity_id: str) -> None:
        await self._request("DELETE", f"/contents/{activity_id}")

    # ========================================
    # Health Check
    # ========================================

    async def health_check(self) -> bool:
        """Check if the content API is reachable."""
        try:
            response = await self.client.get("/health", timeout=5.0)
            return response.status_code == 200
        except (httpx.RequestError, asyncio.TimeoutError):
            return False
