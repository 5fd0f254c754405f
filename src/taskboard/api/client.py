"""HTTP client for the task service REST API."""

from __future__ import annotations

import logging
import time
from typing import Any

import httpx

logger = logging.getLogger(__name__)

API_PREFIX = "/api/tasks"


class TaskApiError(Exception):
    """Base exception for task service errors."""

    pass


class TaskNetworkError(TaskApiError):
    """Transport failure or unexpected non-2xx response."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TaskValidationError(TaskApiError):
    """Task payload was rejected or could not be parsed."""

    pass


class TaskNotFoundError(TaskApiError):
    """The service does not know the referenced task."""

    pass


class ApiClient:
    """Async client for the task service.

    Thin wrapper around ``httpx.AsyncClient`` that:
    - Prefixes every path with ``/api/tasks``
    - Logs each request with its elapsed time
    - Maps transport and HTTP failures onto the TaskApiError hierarchy

    No retries are made and transport-default timeouts apply.
    """

    def __init__(
        self,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Service root, e.g. "https://tasks.example.com"
            transport: Optional transport override (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self._api_url = f"{self.base_url}{API_PREFIX}"
        self._client = httpx.AsyncClient(
            base_url=self._api_url,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.aclose()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        expect_json: bool = True,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: HTTP method
            path: Path below /api/tasks, e.g. "/gettasks"
            json: Optional JSON body
            expect_json: If False, the body is ignored and None is returned

        Returns:
            Decoded JSON response (or None when expect_json is False)

        Raises:
            TaskNetworkError: Transport failure, unexpected status or bad JSON
            TaskNotFoundError: HTTP 404
            TaskValidationError: HTTP 400/422
        """
        label = f"{method} {path}"
        logger.debug("%s: body=%s", label, json)

        start_time = time.monotonic()
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.RequestError as e:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            logger.error("%s failed after %.0fms: %s", label, elapsed_ms, e)
            raise TaskNetworkError(f"Request failed: {e}") from e

        elapsed_ms = (time.monotonic() - start_time) * 1000
        status = response.status_code

        if status == 404:
            logger.error("%s: 404 Not Found (%.0fms)", label, elapsed_ms)
            raise TaskNotFoundError(f"Task not found: {path}")
        if status in (400, 422):
            logger.error("%s: %d rejected (%.0fms): %s", label, status, elapsed_ms, response.text)
            raise TaskValidationError(f"Task rejected by server: {response.text}")
        if status >= 400:
            logger.error("%s: HTTP %d (%.0fms)", label, status, elapsed_ms)
            raise TaskNetworkError(f"HTTP {status}: {response.text}", status_code=status)

        logger.info("%s: %d (%.0fms)", label, status, elapsed_ms)

        if not expect_json:
            return None

        try:
            return response.json()
        except ValueError as e:
            logger.error("%s: Invalid JSON response (%.0fms)", label, elapsed_ms)
            raise TaskNetworkError(f"Invalid JSON response: {e}", status_code=status) from e

    async def get(self, path: str) -> Any:
        return await self.request("GET", path)

    async def post(self, path: str, json: dict[str, Any]) -> Any:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: dict[str, Any]) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> None:
        await self.request("DELETE", path, expect_json=False)
