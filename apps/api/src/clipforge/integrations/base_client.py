"""
Shared HTTP client for provider integrations.

Runway, Luma, Shotstack and ElevenLabs all speak JSON over HTTPS with the
same failure modes, so retries live here:

- 429 is retried, honoring ``Retry-After``
- 5xx, timeouts and connection errors are retried with jittered backoff
- any other 4xx fails immediately

Provider adapters translate the resulting ``ExternalServiceError`` and
``RateLimitError`` into ``ProviderError``.
"""

import logging
import random
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx

from clipforge.core.config import Settings, get_settings
from clipforge.core.exceptions import ExternalServiceError, RateLimitError

logger = logging.getLogger(__name__)


class SyncBaseHTTPClient(ABC):
    """
    Synchronous JSON API client with retry handling.

    Pipeline steps run inside Celery workers, so clients are synchronous.
    Subclasses provide ``service_name`` and ``_get_headers``.

    Args:
        base_url: API root, e.g. "https://api.lumalabs.ai/dream-machine/v1"
        api_key: Credential used by ``_get_headers``
        settings: Application settings
        max_retries: Attempts per request, including the first
        base_delay: First backoff delay in seconds
        max_delay: Backoff ceiling in seconds
        timeout: Per-request timeout in seconds
        transport: httpx transport override (tests use MockTransport)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        settings: Settings | None = None,
        max_retries: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        timeout: float = 60.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._settings = settings or get_settings()
        self._max_retries = max_retries
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._timeout = timeout
        self._client = httpx.Client(
            base_url=self._base_url,
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            transport=transport,
        )

    @property
    @abstractmethod
    def service_name(self) -> str:
        """Service name used in logs and errors."""

    @abstractmethod
    def _get_headers(self) -> dict[str, str]: ...

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "SyncBaseHTTPClient":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff for a 0-indexed attempt, plus 10-30% jitter."""
        delay = min(self._base_delay * (2**attempt), self._max_delay)
        return delay + delay * (0.1 + 0.2 * random.random())

    def _request(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json_data: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> httpx.Response:
        """
        Send a request, retrying transient failures.

        Raises:
            RateLimitError: Still rate limited on the last attempt
            ExternalServiceError: A 4xx response, or a transient failure
                that outlasted every attempt
        """
        url = f"{self._base_url}/{path.lstrip('/')}"
        request_headers = {**self._get_headers(), **(headers or {})}
        last_error = "Unknown error"
        last_status: int | None = None

        for attempt in range(self._max_retries):
            delay = self._calculate_backoff(attempt)
            started = time.monotonic()
            try:
                response = self._client.request(
                    method,
                    url,
                    headers=request_headers,
                    params=params,
                    json=json_data,
                    timeout=timeout or self._timeout,
                )
            except httpx.RequestError as e:
                # Covers timeouts as well as refused and reset connections
                last_error = str(e) or type(e).__name__
                last_status = None
            else:
                status = response.status_code
                logger.info(
                    f"{self.service_name} API request",
                    extra={
                        "method": method,
                        "url": url,
                        "status_code": status,
                        "elapsed_ms": int((time.monotonic() - started) * 1000),
                        "attempt": attempt + 1,
                    },
                )
                if status < 400:
                    return response

                if status == 429:
                    retry_after = response.headers.get("Retry-After")
                    if retry_after:
                        delay = float(retry_after)
                    if attempt == self._max_retries - 1:
                        raise RateLimitError(
                            message=f"{self.service_name} rate limit exceeded after retries",
                            retry_after=int(delay),
                        )
                    last_error, last_status = "HTTP 429", status
                elif status >= 500:
                    last_error, last_status = f"HTTP {status}: {response.text[:500]}", status
                else:
                    logger.error(
                        f"{self.service_name} API client error",
                        extra={"status_code": status, "error": response.text[:500]},
                    )
                    raise ExternalServiceError(
                        service=self.service_name,
                        message=f"{self.service_name} API error: {status}",
                        original_error=response.text[:500],
                        status_code=status,
                    )

            if attempt < self._max_retries - 1:
                logger.warning(
                    f"{self.service_name} request failed, retrying",
                    extra={
                        "attempt": attempt + 1,
                        "max_retries": self._max_retries,
                        "delay_seconds": round(delay, 2),
                        "error": last_error,
                    },
                )
                time.sleep(delay)

        logger.error(
            f"{self.service_name} request failed after all retries",
            extra={"max_retries": self._max_retries, "error": last_error},
        )
        message = (
            f"{self.service_name} server error: {last_status}"
            if last_status
            else f"{self.service_name} API call failed after retries"
        )
        raise ExternalServiceError(
            service=self.service_name,
            message=message,
            original_error=last_error,
            status_code=last_status,
        )

    def _get(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return self._request("GET", path, params=params, headers=headers)

    def _post(
        self,
        path: str,
        *,
        json_data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        return self._request("POST", path, json_data=json_data, params=params, headers=headers)
