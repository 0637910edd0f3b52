"""HTTP client for retailer feeds and the site directory.

Retries retryable statuses with tenacity, spaces out requests to the same
host and decodes JSON. Any other failure surfaces as ``HttpRequestError`` for
the harvest layer to turn into an empty result.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import TracebackType
from typing import Any
from urllib.parse import urlparse

import requests
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential_jitter,
)

from forecourt.common.constants import USER_AGENT
from forecourt.common.errors import HttpRequestError, RetryableHttpError

logger = logging.getLogger("forecourt.common.http")

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}


@dataclass(frozen=True)
class TimeoutConfig:
    connect: float = 10.0
    read: float = 30.0


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    multiplier: float = 1.0
    max_wait: float = 10.0


class HostThrottle:
    """Keep at least ``min_interval`` seconds between requests to one host.

    Retailer feeds mostly live on distinct hosts, so this only bites when
    several feeds share a CDN or when retries hammer the same origin.
    """

    def __init__(self, min_interval: float) -> None:
        self.min_interval = min_interval
        self.next_slot: dict[str, float] = {}
        self.lock = threading.Lock()

    def wait(self, url: str) -> None:
        host = urlparse(url).netloc
        with self.lock:
            now = time.monotonic()
            slot = max(now, self.next_slot.get(host, now))
            self.next_slot[host] = slot + self.min_interval
        delay = slot - now
        if delay > 0:
            time.sleep(delay)


def _log_retry(state: RetryCallState) -> None:
    exc = state.outcome.exception() if state.outcome else None
    logger.warning(
        f"retrying after: {exc}",
        extra={
            "event": "HTTP_RETRY",
            "status": "warn",
            "attempt": state.attempt_number,
            "error_code": getattr(exc, "error_code", None),
        },
    )


class HttpClient:
    def __init__(
        self,
        *,
        timeout: TimeoutConfig | None = None,
        retry: RetryConfig | None = None,
        min_host_interval: float = 0.5,
    ) -> None:
        self.timeout = timeout or TimeoutConfig()
        self.retry = retry or RetryConfig()
        self.session = requests.Session()
        self.session.headers.update({"User-Agent": USER_AGENT, "Accept": "application/json"})
        self.throttle = HostThrottle(min_interval=min_host_interval)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "HttpClient":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()

    def _get_json(self, url: str, params: dict[str, Any] | None, headers: dict[str, str] | None, timeout: TimeoutConfig) -> Any:
        self.throttle.wait(url)
        try:
            response = self.session.request(
                method="GET",
                url=url,
                params=params,
                headers=headers,
                timeout=(timeout.connect, timeout.read),
            )
        except requests.Timeout as exc:
            raise RetryableHttpError(f"Timed out fetching {url}") from exc
        except requests.RequestException as exc:
            raise HttpRequestError(f"Transport failure fetching {url}: {exc}") from exc

        status = response.status_code
        if status in RETRYABLE_STATUS_CODES:
            raise RetryableHttpError(f"Retryable HTTP status {status} from {url}")
        if status >= 400:
            raise HttpRequestError(f"HTTP status {status} from {url}")

        try:
            return response.json()
        except ValueError as exc:
            raise HttpRequestError(f"Invalid JSON payload from {url}") from exc

    def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        timeout: TimeoutConfig | None = None,
        budget_seconds: float | None = None,
    ) -> Any:
        """GET ``url`` and return the decoded JSON, object or array.

        ``budget_seconds`` stops retrying once that much time has passed since
        the first attempt, whatever ``max_attempts`` allows.
        """
        stop = stop_after_attempt(self.retry.max_attempts)
        if budget_seconds is not None:
            stop = stop | stop_after_delay(budget_seconds)

        @retry(
            stop=stop,
            wait=wait_exponential_jitter(
                initial=self.retry.multiplier,
                max=self.retry.max_wait,
                jitter=1.0,
            ),
            retry=retry_if_exception_type(RetryableHttpError),
            before_sleep=_log_retry,
            reraise=True,
        )
        def _wrapped() -> Any:
            return self._get_json(url, params, headers, timeout or self.timeout)

        return _wrapped()
