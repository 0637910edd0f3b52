"""Concurrent retailer feed fetching with fail-soft semantics."""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Mapping

from forecourt.common.constants import PROXY_SUMMARY_KEY
from forecourt.common.errors import HttpRequestError
from forecourt.common.http import HttpClient, TimeoutConfig

logger = logging.getLogger("forecourt.harvest.feeds")


@dataclass(frozen=True)
class FeedSpec:
    name: str
    url: str


@dataclass(frozen=True)
class FeedResult:
    retailer: str
    success: bool
    payload: Any = None
    error: str | None = None
    duration_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "retailer": self.retailer,
            "success": self.success,
            "error": self.error,
            "duration_ms": self.duration_ms,
            "payload": self.payload,
        }


def feed_specs(feeds_config: Mapping[str, Any]) -> list[FeedSpec]:
    return [FeedSpec(name=str(item["name"]), url=str(item["url"])) for item in feeds_config.get("retailers", [])]


def _request_limits(timeout: TimeoutConfig, deadline_at: float | None) -> tuple[TimeoutConfig, float | None]:
    """Clip a request's timeouts and retry budget to what is left of the batch deadline."""
    if deadline_at is None:
        return timeout, None
    remaining = max(deadline_at - time.monotonic(), 0.0)
    clipped = TimeoutConfig(connect=min(timeout.connect, remaining), read=min(timeout.read, remaining))
    return clipped, remaining


def _fetch_one(client: HttpClient, feed: FeedSpec, timeout: TimeoutConfig, deadline_at: float | None = None) -> FeedResult:
    started = time.monotonic()
    timeout, budget_seconds = _request_limits(timeout, deadline_at)
    try:
        if budget_seconds == 0.0:
            raise HttpRequestError(f"Deadline passed before fetching {feed.url}")
        payload = client.get_json(feed.url, timeout=timeout, budget_seconds=budget_seconds)
    except HttpRequestError as exc:
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.warning(
            f"feed fetch failed: {exc}",
            extra={
                "retailer": feed.name,
                "event": "FEED_FAIL",
                "status": "error",
                "error_code": exc.error_code,
                "duration_ms": duration_ms,
            },
        )
        return FeedResult(retailer=feed.name, success=False, error=str(exc), duration_ms=duration_ms)

    duration_ms = int((time.monotonic() - started) * 1000)
    logger.info(
        "feed fetched",
        extra={"retailer": feed.name, "event": "FEED_OK", "status": "ok", "duration_ms": duration_ms},
    )
    return FeedResult(retailer=feed.name, success=True, payload=payload, duration_ms=duration_ms)


def fetch_feeds(
    feeds: list[FeedSpec],
    client: HttpClient,
    *,
    max_workers: int = 4,
    timeout: TimeoutConfig | None = None,
    deadline_seconds: float | None = None,
) -> list[FeedResult]:
    """Fetch every feed on a bounded pool.

    Results come back in ``feeds`` order. A feed that raises, fails, or is
    still running at ``deadline_seconds`` is reported as unsuccessful. Each
    request is clipped to the time left, so late workers stop soon after.
    """
    if not feeds:
        return []
    timeout = timeout or client.timeout
    deadline_at = time.monotonic() + deadline_seconds if deadline_seconds is not None else None
    results: dict[str, FeedResult] = {}

    pool = ThreadPoolExecutor(max_workers=max(1, max_workers), thread_name_prefix="feed")
    try:
        futures = {pool.submit(_fetch_one, client, feed, timeout, deadline_at): feed for feed in feeds}
        done, not_done = wait(futures, timeout=deadline_seconds)
        for future in done:
            feed = futures[future]
            try:
                results[feed.name] = future.result()
            except Exception as exc:
                logger.warning(
                    f"feed worker crashed: {exc}",
                    extra={"retailer": feed.name, "event": "FEED_FAIL", "status": "error", "error_code": "UNEXPECTED_ERROR"},
                )
                results[feed.name] = FeedResult(retailer=feed.name, success=False, error=str(exc))
        for future in not_done:
            feed = futures[future]
            future.cancel()
            logger.warning(
                "feed fetch timed out",
                extra={"retailer": feed.name, "event": "FEED_FAIL", "status": "error", "error_code": "FEED_TIMEOUT"},
            )
            results[feed.name] = FeedResult(retailer=feed.name, success=False, error="deadline exceeded")
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    return [results[feed.name] for feed in feeds]


def unwrap_proxy_payload(payload: Any) -> list[FeedResult]:
    """Split an aggregated ``{retailer: {success, data}}`` response."""
    if not isinstance(payload, Mapping):
        return []
    results: list[FeedResult] = []
    for retailer, entry in payload.items():
        if retailer == PROXY_SUMMARY_KEY:
            continue
        if isinstance(entry, Mapping) and entry.get("success") and entry.get("data") is not None:
            results.append(FeedResult(retailer=str(retailer), success=True, payload=entry["data"]))
        else:
            error = entry.get("error") if isinstance(entry, Mapping) else None
            results.append(FeedResult(retailer=str(retailer), success=False, error=str(error or "no data")))
    return results


def fetch_via_proxy(proxy_url: str, client: HttpClient, *, timeout: TimeoutConfig | None = None) -> list[FeedResult]:
    url = f"{proxy_url.rstrip('/')}/api/all"
    try:
        payload = client.get_json(url, timeout=timeout)
    except HttpRequestError as exc:
        logger.warning(
            f"proxy fetch failed: {exc}",
            extra={"source": "proxy", "event": "FEED_FAIL", "status": "error", "error_code": exc.error_code},
        )
        return []
    return unwrap_proxy_payload(payload)


def fetch_directory(url: str, client: HttpClient, *, timeout: TimeoutConfig | None = None) -> Any:
    """Return the raw directory payload, or ``None`` when it cannot be fetched."""
    try:
        return client.get_json(url, timeout=timeout)
    except HttpRequestError as exc:
        logger.warning(
            f"directory fetch failed: {exc}",
            extra={"source": "directory", "event": "DIRECTORY_FAIL", "status": "error", "error_code": exc.error_code},
        )
        return None
