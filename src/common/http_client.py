"""Shared HTTP helpers for registry metadata fetchers.

Retries, timeouts and the short-lived response cache live here so the
resolver core never deals with transient network failures. Failures are
reported as a zero status code rather than raised.
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, str], str]

# Simple in-memory cache for HTTP responses
_http_cache: Dict[str, Tuple[Response, float]] = {}
_cache_lock = threading.Lock()


def _get_cache_key(method: str, url: str, headers: Optional[Dict[str, str]] = None) -> str:
    """Generate cache key from request parameters."""
    headers_str = str(sorted(headers.items())) if headers else ""
    return f"{method}:{url}:{headers_str}"


def _is_cache_valid(cache_entry: Tuple[Response, float]) -> bool:
    """Check if cache entry is still valid."""
    _, cached_time = cache_entry
    return time.time() - cached_time < Constants.HTTP_CACHE_TTL_SEC


def clear_cache() -> None:
    """Drop every cached response."""
    with _cache_lock:
        _http_cache.clear()


def _backoff(attempt: int) -> None:
    delay = Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt)
    if delay > 0:
        time.sleep(delay)


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Response:
    """Perform GET request with timeout, retries, and caching with DEBUG traces.

    Server errors (5xx) and transport errors are retried with exponential
    backoff; client errors are returned as-is.

    Returns:
        Tuple of (status_code, headers_dict, body_text); status 0 after all retries fail.
    """
    cache_key = _get_cache_key('GET', url, headers)
    safe_target = safe_url(url)

    with _cache_lock:
        entry = _http_cache.get(cache_key)
    if entry is not None and _is_cache_valid(entry):
        if is_debug_enabled(logger):
            logger.debug(
                "HTTP cache hit",
                extra=extra_context(
                    event="cache_hit",
                    component="http_client",
                    action="GET",
                    target=safe_target
                )
            )
        return entry[0]

    last_exception: Optional[str] = None
    last_response: Optional[Response] = None

    for attempt in range(Constants.HTTP_RETRY_MAX):
        if attempt:
            _backoff(attempt - 1)
        with Timer() as t:
            try:
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request",
                        extra=extra_context(
                            event="http_request",
                            component="http_client",
                            action="GET",
                            target=safe_target,
                            attempt=attempt + 1
                        )
                    )

                response = requests.get(
                    url,
                    timeout=Constants.REQUEST_TIMEOUT,
                    headers=headers,
                    **kwargs
                )
                result: Response = (response.status_code, dict(response.headers), response.text)

                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP response",
                        extra=extra_context(
                            event="http_response",
                            component="http_client",
                            action="GET",
                            outcome="success" if response.status_code < 400 else "http_error",
                            status_code=response.status_code,
                            duration_ms=t.duration_ms(),
                            target=safe_target
                        )
                    )

                if response.status_code >= 500:
                    last_response = result
                    last_exception = f"HTTP {response.status_code}"
                    continue

                with _cache_lock:
                    _http_cache[cache_key] = (result, time.time())
                return result

            except requests.Timeout:
                last_exception = "timeout"
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP timeout",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="timeout",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue
            except requests.RequestException as exc:
                last_exception = str(exc)
                if is_debug_enabled(logger):
                    logger.debug(
                        "HTTP request exception",
                        extra=extra_context(
                            event="http_exception",
                            component="http_client",
                            action="GET",
                            outcome="request_exception",
                            attempt=attempt + 1,
                            target=safe_target
                        )
                    )
                continue

    logger.warning(
        "GET %s failed after %d attempts: %s",
        safe_target,
        Constants.HTTP_RETRY_MAX,
        last_exception,
    )
    if last_response is not None:
        return last_response
    return 0, {}, f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {last_exception}"
