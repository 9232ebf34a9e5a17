"""Shared HTTP helpers used by the registry client.

Callers get ``(status_code, headers, body)`` tuples instead of exceptions.
Status code 0 means no response was ever received; the body then holds the
last transport error.
"""
from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict, Optional, Tuple

import requests

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

logger = logging.getLogger(__name__)

USER_AGENT = f"{Constants.PROGRAM_NAME}/{Constants.VERSION}"


def _trace(message: str, action: str, **fields: Any) -> None:
    if is_debug_enabled(logger):
        logger.debug(message, extra=extra_context(component="http_client", action=action, **fields))


def _backoff(attempt: int) -> None:
    time.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** attempt))


def robust_get(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], bytes]:
    """GET ``url`` with a timeout, retrying transport errors and 5xx responses.

    At most ``Constants.HTTP_RETRY_MAX`` attempts are made with exponential
    backoff between them. Any other status is returned on the first try;
    a 5xx that persists through the last attempt is returned as-is.

    Returns:
        Tuple of (status_code, headers_dict, body_bytes); status 0 on failure.
    """
    target = safe_url(url)
    request_headers = {"User-Agent": USER_AGENT, **(headers or {})}
    failure = None

    for attempt in range(1, Constants.HTTP_RETRY_MAX + 1):
        if attempt > 1:
            _backoff(attempt - 2)
        _trace("HTTP request", "GET", event="http_request", target=target, attempt=attempt)

        with Timer() as timer:
            try:
                response = requests.get(
                    url, timeout=Constants.REQUEST_TIMEOUT, headers=request_headers, **kwargs
                )
            except requests.Timeout:
                failure = "timeout"
            except requests.RequestException as exc:
                failure = str(exc) or exc.__class__.__name__
            else:
                failure = None

        if failure is not None:
            _trace("HTTP request failed", "GET", event="http_exception", outcome=failure,
                   target=target, attempt=attempt)
            continue

        status = response.status_code
        if status >= 500 and attempt < Constants.HTTP_RETRY_MAX:
            failure = f"HTTP {status}"
            _trace("HTTP server error, retrying", "GET", event="http_response", outcome="server_error",
                   status_code=status, target=target, attempt=attempt)
            continue

        _trace("HTTP response", "GET", event="http_response",
               outcome="success" if status < 400 else "http_error",
               status_code=status, duration_ms=timer.duration_ms(), target=target)
        return status, dict(response.headers), response.content

    message = f"Request failed after {Constants.HTTP_RETRY_MAX} attempts: {failure}"
    return 0, {}, message.encode("utf-8")


def get_json(
    url: str,
    *,
    headers: Optional[Dict[str, str]] = None,
    **kwargs: Any
) -> Tuple[int, Dict[str, str], Optional[Any]]:
    """GET ``url`` and decode a JSON body.

    The parsed value is None unless the status is 200 and the body decodes.
    """
    status, response_headers, body = robust_get(
        url, headers={"Accept": "application/json", **(headers or {})}, **kwargs
    )
    if status != 200 or not body:
        return status, response_headers, None
    try:
        parsed = json.loads(body)
    except ValueError:
        _trace("JSON decode error", "get_json", event="parse", outcome="json_decode_error",
               status_code=status, target=safe_url(url))
        return status, response_headers, None
    return status, response_headers, parsed
