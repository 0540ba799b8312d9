from __future__ import annotations

import asyncio
import logging
import time
from typing import Dict, Optional

import httpx

from packetman.models import (
    BODY_METHODS,
    Failure,
    FailureKind,
    RequestSpec,
    ResponseResult,
    Success,
    clean_headers,
)
from packetman.storage.config import DEFAULT_TIMEOUT

logger = logging.getLogger(__name__)

# httpx adds these to every request; only send them if the user typed them.
CLIENT_DEFAULT_HEADERS = ("Accept", "Accept-Encoding", "Connection", "User-Agent")


class InvalidRequest(ValueError):
    pass


async def execute_request(
    spec: RequestSpec,
    timeout: float = DEFAULT_TIMEOUT,
    verify: bool = False,
) -> ResponseResult:
    """Send ``spec`` and normalize the outcome.

    Never raises for request problems: malformed input, transport errors and
    timeouts all come back as a :class:`Failure`. ``verify`` is off by
    default, so untrusted and self-signed certificates are accepted.
    """
    started = time.monotonic()

    def elapsed() -> int:
        return int(round((time.monotonic() - started) * 1000))

    try:
        method, url = _validate(spec)
    except InvalidRequest as exc:
        logger.info("Rejected request: %s", exc)
        return Failure(FailureKind.INVALID_INPUT, str(exc), elapsed())

    headers = clean_headers(spec.headers)
    content = _request_body(method, spec.body)

    logger.info("%s %s", method, url)
    try:
        async with httpx.AsyncClient(
            verify=verify,
            timeout=httpx.Timeout(timeout),
            follow_redirects=False,
            trust_env=False,
        ) as client:
            try:
                request = client.build_request(
                    method, url, headers=headers, content=content
                )
            except (httpx.InvalidURL, ValueError) as exc:
                logger.info("Rejected request: %s", exc)
                return Failure(FailureKind.INVALID_INPUT, _describe(exc), elapsed())
            _strip_client_defaults(request, headers)
            response, raw = await asyncio.wait_for(_exchange(client, request), timeout)
    except (asyncio.TimeoutError, httpx.TimeoutException):
        message = f"Request timed out after {timeout:g} seconds"
        logger.warning("%s %s: %s", method, url, message)
        return Failure(FailureKind.TIMEOUT, message, elapsed())
    except httpx.LocalProtocolError as exc:
        logger.info("Rejected request: %s", _describe(exc))
        return Failure(FailureKind.INVALID_INPUT, _describe(exc), elapsed())
    except httpx.HTTPError as exc:
        logger.warning("%s %s failed: %s", method, url, _describe(exc))
        return Failure(FailureKind.NETWORK_ERROR, _describe(exc), elapsed())
    except OSError as exc:
        logger.warning("%s %s failed: %s", method, url, _describe(exc))
        return Failure(FailureKind.NETWORK_ERROR, _describe(exc), elapsed())

    result = Success(
        status_code=response.status_code,
        reason=response.reason_phrase,
        headers=dict(response.headers.items()),
        body=decode_body(raw),
        elapsed_ms=elapsed(),
        size=len(raw),
    )
    logger.info(
        "%s %s -> %d in %dms (%d bytes)",
        method,
        url,
        result.status_code,
        result.elapsed_ms,
        result.size,
    )
    return result


async def _exchange(client: httpx.AsyncClient, request: httpx.Request) -> tuple:
    # Raw bytes as received; Content-Encoding is left undecoded.
    response = await client.send(request, stream=True)
    try:
        raw = b"".join([chunk async for chunk in response.aiter_raw()])
    finally:
        await response.aclose()
    return response, raw


def decode_body(raw: bytes) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def _validate(spec: RequestSpec) -> tuple:
    method = (spec.method or "").strip().upper()
    if not method:
        raise InvalidRequest("Request method is empty")
    raw_url = (spec.url or "").strip()
    if not raw_url:
        raise InvalidRequest("URL is empty")
    try:
        url = httpx.URL(raw_url)
    except (httpx.InvalidURL, ValueError) as exc:
        raise InvalidRequest(f"Invalid URL: {exc}") from exc
    if url.scheme not in ("http", "https"):
        raise InvalidRequest(
            f"Invalid URL {raw_url!r}: include http:// or https://"
        )
    if not url.host:
        raise InvalidRequest(f"Invalid URL {raw_url!r}: missing host")
    return method, url


def _request_body(method: str, body: Optional[str]) -> Optional[bytes]:
    if not body or method not in BODY_METHODS:
        return None
    return body.encode("utf-8")


def _strip_client_defaults(request: httpx.Request, headers: Dict[str, str]) -> None:
    entered = {name.lower() for name in headers}
    for name in CLIENT_DEFAULT_HEADERS:
        if name.lower() not in entered and name in request.headers:
            del request.headers[name]


def _describe(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
