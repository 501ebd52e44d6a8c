import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from .config import settings
from .errors import ForbiddenTransition, LookupNotFound, TransportFailure

_logger = logging.getLogger(__name__)

_session: Optional[aiohttp.ClientSession] = None
_session_lock = asyncio.Lock()


def _timeout() -> aiohttp.ClientTimeout:
    if settings.API_TIMEOUT_SECONDS > 0:
        return aiohttp.ClientTimeout(total=settings.API_TIMEOUT_SECONDS)
    return aiohttp.ClientTimeout(total=None)


async def get_session() -> aiohttp.ClientSession:
    global _session
    if _session is None or _session.closed:
        async with _session_lock:
            if _session is None or _session.closed:
                headers = {"Accept": "application/json"}
                if settings.API_TOKEN:
                    headers["Authorization"] = f"Bearer {settings.API_TOKEN}"
                _session = aiohttp.ClientSession(headers=headers, timeout=_timeout())
                _logger.info("HTTP session opened | base_url=%s", settings.API_BASE_URL)
    return _session


async def close_session() -> None:
    global _session
    if _session is not None:
        await _session.close()
        _session = None


def _raise_for_body(status: int, body: Any, method: str, path: str) -> None:
    error = body.get("error") if isinstance(body, dict) else None
    message = body.get("message") if isinstance(body, dict) else None
    if error == "forbidden_transition" or (status == 409 and isinstance(body, dict) and "target" in body):
        raise ForbiddenTransition(
            str(body.get("order_id", "")),
            body.get("current"),
            str(body.get("target", "")),
            reason=message,
        )
    if status == 404:
        raise LookupNotFound("resource", path)
    raise TransportFailure(message or f"{method} {path} failed with HTTP {status}", status=status)


async def request_json(
    method: str,
    path: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    json_body: Optional[Dict[str, Any]] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> Any:
    """Issue one call against the upstream service and decode its JSON body.

    Network errors come back as TransportFailure; error bodies are mapped onto
    ForbiddenTransition / LookupNotFound where the upstream says so.
    """
    url = f"{settings.API_BASE_URL.rstrip('/')}/{path.lstrip('/')}"
    sess = session or await get_session()
    try:
        async with sess.request(method, url, params=params, json=json_body) as response:
            try:
                body = await response.json(content_type=None)
            except ValueError:
                body = None
            if response.status >= 400:
                _logger.warning("Upstream error | %s %s status=%s", method, path, response.status)
                _raise_for_body(response.status, body, method, path)
            return body
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        _logger.warning("Upstream unreachable | %s %s err=%s", method, path, e)
        raise TransportFailure(f"{method} {path} failed: {e}") from e


def unwrap(body: Any, key: str) -> Any:
    """Accept both bare payloads and the {"data": ...} / {key: ...} envelopes."""
    if isinstance(body, dict):
        if key in body:
            return body[key]
        if "data" in body:
            return body["data"]
    return body
