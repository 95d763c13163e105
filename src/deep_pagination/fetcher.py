import time
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

import requests

from deep_pagination.config import Target

STORES_PATH = "/stores"
BODY_PREVIEW_LIMIT = 500


@dataclass(frozen=True)
class PageRequest:
    target: Target
    page_size: int
    cursor: Optional[str] = None

    def url(self) -> str:
        endpoint = f"{self.target.base_address}{STORES_PATH}?page_size={self.page_size}"
        # The cursor is forwarded verbatim, only percent-encoded.
        if self.cursor:
            endpoint += f"&continuation_token={quote(self.cursor, safe='')}"
        return endpoint


@dataclass(frozen=True)
class PageResult:
    status_ok: bool
    http_status: int
    elapsed: float
    next_cursor: Optional[str] = None
    raw_body: Optional[bytes] = None
    item_count: Optional[int] = None
    error: Optional[str] = None

    @property
    def body_preview(self) -> str:
        if not self.raw_body:
            return ""
        text = self.raw_body.decode("utf-8", errors="replace")
        if len(text) > BODY_PREVIEW_LIMIT:
            return text[:BODY_PREVIEW_LIMIT] + "..."
        return text


def _failure(status, elapsed, body, error):
    return PageResult(status_ok=False, http_status=status, elapsed=elapsed, raw_body=body, error=error)


def read_page(response, elapsed: float) -> PageResult:
    status = response.status_code or 0
    body = response.content
    # locust's HttpSession reports connection errors as status 0 instead of raising
    if status == 0:
        return _failure(0, elapsed, body, f"transport error: {getattr(response, 'error', None)}")
    if status != 200:
        return _failure(status, elapsed, body, f"unexpected status {status}")

    try:
        payload = response.json()
    except ValueError as exc:
        return _failure(status, elapsed, body, f"malformed body: {exc}")
    if not isinstance(payload, dict):
        return _failure(status, elapsed, body, "malformed body: expected a JSON object")

    token = payload.get("continuation_token")
    if token is not None and not isinstance(token, str):
        return _failure(status, elapsed, body, "malformed body: continuation_token is not a string")

    stores = payload.get("stores")
    return PageResult(
        status_ok=True,
        http_status=status,
        elapsed=elapsed,
        next_cursor=token or None,
        raw_body=body,
        item_count=len(stores) if isinstance(stores, list) else None,
    )


def fetch_page(client, target: Target, page_size: int, cursor: Optional[str] = None, **request_kwargs) -> PageResult:
    """
    Issue one ``GET /stores`` page request and normalize the response.

    ``client`` is anything with a requests-style ``get`` (a locust HttpSession,
    a requests.Session, a test client). Extra keyword arguments are passed
    through to it. Failures never raise: transport errors, non-200 statuses
    and unreadable bodies all come back as ``status_ok=False``.

    With ``catch_response=True`` (locust) the response is marked as a success
    or failure from the normalized result, so a 200 with an unreadable body
    also counts as a failed request in locust's stats.
    """
    url = PageRequest(target, page_size, cursor).url()
    started = time.perf_counter()
    try:
        response = client.get(url, **request_kwargs)
    except requests.RequestException as exc:
        return _failure(0, time.perf_counter() - started, None, f"transport error: {exc}")
    elapsed = time.perf_counter() - started

    if not request_kwargs.get("catch_response"):
        return read_page(response, elapsed)

    with response:
        result = read_page(response, elapsed)
        if result.status_ok:
            response.success()
        else:
            response.failure(result.error)
    return result
