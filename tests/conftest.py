from gevent import monkey

monkey.patch_all()  # locust patches the stdlib on import; do it before ssl/requests load

import json

import pytest

from deep_pagination.config import Target
from deep_pagination.fetcher import PageResult
from deep_pagination.recorder import LatencyRecorder


class FakeResponse:
    def __init__(self, status_code=200, payload=None, content=None, error=None):
        self.status_code = status_code
        if content is None:
            content = json.dumps(payload).encode() if payload is not None else b""
        self.content = content
        self.error = error

    def json(self):
        return json.loads(self.content)


class CatchingResponse(FakeResponse):
    """Stand-in for locust's catch_response context manager; remembers how it was marked."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.marked = None
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False

    def success(self):
        self.marked = "success"

    def failure(self, exc):
        self.marked = exc


class FakeClient:
    """Returns queued responses (or raises queued exceptions) and logs every call."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


class ScriptedFetch:
    """Walker-side fetch stub: one PageResult per call, cursors recorded."""

    def __init__(self, results):
        self.results = list(results)
        self.cursors = []

    def __call__(self, target, page_size, cursor):
        self.cursors.append(cursor)
        return self.results.pop(0)


def ok_page(token, elapsed=0.01):
    return PageResult(status_ok=True, http_status=200, elapsed=elapsed, next_cursor=token or None)


def failed_page(status=500, body=b"boom"):
    return PageResult(status_ok=False, http_status=status, elapsed=0.02, raw_body=body, error=f"unexpected status {status}")


@pytest.fixture
def target():
    return Target(name="postgres", base_address="http://db.test:8081")


@pytest.fixture
def recorder():
    return LatencyRecorder()
