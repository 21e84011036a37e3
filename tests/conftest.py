"""
pytest configuration for uploader tests.

Adds src directory to Python path for imports and provides fake aiohttp
sessions that stand in for the control plane and storage.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Callable, List, Optional

import pytest
from multidict import CIMultiDict

# Add src directory to Python path
src_dir = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_dir))


class FakeResponse:
    """Minimal aiohttp response: status, headers, read()."""

    def __init__(self, status: int = 200, body: Any = b"", headers: Optional[dict] = None):
        self.status = status
        if isinstance(body, bytes):
            self._body = body
        elif isinstance(body, str):
            self._body = body.encode("utf-8")
        else:
            self._body = json.dumps(body).encode("utf-8")
        self.headers = CIMultiDict(headers or {})

    async def read(self) -> bytes:
        return self._body


class _RequestContext:
    def __init__(self, session: "FakeSession", method: str, url: str, kwargs: dict):
        self._session = session
        self._method = method
        self._url = url
        self._kwargs = kwargs

    async def __aenter__(self) -> FakeResponse:
        outcome = self._session._next(self._method, self._url, self._kwargs)
        if asyncio.iscoroutine(outcome):
            outcome = await outcome
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        return False


class FakeSession:
    """
    Stand-in for aiohttp.ClientSession.

    Either replays a list of scripted outcomes in order, or calls a handler
    ``handler(method, url, kwargs)`` that returns (or awaits to) a
    FakeResponse or an exception instance to raise.
    """

    def __init__(
        self,
        responses: Optional[List[Any]] = None,
        handler: Optional[Callable[[str, str, dict], Any]] = None,
    ):
        self.calls: List[tuple] = []
        self.closed = False
        self._responses = list(responses or [])
        self._handler = handler

    def _next(self, method: str, url: str, kwargs: dict) -> Any:
        if self._handler is not None:
            return self._handler(method, url, kwargs)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {method} {url}")
        return self._responses.pop(0)

    def request(self, method: str, url: str, **kwargs) -> _RequestContext:
        self.calls.append((method, url, kwargs))
        return _RequestContext(self, method, url, kwargs)

    def put(self, url: str, **kwargs) -> _RequestContext:
        return self.request("PUT", url, **kwargs)

    async def close(self) -> None:
        self.closed = True


class RecordingSleep:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def fake_response() -> Callable[..., FakeResponse]:
    """Factory for FakeResponse objects."""
    return FakeResponse


@pytest.fixture
def fake_session() -> Callable[..., FakeSession]:
    """Factory for FakeSession objects."""
    return FakeSession


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep that returns immediately and remembers its delays."""
    return RecordingSleep()
