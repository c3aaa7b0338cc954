"""Shared fakes for the search proxy and the CMS."""

import asyncio
from typing import Callable, Dict, List, Optional, Tuple

import httpx
import pytest

from uigdict.client import SearchClient


def make_docs(count: int, prefix: str = "word", start: int = 0) -> List[dict]:
    return [
        {
            "id": f"{prefix}-{i}",
            "word_uyghur": f"{prefix} ug {i}",
            "word_english": f"{prefix} en {i}",
            "word_turkish": f"{prefix} tr {i}",
            "pronunciation": None,
        }
        for i in range(start, start + count)
    ]


class FakeProxy:
    """Stands in for GET /api/words/search behind an httpx.MockTransport.

    Pages are registered per (query, page). ``hold`` makes the matching request
    wait until the returned event is set, so tests can interleave requests.
    """

    def __init__(self):
        self.pages: Dict[Tuple[str, int], dict] = {}
        self.failures: Dict[Tuple[str, int], int] = {}
        self.gates: Dict[Tuple[str, int], asyncio.Event] = {}
        self.requests: List[httpx.Request] = []

    def add_page(self, query: str, page: int, body: dict):
        self.pages[(query, page)] = body

    def fail(self, query: str, page: int, status_code: int = 500):
        self.failures[(query, page)] = status_code

    def hold(self, query: str, page: int) -> asyncio.Event:
        gate = asyncio.Event()
        self.gates[(query, page)] = gate
        return gate

    def calls_for(self, query: str) -> List[int]:
        return [int(r.url.params["page"]) for r in self.requests if r.url.params.get("q") == query]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        query = request.url.params.get("q", "")
        page = int(request.url.params.get("page", "1"))
        gate = self.gates.get((query, page))
        if gate is not None:
            await gate.wait()
        status_code = self.failures.get((query, page))
        if status_code is not None:
            return httpx.Response(status_code, json={"error": "boom"})
        body = self.pages.get((query, page))
        if body is None:
            body = {"docs": [], "total": 0, "page": page}
        return httpx.Response(200, json=body)

    def client(self) -> SearchClient:
        http = httpx.AsyncClient(transport=httpx.MockTransport(self.handler), base_url="http://proxy")
        return SearchClient(http)


@pytest.fixture
def proxy() -> FakeProxy:
    return FakeProxy()


def cms_transport(handler: Callable[[httpx.Request], httpx.Response], seen: Optional[list] = None) -> httpx.MockTransport:
    def _wrapped(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return handler(request)

    return httpx.MockTransport(_wrapped)
