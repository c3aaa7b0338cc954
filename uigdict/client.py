from __future__ import annotations
from typing import Dict, Optional

import httpx

from .schemas import WordSearchResponse

SEARCH_ENDPOINT = '/api/words/search'

class SearchFetchError(Exception):
    """A page request against the search proxy did not produce a page."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

class SearchClient:
    """
    Thin wrapper around an httpx.AsyncClient pointed at the search proxy.
    The transport is injected so tests and the socket bridge can route requests
    wherever they need (MockTransport, ASGITransport, a real host).
    """

    def __init__(self, http: httpx.AsyncClient, endpoint: str = SEARCH_ENDPOINT) -> None:
        self._http = http
        self.endpoint = endpoint

    async def fetch_page(self, params: Dict[str, str]) -> WordSearchResponse:
        try:
            resp = await self._http.get(self.endpoint, params=params)
        except httpx.HTTPError as exc:
            raise SearchFetchError(f'Failed to fetch words. {exc.__class__.__name__}') from exc
        if not resp.is_success:
            raise SearchFetchError(f'Failed to fetch words. Received {resp.status_code}', resp.status_code)
        try:
            return WordSearchResponse.model_validate(resp.json())
        except ValueError as exc:
            raise SearchFetchError('Failed to fetch words. Malformed response') from exc
