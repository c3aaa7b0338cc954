from __future__ import annotations
import logging
import re
from typing import Any, Dict, List, Optional

import httpx

from .config import get_settings
from .schemas import Word, WordSearchResponse

logger = logging.getLogger(__name__)

WORDS_PATH = '/api/words'

# Shown on the glossary when the CMS cannot be reached
FALLBACK_WORDS: List[Dict[str, Any]] = [
    {
        'id': 'fallback-1',
        'word_uyghur': 'salam',
        'word_english': 'hello',
        'word_turkish': 'merhaba',
        'pronunciation': None,
    },
]

_LEADING_INT = re.compile(r'^\s*([+-]?\d+)')

class UpstreamStatusError(Exception):
    """The CMS answered with a non-success status."""

    def __init__(self, status_code: int):
        super().__init__(f'CMS request failed with {status_code}')
        self.status_code = status_code

def coerce_positive_int(raw: Optional[str], fallback: int, *, min_value: int = 1, max_value: Optional[int] = None) -> int:
    """Parse a query-string integer the lenient way browsers do.

    Leading digits win ("3abc" -> 3), anything unparseable falls back to
    ``fallback`` and the result is clamped to ``[min_value, max_value]``.
    """
    if not isinstance(raw, str):
        return fallback
    match = _LEADING_INT.match(raw)
    if not match:
        return fallback
    value = max(int(match.group(1)), min_value)
    if max_value is not None:
        value = min(value, max_value)
    return value

def build_search_params(q: Optional[str], page: int, limit: int) -> Dict[str, str]:
    params = {'page': str(page), 'limit': str(limit)}
    if q:
        params['search'] = q
    return params

def normalize_response(payload: Any) -> WordSearchResponse:
    """Flatten the CMS pagination envelope into the proxy's response shape.

    ``limit``, ``totalPages`` and ``hasNextPage`` are only passed through; the
    client decides end of results when they are missing.
    """
    if not isinstance(payload, dict):
        raise ValueError('CMS payload is not an object')
    docs = payload.get('docs')
    if not isinstance(docs, list):
        docs = []
    total = payload.get('totalDocs')
    if total is None:
        total = payload.get('total')
    if total is None:
        total = len(docs)
    page = payload.get('page')
    return WordSearchResponse(
        docs=docs,
        total=total,
        page=1 if page is None else page,
        limit=payload.get('limit'),
        totalPages=payload.get('totalPages'),
        hasNextPage=payload.get('hasNextPage'),
    )

class DictionaryService:
    def __init__(self, base_url: Optional[str] = None, client: Optional[httpx.AsyncClient] = None, timeout: Optional[float] = None):
        settings = get_settings()
        self.base_url = (base_url or settings.cms_base_url).rstrip('/')
        self._timeout = settings.upstream_timeout if timeout is None else timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        # Created lazily so the module-level instance can be imported without a loop
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    def words_url(self) -> str:
        return f'{self.base_url}{WORDS_PATH}'

    async def search(self, q: str, page: int = 1, limit: int = 25) -> WordSearchResponse:
        """Run a search against the CMS.

        Raises UpstreamStatusError on non-2xx answers. Transport errors
        (httpx.HTTPError) and undecodable bodies (ValueError) propagate.
        """
        resp = await self.client.get(
            self.words_url(),
            params=build_search_params(q, page, limit),
            headers={'Accept': 'application/json', 'Content-Type': 'application/json'},
        )
        if not resp.is_success:
            raise UpstreamStatusError(resp.status_code)
        return normalize_response(resp.json())

    async def list_words(self) -> List[Word]:
        # Glossary listing; never fails, the fallback list covers outages
        try:
            resp = await self.client.get(self.words_url(), params={'depth': '1'}, headers={'Accept': 'application/json'})
            if not resp.is_success:
                raise UpstreamStatusError(resp.status_code)
            data = resp.json()
            docs = data.get('docs') if isinstance(data, dict) else None
            if docs is None:
                docs = FALLBACK_WORDS
            return [Word.model_validate(d) for d in docs]
        except (httpx.HTTPError, UpstreamStatusError, ValueError):
            logger.error('Failed to fetch glossary words from CMS', exc_info=True)
            return [Word.model_validate(d) for d in FALLBACK_WORDS]

    async def aclose(self):
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

# Singleton instance
service = DictionaryService()
