from __future__ import annotations
import asyncio
import logging
import math
from typing import Awaitable, Callable, Dict, List, NamedTuple, Optional

from ..client import SearchClient, SearchFetchError
from ..pronunciation import resolve_pronunciation_url
from ..schemas import SearchState, Word, WordSearchResponse, WordView
from .debounce import Debouncer

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 25
INPUT_DEBOUNCE_SECONDS = 0.3

class PageKey(NamedTuple):
    query: str
    page: int
    limit: int

    def params(self) -> Dict[str, str]:
        params = {'page': str(self.page), 'limit': str(self.limit)}
        if self.query:
            params['q'] = self.query
        return params

def get_total_pages(data: WordSearchResponse, fallback_limit: int) -> Optional[int]:
    if data.totalPages is not None:
        return data.totalPages
    limit = data.limit if data.limit is not None else fallback_limit
    if limit > 0:
        return math.ceil(data.total / limit)
    return None

def get_is_reaching_end(data: Optional[WordSearchResponse], page_size: int) -> bool:
    if data is None:
        return False
    if not data.docs:
        return True
    if data.hasNextPage is False:
        return True
    total_pages = get_total_pages(data, page_size)
    if total_pages is not None and data.page >= total_pages:
        return True
    # short page
    limit = data.limit if data.limit is not None else page_size
    return len(data.docs) < limit

def _retrieve_exception(task: asyncio.Task):
    # awaiters may all be gone (session closed); keep asyncio from warning
    if not task.cancelled():
        task.exception()

class PageCache:
    """Pages keyed by PageKey, with at most one outstanding request per key.

    Concurrent callers asking for the same key share the same request. After
    ``clear()`` any request still in flight completes for its awaiters but its
    result is not stored.
    """

    def __init__(self, fetcher: Callable[[PageKey], Awaitable[WordSearchResponse]]):
        self._fetcher = fetcher
        self._pages: Dict[PageKey, WordSearchResponse] = {}
        self._inflight: Dict[PageKey, asyncio.Task] = {}
        self._epoch = 0

    async def fetch(self, key: PageKey) -> WordSearchResponse:
        cached = self._pages.get(key)
        if cached is not None:
            return cached
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(self._load(key, self._epoch))
            task.add_done_callback(_retrieve_exception)
            self._inflight[key] = task
        return await asyncio.shield(task)

    async def _load(self, key: PageKey, epoch: int) -> WordSearchResponse:
        try:
            page = await self._fetcher(key)
        finally:
            if epoch == self._epoch:
                self._inflight.pop(key, None)
        if epoch == self._epoch:
            self._pages[key] = page
        return page

    def clear(self):
        self._epoch += 1
        self._pages.clear()
        self._inflight.clear()

class WordSearch:
    """
    Incremental, debounced, paginated word search against the search proxy.

    Raw keystrokes go through ``set_query``; once they settle the session drops
    every page it holds and fetches page 1 for the new query. ``load_more``
    grows the page count by one until a page reports the end of results.
    Only one frontier page is ever in flight, so pages land in order.
    """

    def __init__(
        self,
        client: SearchClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        debounce: float = INPUT_DEBOUNCE_SECONDS,
        on_change: Optional[Callable[['WordSearch'], None]] = None,
    ):
        self.client = client
        self.page_size = page_size
        self.on_change = on_change
        self.query = ''
        self.debounced_query = ''
        self.size = 1
        self.error: Optional[Exception] = None
        self._pages: List[WordSearchResponse] = []
        self._cache = PageCache(self._fetch)
        self._debouncer: Debouncer[str] = Debouncer(debounce, self._settle)
        self._generation = 0
        self._inflight_page: Optional[int] = None
        self._load_task: Optional[asyncio.Task] = None
        self._closed = False

    # Derived state

    @property
    def should_fetch(self) -> bool:
        return bool(self.debounced_query.strip())

    @property
    def pages(self) -> List[WordSearchResponse]:
        return list(self._pages)

    @property
    def words(self) -> List[Word]:
        return [word for page in self._pages for word in page.docs]

    @property
    def total(self) -> int:
        return self._pages[0].total if self._pages else 0

    @property
    def is_reaching_end(self) -> bool:
        if not self.should_fetch:
            return True
        last_page = self._pages[-1] if self._pages else None
        return get_is_reaching_end(last_page, self.page_size)

    @property
    def is_loading_initial_data(self) -> bool:
        return self.should_fetch and not self._pages and self._inflight_page == 1

    @property
    def is_loading_more(self) -> bool:
        return (
            self.should_fetch
            and not self.is_reaching_end
            and self._inflight_page is not None
            and self._inflight_page > 1
        )

    @property
    def is_empty(self) -> bool:
        return self.should_fetch and bool(self._pages) and not self.is_loading_initial_data and not self.words

    def get_key(self, page: int, previous: Optional[WordSearchResponse]) -> Optional[PageKey]:
        query = self.debounced_query.strip()
        if not query:
            return None
        if previous is not None and get_is_reaching_end(previous, self.page_size):
            return None
        return PageKey(query, page, self.page_size)

    def snapshot(self, cms_base_url: Optional[str] = None) -> SearchState:
        return SearchState(
            query=self.query,
            debouncedQuery=self.debounced_query,
            words=[
                WordView(word=w, pronunciationUrl=resolve_pronunciation_url(w.pronunciation, cms_base_url))
                for w in self.words
            ],
            total=self.total,
            size=self.size,
            error=str(self.error) if self.error else None,
            isLoadingInitialData=self.is_loading_initial_data,
            isLoadingMore=self.is_loading_more,
            isEmpty=self.is_empty,
            isReachingEnd=self.is_reaching_end,
        )

    # Operations

    def set_query(self, query: str):
        if self._closed:
            return
        self.query = query
        self._debouncer.push(query)
        self._changed()

    async def load_more(self):
        if self._closed or not self.should_fetch or self.is_reaching_end:
            return
        if self._load_task is not None and not self._load_task.done():
            # the frontier is already being fetched; join it
            await asyncio.shield(self._load_task)
            return
        if len(self._pages) >= self.size:
            self.size += 1
        # otherwise the last attempt failed and the same key is retried
        await asyncio.shield(self._start_load())

    def reset(self):
        self._debouncer.cancel()
        self.query = ''
        self.debounced_query = ''
        self._invalidate()
        self._changed()

    async def wait_idle(self):
        await self._debouncer.wait()
        task = self._load_task
        if task is not None:
            await asyncio.shield(task)

    def close(self):
        self._closed = True
        self._debouncer.cancel()
        self._generation += 1
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._load_task = None
        self._cache.clear()

    # Internals

    def _settle(self, query: str):
        if self._closed or query == self.debounced_query:
            return
        self.debounced_query = query
        self._invalidate()
        if self.should_fetch:
            self._start_load()
        self._changed()

    def _invalidate(self):
        # stale pages must be gone before anything is fetched for the new query
        self._generation += 1
        self._cache.clear()
        self._pages = []
        self.size = 1
        self.error = None
        self._inflight_page = None
        self._load_task = None

    def _start_load(self) -> asyncio.Task:
        # the frontier counts as outstanding from the moment it is scheduled
        previous = self._pages[-1] if self._pages else None
        key = self.get_key(len(self._pages) + 1, previous)
        self._inflight_page = key.page if key is not None else None
        self._load_task = asyncio.create_task(self._revalidate(self._generation))
        return self._load_task

    async def _fetch(self, key: PageKey) -> WordSearchResponse:
        return await self.client.fetch_page(key.params())

    async def _revalidate(self, generation: int):
        previous: Optional[WordSearchResponse] = None
        for index in range(1, self.size + 1):
            if index <= len(self._pages):
                previous = self._pages[index - 1]
                continue
            key = self.get_key(index, previous)
            if key is None:
                break
            self._inflight_page = index
            self.error = None
            self._changed()
            try:
                page = await self._cache.fetch(key)
            except SearchFetchError as exc:
                if generation != self._generation:
                    return
                logger.info('Search page %s for %r failed: %s', index, key.query, exc)
                self.error = exc
                self._inflight_page = None
                self._changed()
                return
            if generation != self._generation:
                # query changed while this page was in flight
                return
            self._pages.append(page)
            previous = page
        if generation == self._generation:
            self._inflight_page = None
            self._changed()

    def _changed(self):
        if self.on_change is not None and not self._closed:
            self.on_change(self)

class SearchManager:
    def __init__(self, sio, client: SearchClient, page_size: int = DEFAULT_PAGE_SIZE, debounce: float = INPUT_DEBOUNCE_SECONDS, cms_base_url: Optional[str] = None):
        self.sio = sio
        self.client = client
        self.page_size = page_size
        self.debounce = debounce
        self.cms_base_url = cms_base_url
        self.sessions: Dict[str, WordSearch] = {}
        self._emits: Dict[str, asyncio.Task] = {}
        self._dirty: set[str] = set()

    def get_or_create(self, sid: str) -> WordSearch:
        if sid not in self.sessions:
            self.sessions[sid] = WordSearch(
                self.client,
                page_size=self.page_size,
                debounce=self.debounce,
                on_change=lambda session, sid=sid: self._schedule_emit(sid),
            )
        return self.sessions[sid]

    def get(self, sid: str) -> Optional[WordSearch]:
        return self.sessions.get(sid)

    async def set_query(self, sid: str, query: str):
        self.get_or_create(sid).set_query(query)

    async def load_more(self, sid: str):
        await self.get_or_create(sid).load_more()

    async def reset(self, sid: str):
        self.get_or_create(sid).reset()

    def close(self, sid: str):
        session = self.sessions.pop(sid, None)
        if session is not None:
            session.close()
        self._dirty.discard(sid)
        task = self._emits.pop(sid, None)
        if task and not task.done():
            task.cancel()

    async def emit_state(self, sid: str):
        session = self.sessions.get(sid)
        if session is None:
            return
        state = session.snapshot(self.cms_base_url)
        await self.sio.emit('search:state', state.model_dump(mode='json'), to=sid)

    def _schedule_emit(self, sid: str):
        # coalesce bursts of changes; a change during an emit triggers one more
        self._dirty.add(sid)
        task = self._emits.get(sid)
        if task and not task.done():
            return
        self._emits[sid] = asyncio.create_task(self._emit_pending(sid))

    async def _emit_pending(self, sid: str):
        while sid in self._dirty:
            self._dirty.discard(sid)
            await asyncio.sleep(0)
            await self.emit_state(sid)
