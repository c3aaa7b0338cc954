import asyncio

import pytest

from uigdict.managers.search import PageCache, PageKey
from uigdict.schemas import WordSearchResponse


class CountingFetcher:
    def __init__(self):
        self.calls = []
        self.gate = asyncio.Event()
        self.error = None

    async def __call__(self, key: PageKey) -> WordSearchResponse:
        self.calls.append(key)
        await self.gate.wait()
        if self.error is not None:
            raise self.error
        return WordSearchResponse(docs=[], total=0, page=key.page)


@pytest.mark.asyncio
async def test_same_key_shares_one_request():
    fetcher = CountingFetcher()
    cache = PageCache(fetcher)
    key = PageKey("su", 1, 25)

    waiters = [asyncio.ensure_future(cache.fetch(key)) for _ in range(4)]
    await asyncio.sleep(0)
    fetcher.gate.set()
    results = await asyncio.gather(*waiters)

    assert len(fetcher.calls) == 1
    assert all(r is results[0] for r in results)
    assert await cache.fetch(key) is results[0]
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_cached_page_is_not_refetched():
    fetcher = CountingFetcher()
    fetcher.gate.set()
    cache = PageCache(fetcher)
    key = PageKey("su", 1, 25)
    first = await cache.fetch(key)
    second = await cache.fetch(key)
    assert first is second
    assert len(fetcher.calls) == 1


@pytest.mark.asyncio
async def test_clear_discards_inflight_result():
    fetcher = CountingFetcher()
    cache = PageCache(fetcher)
    key = PageKey("su", 1, 25)

    waiter = asyncio.ensure_future(cache.fetch(key))
    await asyncio.sleep(0)
    cache.clear()
    fetcher.gate.set()
    stale = await waiter

    fresh = await cache.fetch(key)
    assert len(fetcher.calls) == 2
    assert fresh is not stale


@pytest.mark.asyncio
async def test_failure_is_shared_and_not_cached():
    fetcher = CountingFetcher()
    fetcher.error = RuntimeError("down")
    cache = PageCache(fetcher)
    key = PageKey("su", 2, 25)

    waiters = [asyncio.ensure_future(cache.fetch(key)) for _ in range(2)]
    await asyncio.sleep(0)
    fetcher.gate.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)

    assert all(isinstance(r, RuntimeError) for r in results)
    assert len(fetcher.calls) == 1

    fetcher.error = None
    await cache.fetch(key)
    assert len(fetcher.calls) == 2
