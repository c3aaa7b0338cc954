import asyncio

import pytest

from uigdict.managers.debounce import Debouncer


@pytest.mark.asyncio
async def test_only_last_value_fires():
    fired = []
    debouncer = Debouncer(0.05, fired.append)
    for value in "abc":
        debouncer.push(value)
        await asyncio.sleep(0.01)
    assert fired == []
    assert debouncer.pending
    await debouncer.wait()
    assert fired == ["c"]
    assert not debouncer.pending


@pytest.mark.asyncio
async def test_spaced_pushes_each_fire():
    fired = []
    debouncer = Debouncer(0.01, fired.append)
    debouncer.push(1)
    await asyncio.sleep(0.05)
    debouncer.push(2)
    await debouncer.wait()
    assert fired == [1, 2]


@pytest.mark.asyncio
async def test_cancel():
    fired = []
    debouncer = Debouncer(0.01, fired.append)
    debouncer.push("x")
    debouncer.cancel()
    await debouncer.wait()
    await asyncio.sleep(0.03)
    assert fired == []


@pytest.mark.asyncio
async def test_wait_follows_newer_push():
    fired = []
    debouncer = Debouncer(0.03, fired.append)
    debouncer.push("first")

    async def retype():
        await asyncio.sleep(0.01)
        debouncer.push("second")

    asyncio.ensure_future(retype())
    await debouncer.wait()
    assert fired == ["second"]
