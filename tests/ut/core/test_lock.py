import asyncio

import pytest

from feedlease.core.helpers.lock import KeyedLock


@pytest.mark.ut
@pytest.mark.asyncio
async def test_same_key_is_serialized():
    locks = KeyedLock()
    order = []

    async def critical(name: str) -> None:
        async with locks.hold("P1"):
            order.append(f"{name}-in")
            await asyncio.sleep(0.01)
            order.append(f"{name}-out")

    await asyncio.gather(critical("a"), critical("b"))

    assert order == ["a-in", "a-out", "b-in", "b-out"]


@pytest.mark.ut
@pytest.mark.asyncio
async def test_different_keys_do_not_block():
    locks = KeyedLock()

    async with locks.hold("P1"):
        async with locks.hold("P2"):
            assert locks.locked("P1")
            assert locks.locked("P2")


@pytest.mark.ut
@pytest.mark.asyncio
async def test_entries_are_dropped_after_release():
    locks = KeyedLock()

    async with locks.hold("P1"):
        assert len(locks) == 1

    assert len(locks) == 0
    assert not locks.locked("P1")


@pytest.mark.ut
@pytest.mark.asyncio
async def test_entry_released_on_error():
    locks = KeyedLock()

    with pytest.raises(ValueError):
        async with locks.hold("P1"):
            raise ValueError("boom")

    assert len(locks) == 0
