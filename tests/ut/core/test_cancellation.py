import asyncio

import pytest

from feedlease.core.helpers.cancellation import CancellationSource


@pytest.mark.ut
@pytest.mark.asyncio
async def test_cancel_root_cancels_every_descendant():
    root = CancellationSource()
    child = root.create_child()
    grandchild = child.create_child()

    root.cancel()

    assert root.cancelled
    assert child.token.cancelled
    assert grandchild.token.cancelled


@pytest.mark.ut
@pytest.mark.asyncio
async def test_cancel_child_leaves_parent_and_siblings():
    root = CancellationSource()
    first = root.create_child()
    second = root.create_child()

    first.cancel()

    assert first.cancelled
    assert not root.cancelled
    assert not second.cancelled


@pytest.mark.ut
@pytest.mark.asyncio
async def test_child_of_cancelled_source_starts_cancelled():
    root = CancellationSource()
    root.cancel()

    assert root.create_child().cancelled
    assert root.token.derive().cancelled


@pytest.mark.ut
@pytest.mark.asyncio
async def test_token_wait_returns_on_cancel():
    root = CancellationSource()
    token = root.create_child().token
    waiter = asyncio.create_task(token.wait())

    await asyncio.sleep(0)
    assert not waiter.done()

    root.cancel()
    await asyncio.wait_for(waiter, timeout=1)


@pytest.mark.ut
@pytest.mark.asyncio
async def test_detached_child_is_not_cancelled_with_parent():
    root = CancellationSource()
    child = root.create_child()

    child.detach()
    root.cancel()

    assert not child.cancelled


@pytest.mark.ut
@pytest.mark.asyncio
async def test_derived_source_does_not_cancel_token():
    root = CancellationSource()
    derived = root.token.derive()

    derived.cancel()

    assert derived.token.cancelled
    assert not root.token.cancelled
