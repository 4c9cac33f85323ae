"""Tests for arena/cancel.py."""

import asyncio

import pytest

from arena.cancel import CancelToken
from arena.errors import CancellationError


async def test_sleep_completes_when_not_cancelled():
    token = CancelToken()
    await token.sleep(0.01)
    assert not token.cancelled


async def test_cancel_wakes_pending_sleep():
    token = CancelToken()
    sleeper = asyncio.create_task(token.sleep(30))
    await asyncio.sleep(0)
    token.cancel()
    with pytest.raises(CancellationError):
        await asyncio.wait_for(sleeper, timeout=1)


async def test_sleep_on_cancelled_token_raises_immediately():
    token = CancelToken()
    token.cancel()
    with pytest.raises(CancellationError):
        await token.sleep(0)


async def test_cancel_cascades_to_children():
    parent = CancelToken()
    child = parent.child()
    grandchild = child.child()
    parent.cancel()
    assert child.cancelled
    assert grandchild.cancelled


async def test_child_cancel_leaves_parent_alone():
    parent = CancelToken()
    child = parent.child()
    child.cancel()
    assert not parent.cancelled


async def test_child_of_cancelled_parent_starts_cancelled():
    parent = CancelToken()
    parent.cancel()
    assert parent.child().cancelled


async def test_attach_cancels_task():
    token = CancelToken()
    task = token.attach(asyncio.create_task(asyncio.sleep(30)))
    token.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


async def test_attach_after_cancel_cancels_immediately():
    token = CancelToken()
    token.cancel()
    task = token.attach(asyncio.create_task(asyncio.sleep(30)))
    with pytest.raises(asyncio.CancelledError):
        await task


def test_raise_if_cancelled():
    token = CancelToken()
    token.raise_if_cancelled()
    token.cancel()
    with pytest.raises(CancellationError):
        token.raise_if_cancelled()
