"""Unit tests for caller-disconnect detection."""
import asyncio

import pytest

from luxrig.api.disconnect import unless_disconnected, watch_disconnect


class FakeRequest:
    """Only ``receive`` is used: body first, then a disconnect after ``hang_up_after``."""

    def __init__(self, hang_up_after: float | None):
        self.hang_up_after = hang_up_after
        self.reads = 0

    async def receive(self):
        self.reads += 1
        if self.reads == 1:
            return {"type": "http.request", "body": b"", "more_body": False}
        if self.hang_up_after is None:
            await asyncio.Event().wait()
        await asyncio.sleep(self.hang_up_after)
        return {"type": "http.disconnect"}


@pytest.mark.asyncio
async def test_work_result_returned_when_caller_stays():
    async def work():
        await asyncio.sleep(0.01)
        return {"ok": True}

    assert await unless_disconnected(FakeRequest(hang_up_after=None), work()) == {"ok": True}


@pytest.mark.asyncio
async def test_work_cancelled_when_caller_leaves():
    cancelled = asyncio.Event()

    async def work():
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.set()
            raise

    assert await unless_disconnected(FakeRequest(hang_up_after=0.01), work()) is None
    assert cancelled.is_set()


@pytest.mark.asyncio
async def test_work_errors_propagate():
    async def work():
        raise ValueError("bad upstream payload")

    with pytest.raises(ValueError):
        await unless_disconnected(FakeRequest(hang_up_after=None), work())


@pytest.mark.asyncio
async def test_watcher_waits_for_body_before_reading():
    request = FakeRequest(hang_up_after=0.0)
    cancel = asyncio.Event()
    body_done = asyncio.Event()

    watcher = asyncio.ensure_future(watch_disconnect(request, cancel, body_done))
    await asyncio.sleep(0.01)
    assert request.reads == 0

    body_done.set()
    await asyncio.wait_for(watcher, timeout=1)
    assert cancel.is_set()
