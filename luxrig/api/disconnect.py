"""Caller-disconnect detection for handlers that wait on a slow local provider."""
import asyncio
from typing import Awaitable, Optional, TypeVar

from starlette.requests import Request

T = TypeVar("T")


async def wait_for_disconnect(request: Request, body_done: Optional[asyncio.Event] = None) -> None:
    """Return once the caller has gone away.

    Reads ``request.receive`` directly, so it must not run while the body is
    still being streamed; pass ``body_done`` to hold off until it has been.
    """
    if body_done is not None:
        await body_done.wait()
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


async def watch_disconnect(request: Request, cancel: asyncio.Event, body_done: Optional[asyncio.Event] = None) -> None:
    await wait_for_disconnect(request, body_done)
    cancel.set()


async def unless_disconnected(request: Request, work: Awaitable[T]) -> Optional[T]:
    """Await ``work``, cancelling it if the caller disconnects first.

    Returns None when the caller went away; exceptions from ``work`` propagate.
    """
    work_task = asyncio.ensure_future(work)
    watcher = asyncio.ensure_future(wait_for_disconnect(request))
    try:
        await asyncio.wait({work_task, watcher}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        watcher.cancel()
        if not work_task.done():
            work_task.cancel()
        await asyncio.gather(watcher, work_task, return_exceptions=True)

    if work_task.cancelled():
        return None
    return work_task.result()
