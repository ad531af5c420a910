from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from typing import Any, Protocol

from starlette.concurrency import run_in_threadpool

from teamboard.feed import ChangeFeed

logger = logging.getLogger(__name__)

class Disconnectable(Protocol):
    async def is_disconnected(self) -> bool: ...

def sse_event(data: Any, event: str | None = None) -> str:
    lines = []
    if event:
        lines.append(f"event: {event}")
    lines.append(f"data: {json.dumps(data, default=str)}")
    return "\n".join(lines) + "\n\n"

async def change_stream(
    request: Disconnectable,
    feed: ChangeFeed,
    channel: str,
    snapshot: Callable[[dict[str, Any] | None], Any],
    *,
    event: str,
    keepalive_seconds: float = 15.0,
) -> AsyncIterator[str]:
    loop = asyncio.get_running_loop()
    changes: asyncio.Queue[dict[str, Any] | None] = asyncio.Queue()

    def _on_change(payload: dict[str, Any]) -> None:
        # feed callbacks may run on a listener thread
        loop.call_soon_threadsafe(changes.put_nowait, payload)

    def _on_resync() -> None:
        # None makes the snapshot reread instead of trusting a push
        loop.call_soon_threadsafe(changes.put_nowait, None)

    unsubscribe = feed.subscribe(channel, _on_change, on_resync=_on_resync)
    logger.debug("stream opened on %s", channel)
    try:
        yield sse_event(await run_in_threadpool(snapshot, None), event=event)
        while not await request.is_disconnected():
            try:
                latest = await asyncio.wait_for(changes.get(), timeout=keepalive_seconds)
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
                continue
            # collapse a burst of changes into one refresh
            while not changes.empty():
                latest = changes.get_nowait()
            yield sse_event(await run_in_threadpool(snapshot, latest), event=event)
    finally:
        unsubscribe()
        logger.debug("stream closed on %s", channel)
