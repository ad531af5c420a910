from __future__ import annotations

import json
import logging
import threading
import time
from collections.abc import Callable
from typing import Any, Protocol

import redis

from teamboard.errors import StoreUnavailable
from teamboard.redis_client import redis_client

logger = logging.getLogger(__name__)

Callback = Callable[[dict[str, Any]], None]
Unsubscribe = Callable[[], None]
Resync = Callable[[], None]

def tasks_channel(project_id: Any) -> str:
    return f"teamboard:projects:{project_id}:tasks"

class ChangeFeed(Protocol):
    def publish(self, channel: str, payload: dict[str, Any]) -> None: ...

    def subscribe(
        self, channel: str, callback: Callback, on_resync: Resync | None = None
    ) -> Unsubscribe: ...

class LocalChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Callback]] = {}

    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(channel, ()))
        for cb in callbacks:
            try:
                cb(payload)
            except Exception:
                # one broken subscriber must not stop delivery to the others
                logger.exception("subscriber on %s failed", channel)

    def subscribe(
        self, channel: str, callback: Callback, on_resync: Resync | None = None
    ) -> Unsubscribe:
        # in-process delivery never drops, so there is nothing to resync
        with self._lock:
            self._subscribers.setdefault(channel, []).append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                subs = self._subscribers.get(channel, [])
                if callback in subs:
                    subs.remove(callback)
                if not subs:
                    self._subscribers.pop(channel, None)

        return _unsubscribe

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, ()))

class RedisChangeFeed:
    def __init__(self, client: redis.Redis, sleep_time: float = 0.1, max_backoff: float = 5.0):
        self._client = client
        self._sleep_time = sleep_time
        self._max_backoff = max_backoff

    def publish(self, channel: str, payload: dict[str, Any]) -> None:
        try:
            self._client.publish(channel, json.dumps(payload, default=str))
        except redis.RedisError as e:
            # the write already committed; subscribers catch up on their next read
            logger.warning("change feed publish on %s failed: %s", channel, e)

    def subscribe(
        self, channel: str, callback: Callback, on_resync: Resync | None = None
    ) -> Unsubscribe:
        failures = 0

        def _handler(message: dict[str, Any]) -> None:
            try:
                payload = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning("dropping malformed message on %s", channel)
                return
            try:
                callback(payload)
            except Exception:
                logger.exception("subscriber on %s failed", channel)

        def _on_error(exc: BaseException, pubsub: redis.client.PubSub, thread: Any) -> None:
            # the worker keeps looping after this returns; the next read reconnects
            nonlocal failures
            failures += 1
            delay = min(self._max_backoff, self._sleep_time * 2**failures)
            logger.warning(
                "change feed on %s lost (%s), retrying in %.1fs", channel, exc, delay
            )
            time.sleep(delay)
            try:
                # reconnecting re-subscribes every channel this pubsub holds
                pubsub.ping()
            except redis.RedisError:
                return
            failures = 0
            logger.info("change feed on %s reconnected", channel)
            if on_resync is None:
                return
            try:
                on_resync()
            except Exception:
                logger.exception("resync after reconnect on %s failed", channel)

        pubsub = self._client.pubsub(ignore_subscribe_messages=True)
        try:
            pubsub.subscribe(**{channel: _handler})
        except redis.RedisError as e:
            pubsub.close()
            raise StoreUnavailable("change_feed_unavailable") from e

        worker = pubsub.run_in_thread(
            sleep_time=self._sleep_time, daemon=True, exception_handler=_on_error
        )

        def _unsubscribe() -> None:
            worker.stop()
            worker.join(timeout=1.0)

        return _unsubscribe

def build_change_feed(backend: str, client: redis.Redis | None = None) -> ChangeFeed:
    if backend == "local":
        return LocalChangeFeed()
    if backend == "redis":
        return RedisChangeFeed(client or redis_client)
    raise ValueError(f"unknown change feed backend: {backend}")
