"""
Change-feed abstraction for realtime row notifications.

Supports an in-memory fan-out for tests/local runs and a Redis pub/sub
implementation for production.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

logger = logging.getLogger(__name__)

Callback = Callable[[dict], None]


@dataclass
class Subscription:
    """Handle returned by `ChangeFeed.subscribe`."""

    channel: str
    cancel: Optional[Callable[[], None]] = None
    active: bool = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        if self.cancel:
            self.cancel()


class ChangeFeed(Protocol):
    """Minimal publish/subscribe interface keyed by channel name."""

    def publish(self, channel: str, payload: dict) -> None:
        ...

    def subscribe(self, channel: str, callback: Callback) -> Subscription:
        ...


def _deliver(channel: str, callback: Callback, payload: dict) -> None:
    try:
        callback(payload)
    except Exception:
        logger.exception("Subscriber callback failed on %s", channel)


@dataclass
class InMemoryChangeFeed:
    """Synchronous fan-out to registered callbacks, for testing/dev."""

    subscribers: Dict[str, List[Callback]] = field(default_factory=dict)

    def publish(self, channel: str, payload: dict) -> None:
        for callback in list(self.subscribers.get(channel, [])):
            _deliver(channel, callback, payload)

    def subscribe(self, channel: str, callback: Callback) -> Subscription:
        self.subscribers.setdefault(channel, []).append(callback)

        def _cancel() -> None:
            callbacks = self.subscribers.get(channel, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return Subscription(channel=channel, cancel=_cancel)


@dataclass
class RedisChangeFeed:
    """Redis-backed feed using PUBLISH and a pub/sub worker thread per subscription."""

    url: str
    poll_interval_seconds: float = 0.5

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url)

    def publish(self, channel: str, payload: dict) -> None:
        try:
            self.client.publish(channel, json.dumps(payload, default=str))
        except redis_exceptions.ConnectionError:
            # Managed Redis drops idle connections; reconnect once.
            self.client = redis.Redis.from_url(self.url)
            self.client.publish(channel, json.dumps(payload, default=str))

    def subscribe(self, channel: str, callback: Callback) -> Subscription:
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)

        def _handler(message: dict) -> None:
            try:
                payload = json.loads(message["data"])
            except (TypeError, ValueError):
                logger.warning("Dropping malformed message on %s", channel)
                return
            _deliver(channel, callback, payload)

        pubsub.subscribe(**{channel: _handler})
        worker = pubsub.run_in_thread(
            sleep_time=self.poll_interval_seconds, daemon=True
        )

        def _cancel() -> None:
            worker.stop()
            pubsub.close()

        return Subscription(channel=channel, cancel=_cancel)
