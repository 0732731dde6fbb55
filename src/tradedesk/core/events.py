# src/tradedesk/core/events.py
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable


log = logging.getLogger("tradedesk.events")


class Topic(str, Enum):
    PRICE_UPDATE = "priceUpdate"
    ORDER_UPDATE = "orderUpdate"
    POSITION_UPDATE = "positionUpdate"
    BALANCE_UPDATE = "balanceUpdate"
    FEED_ERROR = "feedError"


# ------------------------------------------------------------
# payloads
# ------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class OrderUpdated:
    account_id: str
    order_id: str
    ts: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class PositionUpdated:
    account_id: str
    position_id: str
    ts: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class BalanceUpdated:
    account_id: str
    balance: float
    pnl: float
    ts: float = field(default_factory=time.time)


@dataclass(frozen=True, slots=True)
class FeedError:
    name: str
    message: str
    ts: float = field(default_factory=time.time)


Listener = Callable[[Any], None]


class EventBus:
    """
    Process-local publish/subscribe channel.

    Any number of listeners may react to one event without coordination.
    Listeners run synchronously on the publisher's thread (WS thread, poller
    thread or caller); a failing listener is logged and skipped.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[Topic, list[Listener]] = {}

    def subscribe(self, topic: Topic, listener: Listener) -> Callable[[], None]:
        topic = Topic(topic)
        with self._lock:
            self._listeners.setdefault(topic, []).append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                items = self._listeners.get(topic) or []
                if listener in items:
                    items.remove(listener)

        return _unsubscribe

    def listener_count(self, topic: Topic) -> int:
        with self._lock:
            return len(self._listeners.get(Topic(topic)) or [])

    def publish(self, topic: Topic, event: Any) -> int:
        """Returns the number of listeners that handled the event without error."""
        topic = Topic(topic)
        with self._lock:
            listeners = list(self._listeners.get(topic) or [])

        ok = 0
        for cb in listeners:
            try:
                cb(event)
                ok += 1
            except Exception:
                log.exception("[BUS] listener failed topic=%s", topic.value)
        return ok
