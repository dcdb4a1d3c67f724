"""In-memory message store and the notification bus that shares its lock."""
from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, List, Optional

from .models import ANY, Filter, Message, new_id, now_ms

logger = logging.getLogger(__name__)

Handler = Callable[[Message], None]


# -----------------------------
# Notification bus
# -----------------------------
class NotificationBus:
    """Fan-out of "message appended" events to the current subscribers.

    There is no buffering: a handler only sees appends published while it is
    subscribed. Subscription changes and delivery happen under the lock
    handed in by the owning store, so a handler may unsubscribe itself (or
    consume from the store) while it is being called.
    """

    def __init__(self, lock: threading.RLock) -> None:
        self._lock = lock
        self._handlers: List[Handler] = []

    def subscribe(self, handler: Handler) -> Handler:
        with self._lock:
            self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Handler) -> bool:
        with self._lock:
            try:
                self._handlers.remove(handler)
            except ValueError:
                return False
            return True

    def publish(self, msg: Message) -> None:
        with self._lock:
            # Snapshot: handlers added or removed during delivery do not
            # affect who receives this event.
            for handler in list(self._handlers):
                handler(msg)

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)


# -----------------------------
# Message store
# -----------------------------
class MessageStore:
    """Ordered, thread-safe collection of live messages.

    All mutations and bus (un)subscriptions go through ``self.lock`` (an
    RLock), which makes "check backlog, else subscribe" and "match event,
    remove message" atomic with respect to every other caller.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self.bus = NotificationBus(self.lock)
        self._messages: List[Message] = []
        self._last_ts = 0

    # --------- writes ----------
    def put(self, description: str, agent_id: str, tags: Iterable[str], content: Any = None) -> Message:
        """Stamp, append and publish a new message; returns it."""
        with self.lock:
            ts = max(now_ms(), self._last_ts)
            self._last_ts = ts
            msg = Message(
                id=new_id(),
                ts=ts,
                description=description,
                agent_id=agent_id,
                tags=tuple(tags),
                content=content,
            )
            self._messages.append(msg)
            logger.debug("put %s from %s tags=%s", msg.id, agent_id, list(msg.tags))
            self.bus.publish(msg)
        return msg

    def take_first_match(self, flt: Filter = ANY) -> Optional[Message]:
        """Remove and return the oldest message matching ``flt``."""
        with self.lock:
            for i, msg in enumerate(self._messages):
                if flt.matches(msg):
                    return self._messages.pop(i)
        return None

    def remove(self, message_id: str) -> Optional[Message]:
        """Remove one specific message; ``None`` if it was already consumed."""
        with self.lock:
            for i, msg in enumerate(self._messages):
                if msg.id == message_id:
                    return self._messages.pop(i)
        return None

    # --------- reads ----------
    def peek_all(self, flt: Filter = ANY) -> List[Message]:
        with self.lock:
            return [m for m in self._messages if flt.matches(m)]

    def read_since(self, flt: Filter = ANY, since: float = 0) -> List[Message]:
        with self.lock:
            return [m for m in self._messages if m.ts > since and flt.matches(m)]

    def __len__(self) -> int:
        with self.lock:
            return len(self._messages)
