"""Single-shot, timeout-bounded wait for a matching message."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Optional

from .models import Message
from .store import MessageStore

logger = logging.getLogger(__name__)

Predicate = Callable[[Message], bool]
# Returns the resolution value, or None to keep waiting.
Action = Callable[[Message], Optional[Any]]


@dataclass
class WaitResult:
    matched: bool
    value: Any = None

    @property
    def timed_out(self) -> bool:
        return not self.matched


class Waiter:
    """A bus subscriber that resolves exactly once.

    ``on_message`` is only ever called by the bus with the store lock held,
    and ``expire`` takes the same lock, so whichever of "match" and
    "deadline" gets there first wins and the other is a no-op.
    """

    def __init__(self, store: MessageStore, predicate: Predicate, action: Action) -> None:
        self._store = store
        self._predicate = predicate
        self._action = action
        self._event = threading.Event()
        self._result: Optional[WaitResult] = None

    @property
    def resolved(self) -> bool:
        return self._result is not None

    def on_message(self, msg: Message) -> None:
        if self._result is not None or not self._predicate(msg):
            return
        value = self._action(msg)
        if value is None:
            return
        self._resolve(WaitResult(matched=True, value=value))

    def expire(self) -> WaitResult:
        with self._store.lock:
            if self._result is None:
                self._resolve(WaitResult(matched=False))
            return self._result  # type: ignore[return-value]

    def _resolve(self, result: WaitResult) -> None:
        self._result = result
        self._store.bus.unsubscribe(self.on_message)
        self._event.set()

    def wait(self, timeout: float) -> WaitResult:
        try:
            # Event.wait overflows past TIMEOUT_MAX
            self._event.wait(max(0.0, min(timeout, threading.TIMEOUT_MAX)))
        finally:
            # Also covers interruption: never leave a subscription behind.
            result = self.expire()
        return result


def wait_for(
    store: MessageStore,
    predicate: Predicate,
    action: Action,
    timeout: float,
    *,
    backlog: Optional[Callable[[], Optional[Any]]] = None,
    on_subscribe: Optional[Callable[[Waiter], None]] = None,
) -> WaitResult:
    """Resolve with the first qualifying message or time out.

    ``backlog`` is consulted under the store lock right before subscribing;
    a non-None return resolves immediately without ever subscribing.
    ``on_subscribe`` runs once the waiter is registered on the bus.
    """
    waiter = Waiter(store, predicate, action)
    with store.lock:
        if backlog is not None:
            hit = backlog()
            if hit is not None:
                return WaitResult(matched=True, value=hit)
        store.bus.subscribe(waiter.on_message)
    if on_subscribe is not None:
        try:
            on_subscribe(waiter)
        except Exception:
            waiter.expire()
            raise
    result = waiter.wait(timeout)
    logger.debug("waiter resolved matched=%s", result.matched)
    return result
