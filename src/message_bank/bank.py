"""The message bank service: every verb's operation over one shared store.

Two addressing modes share the same store:

* exclusive consumption: ``take`` / ``take_blocking`` remove what they
  return, ``put`` / ``put_blocking`` post, ``peek`` / ``check_pending`` read;
* broadcast log: ``put`` again (``put!``), ``peek`` (``list``),
  ``read_since`` (``read!``) and the ``gather`` barrier (``gather!``), none
  of which consume.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .models import Filter, Message, PendingRequest
from .store import MessageStore
from .waiter import wait_for

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_GATHER_TIMEOUT = 10.0

TIMEOUT_ERROR = "timeout: no matching message received"


class WaitTimeout(Exception):
    """A blocking take saw no matching message before its deadline."""


# -----------------------------
# Pending request registry
# -----------------------------
class PendingRegistry:
    """In-flight put-blocking requests, kept for observability only."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Dict[str, PendingRequest] = {}

    def add(self, record: PendingRequest) -> None:
        with self._lock:
            self._records[record.id] = record

    def discard(self, request_id: str) -> None:
        with self._lock:
            self._records.pop(request_id, None)

    def snapshot(self, agent_id: Optional[str] = None) -> List[PendingRequest]:
        with self._lock:
            records = list(self._records.values())
        if agent_id:
            records = [r for r in records if r.agent_id == agent_id]
        return records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)


# -----------------------------
# Gather
# -----------------------------
@dataclass
class GatherResult:
    completed: List[Tuple[str, str]]
    partial: bool
    messages: List[Message] = field(default_factory=list)


class _GatherState:
    """Required (agent, tag) pairs and the subset observed so far."""

    def __init__(self, agent_ids: Sequence[str], tags: Sequence[str]) -> None:
        # dict.fromkeys keeps caller order while dropping duplicates
        self.required: List[Tuple[str, str]] = list(
            dict.fromkeys((a, t) for a in agent_ids for t in tags)
        )
        self._required_set = set(self.required)
        self._agents = set(agent_ids)
        self.seen: Set[Tuple[str, str]] = set()

    def absorb(self, msg: Message) -> bool:
        if msg.agent_id not in self._agents:
            return False
        hit = False
        for tag in msg.tags:
            pair = (msg.agent_id, tag)
            if pair in self._required_set:
                self.seen.add(pair)
                hit = True
        return hit

    @property
    def done(self) -> bool:
        return len(self.seen) == len(self._required_set)

    def completed(self) -> List[Tuple[str, str]]:
        return [p for p in self.required if p in self.seen]


# -----------------------------
# Bank
# -----------------------------
class MessageBank:
    """Owns the message store and the pending registry for one process."""

    def __init__(
        self,
        *,
        default_timeout: float = DEFAULT_TIMEOUT,
        gather_timeout: float = DEFAULT_GATHER_TIMEOUT,
        store: Optional[MessageStore] = None,
    ) -> None:
        self.store = store or MessageStore()
        self.pending = PendingRegistry()
        self.default_timeout = float(default_timeout)
        self.gather_timeout = float(gather_timeout)

    # --------- exclusive consumption ----------
    def take(self, agent_ids: Optional[Iterable[str]] = None, tags: Optional[Iterable[str]] = None) -> Optional[Message]:
        """Remove and return the oldest matching message, or ``None``."""
        return self.store.take_first_match(Filter.of(agent_ids, tags))

    def take_blocking(
        self,
        agent_ids: Optional[Iterable[str]] = None,
        tags: Optional[Iterable[str]] = None,
        timeout: Optional[float] = None,
    ) -> Message:
        """Like :meth:`take` but waits for a match; raises :class:`WaitTimeout`."""
        flt = Filter.of(agent_ids, tags)
        timeout = self.default_timeout if timeout is None else timeout
        store = self.store
        result = wait_for(
            store,
            flt.matches,
            # the exact instance announced, unless another reader got it first
            lambda m: store.remove(m.id),
            timeout,
            backlog=lambda: store.take_first_match(flt),
        )
        if not result.matched:
            logger.warning("take-blocking timed out after %.1fs (agents=%s tags=%s)",
                           timeout, sorted(flt.agent_ids), sorted(flt.tags))
            raise WaitTimeout(TIMEOUT_ERROR)
        return result.value

    def put(self, description: str, agent_id: str, tags: Sequence[str], content: Any = None) -> Message:
        return self.store.put(description, agent_id, tags, content)

    def put_blocking(
        self,
        description: str,
        agent_id: str,
        tags: Sequence[str],
        content: Any = None,
        timeout: Optional[float] = None,
    ) -> Tuple[Message, Optional[Message]]:
        """Post, then wait for a response from another agent.

        A response is any later message from a different agent sharing at
        least one tag with the request. There is no reply-to correlation, so
        concurrent requests with overlapping tags may all accept the same
        message. Responses are observed, never consumed. Returns
        ``(posted, response)`` where ``response`` is ``None`` on timeout.
        """
        timeout = self.default_timeout if timeout is None else timeout
        tags = list(tags)
        record = PendingRequest(agent_id=agent_id, tags=tags, timeout=timeout)
        posted: List[Message] = []

        def post() -> None:
            # Runs under the store lock, so no response can slip in between
            # the post and the subscription.
            posted.append(self.store.put(description, agent_id, tags, content))
            self.pending.add(record)

        def is_response(m: Message) -> bool:
            return m.agent_id != agent_id and m.has_any_tag(tags)

        try:
            result = wait_for(
                self.store,
                is_response,
                lambda m: m,
                timeout,
                backlog=post,
                on_subscribe=lambda w: setattr(record, "waiter", w),
            )
        finally:
            self.pending.discard(record.id)

        if not result.matched:
            logger.debug("put-blocking %s from %s got no response", posted[0].id, agent_id)
            return posted[0], None
        return posted[0], result.value

    # --------- reads ----------
    def peek(self, agent_ids: Optional[Iterable[str]] = None, tags: Optional[Iterable[str]] = None) -> List[Message]:
        return self.store.peek_all(Filter.of(agent_ids, tags))

    def read_since(
        self,
        agent_ids: Optional[Iterable[str]] = None,
        tags: Optional[Iterable[str]] = None,
        since: float = 0,
    ) -> List[Message]:
        return self.store.read_since(Filter.of(agent_ids, tags), since)

    def check_pending(self, agent_id: Optional[str] = None) -> List[PendingRequest]:
        return self.pending.snapshot(agent_id)

    # --------- barrier ----------
    def gather(self, agent_ids: Sequence[str], tags: Sequence[str], timeout: Optional[float] = None) -> GatherResult:
        """Wait until every (agent, tag) pair of ``agent_ids x tags`` has been posted.

        Seen pairs come from the current backlog plus messages arriving while
        waiting. Nothing is consumed. On deadline the pairs seen so far are
        returned with ``partial=True``; callers decide whether to retry.
        """
        if not agent_ids or not tags:
            raise ValueError("gather requires at least one agent_id and one tag")
        timeout = self.gather_timeout if timeout is None else timeout
        state = _GatherState(agent_ids, tags)
        flt = Filter.of(agent_ids, tags)
        store = self.store

        def scan_backlog() -> Optional[bool]:
            for m in store.peek_all(flt):
                state.absorb(m)
            return True if state.done else None

        result = wait_for(
            store,
            state.absorb,
            lambda m: True if state.done else None,
            timeout,
            backlog=scan_backlog,
        )
        with store.lock:
            completed = state.completed()
            messages = store.peek_all(flt)
        logger.debug("gather %d/%d pairs (partial=%s)", len(completed), len(state.required), not result.matched)
        return GatherResult(completed=completed, partial=not result.matched, messages=messages)

    # --------- misc ----------
    def stats(self) -> Dict[str, int]:
        return {"messages": len(self.store), "pending": len(self.pending)}
