"""Data model for the message bank: messages, filters and pending requests."""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple


def new_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    """Epoch milliseconds, the same unit used for message timestamps."""
    return int(time.time() * 1000)


# -----------------------------
# Message
# -----------------------------
@dataclass(frozen=True)
class Message:
    """
    A single posted message. Immutable once created; the store may only
    remove it.

    Fields:
        id: UUID4 string assigned at creation.
        ts: server timestamp (epoch ms), non-decreasing within a store.
        description: free text.
        agent_id: the posting agent.
        tags: at least one tag; duplicates allowed, matched as a set.
        content: any JSON-serializable payload.
    """
    id: str
    ts: int
    description: str
    agent_id: str
    tags: Tuple[str, ...]
    content: Any = None

    def has_any_tag(self, tags: Iterable[str]) -> bool:
        wanted = set(tags)
        return any(t in wanted for t in self.tags)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "ts": self.ts,
            "description": self.description,
            "agent_id": self.agent_id,
            "tags": list(self.tags),
            "content": self.content,
        }


# -----------------------------
# Filter
# -----------------------------
@dataclass(frozen=True)
class Filter:
    """Agent / tag predicate. An empty set matches anything."""
    agent_ids: FrozenSet[str] = frozenset()
    tags: FrozenSet[str] = frozenset()

    @classmethod
    def of(
        cls,
        agent_ids: Optional[Iterable[str]] = None,
        tags: Optional[Iterable[str]] = None,
    ) -> "Filter":
        return cls(frozenset(agent_ids or ()), frozenset(tags or ()))

    def matches(self, msg: Message) -> bool:
        if self.agent_ids and msg.agent_id not in self.agent_ids:
            return False
        if self.tags and not msg.has_any_tag(self.tags):
            return False
        return True


ANY = Filter()


# -----------------------------
# Pending requests
# -----------------------------
@dataclass
class PendingRequest:
    """Bookkeeping for an in-flight put-blocking call."""
    agent_id: str
    tags: List[str]
    timeout: float
    id: str = field(default_factory=new_id)
    ts: int = field(default_factory=now_ms)
    # live handle on the waiting operation; never serialized
    waiter: Any = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "agent_id": self.agent_id,
            "tags": list(self.tags),
            "ts": self.ts,
            "timeout": self.timeout,
        }
