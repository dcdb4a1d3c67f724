from __future__ import annotations

from message_bank.models import Filter, Message
from message_bank.store import MessageStore


def _msg(agent: str, tags) -> Message:
    return Message(id="x", ts=0, description="d", agent_id=agent, tags=tuple(tags))


def test_filter_matching_rules():
    m = _msg("a1", ["status", "status", "update"])
    assert Filter.of().matches(m)
    assert Filter.of(agent_ids=["a1", "a2"]).matches(m)
    assert not Filter.of(agent_ids=["a2"]).matches(m)
    assert Filter.of(tags=["update", "other"]).matches(m)
    assert not Filter.of(tags=["other"]).matches(m)
    # both parts must hold
    assert not Filter.of(agent_ids=["a1"], tags=["other"]).matches(m)
    assert Filter.of(agent_ids=[], tags=[]).matches(m)


def test_take_first_match_is_oldest_and_removes():
    store = MessageStore()
    first = store.put("one", "a1", ["t"])
    second = store.put("two", "a1", ["t"])
    assert store.take_first_match(Filter.of(tags=["t"])) == first
    assert store.peek_all() == [second]
    assert store.take_first_match(Filter.of(tags=["nope"])) is None
    assert len(store) == 1


def test_timestamps_never_decrease_and_ids_unique():
    store = MessageStore()
    msgs = [store.put(str(i), "a", ["t"]) for i in range(50)]
    assert all(a.ts <= b.ts for a, b in zip(msgs, msgs[1:]))
    assert len({m.id for m in msgs}) == 50


def test_read_since_is_strictly_after():
    store = MessageStore()
    m1 = store.put("one", "a", ["t"])
    assert store.read_since(Filter.of(), m1.ts) == []
    assert store.read_since(Filter.of(), m1.ts - 1) == [m1]


def test_remove_specific_message_once():
    store = MessageStore()
    m = store.put("one", "a", ["t"])
    assert store.remove(m.id) == m
    assert store.remove(m.id) is None


def test_bus_delivers_in_append_order():
    store = MessageStore()
    seen = []
    store.bus.subscribe(lambda m: seen.append(m.description))
    for d in ("a", "b", "c"):
        store.put(d, "x", ["t"])
    assert seen == ["a", "b", "c"]


def test_handler_can_unsubscribe_itself_without_affecting_others():
    store = MessageStore()
    calls = {"once": 0, "always": 0}

    def once(m):
        calls["once"] += 1
        store.bus.unsubscribe(once)

    def always(m):
        calls["always"] += 1

    store.bus.subscribe(once)
    store.bus.subscribe(always)
    store.put("1", "x", ["t"])
    store.put("2", "x", ["t"])
    assert calls == {"once": 1, "always": 2}
    assert len(store.bus) == 1


def test_late_subscriber_misses_earlier_appends():
    store = MessageStore()
    store.put("early", "x", ["t"])
    seen = []
    store.bus.subscribe(seen.append)
    assert seen == []
