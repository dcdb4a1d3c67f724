from __future__ import annotations

import time

import pytest

from message_bank.bank import MessageBank


def test_gather_completes_from_backlog_immediately(bank: MessageBank):
    bank.put("done", "a", ["x"])
    bank.put("done", "b", ["x"])
    start = time.monotonic()
    result = bank.gather(["a", "b"], ["x"], timeout=5)
    assert time.monotonic() - start < 1
    assert result.partial is False
    assert result.completed == [("a", "x"), ("b", "x")]
    assert len(result.messages) == 2
    # gather never consumes
    assert len(bank.store) == 2


def test_gather_completes_with_messages_arriving_while_waiting(bank: MessageBank, background, until):
    bank.put("done", "a", ["x"])
    call = background(bank.gather, ["a", "b"], ["x"], timeout=5)
    assert until(lambda: len(bank.store.bus) == 1)
    bank.put("noise", "c", ["x"])
    bank.put("done", "b", ["x", "y"])
    result = call.join()
    assert result.partial is False
    assert result.completed == [("a", "x"), ("b", "x")]
    assert [m.agent_id for m in result.messages] == ["a", "b"]
    assert len(bank.store.bus) == 0


def test_gather_reports_partial_on_timeout(bank: MessageBank):
    bank.put("done", "a", ["x"])
    start = time.monotonic()
    result = bank.gather(["a", "b"], ["x"], timeout=0.2)
    assert time.monotonic() - start >= 0.2
    assert result.partial is True
    assert result.completed == [("a", "x")]
    assert [m.agent_id for m in result.messages] == ["a"]


def test_gather_requires_full_cross_product(bank: MessageBank):
    bank.put("start", "a", ["start"])
    bank.put("finish", "a", ["finish"])
    bank.put("start", "b", ["start"])
    result = bank.gather(["a", "b"], ["start", "finish"], timeout=0.1)
    assert result.partial is True
    assert result.completed == [("a", "start"), ("a", "finish"), ("b", "start")]


def test_gather_is_repeatable_and_rederives_state(bank: MessageBank):
    bank.put("done", "a", ["x"])
    first = bank.gather(["a", "b"], ["x"], timeout=0.05)
    assert first.partial
    bank.put("done", "b", ["x"])
    second = bank.gather(["a", "b"], ["x"], timeout=0.05)
    assert not second.partial
    assert second.completed == [("a", "x"), ("b", "x")]


def test_gather_deduplicates_required_pairs(bank: MessageBank):
    bank.put("done", "a", ["x"])
    result = bank.gather(["a", "a"], ["x", "x"], timeout=0.05)
    assert result.partial is False
    assert result.completed == [("a", "x")]


def test_gather_ignores_consumed_messages(bank: MessageBank):
    bank.put("done", "a", ["x"])
    bank.take(tags=["x"])
    result = bank.gather(["a"], ["x"], timeout=0.05)
    assert result.partial is True
    assert result.completed == []


def test_gather_rejects_empty_inputs(bank: MessageBank):
    with pytest.raises(ValueError):
        bank.gather([], ["x"])
    with pytest.raises(ValueError):
        bank.gather(["a"], [])


def test_gather_accepts_timeout_beyond_the_platform_limit(bank: MessageBank, background, until):
    call = background(bank.gather, ["a"], ["finish"], timeout=1e10)
    assert until(lambda: len(bank.store.bus) == 1)
    bank.put("done", "a", ["finish"])
    result = call.join()
    assert result.partial is False
    assert result.completed == [("a", "finish")]
