from __future__ import annotations

import asyncio
import json

import pytest

from message_bank.dispatch import Dispatcher
from message_bank.tools import TOOLS, call_tool, create_mcp_server


def test_every_tool_maps_to_a_known_verb(dispatcher: Dispatcher):
    assert {t.verb for t in TOOLS} <= set(dispatcher.verbs)
    assert len({t.name for t in TOOLS}) == len(TOOLS)


def test_send_and_receive_as_text(dispatcher: Dispatcher):
    sent = json.loads(call_tool(dispatcher, "send_message", {
        "description": "status", "agent_id": "A1", "tags": ["status"], "content": {"p": 1},
    }))
    assert sent["ok"] is True

    text = call_tool(dispatcher, "receive_message", {"agent_ids": None, "tags": ["status"]})
    assert "\n" in text  # pretty-printed
    assert json.loads(text)["message"]["id"] == sent["id"]


def test_null_content_is_kept(dispatcher: Dispatcher):
    sent = json.loads(call_tool(dispatcher, "send_message", {
        "description": "empty", "agent_id": "A1", "tags": ["t"], "content": None,
    }))
    assert sent["ok"] is True


def test_wait_for_all_tool(dispatcher: Dispatcher):
    call_tool(dispatcher, "send_message", {"description": "d", "agent_id": "a", "tags": ["x"], "content": 1})
    out = json.loads(call_tool(dispatcher, "wait_for_all", {"agent_ids": ["a"], "tags": ["x"], "timeout": 0.1}))
    assert out["partial"] is False


def test_unknown_tool(dispatcher: Dispatcher):
    with pytest.raises(KeyError):
        call_tool(dispatcher, "launch_rockets", {})


def test_mcp_server_builds(dispatcher: Dispatcher):
    server = create_mcp_server(dispatcher)
    assert server.name == "message-bank"
    registered = asyncio.run(server.list_tools())
    assert {t.name for t in registered} == {t.name for t in TOOLS}
