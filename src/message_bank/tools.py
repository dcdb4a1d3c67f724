"""Agent-facing tools mapped onto message bank verbs.

Each tool forwards its arguments to one verb and renders the response as
pretty-printed JSON text. ``create_mcp_server`` publishes the same tools
on an MCP stdio server.
"""
from __future__ import annotations

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .dispatch import Dispatcher


@dataclass(frozen=True)
class Tool:
    name: str
    verb: str
    description: str


TOOLS: List[Tool] = [
    Tool(
        "receive_message",
        "take",
        "Receive a message from the queue if one is available (non-blocking). "
        "Removes the message after receiving it. Use to check for new messages without waiting.",
    ),
    Tool(
        "wait_for_message",
        "take-blocking",
        "Wait for a message to arrive and receive it (blocking). Removes the message "
        "after receiving it. Use when you need a specific message before continuing.",
    ),
    Tool(
        "send_message",
        "put",
        "Send a message to other agents and continue immediately (non-blocking). "
        "Use for status updates and announcements.",
    ),
    Tool(
        "send_message_and_wait_for_response",
        "put-blocking",
        "Send a message and wait for a response from another agent sharing one of its "
        "tags (blocking). Use when you need approval or feedback before continuing.",
    ),
    Tool(
        "check_messages",
        "peek",
        "View messages without removing them from the queue.",
    ),
    Tool(
        "check_waiting_requests",
        "check-pending",
        "List agents currently blocked waiting for a response to a request.",
    ),
    Tool(
        "read_messages_since",
        "read!",
        "Read messages posted after a timestamp (epoch ms) without removing them.",
    ),
    Tool(
        "wait_for_all",
        "gather!",
        "Wait until every listed agent has posted every listed tag. Returns the completed "
        "(agent, tag) pairs and whether the result is partial (deadline reached first).",
    ),
]

TOOLS_BY_NAME: Dict[str, Tool] = {t.name: t for t in TOOLS}


def render(response: Dict[str, Any]) -> str:
    return json.dumps(response, indent=2, ensure_ascii=False)


def call_tool(dispatcher: Dispatcher, name: str, arguments: Optional[Dict[str, Any]] = None) -> str:
    """Run tool ``name`` and return its response as text.

    Raises ``KeyError`` for an unknown tool name.
    """
    tool = TOOLS_BY_NAME[name]
    # null content is a valid payload; any other null means "not given"
    request = {k: v for k, v in (arguments or {}).items() if v is not None or k == "content"}
    request["verb"] = tool.verb
    return render(dispatcher.dispatch(request))


# -----------------------------
# MCP stdio server
# -----------------------------
def create_mcp_server(dispatcher: Dispatcher, name: str = "message-bank"):
    """Build a FastMCP server exposing every tool in :data:`TOOLS`."""
    from mcp.server.fastmcp import FastMCP

    server = FastMCP(name)

    async def run(tool_name: str, **arguments: Any) -> str:
        # Blocking verbs must not stall the event loop.
        return await asyncio.to_thread(call_tool, dispatcher, tool_name, arguments)

    @server.tool(name="receive_message", description=TOOLS_BY_NAME["receive_message"].description)
    async def receive_message(agent_ids: Optional[List[str]] = None, tags: Optional[List[str]] = None) -> str:
        return await run("receive_message", agent_ids=agent_ids, tags=tags)

    @server.tool(name="wait_for_message", description=TOOLS_BY_NAME["wait_for_message"].description)
    async def wait_for_message(
        agent_ids: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        timeout: Optional[float] = None,
    ) -> str:
        return await run("wait_for_message", agent_ids=agent_ids, tags=tags, timeout=timeout)

    @server.tool(name="send_message", description=TOOLS_BY_NAME["send_message"].description)
    async def send_message(description: str, agent_id: str, tags: List[str], content: Any = None) -> str:
        return await run("send_message", description=description, agent_id=agent_id, tags=tags, content=content)

    @server.tool(
        name="send_message_and_wait_for_response",
        description=TOOLS_BY_NAME["send_message_and_wait_for_response"].description,
    )
    async def send_message_and_wait_for_response(
        description: str,
        agent_id: str,
        tags: List[str],
        content: Any = None,
        timeout: Optional[float] = None,
    ) -> str:
        return await run(
            "send_message_and_wait_for_response",
            description=description,
            agent_id=agent_id,
            tags=tags,
            content=content,
            timeout=timeout,
        )

    @server.tool(name="check_messages", description=TOOLS_BY_NAME["check_messages"].description)
    async def check_messages(agent_ids: Optional[List[str]] = None, tags: Optional[List[str]] = None) -> str:
        return await run("check_messages", agent_ids=agent_ids, tags=tags)

    @server.tool(name="check_waiting_requests", description=TOOLS_BY_NAME["check_waiting_requests"].description)
    async def check_waiting_requests(agent_id: Optional[str] = None) -> str:
        return await run("check_waiting_requests", agent_id=agent_id)

    @server.tool(name="read_messages_since", description=TOOLS_BY_NAME["read_messages_since"].description)
    async def read_messages_since(
        agent_ids: Optional[List[str]] = None,
        tags: Optional[List[str]] = None,
        since: Optional[float] = None,
    ) -> str:
        return await run("read_messages_since", agent_ids=agent_ids, tags=tags, since=since)

    @server.tool(name="wait_for_all", description=TOOLS_BY_NAME["wait_for_all"].description)
    async def wait_for_all(agent_ids: List[str], tags: List[str], timeout: Optional[float] = None) -> str:
        return await run("wait_for_all", agent_ids=agent_ids, tags=tags, timeout=timeout)

    return server
