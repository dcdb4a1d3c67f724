"""Demo scenarios against an in-process TCP message bank.

``walkthrough`` exercises each verb in turn: put/take, peek, a blocking take
satisfied by a delayed put, put-blocking answered by another agent, and
check-pending. ``gather`` has a PM wait for three engineers to start and
finish, then review their work.

Every agent talks to the bank through its own :class:`BankClient`.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import random
import sys
import threading
import time
from typing import Any, Dict

SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from message_bank.bank import MessageBank  # noqa: E402
from message_bank.dispatch import Dispatcher  # noqa: E402
from message_bank.transport import BankClient, BankTCPServer  # noqa: E402

logger = logging.getLogger("message_bank.demo")

ENGINEERS = ["alice", "bob", "carol"]


def _show(label: str, resp: Dict[str, Any]) -> None:
    logger.info("   %s: %s", label, json.dumps(resp, indent=2))


def _later(delay: float, port: int, request: Dict[str, Any], note: str) -> threading.Thread:
    def run() -> None:
        time.sleep(delay)
        logger.info("   (%.1fs later) %s", delay, note)
        with BankClient(port=port) as cli:
            cli.send(request)

    t = threading.Thread(target=run, daemon=True)
    t.start()
    return t


# -----------------------------
# Walkthrough
# -----------------------------
def walkthrough(port: int, delay: float = 1.0) -> Dict[str, Dict[str, Any]]:
    """Run each verb once; return the responses keyed by step."""
    results: Dict[str, Dict[str, Any]] = {}
    with BankClient(port=port) as agent1, BankClient(port=port) as agent2:
        logger.info("1. Non-blocking put and take")
        results["put"] = agent1.send({"verb": "put", "description": "Status update from agent1",
                                      "agent_id": "agent1", "tags": ["status", "update"],
                                      "content": {"status": "working", "progress": 50}})
        _show("Put", results["put"])
        results["take"] = agent2.send({"verb": "take", "tags": ["status"]})
        _show("Take", results["take"])
        results["take_again"] = agent2.send({"verb": "take", "tags": ["status"]})
        _show("Take again (empty)", results["take_again"])

        logger.info("2. Peek without removing")
        agent1.send({"verb": "put", "description": "Another message", "agent_id": "agent1",
                     "tags": ["info"], "content": {"data": "important info"}})
        results["peek"] = agent2.send({"verb": "peek", "tags": ["info"]})
        _show("Peek", results["peek"])
        results["peek_again"] = agent2.send({"verb": "peek", "tags": ["info"]})
        _show("Peek again (still there)", results["peek_again"])

        logger.info("3. Blocking take")
        _later(delay, port, {"verb": "put", "description": "Urgent notification", "agent_id": "agent1",
                             "tags": ["urgent", "alert"], "content": {"priority": "high"}},
               "agent1 sends an urgent message")
        results["take_blocking"] = agent2.send({"verb": "take-blocking", "agent_ids": ["agent1"],
                                                "tags": ["urgent"], "timeout": delay * 5})
        _show("Blocking take", results["take_blocking"])

        logger.info("4. Put-blocking (waiting for a response)")
        _later(delay, port, {"verb": "put", "description": "Review response", "agent_id": "agent2",
                             "tags": ["review", "response"], "content": {"status": "approved"}},
               "agent2 responds")
        results["put_blocking"] = agent1.send({"verb": "put-blocking", "description": "Request for review",
                                               "agent_id": "agent1", "tags": ["review", "request"],
                                               "content": {"document": "proposal.pdf"},
                                               "timeout": delay * 5})
        _show("Put-blocking", results["put_blocking"])

        logger.info("5. Check pending requests")
        with BankClient(port=port) as agent3:
            asker = threading.Thread(target=agent3.send, daemon=True, args=(
                {"verb": "put-blocking", "description": "Another request", "agent_id": "agent3",
                 "tags": ["help", "question"], "content": {"question": "How do I configure this?"},
                 "timeout": delay * 2},))
            asker.start()
            time.sleep(delay / 2)
            results["pending"] = agent2.send({"verb": "check-pending"})
            _show("Pending", results["pending"])
            results["pending_agent3"] = agent2.send({"verb": "check-pending", "agent_id": "agent3"})
            _show("Pending for agent3", results["pending_agent3"])
            # let the unanswered request time out
            asker.join()
    return results


# -----------------------------
# Gather workflow
# -----------------------------
def engineer(agent_id: str, port: int) -> None:
    with BankClient(port=port) as cli:
        logger.info("[%s] Starting work", agent_id)
        cli.send({"verb": "put!", "description": "begin work", "agent_id": agent_id,
                  "tags": ["start"], "content": {}})

        work = 1.0 + random.random() * 2.0
        time.sleep(work)
        logger.info("[%s] Finished work after %.2fs", agent_id, work)

        cli.send({"verb": "put!", "description": "feature done", "agent_id": agent_id,
                  "tags": ["finish"], "content": {"pr": f"https://git/{agent_id}"}})


def pm(port: int) -> None:
    with BankClient(port=port) as cli:
        logger.info("[PM] Waiting for all engineers to start")
        cli.send({"verb": "gather!", "agent_ids": ENGINEERS, "tags": ["start"], "timeout": 10})

        logger.info("[PM] All engineers started, waiting for all finishes")
        reviewed = set()
        while True:
            g = cli.send({"verb": "gather!", "agent_ids": ENGINEERS, "tags": ["finish"], "timeout": 2})
            for agent, _tag in g.get("completed", []):
                if agent in reviewed:
                    continue
                logger.info("[PM] Reviewing %s", agent)
                cli.send({"verb": "put!", "description": "review", "agent_id": agent,
                          "tags": ["review"], "content": f"LGTM for {agent}"})
                reviewed.add(agent)
            if not g.get("partial"):
                break
            logger.info("[PM] Partial completion, waiting again...")
        logger.info("[PM] Done reviewing")


def gather_workflow(port: int) -> None:
    threads = [threading.Thread(target=engineer, args=(e, port)) for e in ENGINEERS]
    threads.append(threading.Thread(target=pm, args=(port,)))
    for t in threads:
        t.start()
    for t in threads:
        t.join()


def main() -> None:
    parser = argparse.ArgumentParser(description="Message bank demo scenarios")
    parser.add_argument("--scenario", choices=["walkthrough", "gather", "all"], default="all")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    server = BankTCPServer(("127.0.0.1", 0), Dispatcher(MessageBank()))
    server.start_background()
    try:
        if args.scenario in ("walkthrough", "all"):
            walkthrough(server.port)
        if args.scenario in ("gather", "all"):
            gather_workflow(server.port)
    finally:
        server.shutdown()
        server.server_close()


if __name__ == "__main__":
    main()
