"""Script to launch the message bank (HTTP, line-JSON TCP or MCP stdio)."""

from __future__ import annotations

import argparse
import logging
import os
import sys

# Ensure src/ is on sys.path (so imports work when run directly)
SRC_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if SRC_DIR not in sys.path:
    sys.path.insert(0, SRC_DIR)

from message_bank.bank import MessageBank  # noqa: E402
from message_bank.config import bank_options, configure_logging, load_config  # noqa: E402
from message_bank.dispatch import Dispatcher  # noqa: E402

logger = logging.getLogger("message_bank.run_server")


def main() -> None:
    parser = argparse.ArgumentParser(description="Run the message bank.")
    parser.add_argument(
        "--mode",
        choices=("http", "tcp", "mcp"),
        default=os.environ.get("MODE", "tcp"),
        help="Transport to serve (default: tcp)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=os.environ.get("HOST"),
        help="Host to bind the server to (default from config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=int(os.environ["PORT"]) if os.environ.get("PORT") else None,
        help="Port to bind the server to (default from config: 8000 http, 4545 tcp)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML config file (default: $MESSAGE_BANK_CONFIG or config/default.yaml)",
    )
    args = parser.parse_args()

    cfg = load_config(args.config)
    if args.mode == "mcp":
        # stdout carries the protocol; keep logs on stderr
        logging.basicConfig(stream=sys.stderr, level=logging.INFO)
    else:
        configure_logging(cfg)

    if args.mode == "http":
        import uvicorn

        from message_bank.server import create_app

        section = cfg.get("server", {})
        app = create_app(args.config)
        uvicorn.run(
            app,
            host=args.host or section.get("host", "127.0.0.1"),
            port=args.port or int(section.get("port", 8000)),
            log_level="info",
        )
        return

    dispatcher = Dispatcher(MessageBank(**bank_options(cfg)))

    if args.mode == "mcp":
        from message_bank.tools import create_mcp_server

        logger.info("Message bank MCP server starting on stdio")
        create_mcp_server(dispatcher).run()
        return

    from message_bank.transport import BankTCPServer

    section = cfg.get("tcp", {})
    address = (args.host or section.get("host", "127.0.0.1"), args.port or int(section.get("port", 4545)))
    with BankTCPServer(address, dispatcher) as server:
        logger.info("Message bank listening on %s:%s", *server.server_address[:2])
        try:
            server.serve_forever()
        except KeyboardInterrupt:
            logger.info("Shutting down")


if __name__ == "__main__":
    main()
