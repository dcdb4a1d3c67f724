"""Line-delimited JSON over TCP: one request per line, one response per line."""
from __future__ import annotations

import json
import logging
import socket
import socketserver
import threading
from typing import Any, Dict, Optional, Tuple

from .dispatch import Dispatcher

logger = logging.getLogger(__name__)

DEFAULT_PORT = 4545


def encode_line(obj: Any) -> bytes:
    return (json.dumps(obj, ensure_ascii=False) + "\n").encode("utf-8")


# -----------------------------
# Server
# -----------------------------
class _LineHandler(socketserver.StreamRequestHandler):
    server: "BankTCPServer"

    def handle(self) -> None:
        peer = "%s:%s" % self.client_address[:2]
        logger.info("Connection opened from %s", peer)
        for raw in self.rfile:
            line = raw.strip()
            if not line:
                continue
            try:
                request = json.loads(line)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Bad request line from %s: %s", peer, e)
                response: Dict[str, Any] = {"error": "bad-request"}
            else:
                response = self.server.dispatcher.dispatch(request)
            try:
                self.wfile.write(encode_line(response))
                self.wfile.flush()
            except OSError as e:
                logger.info("Connection to %s lost while replying: %s", peer, e)
                return
        logger.info("Connection closed from %s", peer)


class BankTCPServer(socketserver.ThreadingTCPServer):
    """Threaded TCP server; each connection is served by its own thread,
    answering its lines in order."""

    daemon_threads = True
    allow_reuse_address = True

    def __init__(self, address: Tuple[str, int], dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher
        super().__init__(address, _LineHandler)

    @property
    def port(self) -> int:
        return self.server_address[1]

    def start_background(self) -> threading.Thread:
        """Serve from a daemon thread; stop with ``shutdown()``."""
        t = threading.Thread(target=self.serve_forever, name="bank-tcp", daemon=True)
        t.start()
        logger.info("Message bank listening on %s:%s", *self.server_address[:2])
        return t


# -----------------------------
# Client
# -----------------------------
class BankClient:
    """Blocking client for :class:`BankTCPServer`.

    Responses arrive in request order, so a client instance should be used
    from one thread at a time (``send`` serializes callers). A send that
    fails part way (including a socket timeout) closes the client: the
    late reply would otherwise be read as the answer to the next request.
    """

    def __init__(self, host: str = "127.0.0.1", port: int = DEFAULT_PORT, timeout: Optional[float] = None) -> None:
        self._sock = socket.create_connection((host, port), timeout=timeout)
        self._rfile = self._sock.makefile("rb")
        self._lock = threading.Lock()
        self._closed = False

    def send(self, request: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            if self._closed:
                raise ConnectionError("message bank client is closed")
            try:
                self._sock.sendall(encode_line(request))
                line = self._rfile.readline()
            except OSError:
                self._close()
                raise
            if not line:
                self._close()
                raise ConnectionError("message bank closed the connection")
        return json.loads(line)

    def close(self) -> None:
        with self._lock:
            self._close()

    def _close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self._rfile.close()
        finally:
            self._sock.close()

    def __enter__(self) -> "BankClient":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()
