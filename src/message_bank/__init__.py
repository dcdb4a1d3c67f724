"""In-memory message bank ("blackboard") for coordinating independent agents.

Agents post short-lived tagged messages and take, peek, wait for or gather
them through a small verb protocol. The core is :class:`MessageBank`; the
verb boundary is :class:`Dispatcher`.

Typical usage
-------------
from message_bank import MessageBank, Dispatcher
dispatcher = Dispatcher(MessageBank())
dispatcher.dispatch({"verb": "put", "description": "hi", "agent_id": "a1",
                     "tags": ["status"], "content": {}})

or, from the provided launcher:

python scripts/run_server.py --mode tcp --port 4545
"""

from __future__ import annotations

from .bank import GatherResult, MessageBank, WaitTimeout
from .dispatch import Dispatcher
from .models import Filter, Message, PendingRequest

__all__ = [
    "Dispatcher",
    "Filter",
    "GatherResult",
    "Message",
    "MessageBank",
    "PendingRequest",
    "WaitTimeout",
    "create_app",
    "__version__",
    "get_version",
]

# ---------------------------------------------------------------------
# Version handling
# ---------------------------------------------------------------------
__version__ = "0.1.0"

def get_version() -> str:
    """Return the package version."""
    return __version__

# ---------------------------------------------------------------------
# App factory export (friendly import error if FastAPI is missing)
# ---------------------------------------------------------------------
def create_app(*args, **kwargs):
    """Return a configured FastAPI application.

    This forwards to :func:`message_bank.server.create_app`, importing it
    lazily so the core bank stays usable without the HTTP stack.
    """
    try:
        from .server import create_app as _create_app
    except ImportError as e:
        raise ImportError(
            "message_bank.server could not be imported; install the 'fastapi' "
            "dependency to serve the bank over HTTP."
        ) from e
    return _create_app(*args, **kwargs)
