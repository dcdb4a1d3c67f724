"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Any, Callable, Dict

import pytest

# Ensure src/ is on the import path (for local imports without installing as package)
SRC_PATH = Path(__file__).resolve().parent.parent / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from message_bank.bank import MessageBank  # noqa: E402
from message_bank.dispatch import Dispatcher  # noqa: E402


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the root directory of the project."""
    return Path(__file__).resolve().parent.parent


@pytest.fixture(scope="function")
def bank() -> MessageBank:
    return MessageBank(default_timeout=2, gather_timeout=2)


@pytest.fixture(scope="function")
def dispatcher(bank: MessageBank) -> Dispatcher:
    return Dispatcher(bank)


@pytest.fixture(scope="function")
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Ensure tests run with a clean environment (no leftover vars)."""
    import os

    for var in list(os.environ):
        if var == "MESSAGE_BANK_CONFIG" or var.startswith("MESSAGE_BANK__"):
            monkeypatch.delenv(var, raising=False)
    yield


class Background:
    """Run a callable on a thread and collect its return value."""

    def __init__(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        self.result: Any = None
        self.error: BaseException | None = None
        self._thread = threading.Thread(target=self._run, args=(fn, args, kwargs), daemon=True)
        self._thread.start()

    def _run(self, fn: Callable[..., Any], args: Any, kwargs: Dict[str, Any]) -> None:
        try:
            self.result = fn(*args, **kwargs)
        except BaseException as e:  # re-raised in join()
            self.error = e

    def join(self, timeout: float = 10) -> Any:
        self._thread.join(timeout)
        assert not self._thread.is_alive(), "background call did not finish"
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def background() -> Callable[..., Background]:
    return Background


def wait_until(cond: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll ``cond`` until true or the timeout elapses."""
    import time

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if cond():
            return True
        time.sleep(0.01)
    return cond()


@pytest.fixture
def until() -> Callable[..., bool]:
    return wait_until
