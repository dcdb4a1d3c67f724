"""Verb routing and response shaping for the message bank.

``Dispatcher.dispatch`` is the whole external boundary: it takes a decoded
request object ``{"verb": ..., **fields}`` and always returns a
JSON-representable dict, either the verb's success shape or ``{"error": ...}``.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .bank import MessageBank, WaitTimeout

logger = logging.getLogger(__name__)

Response = Dict[str, Any]


# -----------------------------
# Pydantic request models
# -----------------------------
class _Request(BaseModel):
    model_config = ConfigDict(extra="ignore")


class FilterRequest(_Request):
    agent_ids: Optional[List[str]] = None
    tags: Optional[List[str]] = None


class TakeBlockingRequest(FilterRequest):
    timeout: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)


class PutRequest(_Request):
    description: str
    agent_id: str
    tags: List[str] = Field(..., min_length=1)
    content: Any


class PutBlockingRequest(PutRequest):
    timeout: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)


class ReadSinceRequest(FilterRequest):
    since: float = 0


class CheckPendingRequest(_Request):
    agent_id: Optional[str] = None


class GatherRequest(_Request):
    agent_ids: List[str] = Field(..., min_length=1)
    tags: List[str] = Field(..., min_length=1)
    timeout: Optional[float] = Field(default=None, ge=0, allow_inf_nan=False)


def _format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "request"
        parts.append(f"{loc}: {err.get('msg')}")
    return "invalid-request: " + "; ".join(parts)


# -----------------------------
# Dispatcher
# -----------------------------
class Dispatcher:
    """Validates request envelopes and routes them to a :class:`MessageBank`."""

    def __init__(self, bank: MessageBank) -> None:
        self.bank = bank
        self._routes: Dict[str, tuple[Type[_Request], Callable[[Any], Response]]] = {
            "take": (FilterRequest, self._take),
            "take-blocking": (TakeBlockingRequest, self._take_blocking),
            "put": (PutRequest, self._put),
            "put-blocking": (PutBlockingRequest, self._put_blocking),
            "peek": (FilterRequest, self._peek),
            "check-pending": (CheckPendingRequest, self._check_pending),
            "put!": (PutRequest, self._put),
            "list": (FilterRequest, self._peek),
            "read!": (ReadSinceRequest, self._read_since),
            "gather!": (GatherRequest, self._gather),
        }

    @property
    def verbs(self) -> List[str]:
        return list(self._routes)

    def dispatch(self, request: Any) -> Response:
        if not isinstance(request, dict):
            return {"error": "invalid-json"}
        verb = request.get("verb")
        route = self._routes.get(verb) if isinstance(verb, str) else None
        if route is None:
            logger.warning("Rejected request with unknown verb %r", verb)
            return {"error": "unknown-verb"}
        model, handler = route
        try:
            req = model.model_validate(request)
        except ValidationError as e:
            logger.warning("Rejected %s request: %s", verb, e)
            return {"error": _format_validation_error(e)}
        try:
            return handler(req)
        except WaitTimeout as e:
            return {"error": str(e)}
        except Exception as e:
            logger.exception("%s handler failed: %s", verb, e)
            return {"error": str(e) or e.__class__.__name__}

    # --------- handlers ----------
    def _take(self, r: FilterRequest) -> Response:
        msg = self.bank.take(r.agent_ids, r.tags)
        resp: Response = {"ok": True}
        if msg is not None:
            resp["message"] = msg.to_dict()
        return resp

    def _take_blocking(self, r: TakeBlockingRequest) -> Response:
        msg = self.bank.take_blocking(r.agent_ids, r.tags, r.timeout)
        return {"ok": True, "message": msg.to_dict()}

    def _put(self, r: PutRequest) -> Response:
        msg = self.bank.put(r.description, r.agent_id, r.tags, r.content)
        return {"ok": True, "id": msg.id}

    def _put_blocking(self, r: PutBlockingRequest) -> Response:
        msg, response = self.bank.put_blocking(r.description, r.agent_id, r.tags, r.content, r.timeout)
        resp: Response = {"ok": True, "id": msg.id}
        if response is not None:
            resp["response"] = response.to_dict()
        return resp

    def _peek(self, r: FilterRequest) -> Response:
        return {"messages": [m.to_dict() for m in self.bank.peek(r.agent_ids, r.tags)]}

    def _read_since(self, r: ReadSinceRequest) -> Response:
        return {"messages": [m.to_dict() for m in self.bank.read_since(r.agent_ids, r.tags, r.since)]}

    def _check_pending(self, r: CheckPendingRequest) -> Response:
        return {"pending": [p.to_dict() for p in self.bank.check_pending(r.agent_id)]}

    def _gather(self, r: GatherRequest) -> Response:
        result = self.bank.gather(r.agent_ids, r.tags, r.timeout)
        return {
            "completed": [list(pair) for pair in result.completed],
            "partial": result.partial,
            "messages": [m.to_dict() for m in result.messages],
        }
