"""FastAPI application exposing the message bank dispatch boundary."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .bank import MessageBank
from .config import bank_options, load_config
from .dispatch import Dispatcher

logger = logging.getLogger(__name__)


# -----------------------------
# App factory
# -----------------------------
def create_app(
    config_path: Optional[str] = None,
    bank: Optional[MessageBank] = None,
) -> FastAPI:
    cfg = load_config(config_path)

    # CORS
    cors_origins = cfg.get("server", {}).get("cors_origins", ["*"])

    # One bank per app; its lifetime is the app's lifetime.
    bank = bank or MessageBank(**bank_options(cfg))
    dispatcher = Dispatcher(bank)

    app = FastAPI(title="Message Bank", version="0.1.0")
    app.state.bank = bank
    app.state.dispatcher = dispatcher
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health() -> Dict[str, Any]:
        return {"ok": True, **bank.stats()}

    @app.get("/config")
    def get_config() -> JSONResponse:
        return JSONResponse(dict(cfg))

    # Sync on purpose: blocking verbs park a worker thread, not the event loop.
    @app.post("/dispatch")
    def dispatch(payload: Any = Body(default=None)) -> JSONResponse:
        return JSONResponse(dispatcher.dispatch(payload))

    @app.exception_handler(RequestValidationError)
    async def bad_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("Undecodable request body on %s: %s", request.url.path, exc)
        return JSONResponse({"error": "bad-request"}, status_code=400)

    return app
