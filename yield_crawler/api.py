"""FastAPI surface: snapshot status, health and the interest calculator."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import structlog
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from .calculator import CalculationRequest, compound
from .config import ServiceSettings
from .engine import CollectionUnavailable
from .orchestrator import YieldService

_TRUTHY = {"1", "true", "yes", "on"}


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"ok": False, "error": message})


def create_app(service: YieldService, settings: ServiceSettings | None = None) -> FastAPI:
    """Build the HTTP app around an existing service object."""

    settings = settings or service.settings
    logger = structlog.get_logger("yield_crawler").bind(component="api")

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await service.init()
        try:
            yield
        finally:
            await service.shutdown()

    app = FastAPI(
        title="Yield Crawler API",
        description="Latest APY snapshot scraped from client-rendered finance pages",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/api/apy")
    @app.get("/status")
    async def status(force: str | None = None) -> Any:
        forced = (force or "").strip().lower() in _TRUTHY
        try:
            served = await asyncio.wait_for(
                service.snapshot(force=forced), timeout=settings.request_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.error("request_timeout", timeout=settings.request_timeout_seconds, force=forced)
            return _error(504, "Timeout")
        except CollectionUnavailable as exc:
            logger.error("collection_unavailable", error=str(exc))
            return _error(500, "Server error")
        except Exception as exc:  # noqa: BLE001
            logger.exception("api_error", error=str(exc))
            return _error(500, "Server error")
        return {"ok": True, "source": served.origin, "data": served.snapshot.to_dict()}

    @app.get("/health")
    async def health() -> dict:
        return {"ok": True}

    @app.exception_handler(RequestValidationError)
    async def invalid_request(_request: Request, exc: RequestValidationError) -> JSONResponse:
        logger.warning("invalid_request", errors=len(exc.errors()))
        return _error(400, "Invalid input")

    @app.post("/calculate")
    async def calculate(payload: Any = Body(default=None)) -> Any:
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            return _error(400, "Request body must be a JSON object")
        try:
            request = CalculationRequest.model_validate(payload)
        except ValidationError as exc:
            messages = "; ".join(str(error.get("msg", "")) for error in exc.errors())
            return _error(400, messages or "Invalid input")
        return compound(request).model_dump()

    return app


__all__ = ["create_app"]
