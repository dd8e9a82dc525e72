"""Starlette HTTP server assembly."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from ledger_gateway.app import AppContext, build_app_context
from ledger_gateway.audit.recorder import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from ledger_gateway.config import Settings, load_settings
from ledger_gateway.errors import GatewayError, ValidationError
from ledger_gateway.ledger.contract import UINT256_MAX
from ledger_gateway.middleware.request_log import RequestLogMiddleware
from ledger_gateway.service import GatewayService

logger = logging.getLogger(__name__)


class SetValueRequest(BaseModel):
    value: int = Field(ge=0, le=UINT256_MAX)

    @field_validator("value", mode="before")
    @classmethod
    def _reject_bool(cls, value: object) -> object:
        if isinstance(value, bool):
            raise ValueError("value must be an integer")
        return value


class HistoryQuery(BaseModel):
    limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT)
    offset: int = Field(default=0, ge=0)


def _first_error_message(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))


def _ok(data: object, **extra: object) -> JSONResponse:
    return JSONResponse({"success": True, "data": data, **extra})


def _service(request: Request) -> GatewayService:
    context: AppContext = request.app.state.context
    return context.service


async def get_value(request: Request) -> Response:
    return _ok(await _service(request).read_value())


async def set_value(request: Request) -> Response:
    try:
        body = await request.json()
    except json.JSONDecodeError as exc:
        raise ValidationError("Request body must be valid JSON") from exc
    try:
        payload = SetValueRequest.model_validate(body)
    except PydanticValidationError as exc:
        raise ValidationError(_first_error_message(exc)) from exc
    return _ok(await _service(request).write_value(payload.value))


async def get_history(request: Request) -> Response:
    try:
        query = HistoryQuery.model_validate(dict(request.query_params))
    except PydanticValidationError as exc:
        raise ValidationError(_first_error_message(exc)) from exc
    result = await _service(request).history(limit=query.limit, offset=query.offset)
    return _ok(result["records"], pagination=result["pagination"])


async def get_info(request: Request) -> Response:
    return _ok(await _service(request).info())


async def get_check(request: Request) -> Response:
    return _ok(await _service(request).check())


async def get_deployments(request: Request) -> Response:
    status = request.query_params.get("status", "active")
    return _ok(await _service(request).deployments(status))


async def get_health(request: Request) -> Response:
    report = await _service(request).health()
    return JSONResponse(report.to_dict(), status_code=report.http_status)


async def handle_gateway_error(request: Request, exc: GatewayError) -> Response:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        {"success": False, "error": exc.category, "details": exc.message},
        status_code=exc.status_code,
    )


def create_http_app(
    settings: Settings | None = None,
    context: AppContext | None = None,
) -> Starlette:
    """Create the gateway HTTP application.

    When ``context`` is omitted the dependencies are built from ``settings``
    during startup. The context is closed on shutdown either way.
    """
    settings = settings or (context.settings if context else load_settings())

    routes = [
        Route("/simple-storage", endpoint=get_value, methods=["GET"]),
        Route("/simple-storage", endpoint=set_value, methods=["POST"]),
        Route("/simple-storage/history", endpoint=get_history, methods=["GET"]),
        Route("/simple-storage/info", endpoint=get_info, methods=["GET"]),
        Route("/simple-storage/check", endpoint=get_check, methods=["GET"]),
        Route("/contracts", endpoint=get_deployments, methods=["GET"]),
        Route("/health", endpoint=get_health, methods=["GET"]),
    ]

    @asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Starting ledger gateway HTTP server...")
        ctx = app.state.context if getattr(app.state, "context", None) else build_app_context(settings)
        app.state.context = ctx

        reconcile_task: asyncio.Task | None = None
        if settings.reconciler.enabled and ctx.reconciler is not None:
            reconcile_task = asyncio.create_task(
                ctx.reconciler.run_forever(
                    settings.reconciler.interval_seconds,
                    settings.reconciler.lookback_blocks,
                )
            )
        logger.info("Ledger gateway HTTP server started")
        try:
            yield
        finally:
            logger.info("Stopping ledger gateway HTTP server...")
            try:
                if reconcile_task is not None:
                    reconcile_task.cancel()
                    try:
                        await reconcile_task
                    except asyncio.CancelledError:
                        pass
                    except Exception:
                        logger.exception("Reconciler task ended with an error")
            finally:
                await ctx.aclose()

    app = Starlette(
        routes=routes,
        middleware=[Middleware(RequestLogMiddleware)],
        exception_handlers={GatewayError: handle_gateway_error},
        lifespan=lifespan,
    )
    app.state.context = context
    return app
