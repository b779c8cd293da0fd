"""
HTTP surface of the GGE Tracker API.

Routes
------
- GET /api/v1/players?server=&page=&order_by=&order_type=
- GET /api/v1/castle/analysis/{castle_id}
- GET /api/v1/assets/images/{asset}
- GET /api/v1/status

Every error leaves the API as ``{"error": message}``. Domain errors choose
their status code here and nowhere else: invalid input is 400, missing
resources 404, upstream failures 502, and anything else (including a failed
admission job) a generic 500.
"""

from __future__ import annotations

import base64
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import APIRouter, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ggetracker.core.config import Config
from ggetracker.core.constants import (
    API_PREFIX,
    ASSET_IMAGE_HTTP_MAX_AGE,
    GENERIC_INTERNAL_ERROR_MESSAGE,
)
from ggetracker.core.exceptions import (
    InvalidInputError,
    NotFoundError,
    TrackerError,
    UpstreamError,
)
from ggetracker.core.infra.application_context import ApplicationContext
from ggetracker.core.logging.logger import LogContext, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


# ============================================================================
# MIDDLEWARE
# ============================================================================


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id and route to every log record, then log latency."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER)
        async with LogContext(request_id=request_id, route=request.url.path) as ctx:
            start = time.perf_counter()
            response = await call_next(request)
            duration_ms = round((time.perf_counter() - start) * 1000, 1)

            response.headers[REQUEST_ID_HEADER] = ctx.context["request_id"]
            logger.info(
                "%s %s -> %d %.1fms",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={"status_code": response.status_code, "duration_ms": duration_ms},
            )
            return response


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
        return _error(400, exc.message)

    @app.exception_handler(RequestValidationError)
    async def validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = exc.errors()
        field = ".".join(str(part) for part in errors[0]["loc"][1:]) if errors else "request"
        return _error(400, f"Invalid {field} parameter.")

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error(404, exc.message)

    @app.exception_handler(UpstreamError)
    async def upstream_handler(request: Request, exc: UpstreamError) -> JSONResponse:
        logger.warning(
            "Upstream failure",
            extra={"url": exc.details.get("url"), "upstream_status": exc.status_code},
        )
        return _error(502, "Upstream service unavailable. Please try again later.")

    @app.exception_handler(TrackerError)
    async def tracker_error_handler(request: Request, exc: TrackerError) -> JSONResponse:
        logger.error("Request failed", extra={"error": exc.to_dict()})
        return _error(500, GENERIC_INTERNAL_ERROR_MESSAGE)

    @app.exception_handler(Exception)
    async def unhandled_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            extra={"error": str(exc), "error_type": type(exc).__name__},
            exc_info=exc,
        )
        return _error(500, GENERIC_INTERNAL_ERROR_MESSAGE)


# ============================================================================
# ROUTES
# ============================================================================


def _build_router(context: ApplicationContext) -> APIRouter:
    router = APIRouter(prefix=API_PREFIX)

    @router.get("/players")
    async def list_players(
        server: str = "",
        page: str = "1",
        order_by: Optional[str] = None,
        order_type: Optional[str] = None,
    ) -> dict:
        return await context.players.list_players(
            server, page=page, order_by=order_by, order_type=order_type
        )

    @router.get("/castle/analysis/{castle_id}")
    async def castle_analysis(castle_id: str) -> dict:
        return await context.castle.get_castle_analysis(castle_id)

    @router.get("/assets/images/{asset}")
    async def asset_image(asset: str) -> Response:
        encoded = await context.assets.render_image(asset)
        return Response(
            content=base64.b64decode(encoded),
            media_type="image/png",
            headers={"Cache-Control": f"public, max-age={ASSET_IMAGE_HTTP_MAX_AGE}"},
        )

    @router.get("/status")
    async def status() -> dict:
        return {
            "name": Config.API_NAME,
            "version": Config.API_VERSION,
            **(await context.get_status()),
        }

    return router


# ============================================================================
# APPLICATION FACTORY
# ============================================================================


def create_app(context: Optional[ApplicationContext] = None) -> FastAPI:
    """
    Build the FastAPI application around an application context.

    The context is initialized on startup unless the caller already did,
    and is always shut down when the application stops.
    """
    context = context or ApplicationContext()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if not context.is_initialized:
            await context.initialize()
        try:
            yield
        finally:
            await context.shutdown()

    app = FastAPI(title=Config.API_NAME, version=Config.API_VERSION, lifespan=lifespan)
    app.state.context = context
    app.add_middleware(RequestContextMiddleware)
    _register_exception_handlers(app)
    app.include_router(_build_router(context))
    return app
