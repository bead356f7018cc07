"""
api/main.py -- FastAPI application entry point for the tours backend.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. CORSMiddleware     -- adds CORS headers for allowed browser origins
  2. log_requests       -- one log line per request with latency

Lifespan builds every long-lived component once from get_settings() and
hangs it on app.state; route handlers and dependencies read them from there:

  app.state.settings       Settings
  app.state.user_store     auth.store.UserStore
  app.state.tour_store     tours.store.TourStore
  app.state.authenticator  auth.session.SessionAuthenticator
  app.state.reset_flow     auth.reset.PasswordResetFlow
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from api.models import ErrorResponse, HealthResponse
from api.routes.v1.tours import router as tours_router
from api.routes.v1.users import router as users_router
from auth.mailer import build_mailer
from auth.reset import PasswordResetFlow
from auth.session import SessionAuthenticator
from auth.store import UserStore
from core.config import get_settings
from core.errors import AppError, ServerError
from tours.store import TourStore

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("tours.api")


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build stores and auth services on startup, dispose the engines on shutdown.

    Startup order matters: the authenticator needs the user store, and the
    reset flow needs the authenticator and the mailer.
    """
    settings = get_settings()
    app.state.settings = settings
    app.state.user_store = UserStore(settings.database_url)
    app.state.tour_store = TourStore(settings.database_url)
    app.state.authenticator = SessionAuthenticator(settings, app.state.user_store)
    app.state.reset_flow = PasswordResetFlow(
        settings,
        app.state.user_store,
        build_mailer(settings),
        app.state.authenticator,
    )
    logger.info("Tours API starting up (environment=%s)", settings.environment)

    yield

    app.state.tour_store.close()
    app.state.user_store.close()
    logger.info("Tours API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Tours API",
    description="Tour catalogue with JWT session authentication and password reset.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(tours_router, prefix="/api/v1", tags=["Tours"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same {status, message} envelope so clients can
# parse errors uniformly. "fail" for 4xx, "error" for 5xx.
# ---------------------------------------------------------------------------


def _envelope(status_code: int, message: str) -> JSONResponse:
    status = "fail" if 400 <= status_code < 500 else "error"
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(status=status, message=message).model_dump(),
    )


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Render operational errors raised by the auth services, stores and routes."""
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", type(exc).__name__, request.method, request.url.path, exc.message)
    return _envelope(exc.status_code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 when the request body, path or query fails schema validation."""
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return _envelope(400, "Invalid input data. " + "; ".join(problems))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render framework HTTP errors (404 unknown route, 405, ...) in the same envelope."""
    message = exc.detail if isinstance(exc.detail, str) else f"Can't find {request.url.path} on this server!"
    return _envelope(exc.status_code, message)


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    error = ServerError("Something went wrong!")
    return _envelope(error.status_code, error.message)


# ---------------------------------------------------------------------------
# Health endpoint
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
async def health() -> HealthResponse:
    """Return API liveness and current version."""
    return HealthResponse(version=VERSION)
