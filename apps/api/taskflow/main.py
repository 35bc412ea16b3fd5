from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from taskflow.auth import AuthService
from taskflow.config import Settings, settings as default_settings
from taskflow.db import create_schema
from taskflow.errors import TaskFlowError
from taskflow.rate_limit import RateLimiter
from taskflow.routers.ai import router as ai_router
from taskflow.routers.auth import router as auth_router
from taskflow.routers.boards import router as boards_router
from taskflow.routers.columns import router as columns_router
from taskflow.routers.tasks import router as tasks_router
from taskflow.sessions import SessionStore
from taskflow.storage.base import Storage
from taskflow.storage.database import DatabaseStorage
from taskflow.storage.factory import build_backends

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
  errors = exc.errors()
  if not errors:
    return "Invalid request"
  first = errors[0]
  loc = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
  msg = str(first.get("msg") or "Invalid value")
  return f"{loc}: {msg}" if loc else msg


async def _session_sweep_loop(auth: AuthService, interval_seconds: int) -> None:
  while True:
    await asyncio.sleep(interval_seconds)
    try:
      await auth.purge_expired_sessions()
    except Exception:
      logger.exception("expired session sweep failed")


def create_app(
  settings: Settings,
  *,
  storage: Storage | None = None,
  sessions: SessionStore | None = None,
) -> FastAPI:
  logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
  )

  if storage is None or sessions is None:
    built_storage, built_sessions = build_backends(settings)
    storage = storage or built_storage
    sessions = sessions or built_sessions

  @asynccontextmanager
  async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if settings.auto_create_schema and isinstance(app.state.storage, DatabaseStorage):
      await create_schema(app.state.storage.engine)
    sweep: asyncio.Task | None = None
    if settings.session_sweep_interval_seconds > 0:
      sweep = asyncio.create_task(_session_sweep_loop(app.state.auth, settings.session_sweep_interval_seconds))
    try:
      yield
    finally:
      if sweep is not None:
        sweep.cancel()
        with suppress(asyncio.CancelledError):
          await sweep
      await app.state.storage.close()

  app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
  app.state.settings = settings
  app.state.storage = storage
  app.state.sessions = sessions
  app.state.auth = AuthService(storage, sessions, settings=settings)
  app.state.limiter = RateLimiter()

  @app.exception_handler(TaskFlowError)
  async def _taskflow_error_handler(_: Request, exc: TaskFlowError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})

  @app.exception_handler(RequestValidationError)
  async def _validation_error_handler(_: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"message": _validation_message(exc)})

  @app.exception_handler(StarletteHTTPException)
  async def _http_error_handler(_: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=exc.headers)

  @app.exception_handler(Exception)
  async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content={"message": "Internal server error"})

  app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
  )

  @app.middleware("http")
  async def _security_headers_middleware(request: Request, call_next):
    response = await call_next(request)
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    return response

  app.include_router(auth_router)
  app.include_router(boards_router)
  app.include_router(columns_router)
  app.include_router(tasks_router)
  app.include_router(ai_router)

  @app.get("/api/health")
  async def health() -> dict:
    return {"ok": True}

  @app.get("/api/version")
  async def version() -> dict:
    return {"name": settings.app_name, "version": settings.app_version}

  return app


app = create_app(default_settings)
