"""
SiteCost API
FastAPI backend for construction cost tracking: task/project cost rollups,
budget entries, admin dashboard statistics and client quotations.

Everything stateful (engine, session factory, settings) is built inside
``create_app(settings)`` and kept on ``app.state``.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from sitecost.api.budget_routes import router as budget_router
from sitecost.api.cost_routes import router as cost_router
from sitecost.api.dashboard_routes import router as dashboard_router
from sitecost.api.project_routes import router as project_router
from sitecost.api.responses import failure
from sitecost.config import Settings
from sitecost.db import build_engine, build_session_factory, init_db
from sitecost.errors import SiteCostError
from sitecost.services.logging_config import setup_logging
from sitecost.services.middleware import RequestTimingMiddleware

logger = logging.getLogger("sitecost-api")

VERSION = "1.0.0"


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(SiteCostError)
    async def sitecost_error_handler(request: Request, exc: SiteCostError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=failure(exc.message, exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p not in ("body", "query", "path"))
        message = f"{field}: {first.get('msg')}" if field else first.get("msg", "Invalid request")
        return JSONResponse(status_code=400, content=failure(message, {"field": field or None}))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=failure(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=failure("Internal server error", str(exc)))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    setup_logging(level=settings.log_level, json_output=settings.json_logs)
    if not settings.database_configured:
        logger.warning("DATABASE_URL not set, running in dev mode")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = build_engine(settings)
        app.state.engine = engine
        app.state.session_factory = build_session_factory(engine)
        app.state.started_at = time.monotonic()
        await init_db(engine, settings)
        yield
        await engine.dispose()

    app = FastAPI(
        title="SiteCost API",
        version=VERSION,
        description="Budget aggregation and cost rollups for construction projects",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
    )
    # Request timing + X-Request-ID must be outermost so it wraps all other middleware
    app.add_middleware(RequestTimingMiddleware)

    _register_exception_handlers(app)

    app.include_router(budget_router)
    app.include_router(cost_router)
    app.include_router(project_router)
    app.include_router(dashboard_router)

    @app.get("/health")
    async def health_check():
        started = getattr(app.state, "started_at", None)
        return {
            "status": "active",
            "version": VERSION,
            "db_configured": settings.database_configured,
            "uptime_seconds": round(time.monotonic() - started, 1) if started else 0.0,
        }

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("sitecost.main:create_app", factory=True, host="0.0.0.0", port=8000, reload=True)
