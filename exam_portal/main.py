"""FastAPI entrypoint for the Exam Portal."""

import asyncio
import logging
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from exam_portal.config import Settings, get_settings
from exam_portal.database import create_db_and_tables, create_store_engine
from exam_portal.errors import ExamPortalError, InternalError
from exam_portal.logging_config import configure_logging
from exam_portal.routers import admin as admin_router_module
from exam_portal.routers import auth as auth_router_module
from exam_portal.routers import exams as exams_router_module
from exam_portal.routers import results as results_router_module
from exam_portal.seed import provision
from exam_portal.services.attempt_service import expire_overdue_attempts

logger = logging.getLogger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", []) if part != "body"]
        field = ".".join(location)
        msg = error.get("msg", "Invalid input")
        messages.append(f"{field}: {msg}" if field else msg)
    return "; ".join(messages) or "Invalid input"


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(ExamPortalError)
    async def domain_exception_handler(request: Request, exc: ExamPortalError):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are reported as 400 rather than FastAPI's 422."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": _validation_message(exc)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error = InternalError()
        return JSONResponse(status_code=error.status_code, content={"error": error.message})


async def _expiry_sweep_loop(engine: Engine, interval: int) -> None:
    """Periodically finalize attempts whose time budget ran out without further interaction."""

    def sweep() -> int:
        with Session(engine) as session:
            return expire_overdue_attempts(session)

    while True:
        await asyncio.sleep(interval)
        try:
            await run_in_threadpool(sweep)
        except Exception:
            logger.exception("Expiry sweep failed")


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """Build the application around an explicitly constructed store engine."""
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    engine = engine or create_store_engine(settings.database_url)

    app = FastAPI(title=settings.app_name)
    app.state.settings = settings
    app.state.engine = engine
    app.state.sweep_task = None

    _register_exception_handlers(app)

    app.include_router(auth_router_module.router, prefix="/api/auth", tags=["auth"])
    app.include_router(exams_router_module.router, prefix="/api/exams", tags=["exams"])
    app.include_router(results_router_module.router, prefix="/api/results", tags=["results"])
    app.include_router(admin_router_module.router, prefix="/api/admin", tags=["admin"])

    @app.get("/api/health")
    def health():
        return {"status": "ok"}

    @app.on_event("startup")
    async def on_startup():
        """Initialize database schema, provision the admin and start the optional sweep."""
        create_db_and_tables(engine)
        provision(engine, settings)
        if settings.expiry_sweep_seconds > 0:
            app.state.sweep_task = asyncio.create_task(
                _expiry_sweep_loop(engine, settings.expiry_sweep_seconds)
            )
            logger.info("Expiry sweep enabled every %ss", settings.expiry_sweep_seconds)
        logger.info("%s started", settings.app_name)

    @app.on_event("shutdown")
    async def on_shutdown():
        task = app.state.sweep_task
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        engine.dispose()
        logger.info("%s stopped", settings.app_name)

    return app


app = create_app()


def run() -> None:
    """Serve the application with uvicorn (`exam-portal` console script)."""
    uvicorn.run("exam_portal.main:app", host="0.0.0.0", port=8000)
