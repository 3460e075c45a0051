import logging
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from transplantflow.api.deps import build_services
from transplantflow.api.v1.api import api_router
from transplantflow.config import Settings, get_settings
from transplantflow.core.exceptions import (
    TransplantFlowError,
    general_exception_handler,
    http_exception_handler,
    transplantflow_exception_handler,
    validation_exception_handler,
)
from transplantflow.database import dispose_engine, init_db
from transplantflow.services.record_store import RecordStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[RecordStore] = None) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Living donor kidney transplant evaluation workflow API",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.services = build_services(settings, store)

    app.add_exception_handler(TransplantFlowError, transplantflow_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start_time = time.time()
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        logger.info("Request: %s %s", request.method, request.url.path, extra={"request_id": request_id})

        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info("Response: %s - %.3fs", response.status_code, process_time, extra={"request_id": request_id})
        response.headers["X-Request-ID"] = request_id
        return response

    app.include_router(api_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event():
        logger.info("Starting %s v%s (%s)", settings.app_name, settings.app_version, settings.environment)
        if settings.record_store_backend == "sql" and store is None:
            try:
                await init_db()
                logger.info("Database initialized successfully")
            except Exception as e:
                logger.error("Database initialization failed: %s", e)
                raise

    @app.on_event("shutdown")
    async def shutdown_event():
        services = app.state.services
        cancelled = services.sessions.close_all() + services.scheduler.cancel_all()
        logger.info("Application shutting down (%d pending write(s) cancelled)", cancelled)
        if settings.record_store_backend == "sql" and store is None:
            await dispose_engine()

    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "version": settings.app_version,
            "environment": settings.environment,
            "record_store": settings.record_store_backend,
        }

    return app


app = create_app()
