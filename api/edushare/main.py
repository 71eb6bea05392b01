from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional
import logging
import os
import time
import traceback

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from edushare.config.settings import (
    API_TITLE, API_VERSION, API_DESCRIPTION,
    CORS_ORIGINS, CORS_ALLOW_ALL, FILES_DIR, IS_PRODUCTION,
    LOCAL_FILES_BASE_URL, S3_CONFIGURED,
)
from edushare.core.credentials import (
    CredentialVerifier, JWTSessionStore, SessionStore, StaticCredentialVerifier,
)
from edushare.core.dependencies import StoreHandle, build_store_handle
from edushare.core.errors import RepositoryError, http_status_for
from edushare.routers import auth, content, downloads, health, lecturers
from edushare.utils.file_utils import ensure_dir
from edushare.utils.performance import performance_monitor

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[StoreHandle] = None,
    verifier: Optional[CredentialVerifier] = None,
    sessions: Optional[SessionStore] = None,
) -> FastAPI:
    """
    Build the application.

    Anything not passed in is created at start-up from the environment:
    the store handle from DATABASE_URL and the S3 settings, the verifier
    from the configured lecturer account and JWT sessions from JWT_SECRET_KEY.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_store = store is None
        app.state.store = store or build_store_handle()
        app.state.verifier = verifier or StaticCredentialVerifier()
        app.state.sessions = sessions or JWTSessionStore()
        logger.info(f"{API_TITLE} {API_VERSION} started")
        try:
            yield
        finally:
            performance_monitor.log_slow_operations()
            if owns_store:
                app.state.store.documents.engine.dispose()
            logger.info(f"{API_TITLE} stopped")

    app = FastAPI(
        title=API_TITLE,
        version=API_VERSION,
        description=API_DESCRIPTION,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        swagger_ui_parameters={"defaultModelsExpandDepth": -1},  # Collapse models by default
        lifespan=lifespan,
    )

    # Custom OpenAPI schema to include security scheme
    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema
        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )
        openapi_schema.setdefault("components", {})["securitySchemes"] = {
            "Bearer": {
                "type": "http",
                "scheme": "bearer",
                "bearerFormat": "JWT",
                "description": "Enter JWT token in the format: Bearer <token>"
            }
        }
        app.openapi_schema = openapi_schema
        return app.openapi_schema

    app.openapi = custom_openapi

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=not CORS_ALLOW_ALL,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Add request timing middleware
    @app.middleware("http")
    async def add_timing_middleware(request: Request, call_next):
        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(process_time)
        if process_time > 5.0:
            logger.warning(f"Slow request: {request.method} {request.url.path} took {process_time:.3f}s")
        return response

    # Anything the handlers below do not cover ends up here
    @app.middleware("http")
    async def error_handling_middleware(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            error_id = f"ERR-{int(datetime.now().timestamp())}-{os.urandom(4).hex()}"
            logger.error(f"{error_id}: {request.method} {request.url.path} failed with {type(e).__name__}: {e}")
            logger.error(f"{error_id} traceback: {traceback.format_exc()}")

            return JSONResponse(
                status_code=500,
                content={
                    "error": "Internal server error",
                    "error_id": error_id,
                    "detail": "Internal server error" if IS_PRODUCTION else str(e),
                    "timestamp": datetime.now().isoformat(),
                    "path": str(request.url.path),
                    "method": request.method
                }
            )

    @app.exception_handler(RepositoryError)
    async def repository_exception_handler(request: Request, exc: RepositoryError):
        status_code = http_status_for(exc)
        logger.warning(f"{request.method} {request.url.path} -> {status_code} ({exc.code}): {exc.message}")
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "code": exc.code}
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code >= 500:
            logger.error(f"HTTPException: {exc.status_code} - {exc.detail}")
        return JSONResponse(
            content={"detail": exc.detail},
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None)
        )

    app.include_router(auth.router)
    app.include_router(content.router)
    app.include_router(lecturers.router)
    app.include_router(downloads.router)
    app.include_router(health.router)

    # Files kept on local disk are served by the API itself
    if not S3_CONFIGURED and store is None:
        app.mount(LOCAL_FILES_BASE_URL, StaticFiles(directory=ensure_dir(FILES_DIR)), name="files")

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {"msg": "Welcome to EduShare", "version": API_VERSION}

    return app


app = create_app()
