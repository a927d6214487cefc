"""FastAPI application entry point.

This module creates and configures the FastAPI application instance with:
- Application metadata and OpenAPI documentation
- Middleware (CORS, request context)
- Exception handlers
- API routers (v1)
- Health check endpoints (/health, /ready)
- Startup/shutdown lifecycle management (service container)
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from curriculum_rag.api.v1 import health
from curriculum_rag.api.v1.router import router as v1_router
from curriculum_rag.config import get_settings
from curriculum_rag.container import Container, build_container
from curriculum_rag.middleware import RequestContextMiddleware
from curriculum_rag.utils.errors import RagException
from curriculum_rag.utils.logging import get_logger, log_error, setup_logging

logger = get_logger("main")


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        container: Pre-built services (tests pass one with fakes). When omitted,
            the container is built from settings at startup.
    """
    settings = container.settings if container is not None else get_settings()
    setup_logging(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting curriculum RAG service...")
        services = container or build_container(settings)
        try:
            await services.startup()
            app.state.container = services
            logger.info("Curriculum RAG service started successfully")
            yield
        finally:
            logger.info("Shutting down curriculum RAG service...")
            try:
                await services.shutdown()
            except Exception as e:
                logger.error(f"Error during shutdown: {e}", exc_info=True)
            app.state.container = None
            logger.info("Curriculum RAG service shut down")

    app = FastAPI(
        title="Curriculum RAG Service",
        description="Curriculum document ingestion, indexing and retrieval for grounded tutoring answers",
        version="0.1.0",
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        max_age=3600,
    )

    @app.exception_handler(RagException)
    async def rag_exception_handler(request: Request, exc: RagException):
        log_error(exc, context={"path": request.url.path, "method": request.method})
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        log_error(exc, context={"path": request.url.path, "method": request.method})
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "message": exc.detail,
                    "code": "HTTP_ERROR",
                    "status_code": exc.status_code,
                }
            },
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        log_error(exc, context={"path": request.url.path, "method": request.method})
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "error": {
                    "message": "Validation error",
                    "code": "VALIDATION_ERROR",
                    "status_code": 422,
                    "details": exc.errors(),
                }
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        log_error(exc, context={"path": request.url.path, "method": request.method})
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "message": "Internal server error",
                    "code": "INTERNAL_ERROR",
                    "status_code": 500,
                }
            },
        )

    app.include_router(v1_router)

    # Root-level probes for container orchestrators; also under /api/v1
    app.add_api_route("/health", health.health_check, methods=["GET"], include_in_schema=False)
    app.add_api_route("/ready", health.readiness_check, methods=["GET"], include_in_schema=False)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": "curriculum-rag",
            "version": "0.1.0",
            "status": "running",
            "environment": settings.environment.value,
        }

    return app


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "curriculum_rag.main:create_app",
        factory=True,
        host=settings.server.host,
        port=settings.server.port,
        reload=settings.server.reload and settings.is_development,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
