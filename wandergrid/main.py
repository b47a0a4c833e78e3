"""Main application entry point for the WanderGrid Leave Engine API."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from wandergrid.api.leave_engine import leave_engine_router
from wandergrid.config.settings import get_settings
from wandergrid.utils.errors import APIError


# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Error Handlers
# =============================================================================

async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Render engine API errors as structured responses."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def _validation_response(errors) -> JSONResponse:
    field_errors = []
    for error in errors:
        loc = ".".join(str(x) for x in error["loc"])
        field_errors.append({
            "field": loc,
            "message": error["msg"],
            "code": error["type"],
        })

    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "message": "Request validation failed",
                "code": "validation_error",
                "field_errors": field_errors,
            }
        },
    )


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name} {settings.app_version}...")
    logger.info(
        f"Leave engine: no-impact key {settings.leave.no_impact_key!r}, "
        f"carry-over depth {settings.leave.max_carry_over_depth}"
    )

    yield

    logger.info(f"Shutting down {settings.app_name}...")


# =============================================================================
# Application Factory
# =============================================================================

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Stateless leave balance and allocation engine: day weights, "
            "usage, entitlements with carry-over, and request validation."
        ),
        version=settings.app_version,
        debug=settings.debug,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    app.include_router(leave_engine_router)

    # Register exception handlers
    app.add_exception_handler(APIError, api_error_handler)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Convert request body validation errors to structured response."""
        return _validation_response(exc.errors())

    @app.exception_handler(PydanticValidationError)
    async def pydantic_validation_handler(
        request: Request,
        exc: PydanticValidationError,
    ) -> JSONResponse:
        """Convert Pydantic validation errors to structured response."""
        return _validation_response(exc.errors())

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unexpected error occurred")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "message": "An unexpected error occurred",
                    "code": "internal_error",
                }
            },
        )

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check() -> dict:
        """Check application health."""
        return {"status": "healthy", "version": settings.app_version}

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "wandergrid.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
