"""
FastAPI application entry point.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from product_house.api.deps import container
from product_house.api.v1 import comments, completion, conversations, health, masterplans
from product_house.core.config import settings
from product_house.core.constants import API_PREFIX, StorageBackend
from product_house.core.exceptions import ProductHouseError
from product_house.core.logging import get_logger, setup_logging

# Initialize logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    logger.info(
        "Starting Product House",
        app_name=settings.app_name,
        env=settings.app_env,
        storage_backend=settings.storage_backend.value,
    )

    if settings.storage_backend == StorageBackend.DATABASE:
        from product_house.database.config import init_db

        await init_db()

    container.initialize()
    logger.info("Service container initialized")

    yield

    # Shutdown
    logger.info("Shutting down Product House")
    await container.shutdown()

    if settings.storage_backend == StorageBackend.DATABASE:
        from product_house.database.config import close_db

        await close_db()


# Create FastAPI application
app = FastAPI(
    title="Product House API",
    description="Turns product conversations into structured, versioned masterplans",
    version="1.0.0",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(ProductHouseError)
async def product_house_error_handler(
    request: Request,
    exc: ProductHouseError,
) -> JSONResponse:
    """Handle custom application errors."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "Application error",
        error_code=exc.code,
        error_message=exc.message,
        status_code=exc.status_code,
        path=request.url.path,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle unexpected errors."""
    logger.exception(
        "Unexpected error",
        error=str(exc),
        path=request.url.path,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            }
        },
    )


# Include routers
app.include_router(health.router, prefix=API_PREFIX, tags=["Health"])
app.include_router(completion.router, prefix=API_PREFIX, tags=["Completion"])
app.include_router(masterplans.router, prefix=API_PREFIX, tags=["Masterplans"])
app.include_router(comments.router, prefix=API_PREFIX, tags=["Comments"])
app.include_router(conversations.router, prefix=API_PREFIX, tags=["Conversations"])


# Root endpoint
@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {
        "name": settings.app_name,
        "version": "1.0.0",
        "docs": "/docs" if settings.debug else "Disabled in production",
    }


# API info endpoint
@app.get("/api")
async def api_info() -> dict[str, Any]:
    """API information endpoint."""
    return {
        "name": "Product House API",
        "version": "1.0.0",
        "prefix": API_PREFIX,
        "endpoints": {
            "health": f"{API_PREFIX}/health",
            "completion": f"{API_PREFIX}/completion",
            "conversations": f"{API_PREFIX}/conversations",
            "masterplans": f"{API_PREFIX}/masterplans",
            "templates": f"{API_PREFIX}/templates",
        },
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "product_house.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
    )
