"""
Daily Check-in - FastAPI Application

Users capture a photo, the service timestamps it and enforces a cooldown
between check-ins, and followers see it in a social feed with typed
reactions.

Run with:
    uvicorn dailycheck.main:app --reload --host 0.0.0.0 --port 8000
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dailycheck import __version__
from dailycheck.api.routes import router
from dailycheck.config import get_settings
from dailycheck.database import engine, init_db
from dailycheck.exceptions import AppError

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown."""
    logger.info(f"Starting {settings.app_name}...")

    # Create tables (development only)
    if settings.debug:
        logger.info("Creating database tables...")
        await init_db()

    logger.info("Application startup complete!")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.app_name,
    description="""
    Daily photo check-in backend.

    ## Features
    - Check-ins with a per-user cooldown window
    - Pull-based social feed from followed users (fan-out-on-read)
    - Multi-type reactions (haha, heart, wow), one of each per user
    - Follow graph, profiles and username search
    - Signed upload URLs for photos

    ## Architecture
    - Single PostgreSQL database, direct parameterized SQL
    - Identity and object storage provided by an external backend-as-a-service
    """,
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception handlers
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "error": exc.error_code},
        headers=exc.headers,
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors()), "error": "validation_error"},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": str(exc) if settings.debug else None,
        },
    )


app.include_router(router)


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs",
        "health": "/health",
    }
