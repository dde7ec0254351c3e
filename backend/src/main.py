# pyright: reportMissingTypeStubs=false
"""
Practice Portal Backend API

A FastAPI application providing the membership, authorization and patient
assignment core of a multi-role healthcare practice portal.

Features:
- Principal registration and doctor practice onboarding
- Practice staff management with per-practice permissions
- Patient assignment and physician-patient requests
- Real-time doctor availability over WebSocket
- PostgreSQL database with SQLAlchemy ORM
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from api import availability, patients, practices, profile, signup, staff
from core.constants import CORS_ORIGINS
from core.database import translate_store_error

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)

logger.info("🏥 Practice Portal API starting...")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("🚀 Starting Practice Portal Backend API")
    yield
    logger.info("🛑 Shutting down Practice Portal Backend API")


# Create FastAPI application
app = FastAPI(
    title="Practice Portal Backend",
    description="Practice membership, authorization and patient assignment API",
    version="1.0.0",
    docs_url="/docs",  # Swagger UI
    redoc_url="/redoc",  # ReDoc
    lifespan=lifespan,
)

# CORS middleware for frontend integration
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(DBAPIError)
async def store_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """Surface directory store failures that survived the retry as 503/504."""
    error = translate_store_error(exc)
    logger.error(f"Directory store error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=error.status_code, content={"detail": error.detail})


# Include API routers
app.include_router(
    signup.router,
    prefix="/api/signup",
    tags=["signup"],
    responses={
        401: {"description": "Unauthorized"},
        409: {"description": "Already registered"},
        500: {"description": "Internal server error"},
    },
)

app.include_router(
    profile.router,
    prefix="/api",
    tags=["profile"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)

app.include_router(
    practices.router,
    prefix="/api",
    tags=["practices"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        422: {"description": "Validation error"},
        500: {"description": "Internal server error"},
    },
)

app.include_router(
    staff.router,
    prefix="/api",
    tags=["staff"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)

app.include_router(
    patients.router,
    prefix="/api",
    tags=["patients"],
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Forbidden"},
        404: {"description": "Resource not found"},
        409: {"description": "Conflict"},
        500: {"description": "Internal server error"},
    },
)

app.include_router(
    availability.router,
    prefix="/api",
    tags=["availability"],
    responses={
        401: {"description": "Unauthorized"},
        404: {"description": "Resource not found"},
        500: {"description": "Internal server error"},
    },
)


@app.get(
    "/",
    summary="Root endpoint",
    description="Returns basic API information",
)
async def root() -> dict[str, str]:
    """Get API information."""
    return {
        "message": "Practice Portal Backend API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get(
    "/health",
    summary="Health check",
    description="Returns the health status of the API",
)
async def health_check() -> dict[str, str]:
    """Check if the API is healthy and responding."""
    return {"status": "healthy"}
