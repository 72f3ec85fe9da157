import os
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

# Import logging system
from core.logging import setup_logging, get_logger, app_logger

from core.config import settings
from core.exceptions import setup_exception_handlers
from core.middleware import setup_middleware

# Import routers
from routers import (
    auth, users, categories, books, tutorials, interactions, tags,
    courses, analytics, search, files, health
)
from routers import settings as settings_router

# Initialize logging system early
setup_logging()
logger = get_logger("fastapi")

# Create FastAPI app instance
app = FastAPI(
    title=settings.app_name,
    description="Backend API for the iYKELib digital library of books and video tutorials",
    version=settings.app_version,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Setup global exception handlers
setup_exception_handlers(app)

# Setup security middleware
middleware_config = {
    "enable_security_headers": settings.enable_security_headers,
    "enable_request_logging": settings.enable_request_logging,
    "enable_size_limit": settings.enable_request_size_limit,
    "max_request_size": settings.max_request_size_bytes,
    "enable_timeout": True,
    "timeout_seconds": settings.request_timeout_seconds,
}
setup_middleware(app, middleware_config)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(categories.router)
app.include_router(books.router)
app.include_router(tutorials.router)
app.include_router(interactions.router)
app.include_router(tags.router)
app.include_router(courses.router)
app.include_router(analytics.router)
app.include_router(search.router)
app.include_router(files.router)
app.include_router(settings_router.router)
app.include_router(health.router)

# Uploaded book files and covers
os.makedirs(settings.upload_directory, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=settings.upload_directory), name="uploads")


# Simple health check kept at the root path for load balancers
@app.get("/health", tags=["Health"])
async def health_check():
    """
    Basic health check endpoint to verify the API is running.
    """
    logger.info("Health check endpoint accessed")
    return {"status": "ok", "message": f"{settings.app_name} is running"}


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint providing basic API information.
    """
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.app_version,
        "docs": "/docs",
        "redoc": "/redoc",
        "health_checks": {
            "basic": "/health",
            "detailed": "/health/detailed",
            "database": "/health/database",
            "system": "/health/system"
        }
    }


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """Handle application startup."""
    app_logger.info("FastAPI application starting up", extra={"component": "startup"})


@app.on_event("shutdown")
async def shutdown_event():
    """Handle application shutdown."""
    app_logger.info("FastAPI application shutting down", extra={"component": "shutdown"})
