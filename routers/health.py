"""
Health check and system monitoring endpoints.
"""
import os
import time
import psutil
from pathlib import Path
from typing import Dict, Any
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from sqlalchemy import text
import structlog

from db_config import get_db
from core.config import settings
from core.text_utils import utcnow
from models.models import User, Book, Tutorial

router = APIRouter(prefix="/health", tags=["Health"])
logger = structlog.get_logger("health")

RESOURCE_ALERT_PERCENT = 90


def _timestamp() -> str:
    return utcnow().isoformat() + "Z"


class HealthChecker:
    """Service for performing the individual health checks."""

    def __init__(self, db: Session):
        self.db = db

    def check_database(self) -> Dict[str, Any]:
        """Check database connectivity and a couple of catalog queries."""
        try:
            start_time = time.time()

            self.db.execute(text("SELECT 1")).fetchone()
            user_count = self.db.query(User).count()
            book_count = self.db.query(Book).count()
            tutorial_count = self.db.query(Tutorial).count()

            response_time = (time.time() - start_time) * 1000

            return {
                "status": "healthy",
                "response_time_ms": round(response_time, 2),
                "user_count": user_count,
                "book_count": book_count,
                "tutorial_count": tutorial_count,
                "details": "Database connection successful"
            }

        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e),
                "details": "Database connection failed"
            }

    def check_upload_storage(self) -> Dict[str, Any]:
        """Check that the upload directory exists and is writable."""
        upload_dir = Path(settings.upload_directory)
        try:
            upload_dir.mkdir(parents=True, exist_ok=True)
            writable = os.access(upload_dir, os.W_OK)
            disk = psutil.disk_usage(str(upload_dir.resolve()))
            return {
                "status": "healthy" if writable else "unhealthy",
                "path": str(upload_dir),
                "writable": writable,
                "free_gb": round(disk.free / (1024**3), 2),
                "max_upload_size_mb": settings.max_upload_size_mb
            }
        except OSError as e:
            logger.error("Upload storage check failed", error=str(e))
            return {
                "status": "unhealthy",
                "path": str(upload_dir),
                "error": str(e)
            }

    def check_system_resources(self) -> Dict[str, Any]:
        """Check system resource usage."""
        try:
            cpu_percent = psutil.cpu_percent(interval=0.1)
            memory = psutil.virtual_memory()
            disk = psutil.disk_usage('/')

            return {
                "status": "healthy",
                "cpu_percent": cpu_percent,
                "memory": {
                    "total_gb": round(memory.total / (1024**3), 2),
                    "available_gb": round(memory.available / (1024**3), 2),
                    "percent_used": memory.percent
                },
                "disk": {
                    "total_gb": round(disk.total / (1024**3), 2),
                    "free_gb": round(disk.free / (1024**3), 2),
                    "percent_used": round((disk.used / disk.total) * 100, 2)
                }
            }

        except (psutil.Error, OSError) as e:
            logger.error("System resource check failed", error=str(e))
            return {
                "status": "error",
                "error": str(e)
            }


@router.get("/", summary="Basic health check")
async def health_check():
    """
    Basic health check endpoint to verify the API is running.
    """
    return {
        "status": "ok",
        "timestamp": _timestamp(),
        "service": settings.app_name,
        "version": settings.app_version
    }


@router.get("/detailed", summary="Detailed health check")
async def detailed_health_check(db: Session = Depends(get_db)):
    """
    Comprehensive health check: database, upload storage and system resources.
    """
    checker = HealthChecker(db)

    checks = {
        "timestamp": _timestamp(),
        "service": settings.app_name,
        "version": settings.app_version,
        "database": checker.check_database(),
        "storage": checker.check_upload_storage(),
        "system": checker.check_system_resources()
    }

    overall_status = "healthy"
    if checks["database"]["status"] != "healthy":
        overall_status = "unhealthy"
    elif checks["storage"]["status"] != "healthy":
        overall_status = "degraded"

    system = checks["system"]
    if overall_status == "healthy" and system["status"] == "healthy":
        if (system.get("cpu_percent", 0) > RESOURCE_ALERT_PERCENT or
                system.get("memory", {}).get("percent_used", 0) > RESOURCE_ALERT_PERCENT or
                system.get("disk", {}).get("percent_used", 0) > RESOURCE_ALERT_PERCENT):
            overall_status = "degraded"

    checks["overall_status"] = overall_status

    logger.info("Health check performed", status=overall_status)

    if overall_status == "unhealthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=checks)

    return checks


@router.get("/database", summary="Database health check")
async def database_health_check(db: Session = Depends(get_db)):
    """
    Check database connectivity and performance.
    """
    result = HealthChecker(db).check_database()

    if result["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=result)

    return result


@router.get("/system", summary="System resources check")
async def system_health_check():
    """
    Check system resource usage (CPU, memory, disk).
    """
    return {
        "timestamp": _timestamp(),
        "system": HealthChecker(None).check_system_resources()
    }


@router.get("/readiness", summary="Readiness check")
async def readiness_check(db: Session = Depends(get_db)):
    """
    Kubernetes-style readiness check.
    Returns 200 if the service is ready to handle requests.
    """
    if HealthChecker(db).check_database()["status"] != "healthy":
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not ready")

    return {"status": "ready"}


@router.get("/liveness", summary="Liveness check")
async def liveness_check():
    """
    Kubernetes-style liveness check.
    Returns 200 if the service is alive.
    """
    return {
        "status": "alive",
        "timestamp": _timestamp()
    }
