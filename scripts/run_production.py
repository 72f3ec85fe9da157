#!/usr/bin/env python3
"""
Production run script for the iYKELib API.
Validates the environment before handing over to uvicorn.
"""
import os
import sys
import signal
from pathlib import Path

# Add the project root to the Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

import uvicorn
from core.logging import setup_logging, get_logger
from core.config import settings

# Setup logging first
setup_logging()
logger = get_logger("production")

INSECURE_JWT_SECRET = "change-this-in-production"


def handle_signal(signum, frame):
    """Handle shutdown signals gracefully."""
    logger.info("Received shutdown signal", signal=signum)
    sys.exit(0)


def missing_environment(environ=None) -> list:
    """Names of required variables that are unset; DATABASE_URL stands in for the MYSQL_* group."""
    environ = os.environ if environ is None else environ
    required_vars = ["JWT_SECRET_KEY"]
    if not environ.get("DATABASE_URL"):
        required_vars += ["MYSQL_HOST", "MYSQL_USER", "MYSQL_PASSWORD", "MYSQL_DATABASE"]
    return [var for var in required_vars if not environ.get(var)]


def main():
    """Main entry point for production deployment."""
    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    logger.info("Starting iYKELib API",
                version=settings.app_version,
                environment="production",
                debug=settings.debug)

    missing_vars = missing_environment()
    if missing_vars:
        logger.error("Missing required environment variables", missing=missing_vars)
        sys.exit(1)

    if settings.jwt_secret_key == INSECURE_JWT_SECRET:
        logger.error("JWT_SECRET_KEY still has the development default")
        sys.exit(1)

    # Log configuration (without sensitive data)
    logger.info("Configuration loaded",
                database_host=settings.mysql_host,
                database_name=settings.mysql_database,
                debug=settings.debug,
                log_level=settings.log_level,
                upload_directory=settings.upload_directory,
                enable_security_headers=settings.enable_security_headers,
                enable_rate_limiting=settings.enable_rate_limiting)

    uvicorn_config = {
        "app": "main:app",
        "host": "0.0.0.0",
        "port": int(os.getenv("PORT", "8000")),
        "workers": int(os.getenv("WORKERS", "1")),
        "log_level": settings.log_level.lower(),
        "access_log": settings.enable_request_logging,
        "reload": False,
    }

    ssl_keyfile = os.getenv("SSL_KEYFILE")
    ssl_certfile = os.getenv("SSL_CERTFILE")

    if ssl_keyfile and ssl_certfile:
        uvicorn_config.update({
            "ssl_keyfile": ssl_keyfile,
            "ssl_certfile": ssl_certfile,
        })
        logger.info("SSL enabled", keyfile=ssl_keyfile, certfile=ssl_certfile)

    logger.info("Starting uvicorn server", port=uvicorn_config["port"], workers=uvicorn_config["workers"])

    try:
        uvicorn.run(**uvicorn_config)
    except (OSError, RuntimeError) as e:
        logger.error("Failed to start server", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
