"""
FastAPI main application entry point.
"""

import json
import os
import uvicorn

# Import logging system first
from core.logging import setup_logging, get_logger, database_logger

# Setup logging early
setup_logging()
logger = get_logger("main")

from db_config import SessionLocal, engine
from models.models import Base
from app import app
from core.config import settings
from services.seed_service import seed_default_admin, seed_default_categories

os.makedirs("cache", exist_ok=True)


@app.on_event("startup")
async def startup_db_client():
    """Create missing tables, then seed the default admin and categories."""
    logger.info("Starting database initialization")

    db = SessionLocal()
    try:
        Base.metadata.create_all(bind=engine)

        seed_default_admin(db)
        if settings.seed_default_categories:
            seed_default_categories(db)

        logger.info("Database initialization completed successfully")

    except Exception as e:
        logger.error("Error initializing database", error=str(e), exc_info=True)
        database_logger.error(
            "Database initialization failed", error=str(e), exc_info=True
        )
    finally:
        db.close()


# Run the application
if __name__ == "__main__":
    # Export OpenAPI schema to a JSON file
    try:
        logger.info("Exporting OpenAPI schema")
        openapi_schema = app.openapi()
        output_path = "cache/openapi.json"
        with open(output_path, "w") as f:
            json.dump(openapi_schema, f, indent=2)
        logger.info("OpenAPI schema successfully exported", output_path=output_path)
    except (OSError, TypeError) as e:
        logger.error("Error exporting OpenAPI schema", error=str(e), exc_info=True)

    port = int(os.getenv("PORT", "8000"))
    logger.info("Starting uvicorn server", host="0.0.0.0", port=port)
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=port,
        reload=False,
    )
