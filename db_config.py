"""
Database configuration module using centralized settings.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import declarative_base, sessionmaker
from core.config import settings
from core.logging import get_logger

logger = get_logger("database")

SQLALCHEMY_DATABASE_URL = settings.sync_database_url
ASYNC_SQLALCHEMY_DATABASE_URL = settings.async_db_url


def _engine_options(url: str, is_async: bool = False) -> dict:
    """Build engine keyword arguments for the given URL's dialect."""
    options = {"echo": settings.enable_sql_logging}

    if url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
        return options

    options.update(
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
    )

    if settings.mysql_ca_cert:
        if is_async:
            import ssl
            options["connect_args"] = {"ssl": ssl.create_default_context(cafile=settings.mysql_ca_cert)}
        else:
            options["connect_args"] = {"ssl": {"ca": settings.mysql_ca_cert}}

    return options


logger.info("Database configuration loaded",
            host=settings.mysql_host, port=settings.mysql_port,
            database=settings.mysql_database,
            override=bool(settings.database_url))

# Create SQLAlchemy engines
engine = create_engine(SQLALCHEMY_DATABASE_URL, **_engine_options(SQLALCHEMY_DATABASE_URL))

async_engine = create_async_engine(
    ASYNC_SQLALCHEMY_DATABASE_URL,
    **_engine_options(ASYNC_SQLALCHEMY_DATABASE_URL, is_async=True)
)


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores ON DELETE CASCADE / RESTRICT unless asked per connection
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


for _engine in (engine, async_engine.sync_engine):
    if _engine.dialect.name == "sqlite":
        event.listen(_engine, "connect", _enable_sqlite_foreign_keys)

# Create SessionLocal classes
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
AsyncSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False
)

# Create Base class
Base = declarative_base()


# Dependency to get database session (sync)
def get_db():
    db = SessionLocal()
    try:
        logger.debug("Database session created")
        yield db
    except Exception as e:
        logger.error("Database session error", error=str(e), exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()
        logger.debug("Database session closed")


# Dependency to get async database session
async def get_async_db():
    async with AsyncSessionLocal() as db:
        try:
            logger.debug("Async database session created")
            yield db
        except Exception as e:
            logger.error("Async database session error", error=str(e), exc_info=True)
            await db.rollback()
            raise
        finally:
            await db.close()
            logger.debug("Async database session closed")
