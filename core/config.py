"""
Application configuration using Pydantic settings.
"""
from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # MySQL settings
    mysql_host: str = "localhost"
    mysql_port: int = 3306
    mysql_user: str = "root"
    mysql_password: str = "password"
    mysql_database: str = "iykelib"
    mysql_ca_cert: Optional[str] = None  # Path to CA bundle for TLS connections

    # Full URL overrides (tests point these at SQLite)
    database_url: Optional[str] = None
    async_database_url: Optional[str] = None

    # JWT / password hashing settings
    jwt_secret_key: str = "change-this-in-production"
    jwt_algorithm: str = "HS256"
    jwt_access_token_expire_minutes: int = 60 * 24
    bcrypt_salt_rounds: int = 12

    # Upload settings
    upload_directory: str = "uploads"
    max_upload_size_mb: int = 100
    allowed_upload_mime_types: list[str] = [
        "application/pdf",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "text/plain",
        "application/epub+zip",
        "image/jpeg",
        "image/png",
        "image/gif",
        "image/webp",
        "image/svg+xml",
    ]

    # Default data seeded on startup
    default_admin_username: Optional[str] = None
    default_admin_email: Optional[str] = None
    default_admin_password: Optional[str] = None
    force_reset_password_admin: bool = False
    seed_default_categories: bool = True

    # Application settings
    app_name: str = "iYKELib API"
    app_version: str = "1.0.0"
    debug: bool = False
    cors_origins: list[str] = ["*"]

    # Logging settings
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_directory: str = "logs"
    enable_file_logging: bool = True
    app_log_file: str = "app.log"
    error_log_file: str = "error.log"
    security_log_file: str = "security.log"
    database_log_file: str = "database.log"
    access_log_file: str = "access.log"
    log_rotation_when: str = "size"  # "size" or a TimedRotatingFileHandler "when" value
    log_rotation_interval: int = 1
    log_file_max_size_mb: int = 10
    log_file_backup_count: int = 5
    log_compression: bool = True
    enable_request_logging: bool = True
    enable_sql_logging: bool = False

    # Security settings
    enable_security_headers: bool = True
    enable_rate_limiting: bool = True
    enable_request_size_limit: bool = True
    max_request_size_bytes: int = 150 * 1024 * 1024  # base64 inflates the 100MB file cap
    request_timeout_seconds: int = 300

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def sync_database_url(self) -> str:
        """Construct the sync (PyMySQL) database URL from individual components."""
        if self.database_url:
            return self.database_url
        return (
            f"mysql+pymysql://{self.mysql_user}:{self.mysql_password}"
            f"@{self.mysql_host}:{self.mysql_port}/{self.mysql_database}?charset=utf8mb4"
        )

    @property
    def async_db_url(self) -> str:
        """Construct the async (aiomysql) database URL from individual components."""
        if self.async_database_url:
            return self.async_database_url
        return (
            f"mysql+aiomysql://{self.mysql_user}:{self.mysql_password}"
            f"@{self.mysql_host}:{self.mysql_port}/{self.mysql_database}?charset=utf8mb4"
        )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()


# Categories created on first startup when the table is empty
DEFAULT_CATEGORIES = [
    ("Web Development", "Frontend and backend web technologies"),
    ("Database", "Database design and management"),
    ("Cybersecurity", "Security practices and ethical hacking"),
    ("Programming", "General programming concepts and languages"),
    ("Data Science", "Data analysis and machine learning"),
    ("Mobile Development", "iOS and Android development"),
]
