"""
Centralized logging for the library API: rotating compressed files per component,
JSON or text output, and a structured logger wrapper accepting key=value context.
"""
import atexit
import gzip
import logging
import logging.handlers
import os
import re
import shutil
import sys
import threading
from pathlib import Path
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from core.config import settings


# Attribute names owned by logging.LogRecord; structured keys must not shadow them
_RESERVED_RECORD_KEYS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class ComponentFilter(logging.Filter):
    """Filter to ensure all log records have a component field."""

    def __init__(self, default_component: str = "app"):
        super().__init__()
        self.default_component = default_component

    def filter(self, record):
        if not hasattr(record, 'component'):
            logger_name = record.name
            if logger_name.startswith('uvicorn') or logger_name == 'httpx':
                record.component = 'http'
            elif logger_name.startswith(('sqlalchemy', 'alembic')):
                record.component = 'database'
            else:
                record.component = self.default_component
        return True


class SecurityFilter(logging.Filter):
    """Filter to remove credentials and tokens from log records."""

    SENSITIVE_KEYS = {
        'password', 'password_hash', 'token', 'secret', 'authorization',
        'credential', 'jwt', 'bearer', 'session_token', 'content_base64',
    }

    _JWT_RE = re.compile(r'Bearer\s+[A-Za-z0-9\-_=]+\.[A-Za-z0-9\-_=]+\.[A-Za-z0-9\-_=]+')
    _LONG_SECRET_RE = re.compile(r'\b[A-Za-z0-9]{40,}\b')
    _URL_CREDENTIALS_RE = re.compile(r'://[^:/@\s]+:[^@\s]+@')

    def filter(self, record):
        if isinstance(record.msg, str):
            record.msg = self._sanitize_message(record.msg)

        if record.args:
            record.args = tuple(self._sanitize_value(arg) for arg in record.args)

        for key in list(vars(record)):
            if key.lower() in self.SENSITIVE_KEYS:
                setattr(record, key, '[REDACTED]')

        return True

    def _sanitize_message(self, message: str) -> str:
        message = self._JWT_RE.sub('Bearer [REDACTED]', message)
        message = self._LONG_SECRET_RE.sub('[REDACTED]', message)
        return self._URL_CREDENTIALS_RE.sub('://[REDACTED]:[REDACTED]@', message)

    def _sanitize_value(self, value: Any) -> Any:
        if isinstance(value, str):
            return self._sanitize_message(value)
        if isinstance(value, dict):
            return {
                k: '[REDACTED]' if str(k).lower() in self.SENSITIVE_KEYS else v
                for k, v in value.items()
            }
        return value


def _compress_file(path: str) -> None:
    compressed = f"{path}.gz"
    try:
        with open(path, 'rb') as f_in, gzip.open(compressed, 'wb') as f_out:
            shutil.copyfileobj(f_in, f_out)
        os.remove(path)
    except OSError as e:
        # Keep the uncompressed backup if compression fails
        print(f"Warning: Failed to compress log file {path}: {e}", file=sys.stderr)


class CompressedTimedRotatingFileHandler(logging.handlers.TimedRotatingFileHandler):
    """Timed rotating file handler that gzips rotated files."""

    def __init__(self, *args, **kwargs):
        self.compress_logs = kwargs.pop('compress_logs', settings.log_compression)
        super().__init__(*args, **kwargs)

    def doRollover(self):
        super().doRollover()

        if not self.compress_logs:
            return

        directory, base = os.path.split(self.baseFilename)
        for name in os.listdir(directory or "."):
            if name.startswith(base + ".") and not name.endswith(".gz"):
                _compress_file(os.path.join(directory, name))


class CompressedRotatingFileHandler(logging.handlers.RotatingFileHandler):
    """Size rotating file handler that gzips rotated files."""

    def __init__(self, *args, **kwargs):
        self.compress_logs = kwargs.pop('compress_logs', settings.log_compression)
        super().__init__(*args, **kwargs)

    def doRollover(self):
        if self.compress_logs and self.backupCount > 0:
            # Shift existing compressed backups before the base class writes .1
            for i in range(self.backupCount - 1, 0, -1):
                older = f"{self.baseFilename}.{i}.gz"
                newer = f"{self.baseFilename}.{i + 1}.gz"
                if os.path.exists(older):
                    if os.path.exists(newer):
                        os.remove(newer)
                    os.rename(older, newer)

        super().doRollover()

        backup_file = f"{self.baseFilename}.1"
        if self.compress_logs and os.path.exists(backup_file):
            _compress_file(backup_file)


class StructuredLogger:
    """A logger wrapper that accepts structured context as keyword arguments."""

    def __init__(self, name: str, logger: logging.Logger):
        self.name = name
        self._logger = logger

    def _log(self, level: int, msg: str, *args, **kwargs):
        if not self._logger.isEnabledFor(level):
            return

        exc_info = kwargs.pop('exc_info', False)
        extra = dict(kwargs.pop('extra', {}))
        extra.setdefault('component', self.name)

        if settings.log_format == "json":
            for key, value in kwargs.items():
                safe_key = f"ctx_{key}" if key in _RESERVED_RECORD_KEYS else key
                extra[safe_key] = value
        elif kwargs:
            msg = f"{msg} [{', '.join(f'{k}={v}' for k, v in kwargs.items())}]"

        self._logger.log(level, msg, *args, exc_info=exc_info, extra=extra)

    def debug(self, msg: str, *args, **kwargs):
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs):
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs):
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, **kwargs):
        self._log(logging.ERROR, msg, *args, **kwargs)

    def exception(self, msg: str, *args, **kwargs):
        kwargs['exc_info'] = True
        self.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args, **kwargs):
        self._log(logging.CRITICAL, msg, *args, **kwargs)


class CentralizedLogManager:
    """Singleton log manager owning the console and per-component file handlers."""

    _instance = None
    _lock = threading.Lock()
    _initialized = False

    # component -> (settings attribute for the file, logger names routed to it)
    COMPONENTS = {
        'security': ('security_log_file', ['security', 'auth']),
        'database': ('database_log_file', ['database', 'sqlalchemy.engine', 'alembic']),
        'access': ('access_log_file', ['uvicorn.access', 'access']),
    }

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._loggers: Dict[str, StructuredLogger] = {}
        self._handlers: Dict[str, logging.Handler] = {}
        self._log_directory = None

        with self._lock:
            if not self._initialized:
                if settings.enable_file_logging:
                    self._ensure_log_directory()
                self._setup_root_logger()
                self._setup_component_loggers()
                self._initialized = True

    def _ensure_log_directory(self):
        self._log_directory = Path(settings.log_directory)
        self._log_directory.mkdir(parents=True, exist_ok=True)

    def _create_formatter(self, include_component: bool = True) -> logging.Formatter:
        if settings.log_format == "json":
            fmt = "%(asctime)s %(name)s %(levelname)s %(message)s"
            if include_component:
                fmt = "%(asctime)s %(name)s %(levelname)s %(component)s %(message)s"
            return jsonlogger.JsonFormatter(fmt=fmt, datefmt="%Y-%m-%dT%H:%M:%S")

        fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        if include_component:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - [%(component)s] - %(message)s"
        return logging.Formatter(fmt=fmt, datefmt="%Y-%m-%d %H:%M:%S")

    def _create_rotating_handler(self, log_file: str, level: int = logging.INFO) -> logging.Handler:
        file_path = str(self._log_directory / log_file)

        if settings.log_rotation_when != "size":
            handler = CompressedTimedRotatingFileHandler(
                filename=file_path,
                when=settings.log_rotation_when,
                interval=settings.log_rotation_interval,
                backupCount=settings.log_file_backup_count,
                compress_logs=settings.log_compression,
                encoding="utf-8",
            )
        else:
            handler = CompressedRotatingFileHandler(
                filename=file_path,
                maxBytes=settings.log_file_max_size_mb * 1024 * 1024,
                backupCount=settings.log_file_backup_count,
                compress_logs=settings.log_compression,
                encoding="utf-8",
            )

        handler.setLevel(level)
        handler.addFilter(ComponentFilter())
        handler.addFilter(SecurityFilter())
        handler.setFormatter(self._create_formatter(include_component=True))
        return handler

    def _create_console_handler(self) -> logging.Handler:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
        handler.addFilter(ComponentFilter())
        handler.addFilter(SecurityFilter())
        handler.setFormatter(self._create_formatter(include_component=False))
        return handler

    def _setup_root_logger(self):
        root_logger = logging.getLogger()
        root_logger.handlers.clear()
        root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

        console_handler = self._create_console_handler()
        root_logger.addHandler(console_handler)
        self._handlers['console'] = console_handler

        if settings.enable_file_logging:
            app_handler = self._create_rotating_handler(settings.app_log_file)
            root_logger.addHandler(app_handler)
            self._handlers['app'] = app_handler

            error_handler = self._create_rotating_handler(settings.error_log_file, logging.ERROR)
            root_logger.addHandler(error_handler)
            self._handlers['error'] = error_handler

    def _setup_component_loggers(self):
        if not settings.enable_file_logging:
            return

        for component, (file_setting, logger_names) in self.COMPONENTS.items():
            level = logging.INFO
            if component == 'database' and not settings.enable_sql_logging:
                level = logging.WARNING

            handler = self._create_rotating_handler(getattr(settings, file_setting), level)
            self._handlers[component] = handler

            for logger_name in logger_names:
                logger = logging.getLogger(logger_name)
                logger.addHandler(handler)
                if logger_name.startswith(('sqlalchemy', 'alembic')):
                    logger.setLevel(level)

    def get_logger(self, name: str) -> StructuredLogger:
        if name not in self._loggers:
            self._loggers[name] = StructuredLogger(name, logging.getLogger(name))
        return self._loggers[name]

    def shutdown(self):
        """Flush and close every handler this manager installed."""
        for handler_name, handler in list(self._handlers.items()):
            for logger in [logging.getLogger()] + [
                logging.getLogger(n) for names in (v[1] for v in self.COMPONENTS.values()) for n in names
            ]:
                if handler in logger.handlers:
                    logger.removeHandler(handler)
            try:
                handler.close()
            except OSError as e:
                print(f"Error closing handler {handler_name}: {e}", file=sys.stderr)

        self._handlers.clear()
        self._loggers.clear()
        CentralizedLogManager._initialized = False
        CentralizedLogManager._instance = None


_log_manager = None


def setup_logging() -> CentralizedLogManager:
    """Setup centralized logging system."""
    global _log_manager
    if _log_manager is None:
        _log_manager = CentralizedLogManager()
    return _log_manager


def get_logger(name: str) -> StructuredLogger:
    """Get a structured logger instance."""
    return setup_logging().get_logger(name)


def shutdown_logging():
    """Shutdown logging system gracefully."""
    global _log_manager
    if _log_manager is not None:
        _log_manager.shutdown()
        _log_manager = None


# Pre-configured logger instances for common components
app_logger = get_logger("app")
security_logger = get_logger("security")
database_logger = get_logger("database")
access_logger = get_logger("access")


atexit.register(shutdown_logging)
