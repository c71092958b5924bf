"""
Logging Setup
=============

Colored console output for local work, a rotating ``logs/sitegen.log``
file, and the request id from :mod:`sitegen.errors.handlers` prefixed to
every line logged inside a request.
"""

import os
import sys
import logging
import warnings
from pathlib import Path
from typing import Optional
from logging.handlers import RotatingFileHandler

from colorama import init, Fore, Style

init(autoreset=True)

APP_LOGGER_NAME = "sitegen"
LOG_FILE_NAME = "sitegen.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5
NAME_WIDTH = 22

LEVEL_COLORS = {
    logging.DEBUG: Fore.CYAN,
    logging.INFO: Fore.GREEN,
    logging.WARNING: Fore.YELLOW,
    logging.ERROR: Fore.RED,
    logging.CRITICAL: Fore.RED + Style.BRIGHT,
}

# Substring of the shortened logger name -> color
AREA_COLORS = (
    ('auth', Fore.MAGENTA),
    ('security', Fore.MAGENTA),
    ('site', Fore.CYAN),
    ('article', Fore.CYAN),
    ('ai_content', Fore.BLUE),
    ('image', Fore.BLUE),
    ('freestar', Fore.YELLOW),
    ('celery', Fore.YELLOW),
    ('dns', Fore.LIGHTRED_EX),
)

NAME_PREFIXES = (
    ('sitegen.services.', 'svc.'),
    ('sitegen.routes.', 'route.'),
    ('sitegen.utils.', 'util.'),
    ('sitegen.', ''),
    ('celery.app.', 'celery.'),
)

# Request lines werkzeug would otherwise print for every asset and health check
QUIET_REQUEST_PATHS = ('GET /api/health ', 'GET /static/', 'GET /favicon', 'GET /site-api/')

THIRD_PARTY_LOGGERS = (
    'sqlalchemy.engine', 'sqlalchemy.pool', 'urllib3', 'requests', 'botocore', 'boto3',
    's3transfer', 'openai', 'httpx', 'python_http_client', 'celery.app.trace', 'celery.beat',
)


def short_logger_name(name: str) -> str:
    for prefix, replacement in NAME_PREFIXES:
        if name.startswith(prefix):
            name = replacement + name[len(prefix):]
            break
    if len(name) > NAME_WIDTH:
        name = name[:NAME_WIDTH - 3] + "..."
    return name


class RequestIdFilter(logging.Filter):
    """Copy ``g.request_id`` onto records emitted while serving a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        from flask import g, has_request_context
        record.request_id = g.get('request_id') if has_request_context() else None  # type: ignore[attr-defined]
        return True


class QuietRequestsFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        return not any(path in message for path in QUIET_REQUEST_PATHS)


class SitegenFormatter(logging.Formatter):
    """``[HH:MM:SS] LEVEL name [request] message`` with optional colors."""

    def __init__(self, colored: bool = True, with_location: bool = False):
        super().__init__()
        self.colored = colored
        self.with_location = with_location

    def format(self, record: logging.LogRecord) -> str:
        name = short_logger_name(record.name)
        level = f"{record.levelname:8}"
        padded_name = f"{name:{NAME_WIDTH}}"
        if self.colored:
            level = f"{LEVEL_COLORS.get(record.levelno, '')}{level}{Style.RESET_ALL}"
            padded_name = f"{self._area_color(name)}{padded_name}{Style.RESET_ALL}"

        parts = [f"[{self.formatTime(record, '%H:%M:%S')}]", level, padded_name]
        if self.with_location and record.levelno >= logging.WARNING:
            parts.append(f"[{record.funcName}:{record.lineno}]")
        request_id = getattr(record, 'request_id', None)
        if request_id:
            parts.append(f"[{request_id[:8]}]")
        parts.append(record.getMessage())

        line = " ".join(parts)
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line

    @staticmethod
    def _area_color(name: str) -> str:
        lowered = name.lower()
        for area, color in AREA_COLORS:
            if area in lowered:
                return color
        return Fore.WHITE


class LoggingConfig:
    """Root logger wiring used by the app factory and the Celery worker."""

    def __init__(self, log_dir: Optional[Path] = None):
        self.log_dir = log_dir or Path(os.environ.get('LOG_DIR', Path(__file__).resolve().parents[3] / 'logs'))
        self.log_level = getattr(logging, os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO)
        self.is_development = os.environ.get('APP_ENV', 'development') != 'production'

    def setup_logging(self) -> logging.Logger:
        """Attach the console and file handlers to the root logger.

        Handlers installed by an earlier call are swapped out, others (such
        as pytest's caplog) are left alone.
        """
        root = logging.getLogger()
        for handler in list(root.handlers):
            if getattr(handler, '_sitegen', False):
                root.removeHandler(handler)
        root.setLevel(self.log_level)

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(self.log_level)
        console.setFormatter(SitegenFormatter(colored=True, with_location=self.is_development))
        self._install(root, console)

        file_handler = self._file_handler()
        if file_handler is not None:
            self._install(root, file_handler)

        self._quiet_third_party()

        logger = logging.getLogger(APP_LOGGER_NAME)
        logger.info("Logging configured (level %s)", logging.getLevelName(self.log_level))
        return logger

    def _file_handler(self) -> Optional[RotatingFileHandler]:
        try:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                self.log_dir / LOG_FILE_NAME,
                maxBytes=LOG_FILE_MAX_BYTES,
                backupCount=LOG_FILE_BACKUPS,
                encoding='utf-8',
            )
        except OSError as e:
            logging.getLogger(APP_LOGGER_NAME).warning("File logging disabled: %s", e)
            return None
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(SitegenFormatter(colored=False, with_location=True))
        return handler

    @staticmethod
    def _install(root: logging.Logger, handler: logging.Handler) -> None:
        handler.addFilter(RequestIdFilter())
        handler._sitegen = True  # type: ignore[attr-defined]
        root.addHandler(handler)

    def _quiet_third_party(self) -> None:
        warnings.filterwarnings('ignore', category=DeprecationWarning, module='celery')
        logging.captureWarnings(True)
        logging.getLogger('py.warnings').setLevel(logging.ERROR)

        for name in THIRD_PARTY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        werkzeug_logger = logging.getLogger('werkzeug')
        if not self.is_development:
            werkzeug_logger.setLevel(logging.WARNING)
        if not any(isinstance(f, QuietRequestsFilter) for f in werkzeug_logger.filters):
            werkzeug_logger.addFilter(QuietRequestsFilter())


def setup_application_logging(log_dir: Optional[Path] = None) -> logging.Logger:
    """Configure logging once at startup; returns the ``sitegen`` logger."""
    return LoggingConfig(log_dir).setup_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{APP_LOGGER_NAME}.{name}")
