"""
Logging setup for LedgerFlow.

Every module logs through ``get_logger(__name__)``. Records go to three
places:

- the console, in a short format
- ``ledgerflow.log``, everything at the configured level
- ``errors.log``, ERROR and above only; rolled-back units of work land here

Both files rotate. Level and directory come from ``LEDGERFLOW_LOG_LEVEL``
and ``LEDGERFLOW_LOG_DIR``.
"""

import logging
import logging.handlers
import os

from sqlalchemy.engine import make_url

from app.config import Settings, get_settings

_settings = get_settings()

LOGS_DIR = _settings.log_dir or os.path.join(os.path.dirname(os.path.dirname(__file__)), 'logs')
os.makedirs(LOGS_DIR, exist_ok=True)

APP_LOG_FILE = os.path.join(LOGS_DIR, 'ledgerflow.log')
ERROR_LOG_FILE = os.path.join(LOGS_DIR, 'errors.log')

# Module path, function and line; sync steps are easiest to trace this way
DETAILED_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s'
CONSOLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(message)s'

MB = 1024 * 1024


def rotating_handler(path: str, level: int, max_bytes: int, backups: int) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        path,
        maxBytes=max_bytes,
        backupCount=backups,
        encoding='utf-8'
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=DETAILED_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    return handler


def setup_logging(level: str = "INFO"):
    """
    Install the LedgerFlow handlers on the root logger.

    Replaces whatever handlers were there, so calling it twice does not
    duplicate output.
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt='%H:%M:%S'))
    root_logger.addHandler(console_handler)

    root_logger.addHandler(rotating_handler(APP_LOG_FILE, log_level, 10 * MB, 5))
    root_logger.addHandler(rotating_handler(ERROR_LOG_FILE, logging.ERROR, 5 * MB, 3))

    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("uvicorn.error").setLevel(logging.INFO)

    # SQL echo is only wanted when debugging a unit of work by hand
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    root_logger.info(f"LedgerFlow logging at {level}, files in {LOGS_DIR}")


def startup_summary(settings: Settings) -> list[str]:
    """
    Lines logged when the application starts.

    The database URL is shown without its password.
    """
    database = make_url(settings.database_url).render_as_string(hide_password=True)
    return [
        f"{settings.app_name} {settings.app_version}",
        f"Database: {database}",
        f"Annual tax brackets: {settings.annual_bracket_table}",
        f"Log level: {settings.log_level}",
    ]


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass ``__name__``."""
    return logging.getLogger(name)


setup_logging(_settings.log_level)
