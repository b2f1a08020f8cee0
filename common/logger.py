# common/logger.py
import logging
import sys
import traceback

LOGGER_NAME = "worker"

# Level names used across the workers; REQUEST/SUCCESS are INFO with a marker
_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "REQUEST": logging.INFO,
    "SUCCESS": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_MARKERS = {
    "REQUEST": "[REQUEST] ",
    "SUCCESS": "[SUCCESS] ",
}

logger = logging.getLogger(LOGGER_NAME)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stdout handler to the worker logger (idempotent)."""
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
        ))
        logger.addHandler(handler)
    logger.setLevel(_LEVELS.get(level.upper(), logging.INFO))
    return logger


def debug_log(message, level="INFO"):
    """
    Log one line through the worker logger.

    :param message: text to log
    :param level: INFO / REQUEST / SUCCESS / WARNING / ERROR
    """
    level = (level or "INFO").upper()
    logger.log(_LEVELS.get(level, logging.INFO), f"{_MARKERS.get(level, '')}{message}")


def log_error(source, message, task_name=None):
    """
    Report an error: always logged, and written to the sys_logs table when
    DATABASE_URL is configured.

    :param source: component that hit the error (Dispatcher, Finalizer, ...)
    :param message: error description
    :param task_name: task the error belongs to, if any
    """
    suffix = f" (task={task_name})" if task_name else ""
    debug_log(f"[{source}] {message}{suffix}", "ERROR")

    # Imported here so the logger stays usable without SQLAlchemy configured
    from common.database import get_session_factory
    from common import models

    session_factory = get_session_factory()
    if session_factory is None:
        return

    exc_type = sys.exc_info()[0]
    stack_trace = traceback.format_exc() if exc_type is not None else None

    db = session_factory()
    try:
        db.add(models.SystemLog(
            level="ERROR",
            source=source,
            task_name=task_name,
            message=str(message),
            stack_trace=stack_trace,
        ))
        db.commit()
    except Exception as e:
        db.rollback()
        debug_log(f"Failed to write sys_logs row: {e}", "WARNING")
    finally:
        db.close()
