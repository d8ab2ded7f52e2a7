"""
Centralized logging for the narrative pipeline.

Usage:
    from utils import logger

    logger.info("Pass started")
    logger.bind(post_id=42).warning("Extraction failed")
"""
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

# Remove default handler so sinks are only added once via setup_logging()
logger.remove()

_configured = False

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function} - {message} | {extra}"


def setup_logging(
    log_dir: Optional[Path] = None,
    log_level: str = "INFO",
    app_name: str = "pipeline",
) -> None:
    """
    Configure console and (optionally) file logging.

    Args:
        log_dir: Directory for rotated log files. None disables file logging.
        log_level: Minimum console level (DEBUG, INFO, WARNING, ERROR)
        app_name: Log file prefix, e.g. "scheduler" or "api"
    """
    global _configured

    if _configured:
        return

    logger.add(sys.stderr, level=log_level, format=CONSOLE_FORMAT)

    if log_dir:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / f"{app_name}_{{time:YYYY-MM-DD}}.log",
            level="INFO",
            format=FILE_FORMAT,
            rotation="00:00",
            retention="30 days",
            compression="gz",
            encoding="utf-8",
        )
        logger.info(f"File logging enabled in {log_dir}")

    _configured = True


def init_logging(app_name: str = "pipeline") -> None:
    """Initialize logging from settings. Call once at process startup."""
    from config import settings, ensure_directories

    ensure_directories()
    setup_logging(log_dir=settings.LOG_DIR, log_level=settings.LOG_LEVEL, app_name=app_name)


__all__ = ["logger", "setup_logging", "init_logging"]
