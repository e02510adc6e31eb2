"""Logging configuration"""

import logging
import sys
from pathlib import Path
from typing import Optional
from loguru import logger
from marketcache.core.config import settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} | {message}"

# Stdlib loggers routed through loguru
INTERCEPTED_LOGGERS = ("uvicorn", "uvicorn.access", "uvicorn.error", "fastapi")

# Per-request httpx logs would drown the cache's own output
QUIET_LOGGERS = ("httpx", "httpcore")


class InterceptHandler(logging.Handler):
    """Intercept standard logging and redirect to loguru"""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging(level: Optional[str] = None):
    """
    Configure loguru sinks and route stdlib logging into them.

    Production writes JSON lines to stdout; other environments get the
    colorized console format. Rotating files are added with LOG_TO_FILE.
    """
    level = level or settings.LOG_LEVEL

    logger.remove()

    if settings.ENVIRONMENT == "production":
        logger.add(sys.stdout, level=level, serialize=True)
    else:
        logger.add(sys.stdout, format=CONSOLE_FORMAT, level=level, colorize=True)

    if settings.LOG_TO_FILE:
        log_dir = Path(settings.LOG_DIR)
        log_dir.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_dir / "market-cache-error.log",
            format=FILE_FORMAT,
            level="ERROR",
            rotation="100 MB",
            retention="10 days",
            compression="zip",
        )
        logger.add(
            log_dir / "market-cache.log",
            format=FILE_FORMAT,
            level=level,
            rotation="1 day",
            retention="7 days",
            compression="zip",
        )

    for name in INTERCEPTED_LOGGERS:
        logging.getLogger(name).handlers = [InterceptHandler()]
        logging.getLogger(name).propagate = False

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    logger.info(f"Logging initialized - Level: {level}")
