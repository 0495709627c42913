"""Logging configuration for the social backend services."""

import logging
import sys

from loguru import logger

# Libraries whose stdlib loggers are routed into loguru at the application level
_LIBRARY_LOGGERS = ("aio_pika", "aiormq", "pamqp", "redis", "uvicorn", "uvicorn.access", "uvicorn.error", "httpx", "asyncio")


class InterceptHandler(logging.Handler):
    """Intercept standard logging messages toward loguru."""

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(log_level: str):
    """Configure loguru logging for the entire process.

    Args:
        log_level: Log level to use (from settings, which handles env vars and CLI args).
    """
    log_level = log_level.upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        colorize=True,
    )

    logger.info(f"Log level set to: {log_level}")

    # Redirect all standard logging to loguru
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in logging.Logger.manager.loggerDict:
        logging_logger = logging.getLogger(name)
        logging_logger.handlers = [InterceptHandler()]
        logging_logger.propagate = False

    # stdlib logging has no TRACE level
    stdlib_level = "DEBUG" if log_level == "TRACE" else log_level
    for library_logger in _LIBRARY_LOGGERS:
        logging.getLogger(library_logger).setLevel(stdlib_level)

    # aiormq logs every frame at DEBUG
    if stdlib_level == "DEBUG":
        logging.getLogger("aiormq").setLevel("INFO")
