import logging
import re
import sys
from typing import Any

from loguru import logger

from textquiz.config import get_settings
from textquiz.core.phone import mask_phone_number

# Access-log paths that only show up at DEBUG
QUIET_PATHS = ("/health", "/api/webhook/sms")

_E164 = re.compile(r"\+\d{8,15}")

# Extras that may carry a raw phone number
_PHONE_FIELDS = ("to", "from_number", "phone_number")


class InterceptHandler(logging.Handler):
    """Route stdlib logging (uvicorn, sqlalchemy, httpx, apscheduler) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back  # type: ignore[assignment]
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def redact_phone_numbers(record: dict[str, Any]) -> None:
    """Mask subscriber phone numbers in messages and known extra fields."""
    record["message"] = _E164.sub(lambda m: mask_phone_number(m.group(0)), record["message"])
    extra = record["extra"]
    for field in _PHONE_FIELDS:
        value = extra.get(field)
        if isinstance(value, str) and _E164.fullmatch(value):
            extra[field] = mask_phone_number(value)


def _quiet_paths_filter(record: dict[str, Any]) -> bool:
    """Drop routine access lines for polled or high-volume endpoints unless at DEBUG."""
    message = record.get("message", "")
    if any(path in message for path in QUIET_PATHS):
        return bool(record["level"].no <= 10)
    return True


def setup_logging() -> None:
    """Configure loguru for the application."""
    settings = get_settings()

    logger.remove()
    logger.configure(patcher=redact_phone_numbers)

    if settings.debug:
        logger.add(
            sys.stderr,
            level="DEBUG",
            format=(
                "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "<level>{message}</level> | {extra}"
            ),
            backtrace=True,
            diagnose=True,
        )
    elif settings.log_json:
        logger.add(
            sys.stderr,
            level="INFO",
            serialize=True,
            filter=_quiet_paths_filter,
            backtrace=False,
            diagnose=False,
        )
    else:
        logger.add(
            sys.stderr,
            level="INFO",
            format=(
                "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | "
                "{name}:{function}:{line} | {message} | {extra}"
            ),
            filter=_quiet_paths_filter,
            backtrace=True,
            diagnose=False,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in [
        "uvicorn",
        "uvicorn.error",
        "uvicorn.access",
        "sqlalchemy.engine",
        "httpx",
        "apscheduler",
    ]:
        logging.getLogger(name).handlers = [InterceptHandler()]


def get_logger(name: str) -> Any:
    """Get a logger bound to a module name."""
    return logger.bind(name=name)
