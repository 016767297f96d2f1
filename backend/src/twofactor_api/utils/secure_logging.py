"""Secure logging utilities that keep credentials out of log output."""

import logging
import re
from functools import lru_cache
from typing import Any

from twofactor_api.config import get_settings

_PATH_RE = re.compile(r"['\"]?(/[a-zA-Z0-9_./\-]+|[A-Z]:\\[^\s'\"]+)['\"]?")
_URL_RE = re.compile(r"(postgresql|sqlite|redis|otpauth|http|https)(\+\w+)?://[^\s]+")
_EMAIL_RE = re.compile(r"[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+")
# Base32 TOTP secrets
_SECRET_RE = re.compile(r"\b[A-Z2-7]{16,}\b")
# Backup codes (XXXX-XXXX) and 6-digit TOTP codes
_CODE_RE = re.compile(r"\b([A-Z0-9]{4}-[A-Z0-9]{4}|\d{6})\b")
_TOKEN_RE = re.compile(r"[a-zA-Z0-9_\-]{32,}")

MAX_MESSAGE_LENGTH = 200


@lru_cache(maxsize=1)
def is_debug_mode() -> bool:
    """Check if application is running in debug mode."""
    return get_settings().debug


def sanitize_exception_message(error: Exception) -> str:
    """Sanitize exception message for logging in production.

    Args:
        error: The exception to sanitize

    Returns:
        Message with paths, URLs, emails, secrets and codes masked
    """
    error_msg = str(error)
    error_msg = _URL_RE.sub("[URL]", error_msg)
    error_msg = _PATH_RE.sub("[PATH]", error_msg)
    error_msg = _EMAIL_RE.sub("[EMAIL]", error_msg)
    error_msg = _SECRET_RE.sub("[SECRET]", error_msg)
    error_msg = _CODE_RE.sub("[CODE]", error_msg)
    error_msg = _TOKEN_RE.sub("[TOKEN]", error_msg)

    if len(error_msg) > MAX_MESSAGE_LENGTH:
        error_msg = error_msg[: MAX_MESSAGE_LENGTH - 3] + "..."

    return error_msg


def _log(
    logger: logging.Logger,
    level: int,
    message: str,
    error: Exception | None,
    exc_info: bool,
    extra: dict[str, Any],
) -> None:
    if is_debug_mode():
        if error:
            logger.log(level, f"{message}: {error}", exc_info=exc_info, extra=extra)
        else:
            logger.log(level, message, extra=extra)
    elif error:
        logger.log(level, f"{message}: {sanitize_exception_message(error)}")
    else:
        logger.log(level, message)


def log_error(
    logger: logging.Logger,
    message: str,
    error: Exception | None = None,
    **kwargs: Any,
) -> None:
    """Log an error with appropriate detail level based on environment.

    In debug mode, logs full exception details and traceback.
    Otherwise logs a sanitized message and drops the extra context.

    Args:
        logger: The logger instance to use
        message: The log message (should be generic, no sensitive data)
        error: Optional exception to include
        **kwargs: Additional context, only logged in debug mode
    """
    _log(logger, logging.ERROR, message, error, True, kwargs)


def log_warning(
    logger: logging.Logger,
    message: str,
    error: Exception | None = None,
    **kwargs: Any,
) -> None:
    """Log a warning with appropriate detail level based on environment.

    Args:
        logger: The logger instance to use
        message: The log message (should be generic, no sensitive data)
        error: Optional exception to include
        **kwargs: Additional context, only logged in debug mode
    """
    _log(logger, logging.WARNING, message, error, False, kwargs)
