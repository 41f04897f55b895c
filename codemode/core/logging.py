"""
Logging setup for codemode.

All diagnostics go to stderr: when codemode runs as an MCP stdio server,
stdout carries protocol messages only.
"""

import logging
import os
import re
import sys

from rich.console import Console
from rich.logging import RichHandler

_ROOT_LOGGER = "codemode"

_MASK_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"), "[EMAIL_MASKED]"),
    (
        re.compile(
            r"\b(api[_-]?key|apikey|token|secret|password|auth)['\":\s]*[=:]\s*['\"]?[A-Za-z0-9_\-.]{20,}['\"]?",
            re.IGNORECASE,
        ),
        r"\1=[MASKED]",
    ),
    (re.compile(r"Bearer\s+[A-Za-z0-9_\-.]+", re.IGNORECASE), "Bearer [TOKEN_MASKED]"),
    (re.compile(r"\beyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*"), "[JWT_MASKED]"),
    (re.compile(r"\b\d{4}[\s-]?\d{4}[\s-]?\d{4}[\s-]?\d{4}\b"), "[CARD_MASKED]"),
    (re.compile(r"\b\d{6}-?\d{7}\b"), "[SSN_MASKED]"),
]


def get_logger(name: str) -> logging.Logger:
    """Return a module logger under the ``codemode`` namespace."""
    if name == _ROOT_LOGGER or name.startswith(_ROOT_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_ROOT_LOGGER}.{name}")


def setup_logging(level: str | int = "INFO", rich_output: bool = True) -> logging.Logger:
    """
    Configure the ``codemode`` logger.

    Args:
        level: Logging level name or number
        rich_output: Use a RichHandler on stderr instead of a plain StreamHandler

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(_ROOT_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if rich_output:
        handler: logging.Handler = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s")
        )
    logger.addHandler(handler)
    logger.propagate = False
    return logger


def masking_enabled() -> bool:
    """Whether sensitive data masking is requested through the environment."""
    return (
        os.getenv("MASK_SENSITIVE_LOGS", "").lower() == "true"
        or os.getenv("NODE_ENV", "").lower() == "production"
    )


def mask_sensitive_data(text: str) -> str:
    """Replace emails, keys, tokens and card-like numbers with placeholders."""
    for pattern, replacement in _MASK_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def safe_preview(text: str, max_length: int = 200, mask: bool | None = None) -> str:
    """Truncated, optionally masked preview of *text* for log lines."""
    if len(text) > max_length:
        text = text[:max_length] + "...[truncated]"
    if mask is None:
        mask = masking_enabled()
    return mask_sensitive_data(text) if mask else text
