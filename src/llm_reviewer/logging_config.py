"""Structured logging setup."""

import logging
import sys

import structlog

from .config import settings


def setup_logging(debug: bool = False) -> None:
    """Set up structured logging on stderr.

    Stdout is reserved for the MCP stdio protocol and for review output.
    """
    level = "DEBUG" if debug or settings.debug else settings.log_level
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer()
            if debug or settings.debug
            else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(getattr(logging, level)),
        logger_factory=structlog.WriteLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )
