"""Structured logging setup using structlog.

The package never configures logging on import. Modules log through
``structlog.get_logger(__name__)``; an application that wants this package's
output formatted (JSON in production, colored console in development) calls
``configure_logging()`` once at startup.

Output goes to a handler on the ``torznab_search`` logger only, so handlers
the host application installed on the root logger are left alone.
"""

import logging
import re
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor

from torznab_search.config import Settings, settings

PACKAGE_LOGGER = "torznab_search"

SENSITIVE_KEYS = frozenset(
    {"token", "password", "api_key", "apikey", "secret", "authorization", "cookie"}
)

# Jackett takes its API key as a query parameter, so it leaks into logged URLs
_APIKEY_IN_URL = re.compile(r"(apikey=)[^&\s]+", re.IGNORECASE)


def _censor(key: str, value: Any) -> Any:
    if any(sensitive in key.lower() for sensitive in SENSITIVE_KEYS):
        return "***"
    if isinstance(value, str):
        return _APIKEY_IN_URL.sub(r"\1***", value)
    if isinstance(value, dict):
        return {k: _censor(k, v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [_censor(key, item) for item in value]
    return value


def censor_sensitive_data(
    _logger: logging.Logger, _method_name: str, event_dict: EventDict
) -> EventDict:
    """Mask credential-looking fields and ``apikey=`` values inside URLs."""
    return {key: _censor(key, value) for key, value in event_dict.items()}


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        censor_sensitive_data,
    ]


def configure_logging(config: Settings | None = None) -> logging.Handler:
    """Route structlog through stdlib logging and attach a package handler.

    Safe to call more than once: the handler installed by a previous call is
    replaced, other handlers are kept.

    Args:
        config: Settings to read ``log_level`` and ``environment`` from.
            Defaults to the module-level settings.

    Returns:
        The handler attached to the ``torznab_search`` logger.
    """
    config = config or settings
    level = getattr(logging, config.log_level)

    if config.is_production:
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=[
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(PACKAGE_LOGGER)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    for existing in list(package_logger.handlers):
        if existing.get_name() == PACKAGE_LOGGER:
            package_logger.removeHandler(existing)
    package_logger.addHandler(handler)
    package_logger.setLevel(level)
    package_logger.propagate = False

    structlog.get_logger(__name__).debug("logging_configured", **config.get_safe_dict())
    return handler
