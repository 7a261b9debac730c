"""Structured logging for the compliance engine.

Log lines are themselves an access channel to patient data, so identifying
fields are masked before rendering. Services log ids and outcomes, never
names or documents, but a stray ``cpf=`` keyword must not leak either.
"""

import logging
import sys
from typing import Any, MutableMapping, Optional

import structlog
from structlog.stdlib import BoundLogger, LoggerFactory

from patient_compliance.config import Settings, get_settings

MASKED_FIELDS = frozenset(
    {"cpf", "rg", "full_name", "email", "primary_phone", "secondary_phone", "address"}
)
MASK = "***"


def mask_identifiers(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Replace identifying values in a log event, keeping the keys."""
    for key in MASKED_FIELDS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = MASK
    return event_dict


def add_app_context(settings: Settings) -> Any:
    """Processor stamping every event with the app name and environment."""

    def processor(
        logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("app", settings.app_name)
        event_dict.setdefault("environment", settings.environment)
        return event_dict

    return processor


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Configure structured logging for the application."""
    settings = settings or get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper()),
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_app_context(settings),
            mask_identifiers,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            render_processor(settings),
        ],
        context_class=dict,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def render_processor(settings: Settings) -> Any:
    """JSON for log shipping, console output otherwise."""
    if settings.log_format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer()


def get_logger(name: str) -> BoundLogger:
    """Get a configured logger instance."""
    bound_logger: BoundLogger = structlog.get_logger(name)
    return bound_logger
