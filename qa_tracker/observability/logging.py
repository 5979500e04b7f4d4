"""
Logging setup for the API and CLI.

The HTTP layer and CLI log through structlog with bound fields
(request_id, user_id); the engines use plain ``logging.getLogger``.
Both end up on one stdout handler rendered by structlog, as JSON in
production and as colored console lines elsewhere.
"""

import logging
import sys

import structlog
from structlog.types import Processor

from qa_tracker.config.settings import get_settings

QUIET_LOGGERS = ("httpx", "httpcore", "asyncio", "asyncpg", "uvicorn.access")


def setup_logging() -> None:
    """
    Configure structlog and route stdlib records through it.

    Usage:
        setup_logging()
        logger = structlog.get_logger()
        logger.info("Dispute reviewed", dispute_id="disp_1a2b", decision="Approved")
    """
    settings = get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    renderer: Processor
    if settings.is_production:
        renderer = structlog.processors.JSONRenderer()
        shared_processors.append(structlog.processors.format_exc_info)
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=True)

    structlog.configure(
        processors=shared_processors + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # Engine modules log with %-style stdlib calls; render them the same way
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    ))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.log_level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs) -> None:
    """Attach fields (request_id, user_id) to every log line of this request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
