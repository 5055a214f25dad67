"""Structured logging for the API and the indexer runner.

structlog renders both our own events and records from stdlib loggers
(web3, uvicorn, SQLAlchemy) through one handler, so a process emits a
single JSON (or console) stream tagged with its component.
"""

import logging

import structlog

from stakeidx.config import Settings

# Third-party loggers that log every RPC call or statement at DEBUG/INFO
NOISY_LOGGERS = ("web3.providers", "web3.manager", "web3.RequestManager", "sqlalchemy.engine", "aiosqlite")


def _component_adder(component: str) -> structlog.types.Processor:
    def add_component(_logger: object, _method: str, event_dict: structlog.types.EventDict) -> structlog.types.EventDict:
        event_dict.setdefault("component", component)
        return event_dict

    return add_component


def setup_logging(settings: Settings, component: str = "api") -> None:
    """Configure structlog and route stdlib logging through the same renderer."""
    shared: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        _component_adder(component),
    ]
    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if settings.log_format == "json" else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            *shared,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )
    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    if not settings.debug:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
