"""
Structured logging for the Storefront Gateway.

Every log line is a JSON object carrying the component that emitted it and,
while a request is being served, the request id and storefront shop domain.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Dict, Optional

import structlog

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
shop_domain_var: ContextVar[Optional[str]] = ContextVar("shop_domain", default=None)

EventDict = Dict[str, Any]


def configure_logging(service_name: str, log_level: str = "info", *, json_output: bool = True) -> None:
    """Install the structlog pipeline and route it through stdlib logging."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            add_component,
            add_request_context,
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)
    # httpx logs every request at INFO; the gateway logs its own upstream calls.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
    structlog.get_logger(service_name).debug("Logging configured", level=log_level)


def add_component(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Split ``storefront.cache`` style logger names into service and component."""
    name = event_dict.get("logger", "")
    if "." in name:
        service, component = name.split(".", 1)
        event_dict.setdefault("service", service)
        event_dict.setdefault("component", component)
    return event_dict


def add_request_context(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    request_id = request_id_var.get()
    if request_id:
        event_dict["request_id"] = request_id

    shop_domain = shop_domain_var.get()
    if shop_domain:
        event_dict["shop_domain"] = shop_domain
    return event_dict


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id, generating one when the caller sent none."""
    request_id = request_id or str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def set_shop_domain(shop_domain: Optional[str]) -> None:
    shop_domain_var.set(shop_domain or None)


def clear_context() -> None:
    request_id_var.set(None)
    shop_domain_var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
