# ─────────────────────────────────────────────────────────────────────────────
# Logging Configuration — structlog over stdlib logging
# ─────────────────────────────────────────────────────────────────────────────
# Every component logs event-name keys (geo_redirect, rate_limit_exceeded, ...)
# through structlog; stdlib loggers (uvicorn, slowapi) share the same renderer.
# ─────────────────────────────────────────────────────────────────────────────


import ipaddress
import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

SERVICE_NAME = "letter-edge"

# Event keys that may carry a visitor address.
_IP_KEYS = ("client_ip",)


def redact_client_ip(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """Drop the host part of visitor addresses: /24 for IPv4, /48 for IPv6.

    Non-IP values ("unknown", garbage proxy headers) are left alone.
    """
    for key in _IP_KEYS:
        value = event_dict.get(key)
        if not isinstance(value, str):
            continue
        try:
            address = ipaddress.ip_address(value)
        except ValueError:
            continue
        prefix = 24 if address.version == 4 else 48
        event_dict[key] = str(ipaddress.ip_network(f"{address}/{prefix}", strict=False))
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True,
    redact_ips: bool = False,
) -> None:
    """Route structlog and stdlib logging through one handler on stdout.

    JSON in deployments (one object per line for the log drain), console
    rendering locally. `redact_ips` is on in production.
    """
    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if redact_ips:
        processors.append(redact_client_ip)

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )
    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    # Events were fully processed above; the formatter only renders.
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # RequestContextMiddleware already logs every request
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
