from __future__ import annotations

import logging
import os
from typing import Any, Mapping

import structlog

SERVICE_NAME = "webproject"

# SDK and HTTP client loggers log every credential lookup and retry at INFO
NOISY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")

# subscriber addresses and raw request data never reach the log sink
REDACTED_KEYS = frozenset({"email", "endpoint", "client", "client_ip", "headers", "request_headers"})


def _level_from_env() -> int:
    name = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def init_logging() -> None:
    """Set up JSON logs for the API, the CLI and the notification forwarder.

    Every line carries ts, level and service. Request lines add trace_id, action,
    duration_ms, status and result; consistency runs add source and the mismatch
    counts.
    """
    level = _level_from_env()
    logging.basicConfig(level=level, format="%(message)s")
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    # request lines come from ObservabilityMiddleware instead
    logging.getLogger("uvicorn.access").disabled = True

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", key="ts"),
            add_service,
            redact_keys,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def add_service(logger: Any, method_name: str, event_dict: Mapping[str, Any]) -> dict[str, Any]:
    out = dict(event_dict)
    out.setdefault("service", SERVICE_NAME)
    out["level"] = str(out.get("level") or method_name).lower()
    return out


def redact_keys(logger: Any, method_name: str, event_dict: Mapping[str, Any]) -> Mapping[str, Any]:
    if REDACTED_KEYS.isdisjoint(event_dict):
        return event_dict
    return {k: v for k, v in event_dict.items() if k not in REDACTED_KEYS}


def get_logger(**initial: Any) -> structlog.stdlib.BoundLogger:  # type: ignore[name-defined]
    return structlog.get_logger(**initial)
