"""structlog on top of stdlib logging.

Events go to stderr (and optionally a daily rotated file) so stdout stays
free for the progress lines and the run summary. Secrets are masked before
rendering; anything under a key that looks like a password, connection
string or token is replaced.
"""

from __future__ import annotations

import logging
import logging.handlers
import sys
from collections.abc import Mapping, MutableMapping
from pathlib import Path
from typing import Any

import structlog
from opentelemetry import trace
from structlog.contextvars import bind_contextvars, merge_contextvars
from structlog.stdlib import ProcessorFormatter

SENSITIVE_KEYS = (
    "password",
    "connection_string",
    "connectionstring",
    "client_secret",
    "token",
)

REDACTED = "***REDACTED***"

_NOISY_LOGGERS = (
    "azure.core.pipeline.policies.http_logging_policy",
    "azure.identity",
    "httpx",
)


def _is_sensitive(key: str) -> bool:
    lower = key.lower()
    return any(s in lower for s in SENSITIVE_KEYS)


def redact(value: Any) -> Any:
    """Return ``value`` with any secret-looking mapping entries masked."""
    if isinstance(value, Mapping):
        return {k: REDACTED if _is_sensitive(str(k)) else redact(v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return [redact(v) for v in value]
    return value


def _redact_secrets(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> Mapping[str, Any]:
    return redact(event_dict)


def _drop_private_keys(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> Mapping[str, Any]:
    return {k: v for k, v in event_dict.items() if not str(k).startswith("_")}


def _otel_enricher(_: Any, __: str, event_dict: MutableMapping[str, Any]) -> Mapping[str, Any]:
    ctx = trace.get_current_span().get_span_context()
    if ctx.is_valid:
        event_dict["trace_id"] = f"{ctx.trace_id:032x}"
        event_dict["span_id"] = f"{ctx.span_id:016x}"
    return event_dict


def _common_processors() -> list[Any]:
    return [
        merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", key="@timestamp"),
    ]


def _handlers(
    formatter: logging.Formatter,
    log_file: Path | str | None,
    retention: int,
    enable_console: bool,
) -> list[logging.Handler]:
    handlers: list[logging.Handler] = []
    if enable_console:
        handlers.append(logging.StreamHandler(sys.stderr))
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            logging.handlers.TimedRotatingFileHandler(
                str(path), when="D", backupCount=retention, utc=True, encoding="utf-8"
            )
        )
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


class LoggerFactory:
    _instance: LoggerFactory | None = None
    _configured: bool = False

    def __new__(cls) -> LoggerFactory:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def configure(
        self,
        level: str = "WARNING",
        fmt: str = "text",
        log_file: Path | str | None = None,
        retention: int = 7,
        enable_console: bool = True,
        context: dict[str, Any] | None = None,
        force: bool = False,
    ) -> None:
        if self._configured and not force:
            return

        structlog.configure(
            processors=[
                structlog.stdlib.filter_by_level,
                *_common_processors(),
                _drop_private_keys,
                _redact_secrets,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                _otel_enricher,
                ProcessorFormatter.wrap_for_formatter,
            ],
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        renderer = (
            structlog.processors.JSONRenderer()
            if fmt == "json"
            else structlog.dev.ConsoleRenderer(colors=False)
        )
        formatter = ProcessorFormatter(processor=renderer, foreign_pre_chain=_common_processors())

        root = logging.getLogger()
        root.setLevel(getattr(logging, level.upper(), logging.WARNING))
        root.handlers.clear()
        for handler in _handlers(formatter, log_file, retention, enable_console):
            root.addHandler(handler)
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        if context:
            bind_contextvars(**context)
        self._configured = True

    def get_logger(self, name: str) -> structlog.stdlib.BoundLogger:
        if not self._configured:
            self.configure()
        return structlog.get_logger(name)


_factory = LoggerFactory()


def configure_logging(
    level: str = "WARNING",
    fmt: str = "text",
    log_file: Path | str | None = None,
    retention: int = 7,
    enable_console: bool = True,
    context: dict[str, Any] | None = None,
    force: bool = False,
) -> None:
    _factory.configure(
        level=level,
        fmt=fmt,
        log_file=log_file,
        retention=retention,
        enable_console=enable_console,
        context=context,
        force=force,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return _factory.get_logger(name)


def add_context(**kwargs: Any) -> None:
    bind_contextvars(**kwargs)


__all__ = [
    "configure_logging",
    "get_logger",
    "add_context",
    "redact",
    "LoggerFactory",
]
