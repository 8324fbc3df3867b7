"""Logging JSON do serviço de chat.

Cada linha carrega service, trace_id e, dentro de uma operação de fluxo,
brief_id (truncado) e flow_state. Texto do usuário e fotos nunca entram.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Iterator
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from aurora_chat.observability.middleware import get_trace_id

LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(message)s "
    "%(service)s %(trace_id)s %(brief_id)s %(flow_state)s"
)

_session_fields: ContextVar[tuple[str, str]] = ContextVar("session_fields", default=("", ""))


def short_id(value: str | None) -> str:
    """Trunca identificadores para log (nunca logar o id completo)."""
    if not value:
        return ""
    return value[:8] + "..."


@contextlib.contextmanager
def bind_session_fields(brief_id: str, flow_state: str) -> Iterator[None]:
    """brief_id e estado do fluxo nos logs emitidos dentro do bloco."""
    token = _session_fields.set((short_id(brief_id), str(flow_state)))
    try:
        yield
    finally:
        _session_fields.reset(token)


class SessionContextFilter(logging.Filter):
    """Completa o record com service, trace_id, brief_id e flow_state.

    Valores passados explicitamente via `extra` têm precedência sobre o contexto.
    """

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        brief_id, flow_state = _session_fields.get()
        record.trace_id = getattr(record, "trace_id", None) or get_trace_id()
        record.brief_id = getattr(record, "brief_id", None) or brief_id
        record.flow_state = getattr(record, "flow_state", None) or flow_state
        record.service = self._service_name
        return True


def configure_logging(level: str, service_name: str) -> None:
    formatter = JsonFormatter(
        LOG_FORMAT,
        rename_fields={"levelname": "level", "name": "logger"},
    )

    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(SessionContextFilter(service_name))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def log_fallback(
    logger: logging.Logger,
    component: str,
    reason: str | None = None,
    elapsed_ms: float | None = None,
) -> None:
    """Registra que o fluxo seguiu pelo caminho degradado (ex.: links afiliados sem gateway).

    Args:
        logger: Logger do módulo chamador
        component: Etapa afetada (ex: "affiliate_resolution")
        reason: Causa (ex: "shop_gateway_not_configured", "transport_502")
        elapsed_ms: Tempo gasto antes do fallback, quando medido
    """
    extra: dict[str, object] = {"fallback_used": True, "component": component}
    if reason:
        extra["reason"] = reason
    if elapsed_ms is not None:
        extra["elapsed_ms"] = elapsed_ms
    logger.info("fallback_applied", extra=extra)
