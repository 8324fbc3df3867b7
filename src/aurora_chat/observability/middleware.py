"""Propagação do trace_id da conversa (contexto + middleware HTTP)."""

from __future__ import annotations

import contextlib
import uuid
from collections.abc import Iterator
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

TRACE_HEADER = "x-trace-id"

_trace_id: ContextVar[str] = ContextVar("trace_id", default="")


def get_trace_id() -> str:
    """Retorna o trace_id corrente (ou vazio)."""

    return _trace_id.get()


@contextlib.contextmanager
def bind_trace_id(trace_id: str) -> Iterator[None]:
    """Associa o trace_id da sessão aos logs emitidos dentro do bloco."""
    token = _trace_id.set(trace_id)
    try:
        yield
    finally:
        _trace_id.reset(token)


class TraceIdMiddleware(BaseHTTPMiddleware):
    """Gera ou propaga X-Trace-ID em cada request."""

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        incoming = request.headers.get(TRACE_HEADER)
        trace_id = incoming or f"trace_{uuid.uuid4().hex[:16]}"
        token = _trace_id.set(trace_id)
        try:
            response = await call_next(request)
        finally:
            _trace_id.reset(token)

        response.headers[TRACE_HEADER] = trace_id
        return response
