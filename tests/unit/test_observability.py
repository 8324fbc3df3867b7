"""Testes de logging estruturado, fallback e propagação do trace_id."""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.testclient import TestClient

from aurora_chat.observability.logging import (
    SessionContextFilter,
    bind_session_fields,
    log_fallback,
    short_id,
)
from aurora_chat.observability.middleware import (
    TRACE_HEADER,
    TraceIdMiddleware,
    bind_trace_id,
    get_trace_id,
)


def _record(**extra: object) -> logging.LogRecord:
    record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestShortId:
    """Ids truncados para log."""

    def test_truncates(self) -> None:
        assert short_id("brief_1700000000000_1") == "brief_17..."

    def test_empty(self) -> None:
        assert short_id(None) == ""
        assert short_id("") == ""


class TestLogFallback:
    """log_fallback em nível INFO com campos estruturados."""

    def test_log_fallback_with_reason(self, caplog) -> None:
        logger = logging.getLogger("test_fallback")

        with caplog.at_level(logging.INFO):
            log_fallback(logger, "affiliate_resolution", reason="transport_500")

        record = caplog.records[0]
        assert record.levelno == logging.INFO
        assert record.message == "fallback_applied"
        assert record.component == "affiliate_resolution"  # type: ignore[attr-defined]
        assert record.reason == "transport_500"  # type: ignore[attr-defined]
        assert record.fallback_used is True  # type: ignore[attr-defined]

    def test_log_fallback_elapsed(self, caplog) -> None:
        logger = logging.getLogger("test_fallback")

        with caplog.at_level(logging.INFO):
            log_fallback(logger, "affiliate_resolution", elapsed_ms=12.5)

        record = caplog.records[0]
        assert record.elapsed_ms == 12.5  # type: ignore[attr-defined]
        assert not hasattr(record, "reason")


class TestTraceContext:
    """trace_id no contexto e no filtro de log."""

    def test_bind_trace_id_restores(self) -> None:
        assert get_trace_id() == ""
        with bind_trace_id("trace_abc"):
            assert get_trace_id() == "trace_abc"
        assert get_trace_id() == ""

    def test_filter_uses_context(self) -> None:
        record = _record()
        with bind_trace_id("trace_ctx"):
            SessionContextFilter("aurora_chat").filter(record)

        assert record.trace_id == "trace_ctx"  # type: ignore[attr-defined]
        assert record.service == "aurora_chat"  # type: ignore[attr-defined]

    def test_explicit_trace_id_wins(self) -> None:
        record = _record(trace_id="trace_explicit")
        with bind_trace_id("trace_ctx"):
            SessionContextFilter("aurora_chat").filter(record)
        assert record.trace_id == "trace_explicit"  # type: ignore[attr-defined]


class TestSessionFields:
    """brief_id truncado e estado do fluxo nos records emitidos durante uma operação."""

    def test_filter_injects_session_fields(self) -> None:
        record = _record()
        with bind_session_fields("brief_1700000000000_1", "S7_PRODUCT_RECO"):
            SessionContextFilter("aurora_chat").filter(record)

        assert record.brief_id == "brief_17..."  # type: ignore[attr-defined]
        assert record.flow_state == "S7_PRODUCT_RECO"  # type: ignore[attr-defined]

    def test_outside_operation_fields_are_empty(self) -> None:
        record = _record()
        SessionContextFilter("aurora_chat").filter(record)

        assert record.brief_id == ""  # type: ignore[attr-defined]
        assert record.flow_state == ""  # type: ignore[attr-defined]

    def test_explicit_brief_id_wins(self) -> None:
        record = _record(brief_id="brief_ex...")
        with bind_session_fields("brief_ctx_000000", "S2_DIAGNOSIS"):
            SessionContextFilter("aurora_chat").filter(record)

        assert record.brief_id == "brief_ex..."  # type: ignore[attr-defined]
        assert record.flow_state == "S2_DIAGNOSIS"  # type: ignore[attr-defined]


class TestTraceIdMiddleware:
    """Header X-Trace-ID propagado ou gerado."""

    @staticmethod
    def _client() -> TestClient:
        app = FastAPI()
        app.add_middleware(TraceIdMiddleware)

        @app.get("/trace")
        async def trace() -> dict[str, str]:
            return {"trace_id": get_trace_id()}

        return TestClient(app)

    def test_propagates_incoming_header(self) -> None:
        response = self._client().get("/trace", headers={TRACE_HEADER: "trace_in"})

        assert response.headers[TRACE_HEADER] == "trace_in"
        assert response.json() == {"trace_id": "trace_in"}

    def test_generates_when_missing(self) -> None:
        response = self._client().get("/trace")

        generated = response.headers[TRACE_HEADER]
        assert generated.startswith("trace_")
        assert response.json()["trace_id"] == generated
