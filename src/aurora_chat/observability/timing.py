"""Latência das operações do fluxo (demo ou live)."""

from __future__ import annotations

import contextlib
import logging
import time
from collections.abc import Iterator

from aurora_chat.observability.logging import get_logger

logger = get_logger(__name__)

SLOW_OPERATION_MS = 5000.0


@contextlib.contextmanager
def timed(operation: str, **fields: object) -> Iterator[None]:
    """Loga `operation_latency` ao sair do bloco, com exceção ou não.

    outcome é "ok" ou "error"; a partir de SLOW_OPERATION_MS o nível sobe para WARNING.

    Uso:
        with timed("run_analysis", mode="live"):
            ...
    """
    start = time.perf_counter()
    outcome = "error"
    try:
        yield
        outcome = "ok"
    finally:
        elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
        level = logging.WARNING if elapsed_ms >= SLOW_OPERATION_MS else logging.INFO
        logger.log(
            level,
            "operation_latency",
            extra={
                "operation": operation,
                "outcome": outcome,
                "elapsed_ms": elapsed_ms,
                **fields,
            },
        )
