"""Guarda de operação em voo por sessão (um escritor por brief_id)."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from contextvars import ContextVar

from aurora_chat.domain.errors import OperationInProgressError
from aurora_chat.observability.logging import get_logger, short_id

logger: logging.Logger = get_logger(__name__)


class SessionGuard:
    """Recusa uma segunda operação concorrente sobre a mesma sessão.

    Não enfileira nem espera: o chamador recebe OperationInProgressError
    e decide (a API responde 409). Dentro da mesma task o guard é
    reentrante: a rota segura load/handle/save e as operações internas
    do orquestrador passam direto.
    """

    def __init__(self) -> None:
        self._in_flight: dict[str, str] = {}
        self._held: ContextVar[frozenset[str]] = ContextVar(
            f"session_guard_{id(self)}", default=frozenset()
        )

    def is_busy(self, brief_id: str) -> bool:
        return brief_id in self._in_flight

    def running(self, brief_id: str) -> str | None:
        return self._in_flight.get(brief_id)

    @asynccontextmanager
    async def hold(self, brief_id: str, operation: str) -> AsyncIterator[None]:
        held = self._held.get()
        if brief_id in held:
            yield
            return

        running = self._in_flight.get(brief_id)
        if running is not None:
            logger.warning(
                "operation_rejected_in_flight",
                extra={
                    "brief_id": short_id(brief_id),
                    "operation": operation,
                    "running": running,
                },
            )
            raise OperationInProgressError(brief_id, operation)

        self._in_flight[brief_id] = operation
        token = self._held.set(held | {brief_id})
        try:
            yield
        finally:
            self._held.reset(token)
            self._in_flight.pop(brief_id, None)
