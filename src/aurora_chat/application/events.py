"""Registro em memória dos eventos de fluxo (limitado, injetado no orquestrador).

O envio para analytics fica fora deste módulo; aqui só se acumula.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from aurora_chat.observability.logging import get_logger, short_id

logger: logging.Logger = get_logger(__name__)

DEFAULT_MAX_EVENTS = 100


@dataclass(slots=True, frozen=True)
class FlowEvent:
    name: str
    brief_id: str
    trace_id: str
    data: dict[str, Any] = field(default_factory=dict)
    at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


class FlowEventLog:
    """Buffer circular: ao passar do limite, os eventos mais antigos saem."""

    def __init__(self, max_events: int = DEFAULT_MAX_EVENTS) -> None:
        self._events: deque[FlowEvent] = deque(maxlen=max_events)

    def emit(
        self,
        name: str,
        brief_id: str,
        trace_id: str,
        **data: Any,
    ) -> FlowEvent:
        event = FlowEvent(name=name, brief_id=brief_id, trace_id=trace_id, data=data)
        self._events.append(event)
        logger.debug("flow_event", extra={"event": name, "brief_id": short_id(brief_id)})
        return event

    def events(self, brief_id: str | None = None) -> list[FlowEvent]:
        if brief_id is None:
            return list(self._events)
        return [event for event in self._events if event.brief_id == brief_id]

    def names(self, brief_id: str | None = None) -> list[str]:
        return [event.name for event in self.events(brief_id)]

    def clear(self, brief_id: str | None = None) -> None:
        """Sem brief_id esvazia tudo; com brief_id remove só os eventos da sessão."""
        if brief_id is None:
            self._events.clear()
            return
        kept = [event for event in self._events if event.brief_id != brief_id]
        self._events.clear()
        self._events.extend(kept)

    def __len__(self) -> int:
        return len(self._events)
