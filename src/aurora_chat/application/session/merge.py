"""Merge puro de SessionPatch sobre a Session atual.

Regras:
- state: patch.next_state → patch.state → fallback_state → current.state
- identidade (brief_id/trace_id/mode/aurora_uid) sempre vem de `current`
- photos e selected_offers: merge raso chave a chave
- demais campos enviados no patch sobrescrevem

Função total: não levanta e não muta `current`.
"""

from __future__ import annotations

from typing import Any

from aurora_chat.domain.flow_states import FlowState
from aurora_chat.domain.models import IDENTITY_FIELDS, Session, SessionPatch

MAP_MERGE_FIELDS: frozenset[str] = frozenset({"photos", "selected_offers"})
STATE_FIELDS: frozenset[str] = frozenset({"next_state", "state"})
# Campos não-opcionais na Session: patch com null é ignorado.
NON_NULLABLE_FIELDS: frozenset[str] = frozenset(
    {"clarification_count", "photos", "selected_offers", "product_selections"}
)


def resolve_state(
    current: Session,
    patch: SessionPatch,
    fallback_state: FlowState | None = None,
) -> FlowState:
    """Prioridade: next_state do patch, state do patch, fallback, atual."""
    return patch.next_state or patch.state or fallback_state or current.state


def merge_session(
    current: Session,
    patch: SessionPatch,
    fallback_state: FlowState | None = None,
) -> Session:
    """Aplica o patch e retorna uma nova Session."""
    updates: dict[str, Any] = {}

    for name in patch.model_fields_set:
        if name in IDENTITY_FIELDS or name in STATE_FIELDS:
            continue
        value = getattr(patch, name)
        if value is None and name in NON_NULLABLE_FIELDS:
            continue
        if name in MAP_MERGE_FIELDS:
            value = {**getattr(current, name), **value}
        updates[name] = value

    updates["state"] = resolve_state(current, patch, fallback_state)
    return current.model_copy(update=updates)
