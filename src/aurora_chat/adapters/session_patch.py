"""Extração do patch de sessão a partir do payload cru do backend.

Responsabilidades:
- Escolher a raiz do patch (`payload.session` quando é objeto)
- Promover `next_state` de topo quando o patch não traz um
- Reconciliar aliases de casing antes do merge
- Validar campo a campo: campo inválido é descartado e logado

Nunca levanta exceção; payload inútil vira SessionPatch vazio.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from aurora_chat.domain.models import SessionPatch
from aurora_chat.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

# alias do wire → chave canônica aceita pelo SessionPatch
KEY_ALIASES: dict[str, str] = {
    "budgetTier": "budget_tier",
    "product_pairs": "productPairs",
    "samplePhotoSetId": "sample_photo_set_id",
    "nextState": "next_state",
    "clarificationCount": "clarification_count",
    "selectedOffers": "selected_offers",
    "productSelections": "product_selections",
    "checkoutResult": "checkout_result",
    "product_analysis": "productAnalysis",
}


def _reconcile_aliases(data: dict[str, Any]) -> dict[str, Any]:
    """Renomeia aliases; a chave canônica vence quando ambas existem."""
    out = dict(data)
    for alias, canonical in KEY_ALIASES.items():
        if alias not in out:
            continue
        value = out.pop(alias)
        out.setdefault(canonical, value)
    return out


def _input_keys_for(error_key: str) -> set[str]:
    """Todas as chaves de entrada que alimentam o mesmo campo do modelo."""
    keys = {error_key}
    for name, field in SessionPatch.model_fields.items():
        if error_key in (name, field.alias):
            keys.add(name)
            if field.alias:
                keys.add(field.alias)
    return keys


def _validate_dropping_invalid(data: dict[str, Any]) -> SessionPatch:
    remaining = dict(data)
    # Cada rodada remove pelo menos uma chave; o loop termina.
    for _ in range(len(data) + 1):
        try:
            return SessionPatch.model_validate(remaining)
        except ValidationError as exc:
            bad_keys: set[str] = set()
            for error in exc.errors():
                loc = error.get("loc") or ()
                if loc:
                    bad_keys |= _input_keys_for(str(loc[0]))
            dropped = sorted(key for key in bad_keys if key in remaining)
            if not dropped:
                break
            logger.warning(
                "session_patch_fields_dropped",
                extra={"fields": dropped, "error_count": exc.error_count()},
            )
            for key in dropped:
                remaining.pop(key, None)

    logger.warning("session_patch_discarded", extra={"keys": sorted(data)[:20]})
    return SessionPatch()


def extract_session_patch(payload: Any) -> SessionPatch:
    """Converte a resposta do backend em SessionPatch (sempre válido)."""
    if not isinstance(payload, dict):
        return SessionPatch()

    session = payload.get("session")
    root: dict[str, Any] = session if isinstance(session, dict) else payload
    data = _reconcile_aliases(root)

    top_level_next = payload.get("next_state")
    if data.get("next_state") is None and top_level_next is not None:
        data["next_state"] = top_level_next

    return _validate_dropping_invalid(data)
