"""Cards de recomendação só aparecem nos estados de recomendação."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import TypeVar

RECO_STATES = frozenset({"RECO_GATE", "RECO_CONSTRAINTS", "RECO_RESULTS"})
RECOMMENDATIONS_CARD_TYPE = "recommendations"

CardT = TypeVar("CardT")


def _card_type(card: object) -> str:
    if isinstance(card, Mapping):
        raw = card.get("type")
    else:
        raw = getattr(card, "type", None)
    return str(raw or "").lower()


def filter_recommendation_cards(cards: Sequence[CardT], agent_state: str) -> list[CardT]:
    """Remove cards `recommendations` fora de RECO_GATE/CONSTRAINTS/RESULTS."""
    if agent_state in RECO_STATES:
        return list(cards)
    return [card for card in cards if _card_type(card) != RECOMMENDATIONS_CARD_TYPE]
