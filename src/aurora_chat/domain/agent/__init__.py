"""Máquina de estados do agente (chips/ações/texto).

Exporta definição de estados, validador, classificador de texto e filtro de cards.
"""

from aurora_chat.domain.agent.machine import (
    CHIP_ALIASES,
    AgentStateMachine,
    TransitionDecision,
    TransitionRejection,
    TriggerSource,
    canonicalize_chip_id,
)
from aurora_chat.domain.agent.reco_gate import filter_recommendation_cards
from aurora_chat.domain.agent.spec import (
    AgentStateSpec,
    ChipRule,
    get_default_spec,
    load_agent_state_spec,
)
from aurora_chat.domain.agent.text_intent import (
    TextTransition,
    infer_text_explicit_transition,
    looks_like_explicit_diagnosis_start,
)

__all__ = [
    "AgentStateMachine",
    "AgentStateSpec",
    "CHIP_ALIASES",
    "ChipRule",
    "TextTransition",
    "TransitionDecision",
    "TransitionRejection",
    "TriggerSource",
    "canonicalize_chip_id",
    "filter_recommendation_cards",
    "get_default_spec",
    "infer_text_explicit_transition",
    "load_agent_state_spec",
    "looks_like_explicit_diagnosis_start",
]
