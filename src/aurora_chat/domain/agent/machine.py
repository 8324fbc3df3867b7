"""Validador de transições solicitadas na máquina de estados do agente.

Ordem de checagem (cada falha tem motivo próprio, nunca genérico):
1. Estado pedido == atual → aceita (no-op idempotente)
2. Fonte de gatilho desconhecida → TRIGGER_SOURCE_NOT_ALLOWED
3. chip: canoniza id, busca na tabela; next_state divergente →
   CHIP_NEXT_STATE_MISMATCH; origem não permitida → CHIP_NOT_ALLOWED_FROM_STATE
4. action/text_explicit: aceita se *algum* chip alcança o estado pedido
   a partir do atual → senão NEXT_STATE_NOT_REACHABLE
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum

from aurora_chat.domain.agent.spec import AgentStateSpec, get_default_spec
from aurora_chat.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

CHIP_ALIASES: dict[str, str] = {
    "chip.start.diagnosis": "chip_start_diagnosis",
    "chip.start.evaluate": "chip_eval_single_product",
    "chip.start.reco_products": "chip_get_recos",
    "chip.start.routine": "chip_get_recos",
    "chip.action.reco_routine": "chip_get_recos",
}
"""Ids legados de chip → id canônico da tabela."""


class TriggerSource(StrEnum):
    CHIP = "chip"
    ACTION = "action"
    TEXT_EXPLICIT = "text_explicit"


class TransitionRejection(StrEnum):
    """Motivos tipados de rejeição (nunca exceção)."""

    TRIGGER_SOURCE_NOT_ALLOWED = "TRIGGER_SOURCE_NOT_ALLOWED"
    UNKNOWN_CHIP = "UNKNOWN_CHIP"
    CHIP_NEXT_STATE_MISMATCH = "CHIP_NEXT_STATE_MISMATCH"
    CHIP_NOT_ALLOWED_FROM_STATE = "CHIP_NOT_ALLOWED_FROM_STATE"
    NEXT_STATE_NOT_REACHABLE = "NEXT_STATE_NOT_REACHABLE"


@dataclass(slots=True, frozen=True)
class TransitionDecision:
    """Resultado da validação.

    ok=True → next_state preenchido; ok=False → reason preenchido.
    """

    ok: bool
    canonical_trigger_id: str
    next_state: str | None = None
    reason: TransitionRejection | None = None


def canonicalize_chip_id(chip_id: str | None) -> str:
    """Resolve alias legado; ids desconhecidos passam sem alteração."""
    raw = str(chip_id or "").strip()
    return CHIP_ALIASES.get(raw, raw)


class AgentStateMachine:
    """Autoriza transições a partir da tabela declarativa de chips."""

    def __init__(self, spec: AgentStateSpec | None = None) -> None:
        self._spec = spec or get_default_spec()

    @property
    def spec(self) -> AgentStateSpec:
        return self._spec

    @property
    def default_state(self) -> str:
        return self._spec.default_state

    def normalize_state(self, raw: object) -> str:
        """Estado conhecido ou o padrão da definição (para dados persistidos)."""
        value = str(raw if raw is not None else "").strip()
        return value if value in self._spec.states else self._spec.default_state

    def can_reach(self, from_state: str, requested_next_state: str) -> bool:
        """True se algum chip leva de `from_state` a `requested_next_state`."""
        return any(
            chip.next_state == requested_next_state and from_state in chip.allowed_states
            for chip in self._spec.chips
        )

    def validate(
        self,
        from_state: str,
        trigger_source: str,
        trigger_id: str,
        requested_next_state: str,
    ) -> TransitionDecision:
        """Valida uma transição pedida. Nunca lança exceção."""
        from_state = str(from_state or "").strip()
        requested = str(requested_next_state or "").strip()
        source = str(trigger_source or "").strip()
        if source == TriggerSource.CHIP:
            canonical_id = canonicalize_chip_id(trigger_id)
        else:
            canonical_id = str(trigger_id or "").strip()

        if requested == from_state:
            return TransitionDecision(
                ok=True, canonical_trigger_id=canonical_id, next_state=requested
            )

        reason = self._rejection_for(source, canonical_id, from_state, requested)
        if reason is not None:
            logger.info(
                "agent_transition_rejected",
                extra={
                    "reason": reason.value,
                    "trigger_source": source,
                    # texto livre do usuário nunca vai para o log
                    "trigger_id": canonical_id[:40] if source == TriggerSource.CHIP else None,
                    "from_state": from_state,
                    "requested_next_state": requested,
                },
            )
            return TransitionDecision(ok=False, canonical_trigger_id=canonical_id, reason=reason)

        return TransitionDecision(ok=True, canonical_trigger_id=canonical_id, next_state=requested)

    def _rejection_for(
        self,
        source: str,
        canonical_id: str,
        from_state: str,
        requested: str,
    ) -> TransitionRejection | None:
        if source not in self._spec.trigger_source:
            return TransitionRejection.TRIGGER_SOURCE_NOT_ALLOWED

        if source == TriggerSource.CHIP:
            chip = self._spec.find_chip(canonical_id)
            if chip is None:
                return TransitionRejection.UNKNOWN_CHIP
            if chip.next_state != requested:
                return TransitionRejection.CHIP_NEXT_STATE_MISMATCH
            if from_state not in chip.allowed_states:
                return TransitionRejection.CHIP_NOT_ALLOWED_FROM_STATE
            return None

        if not self.can_reach(from_state, requested):
            return TransitionRejection.NEXT_STATE_NOT_REACHABLE
        return None
