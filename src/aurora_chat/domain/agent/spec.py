"""Especificação declarativa da máquina de estados do agente.

A tabela de chips é dado, não código: o validador nunca embute transições.
O arquivo JSON empacotado é carregado uma vez e tratado como imutável.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from aurora_chat.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

SPEC_RESOURCE = "agent_state_machine.json"
DEFAULT_AGENT_STATE = "IDLE_CHAT"
ALL_TRIGGER_SOURCES: tuple[str, ...] = ("chip", "action", "text_explicit")


class ChipRule(BaseModel):
    """Linha da tabela: chip → próximo estado, a partir de estados permitidos."""

    model_config = ConfigDict(frozen=True)

    chip_id: str
    allowed_states: tuple[str, ...] = ()
    next_state: str


class AgentStateSpec(BaseModel):
    """Spec completa: estado padrão, estados, fontes de gatilho e chips.

    Quando `states` é omitido, deriva do padrão + estados citados nos chips.
    """

    model_config = ConfigDict(frozen=True)

    version: str = "unversioned"
    default_state: str = DEFAULT_AGENT_STATE
    states: tuple[str, ...] = ()
    trigger_source: tuple[str, ...] = ALL_TRIGGER_SOURCES
    chips: tuple[ChipRule, ...] = Field(default_factory=tuple)

    @model_validator(mode="before")
    @classmethod
    def derive_states(cls, data: Any) -> Any:
        if not isinstance(data, dict) or data.get("states"):
            return data
        derived: list[str] = [data.get("default_state") or DEFAULT_AGENT_STATE]
        for chip in data.get("chips") or []:
            if not isinstance(chip, dict):
                continue
            for state in (*(chip.get("allowed_states") or []), chip.get("next_state")):
                if isinstance(state, str) and state not in derived:
                    derived.append(state)
        return {**data, "states": derived}

    def find_chip(self, chip_id: str) -> ChipRule | None:
        for chip in self.chips:
            if chip.chip_id == chip_id:
                return chip
        return None


def load_agent_state_spec(path: Path | str | None = None) -> AgentStateSpec:
    """Carrega a spec de um arquivo ou do recurso empacotado.

    Raises:
        ValueError: JSON inválido ou fora do contrato (falha na inicialização)
    """
    if path is not None:
        raw_text = Path(path).read_text(encoding="utf-8")
        source = str(path)
    else:
        raw_text = (
            resources.files("aurora_chat.domain.agent")
            .joinpath(SPEC_RESOURCE)
            .read_text(encoding="utf-8")
        )
        source = SPEC_RESOURCE

    try:
        spec = AgentStateSpec.model_validate(json.loads(raw_text))
    except ValueError as exc:
        logger.error("agent_spec_invalid", extra={"source": source, "error": type(exc).__name__})
        raise ValueError(f"Spec de estados do agente inválida: {source}") from exc

    logger.info(
        "agent_spec_loaded",
        extra={"version": spec.version, "states": len(spec.states), "chips": len(spec.chips)},
    )
    return spec


@lru_cache(maxsize=1)
def get_default_spec() -> AgentStateSpec:
    """Spec empacotada (cacheada; imutável)."""
    return load_agent_state_spec()
