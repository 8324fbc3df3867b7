"""Classificador best-effort de texto livre → transição explícita pedida.

Viés deliberado para NÃO entrar em diagnóstico com frase ambígua:
- EN: lista fechada de padrões verbo + sujeito
- CN: exige token de sujeito (pele/rosto) E token de verbo de diagnóstico
O resultado ainda passa pelo AgentStateMachine (fonte text_explicit).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from aurora_chat.domain.enums import Language

MAX_TRIGGER_ID_CHARS = 120

_DIAG_VERB_EN = r"(diagnos(?:e|is)?|analys(?:e|is)|analyz(?:e)?|assessment|scan|check)"

_DIAGNOSIS_PATTERNS_EN: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(start|begin|run)\b.{0,40}\b(skin\s*)?" + _DIAG_VERB_EN + r"\b"),
    re.compile(r"\b" + _DIAG_VERB_EN + r"\b.{0,40}\bmy\s*(skin|face)\b"),
    re.compile(r"\b(skin|face)\b.{0,40}\b" + _DIAG_VERB_EN + r"\b"),
    re.compile(r"\bskin\s*profile\b"),
)

_SKIN_SUBJECT_CN = re.compile(r"(皮肤|肤质|肤况|面部|脸部|脸)")
_DIAGNOSIS_VERB_CN = re.compile(r"(诊断|分析|检测|评估|测一测|测试)")

_ROUTINE_REVIEW_EN = (re.compile(r"review my routine", re.IGNORECASE),)
_ROUTINE_REVIEW_CN = (re.compile(r"评估我现在用的"),)

_RECOS_EN = (
    re.compile(r"\brecommend\b", re.IGNORECASE),
    re.compile(r"product recommendations?", re.IGNORECASE),
    re.compile(r"build me a routine", re.IGNORECASE),
)
_RECOS_CN = (
    re.compile(r"产品推荐"),
    re.compile(r"推荐"),
    re.compile(r"给我方案"),
)


@dataclass(slots=True, frozen=True)
class TextTransition:
    requested_next_state: str
    trigger_id: str


def looks_like_explicit_diagnosis_start(text: str) -> bool:
    """EN primeiro (padrões explícitos); CN depois (sujeito + verbo)."""
    value = (text or "").strip()
    if not value:
        return False

    lower = value.lower()
    if any(pattern.search(lower) for pattern in _DIAGNOSIS_PATTERNS_EN):
        return True

    return bool(_SKIN_SUBJECT_CN.search(value)) and bool(_DIAGNOSIS_VERB_CN.search(value))


def _matches_any(patterns: tuple[re.Pattern[str], ...], raw: str) -> bool:
    lower = raw.lower()
    return any(p.search(raw) or p.search(lower) for p in patterns)


def infer_text_explicit_transition(
    message: str,
    language: Language | str,
) -> TextTransition | None:
    """Mapeia uma frase para o estado pedido, ou None quando ambígua.

    Prioridade: diagnóstico → revisão de rotina → recomendações.
    trigger_id é o texto original truncado (nunca logado).
    """
    raw = (message or "").strip()
    if not raw:
        return None

    is_cn = str(language) == Language.CN
    trigger_id = raw[:MAX_TRIGGER_ID_CHARS]

    if looks_like_explicit_diagnosis_start(raw):
        return TextTransition("DIAG_PROFILE", trigger_id)

    review_patterns = _ROUTINE_REVIEW_CN if is_cn else _ROUTINE_REVIEW_EN
    if _matches_any(review_patterns, raw):
        return TextTransition("ROUTINE_INTAKE", trigger_id)

    reco_patterns = _RECOS_CN if is_cn else _RECOS_EN
    if _matches_any(reco_patterns, raw):
        return TextTransition("RECO_GATE", trigger_id)

    return None
