"""Normalizador do envelope de chat v1 (fronteira de confiança).

Responsabilidades:
- Rejeitar raiz inválida, versão diferente de "1.0" ou ids ausentes
- Normalizar cada item com um normalizador por tipo (item ruim → None)
- Aplicar caps APÓS filtrar
- Derivar language_mismatch quando não informado

Nunca levanta exceção: resposta inválida vira None e item inválido é descartado.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from aurora_chat.adapters.envelope.fields import (
    as_finite_number,
    as_list,
    as_record,
    as_records,
    as_string,
    as_string_list,
    clamp,
)
from aurora_chat.adapters.envelope.models import (
    ENVELOPE_VERSION,
    MAX_CARD_TAGS,
    MAX_CARDS,
    MAX_ENTITIES,
    MAX_EXPERIMENT_EVENTS,
    MAX_FOLLOW_UP_OPTIONS,
    MAX_FOLLOW_UPS,
    MAX_PROFILE_PATCHES,
    MAX_QUICK_REPLIES,
    MAX_RED_FLAGS,
    MAX_ROUTINE_PATCHES,
    MAX_THREAD_OPS,
    Card,
    CardAction,
    CardType,
    ChatOps,
    ChatResponse,
    ChatSafety,
    ChatTelemetry,
    FollowUpQuestion,
    QuickReply,
    ThreadOp,
    ThreadOpKind,
)
from aurora_chat.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

MAX_ID_CHARS = 120
MAX_LABEL_CHARS = 120
MAX_VALUE_CHARS = 300
MAX_QUESTION_CHARS = 500
MAX_TITLE_CHARS = 200
MAX_SUBTITLE_CHARS = 200
MAX_SUMMARY_CHARS = 220

SUPPORTED_CARD_TYPES: frozenset[str] = frozenset(card_type.value for card_type in CardType)
_THREAD_OPS: frozenset[str] = frozenset(op.value for op in ThreadOpKind)
_RISK_LEVELS: frozenset[str] = frozenset({"none", "low", "medium", "high"})
_LANGUAGES: frozenset[str] = frozenset({"CN", "EN"})
_RESOLUTION_SOURCES: frozenset[str] = frozenset(
    {"header", "body", "text_detected", "mixed_override"}
)


def _normalize_quick_reply(
    raw: Any, index: int, fallback_prefix: str = "quick"
) -> QuickReply | None:
    record = as_record(raw)
    if record is None:
        return None

    label = as_string(record.get("label"))[:MAX_LABEL_CHARS]
    if not label:
        return None

    reply_id = as_string(record.get("id"))[:MAX_ID_CHARS] or f"{fallback_prefix}_{index + 1}"
    value = as_string(record.get("value"))[:MAX_VALUE_CHARS] or None
    return QuickReply(
        id=reply_id,
        label=label,
        value=value,
        metadata=as_record(record.get("metadata")),
    )


def _normalize_follow_up(raw: Any, index: int) -> FollowUpQuestion | None:
    record = as_record(raw)
    if record is None:
        return None

    question = as_string(record.get("question"))[:MAX_QUESTION_CHARS]
    if not question:
        return None

    question_id = as_string(record.get("id"))[:MAX_ID_CHARS] or f"fup_{index + 1}"
    options: list[QuickReply] = []
    for option_index, option in enumerate(as_list(record.get("options"))):
        normalized = _normalize_quick_reply(option, option_index, f"{question_id}_opt")
        if normalized is not None:
            options.append(normalized)

    return FollowUpQuestion(
        id=question_id,
        question=question,
        options=options[:MAX_FOLLOW_UP_OPTIONS],
        required=record.get("required") is True,
    )


def _normalize_priority(raw: Any) -> int:
    number = as_finite_number(raw)
    if number is None:
        return 2
    return int(clamp(math.trunc(number), 1, 3))


def _normalize_action(raw: Any) -> CardAction | None:
    record = as_record(raw)
    if record is None:
        return None

    action_type = as_string(record.get("type"))[:MAX_LABEL_CHARS]
    label = as_string(record.get("label"))[:MAX_LABEL_CHARS]
    if not action_type or not label:
        return None
    return CardAction(type=action_type, label=label, payload=as_record(record.get("payload")))


def _normalize_card(raw: Any, index: int) -> Card | None:
    record = as_record(raw)
    if record is None:
        return None

    card_type = as_string(record.get("type")).lower()
    if card_type not in SUPPORTED_CARD_TYPES:
        logger.debug(
            "envelope_card_type_dropped",
            extra={"card_type": card_type[:40] or None, "index": index},
        )
        return None

    title = as_string(record.get("title"))[:MAX_TITLE_CHARS]
    if not title:
        return None

    actions = [a for a in (_normalize_action(row) for row in as_list(record.get("actions"))) if a]
    return Card(
        id=as_string(record.get("id"))[:MAX_ID_CHARS] or f"card_{index + 1}",
        type=CardType(card_type),
        priority=_normalize_priority(record.get("priority")),
        title=title,
        subtitle=as_string(record.get("subtitle"))[:MAX_SUBTITLE_CHARS] or None,
        tags=as_string_list(record.get("tags"), MAX_CARD_TAGS),
        sections=[row for row in as_list(record.get("sections")) if isinstance(row, dict)],
        actions=actions,
    )


def _normalize_thread_op(raw: Any) -> ThreadOp | None:
    record = as_record(raw)
    if record is None:
        return None

    op = as_string(record.get("op"))
    timestamp = as_finite_number(record.get("timestamp_ms"))
    return ThreadOp(
        op=ThreadOpKind(op) if op in _THREAD_OPS else ThreadOpKind.UPDATE,
        topic_id=as_string(record.get("topic_id"))[:MAX_ID_CHARS] or "unknown",
        summary=as_string(record.get("summary"))[:MAX_SUMMARY_CHARS] or None,
        timestamp_ms=max(0, int(timestamp)) if timestamp is not None else None,
    )


def _normalize_ops(raw: Any) -> ChatOps:
    record = as_record(raw) or {}
    raw_ops = as_list(record.get("thread_ops"))
    thread_ops = [op for op in (_normalize_thread_op(row) for row in raw_ops) if op]
    return ChatOps(
        thread_ops=thread_ops[:MAX_THREAD_OPS],
        profile_patch=as_records(record.get("profile_patch"), MAX_PROFILE_PATCHES),
        routine_patch=as_records(record.get("routine_patch"), MAX_ROUTINE_PATCHES),
        experiment_events=as_records(record.get("experiment_events"), MAX_EXPERIMENT_EVENTS),
    )


def _normalize_safety(raw: Any) -> ChatSafety:
    record = as_record(raw) or {}
    risk_level = as_string(record.get("risk_level")).lower()
    return ChatSafety(
        risk_level=risk_level if risk_level in _RISK_LEVELS else "none",
        red_flags=as_string_list(record.get("red_flags"), MAX_RED_FLAGS),
        disclaimer=as_string(record.get("disclaimer")),
    )


def _normalize_language(raw: Any) -> str | None:
    value = as_string(raw).upper()
    return value if value in _LANGUAGES else None


def _normalize_telemetry(raw: Any) -> ChatTelemetry:
    record = as_record(raw) or {}

    confidence = as_finite_number(record.get("intent_confidence"))
    ui_language = _normalize_language(record.get("ui_language"))
    matching_language = _normalize_language(record.get("matching_language"))

    mismatch = record.get("language_mismatch")
    if not isinstance(mismatch, bool):
        if ui_language and matching_language:
            mismatch = ui_language != matching_language
        else:
            mismatch = None

    source = as_string(record.get("language_resolution_source")).lower()
    return ChatTelemetry(
        intent=as_string(record.get("intent")) or "unknown",
        intent_confidence=clamp(confidence, 0.0, 1.0) if confidence is not None else 0.0,
        entities=as_records(record.get("entities"), MAX_ENTITIES),
        ui_language=ui_language,
        matching_language=matching_language,
        language_mismatch=mismatch,
        language_resolution_source=source if source in _RESOLUTION_SOURCES else None,
    )


def _collect(raw: Any, normalizer, limit: int, kind: str) -> list[Any]:
    rows = as_list(raw)
    items = [item for item in (normalizer(row, index) for index, row in enumerate(rows)) if item]
    dropped = len(rows) - len(items)
    if dropped:
        logger.debug("envelope_items_dropped", extra={"kind": kind, "dropped": dropped})
    if len(items) > limit:
        logger.debug(
            "envelope_items_capped",
            extra={"kind": kind, "received": len(items), "limit": limit},
        )
    return items[:limit]


def parse_chat_response(raw: Any) -> ChatResponse | None:
    """Converte JSON arbitrário do backend em ChatResponse, ou None se rejeitado.

    Rejeita (None) quando:
    - raiz não é objeto
    - version != "1.0"
    - request_id ou trace_id ausentes/não-string
    """
    root = as_record(raw)
    if root is None:
        logger.info("envelope_rejected", extra={"reason": "not_an_object"})
        return None

    if root.get("version") != ENVELOPE_VERSION:
        logger.info(
            "envelope_rejected",
            extra={"reason": "version_mismatch", "version": str(root.get("version"))[:16]},
        )
        return None

    request_id = as_string(root.get("request_id"))
    trace_id = as_string(root.get("trace_id"))
    if not request_id or not trace_id:
        logger.info("envelope_rejected", extra={"reason": "missing_ids"})
        return None

    return ChatResponse(
        request_id=request_id,
        trace_id=trace_id,
        assistant_text=as_string(root.get("assistant_text")),
        cards=_collect(root.get("cards"), _normalize_card, MAX_CARDS, "cards"),
        follow_up_questions=_collect(
            root.get("follow_up_questions"), _normalize_follow_up, MAX_FOLLOW_UPS, "follow_ups"
        ),
        suggested_quick_replies=_collect(
            root.get("suggested_quick_replies"),
            _normalize_quick_reply,
            MAX_QUICK_REPLIES,
            "quick_replies",
        ),
        ops=_normalize_ops(root.get("ops")),
        safety=_normalize_safety(root.get("safety")),
        telemetry=_normalize_telemetry(root.get("telemetry")),
    )
