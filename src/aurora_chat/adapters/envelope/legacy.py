"""Adaptador ChatResponse → envelope legado (chips/cards achatados).

Quick replies e opções de follow-up viram uma única lista de chips; cada chip
carrega `reply_text` para ser reenviado como texto do usuário.
"""

from __future__ import annotations

from typing import Any

from pydantic import ValidationError

from aurora_chat.adapters.envelope.fields import as_list, as_record, as_string
from aurora_chat.adapters.envelope.models import (
    AssistantMessage,
    Card,
    ChatResponse,
    FollowUpQuestion,
    LegacyCard,
    LegacyEnvelope,
    LegacyEvent,
    QuickReply,
    SuggestedChip,
)

MAX_LEGACY_CHIPS = 12
MAX_LEGACY_CARDS = 10


def _quick_reply_to_chip(reply: QuickReply) -> SuggestedChip:
    return SuggestedChip(
        chip_id=f"quick_{reply.id}",
        label=reply.label,
        data={
            **(reply.metadata or {}),
            "reply_text": reply.value or reply.label,
            "trigger_source": "chip",
        },
    )


def _follow_up_to_chips(question: FollowUpQuestion) -> list[SuggestedChip]:
    return [
        SuggestedChip(
            chip_id=f"fup_{question.id}_{option.id}",
            label=option.label,
            data={
                **(option.metadata or {}),
                "follow_up_id": question.id,
                "follow_up_question": question.question,
                "follow_up_required": question.required,
                "reply_text": option.value or option.label,
                "trigger_source": "chip",
            },
        )
        for option in question.options
    ]


def _card_to_legacy(card: Card, response: ChatResponse) -> LegacyCard:
    payload: dict[str, Any] = {
        "title": card.title,
        "priority": card.priority,
        "tags": list(card.tags),
        "sections": list(card.sections),
        "actions": [action.model_dump(exclude_none=True) for action in card.actions],
        "safety": response.safety.model_dump(),
        "telemetry": response.telemetry.model_dump(exclude_none=True),
    }
    if card.subtitle:
        payload["subtitle"] = card.subtitle
    return LegacyCard(card_id=card.id, type=card.type.value, title=card.title, payload=payload)


def _session_patch(response: ChatResponse) -> dict[str, Any]:
    ops = response.ops
    patch: dict[str, Any] = {
        "chat_v1": {
            "safety": response.safety.model_dump(),
            "telemetry": response.telemetry.model_dump(exclude_none=True),
        }
    }
    if ops.profile_patch:
        patch["profile"] = ops.profile_patch[0]
    if ops.routine_patch:
        patch["routine_patch"] = ops.routine_patch[0]
    if ops.thread_ops:
        patch["thread_ops"] = [
            op.model_dump(mode="json", exclude_none=True) for op in ops.thread_ops
        ]
    if ops.experiment_events:
        patch["experiment_events"] = list(ops.experiment_events)
    return patch


def _events(response: ChatResponse) -> list[LegacyEvent]:
    ops = response.ops
    events = [
        LegacyEvent(
            event_name="intent_detected",
            data={
                "intent": response.telemetry.intent,
                "confidence": response.telemetry.intent_confidence,
            },
        )
    ]
    for op in ops.thread_ops:
        data: dict[str, Any] = {"topic_id": op.topic_id}
        if op.summary:
            data["summary"] = op.summary
        if op.timestamp_ms is not None:
            data["timestamp_ms"] = op.timestamp_ms
        events.append(LegacyEvent(event_name=op.op.value, data=data))

    if ops.memory_writes:
        events.append(
            LegacyEvent(
                event_name="memory_written",
                data={
                    "profile": len(ops.profile_patch),
                    "routine": len(ops.routine_patch),
                    "experiments": len(ops.experiment_events),
                },
            )
        )
    return events


def to_legacy_envelope(response: ChatResponse) -> LegacyEnvelope:
    """Achata o envelope v1 para os consumidores anteriores ao protocolo tipado."""
    chips = [_quick_reply_to_chip(reply) for reply in response.suggested_quick_replies]
    for question in response.follow_up_questions:
        chips.extend(_follow_up_to_chips(question))

    return LegacyEnvelope(
        request_id=response.request_id,
        trace_id=response.trace_id,
        assistant_message=AssistantMessage(content=response.assistant_text),
        suggested_chips=chips[:MAX_LEGACY_CHIPS],
        cards=[_card_to_legacy(card, response) for card in response.cards],
        session_patch=_session_patch(response),
        events=_events(response),
    )


def _legacy_card(raw: Any) -> LegacyCard | None:
    record = as_record(raw)
    if record is None:
        return None
    card_id = as_string(record.get("card_id"))
    card_type = as_string(record.get("type"))
    if not card_id or not card_type:
        return None
    return LegacyCard(
        card_id=card_id,
        type=card_type,
        title=as_string(record.get("title")),
        payload=as_record(record.get("payload")) or {},
    )


def _legacy_chip(raw: Any) -> SuggestedChip | None:
    try:
        return SuggestedChip.model_validate(raw)
    except ValidationError:
        return None


def parse_legacy_envelope(raw: Any) -> LegacyEnvelope | None:
    """Envelope legado enviado diretamente pelo backend, ou None.

    Exige request_id e trace_id; cards sem card_id/type e chips inválidos
    são descartados.
    """
    root = as_record(raw)
    if root is None:
        return None
    request_id = as_string(root.get("request_id"))
    trace_id = as_string(root.get("trace_id"))
    if not request_id or not trace_id:
        return None

    message = as_record(root.get("assistant_message"))
    cards = [card for card in map(_legacy_card, as_list(root.get("cards"))) if card]
    chips = [chip for chip in map(_legacy_chip, as_list(root.get("suggested_chips"))) if chip]
    events = [
        LegacyEvent(event_name=name, data=as_record(row.get("data")) or {})
        for row in map(as_record, as_list(root.get("events")))
        if row is not None and (name := as_string(row.get("event_name")))
    ]
    return LegacyEnvelope(
        request_id=request_id,
        trace_id=trace_id,
        assistant_message=(
            AssistantMessage(content=as_string(message.get("content"))) if message else None
        ),
        suggested_chips=chips[:MAX_LEGACY_CHIPS],
        cards=cards[:MAX_LEGACY_CARDS],
        session_patch=as_record(root.get("session_patch")) or {},
        events=events,
    )
