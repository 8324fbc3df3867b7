"""Envelope de chat v1: normalizador (fronteira de confiança) e adaptador legado."""

from aurora_chat.adapters.envelope.legacy import (
    MAX_LEGACY_CHIPS,
    parse_legacy_envelope,
    to_legacy_envelope,
)
from aurora_chat.adapters.envelope.models import (
    Card,
    CardAction,
    CardType,
    ChatOps,
    ChatReply,
    ChatResponse,
    ChatSafety,
    ChatTelemetry,
    FollowUpQuestion,
    LegacyEnvelope,
    QuickReply,
    SuggestedChip,
    ThreadOp,
)
from aurora_chat.adapters.envelope.parser import SUPPORTED_CARD_TYPES, parse_chat_response

__all__ = [
    "Card",
    "CardAction",
    "CardType",
    "ChatOps",
    "ChatReply",
    "ChatResponse",
    "ChatSafety",
    "ChatTelemetry",
    "FollowUpQuestion",
    "LegacyEnvelope",
    "MAX_LEGACY_CHIPS",
    "QuickReply",
    "SUPPORTED_CARD_TYPES",
    "SuggestedChip",
    "ThreadOp",
    "parse_chat_response",
    "parse_legacy_envelope",
    "to_legacy_envelope",
]
