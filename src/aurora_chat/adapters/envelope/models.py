"""Modelos tipados do envelope de chat v1 (saída do normalizador).

Todos os campos já chegam aqui defaultados e limitados; o parser é quem
garante os caps. Construir estes modelos a partir de JSON cru é proibido.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, Field

ENVELOPE_VERSION = "1.0"

MAX_CARDS = 3
MAX_FOLLOW_UPS = 3
MAX_FOLLOW_UP_OPTIONS = 3
MAX_QUICK_REPLIES = 8
MAX_CARD_TAGS = 8
MAX_THREAD_OPS = 4
MAX_PROFILE_PATCHES = 4
MAX_ROUTINE_PATCHES = 4
MAX_EXPERIMENT_EVENTS = 8
MAX_RED_FLAGS = 8
MAX_ENTITIES = 16

RiskLevel = Literal["none", "low", "medium", "high"]
UiLanguage = Literal["CN", "EN"]
LanguageResolutionSource = Literal["header", "body", "text_detected", "mixed_override"]


class CardType(StrEnum):
    """Allowlist fechada de tipos de card; desconhecidos são descartados."""

    PRODUCT_VERDICT = "product_verdict"
    COMPATIBILITY = "compatibility"
    ROUTINE = "routine"
    TRIAGE = "triage"
    SKIN_STATUS = "skin_status"
    EFFECT_REVIEW = "effect_review"
    TRAVEL = "travel"
    NUDGE = "nudge"


class ThreadOpKind(StrEnum):
    PUSH = "thread_push"
    POP = "thread_pop"
    UPDATE = "thread_update"


class CardAction(BaseModel):
    type: str
    label: str
    payload: dict[str, Any] | None = None


class Card(BaseModel):
    id: str
    type: CardType
    priority: int = 2
    title: str
    subtitle: str | None = None
    tags: list[str] = Field(default_factory=list)
    sections: list[dict[str, Any]] = Field(default_factory=list)
    actions: list[CardAction] = Field(default_factory=list)


class QuickReply(BaseModel):
    id: str
    label: str
    value: str | None = None
    metadata: dict[str, Any] | None = None


class FollowUpQuestion(BaseModel):
    id: str
    question: str
    options: list[QuickReply] = Field(default_factory=list)
    required: bool = False


class ThreadOp(BaseModel):
    op: ThreadOpKind = ThreadOpKind.UPDATE
    topic_id: str = "unknown"
    summary: str | None = None
    timestamp_ms: int | None = None


class ChatOps(BaseModel):
    thread_ops: list[ThreadOp] = Field(default_factory=list)
    profile_patch: list[dict[str, Any]] = Field(default_factory=list)
    routine_patch: list[dict[str, Any]] = Field(default_factory=list)
    experiment_events: list[dict[str, Any]] = Field(default_factory=list)

    @property
    def memory_writes(self) -> int:
        return len(self.profile_patch) + len(self.routine_patch) + len(self.experiment_events)


class ChatSafety(BaseModel):
    risk_level: RiskLevel = "none"
    red_flags: list[str] = Field(default_factory=list)
    disclaimer: str = ""


class ChatTelemetry(BaseModel):
    intent: str = "unknown"
    intent_confidence: float = 0.0
    entities: list[dict[str, Any]] = Field(default_factory=list)
    ui_language: UiLanguage | None = None
    matching_language: UiLanguage | None = None
    language_mismatch: bool | None = None
    language_resolution_source: LanguageResolutionSource | None = None


class ChatResponse(BaseModel):
    """Resposta de chat normalizada, pronta para a camada de renderização."""

    version: Literal["1.0"] = ENVELOPE_VERSION
    request_id: str
    trace_id: str
    assistant_text: str = ""
    cards: list[Card] = Field(default_factory=list)
    follow_up_questions: list[FollowUpQuestion] = Field(default_factory=list)
    suggested_quick_replies: list[QuickReply] = Field(default_factory=list)
    ops: ChatOps = Field(default_factory=ChatOps)
    safety: ChatSafety = Field(default_factory=ChatSafety)
    telemetry: ChatTelemetry = Field(default_factory=ChatTelemetry)


# === Formato legado (achatado) ===


class ChipKind(StrEnum):
    QUICK_REPLY = "quick_reply"


class SuggestedChip(BaseModel):
    """Chip reproduzível como texto livre do usuário (`data.reply_text`)."""

    chip_id: str
    label: str
    kind: ChipKind = ChipKind.QUICK_REPLY
    data: dict[str, Any] = Field(default_factory=dict)


class LegacyCard(BaseModel):
    card_id: str
    type: str
    title: str
    payload: dict[str, Any] = Field(default_factory=dict)


class AssistantMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: str = ""
    format: Literal["markdown", "text"] = "markdown"


class LegacyEvent(BaseModel):
    event_name: str
    data: dict[str, Any] = Field(default_factory=dict)


class LegacyEnvelope(BaseModel):
    request_id: str
    trace_id: str
    assistant_message: AssistantMessage | None = None
    suggested_chips: list[SuggestedChip] = Field(default_factory=list)
    cards: list[LegacyCard] = Field(default_factory=list)
    session_patch: dict[str, Any] = Field(default_factory=dict)
    events: list[LegacyEvent] = Field(default_factory=list)


class ChatReply(BaseModel):
    """Resposta de `send_message`: texto exibível + envelope normalizado (se houver)."""

    answer: str = ""
    intent: str | None = None
    envelope: ChatResponse | None = None
    legacy_envelope: LegacyEnvelope | None = None
