"""Snapshot da conversa para retomada (formato versionado).

O core não escolhe onde o snapshot é guardado: apenas o monta e valida.
Mensagens são registros opacos da UI; só `type` é inspecionado.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from aurora_chat.domain.enums import Language
from aurora_chat.domain.models import Session
from aurora_chat.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

SNAPSHOT_VERSION = 1
DEFAULT_MAX_MESSAGES = 120
TRANSIENT_MESSAGE_TYPES: frozenset[str] = frozenset({"loading_card"})


class ChatSnapshot(BaseModel):
    version: int = SNAPSHOT_VERSION
    saved_at: int = Field(gt=0)  # epoch ms
    aurora_uid: str = Field(min_length=1)
    language: Language
    session: Session
    messages: list[dict[str, Any]]


def build_snapshot(
    session: Session,
    messages: Sequence[Mapping[str, Any]],
    language: Language,
    aurora_uid: str | None = None,
    max_messages: int = DEFAULT_MAX_MESSAGES,
    clock: Callable[[], float] = time.time,
) -> ChatSnapshot:
    """Monta o snapshot sem mensagens transitórias, mantendo as últimas N."""
    kept = [
        dict(message)
        for message in messages
        if isinstance(message, Mapping) and message.get("type") not in TRANSIENT_MESSAGE_TYPES
    ]
    return ChatSnapshot(
        saved_at=int(clock() * 1000),
        aurora_uid=aurora_uid or session.aurora_uid or session.brief_id,
        language=language,
        session=session,
        messages=kept[-max_messages:],
    )


def dump_snapshot(snapshot: ChatSnapshot) -> str:
    return snapshot.model_dump_json(by_alias=True)


def load_snapshot(raw: str | bytes | Mapping[str, Any] | None) -> ChatSnapshot | None:
    """Valida um snapshot salvo; qualquer divergência retorna None."""
    if raw is None:
        return None

    data: Any = raw
    if isinstance(raw, str | bytes):
        try:
            data = json.loads(raw)
        except ValueError:
            logger.info("snapshot_rejected", extra={"reason": "invalid_json"})
            return None

    if not isinstance(data, Mapping):
        logger.info("snapshot_rejected", extra={"reason": "not_an_object"})
        return None

    if data.get("version") != SNAPSHOT_VERSION:
        logger.info("snapshot_rejected", extra={"reason": "version_mismatch"})
        return None

    try:
        return ChatSnapshot.model_validate(data)
    except ValidationError as exc:
        logger.info(
            "snapshot_rejected",
            extra={"reason": "invalid_fields", "error_count": exc.error_count()},
        )
        return None
