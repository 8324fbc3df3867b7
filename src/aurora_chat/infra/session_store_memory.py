"""Armazenamento de sessões em memória com TTL (processo único)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from aurora_chat.domain.models import Session
from aurora_chat.domain.protocols.session_store import SessionStoreProtocol
from aurora_chat.observability.logging import get_logger, short_id

logger: logging.Logger = get_logger(__name__)

DEFAULT_TTL_SECONDS = 7200


def _now() -> float:
    return datetime.now(tz=UTC).timestamp()


class InMemorySessionStore(SessionStoreProtocol):
    """Sessões indexadas por brief_id; entradas expiradas somem na leitura."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = _now,
    ) -> None:
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, tuple[Session, float]] = {}

    def save(self, session: Session, ttl_seconds: int | None = None) -> None:
        ttl = ttl_seconds if ttl_seconds is not None else self._ttl_seconds
        self._sessions[session.brief_id] = (session, self._clock() + ttl)
        logger.debug(
            "session_saved",
            extra={"brief_id": short_id(session.brief_id), "ttl_seconds": ttl},
        )

    def load(self, brief_id: str) -> Session | None:
        entry = self._sessions.get(brief_id)
        if entry is None:
            logger.debug("session_not_found", extra={"brief_id": short_id(brief_id)})
            return None

        session, expire_at = entry
        if self._clock() > expire_at:
            del self._sessions[brief_id]
            logger.debug("session_expired", extra={"brief_id": short_id(brief_id)})
            return None

        return session

    def delete(self, brief_id: str) -> bool:
        if brief_id in self._sessions:
            del self._sessions[brief_id]
            logger.debug("session_deleted", extra={"brief_id": short_id(brief_id)})
            return True
        return False

    def exists(self, brief_id: str) -> bool:
        return self.load(brief_id) is not None
