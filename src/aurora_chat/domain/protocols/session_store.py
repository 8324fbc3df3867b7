"""Protocolo de domínio para persistência de sessão."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aurora_chat.domain.models import Session


class SessionStoreProtocol(ABC):
    """Contrato mínimo síncrono para armazenamento de Session (chave: brief_id)."""

    @abstractmethod
    def save(self, session: Session, ttl_seconds: int | None = None) -> None: ...

    @abstractmethod
    def load(self, brief_id: str) -> Session | None: ...

    @abstractmethod
    def delete(self, brief_id: str) -> bool: ...

    @abstractmethod
    def exists(self, brief_id: str) -> bool: ...
