"""Protocolos de domínio (interfaces para infra/aplicação)."""

from aurora_chat.domain.protocols.backend_port import BackendPort, FlowStep
from aurora_chat.domain.protocols.session_store import SessionStoreProtocol

__all__ = ["BackendPort", "FlowStep", "SessionStoreProtocol"]
