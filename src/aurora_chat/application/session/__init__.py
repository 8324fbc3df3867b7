"""Ciclo de vida da sessão: criação, merge de patch e guarda de concorrência."""

from aurora_chat.application.session.factory import new_session, restart_from
from aurora_chat.application.session.guard import SessionGuard
from aurora_chat.application.session.merge import merge_session, resolve_state

__all__ = [
    "SessionGuard",
    "merge_session",
    "new_session",
    "resolve_state",
    "restart_from",
]
