"""Criação de sessões (início e restart)."""

from __future__ import annotations

from aurora_chat.domain.enums import SessionMode
from aurora_chat.domain.flow_states import INITIAL_STATE
from aurora_chat.domain.models import Session
from aurora_chat.utils.ids import IdGenerator, new_aurora_uid


def new_session(
    ids: IdGenerator,
    mode: SessionMode = SessionMode.DEMO,
    aurora_uid: str | None = None,
) -> Session:
    """Sessão nova: brief_id/trace_id inéditos, estado inicial."""
    return Session(
        brief_id=ids.new("brief"),
        trace_id=ids.new("trace"),
        mode=mode,
        aurora_uid=aurora_uid or new_aurora_uid(),
        state=INITIAL_STATE,
    )


def restart_from(current: Session, ids: IdGenerator) -> Session:
    """Descarta todo o progresso; mantém apenas mode e aurora_uid."""
    return new_session(ids, mode=current.mode, aurora_uid=current.aurora_uid)
