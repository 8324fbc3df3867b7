"""Rotas HTTP: sessões, comandos da UI, mensagens e validação de transições."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from aurora_chat.adapters.envelope import to_legacy_envelope
from aurora_chat.api.dependencies import (
    get_agent_machine,
    get_orchestrator,
    get_session_store,
    get_settings,
)
from aurora_chat.application.orchestrator import FlowOrchestrator
from aurora_chat.config.settings import Settings
from aurora_chat.domain.agent import (
    AgentStateMachine,
    TriggerSource,
    filter_recommendation_cards,
    infer_text_explicit_transition,
)
from aurora_chat.domain.commands import Restart, parse_action_id
from aurora_chat.domain.enums import Language, SessionMode
from aurora_chat.domain.errors import ContractViolationError, OperationInProgressError
from aurora_chat.domain.models import Session
from aurora_chat.infra.http import TransportError
from aurora_chat.infra.session_store_memory import InMemorySessionStore
from aurora_chat.infra.snapshot import load_snapshot
from aurora_chat.observability.logging import get_logger, short_id
from aurora_chat.observability.middleware import get_trace_id

logger = get_logger(__name__)

router = APIRouter()


class CreateSessionRequest(BaseModel):
    mode: SessionMode | None = None
    aurora_uid: str | None = None
    snapshot: dict[str, Any] | None = None


class CommandRequest(BaseModel):
    action_id: str = Field(min_length=1, max_length=200)
    data: dict[str, Any] | None = None


class MessageRequest(BaseModel):
    text: str = Field(min_length=1, max_length=4000)
    language: Language = Language.EN
    anchors: dict[str, str] | None = None
    agent_state: str | None = None


class ValidateTransitionRequest(BaseModel):
    from_state: str
    trigger_source: str
    trigger_id: str = ""
    requested_next_state: str


class InferTransitionRequest(BaseModel):
    message: str = Field(max_length=4000)
    language: Language = Language.EN
    from_state: str | None = None


@asynccontextmanager
async def _flow_errors() -> AsyncIterator[None]:
    """Traduz erros do fluxo em respostas HTTP (409/502)."""
    try:
        yield
    except OperationInProgressError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": "operation_in_progress", "operation": exc.operation},
        ) from exc
    except ContractViolationError as exc:
        logger.warning(
            "backend_contract_violation",
            extra={"field": exc.field, "endpoint": exc.endpoint},
        )
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "backend_contract_violation",
                "field": exc.field,
                "endpoint": exc.endpoint,
                "retryable": exc.retryable,
                "trace_id": get_trace_id(),
            },
        ) from exc
    except TransportError as exc:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail={
                "error": "backend_unavailable",
                "status_code": exc.status_code,
                "hint": exc.hint,
                "trace_id": get_trace_id(),
            },
        ) from exc


def _require_session(store: InMemorySessionStore, brief_id: str) -> Session:
    session = store.load(brief_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="session_not_found")
    return session


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, Any]:
    """Healthcheck simples."""
    return {
        "status": "ok",
        "service": settings.service_name,
        "version": settings.version,
        "backend_configured": settings.is_backend_configured,
    }


@router.post("/v1/sessions", status_code=status.HTTP_201_CREATED)
def create_session(
    body: CreateSessionRequest,
    orchestrator: FlowOrchestrator = Depends(get_orchestrator),
    store: InMemorySessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    """Cria uma sessão nova ou retoma a partir de um snapshot válido."""
    resumed = False
    snapshot = load_snapshot(body.snapshot) if body.snapshot is not None else None
    if snapshot is not None:
        session = orchestrator.resume_session(snapshot)
        resumed = True
    else:
        session = orchestrator.start_session(mode=body.mode, aurora_uid=body.aurora_uid)

    store.save(session)
    return {"session": session.to_wire(), "resumed": resumed}


@router.get("/v1/sessions/{brief_id}")
def read_session(
    brief_id: str,
    store: InMemorySessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    return {"session": _require_session(store, brief_id).to_wire()}


@router.post("/v1/sessions/{brief_id}/restart")
async def restart_session(
    brief_id: str,
    orchestrator: FlowOrchestrator = Depends(get_orchestrator),
    store: InMemorySessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    async with _flow_errors(), orchestrator.guard.hold(brief_id, "restart"):
        current = _require_session(store, brief_id)
        fresh = orchestrator.restart_session(current)
        store.delete(brief_id)
        store.save(fresh)
    return {"session": fresh.to_wire()}


@router.post("/v1/sessions/{brief_id}/commands")
async def run_command(
    brief_id: str,
    body: CommandRequest,
    orchestrator: FlowOrchestrator = Depends(get_orchestrator),
    store: InMemorySessionStore = Depends(get_session_store),
) -> dict[str, Any]:
    """Executa uma ação da UI (action_id + data) sobre a sessão."""
    command = parse_action_id(body.action_id, body.data)
    if command is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"error": "unknown_action", "action_id": body.action_id[:40]},
        )

    # load/handle/save numa única retenção da guarda
    async with _flow_errors(), orchestrator.guard.hold(brief_id, type(command).__name__):
        current = _require_session(store, brief_id)
        step = await orchestrator.handle(current, command)
        if isinstance(command, Restart):
            store.delete(brief_id)
        store.save(step.session)

    logger.info(
        "command_executed",
        extra={
            "brief_id": short_id(brief_id),
            "command": type(command).__name__,
            "state": str(step.session.state),
        },
    )
    return {"session": step.session.to_wire(), "result": jsonable_encoder(step.result)}


@router.post("/v1/sessions/{brief_id}/messages")
async def send_message(
    brief_id: str,
    body: MessageRequest,
    orchestrator: FlowOrchestrator = Depends(get_orchestrator),
    store: InMemorySessionStore = Depends(get_session_store),
    machine: AgentStateMachine = Depends(get_agent_machine),
) -> dict[str, Any]:
    """Envia texto livre ao agente e devolve o envelope normalizado."""
    async with _flow_errors(), orchestrator.guard.hold(brief_id, "send_message"):
        current = _require_session(store, brief_id)
        step = await orchestrator.send_message(current, body.text, body.language, body.anchors)
        store.save(step.session)

    reply = step.result
    legacy = reply.legacy_envelope
    if legacy is None and reply.envelope is not None:
        legacy = to_legacy_envelope(reply.envelope)
    if legacy is not None:
        agent_state = machine.normalize_state(body.agent_state)
        legacy = legacy.model_copy(
            update={"cards": filter_recommendation_cards(legacy.cards, agent_state)}
        )

    return {
        "session": step.session.to_wire(),
        "answer": reply.answer,
        "intent": reply.intent,
        "envelope": reply.envelope.model_dump(mode="json") if reply.envelope else None,
        "legacy_envelope": legacy.model_dump(mode="json") if legacy else None,
    }


@router.post("/v1/agent/transitions/validate")
def validate_transition(
    body: ValidateTransitionRequest,
    machine: AgentStateMachine = Depends(get_agent_machine),
) -> dict[str, Any]:
    decision = machine.validate(
        body.from_state, body.trigger_source, body.trigger_id, body.requested_next_state
    )
    return {
        "ok": decision.ok,
        "canonical_trigger_id": decision.canonical_trigger_id,
        "next_state": decision.next_state,
        "reason": decision.reason.value if decision.reason else None,
    }


@router.post("/v1/agent/transitions/infer")
def infer_transition(
    body: InferTransitionRequest,
    machine: AgentStateMachine = Depends(get_agent_machine),
) -> dict[str, Any]:
    """Classifica a frase; com from_state, já valida a transição inferida."""
    transition = infer_text_explicit_transition(body.message, body.language)
    if transition is None:
        return {"transition": None, "decision": None}

    decision = None
    if body.from_state is not None:
        result = machine.validate(
            body.from_state,
            TriggerSource.TEXT_EXPLICIT,
            transition.trigger_id,
            transition.requested_next_state,
        )
        decision = {
            "ok": result.ok,
            "next_state": result.next_state,
            "reason": result.reason.value if result.reason else None,
        }

    return {
        "transition": {"requested_next_state": transition.requested_next_state},
        "decision": decision,
    }
