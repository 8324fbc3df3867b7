"""Dependências injetadas nas rotas."""

from __future__ import annotations

from fastapi import Request

from aurora_chat.application.orchestrator import FlowOrchestrator
from aurora_chat.config.settings import Settings
from aurora_chat.domain.agent import AgentStateMachine
from aurora_chat.infra.session_store_memory import InMemorySessionStore


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""

    return request.app.state.settings


def get_orchestrator(request: Request) -> FlowOrchestrator:
    """Retorna o orquestrador do fluxo."""

    return request.app.state.orchestrator


def get_session_store(request: Request) -> InMemorySessionStore:
    """Retorna o store de sessão ativo."""

    return request.app.state.session_store


def get_agent_machine(request: Request) -> AgentStateMachine:
    """Retorna o validador de transições do agente."""
    return request.app.state.agent_machine
