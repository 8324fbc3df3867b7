"""Fábrica da aplicação FastAPI."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from aurora_chat.api.routes import router
from aurora_chat.application.orchestrator import FlowOrchestrator
from aurora_chat.config.settings import Settings, get_settings
from aurora_chat.domain.agent import AgentStateMachine
from aurora_chat.infra.http import create_transport
from aurora_chat.infra.session_store_memory import InMemorySessionStore
from aurora_chat.observability.logging import configure_logging, get_logger
from aurora_chat.observability.middleware import TraceIdMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    await app.state.orchestrator.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Cria a aplicação FastAPI."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name)

    validation_errors: list[str] = []
    validation_errors.extend(settings.validate_mode_config())
    validation_errors.extend(settings.validate_backend_urls())
    validation_errors.extend(settings.validate_limits())

    if validation_errors:
        error_msg = "; ".join(validation_errors)
        raise ValueError(f"Configuração inválida: {error_msg}")

    app = FastAPI(title=settings.service_name, version=settings.version, lifespan=_lifespan)
    app.add_middleware(TraceIdMiddleware)
    app.include_router(router)

    app.state.settings = settings
    app.state.session_store = InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
    app.state.orchestrator = FlowOrchestrator(settings, create_transport(settings))
    app.state.agent_machine = AgentStateMachine()

    logger.info(
        "app_created",
        extra={
            "environment": settings.environment,
            "default_mode": settings.default_mode,
            "backend_configured": settings.is_backend_configured,
        },
    )
    return app


app = create_app()
