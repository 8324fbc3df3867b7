from __future__ import annotations

import asyncio
import random
from collections.abc import Sequence

import pytest
from fastapi.testclient import TestClient

from aurora_chat.api.app import create_app
from aurora_chat.application.ports.demo import DemoPort
from aurora_chat.config.settings import Settings, get_settings
from aurora_chat.domain.enums import CheckoutOutcome, SessionMode
from aurora_chat.domain.models import CheckoutResult, Session
from aurora_chat.domain.protocols.backend_port import FlowStep
from aurora_chat.utils.ids import IdGenerator


class GatedDemoPort(DemoPort):
    """DemoPort cujo checkout só termina quando `release` é sinalizado."""

    def __init__(self) -> None:
        super().__init__(random.Random(7), IdGenerator())
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def checkout(
        self,
        session: Session,
        offer_ids: Sequence[str],
        forced_outcome: CheckoutOutcome | None,
    ) -> FlowStep[CheckoutResult]:
        self.entered.set()
        await self.release.wait()
        return await super().checkout(session, offer_ids, forced_outcome)


@pytest.fixture()
def client(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.setenv("DEFAULT_MODE", "demo")
    monkeypatch.setenv("DEMO_SEED", "7")
    monkeypatch.delenv("API_BASE_URL", raising=False)
    get_settings.cache_clear()
    app = create_app()
    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()


@pytest.fixture()
def demo_settings() -> Settings:
    return Settings(_env_file=None, demo_seed=7, api_base_url=None)


@pytest.fixture()
def live_settings() -> Settings:
    return Settings(
        _env_file=None,
        api_base_url="https://backend.test",
        shop_gateway_url="https://gateway.test",
        default_mode="live",
        demo_seed=7,
    )


@pytest.fixture()
def session() -> Session:
    return Session(brief_id="brief_123456789", trace_id="trace_987654321", aurora_uid="uid_1")


@pytest.fixture()
def live_session(session: Session) -> Session:
    return session.model_copy(update={"mode": SessionMode.LIVE})


@pytest.fixture()
def gated_port() -> GatedDemoPort:
    return GatedDemoPort()
