"""Testes do orquestrador: seleção de modo, guarda, eventos e transições."""

from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from aurora_chat.application.orchestrator import FlowOrchestrator
from aurora_chat.application.ports.demo import DemoPort
from aurora_chat.application.ports.live import LivePort
from aurora_chat.config.settings import Settings
from aurora_chat.domain import commands as cmd
from aurora_chat.domain.enums import (
    BudgetTier,
    CheckoutOutcome,
    Language,
    ProductVariant,
    PurchaseRoute,
    RecoveryAction,
    RiskAnswer,
    RoutePreference,
    SessionMode,
)
from aurora_chat.domain.errors import OperationInProgressError
from aurora_chat.domain.flow_states import FlowState
from aurora_chat.domain.checkout_routes import RouteType
from aurora_chat.domain.models import (
    AnalysisResult,
    Offer,
    Product,
    ProductOption,
    ProductPair,
    ProductPairs,
    Session,
)
from aurora_chat.infra.http import BackendTransport
from aurora_chat.infra.snapshot import build_snapshot


@pytest.fixture()
def orchestrator(demo_settings: Settings) -> FlowOrchestrator:
    return FlowOrchestrator(demo_settings)


def _live_orchestrator(settings: Settings, body: object, seen: list[httpx.Request]):
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=body)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    transport = BackendTransport(settings.api_endpoint, client=client)
    return FlowOrchestrator(settings, transport)


class TestPortSelection:
    """Live só com sessão live e backend configurado."""

    def test_demo_session_uses_demo(self, live_settings: Settings, session: Session) -> None:
        orchestrator = FlowOrchestrator(live_settings)
        assert isinstance(orchestrator.port_for(session), DemoPort)

    def test_live_session_with_backend(
        self, live_settings: Settings, live_session: Session
    ) -> None:
        orchestrator = FlowOrchestrator(live_settings)
        assert isinstance(orchestrator.port_for(live_session), LivePort)
        assert orchestrator.is_live(live_session) is True

    def test_live_session_without_backend_falls_back(
        self, orchestrator: FlowOrchestrator, live_session: Session
    ) -> None:
        assert isinstance(orchestrator.port_for(live_session), DemoPort)

    @pytest.mark.asyncio
    async def test_live_call_goes_through_transport(
        self, live_settings: Settings, live_session: Session
    ) -> None:
        seen: list[httpx.Request] = []
        orchestrator = _live_orchestrator(live_settings, {"analysis": {"strategy": "x"}}, seen)

        step = await orchestrator.run_analysis(live_session)

        assert step.result.strategy == "x"
        assert seen[0].url.path == "/v1/analysis"


class TestLifecycle:
    """Início, restart e retomada."""

    def test_start_session_uses_default_mode(self, orchestrator: FlowOrchestrator) -> None:
        session = orchestrator.start_session()

        assert session.mode == SessionMode.DEMO
        assert session.state == FlowState.S0_LANDING
        assert orchestrator.events.names() == ["session_started"]

    def test_restart_clears_events(self, orchestrator: FlowOrchestrator) -> None:
        first = orchestrator.start_session(aurora_uid="uid_keep")
        orchestrator.submit_budget(first, BudgetTier.LOW)

        fresh = orchestrator.restart_session(first)

        assert fresh.brief_id != first.brief_id
        assert fresh.aurora_uid == "uid_keep"
        assert orchestrator.events.names() == ["session_restarted"]

    def test_restart_keeps_other_sessions_events(self, orchestrator: FlowOrchestrator) -> None:
        first = orchestrator.start_session()
        second = orchestrator.start_session()
        orchestrator.submit_budget(second, BudgetTier.HIGH)

        fresh = orchestrator.restart_session(first)

        assert orchestrator.events.names(first.brief_id) == []
        assert orchestrator.events.names(second.brief_id) == ["session_started", "budget_submitted"]
        assert orchestrator.events.names(fresh.brief_id) == ["session_restarted"]

    def test_resume_fills_aurora_uid(self, orchestrator: FlowOrchestrator) -> None:
        saved = Session(brief_id="brief_x", trace_id="trace_x", state=FlowState.S6_BUDGET)
        snapshot = build_snapshot(saved, [], Language.EN, aurora_uid="uid_snap")

        resumed = orchestrator.resume_session(snapshot)

        assert resumed.aurora_uid == "uid_snap"
        assert resumed.state == FlowState.S6_BUDGET


class TestGuard:
    """Uma operação em voo por sessão, inclusive comandos locais."""

    @pytest.mark.asyncio
    async def test_concurrent_operation_rejected(
        self, demo_settings: Settings, gated_port, session: Session
    ) -> None:
        orchestrator = FlowOrchestrator(demo_settings, demo_port=gated_port)
        slow = asyncio.create_task(orchestrator.checkout(session))
        await gated_port.entered.wait()

        with pytest.raises(OperationInProgressError) as exc_info:
            await orchestrator.run_analysis(session)

        gated_port.release.set()
        await slow
        assert exc_info.value.operation == "run_analysis"
        assert orchestrator.guard.is_busy(session.brief_id) is False

    @pytest.mark.asyncio
    async def test_local_command_rejected_during_slow_checkout(
        self, demo_settings: Settings, gated_port, session: Session
    ) -> None:
        orchestrator = FlowOrchestrator(demo_settings, demo_port=gated_port)
        checkout = cmd.Checkout(forced_outcome=CheckoutOutcome.SUCCESS)
        slow = asyncio.create_task(orchestrator.handle(session, checkout))
        await gated_port.entered.wait()

        with pytest.raises(OperationInProgressError) as exc_info:
            await orchestrator.handle(session, cmd.ChooseOffer("sku_a", "o1"))

        gated_port.release.set()
        step = await slow
        assert exc_info.value.operation == "ChooseOffer"
        assert step.session.state == FlowState.S9_SUCCESS
        assert step.session.selected_offers == {}

    @pytest.mark.asyncio
    async def test_restart_command_rejected_during_slow_checkout(
        self, demo_settings: Settings, gated_port, session: Session
    ) -> None:
        orchestrator = FlowOrchestrator(demo_settings, demo_port=gated_port)
        slow = asyncio.create_task(orchestrator.handle(session, cmd.Checkout()))
        await gated_port.entered.wait()

        with pytest.raises(OperationInProgressError) as exc_info:
            await orchestrator.handle(session, cmd.Restart())

        gated_port.release.set()
        await slow
        assert exc_info.value.operation == "Restart"

    @pytest.mark.asyncio
    async def test_other_session_not_blocked(
        self, demo_settings: Settings, gated_port, session: Session
    ) -> None:
        orchestrator = FlowOrchestrator(demo_settings, demo_port=gated_port)
        other = session.model_copy(update={"brief_id": "brief_other_000"})
        slow = asyncio.create_task(orchestrator.checkout(session))
        await gated_port.entered.wait()

        step = await orchestrator.handle(other, cmd.ChooseOffer("sku_a", "o1"))

        gated_port.release.set()
        await slow
        assert step.session.selected_offers == {"sku_a": "o1"}

    @pytest.mark.asyncio
    async def test_reentrant_within_same_task(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        async with orchestrator.guard.hold(session.brief_id, "run_command"):
            step = await orchestrator.handle(session, cmd.RunAnalysis())
            assert orchestrator.guard.running(session.brief_id) == "run_command"

        assert step.session.state == FlowState.S5_ANALYSIS_SUMMARY
        assert orchestrator.guard.is_busy(session.brief_id) is False

    @pytest.mark.asyncio
    async def test_guard_released_after_call(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        await orchestrator.run_analysis(session)
        await orchestrator.run_analysis(session)
        assert orchestrator.events.names() == ["analysis_completed", "analysis_completed"]


class TestLocalTransitions:
    """Transições que não dependem do modo."""

    def test_open_risk_check_when_needed(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        current = session.model_copy(update={"analysis": AnalysisResult(needs_risk_check=True)})
        assert orchestrator.open_risk_check(current).state == FlowState.S5a_RISK_CHECK

    def test_open_risk_check_skips_when_answered(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        analysis = AnalysisResult(needs_risk_check=True, risk_answered=True)
        current = session.model_copy(update={"analysis": analysis})
        assert orchestrator.open_risk_check(current).state == FlowState.S6_BUDGET
        assert orchestrator.open_risk_check(session).state == FlowState.S6_BUDGET

    def test_submit_budget(self, orchestrator: FlowOrchestrator, session: Session) -> None:
        updated = orchestrator.submit_budget(session, skipped=True)
        assert updated.state == FlowState.S7_PRODUCT_RECO
        assert updated.budget_tier == BudgetTier.MID
        assert updated.clarification_count == 0

    @pytest.mark.parametrize(
        ("action", "target"),
        [
            (RecoveryAction.SWITCH_OFFER, FlowState.S7_PRODUCT_RECO),
            (RecoveryAction.ADJUST_ROUTINE, FlowState.S7_PRODUCT_RECO),
            (RecoveryAction.SWITCH_PAYMENT, FlowState.S8_CHECKOUT),
            (RecoveryAction.TRY_AGAIN, FlowState.S8_CHECKOUT),
        ],
    )
    def test_recovery_targets(
        self,
        orchestrator: FlowOrchestrator,
        session: Session,
        action: RecoveryAction,
        target: FlowState,
    ) -> None:
        recovering = orchestrator.enter_recovery(session)
        assert recovering.state == FlowState.S11_RECOVERY
        assert orchestrator.recovery_action(recovering, action).state == target

    def test_choose_offer(self, orchestrator: FlowOrchestrator, session: Session) -> None:
        first = orchestrator.choose_offer(session, "sku_a", "o1")
        second = orchestrator.choose_offer(first, "sku_b", "o2")
        assert second.selected_offers == {"sku_a": "o1", "sku_b": "o2"}

    def test_analyze_product(self, orchestrator: FlowOrchestrator, session: Session) -> None:
        analyzing = orchestrator.start_product_analysis(session)
        assert analyzing.state == FlowState.P1_PRODUCT_ANALYZING

        step = orchestrator.analyze_product(analyzing, "https://img.test/p.jpg")

        assert step.session.state == FlowState.P2_PRODUCT_RESULT
        assert step.session.product_photo_url == "https://img.test/p.jpg"
        assert 15 <= step.result.match_score <= 98
        assert orchestrator.events.names() == ["product_analyzed"]


class TestHandle:
    """Despacho de comandos da UI ponta a ponta (demo)."""

    @pytest.mark.asyncio
    async def test_full_demo_flow(self, orchestrator: FlowOrchestrator) -> None:
        session = orchestrator.start_session()

        session = (await orchestrator.handle(session, cmd.SelectIntent("breakout_clear"))).session
        assert session.state == FlowState.S2_DIAGNOSIS
        assert session.intent_text == "breakout_clear"

        session = (await orchestrator.handle(session, cmd.SubmitDiagnosis(skipped=True))).session
        assert session.state == FlowState.S3_PHOTO_OPTION

        step = await orchestrator.handle(session, cmd.UseSamplePhotos("sample_set_A"))
        assert step.session.state == FlowState.S4_ANALYSIS_LOADING

        step = await orchestrator.handle(step.session, cmd.RunAnalysis())
        assert step.result.needs_risk_check is True

        session = (await orchestrator.handle(step.session, cmd.RequestRecommendations())).session
        assert session.state == FlowState.S5a_RISK_CHECK

        answer = cmd.AnswerRiskCheck(RiskAnswer.NO)
        session = (await orchestrator.handle(session, answer)).session
        assert session.state == FlowState.S6_BUDGET

        budget = cmd.SubmitBudget(BudgetTier.LOW)
        session = (await orchestrator.handle(session, budget)).session
        assert session.state == FlowState.S7_PRODUCT_RECO

        step = await orchestrator.handle(session, cmd.RerankProducts(RoutePreference.CHEAPER))
        pair = step.result.am[0]
        select = cmd.SelectProduct(ProductVariant.PREMIUM, pair.premium.product.sku_id)
        session = (await orchestrator.handle(step.session, select)).session
        assert session.product_selections[pair.category].type == ProductVariant.PREMIUM

        checkout = cmd.Checkout(forced_outcome=CheckoutOutcome.SUCCESS)
        step = await orchestrator.handle(session, checkout)
        assert step.session.state == FlowState.S9_SUCCESS
        assert step.result.success is True

        assert orchestrator.events.names() == [
            "session_started",
            "diagnosis_submitted",
            "photos_attached",
            "analysis_completed",
            "risk_answered",
            "budget_submitted",
            "product_pairs_built",
            "checkout_completed",
        ]

    @pytest.mark.asyncio
    async def test_skip_risk_check(self, orchestrator: FlowOrchestrator, session: Session) -> None:
        current = session.model_copy(update={"analysis": AnalysisResult(needs_risk_check=True)})

        step = await orchestrator.handle(current, cmd.AnswerRiskCheck(RiskAnswer.SKIP))

        assert step.session.state == FlowState.S6_BUDGET
        assert step.session.analysis is not None
        assert step.session.analysis.risk_answered is True
        assert step.session.clarification_count == 0

    @pytest.mark.asyncio
    async def test_select_unknown_sku_is_noop(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        step = await orchestrator.handle(session, cmd.SelectProduct(ProductVariant.DUPE, "nope"))
        assert step.session == session

    @pytest.mark.asyncio
    async def test_failed_checkout_then_recovery(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        failure = cmd.Checkout(forced_outcome=CheckoutOutcome.FAILURE_EXPIRED)
        step = await orchestrator.handle(session, failure)
        assert step.session.state == FlowState.S10_FAILURE

        recovering = orchestrator.enter_recovery(step.session)
        step = await orchestrator.handle(recovering, cmd.Recover(RecoveryAction.TRY_AGAIN))
        assert step.session.state == FlowState.S8_CHECKOUT

    @pytest.mark.asyncio
    async def test_restart_command(self, orchestrator: FlowOrchestrator, session: Session) -> None:
        step = await orchestrator.handle(session, cmd.Restart())
        assert step.session.brief_id != session.brief_id
        assert step.session.state == FlowState.S0_LANDING


class TestLiveCheckout:
    """Checkout live usa as ofertas escolhidas quando a UI não envia ids."""

    @pytest.mark.asyncio
    async def test_offer_ids_default_to_selected_offers(
        self, live_settings: Settings, live_session: Session
    ) -> None:
        seen: list[httpx.Request] = []
        body = {"checkout_result": {"success": True, "order_id": "ORD-9"}}
        orchestrator = _live_orchestrator(live_settings, body, seen)
        current = live_session.model_copy(update={"selected_offers": {"sku_a": "o1"}})

        step = await orchestrator.checkout(current)

        assert json.loads(seen[0].content)["offer_ids"] == ["o1"]
        assert step.session.state == FlowState.S9_SUCCESS


def _offer(offer_id: str, route: PurchaseRoute, price: float) -> Offer:
    url = f"https://shop.test/{offer_id}" if route == PurchaseRoute.AFFILIATE_OUTBOUND else None
    return Offer(offer_id=offer_id, price=price, purchase_route=route, affiliate_url=url)


def _pair(category: str, dupe_route: PurchaseRoute, price: float) -> ProductPair:
    return ProductPair(
        category=category,
        premium=ProductOption(
            product=Product(sku_id=f"{category}_p"),
            offers=[_offer(f"{category}_po", PurchaseRoute.INTERNAL_CHECKOUT, price * 2)],
        ),
        dupe=ProductOption(
            product=Product(sku_id=f"{category}_d"),
            offers=[_offer(f"{category}_do", dupe_route, price)],
        ),
    )


def _with_pairs(session: Session, *routes: PurchaseRoute) -> Session:
    categories = ("cleanser", "moisturizer", "sunscreen")
    pairs = [_pair(category, route, 10.0) for category, route in zip(categories, routes)]
    return session.model_copy(
        update={"state": FlowState.S7_PRODUCT_RECO, "product_pairs": ProductPairs(am=pairs)}
    )


INTERNAL = PurchaseRoute.INTERNAL_CHECKOUT
AFFILIATE = PurchaseRoute.AFFILIATE_OUTBOUND


class TestBuildRoutine:
    """Rotina AM/PM com ofertas auto-selecionadas."""

    @pytest.mark.asyncio
    async def test_build_routine_command(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        current = session.model_copy(update={"intent_id": "breakout_clear"})

        step = await orchestrator.handle(current, cmd.BuildRoutine(RoutePreference.CHEAPER))

        assert step.session.state == FlowState.S7_PRODUCT_RECO
        assert step.session.routine == step.result
        assert step.result.preference == "cheaper"
        assert [s["product"]["sku_id"] for s in step.result.pm_steps] == [
            "cleanser_001",
            "treatment_001",
            "moisturizer_001",
        ]
        assert set(step.session.selected_offers) == {
            "cleanser_001",
            "moisturizer_001",
            "sunscreen_001",
            "treatment_001",
        }
        assert orchestrator.events.names() == ["routine_built"]
        assert orchestrator.events.events()[0].data["steps"] == 6

    @pytest.mark.asyncio
    async def test_checkout_after_routine_uses_selected_offers(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        routine = await orchestrator.build_routine(session)

        step = await orchestrator.handle(routine.session, cmd.Checkout())

        assert step.result.success is True
        assert step.result.total == routine.result.total_estimate.max


class TestRoutedCheckout:
    """Checkout escolhido pela rota das seleções (interno, afiliado, misto)."""

    @pytest.mark.asyncio
    async def test_all_internal_checks_out_internal_offers(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        current = _with_pairs(session, INTERNAL, INTERNAL)

        step = await orchestrator.handle(current, cmd.CheckoutByRoute())

        assert step.result.route_type == RouteType.ALL_INTERNAL
        assert step.result.checkout.success is True
        assert step.result.checkout.total == 20.0
        assert step.result.affiliate_items == []
        assert step.session.state == FlowState.S9_SUCCESS

    @pytest.mark.asyncio
    async def test_all_affiliate_opens_list_without_checkout(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        current = _with_pairs(session, AFFILIATE, AFFILIATE)

        step = await orchestrator.handle(current, cmd.CheckoutByRoute())

        assert step.result.route_type == RouteType.ALL_AFFILIATE
        assert step.result.checkout is None
        assert [item.offer.offer_id for item in step.result.affiliate_items] == [
            "cleanser_do",
            "moisturizer_do",
        ]
        assert step.session.state == FlowState.S7_PRODUCT_RECO
        assert orchestrator.events.names() == ["affiliate_list_opened"]

    @pytest.mark.asyncio
    async def test_mixed_checks_out_then_lists_affiliate(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        current = _with_pairs(session, INTERNAL, AFFILIATE)

        step = await orchestrator.handle(current, cmd.CheckoutByRoute())

        assert step.result.route_type == RouteType.MIXED
        assert step.result.checkout.success is True
        assert step.result.checkout.total == 10.0
        assert [item.offer.offer_id for item in step.result.affiliate_items] == ["moisturizer_do"]
        assert step.session.state == FlowState.S9_SUCCESS
        assert orchestrator.events.names() == ["checkout_completed", "affiliate_list_opened"]

    @pytest.mark.asyncio
    async def test_mixed_failure_skips_affiliate_list(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        current = _with_pairs(session, INTERNAL, AFFILIATE)
        failing = cmd.CheckoutByRoute(forced_outcome=CheckoutOutcome.FAILURE_EXPIRED)

        step = await orchestrator.handle(current, failing)

        assert step.result.checkout.success is False
        assert step.result.affiliate_items == []
        assert step.session.state == FlowState.S10_FAILURE

    @pytest.mark.asyncio
    async def test_internal_only_ignores_affiliate_offers(
        self, live_settings: Settings, live_session: Session
    ) -> None:
        seen: list[httpx.Request] = []
        body = {"checkout_result": {"success": True, "order_id": "ORD-1"}}
        orchestrator = _live_orchestrator(live_settings, body, seen)
        current = _with_pairs(live_session, INTERNAL, AFFILIATE)

        step = await orchestrator.handle(current, cmd.CheckoutInternalOnly())

        assert json.loads(seen[0].content)["offer_ids"] == ["cleanser_do"]
        assert step.result.route_type == RouteType.MIXED
        assert step.result.affiliate_items == []

    @pytest.mark.asyncio
    async def test_internal_only_with_only_affiliate_is_noop(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        current = _with_pairs(session, AFFILIATE)

        step = await orchestrator.handle(current, cmd.CheckoutInternalOnly())

        assert step.session == current
        assert step.result.checkout is None

    @pytest.mark.asyncio
    async def test_internal_only_without_pairs_uses_selected_offers(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        current = session.model_copy(update={"selected_offers": {"sku_a": "o1"}})

        step = await orchestrator.handle(current, cmd.CheckoutInternalOnly())

        assert step.result.route_type == RouteType.ALL_INTERNAL
        assert step.result.checkout.success is True

    @pytest.mark.asyncio
    async def test_open_affiliate_list_command(
        self, orchestrator: FlowOrchestrator, session: Session
    ) -> None:
        current = _with_pairs(session, INTERNAL, AFFILIATE, AFFILIATE)

        step = await orchestrator.handle(current, cmd.OpenAffiliateList())

        assert [item.product.sku_id for item in step.result.affiliate_items] == [
            "moisturizer_d",
            "sunscreen_d",
        ]
        assert step.session == current
