"""Orquestrador do fluxo: escolhe demo/live por chamada e aplica as transições.

Responsabilidades:
- Único lugar que atribui `Session.state`
- Operações dual-mode delegadas a um BackendPort (DemoPort ou LivePort)
- Guarda de concorrência por sessão, latência e trace_id nos logs
- Eventos de fluxo no FlowEventLog injetado
"""

from __future__ import annotations

import logging
import random
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, TypeVar, assert_never

from aurora_chat.adapters.envelope.models import ChatReply
from aurora_chat.application.events import FlowEventLog
from aurora_chat.application.ports.demo import DemoPort, unique_by_category
from aurora_chat.application.ports.live import LivePort
from aurora_chat.application.product_analysis import analyze_product
from aurora_chat.application.session import SessionGuard, new_session, restart_from
from aurora_chat.config.settings import Settings
from aurora_chat.domain import commands as cmd
from aurora_chat.domain.checkout_routes import (
    CheckoutItem,
    CheckoutRouteAnalysis,
    RoutedCheckout,
    RouteType,
    analyze_checkout_routes,
)
from aurora_chat.domain.enums import (
    AffiliateOutcome,
    BudgetTier,
    CheckoutOutcome,
    Language,
    Market,
    PhotoSlotId,
    ProductVariant,
    RecoveryAction,
    RiskAnswer,
    RoutePreference,
    SessionMode,
)
from aurora_chat.domain.flow_states import FlowState
from aurora_chat.domain.models import (
    AnalysisResult,
    CheckoutResult,
    DiagnosisResult,
    PhotoSlot,
    ProductAnalysisResult,
    ProductPairs,
    RoutineSet,
    Session,
)
from aurora_chat.domain.photo_qc import QcIssue
from aurora_chat.domain.protocols.backend_port import BackendPort, FlowStep
from aurora_chat.infra.http import BackendTransport, create_transport
from aurora_chat.infra.snapshot import ChatSnapshot
from aurora_chat.observability.logging import bind_session_fields, get_logger, short_id
from aurora_chat.observability.middleware import bind_trace_id
from aurora_chat.observability.timing import timed
from aurora_chat.utils.ids import IdGenerator

logger: logging.Logger = get_logger(__name__)

T = TypeVar("T")

RECOVERY_TARGETS: dict[RecoveryAction, FlowState] = {
    RecoveryAction.SWITCH_OFFER: FlowState.S7_PRODUCT_RECO,
    RecoveryAction.ADJUST_ROUTINE: FlowState.S7_PRODUCT_RECO,
    RecoveryAction.SWITCH_PAYMENT: FlowState.S8_CHECKOUT,
    RecoveryAction.TRY_AGAIN: FlowState.S8_CHECKOUT,
}


class FlowOrchestrator:
    """Executa as operações do fluxo sobre uma Session imutável.

    Toda operação recebe a sessão atual e devolve uma nova; o chamador
    guarda o resultado. Colaboradores são injetados (nada global).
    """

    def __init__(
        self,
        settings: Settings,
        transport: BackendTransport | None = None,
        *,
        demo_port: BackendPort | None = None,
        live_port: BackendPort | None = None,
        ids: IdGenerator | None = None,
        events: FlowEventLog | None = None,
        guard: SessionGuard | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._settings = settings
        self._ids = ids or IdGenerator()
        self._events = events or FlowEventLog(settings.event_log_max_events)
        self._guard = guard or SessionGuard()
        self._rng = rng or random.Random(settings.demo_seed)
        self._transport = transport or create_transport(settings)
        self._demo = demo_port or DemoPort(self._rng, self._ids)
        self._live = live_port or LivePort(self._transport, settings.shop_gateway_endpoint)

    @property
    def events(self) -> FlowEventLog:
        return self._events

    @property
    def guard(self) -> SessionGuard:
        return self._guard

    async def close(self) -> None:
        await self._transport.close()

    # ------------------------------------------------------------------
    # Infra interna
    # ------------------------------------------------------------------

    def is_live(self, session: Session) -> bool:
        return session.mode == SessionMode.LIVE and self._settings.is_backend_configured

    def port_for(self, session: Session) -> BackendPort:
        """Live só com sessão live E backend configurado; senão demo."""
        return self._live if self.is_live(session) else self._demo

    def _emit(self, name: str, session: Session, **data: Any) -> None:
        self._events.emit(name, session.brief_id, session.trace_id, **data)

    async def _run(
        self,
        session: Session,
        operation: str,
        call: Callable[[BackendPort], Awaitable[FlowStep[T]]],
    ) -> FlowStep[T]:
        mode = "live" if self.is_live(session) else "demo"
        async with self._guard.hold(session.brief_id, operation):
            with (
                bind_trace_id(session.trace_id),
                bind_session_fields(session.brief_id, session.state),
                timed(operation, mode=mode),
            ):
                return await call(self.port_for(session))

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    def start_session(
        self,
        mode: SessionMode | None = None,
        aurora_uid: str | None = None,
    ) -> Session:
        session = new_session(
            self._ids,
            mode=mode or SessionMode(self._settings.default_mode.lower()),
            aurora_uid=aurora_uid,
        )
        self._emit("session_started", session, mode=str(session.mode))
        logger.info(
            "session_started",
            extra={"brief_id": short_id(session.brief_id), "mode": str(session.mode)},
        )
        return session

    def restart_session(self, session: Session) -> Session:
        """Nova sessão (mesmo modo e aurora_uid); eventos da sessão anterior descartados."""
        self._events.clear(session.brief_id)
        fresh = restart_from(session, self._ids)
        self._emit("session_restarted", fresh, previous_brief_id=session.brief_id)
        logger.info(
            "session_restarted",
            extra={
                "brief_id": short_id(fresh.brief_id),
                "previous_brief_id": short_id(session.brief_id),
            },
        )
        return fresh

    def resume_session(self, snapshot: ChatSnapshot) -> Session:
        """Retoma a sessão salva; aurora_uid do snapshot preenche lacuna."""
        session = snapshot.session
        if session.aurora_uid is None:
            session = session.model_copy(update={"aurora_uid": snapshot.aurora_uid})
        logger.info(
            "session_resumed",
            extra={"brief_id": short_id(session.brief_id), "state": str(session.state)},
        )
        return session

    # ------------------------------------------------------------------
    # Transições locais (independem do modo)
    # ------------------------------------------------------------------

    def submit_intent(
        self, session: Session, intent_id: str, intent_text: str | None = None
    ) -> Session:
        return session.model_copy(
            update={
                "state": FlowState.S2_DIAGNOSIS,
                "intent_id": intent_id,
                "intent_text": intent_text or intent_id,
            }
        )

    def skip_photos(self, session: Session) -> Session:
        return session.model_copy(update={"state": FlowState.S4_ANALYSIS_LOADING})

    def continue_past_photo_qc(self, session: Session) -> Session:
        return session.model_copy(update={"state": FlowState.S4_ANALYSIS_LOADING})

    def open_risk_check(self, session: Session) -> Session:
        """S5a só quando a análise pede e ainda não foi respondida; senão orçamento."""
        analysis = session.analysis
        if analysis is not None and analysis.needs_risk_check and not analysis.risk_answered:
            return session.model_copy(update={"state": FlowState.S5a_RISK_CHECK})
        return session.model_copy(update={"state": FlowState.S6_BUDGET})

    def skip_risk_check(self, session: Session) -> Session:
        analysis = session.analysis
        if analysis is not None:
            analysis = analysis.model_copy(update={"risk_answered": True})
        return session.model_copy(update={"state": FlowState.S6_BUDGET, "analysis": analysis})

    def submit_budget(
        self,
        session: Session,
        budget_tier: BudgetTier | None = None,
        skipped: bool = False,
    ) -> Session:
        count = session.clarification_count if skipped else session.clarification_count + 1
        updated = session.model_copy(
            update={
                "state": FlowState.S7_PRODUCT_RECO,
                "budget_tier": budget_tier or BudgetTier.MID,
                "clarification_count": count,
            }
        )
        self._emit("budget_submitted", updated, budget=str(updated.budget_tier), skipped=skipped)
        return updated

    def choose_offer(self, session: Session, sku_id: str, offer_id: str) -> Session:
        return session.model_copy(
            update={"selected_offers": {**session.selected_offers, sku_id: offer_id}}
        )

    def go_to_checkout(self, session: Session) -> Session:
        return session.model_copy(update={"state": FlowState.S8_CHECKOUT})

    def enter_recovery(self, session: Session) -> Session:
        return session.model_copy(update={"state": FlowState.S11_RECOVERY})

    def recovery_action(self, session: Session, action: RecoveryAction) -> Session:
        self._emit("recovery_action_selected", session, action=str(action))
        return session.model_copy(update={"state": RECOVERY_TARGETS[action]})

    def start_product_analysis(self, session: Session) -> Session:
        return session.model_copy(update={"state": FlowState.P1_PRODUCT_ANALYZING})

    def analyze_product(
        self, session: Session, photo_url: str
    ) -> FlowStep[ProductAnalysisResult]:
        """Pontua um produto avulso contra o diagnóstico (sempre local)."""
        result = analyze_product(session, self._rng)
        updated = session.model_copy(
            update={
                "state": FlowState.P2_PRODUCT_RESULT,
                "product_photo_url": photo_url,
                "product_analysis": result,
            }
        )
        self._emit("product_analyzed", updated, match_score=result.match_score)
        return FlowStep(updated, result)

    def checkout_routes(self, session: Session) -> CheckoutRouteAnalysis:
        """Partição interno × afiliado das seleções atuais (um item por categoria)."""
        pairs = session.product_pairs
        if pairs is None:
            return CheckoutRouteAnalysis()
        unique = unique_by_category([*pairs.am, *pairs.pm])
        return analyze_checkout_routes(unique, session.product_selections)

    # ------------------------------------------------------------------
    # Operações dual-mode
    # ------------------------------------------------------------------

    async def submit_diagnosis(
        self,
        session: Session,
        diagnosis: DiagnosisResult | None = None,
        skipped: bool = False,
    ) -> FlowStep[None]:
        step = await self._run(
            session,
            "submit_diagnosis",
            lambda port: port.submit_diagnosis(session, diagnosis, skipped),
        )
        self._emit("diagnosis_submitted", step.session, skipped=skipped)
        return step

    async def submit_context(
        self,
        session: Session,
        market: Market | None = None,
        budget_tier: BudgetTier | None = None,
        skipped: bool = False,
    ) -> FlowStep[None]:
        return await self._run(
            session,
            "submit_context",
            lambda port: port.submit_context(session, market, budget_tier, skipped),
        )

    async def attach_photos(
        self,
        session: Session,
        photos: Mapping[PhotoSlotId, PhotoSlot] | None = None,
        sample_set_id: str | None = None,
        consent: bool = False,
    ) -> FlowStep[list[QcIssue]]:
        step = await self._run(
            session,
            "attach_photos",
            lambda port: port.attach_photos(session, photos or {}, sample_set_id, consent),
        )
        self._emit(
            "photos_attached",
            step.session,
            sample=bool(sample_set_id),
            qc_issues=len(step.result),
        )
        return step

    async def run_analysis(self, session: Session) -> FlowStep[AnalysisResult]:
        step = await self._run(session, "run_analysis", lambda port: port.run_analysis(session))
        self._emit(
            "analysis_completed",
            step.session,
            needs_risk_check=step.result.needs_risk_check,
        )
        return step

    async def answer_risk_check(self, session: Session, answer: RiskAnswer) -> FlowStep[None]:
        step = await self._run(
            session,
            "answer_risk_check",
            lambda port: port.answer_risk_check(session, answer),
        )
        self._emit("risk_answered", step.session, answer=str(answer))
        return step

    async def build_product_pairs(
        self, session: Session, preference: RoutePreference | None = None
    ) -> FlowStep[ProductPairs]:
        step = await self._run(
            session,
            "build_product_pairs",
            lambda port: port.build_product_pairs(session, preference),
        )
        self._emit(
            "product_pairs_built",
            step.session,
            preference=str(preference) if preference else None,
            count=len(step.result.am) + len(step.result.pm),
        )
        return step

    async def build_routine(
        self, session: Session, preference: RoutePreference | None = None
    ) -> FlowStep[RoutineSet]:
        step = await self._run(
            session,
            "build_routine",
            lambda port: port.build_routine(session, preference),
        )
        routine = step.result
        self._emit(
            "routine_built",
            step.session,
            steps=len(routine.am_steps) + len(routine.pm_steps),
            total_max=routine.total_estimate.max if routine.total_estimate else None,
        )
        return step

    async def select_product(
        self,
        session: Session,
        category: str,
        variant: ProductVariant,
        sku_id: str | None = None,
        offer_id: str | None = None,
    ) -> FlowStep[None]:
        return await self._run(
            session,
            "select_product",
            lambda port: port.select_product(session, category, variant, sku_id, offer_id),
        )

    async def checkout(
        self,
        session: Session,
        offer_ids: Sequence[str] | None = None,
        forced_outcome: CheckoutOutcome | None = None,
    ) -> FlowStep[CheckoutResult]:
        ids = list(offer_ids) if offer_ids is not None else list(session.selected_offers.values())
        step = await self._run(
            session,
            "checkout",
            lambda port: port.checkout(session, ids, forced_outcome),
        )
        self._emit(
            "checkout_completed",
            step.session,
            success=step.result.success,
            reason_code=step.result.reason_code,
        )
        return step

    async def resolve_affiliate_items(
        self, session: Session, items: Sequence[CheckoutItem]
    ) -> FlowStep[list[CheckoutItem]]:
        return await self._run(
            session,
            "resolve_affiliate_items",
            lambda port: port.resolve_affiliate_items(session, items),
        )

    async def checkout_internal_only(
        self,
        session: Session,
        forced_outcome: CheckoutOutcome | None = None,
    ) -> FlowStep[RoutedCheckout]:
        """Compra só as ofertas internas; sem pares, as ofertas escolhidas à mão."""
        routes = self.checkout_routes(session)
        if routes.has_affiliate and not routes.has_internal:
            logger.info(
                "internal_checkout_skipped",
                extra={"brief_id": short_id(session.brief_id), "reason": "no_internal_offers"},
            )
            return FlowStep(session, RoutedCheckout(route_type=routes.route_type))

        offer_ids = routes.internal_offer_ids if routes.has_internal else None
        step = await self.checkout(self.go_to_checkout(session), offer_ids, forced_outcome)
        return FlowStep(
            step.session,
            RoutedCheckout(route_type=routes.route_type, checkout=step.result),
        )

    async def open_affiliate_list(self, session: Session) -> FlowStep[RoutedCheckout]:
        """Lista de compra afiliada (links de saída resolvidos); estado inalterado."""
        routes = self.checkout_routes(session)
        step = await self.resolve_affiliate_items(session, routes.affiliate_offers)
        self._emit("affiliate_list_opened", step.session, items=len(step.result))
        return FlowStep(
            step.session,
            RoutedCheckout(route_type=routes.route_type, affiliate_items=step.result),
        )

    async def checkout_by_route(
        self,
        session: Session,
        forced_outcome: CheckoutOutcome | None = None,
    ) -> FlowStep[RoutedCheckout]:
        """Interno → checkout; afiliado → lista; misto → checkout e, com sucesso, a lista."""
        route_type = self.checkout_routes(session).route_type
        if route_type == RouteType.ALL_AFFILIATE:
            return await self.open_affiliate_list(session)

        async with self._guard.hold(session.brief_id, "checkout_by_route"):
            step = await self.checkout_internal_only(session, forced_outcome)
            checkout = step.result.checkout
            if route_type == RouteType.ALL_INTERNAL or checkout is None or not checkout.success:
                return step
            listed = await self.open_affiliate_list(step.session)
        return FlowStep(
            listed.session,
            RoutedCheckout(
                route_type=route_type,
                checkout=checkout,
                affiliate_items=listed.result.affiliate_items,
            ),
        )

    async def report_affiliate_outcome(
        self,
        session: Session,
        outcome: AffiliateOutcome,
        data: Mapping[str, Any] | None = None,
    ) -> FlowStep[None]:
        step = await self._run(
            session,
            "report_affiliate_outcome",
            lambda port: port.report_affiliate_outcome(session, outcome, data),
        )
        self._emit("affiliate_outcome_reported", step.session, outcome=str(outcome))
        return step

    async def send_message(
        self,
        session: Session,
        text: str,
        language: Language = Language.EN,
        anchors: Mapping[str, str] | None = None,
    ) -> FlowStep[ChatReply]:
        return await self._run(
            session,
            "send_message",
            lambda port: port.send_message(session, text, language, anchors),
        )

    # ------------------------------------------------------------------
    # Despacho de comandos da UI
    # ------------------------------------------------------------------

    async def handle(self, session: Session, command: cmd.Command) -> FlowStep[Any]:
        """Executa um comando tipado sob a guarda da sessão, inclusive os locais."""
        async with self._guard.hold(session.brief_id, type(command).__name__):
            return await self._dispatch(session, command)

    async def _dispatch(self, session: Session, command: cmd.Command) -> FlowStep[Any]:
        """Um ramo por tipo de comando, sem fallback silencioso."""
        if isinstance(command, cmd.SelectIntent):
            updated = self.submit_intent(session, command.intent_id, command.intent_text)
            return FlowStep(updated, None)
        if isinstance(command, cmd.SubmitDiagnosis):
            return await self.submit_diagnosis(session, command.diagnosis, command.skipped)
        if isinstance(command, cmd.SubmitContext):
            return await self.submit_context(
                session, command.market, command.budget_tier, command.skipped
            )
        if isinstance(command, cmd.UseSamplePhotos):
            return await self.attach_photos(session, sample_set_id=command.sample_set_id)
        if isinstance(command, cmd.SkipPhotos):
            return FlowStep(self.skip_photos(session), None)
        if isinstance(command, cmd.ContinuePastPhotoQc):
            return FlowStep(self.continue_past_photo_qc(session), None)
        if isinstance(command, cmd.RunAnalysis):
            return await self.run_analysis(session)
        if isinstance(command, cmd.RequestRecommendations):
            return FlowStep(self.open_risk_check(session), None)
        if isinstance(command, cmd.AnswerRiskCheck):
            if command.answer == RiskAnswer.SKIP:
                return FlowStep(self.skip_risk_check(session), None)
            return await self.answer_risk_check(session, command.answer)
        if isinstance(command, cmd.SubmitBudget):
            return FlowStep(
                self.submit_budget(session, command.budget_tier, command.skipped), None
            )
        if isinstance(command, cmd.RerankProducts):
            return await self.build_product_pairs(session, command.preference)
        if isinstance(command, cmd.BuildRoutine):
            return await self.build_routine(session, command.preference)
        if isinstance(command, cmd.SelectProduct):
            category = command.category or _category_of(session, command.sku_id)
            if category is None:
                return FlowStep(session, None)
            return await self.select_product(
                session, category, command.variant, command.sku_id, command.offer_id
            )
        if isinstance(command, cmd.ChooseOffer):
            return FlowStep(self.choose_offer(session, command.sku_id, command.offer_id), None)
        if isinstance(command, cmd.Checkout):
            return await self.checkout(
                self.go_to_checkout(session), command.offer_ids, command.forced_outcome
            )
        if isinstance(command, cmd.CheckoutByRoute):
            return await self.checkout_by_route(session, command.forced_outcome)
        if isinstance(command, cmd.CheckoutInternalOnly):
            return await self.checkout_internal_only(session, command.forced_outcome)
        if isinstance(command, cmd.OpenAffiliateList):
            return await self.open_affiliate_list(session)
        if isinstance(command, cmd.Recover):
            return FlowStep(self.recovery_action(session, command.action), None)
        if isinstance(command, cmd.ReportAffiliateOutcome):
            return await self.report_affiliate_outcome(session, command.outcome, command.data)
        if isinstance(command, cmd.StartProductAnalysis):
            return FlowStep(self.start_product_analysis(session), None)
        if isinstance(command, cmd.AnalyzeProduct):
            return self.analyze_product(session, command.photo_url)
        if isinstance(command, cmd.Restart):
            return FlowStep(self.restart_session(session), None)
        assert_never(command)


def _category_of(session: Session, sku_id: str) -> str | None:
    """Categoria do par que contém o sku (premium ou dupe)."""
    pairs = session.product_pairs
    if pairs is None:
        return None
    for pair in [*pairs.am, *pairs.pm]:
        if sku_id in (pair.premium.product.sku_id, pair.dupe.product.sku_id):
            return pair.category
    return None
