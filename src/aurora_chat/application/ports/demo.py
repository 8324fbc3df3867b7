"""Implementação local (demo) das operações de fluxo.

Resultados determinísticos dado o `random.Random` injetado; nenhuma
chamada de rede. O estado avança diretamente, sem merge de patch.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from aurora_chat.adapters.envelope.models import ChatReply
from aurora_chat.application.ports import catalog
from aurora_chat.domain.checkout_routes import CheckoutItem, analyze_checkout_routes
from aurora_chat.domain.enums import (
    AffiliateOutcome,
    BudgetTier,
    CheckoutOutcome,
    Language,
    Market,
    PhotoSlotId,
    ProductVariant,
    QcStatus,
    RiskAnswer,
    RoutePreference,
)
from aurora_chat.domain.flow_states import FlowState
from aurora_chat.domain.models import (
    AnalysisResult,
    CheckoutResult,
    DiagnosisResult,
    Offer,
    PhotoSlot,
    PriceRange,
    Product,
    ProductOption,
    ProductPair,
    ProductPairs,
    ProductSelection,
    RoutineSet,
    Session,
)
from aurora_chat.domain.photo_qc import (
    SLOT_ORDER,
    QcIssue,
    next_retry_count,
    resolve_photo_gate,
    simulate_photo_qc,
)
from aurora_chat.domain.protocols.backend_port import BackendPort, FlowStep
from aurora_chat.observability.logging import get_logger, short_id
from aurora_chat.utils.ids import IdGenerator

logger: logging.Logger = get_logger(__name__)

PhotoQc = Callable[[random.Random], QcStatus]


def _count_decision(session: Session, skipped: bool) -> int:
    """Decisões reais incrementam o contador; pulos não."""
    return session.clarification_count if skipped else session.clarification_count + 1


def sort_offers(offers: list[Offer], preference: RoutePreference | None) -> list[Offer]:
    """cheaper → preço; fastest → prazo; padrão → confiabilidade decrescente."""
    if preference == RoutePreference.CHEAPER:
        return sorted(offers, key=lambda offer: offer.price)
    if preference == RoutePreference.FASTEST:
        return sorted(offers, key=lambda offer: offer.shipping_days)
    return sorted(offers, key=lambda offer: offer.reliability_score, reverse=True)


def unique_by_category(pairs: Sequence[ProductPair]) -> list[ProductPair]:
    """Um par por categoria (AM e PM repetem o limpador, por exemplo)."""
    seen: set[str] = set()
    out: list[ProductPair] = []
    for pair in pairs:
        if pair.category in seen:
            continue
        seen.add(pair.category)
        out.append(pair)
    return out


def _routine_step(order: int, product: Product, offers: list[Offer]) -> dict[str, Any]:
    return {
        "order": order,
        "category": product.category,
        "product": product.model_dump(mode="json"),
        "offers": [offer.model_dump(mode="json") for offer in offers],
    }


class DemoPort(BackendPort):
    """Fluxo completo sem backend, a partir do catálogo fixo."""

    def __init__(
        self,
        rng: random.Random,
        ids: IdGenerator,
        photo_qc: PhotoQc = simulate_photo_qc,
    ) -> None:
        self._rng = rng
        self._ids = ids
        self._photo_qc = photo_qc

    async def submit_diagnosis(
        self, session: Session, diagnosis: DiagnosisResult | None, skipped: bool
    ) -> FlowStep[None]:
        updated = session.model_copy(
            update={
                "state": FlowState.S3_PHOTO_OPTION,
                "diagnosis": diagnosis if diagnosis is not None else session.diagnosis,
                "clarification_count": _count_decision(session, skipped),
            }
        )
        return FlowStep(updated, None)

    async def submit_context(
        self,
        session: Session,
        market: Market | None,
        budget_tier: BudgetTier | None,
        skipped: bool,
    ) -> FlowStep[None]:
        updated = session.model_copy(
            update={
                "state": FlowState.S3_PHOTO_OPTION,
                "market": market or Market.US,
                "budget_tier": budget_tier or BudgetTier.MID,
                "clarification_count": _count_decision(session, skipped),
            }
        )
        return FlowStep(updated, None)

    def _attach_sample(self, photos: dict[PhotoSlotId, PhotoSlot], sample_set_id: str) -> None:
        sample = catalog.find_sample_set(sample_set_id)
        if sample is None:
            logger.warning("demo_sample_set_unknown", extra={"sample_set_id": sample_set_id[:40]})
            return
        photos[PhotoSlotId.DAYLIGHT] = PhotoSlot(
            id=PhotoSlotId.DAYLIGHT, preview=sample.daylight_url, qc_status=QcStatus.PASSED
        )
        photos[PhotoSlotId.INDOOR_WHITE] = PhotoSlot(
            id=PhotoSlotId.INDOOR_WHITE, preview=sample.indoor_url, qc_status=QcStatus.PASSED
        )

    async def attach_photos(
        self,
        session: Session,
        photos: Mapping[PhotoSlotId, PhotoSlot],
        sample_set_id: str | None,
        consent: bool,
    ) -> FlowStep[list[QcIssue]]:
        processed = dict(session.photos)
        attached: list[PhotoSlotId] = []

        if sample_set_id:
            self._attach_sample(processed, sample_set_id)
        else:
            for slot_id in SLOT_ORDER:
                incoming = photos.get(slot_id)
                if incoming is None:
                    continue
                processed[slot_id] = incoming.model_copy(
                    update={
                        "id": slot_id,
                        "qc_status": self._photo_qc(self._rng),
                        "retry_count": next_retry_count(session.photos.get(slot_id), incoming),
                    }
                )
                attached.append(slot_id)

        issues, next_state = resolve_photo_gate({slot: processed[slot] for slot in attached})
        updated = session.model_copy(
            update={
                "state": next_state,
                "photos": processed,
                "sample_photo_set_id": sample_set_id,
            }
        )
        return FlowStep(updated, issues)

    async def run_analysis(self, session: Session) -> FlowStep[AnalysisResult]:
        intent = session.intent_id or "routine"
        needs_actives = catalog.intent_needs_actives(intent)
        analysis = AnalysisResult(
            features=catalog.analysis_features_for(intent),
            strategy=catalog.ACTIVE_STRATEGY if needs_actives else catalog.BASIC_STRATEGY,
            needs_risk_check=needs_actives,
        )
        updated = session.model_copy(
            update={"state": FlowState.S5_ANALYSIS_SUMMARY, "analysis": analysis}
        )
        return FlowStep(updated, analysis)

    async def answer_risk_check(self, session: Session, answer: RiskAnswer) -> FlowStep[None]:
        analysis = session.analysis
        if analysis is not None:
            analysis = analysis.model_copy(
                update={"risk_answered": True, "using_actives": answer == RiskAnswer.YES}
            )
        updated = session.model_copy(
            update={
                "state": FlowState.S6_BUDGET,
                "analysis": analysis,
                "clarification_count": _count_decision(session, answer == RiskAnswer.SKIP),
            }
        )
        return FlowStep(updated, None)

    async def build_routine(
        self, session: Session, preference: RoutePreference | None
    ) -> FlowStep[RoutineSet]:
        """Rotina AM/PM do catálogo; a oferta mais confiável de cada passo já vem escolhida."""
        budget = session.budget_tier or BudgetTier.MID
        am_products, pm_products = catalog.routine_products(session.intent_id or "routine")
        am = [self._routine_offers(session, product, budget) for product in am_products]
        pm = [self._routine_offers(session, product, budget) for product in pm_products]

        steps = [*am, *pm]
        routine = RoutineSet(
            am_steps=[_routine_step(order, *step) for order, step in enumerate(am, start=1)],
            pm_steps=[_routine_step(order, *step) for order, step in enumerate(pm, start=1)],
            total_estimate=PriceRange(
                min=round(sum(min(offer.price for offer in offers) for _, offers in steps)),
                max=round(sum(max(offer.price for offer in offers) for _, offers in steps)),
                currency=catalog.currency_for(session.market),
            ),
            preference=str(preference) if preference else None,
        )
        selected = {
            product.sku_id: max(offers, key=lambda offer: offer.reliability_score).offer_id
            for product, offers in steps
        }
        updated = session.model_copy(
            update={
                "state": FlowState.S7_PRODUCT_RECO,
                "routine": routine,
                "selected_offers": selected,
            }
        )
        return FlowStep(updated, routine)

    def _routine_offers(
        self, session: Session, product: Product, budget: BudgetTier
    ) -> tuple[Product, list[Offer]]:
        return product, catalog.generate_offers(product, session.market, budget, self._rng)

    def _pair(
        self, session: Session, category: str, preference: RoutePreference | None
    ) -> ProductPair:
        premium = catalog.PREMIUM_PRODUCTS[category]
        gentler = preference == RoutePreference.GENTLER
        dupe = (catalog.GENTLER_PRODUCTS if gentler else catalog.DUPE_PRODUCTS)[category]

        market = session.market
        premium_offers = catalog.generate_offers(premium, market, BudgetTier.HIGH, self._rng)
        dupe_offers = catalog.generate_offers(dupe, market, BudgetTier.LOW, self._rng)
        return ProductPair(
            category=category,
            premium=ProductOption(product=premium, offers=sort_offers(premium_offers, preference)),
            dupe=ProductOption(product=dupe, offers=sort_offers(dupe_offers, preference)),
        )

    async def build_product_pairs(
        self, session: Session, preference: RoutePreference | None
    ) -> FlowStep[ProductPairs]:
        pairs = ProductPairs(
            am=[self._pair(session, category, preference) for category in catalog.AM_CATEGORIES],
            pm=[self._pair(session, category, preference) for category in catalog.PM_CATEGORIES],
        )
        updated = session.model_copy(update={"product_pairs": pairs})
        return FlowStep(updated, pairs)

    async def select_product(
        self,
        session: Session,
        category: str,
        variant: ProductVariant,
        sku_id: str | None,
        offer_id: str | None,
    ) -> FlowStep[None]:
        selections = {
            **session.product_selections,
            category: ProductSelection(type=variant, offer_id=offer_id),
        }
        return FlowStep(session.model_copy(update={"product_selections": selections}), None)

    def _checkout_total(self, session: Session) -> float:
        if session.product_pairs is not None:
            pairs = unique_by_category([*session.product_pairs.am, *session.product_pairs.pm])
            total = analyze_checkout_routes(pairs, session.product_selections).internal_total
            if total > 0:
                return total
        if session.routine is not None and session.routine.total_estimate is not None:
            return session.routine.total_estimate.max
        return catalog.DEFAULT_CHECKOUT_TOTAL

    def _checkout_currency(self, session: Session) -> str:
        if session.routine is not None and session.routine.total_estimate is not None:
            return session.routine.total_estimate.currency
        return catalog.currency_for(session.market)

    async def checkout(
        self,
        session: Session,
        offer_ids: Sequence[str],
        forced_outcome: CheckoutOutcome | None,
    ) -> FlowStep[CheckoutResult]:
        outcome = forced_outcome or session.forced_outcome or CheckoutOutcome.SUCCESS

        if outcome == CheckoutOutcome.SUCCESS:
            result = CheckoutResult(
                success=True,
                order_id=self._ids.new_order_id(),
                total=self._checkout_total(session),
                currency=self._checkout_currency(session),
                eta=catalog.CHECKOUT_ETA,
            )
            next_state = FlowState.S9_SUCCESS
        else:
            code, label = catalog.CHECKOUT_FAILURE_REASONS[outcome.value]
            result = CheckoutResult(success=False, reason_code=code, reason_label=label)
            next_state = FlowState.S10_FAILURE

        logger.info(
            "demo_checkout_completed",
            extra={"brief_id": short_id(session.brief_id), "success": result.success},
        )
        updated = session.model_copy(update={"state": next_state, "checkout_result": result})
        return FlowStep(updated, result)

    async def resolve_affiliate_items(
        self, session: Session, items: Sequence[CheckoutItem]
    ) -> FlowStep[list[CheckoutItem]]:
        return FlowStep(session, list(items))

    async def report_affiliate_outcome(
        self,
        session: Session,
        outcome: AffiliateOutcome,
        data: Mapping[str, Any] | None,
    ) -> FlowStep[None]:
        return FlowStep(session, None)

    async def send_message(
        self,
        session: Session,
        text: str,
        language: Language,
        anchors: Mapping[str, str] | None,
    ) -> FlowStep[ChatReply]:
        answer = catalog.DEMO_CHAT_ANSWERS.get(str(language), catalog.DEMO_CHAT_ANSWERS["EN"])
        return FlowStep(session, ChatReply(answer=answer))
