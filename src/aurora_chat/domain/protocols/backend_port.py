"""Contrato das operações de fluxo com duas implementações (demo e live).

Toda operação recebe a Session atual e devolve FlowStep(session, result);
nenhuma muta a sessão recebida.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Generic, TypeVar

if TYPE_CHECKING:
    from aurora_chat.adapters.envelope.models import ChatReply
    from aurora_chat.domain.checkout_routes import CheckoutItem
    from aurora_chat.domain.enums import (
        AffiliateOutcome,
        BudgetTier,
        CheckoutOutcome,
        Language,
        Market,
        PhotoSlotId,
        ProductVariant,
        RiskAnswer,
        RoutePreference,
    )
    from aurora_chat.domain.models import (
        AnalysisResult,
        CheckoutResult,
        DiagnosisResult,
        PhotoSlot,
        ProductPairs,
        RoutineSet,
        Session,
    )
    from aurora_chat.domain.photo_qc import QcIssue

T = TypeVar("T")


@dataclass(slots=True, frozen=True)
class FlowStep(Generic[T]):
    """Sessão resultante + resultado tipado da operação."""

    session: Session
    result: T


class BackendPort(ABC):
    """Operações dual-mode do orquestrador."""

    @abstractmethod
    async def submit_diagnosis(
        self, session: Session, diagnosis: DiagnosisResult | None, skipped: bool
    ) -> FlowStep[None]: ...

    @abstractmethod
    async def submit_context(
        self,
        session: Session,
        market: Market | None,
        budget_tier: BudgetTier | None,
        skipped: bool,
    ) -> FlowStep[None]: ...

    @abstractmethod
    async def attach_photos(
        self,
        session: Session,
        photos: Mapping[PhotoSlotId, PhotoSlot],
        sample_set_id: str | None,
        consent: bool,
    ) -> FlowStep[list[QcIssue]]: ...

    @abstractmethod
    async def run_analysis(self, session: Session) -> FlowStep[AnalysisResult]: ...

    @abstractmethod
    async def answer_risk_check(self, session: Session, answer: RiskAnswer) -> FlowStep[None]: ...

    @abstractmethod
    async def build_product_pairs(
        self, session: Session, preference: RoutePreference | None
    ) -> FlowStep[ProductPairs]: ...

    @abstractmethod
    async def build_routine(
        self, session: Session, preference: RoutePreference | None
    ) -> FlowStep[RoutineSet]: ...

    @abstractmethod
    async def select_product(
        self,
        session: Session,
        category: str,
        variant: ProductVariant,
        sku_id: str | None,
        offer_id: str | None,
    ) -> FlowStep[None]: ...

    @abstractmethod
    async def checkout(
        self,
        session: Session,
        offer_ids: Sequence[str],
        forced_outcome: CheckoutOutcome | None,
    ) -> FlowStep[CheckoutResult]: ...

    @abstractmethod
    async def resolve_affiliate_items(
        self, session: Session, items: Sequence[CheckoutItem]
    ) -> FlowStep[list[CheckoutItem]]: ...

    @abstractmethod
    async def report_affiliate_outcome(
        self,
        session: Session,
        outcome: AffiliateOutcome,
        data: Mapping[str, Any] | None,
    ) -> FlowStep[None]: ...

    @abstractmethod
    async def send_message(
        self,
        session: Session,
        text: str,
        language: Language,
        anchors: Mapping[str, str] | None,
    ) -> FlowStep[ChatReply]: ...
