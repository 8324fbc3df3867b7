"""Modelos de domínio: sessão, fotos, análise, produtos, ofertas e checkout.

Nomes de campo Python são snake_case; o wire do backend usa alguns nomes
camelCase (productPairs, qcStatus, retryCount...), declarados como alias.
Serializar sempre com `by_alias=True` ao falar com o backend/UI.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

from aurora_chat.domain.enums import (
    BudgetTier,
    CheckoutOutcome,
    Market,
    PhotoSlotId,
    ProductVariant,
    PurchaseRoute,
    QcStatus,
    SessionMode,
    SkinConcern,
    SkinType,
)
from aurora_chat.domain.flow_states import INITIAL_STATE, FlowState

Confidence = Literal["pretty_sure", "somewhat_sure", "not_sure"]
Suitability = Literal["excellent", "good", "moderate", "poor"]


class WireModel(BaseModel):
    """Base: aceita nome Python ou alias do wire na entrada."""

    model_config = ConfigDict(populate_by_name=True)


# === Fotos ===


class PhotoSlot(WireModel):
    """Foto de um slot fixo (daylight / indoor_white)."""

    id: PhotoSlotId | None = None
    upload_id: str | None = Field(default=None, alias="uploadId")
    preview: str | None = Field(
        default=None,
        validation_alias=AliasChoices("preview", "preview_url", "url"),
        serialization_alias="preview",
    )
    qc_status: QcStatus | None = Field(default=None, alias="qcStatus")
    retry_count: int = Field(default=0, alias="retryCount")
    # Conteúdo binário só existe no cliente; nunca é serializado.
    content: bytes | None = Field(default=None, exclude=True)
    filename: str | None = Field(default=None, exclude=True)


# === Diagnóstico e análise ===


class DiagnosisResult(WireModel):
    """Respostas do questionário de diagnóstico."""

    skin_type: SkinType | None = Field(default=None, alias="skinType")
    concerns: list[SkinConcern] = Field(default_factory=list)
    current_routine: Literal["none", "basic", "full"] = Field(
        default="none", alias="currentRoutine"
    )
    barrier_status: str | None = Field(default=None, alias="barrierStatus")


class AnalysisFeature(WireModel):
    observation: str
    confidence: Confidence


class AnalysisResult(WireModel):
    """Resultado da análise de pele (foto + questionário)."""

    features: list[AnalysisFeature] = Field(default_factory=list)
    strategy: str = ""
    needs_risk_check: bool = False
    risk_answered: bool | None = None
    using_actives: bool | None = None


# === Produtos e ofertas ===


class Product(WireModel):
    sku_id: str
    name: str = ""
    brand: str = ""
    category: str = ""
    description: str = ""
    image_url: str = ""
    size: str = ""
    fit_tags: list[str] = Field(default_factory=list)


class Offer(WireModel):
    """Oferta de um vendedor para um produto.

    Ofertas afiliadas exigem `affiliate_url` (link de saída real).
    """

    offer_id: str
    seller: str = ""
    price: float = 0.0
    currency: str = "USD"
    original_price: float | None = None
    shipping_days: int = 0
    returns_policy: str = ""
    reliability_score: float = 0.0
    badges: list[str] = Field(default_factory=list)
    in_stock: bool = True
    purchase_route: PurchaseRoute = PurchaseRoute.INTERNAL_CHECKOUT
    affiliate_url: str | None = None

    @model_validator(mode="after")
    def require_affiliate_url(self) -> Offer:
        """Oferta afiliada sem URL de saída é inválida."""
        if self.purchase_route == PurchaseRoute.AFFILIATE_OUTBOUND and not self.affiliate_url:
            msg = "affiliate_outbound requer affiliate_url"
            raise ValueError(msg)
        return self

    @property
    def is_affiliate(self) -> bool:
        return self.purchase_route == PurchaseRoute.AFFILIATE_OUTBOUND


class ProductOption(WireModel):
    """Um lado do par: produto + ofertas já ordenadas por preferência."""

    product: Product
    offers: list[Offer] = Field(default_factory=list)


class ProductPair(WireModel):
    """Par premium × dupe para uma categoria."""

    category: str
    similarity: float | None = None
    tradeoff_note: str | None = None
    premium: ProductOption
    dupe: ProductOption

    def option(self, variant: ProductVariant) -> ProductOption:
        return self.premium if variant == ProductVariant.PREMIUM else self.dupe


class ProductPairs(WireModel):
    am: list[ProductPair] = Field(default_factory=list)
    pm: list[ProductPair] = Field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.am and not self.pm


class ProductSelection(WireModel):
    type: ProductVariant
    offer_id: str | None = Field(default=None, alias="offerId")


class PriceRange(WireModel):
    min: float
    max: float
    currency: str = "USD"


class RoutineSet(WireModel):
    """Rotina AM/PM montada pelo backend (passos opacos para o core)."""

    am_steps: list[dict[str, Any]] = Field(default_factory=list)
    pm_steps: list[dict[str, Any]] = Field(default_factory=list)
    total_estimate: PriceRange | None = None
    preference: str | None = None


class CheckoutResult(WireModel):
    success: bool
    order_id: str | None = None
    total: float | None = None
    currency: str | None = None
    eta: str | None = None
    reason_code: str | None = None
    reason_label: str | None = None


# === Análise de produto avulso ===


class Mechanism(WireModel):
    vector: str
    strength: int


class IngredientReport(WireModel):
    beneficial: list[str] = Field(default_factory=list)
    caution: list[str] = Field(default_factory=list)
    veto: str | None = None


class UsageAdvice(WireModel):
    timing: Literal["AM", "PM", "both"] = "both"
    notes: str = ""


class DupeRecommendation(WireModel):
    name: str
    brand: str
    reason: str
    savings_percent: int = Field(alias="savingsPercent")


class SkinProfileMatch(WireModel):
    skin_type: SkinType = Field(alias="skinType")
    matched_concerns: list[SkinConcern] = Field(default_factory=list, alias="matchedConcerns")
    unmatched_concerns: list[SkinConcern] = Field(default_factory=list, alias="unmatchedConcerns")


class ProductAnalysisResult(WireModel):
    product_name: str = Field(alias="productName")
    brand: str
    match_score: int = Field(alias="matchScore")
    suitability: Suitability
    mechanisms: list[Mechanism] = Field(default_factory=list)
    ingredients: IngredientReport = Field(default_factory=IngredientReport)
    usage_advice: UsageAdvice = Field(default_factory=UsageAdvice, alias="usageAdvice")
    dupe_recommendation: DupeRecommendation | None = Field(
        default=None, alias="dupeRecommendation"
    )
    skin_profile_match: SkinProfileMatch | None = Field(default=None, alias="skinProfileMatch")


# === Sessão ===

IDENTITY_FIELDS: frozenset[str] = frozenset({"brief_id", "trace_id", "mode", "aurora_uid"})
"""Campos de identidade: nunca sobrescritos por patch do backend."""


class Session(WireModel):
    """Agregado único de uma conversa.

    Responsabilidades:
    - Identidade (brief_id/trace_id/mode) fixa por toda a vida da sessão
    - Estado do fluxo (`state`), alterado apenas pelo orquestrador
    - Sub-registros acumulados a cada etapa
    """

    brief_id: str
    trace_id: str
    mode: SessionMode = SessionMode.DEMO
    aurora_uid: str | None = None
    state: FlowState = INITIAL_STATE
    clarification_count: int = 0

    intent_id: str | None = None
    intent_text: str | None = None
    market: Market | None = None
    budget_tier: BudgetTier | None = None
    diagnosis: DiagnosisResult | None = None
    photos: dict[PhotoSlotId, PhotoSlot] = Field(default_factory=dict)
    sample_photo_set_id: str | None = None
    analysis: AnalysisResult | None = None
    routine: RoutineSet | None = None
    product_pairs: ProductPairs | None = Field(default=None, alias="productPairs")
    selected_offers: dict[str, str] = Field(default_factory=dict)
    product_selections: dict[str, ProductSelection] = Field(default_factory=dict)
    checkout_result: CheckoutResult | None = None
    forced_outcome: CheckoutOutcome | None = None
    product_photo_url: str | None = None
    product_analysis: ProductAnalysisResult | None = Field(default=None, alias="productAnalysis")

    def to_wire(self) -> dict[str, Any]:
        """Serializa no formato do wire (aliases camelCase, JSON-safe)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class SessionPatch(WireModel):
    """Sessão parcial vinda do backend (+ next_state explícito).

    Só os campos efetivamente enviados entram em `model_fields_set`;
    é isso que o merge usa para decidir o que sobrescrever.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    next_state: FlowState | None = None
    state: FlowState | None = None

    # Identidade pode vir forjada no payload; o merge a ignora.
    brief_id: str | None = None
    trace_id: str | None = None
    mode: SessionMode | None = None
    aurora_uid: str | None = None

    clarification_count: int | None = None
    intent_id: str | None = None
    intent_text: str | None = None
    market: Market | None = None
    budget_tier: BudgetTier | None = None
    diagnosis: DiagnosisResult | None = None
    photos: dict[PhotoSlotId, PhotoSlot] | None = None
    sample_photo_set_id: str | None = None
    analysis: AnalysisResult | None = None
    routine: RoutineSet | None = None
    product_pairs: ProductPairs | None = Field(default=None, alias="productPairs")
    selected_offers: dict[str, str] | None = None
    product_selections: dict[str, ProductSelection] | None = None
    checkout_result: CheckoutResult | None = None
    forced_outcome: CheckoutOutcome | None = None
    product_photo_url: str | None = None
    product_analysis: ProductAnalysisResult | None = Field(default=None, alias="productAnalysis")

    @property
    def has_explicit_state(self) -> bool:
        """True quando o backend decidiu o próximo estado."""
        return self.next_state is not None or self.state is not None
