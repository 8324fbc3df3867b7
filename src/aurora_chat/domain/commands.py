"""Comandos da UI como tipos fechados.

A UI envia `action_id` (string) + `data` opcional. `parse_action_id` é o
único ponto que interpreta prefixos; dali em diante o orquestrador só vê
instâncias das dataclasses abaixo.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from aurora_chat.domain.enums import (
    AffiliateOutcome,
    BudgetTier,
    CheckoutOutcome,
    Market,
    ProductVariant,
    RecoveryAction,
    RiskAnswer,
    RoutePreference,
)
from aurora_chat.domain.models import DiagnosisResult
from aurora_chat.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

MAX_ACTION_ID_LENGTH = 200


@dataclass(slots=True, frozen=True)
class SelectIntent:
    intent_id: str
    intent_text: str | None = None


@dataclass(slots=True, frozen=True)
class SubmitDiagnosis:
    diagnosis: DiagnosisResult | None = None
    skipped: bool = False


@dataclass(slots=True, frozen=True)
class SubmitContext:
    market: Market | None = None
    budget_tier: BudgetTier | None = None
    skipped: bool = False


@dataclass(slots=True, frozen=True)
class UseSamplePhotos:
    sample_set_id: str


@dataclass(slots=True, frozen=True)
class SkipPhotos:
    pass


@dataclass(slots=True, frozen=True)
class ContinuePastPhotoQc:
    pass


@dataclass(slots=True, frozen=True)
class RunAnalysis:
    pass


@dataclass(slots=True, frozen=True)
class RequestRecommendations:
    pass


@dataclass(slots=True, frozen=True)
class AnswerRiskCheck:
    answer: RiskAnswer


@dataclass(slots=True, frozen=True)
class SubmitBudget:
    budget_tier: BudgetTier | None = None
    skipped: bool = False


@dataclass(slots=True, frozen=True)
class BuildRoutine:
    preference: RoutePreference | None = None


@dataclass(slots=True, frozen=True)
class RerankProducts:
    preference: RoutePreference


@dataclass(slots=True, frozen=True)
class SelectProduct:
    variant: ProductVariant
    sku_id: str
    category: str | None = None
    offer_id: str | None = None


@dataclass(slots=True, frozen=True)
class ChooseOffer:
    sku_id: str
    offer_id: str


@dataclass(slots=True, frozen=True)
class Checkout:
    offer_ids: tuple[str, ...] | None = None
    forced_outcome: CheckoutOutcome | None = None


@dataclass(slots=True, frozen=True)
class CheckoutByRoute:
    """Escolhe o caminho (interno, afiliado ou misto) pela rota das seleções."""

    forced_outcome: CheckoutOutcome | None = None


@dataclass(slots=True, frozen=True)
class CheckoutInternalOnly:
    forced_outcome: CheckoutOutcome | None = None


@dataclass(slots=True, frozen=True)
class OpenAffiliateList:
    pass


@dataclass(slots=True, frozen=True)
class Recover:
    action: RecoveryAction


@dataclass(slots=True, frozen=True)
class ReportAffiliateOutcome:
    outcome: AffiliateOutcome
    data: Mapping[str, Any] = field(default_factory=dict)


@dataclass(slots=True, frozen=True)
class StartProductAnalysis:
    pass


@dataclass(slots=True, frozen=True)
class AnalyzeProduct:
    photo_url: str


@dataclass(slots=True, frozen=True)
class Restart:
    pass


Command = (
    SelectIntent
    | SubmitDiagnosis
    | SubmitContext
    | UseSamplePhotos
    | SkipPhotos
    | ContinuePastPhotoQc
    | RunAnalysis
    | RequestRecommendations
    | AnswerRiskCheck
    | SubmitBudget
    | BuildRoutine
    | RerankProducts
    | SelectProduct
    | ChooseOffer
    | Checkout
    | CheckoutByRoute
    | CheckoutInternalOnly
    | OpenAffiliateList
    | Recover
    | ReportAffiliateOutcome
    | StartProductAnalysis
    | AnalyzeProduct
    | Restart
)

# Ações sem parâmetros
_SIMPLE_ACTIONS: dict[str, Command] = {
    "photo_skip": SkipPhotos(),
    "qc_continue": ContinuePastPhotoQc(),
    "qc_reupload": ContinuePastPhotoQc(),
    "analysis_skip": RunAnalysis(),
    "post_analysis_recos": RequestRecommendations(),
    "start_product_analysis": StartProductAnalysis(),
    "product_analysis_another": StartProductAnalysis(),
    "restart": Restart(),
    "open_affiliate_list": OpenAffiliateList(),
    "set_open_affiliate_list": OpenAffiliateList(),
    "diagnosis_skip": SubmitDiagnosis(skipped=True),
    "context_skip": SubmitContext(skipped=True),
    "budget_skip": SubmitBudget(skipped=True),
}

# Aliases de preferência aceitos pela UI
_PREFERENCE_ALIASES: dict[str, str] = {"fastest_delivery": "fastest"}


def _str(data: Mapping[str, Any], *keys: str) -> str | None:
    for key in keys:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _enum(enum_type: type, raw: str | None) -> Any:
    if raw is None:
        return None
    try:
        return enum_type(raw)
    except ValueError:
        return None


def _parse_diagnosis(data: Mapping[str, Any]) -> Command | None:
    raw = data.get("diagnosis", data)
    try:
        diagnosis = DiagnosisResult.model_validate(raw)
    except ValidationError:
        return None
    return SubmitDiagnosis(diagnosis=diagnosis)


def _parse_checkout(data: Mapping[str, Any]) -> Command:
    offer_ids = data.get("offer_ids")
    ids = None
    if isinstance(offer_ids, list):
        ids = tuple(item for item in offer_ids if isinstance(item, str) and item)
    forced = _enum(CheckoutOutcome, _str(data, "forced_outcome", "forcedOutcome"))
    return Checkout(offer_ids=ids, forced_outcome=forced)


def _parse_prefixed(action_id: str, data: Mapping[str, Any]) -> Command | None:
    if action_id.startswith("intent_"):
        return SelectIntent(
            intent_id=action_id.removeprefix("intent_"),
            intent_text=_str(data, "intent_text", "label"),
        )

    if action_id.startswith("photo_use_sample_"):
        return UseSamplePhotos(sample_set_id=action_id.removeprefix("photo_use_sample_"))

    if action_id.startswith("risk_check_"):
        answer = _enum(RiskAnswer, action_id.removeprefix("risk_check_"))
        return AnswerRiskCheck(answer=answer) if answer is not None else None

    if action_id.startswith("pref_"):
        raw = action_id.removeprefix("pref_")
        preference = _enum(RoutePreference, _PREFERENCE_ALIASES.get(raw, raw))
        return RerankProducts(preference=preference) if preference is not None else None

    for variant in ProductVariant:
        prefix = f"select_{variant}_"
        if action_id.startswith(prefix):
            return SelectProduct(
                variant=variant,
                sku_id=action_id.removeprefix(prefix),
                category=_str(data, "category"),
                offer_id=_str(data, "offer_id", "offerId"),
            )

    if action_id.startswith("recovery_"):
        action = _enum(RecoveryAction, action_id.removeprefix("recovery_"))
        return Recover(action=action) if action is not None else None

    if action_id.startswith("affiliate_outcome_"):
        outcome = _enum(AffiliateOutcome, action_id.removeprefix("affiliate_outcome_"))
        if outcome is None:
            return None
        return ReportAffiliateOutcome(outcome=outcome, data=dict(data))

    return None


def parse_action_id(action_id: str, data: Mapping[str, Any] | None = None) -> Command | None:
    """Converte (action_id, data) da UI em um comando tipado.

    Retorna None para ações desconhecidas ou com dados insuficientes;
    nunca levanta.
    """
    action_id = (action_id or "").strip()[:MAX_ACTION_ID_LENGTH]
    payload: Mapping[str, Any] = data if isinstance(data, Mapping) else {}

    if action_id in _SIMPLE_ACTIONS:
        return _SIMPLE_ACTIONS[action_id]

    if action_id == "diagnosis_submit":
        return _parse_diagnosis(payload)

    if action_id == "try_sample":
        sample_set_id = _str(payload, "sample_set_id", "sampleSetId")
        return UseSamplePhotos(sample_set_id=sample_set_id or "sample_set_A")

    if action_id == "context_submit":
        return SubmitContext(
            market=_enum(Market, _str(payload, "market")),
            budget_tier=_enum(BudgetTier, _str(payload, "budget", "budget_tier")),
        )

    if action_id == "budget_submit":
        budget = _enum(BudgetTier, _str(payload, "budget", "budget_tier"))
        return SubmitBudget(budget_tier=budget)

    if action_id in ("checkout", "checkout_confirm"):
        return _parse_checkout(payload)

    if action_id == "checkout_selection":
        return CheckoutByRoute(forced_outcome=_parse_checkout(payload).forced_outcome)

    if action_id in ("checkout_internal_only", "set_checkout_internal_only"):
        return CheckoutInternalOnly(forced_outcome=_parse_checkout(payload).forced_outcome)

    if action_id == "build_routine":
        raw = _str(payload, "preference")
        preference = _enum(RoutePreference, _PREFERENCE_ALIASES.get(raw, raw) if raw else None)
        return BuildRoutine(preference=preference)

    if action_id == "select_offer":
        sku_id = _str(payload, "sku_id")
        offer_id = _str(payload, "offer_id", "offerId")
        if sku_id is None or offer_id is None:
            return None
        return ChooseOffer(sku_id=sku_id, offer_id=offer_id)

    if action_id == "product_photo_upload":
        preview = _str(payload, "preview", "photo_url")
        return AnalyzeProduct(photo_url=preview) if preview is not None else None

    command = _parse_prefixed(action_id, payload)
    if command is None:
        logger.info("action_id_unrecognized", extra={"action_id": action_id[:40]})
    return command
