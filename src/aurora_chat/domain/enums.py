"""Enumerações fechadas do domínio (valores iguais aos do wire)."""

from __future__ import annotations

from enum import StrEnum


class SessionMode(StrEnum):
    """Modo de execução da sessão."""

    DEMO = "demo"
    LIVE = "live"


class Language(StrEnum):
    """Idiomas suportados na UI."""

    EN = "EN"
    CN = "CN"


class Market(StrEnum):
    """Mercado (define moeda e catálogo de ofertas)."""

    US = "US"
    EU = "EU"
    UK = "UK"
    CANADA = "Canada"
    SINGAPORE = "Singapore"
    GLOBAL = "Global"


class BudgetTier(StrEnum):
    """Faixa de orçamento escolhida."""

    LOW = "$"
    MID = "$$"
    HIGH = "$$$"


class PhotoSlotId(StrEnum):
    """Slots fixos de foto."""

    DAYLIGHT = "daylight"
    INDOOR_WHITE = "indoor_white"


class QcStatus(StrEnum):
    """Resultado do controle de qualidade da foto."""

    PENDING = "pending"
    PASSED = "passed"
    TOO_DARK = "too_dark"
    HAS_FILTER = "has_filter"
    BLURRY = "blurry"


class PurchaseRoute(StrEnum):
    """Rota de compra de uma oferta."""

    INTERNAL_CHECKOUT = "internal_checkout"
    AFFILIATE_OUTBOUND = "affiliate_outbound"


class ProductVariant(StrEnum):
    """Variante escolhida dentro de um par."""

    PREMIUM = "premium"
    DUPE = "dupe"


class RoutePreference(StrEnum):
    """Preferência de reordenação dos pares."""

    CHEAPER = "cheaper"
    GENTLER = "gentler"
    FASTEST = "fastest"
    KEEP = "keep"


class RiskAnswer(StrEnum):
    """Resposta à pergunta sobre ativos em uso."""

    YES = "yes"
    NO = "no"
    NOT_SURE = "not_sure"
    SKIP = "skip"


class CheckoutOutcome(StrEnum):
    """Desfecho forçado do checkout em demo."""

    SUCCESS = "success"
    FAILURE_PAYMENT = "failure_payment"
    FAILURE_EXPIRED = "failure_expired"


class RecoveryAction(StrEnum):
    """Ações do sub-fluxo de recuperação."""

    SWITCH_OFFER = "switch_offer"
    SWITCH_PAYMENT = "switch_payment"
    TRY_AGAIN = "try_again"
    ADJUST_ROUTINE = "adjust_routine"


class AffiliateOutcome(StrEnum):
    """Desfecho reportado após redirecionamento afiliado."""

    SUCCESS = "success"
    FAILED = "failed"
    SAVE = "save"


class SkinType(StrEnum):
    OILY = "oily"
    DRY = "dry"
    COMBINATION = "combination"
    NORMAL = "normal"
    SENSITIVE = "sensitive"


class SkinConcern(StrEnum):
    ACNE = "acne"
    DARK_SPOTS = "dark_spots"
    WRINKLES = "wrinkles"
    DULLNESS = "dullness"
    REDNESS = "redness"
    PORES = "pores"
    DEHYDRATION = "dehydration"
