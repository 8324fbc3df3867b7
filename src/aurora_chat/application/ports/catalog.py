"""Catálogo fixo da demo: produtos, pares premium/dupe, fotos de exemplo e ofertas.

Todo sorteio recebe um `random.Random` explícito; com a mesma semente a
demo gera exatamente as mesmas ofertas.
"""

from __future__ import annotations

import random
from dataclasses import dataclass

from aurora_chat.domain.enums import BudgetTier, Market, PurchaseRoute, SkinConcern, SkinType
from aurora_chat.domain.models import AnalysisFeature, Offer, Product

# === Fotos de exemplo ===

_PHOTO = "https://images.unsplash.com/photo-{}?w=400&h=400&fit=crop"


@dataclass(slots=True, frozen=True)
class SamplePhotoSet:
    id: str
    name_en: str
    name_cn: str
    daylight_url: str
    indoor_url: str
    skin_type: SkinType
    concerns: tuple[SkinConcern, ...]


SAMPLE_PHOTO_SETS: tuple[SamplePhotoSet, ...] = (
    SamplePhotoSet(
        id="sample_set_A",
        name_en="Oily / Acne-prone",
        name_cn="油性 / 易长痘",
        daylight_url=_PHOTO.format("1531746020798-e6953c6e8e04"),
        indoor_url=_PHOTO.format("1544005313-94ddf0286df2"),
        skin_type=SkinType.OILY,
        concerns=(SkinConcern.ACNE, SkinConcern.PORES),
    ),
    SamplePhotoSet(
        id="sample_set_B",
        name_en="Dry / Sensitive",
        name_cn="干性 / 敏感",
        daylight_url=_PHOTO.format("1529626455594-4ff0802cfb7e"),
        indoor_url=_PHOTO.format("1534528741775-53994a69daeb"),
        skin_type=SkinType.SENSITIVE,
        concerns=(SkinConcern.REDNESS, SkinConcern.DEHYDRATION),
    ),
    SamplePhotoSet(
        id="sample_set_C",
        name_en="Uneven Tone",
        name_cn="肤色不均",
        daylight_url=_PHOTO.format("1524504388940-b1c1722653e1"),
        indoor_url=_PHOTO.format("1507003211169-0a1dd7228f2d"),
        skin_type=SkinType.COMBINATION,
        concerns=(SkinConcern.DARK_SPOTS, SkinConcern.DULLNESS),
    ),
)


def find_sample_set(sample_set_id: str) -> SamplePhotoSet | None:
    for sample_set in SAMPLE_PHOTO_SETS:
        if sample_set.id == sample_set_id:
            return sample_set
    return None


# === Produtos ===

_IMG = "https://images.unsplash.com/photo-{}?w=200&h=200&fit=crop"

PRODUCTS: dict[str, Product] = {
    product.sku_id: product
    for product in (
        Product(
            sku_id="cleanser_001",
            name="Gentle Foaming Cleanser",
            brand="CeraVe",
            category="cleanser",
            description="Gentle, non-stripping cleanser with ceramides",
            image_url=_IMG.format("1556228720-195a672e8a03"),
            size="236ml",
        ),
        Product(
            sku_id="moisturizer_001",
            name="Daily Moisturizing Lotion",
            brand="Cetaphil",
            category="moisturizer",
            description="Lightweight, non-comedogenic hydration",
            image_url=_IMG.format("1611930022073-b7a4ba5fcccd"),
            size="473ml",
        ),
        Product(
            sku_id="sunscreen_001",
            name="UV Aqua Rich Watery Essence",
            brand="Bioré",
            category="sunscreen",
            description="Lightweight SPF 50+ PA++++ protection",
            image_url=_IMG.format("1556227702-d1e4e7b5c232"),
            size="50g",
        ),
        Product(
            sku_id="treatment_001",
            name="Niacinamide 10% + Zinc 1%",
            brand="The Ordinary",
            category="treatment",
            description="Targets blemishes and oil control",
            image_url=_IMG.format("1620916566398-39f1143ab7be"),
            size="30ml",
        ),
        Product(
            sku_id="treatment_002",
            name="Vitamin C Serum 15%",
            brand="Timeless",
            category="treatment",
            description="Brightening antioxidant serum",
            image_url=_IMG.format("1608248597279-f99d160bfcbc"),
            size="30ml",
        ),
        Product(
            sku_id="treatment_003",
            name="Retinol 0.5% in Squalane",
            brand="The Ordinary",
            category="treatment",
            description="Anti-aging retinoid treatment",
            image_url=_IMG.format("1617897903246-719242758050"),
            size="30ml",
        ),
    )
}

PREMIUM_PRODUCTS: dict[str, Product] = {
    "cleanser": Product(
        sku_id="cleanser_premium",
        name="Sulwhasoo Gentle Cleansing Foam",
        brand="Sulwhasoo",
        category="cleanser",
        description="Luxury Korean herbal cleanser",
        image_url=_IMG.format("1556228720-195a672e8a03"),
        size="200ml",
        fit_tags=["gentle", "hydrating"],
    ),
    "moisturizer": Product(
        sku_id="moisturizer_premium",
        name="La Mer Crème de la Mer",
        brand="La Mer",
        category="moisturizer",
        description="Iconic luxury moisturizer",
        image_url=_IMG.format("1611930022073-b7a4ba5fcccd"),
        size="60ml",
        fit_tags=["hydrating", "rich"],
    ),
    "sunscreen": Product(
        sku_id="sunscreen_premium",
        name="Supergoop Unseen Sunscreen SPF 40",
        brand="Supergoop!",
        category="sunscreen",
        description="Invisible, weightless SPF",
        image_url=_IMG.format("1556227702-d1e4e7b5c232"),
        size="50ml",
        fit_tags=["lightweight", "invisible"],
    ),
    "treatment": Product(
        sku_id="treatment_premium",
        name="SkinCeuticals C E Ferulic",
        brand="SkinCeuticals",
        category="treatment",
        description="Gold-standard vitamin C serum",
        image_url=_IMG.format("1620916566398-39f1143ab7be"),
        size="30ml",
        fit_tags=["potent", "clinical"],
    ),
}


def _tagged(sku_id: str, *tags: str) -> Product:
    return PRODUCTS[sku_id].model_copy(update={"fit_tags": list(tags)})


DUPE_PRODUCTS: dict[str, Product] = {
    "cleanser": _tagged("cleanser_001", "gentle", "fragrance-free"),
    "moisturizer": _tagged("moisturizer_001", "lightweight", "non-comedogenic"),
    "sunscreen": _tagged("sunscreen_001", "lightweight", "high-SPF"),
    "treatment": _tagged("treatment_001", "gentle", "oil-control"),
}

GENTLER_PRODUCTS: dict[str, Product] = {
    "cleanser": _tagged("cleanser_001", "ultra-gentle", "fragrance-free"),
    "moisturizer": _tagged("moisturizer_001", "soothing", "minimal"),
    "sunscreen": _tagged("sunscreen_001", "mineral", "sensitive-safe"),
    "treatment": Product(
        sku_id="treatment_gentle",
        name="Azelaic Acid Suspension 10%",
        brand="The Ordinary",
        category="treatment",
        description="Gentle brightening treatment",
        image_url=_IMG.format("1620916566398-39f1143ab7be"),
        size="30ml",
        fit_tags=["gentle", "pregnancy-safe"],
    ),
}

AM_CATEGORIES: tuple[str, ...] = ("cleanser", "treatment", "moisturizer", "sunscreen")
PM_CATEGORIES: tuple[str, ...] = ("cleanser", "treatment", "moisturizer")


def routine_products(intent: str) -> tuple[list[Product], list[Product]]:
    """Produtos AM e PM da rotina demo; o tratamento depende do objetivo."""
    am_skus = ["cleanser_001", "moisturizer_001", "sunscreen_001"]
    pm_skus = ["cleanser_001", "moisturizer_001"]
    if "dark" in intent:
        am_skus.insert(1, "treatment_002")
    if "breakout" in intent:
        pm_skus.insert(1, "treatment_001")
    elif "dark" not in intent:
        pm_skus.insert(1, "treatment_003")
    return [PRODUCTS[sku] for sku in am_skus], [PRODUCTS[sku] for sku in pm_skus]


# === Ofertas ===


@dataclass(slots=True, frozen=True)
class _Seller:
    name: str
    route: PurchaseRoute


SELLERS: tuple[_Seller, ...] = (
    _Seller("Amazon", PurchaseRoute.INTERNAL_CHECKOUT),
    _Seller("iHerb", PurchaseRoute.INTERNAL_CHECKOUT),
    _Seller("Sephora", PurchaseRoute.AFFILIATE_OUTBOUND),
    _Seller("Ulta", PurchaseRoute.AFFILIATE_OUTBOUND),
    _Seller("YesStyle", PurchaseRoute.INTERNAL_CHECKOUT),
)
OFFERS_PER_PRODUCT = 3

_BASE_PRICE: dict[BudgetTier, float] = {
    BudgetTier.LOW: 15.0,
    BudgetTier.MID: 30.0,
    BudgetTier.HIGH: 55.0,
}
_POSITION_BADGES: tuple[str, ...] = ("best_price", "best_returns", "fastest_shipping")


def currency_for(market: Market | None) -> str:
    if market == Market.UK:
        return "GBP"
    if market == Market.EU:
        return "EUR"
    return "USD"


def generate_offers(
    product: Product,
    market: Market | None,
    budget: BudgetTier,
    rng: random.Random,
) -> list[Offer]:
    """Três ofertas de vendedores sorteados, com rotas mistas."""
    base_price = _BASE_PRICE[budget]
    multiplier = 1.2 if product.category == "treatment" else 1.0

    sellers = list(SELLERS)
    rng.shuffle(sellers)

    offers: list[Offer] = []
    for idx, seller in enumerate(sellers[:OFFERS_PER_PRODUCT]):
        price = round(base_price * multiplier * (0.85 + idx * 0.15), 2)
        badges = [_POSITION_BADGES[idx]]
        if rng.random() > 0.5:
            badges.append("high_reliability")

        affiliate_url = None
        if seller.route == PurchaseRoute.AFFILIATE_OUTBOUND:
            affiliate_url = (
                f"https://{seller.name.lower()}.com/product/{product.sku_id}?ref=pivota"
            )

        offers.append(
            Offer(
                offer_id=f"offer_{product.sku_id}_{seller.name.lower()}_{idx}",
                seller=seller.name,
                price=price,
                currency=currency_for(market),
                original_price=round(price * 1.2, 2) if idx == 0 else None,
                shipping_days=2 + idx * 2,
                returns_policy="60-day returns" if idx == 1 else "30-day returns",
                reliability_score=95 - idx * 5,
                badges=badges,
                in_stock=True,
                purchase_route=seller.route,
                affiliate_url=affiliate_url,
            )
        )
    return offers


# === Análise (demo) ===

ACTIVE_STRATEGY = (
    "I'll prioritize gentle, targeted treatments and optimize for your goal "
    "while keeping irritation low."
)
BASIC_STRATEGY = "I'll focus on hydration and protection with simple, effective products."

_OILY_FEATURES = (
    ("Some shine in T-zone area", "pretty_sure"),
    ("Minor texture on cheeks", "somewhat_sure"),
    ("Overall hydration looks balanced", "not_sure"),
)
_TONE_FEATURES = (
    ("Some uneven tone around cheeks", "pretty_sure"),
    ("Skin appears to have good elasticity", "somewhat_sure"),
    ("Possible sun damage signs", "not_sure"),
)
_DEFAULT_FEATURES = (
    ("Skin appears generally healthy", "pretty_sure"),
    ("Some dryness around mouth area", "somewhat_sure"),
    ("Fine lines might be emerging", "not_sure"),
)


def analysis_features_for(intent: str) -> list[AnalysisFeature]:
    """Observações da demo escolhidas pelo intent (breakout/oil, dark/bright, outro)."""
    if "breakout" in intent or "oil" in intent:
        rows = _OILY_FEATURES
    elif "dark" in intent or "bright" in intent:
        rows = _TONE_FEATURES
    else:
        rows = _DEFAULT_FEATURES
    return [AnalysisFeature(observation=text, confidence=conf) for text, conf in rows]


def intent_needs_actives(intent: str) -> bool:
    return "breakout" in intent or "dark" in intent


# === Checkout (demo) ===

CHECKOUT_ETA = "3-5 business days"
DEFAULT_CHECKOUT_TOTAL = 85.0
CHECKOUT_FAILURE_REASONS: dict[str, tuple[str, str]] = {
    "failure_payment": ("payment_declined", "Payment was declined"),
    "failure_expired": ("offer_expired", "One or more offers have expired"),
}

DEMO_CHAT_ANSWERS: dict[str, str] = {
    "EN": "Demo mode: set API_BASE_URL to enable the Aurora-backed agent.",
    "CN": "当前是 Demo 模式：请配置 API_BASE_URL 来启用 Aurora 后端对话。",
}
