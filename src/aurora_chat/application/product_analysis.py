"""Análise de produto avulso (demo): compatibilidade com o perfil de pele.

Pontuação:
- base 50; pele vetada para o produto → 25 e suitability "poor"
- bônus por tipo de pele (oleosa+oil_control, seca+hydrating, sensível+baixa irritação...)
- penalidade de irritação para pele sensível
- +12 por preocupação alvo; +6 quando um mecanismo relevante tem força >= 60
- resultado limitado a 15..98
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Literal

from aurora_chat.domain.enums import SkinConcern, SkinType
from aurora_chat.domain.models import (
    DupeRecommendation,
    IngredientReport,
    Mechanism,
    ProductAnalysisResult,
    Session,
    SkinProfileMatch,
    UsageAdvice,
)

MIN_SCORE = 15
MAX_SCORE = 98
VETO_SCORE = 25
MIN_MECHANISM_STRENGTH = 60

IrritationLevel = Literal["low", "medium", "high"]


@dataclass(slots=True, frozen=True)
class KnownProduct:
    name: str
    brand: str
    category: str
    mechanisms: tuple[Mechanism, ...]
    key_ingredients: tuple[str, ...]
    caution_ingredients: tuple[str, ...] = ()
    target_concerns: frozenset[SkinConcern] = field(default_factory=frozenset)
    avoid_for: frozenset[SkinType] = field(default_factory=frozenset)
    irritation: IrritationLevel = "low"

    def has_vector(self, vector: str) -> bool:
        return any(m.vector == vector for m in self.mechanisms)


def _mech(*pairs: tuple[str, int]) -> tuple[Mechanism, ...]:
    return tuple(Mechanism(vector=vector, strength=strength) for vector, strength in pairs)


C = SkinConcern
T = SkinType

KNOWN_PRODUCTS: dict[str, KnownProduct] = {
    "la_mer": KnownProduct(
        name="Crème de la Mer",
        brand="La Mer",
        category="moisturizer",
        mechanisms=_mech(("hydrating", 95), ("repair", 80)),
        key_ingredients=("Algae Extract", "Mineral Oil", "Petrolatum", "Glycerin"),
        caution_ingredients=("Fragrance", "Mineral Oil"),
        target_concerns=frozenset({C.DEHYDRATION, C.WRINKLES}),
        avoid_for=frozenset({T.OILY}),
    ),
    "skinceuticals_ce": KnownProduct(
        name="C E Ferulic",
        brand="SkinCeuticals",
        category="serum",
        mechanisms=_mech(("brightening", 90), ("anti_aging", 85)),
        key_ingredients=("Vitamin C 15%", "Vitamin E", "Ferulic Acid"),
        target_concerns=frozenset({C.DARK_SPOTS, C.DULLNESS, C.WRINKLES}),
        irritation="medium",
    ),
    "ordinary_niacinamide": KnownProduct(
        name="Niacinamide 10% + Zinc 1%",
        brand="The Ordinary",
        category="serum",
        mechanisms=_mech(("oil_control", 85), ("soothing", 70)),
        key_ingredients=("Niacinamide 10%", "Zinc PCA"),
        target_concerns=frozenset({C.ACNE, C.PORES, C.DULLNESS}),
    ),
    "cerave_cleanser": KnownProduct(
        name="Hydrating Facial Cleanser",
        brand="CeraVe",
        category="cleanser",
        mechanisms=_mech(("hydrating", 70), ("soothing", 65)),
        key_ingredients=("Ceramides", "Hyaluronic Acid", "Glycerin"),
        target_concerns=frozenset({C.DEHYDRATION, C.REDNESS}),
    ),
    "drunk_elephant": KnownProduct(
        name="Protini Polypeptide Cream",
        brand="Drunk Elephant",
        category="moisturizer",
        mechanisms=_mech(("anti_aging", 80), ("hydrating", 75)),
        key_ingredients=("Peptides", "Amino Acids", "Pygmy Waterlily"),
        target_concerns=frozenset({C.WRINKLES, C.DULLNESS}),
    ),
    "estee_lauder_anr": KnownProduct(
        name="Advanced Night Repair",
        brand="Estée Lauder",
        category="serum",
        mechanisms=_mech(("repair", 85), ("anti_aging", 80)),
        key_ingredients=("Bifida Ferment Lysate", "Hyaluronic Acid", "Sodium Lactate"),
        caution_ingredients=("Fragrance",),
        target_concerns=frozenset({C.WRINKLES, C.DULLNESS, C.DEHYDRATION}),
    ),
    "tretinoin": KnownProduct(
        name="Tretinoin 0.05%",
        brand="Generic",
        category="treatment",
        mechanisms=_mech(("anti_aging", 95), ("repair", 90)),
        key_ingredients=("Tretinoin 0.05%",),
        caution_ingredients=("Tretinoin",),
        target_concerns=frozenset({C.ACNE, C.WRINKLES, C.DARK_SPOTS}),
        avoid_for=frozenset({T.SENSITIVE, T.DRY}),
        irritation="high",
    ),
    "olay_retinol": KnownProduct(
        name="Retinol24 Night Serum",
        brand="Olay",
        category="serum",
        mechanisms=_mech(("anti_aging", 75), ("hydrating", 60)),
        key_ingredients=("Retinol", "Niacinamide", "Vitamin B3"),
        caution_ingredients=("Retinol",),
        target_concerns=frozenset({C.WRINKLES, C.DULLNESS}),
        avoid_for=frozenset({T.SENSITIVE}),
        irritation="medium",
    ),
    "salicylic_cleanser": KnownProduct(
        name="SA Smoothing Cleanser",
        brand="CeraVe",
        category="cleanser",
        mechanisms=_mech(("oil_control", 80), ("soothing", 50)),
        key_ingredients=("Salicylic Acid", "Ceramides", "Niacinamide"),
        caution_ingredients=("Salicylic Acid",),
        target_concerns=frozenset({C.ACNE, C.PORES}),
        avoid_for=frozenset({T.DRY, T.SENSITIVE}),
        irritation="medium",
    ),
    "azelaic_acid": KnownProduct(
        name="Azelaic Acid Suspension 10%",
        brand="The Ordinary",
        category="treatment",
        mechanisms=_mech(("brightening", 75), ("soothing", 70)),
        key_ingredients=("Azelaic Acid 10%",),
        target_concerns=frozenset({C.ACNE, C.DARK_SPOTS, C.REDNESS}),
    ),
}

CONCERN_MECHANISMS: dict[SkinConcern, frozenset[str]] = {
    C.ACNE: frozenset({"oil_control", "soothing"}),
    C.DARK_SPOTS: frozenset({"brightening"}),
    C.WRINKLES: frozenset({"anti_aging", "repair"}),
    C.DULLNESS: frozenset({"brightening", "hydrating"}),
    C.REDNESS: frozenset({"soothing", "repair"}),
    C.PORES: frozenset({"oil_control"}),
    C.DEHYDRATION: frozenset({"hydrating", "repair"}),
}

# Produtos caros → alternativa mais barata
DUPE_MAP: dict[str, tuple[str, str]] = {
    "la_mer": ("Moisturizing Cream", "CeraVe"),
    "skinceuticals_ce": ("Vitamin C Suspension 23%", "The Ordinary"),
    "drunk_elephant": ("Buffet", "The Ordinary"),
    "estee_lauder_anr": ("Snail Mucin 96%", "COSRX"),
}


@dataclass(slots=True)
class MatchScore:
    score: int
    matched: list[SkinConcern]
    unmatched: list[SkinConcern]
    veto_reason: str | None = None


def _veto_reason(skin_type: SkinType) -> str:
    if skin_type == SkinType.SENSITIVE:
        return f"High irritation risk for {skin_type} skin"
    if skin_type == SkinType.DRY:
        return f"May be too drying for {skin_type} skin"
    return f"Not recommended for {skin_type} skin"


def _skin_type_bonus(product: KnownProduct, skin_type: SkinType) -> int:
    if skin_type == SkinType.OILY and product.has_vector("oil_control"):
        return 15
    if skin_type == SkinType.DRY and product.has_vector("hydrating"):
        return 15
    if skin_type == SkinType.SENSITIVE and product.irritation == "low":
        return 10
    if skin_type == SkinType.COMBINATION:
        return 5
    if skin_type == SkinType.NORMAL:
        return 10
    return 0


def calculate_match_score(
    product: KnownProduct,
    skin_type: SkinType,
    concerns: list[SkinConcern],
) -> MatchScore:
    """Pontua a compatibilidade produto × perfil (sem aleatoriedade)."""
    if skin_type in product.avoid_for:
        return MatchScore(VETO_SCORE, [], list(concerns), _veto_reason(skin_type))

    score = 50 + _skin_type_bonus(product, skin_type)
    if skin_type == SkinType.SENSITIVE:
        if product.irritation == "high":
            score -= 25
        elif product.irritation == "medium":
            score -= 10

    matched: list[SkinConcern] = []
    unmatched: list[SkinConcern] = []
    for concern in concerns:
        if concern in product.target_concerns:
            score += 12
            matched.append(concern)
            continue
        needed = CONCERN_MECHANISMS.get(concern, frozenset())
        if any(
            m.vector in needed and m.strength >= MIN_MECHANISM_STRENGTH
            for m in product.mechanisms
        ):
            score += 6
            matched.append(concern)
        else:
            unmatched.append(concern)

    return MatchScore(max(MIN_SCORE, min(MAX_SCORE, score)), matched, unmatched)


def suitability_for(score: int, vetoed: bool) -> str:
    if vetoed:
        return "poor"
    if score >= 80:
        return "excellent"
    if score >= 65:
        return "good"
    if score >= 45:
        return "moderate"
    return "poor"


def usage_advice_for(product: KnownProduct, skin_type: SkinType) -> UsageAdvice:
    is_retinoid = any("Retinol" in i or "Tretinoin" in i for i in product.key_ingredients)
    if product.category == "treatment" or is_retinoid:
        if skin_type == SkinType.SENSITIVE:
            notes = (
                "Start very slowly: once per week, building up gradually. "
                "Monitor for irritation."
            )
        else:
            notes = "Start with 2-3 nights/week. Always use sunscreen the next day."
        return UsageAdvice(timing="PM", notes=notes)
    if product.has_vector("brightening"):
        return UsageAdvice(
            timing="AM",
            notes="Best used in the morning. Follow with SPF to protect from photosensitivity.",
        )
    if product.category == "cleanser":
        if skin_type == SkinType.DRY:
            notes = "Use once daily in the evening to avoid over-cleansing."
        else:
            notes = "Can be used morning and evening."
        return UsageAdvice(timing="both", notes=notes)
    return UsageAdvice(timing="both", notes="Can be used as part of your daily routine.")


def analyze_product(session: Session, rng: random.Random) -> ProductAnalysisResult:
    """Reconhecimento simulado: sorteia um produto conhecido e pontua contra o perfil."""
    product_key = rng.choice(sorted(KNOWN_PRODUCTS))
    product = KNOWN_PRODUCTS[product_key]

    diagnosis = session.diagnosis
    has_diagnosis = diagnosis is not None and diagnosis.skin_type is not None
    skin_type = diagnosis.skin_type if has_diagnosis else SkinType.COMBINATION
    concerns = list(diagnosis.concerns) if diagnosis is not None else []

    match = calculate_match_score(product, skin_type, concerns)
    final_score = max(MIN_SCORE, min(MAX_SCORE, match.score + rng.randrange(10) - 5))

    advice = usage_advice_for(product, skin_type)
    if match.matched and has_diagnosis:
        names = ", ".join(concern.value.replace("_", " ") for concern in match.matched)
        advice = advice.model_copy(
            update={"notes": f"{advice.notes} Good match for your concerns: {names}."}
        )

    dupe = None
    if product_key in DUPE_MAP:
        dupe_name, dupe_brand = DUPE_MAP[product_key]
        reason = (
            f"Similar efficacy for {skin_type} skin at a fraction of the price"
            if has_diagnosis
            else "Similar key ingredients at a fraction of the price"
        )
        dupe = DupeRecommendation(
            name=dupe_name,
            brand=dupe_brand,
            reason=reason,
            savings_percent=75 + rng.randrange(15),
        )

    return ProductAnalysisResult(
        product_name=product.name,
        brand=product.brand,
        match_score=final_score,
        suitability=suitability_for(final_score, match.veto_reason is not None),
        mechanisms=list(product.mechanisms),
        ingredients=IngredientReport(
            beneficial=list(product.key_ingredients),
            caution=list(product.caution_ingredients),
            veto=match.veto_reason,
        ),
        usage_advice=advice,
        dupe_recommendation=dupe,
        skin_profile_match=(
            SkinProfileMatch(
                skin_type=skin_type,
                matched_concerns=match.matched,
                unmatched_concerns=match.unmatched,
            )
            if has_diagnosis
            else None
        ),
    )
