"""Classificação de rotas de checkout (interno × afiliado).

Função pura: recebe pares e seleções, devolve a partição.
Não conhece UI; o chamador decide o fluxo a partir de `route_type`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from aurora_chat.domain.enums import ProductVariant
from aurora_chat.domain.models import CheckoutResult, Offer, Product, ProductPair, ProductSelection


class RouteType(StrEnum):
    ALL_INTERNAL = "all_internal"
    ALL_AFFILIATE = "all_affiliate"
    MIXED = "mixed"


@dataclass(slots=True, frozen=True)
class CheckoutItem:
    product: Product
    offer: Offer


@dataclass(slots=True)
class CheckoutRouteAnalysis:
    """Visão derivada (nunca persistida) das ofertas selecionadas."""

    internal_offers: list[CheckoutItem] = field(default_factory=list)
    affiliate_offers: list[CheckoutItem] = field(default_factory=list)

    @property
    def has_internal(self) -> bool:
        return bool(self.internal_offers)

    @property
    def has_affiliate(self) -> bool:
        return bool(self.affiliate_offers)

    @property
    def route_type(self) -> RouteType:
        if not self.affiliate_offers:
            return RouteType.ALL_INTERNAL
        if not self.internal_offers:
            return RouteType.ALL_AFFILIATE
        return RouteType.MIXED

    @property
    def internal_total(self) -> float:
        return round(sum(item.offer.price for item in self.internal_offers), 2)

    @property
    def internal_offer_ids(self) -> list[str]:
        return [item.offer.offer_id for item in self.internal_offers]


@dataclass(slots=True)
class RoutedCheckout:
    """Desfecho do checkout guiado pela rota: compra interna e/ou lista afiliada."""

    route_type: RouteType
    checkout: CheckoutResult | None = None
    affiliate_items: list[CheckoutItem] = field(default_factory=list)


def _selected_variant(
    selection: ProductVariant | ProductSelection | str | None,
) -> ProductVariant:
    if selection is None:
        return ProductVariant.DUPE
    if isinstance(selection, ProductSelection):
        return selection.type
    return ProductVariant(selection)


def analyze_checkout_routes(
    pairs: Iterable[ProductPair],
    selections: Mapping[str, ProductVariant | ProductSelection | str],
) -> CheckoutRouteAnalysis:
    """Particiona a oferta escolhida de cada categoria por rota de compra.

    - Variante padrão é `dupe` quando a categoria não foi escolhida
    - Usa a *primeira* oferta (já ordenada por preferência upstream)
    - Variante sem ofertas é ignorada
    """
    analysis = CheckoutRouteAnalysis()
    for pair in pairs:
        option = pair.option(_selected_variant(selections.get(pair.category)))
        if not option.offers:
            continue
        item = CheckoutItem(product=option.product, offer=option.offers[0])
        if item.offer.is_affiliate:
            analysis.affiliate_offers.append(item)
        else:
            analysis.internal_offers.append(item)
    return analysis
