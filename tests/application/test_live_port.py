"""Testes do LivePort contra um backend simulado (httpx.MockTransport)."""

from __future__ import annotations

import json
from collections.abc import Callable

import httpx
import pytest

from aurora_chat.application.ports.live import LivePort
from aurora_chat.domain.checkout_routes import CheckoutItem
from aurora_chat.domain.enums import (
    Language,
    PhotoSlotId,
    ProductVariant,
    PurchaseRoute,
    QcStatus,
    RoutePreference,
    SessionMode,
)
from aurora_chat.domain.errors import ContractViolationError
from aurora_chat.domain.flow_states import FlowState
from aurora_chat.domain.models import Offer, Product, Session
from aurora_chat.infra.http import BackendTransport

Handler = Callable[[httpx.Request], httpx.Response]

_PAIR = {
    "category": "cleanser",
    "premium": {"product": {"sku_id": "p1"}, "offers": []},
    "dupe": {"product": {"sku_id": "d1"}, "offers": []},
}


@pytest.fixture()
def requests_seen() -> list[httpx.Request]:
    return []


@pytest.fixture()
def make_port(requests_seen: list[httpx.Request]) -> Callable[..., LivePort]:
    def factory(handler: Handler, gateway: str | None = None) -> LivePort:
        def recording(request: httpx.Request) -> httpx.Response:
            requests_seen.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(recording))
        transport = BackendTransport("https://backend.test/v1", client=client)
        return LivePort(transport, gateway)

    return factory


@pytest.fixture()
def live(session: Session) -> Session:
    return session.model_copy(update={"mode": SessionMode.LIVE, "intent_id": "routine"})


def _json(body: object, status_code: int = 200) -> Handler:
    return lambda request: httpx.Response(status_code, json=body)


class TestRequests:
    """Headers de identidade e corpo com trace_id."""

    @pytest.mark.asyncio
    async def test_identity_headers(self, make_port, requests_seen, live: Session) -> None:
        port = make_port(_json({"analysis": {"strategy": "s"}}))

        await port.run_analysis(live)

        request = requests_seen[0]
        assert request.url == "https://backend.test/v1/analysis"
        assert request.headers["X-Brief-ID"] == live.brief_id
        assert request.headers["X-Trace-ID"] == live.trace_id
        assert request.headers["X-Aurora-UID"] == "uid_1"
        assert json.loads(request.content)["trace_id"] == live.trace_id


class TestDiagnosis:
    """Fallback de estado e contador de decisões."""

    @pytest.mark.asyncio
    async def test_fallback_state_and_local_count(self, make_port, live: Session) -> None:
        step = await make_port(_json({})).submit_diagnosis(live, None, skipped=False)

        assert step.session.state == FlowState.S3_PHOTO_OPTION
        assert step.session.clarification_count == 1

    @pytest.mark.asyncio
    async def test_backend_count_wins(self, make_port, live: Session) -> None:
        body = {"session": {"clarification_count": 5, "next_state": "S2_DIAGNOSIS"}}

        step = await make_port(_json(body)).submit_diagnosis(live, None, skipped=False)

        assert step.session.clarification_count == 5
        assert step.session.state == FlowState.S2_DIAGNOSIS


class TestAnalysis:
    """Campo crítico `analysis`."""

    @pytest.mark.asyncio
    async def test_analysis_from_session_patch(self, make_port, live: Session) -> None:
        body = {"session": {"analysis": {"strategy": "gentle", "needs_risk_check": True}}}

        step = await make_port(_json(body)).run_analysis(live)

        assert step.result.needs_risk_check is True
        assert step.session.state == FlowState.S5_ANALYSIS_SUMMARY

    @pytest.mark.asyncio
    async def test_analysis_at_top_level_when_session_lacks_it(
        self, make_port, live: Session
    ) -> None:
        body = {"session": {"market": "US"}, "analysis": {"strategy": "top"}}
        step = await make_port(_json(body)).run_analysis(live)
        assert step.result.strategy == "top"

    @pytest.mark.asyncio
    async def test_missing_analysis_is_contract_violation(
        self, make_port, live: Session
    ) -> None:
        with pytest.raises(ContractViolationError) as exc_info:
            await make_port(_json({"session": {}})).run_analysis(live)

        assert exc_info.value.field == "analysis"
        assert exc_info.value.endpoint == "/analysis"
        assert live.analysis is None


class TestPhotos:
    """Gate de QC aplicado sobre os slots devolvidos."""

    @pytest.mark.asyncio
    async def test_sample_photos_with_failed_qc(self, make_port, requests_seen, live) -> None:
        body = {"session": {"photos": {"daylight": {"qcStatus": "too_dark"}}}}

        step = await make_port(_json(body)).attach_photos(live, {}, "sample_set_A", True)

        assert requests_seen[0].url.path == "/v1/photos/sample"
        assert step.session.state == FlowState.S3a_PHOTO_QC
        assert step.session.photos[PhotoSlotId.DAYLIGHT].qc_status == QcStatus.TOO_DARK
        assert step.session.sample_photo_set_id == "sample_set_A"

    @pytest.mark.asyncio
    async def test_explicit_state_wins_over_gate(self, make_port, live: Session) -> None:
        body = {
            "next_state": "S4_ANALYSIS_LOADING",
            "session": {"photos": {"daylight": {"qcStatus": "blurry"}}},
        }
        step = await make_port(_json(body)).attach_photos(live, {}, "sample_set_A", True)
        assert step.session.state == FlowState.S4_ANALYSIS_LOADING
        assert len(step.result) == 1


class TestProductPairs:
    """Campo crítico `productPairs` e chaves alternativas."""

    @pytest.mark.asyncio
    async def test_pairs_from_alternate_keys(self, make_port, requests_seen, live) -> None:
        port = make_port(_json({"amPairs": [_PAIR, {"bad": True}], "pm_pairs": [_PAIR]}))

        step = await port.build_product_pairs(live, RoutePreference.FASTEST)

        assert len(step.result.am) == 1
        assert len(step.result.pm) == 1
        assert step.session.state == FlowState.S7_PRODUCT_RECO
        assert json.loads(requests_seen[0].content)["preference"] == "fastest_delivery"

    @pytest.mark.asyncio
    async def test_top_level_pairs_when_session_is_nested(self, make_port, live) -> None:
        body = {
            "session": {"state": "S7_PRODUCT_RECO", "market": "UK"},
            "productPairs": {"am": [_PAIR], "pm": [_PAIR, _PAIR]},
        }

        step = await make_port(_json(body)).build_product_pairs(live, None)

        assert len(step.result.am) == 1
        assert len(step.result.pm) == 2
        assert step.session.market == "UK"
        assert step.session.product_pairs == step.result

    @pytest.mark.asyncio
    async def test_snake_case_top_level_pairs(self, make_port, live) -> None:
        body = {"session": {"state": "S7_PRODUCT_RECO"}, "product_pairs": {"am": [_PAIR]}}

        step = await make_port(_json(body)).build_product_pairs(live, None)

        assert [pair.category for pair in step.result.am] == ["cleanser"]

    @pytest.mark.asyncio
    async def test_empty_pairs_is_contract_violation(self, make_port, live: Session) -> None:
        with pytest.raises(ContractViolationError):
            await make_port(_json({"productPairs": {"am": [], "pm": []}})).build_product_pairs(
                live, None
            )

    @pytest.mark.asyncio
    async def test_selection_kept_locally(self, make_port, requests_seen, live) -> None:
        step = await make_port(_json({})).select_product(
            live, "cleanser", ProductVariant.PREMIUM, "p1", "o1"
        )

        assert requests_seen[0].method == "PATCH"
        selection = step.session.product_selections["cleanser"]
        assert selection.type == ProductVariant.PREMIUM
        assert selection.offer_id == "o1"


class TestRoutine:
    """Rotina montada pelo backend em /routine/build."""

    @pytest.mark.asyncio
    async def test_routine_from_session_patch(self, make_port, requests_seen, live) -> None:
        body = {
            "session": {
                "routine": {
                    "am_steps": [{"order": 1, "category": "cleanser"}],
                    "total_estimate": {"min": 40, "max": 90, "currency": "USD"},
                },
                "selected_offers": {"cleanser_001": "o1"},
            }
        }

        step = await make_port(_json(body)).build_routine(live, RoutePreference.FASTEST)

        sent = json.loads(requests_seen[0].content)
        assert requests_seen[0].url.path == "/v1/routine/build"
        assert sent["preference"] == "fastest_delivery"
        assert sent["intent_id"] == "routine"
        assert step.result.total_estimate.max == 90
        assert step.session.selected_offers == {"cleanser_001": "o1"}
        assert step.session.state == FlowState.S7_PRODUCT_RECO

    @pytest.mark.asyncio
    async def test_routine_at_top_level(self, make_port, live: Session) -> None:
        body = {"routine": {"pm_steps": [{"order": 1}]}, "next_state": "S8_CHECKOUT"}

        step = await make_port(_json(body)).build_routine(live, None)

        assert len(step.result.pm_steps) == 1
        assert step.session.routine == step.result
        assert step.session.state == FlowState.S8_CHECKOUT

    @pytest.mark.asyncio
    async def test_missing_routine_is_contract_violation(self, make_port, live: Session) -> None:
        with pytest.raises(ContractViolationError) as exc_info:
            await make_port(_json({"ok": True})).build_routine(live, None)
        assert exc_info.value.field == "routine"
        assert exc_info.value.endpoint == "/routine/build"


class TestCheckout:
    """Estado inferido do resultado quando o backend não decide."""

    @pytest.mark.asyncio
    async def test_failure_infers_s10(self, make_port, live: Session) -> None:
        body = {"checkout_result": {"success": False, "reason_code": "payment_declined"}}

        step = await make_port(_json(body)).checkout(live, ["o1"], None)

        assert step.result.success is False
        assert step.session.state == FlowState.S10_FAILURE

    @pytest.mark.asyncio
    async def test_result_key_and_explicit_state(self, make_port, live: Session) -> None:
        body = {"result": {"success": True, "order_id": "ORD-1"}, "next_state": "S11_RECOVERY"}
        step = await make_port(_json(body)).checkout(live, [], None)
        assert step.result.order_id == "ORD-1"
        assert step.session.state == FlowState.S11_RECOVERY

    @pytest.mark.asyncio
    async def test_missing_result(self, make_port, live: Session) -> None:
        with pytest.raises(ContractViolationError) as exc_info:
            await make_port(_json({"ok": True})).checkout(live, [], None)
        assert exc_info.value.field == "checkout_result"


class TestAffiliateResolution:
    """Resolução de links afiliados via gateway."""

    @staticmethod
    def _item() -> CheckoutItem:
        return CheckoutItem(product=Product(sku_id="sku_9"), offer=Offer(offer_id="internal"))

    @pytest.mark.asyncio
    async def test_relative_url_prefixed(self, make_port, requests_seen, live) -> None:
        body = {
            "result": {
                "offers": [
                    {"offer_id": "x", "purchase_route": "internal_checkout"},
                    {
                        "offer_id": "aff",
                        "purchase_route": "affiliate_outbound",
                        "affiliate_url": "/out/sku_9",
                    },
                ]
            }
        }
        port = make_port(_json(body), gateway="https://gateway.test/")

        step = await port.resolve_affiliate_items(live, [self._item()])

        item = step.result[0]
        assert item.offer.offer_id == "aff"
        assert item.offer.purchase_route == PurchaseRoute.AFFILIATE_OUTBOUND
        assert item.offer.affiliate_url == "https://gateway.test/out/sku_9"
        assert requests_seen[0].url == "https://gateway.test/agent/shop/v1/invoke"

    @pytest.mark.asyncio
    async def test_gateway_error_keeps_item(self, make_port, live: Session) -> None:
        port = make_port(_json({"error": "boom"}, status_code=500), gateway="https://gw.test")
        step = await port.resolve_affiliate_items(live, [self._item()])
        assert step.result[0].offer.offer_id == "internal"

    @pytest.mark.asyncio
    async def test_no_gateway_keeps_items(self, make_port, requests_seen, live) -> None:
        step = await make_port(_json({})).resolve_affiliate_items(live, [self._item()])
        assert step.result[0].offer.offer_id == "internal"
        assert requests_seen == []


class TestSendMessage:
    """Envelope v1 ou resposta simples."""

    @pytest.mark.asyncio
    async def test_envelope_response(self, make_port, live: Session) -> None:
        body = {
            "version": "1.0",
            "request_id": "r1",
            "trace_id": "t1",
            "assistant_text": "Oi!",
            "telemetry": {"intent": "greeting"},
        }

        step = await make_port(_json(body)).send_message(live, "olá", Language.EN, None)

        assert step.result.answer == "Oi!"
        assert step.result.intent == "greeting"
        assert step.result.envelope is not None

    @pytest.mark.asyncio
    async def test_plain_response(self, make_port, live: Session) -> None:
        body = {"answer": "Resposta", "intent": ""}
        step = await make_port(_json(body)).send_message(live, "olá", Language.EN, None)
        assert step.result.answer == "Resposta"
        assert step.result.intent is None
        assert step.result.envelope is None

    @pytest.mark.asyncio
    async def test_legacy_envelope_response(self, make_port, live: Session) -> None:
        body = {
            "request_id": "r2",
            "trace_id": "t2",
            "assistant_message": {"role": "assistant", "content": "Veja estas opções"},
            "cards": [
                {"card_id": "c1", "type": "recommendations", "payload": {"items": []}},
                {"type": "missing_id"},
            ],
            "suggested_chips": [{"chip_id": "chip_a", "label": "Mais barato"}, {"label": "x"}],
        }

        step = await make_port(_json(body)).send_message(live, "recomenda?", Language.EN, None)

        legacy = step.result.legacy_envelope
        assert step.result.envelope is None
        assert step.result.answer == "Veja estas opções"
        assert legacy is not None
        assert [card.type for card in legacy.cards] == ["recommendations"]
        assert [chip.chip_id for chip in legacy.suggested_chips] == ["chip_a"]
