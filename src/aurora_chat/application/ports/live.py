"""Implementação live das operações de fluxo (backend Aurora/Pivota).

Fluxo de cada operação:
1. Chamada HTTP via BackendTransport (uma tentativa, sem retry)
2. Extração do patch de sessão (aliases reconciliados, campos inválidos descartados)
3. Merge com o fallback_state da operação
4. Campos críticos ausentes (analysis, checkout_result, productPairs, routine)
   → ContractViolationError
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from aurora_chat.adapters.envelope.fields import as_record, as_string
from aurora_chat.adapters.envelope.models import ChatReply
from aurora_chat.adapters.envelope.legacy import parse_legacy_envelope
from aurora_chat.adapters.envelope.parser import parse_chat_response
from aurora_chat.adapters.session_patch import extract_session_patch
from aurora_chat.application.session.merge import merge_session
from aurora_chat.config.settings import SHOP_INVOKE_PATH
from aurora_chat.domain.checkout_routes import CheckoutItem
from aurora_chat.domain.enums import (
    AffiliateOutcome,
    BudgetTier,
    CheckoutOutcome,
    Language,
    Market,
    PhotoSlotId,
    ProductVariant,
    PurchaseRoute,
    RiskAnswer,
    RoutePreference,
)
from aurora_chat.domain.errors import ContractViolationError
from aurora_chat.domain.flow_states import FlowState
from aurora_chat.domain.models import (
    AnalysisResult,
    CheckoutResult,
    DiagnosisResult,
    Offer,
    PhotoSlot,
    ProductPair,
    ProductPairs,
    ProductSelection,
    RoutineSet,
    Session,
    SessionPatch,
)
from aurora_chat.domain.photo_qc import SLOT_ORDER, QcIssue, next_retry_count, resolve_photo_gate
from aurora_chat.domain.protocols.backend_port import BackendPort, FlowStep
from aurora_chat.infra.http import BackendTransport, RequestIdentity, TransportError
from aurora_chat.observability.logging import get_logger, log_fallback, short_id

logger: logging.Logger = get_logger(__name__)

# Preferência da UI → valor aceito por /routine/reorder (None = omitido)
API_PREFERENCE: dict[RoutePreference, str | None] = {
    RoutePreference.CHEAPER: "cheaper",
    RoutePreference.GENTLER: "gentler",
    RoutePreference.FASTEST: "fastest_delivery",
    RoutePreference.KEEP: None,
}
AFFILIATE_RESOLVE_LIMIT = 10
_OFFER_CONTAINERS: tuple[str, ...] = ("payload", "result", "data")


def identity_of(session: Session) -> RequestIdentity:
    return RequestIdentity(
        brief_id=session.brief_id,
        trace_id=session.trace_id,
        aurora_uid=session.aurora_uid,
    )


def _patch_count(patch: SessionPatch) -> int | None:
    """clarification_count do backend, somente quando explicitamente enviado."""
    if "clarification_count" in patch.model_fields_set:
        return patch.clarification_count
    return None


def _parse_pairs(raw: Any) -> list[ProductPair]:
    """Lista de pares vinda de chaves alternativas; itens inválidos descartados."""
    if not isinstance(raw, list):
        return []
    pairs: list[ProductPair] = []
    for row in raw:
        try:
            pairs.append(ProductPair.model_validate(row))
        except ValidationError:
            logger.warning("product_pair_dropped", extra={"reason": "invalid_shape"})
    return pairs


def _parse_model(model: type, raw: Any) -> Any:
    if raw is None:
        return None
    try:
        return model.model_validate(raw)
    except ValidationError:
        return None


def _offers_in(response: Any) -> list[Any]:
    """Ofertas em res.offers, res.payload.offers, res.result.offers ou res.data.offers."""
    record = as_record(response)
    if record is None:
        return []
    if isinstance(record.get("offers"), list):
        return record["offers"]
    for key in _OFFER_CONTAINERS:
        container = as_record(record.get(key))
        if container is not None and isinstance(container.get("offers"), list):
            return container["offers"]
    return []


class LivePort(BackendPort):
    """Operações via backend, sempre passando por extração + merge."""

    def __init__(self, transport: BackendTransport, shop_gateway_url: str | None = None) -> None:
        self._transport = transport
        self._shop_gateway_url = (shop_gateway_url or "").rstrip("/") or None

    async def _post(self, session: Session, path: str, body: dict[str, Any]) -> Any:
        return await self._transport.request_json(
            identity_of(session),
            path,
            "POST",
            json={**body, "trace_id": session.trace_id},
        )

    async def submit_diagnosis(
        self, session: Session, diagnosis: DiagnosisResult | None, skipped: bool
    ) -> FlowStep[None]:
        counted = session.clarification_count if skipped else session.clarification_count + 1
        body: dict[str, Any] = diagnosis.model_dump(mode="json", by_alias=True) if diagnosis else {}
        body.update(
            {
                "skipped": skipped,
                "intent_id": session.intent_id,
                "intent_text": session.intent_text,
                "market": session.market,
                "budget_tier": session.budget_tier,
            }
        )
        res = await self._post(session, "/diagnosis", body)

        patch = extract_session_patch(res)
        merged = merge_session(session, patch, FlowState.S3_PHOTO_OPTION)
        count = _patch_count(patch)
        updated = merged.model_copy(
            update={
                "diagnosis": merged.diagnosis or diagnosis,
                "clarification_count": count if count is not None else counted,
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
        local = session.model_copy(
            update={
                "state": FlowState.S3_PHOTO_OPTION,
                "market": market or Market.US,
                "budget_tier": budget_tier or BudgetTier.MID,
                "clarification_count": (
                    session.clarification_count if skipped else session.clarification_count + 1
                ),
            }
        )
        res = await self._post(
            session,
            "/diagnosis",
            {
                "market": local.market,
                "budget_tier": local.budget_tier,
                "skipped": skipped,
                "intent_id": session.intent_id,
            },
        )
        patch = extract_session_patch(res)
        return FlowStep(merge_session(local, patch, FlowState.S3_PHOTO_OPTION), None)

    async def _upload_photos(
        self, session: Session, photos: Mapping[PhotoSlotId, PhotoSlot], consent: bool
    ) -> Any:
        files: dict[str, tuple[str, bytes, str]] = {}
        for slot_id in SLOT_ORDER:
            slot = photos.get(slot_id)
            if slot is not None and slot.content is not None:
                filename = slot.filename or f"{slot_id.value}.jpg"
                files[slot_id.value] = (filename, slot.content, "image/jpeg")
        return await self._transport.request_json(
            identity_of(session),
            "/photos",
            "POST",
            data={"consent": "true" if consent else "false", "trace_id": session.trace_id},
            files=files or None,
        )

    async def attach_photos(
        self,
        session: Session,
        photos: Mapping[PhotoSlotId, PhotoSlot],
        sample_set_id: str | None,
        consent: bool,
    ) -> FlowStep[list[QcIssue]]:
        if sample_set_id:
            res = await self._post(session, "/photos/sample", {"sample_set_id": sample_set_id})
        else:
            res = await self._upload_photos(session, photos, consent)

        patch = extract_session_patch(res)
        merged = merge_session(session, patch)

        returned_photos = patch.photos or {}
        processed = dict(merged.photos)
        for slot_id in SLOT_ORDER:
            returned = returned_photos.get(slot_id)
            incoming = photos.get(slot_id)
            previous = session.photos.get(slot_id)
            if returned is None and incoming is None:
                continue
            processed[slot_id] = self._normalize_slot(slot_id, returned, incoming, previous)

        issues, gate_state = resolve_photo_gate(processed)
        update: dict[str, Any] = {
            "photos": processed,
            "sample_photo_set_id": sample_set_id or merged.sample_photo_set_id,
        }
        if not patch.has_explicit_state:
            update["state"] = gate_state
        return FlowStep(merged.model_copy(update=update), issues)

    @staticmethod
    def _normalize_slot(
        slot_id: PhotoSlotId,
        returned: PhotoSlot | None,
        incoming: PhotoSlot | None,
        previous: PhotoSlot | None,
    ) -> PhotoSlot:
        """Slot do backend completado com o que o cliente já sabia."""
        fallback = incoming or previous
        base = returned or fallback or PhotoSlot()

        if returned is not None and "retry_count" in returned.model_fields_set:
            retry_count = returned.retry_count
        elif incoming is not None:
            retry_count = next_retry_count(previous, incoming)
        else:
            retry_count = previous.retry_count if previous else base.retry_count

        return base.model_copy(
            update={
                "id": slot_id,
                "preview": base.preview or (fallback.preview if fallback else None),
                "qc_status": base.qc_status or (fallback.qc_status if fallback else None),
                "retry_count": retry_count,
                "content": incoming.content if incoming else None,
                "filename": incoming.filename if incoming else None,
            }
        )

    async def run_analysis(self, session: Session) -> FlowStep[AnalysisResult]:
        res = await self._post(session, "/analysis", {"intent_id": session.intent_id})

        patch = extract_session_patch(res)
        merged = merge_session(session, patch, FlowState.S5_ANALYSIS_SUMMARY)

        analysis = merged.analysis if "analysis" in patch.model_fields_set else None
        if analysis is None:
            analysis = _parse_model(AnalysisResult, (as_record(res) or {}).get("analysis"))
        if analysis is None:
            raise ContractViolationError("analysis", "/analysis")

        return FlowStep(merged.model_copy(update={"analysis": analysis}), analysis)

    async def answer_risk_check(self, session: Session, answer: RiskAnswer) -> FlowStep[None]:
        counted = (
            session.clarification_count
            if answer == RiskAnswer.SKIP
            else session.clarification_count + 1
        )
        res = await self._post(session, "/analysis/risk", {"answer": answer})

        patch = extract_session_patch(res)
        merged = merge_session(session, patch, FlowState.S6_BUDGET)
        count = _patch_count(patch)

        analysis = merged.analysis
        if analysis is not None:
            analysis = analysis.model_copy(
                update={"risk_answered": True, "using_actives": answer == RiskAnswer.YES}
            )
        updated = merged.model_copy(
            update={
                "analysis": analysis,
                "clarification_count": count if count is not None else counted,
            }
        )
        return FlowStep(updated, None)

    async def build_product_pairs(
        self, session: Session, preference: RoutePreference | None
    ) -> FlowStep[ProductPairs]:
        res = await self._post(
            session,
            "/routine/reorder",
            {
                "preference": API_PREFERENCE.get(preference) if preference else None,
                "market": session.market,
                "budget_tier": session.budget_tier,
                "intent_id": session.intent_id,
            },
        )
        patch = extract_session_patch(res)
        merged = merge_session(session, patch, FlowState.S7_PRODUCT_RECO)

        record = as_record(res) or {}
        source_pairs = patch.product_pairs
        if source_pairs is None:
            source_pairs = _parse_model(
                ProductPairs, record.get("productPairs") or record.get("product_pairs")
            )
        am = source_pairs.am if source_pairs else []
        pm = source_pairs.pm if source_pairs else []
        if not am:
            am = _parse_pairs(record.get("amPairs")) or _parse_pairs(record.get("am_pairs"))
        if not pm:
            pm = _parse_pairs(record.get("pmPairs")) or _parse_pairs(record.get("pm_pairs"))

        pairs = ProductPairs(am=am, pm=pm)
        if pairs.is_empty():
            raise ContractViolationError("productPairs", "/routine/reorder")

        return FlowStep(merged.model_copy(update={"product_pairs": pairs}), pairs)

    async def build_routine(
        self, session: Session, preference: RoutePreference | None
    ) -> FlowStep[RoutineSet]:
        res = await self._post(
            session,
            "/routine/build",
            {
                "preference": API_PREFERENCE.get(preference) if preference else None,
                "market": session.market,
                "budget_tier": session.budget_tier,
                "intent_id": session.intent_id,
            },
        )
        patch = extract_session_patch(res)
        merged = merge_session(session, patch, FlowState.S7_PRODUCT_RECO)

        routine = patch.routine
        if routine is None:
            routine = _parse_model(RoutineSet, (as_record(res) or {}).get("routine"))
        if routine is None:
            raise ContractViolationError("routine", "/routine/build")

        return FlowStep(merged.model_copy(update={"routine": routine}), routine)

    async def select_product(
        self,
        session: Session,
        category: str,
        variant: ProductVariant,
        sku_id: str | None,
        offer_id: str | None,
    ) -> FlowStep[None]:
        local_selections = {
            **session.product_selections,
            category: ProductSelection(type=variant, offer_id=offer_id),
        }
        res = await self._transport.request_json(
            identity_of(session),
            "/routine/selection",
            "PATCH",
            json={
                "trace_id": session.trace_id,
                "selection": {
                    "key": category,
                    "category": category,
                    "type": variant,
                    "sku_id": sku_id,
                    "offer_id": offer_id,
                },
            },
        )
        patch = extract_session_patch(res)
        merged = merge_session(session, patch)
        if "product_selections" not in patch.model_fields_set:
            merged = merged.model_copy(update={"product_selections": local_selections})
        return FlowStep(merged, None)

    async def checkout(
        self,
        session: Session,
        offer_ids: Sequence[str],
        forced_outcome: CheckoutOutcome | None,
    ) -> FlowStep[CheckoutResult]:
        res = await self._post(session, "/checkout", {"offer_ids": list(offer_ids)})

        patch = extract_session_patch(res)
        merged = merge_session(session, patch)

        result = merged.checkout_result if "checkout_result" in patch.model_fields_set else None
        if result is None:
            record = as_record(res) or {}
            result = _parse_model(CheckoutResult, record.get("checkout_result"))
            if result is None:
                result = _parse_model(CheckoutResult, record.get("result"))
        if result is None:
            raise ContractViolationError("checkout_result", "/checkout")

        update: dict[str, Any] = {"checkout_result": result}
        if not patch.has_explicit_state:
            update["state"] = FlowState.S9_SUCCESS if result.success else FlowState.S10_FAILURE
        return FlowStep(merged.model_copy(update=update), result)

    async def _resolve_one(self, session: Session, item: CheckoutItem) -> CheckoutItem:
        sku_id = item.product.sku_id
        if not sku_id or self._shop_gateway_url is None:
            return item

        res = await self._transport.request_json(
            identity_of(session),
            SHOP_INVOKE_PATH,
            "POST",
            base_url=self._shop_gateway_url,
            json={
                "operation": "offers.resolve",
                "payload": {
                    "offers": {
                        "product": {"sku_id": sku_id},
                        "market": session.market or Market.US,
                        "tool": "*",
                        "limit": AFFILIATE_RESOLVE_LIMIT,
                    }
                },
                "metadata": {"source": "chatbox", "trace_id": session.trace_id},
            },
        )

        for raw in _offers_in(res):
            record = as_record(raw)
            if record is None or record.get("purchase_route") != PurchaseRoute.AFFILIATE_OUTBOUND:
                continue
            url = as_string(record.get("affiliate_url"))
            if not url:
                continue
            if url.startswith("/"):
                url = f"{self._shop_gateway_url}{url}"
            offer = _parse_model(Offer, {**record, "affiliate_url": url})
            if offer is not None:
                return CheckoutItem(product=item.product, offer=offer)
        return item

    async def _resolve_or_keep(self, session: Session, item: CheckoutItem) -> CheckoutItem:
        try:
            return await self._resolve_one(session, item)
        except TransportError as exc:
            log_fallback(logger, "affiliate_resolution", reason=f"transport_{exc.status_code}")
            return item

    async def resolve_affiliate_items(
        self, session: Session, items: Sequence[CheckoutItem]
    ) -> FlowStep[list[CheckoutItem]]:
        if self._shop_gateway_url is None:
            log_fallback(logger, "affiliate_resolution", reason="shop_gateway_not_configured")
            return FlowStep(session, list(items))

        resolved = await asyncio.gather(*(self._resolve_or_keep(session, item) for item in items))
        logger.info(
            "affiliate_items_resolved",
            extra={"brief_id": short_id(session.brief_id), "items": len(resolved)},
        )
        return FlowStep(session, list(resolved))

    async def report_affiliate_outcome(
        self,
        session: Session,
        outcome: AffiliateOutcome,
        data: Mapping[str, Any] | None,
    ) -> FlowStep[None]:
        await self._post(session, "/affiliate/outcome", {"outcome": outcome, **(data or {})})
        return FlowStep(session, None)

    async def send_message(
        self,
        session: Session,
        text: str,
        language: Language,
        anchors: Mapping[str, str] | None,
    ) -> FlowStep[ChatReply]:
        res = await self._post(
            session,
            "/chat",
            {"message": text, "language": language, **(anchors or {})},
        )
        envelope = parse_chat_response(res)
        record = as_record(res) or {}
        if envelope is not None:
            reply = ChatReply(
                answer=envelope.assistant_text,
                intent=envelope.telemetry.intent,
                envelope=envelope,
            )
        else:
            legacy = parse_legacy_envelope(res)
            answer = as_string(record.get("answer"))
            if not answer and legacy is not None and legacy.assistant_message is not None:
                answer = legacy.assistant_message.content
            reply = ChatReply(
                answer=answer,
                intent=as_string(record.get("intent")) or None,
                legacy_envelope=legacy,
            )
        return FlowStep(session, reply)
