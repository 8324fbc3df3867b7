"""Testes do merge de patch sobre a sessão e do ciclo de vida."""

from __future__ import annotations

from aurora_chat.application.session import (
    merge_session,
    new_session,
    resolve_state,
    restart_from,
)
from aurora_chat.domain.enums import BudgetTier, Market, PhotoSlotId, QcStatus, SessionMode
from aurora_chat.domain.flow_states import FlowState
from aurora_chat.domain.models import PhotoSlot, Session, SessionPatch
from aurora_chat.utils.ids import IdGenerator


def _patch(**data) -> SessionPatch:
    return SessionPatch.model_validate(data)


class TestResolveState:
    """Prioridade do próximo estado."""

    def test_next_state_wins(self, session: Session) -> None:
        patch = _patch(next_state="S6_BUDGET", state="S7_PRODUCT_RECO")
        assert resolve_state(session, patch, FlowState.S9_SUCCESS) == FlowState.S6_BUDGET

    def test_state_before_fallback(self, session: Session) -> None:
        patch = _patch(state="S7_PRODUCT_RECO")
        assert resolve_state(session, patch, FlowState.S9_SUCCESS) == FlowState.S7_PRODUCT_RECO

    def test_fallback_then_current(self, session: Session) -> None:
        assert resolve_state(session, _patch(), FlowState.S4_ANALYSIS_LOADING) == (
            FlowState.S4_ANALYSIS_LOADING
        )
        assert resolve_state(session, _patch()) == session.state


class TestMergeSession:
    """Identidade imutável, merge raso de mapas, sobrescrita do resto."""

    def test_identity_never_overwritten(self, session: Session) -> None:
        patch = _patch(brief_id="forged", trace_id="forged", mode="live", aurora_uid="other")

        merged = merge_session(session, patch)

        assert merged.brief_id == session.brief_id
        assert merged.trace_id == session.trace_id
        assert merged.mode == SessionMode.DEMO
        assert merged.aurora_uid == "uid_1"

    def test_empty_patch_only_moves_state(self, session: Session) -> None:
        current = session.model_copy(
            update={
                "state": FlowState.S6_BUDGET,
                "market": Market.UK,
                "budget_tier": BudgetTier.HIGH,
                "selected_offers": {"sku_a": "o1"},
                "photos": {PhotoSlotId.DAYLIGHT: PhotoSlot(id=PhotoSlotId.DAYLIGHT)},
                "clarification_count": 2,
            }
        )

        merged = merge_session(current, SessionPatch(), FlowState.S7_PRODUCT_RECO)

        expected = {**current.model_dump(), "state": FlowState.S7_PRODUCT_RECO}
        assert merged.model_dump() == expected
        assert merge_session(current, SessionPatch()).model_dump() == current.model_dump()

    def test_photos_merged_per_slot(self, session: Session) -> None:
        current = session.model_copy(
            update={
                "photos": {
                    PhotoSlotId.DAYLIGHT: PhotoSlot(id=PhotoSlotId.DAYLIGHT, preview="a.jpg"),
                }
            }
        )
        patch = _patch(photos={"indoor_white": {"qcStatus": "passed"}})

        merged = merge_session(current, patch)

        assert set(merged.photos) == {PhotoSlotId.DAYLIGHT, PhotoSlotId.INDOOR_WHITE}
        assert merged.photos[PhotoSlotId.INDOOR_WHITE].qc_status == QcStatus.PASSED

    def test_selected_offers_merged(self, session: Session) -> None:
        current = session.model_copy(update={"selected_offers": {"sku_a": "o1"}})
        merged = merge_session(current, _patch(selected_offers={"sku_b": "o2"}))
        assert merged.selected_offers == {"sku_a": "o1", "sku_b": "o2"}

    def test_other_fields_overwrite(self, session: Session) -> None:
        current = session.model_copy(update={"market": Market.UK})
        merged = merge_session(current, _patch(market="EU", budget_tier="$"))
        assert merged.market == Market.EU
        assert merged.budget_tier == BudgetTier.LOW

    def test_null_for_non_nullable_is_ignored(self, session: Session) -> None:
        current = session.model_copy(update={"clarification_count": 3})
        merged = merge_session(current, _patch(clarification_count=None))
        assert merged.clarification_count == 3

    def test_does_not_mutate_current(self, session: Session) -> None:
        merge_session(session, _patch(market="US", next_state="S2_DIAGNOSIS"))
        assert session.market is None
        assert session.state == FlowState.S0_LANDING


class TestSessionFactory:
    """Criação e restart."""

    def test_new_session(self) -> None:
        ids = IdGenerator(clock=lambda: 1.0)

        session = new_session(ids, mode=SessionMode.LIVE)

        assert session.brief_id == "brief_1000_1"
        assert session.trace_id == "trace_1000_2"
        assert session.aurora_uid is not None and session.aurora_uid.startswith("uid_")
        assert session.state == FlowState.S0_LANDING

    def test_restart_keeps_only_mode_and_uid(self, session: Session) -> None:
        ids = IdGenerator()
        progressed = session.model_copy(
            update={"mode": SessionMode.LIVE, "market": Market.US, "state": FlowState.S8_CHECKOUT}
        )

        fresh = restart_from(progressed, ids)

        assert fresh.brief_id != progressed.brief_id
        assert fresh.mode == SessionMode.LIVE
        assert fresh.aurora_uid == "uid_1"
        assert fresh.market is None
        assert fresh.state == FlowState.S0_LANDING
