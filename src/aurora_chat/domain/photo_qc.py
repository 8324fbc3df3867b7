"""Gate de QC de fotos: bloqueia no máximo uma vez por slot.

Regra:
- qc_issues = slots cujo status não é "passed"
- Se algum slot reprovado ainda tem retry_count < 1 → S3a_PHOTO_QC
- Sem problemas, ou todos os reprovados já reenviados uma vez → S4
"""

from __future__ import annotations

import random
from collections.abc import Mapping
from dataclasses import dataclass

from aurora_chat.domain.enums import PhotoSlotId, QcStatus
from aurora_chat.domain.flow_states import FlowState
from aurora_chat.domain.models import PhotoSlot

MAX_QC_BLOCKS_PER_SLOT = 1
SLOT_ORDER: tuple[PhotoSlotId, ...] = (PhotoSlotId.DAYLIGHT, PhotoSlotId.INDOOR_WHITE)


@dataclass(slots=True, frozen=True)
class QcIssue:
    slot: PhotoSlotId
    status: QcStatus


def collect_qc_issues(photos: Mapping[PhotoSlotId, PhotoSlot]) -> list[QcIssue]:
    """Lista os slots com QC conhecido e diferente de "passed"."""
    issues: list[QcIssue] = []
    for slot_id in SLOT_ORDER:
        slot = photos.get(slot_id)
        if slot is None or slot.qc_status is None:
            continue
        if slot.qc_status != QcStatus.PASSED:
            issues.append(QcIssue(slot=slot_id, status=slot.qc_status))
    return issues


def resolve_photo_gate(
    photos: Mapping[PhotoSlotId, PhotoSlot],
) -> tuple[list[QcIssue], FlowState]:
    """Decide o próximo estado após anexar fotos.

    Retorna (qc_issues, next_state). Nunca lança exceção.
    """
    issues = collect_qc_issues(photos)
    blocking = [
        issue
        for issue in issues
        if photos[issue.slot].retry_count < MAX_QC_BLOCKS_PER_SLOT
    ]
    next_state = FlowState.S3a_PHOTO_QC if blocking else FlowState.S4_ANALYSIS_LOADING
    return issues, next_state


def simulate_photo_qc(rng: random.Random) -> QcStatus:
    """QC simulado da demo (~35% de reprovação)."""
    roll = rng.random()
    if roll < 0.2:
        return QcStatus.TOO_DARK
    if roll < 0.3:
        return QcStatus.HAS_FILTER
    if roll < 0.35:
        return QcStatus.BLURRY
    return QcStatus.PASSED


def next_retry_count(previous: PhotoSlot | None, incoming: PhotoSlot) -> int:
    """Reenvio de um slot reprovado conta como nova tentativa."""
    if previous is None or previous.qc_status in (None, QcStatus.PASSED, QcStatus.PENDING):
        return incoming.retry_count
    return max(incoming.retry_count, previous.retry_count + 1)
