"""Estados lineares do fluxo de conversa (landing → checkout).

- O estado da sessão só avança via operações do orquestrador
- "Alcançado"/"concluído" são calculados por índice na ordem canônica
- Estados P1/P2 (análise de produto avulso) ficam fora da ordem
"""

from __future__ import annotations

from enum import StrEnum


class FlowState(StrEnum):
    """16 estados do fluxo principal e do ramo de análise de produto."""

    # === Entrada ===
    S0_LANDING = "S0_LANDING"
    """Tela inicial, sessão recém-criada."""

    S1_OPEN_INTENT = "S1_OPEN_INTENT"
    """Usuário descrevendo o objetivo em texto livre."""

    # === Diagnóstico ===
    S2_DIAGNOSIS = "S2_DIAGNOSIS"
    """Coleta de tipo de pele, preocupações e rotina atual."""

    S3_PHOTO_OPTION = "S3_PHOTO_OPTION"
    """Oferta de envio de fotos (opcional)."""

    S3a_PHOTO_QC = "S3a_PHOTO_QC"
    """Foto reprovada no QC; aguardando reenvio ou continuação."""

    S4_ANALYSIS_LOADING = "S4_ANALYSIS_LOADING"
    """Análise em andamento."""

    S5_ANALYSIS_SUMMARY = "S5_ANALYSIS_SUMMARY"
    """Resumo da análise exibido."""

    S5a_RISK_CHECK = "S5a_RISK_CHECK"
    """Pergunta de segurança sobre ativos em uso."""

    # === Recomendação ===
    S6_BUDGET = "S6_BUDGET"
    """Escolha de faixa de orçamento."""

    S7_PRODUCT_RECO = "S7_PRODUCT_RECO"
    """Pares premium/dupe recomendados."""

    # === Checkout ===
    S8_CHECKOUT = "S8_CHECKOUT"
    """Revisão e pagamento."""

    S9_SUCCESS = "S9_SUCCESS"
    """Pedido confirmado."""

    S10_FAILURE = "S10_FAILURE"
    """Checkout falhou (pagamento recusado, oferta expirada)."""

    S11_RECOVERY = "S11_RECOVERY"
    """Sub-fluxo de recuperação após falha."""

    # === Ramo lateral: análise de produto ===
    P1_PRODUCT_ANALYZING = "P1_PRODUCT_ANALYZING"
    """Foto de produto recebida; análise em andamento."""

    P2_PRODUCT_RESULT = "P2_PRODUCT_RESULT"
    """Resultado de compatibilidade do produto."""


INITIAL_STATE: FlowState = FlowState.S0_LANDING

FLOW_ORDER: tuple[FlowState, ...] = (
    FlowState.S0_LANDING,
    FlowState.S1_OPEN_INTENT,
    FlowState.S2_DIAGNOSIS,
    FlowState.S3_PHOTO_OPTION,
    FlowState.S3a_PHOTO_QC,
    FlowState.S4_ANALYSIS_LOADING,
    FlowState.S5_ANALYSIS_SUMMARY,
    FlowState.S5a_RISK_CHECK,
    FlowState.S6_BUDGET,
    FlowState.S7_PRODUCT_RECO,
    FlowState.S8_CHECKOUT,
    FlowState.S9_SUCCESS,
    FlowState.S10_FAILURE,
    FlowState.S11_RECOVERY,
)
"""Ordem canônica usada nas comparações de progresso."""

SIDE_BRANCH_STATES = frozenset({
    FlowState.P1_PRODUCT_ANALYZING,
    FlowState.P2_PRODUCT_RESULT,
})
"""Estados fora da ordem linear (índice -1)."""

_INDEX: dict[FlowState, int] = {state: idx for idx, state in enumerate(FLOW_ORDER)}


def flow_index(state: FlowState | str) -> int:
    """Posição do estado na ordem canônica; -1 para ramo lateral/desconhecido."""
    try:
        return _INDEX.get(FlowState(state), -1)
    except ValueError:
        return -1


def has_reached(current: FlowState | str, target: FlowState | str) -> bool:
    """True se `current` está em `target` ou depois dele."""
    current_idx = flow_index(current)
    target_idx = flow_index(target)
    if current_idx < 0 or target_idx < 0:
        return False
    return current_idx >= target_idx


def has_completed(current: FlowState | str, target: FlowState | str) -> bool:
    """True se `target` ficou estritamente para trás de `current`."""
    current_idx = flow_index(current)
    target_idx = flow_index(target)
    if current_idx < 0 or target_idx < 0:
        return False
    return current_idx > target_idx


def flow_progress(current: FlowState | str) -> float:
    """Fração do fluxo linear percorrida (0.0 a 1.0)."""
    idx = flow_index(current)
    if idx < 0:
        return 0.0
    return idx / (len(FLOW_ORDER) - 1)
