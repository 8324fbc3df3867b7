"""Erros de domínio levantados pelas operações do fluxo."""

from __future__ import annotations


class ContractViolationError(Exception):
    """Backend omitiu um campo crítico (analysis, checkout_result, productPairs).

    Fatal para a chamada: o resultado nunca é fabricado localmente.
    A UI deve tratar como falha retentável.
    """

    retryable = True

    def __init__(self, field: str, endpoint: str) -> None:
        super().__init__(f"Missing `{field}` in {endpoint} response")
        self.field = field
        self.endpoint = endpoint


class OperationInProgressError(Exception):
    """Segunda operação disparada enquanto outra está em voo na mesma sessão."""

    def __init__(self, brief_id: str, operation: str) -> None:
        super().__init__(f"Operation already in flight for session ({operation})")
        self.brief_id = brief_id
        self.operation = operation
