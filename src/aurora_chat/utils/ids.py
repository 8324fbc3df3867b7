"""Geradores de identificadores."""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable


class IdGenerator:
    """Gera ids `{prefixo}_{epoch_ms}_{contador}` para sessões e pedidos.

    Instância explícita (nunca global): vive junto do orquestrador, para que
    testes não compartilhem contador. O contador nunca é zerado, assim um
    restart no mesmo milissegundo ainda gera ids distintos.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._counter = 0

    def new(self, prefix: str) -> str:
        """Gera um novo id com o prefixo informado."""
        self._counter += 1
        return f"{prefix}_{int(self._clock() * 1000)}_{self._counter}"

    def new_order_id(self) -> str:
        """Gera id de pedido (demo) no formato ORD-<base36>."""
        self._counter += 1
        return f"ORD-{_base36(int(self._clock() * 1000) + self._counter)}"


def new_aurora_uid() -> str:
    """Gera um identificador anônimo estável para o cliente."""

    return f"uid_{uuid.uuid4().hex}"


def _base36(value: int) -> str:
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    if value == 0:
        return "0"
    out: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        out.append(digits[rem])
    return "".join(reversed(out))
