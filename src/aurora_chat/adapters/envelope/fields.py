from __future__ import annotations

import math
from typing import Any


def as_record(value: Any) -> dict[str, Any] | None:
    """Dict (objeto JSON) ou None; listas e escalares viram None."""
    if isinstance(value, dict):
        return value
    return None


def as_string(value: Any) -> str:
    """String sem espaços nas bordas; não-strings viram ""."""
    if isinstance(value, str):
        return value.strip()
    return ""


def as_list(value: Any) -> list[Any]:
    if isinstance(value, list):
        return value
    return []


def as_string_list(value: Any, limit: int) -> list[str]:
    """Strings não vazias, no máximo `limit`."""
    out: list[str] = []
    for row in as_list(value):
        text = as_string(row)
        if not text:
            continue
        out.append(text)
        if len(out) >= limit:
            break
    return out


def as_records(value: Any, limit: int) -> list[dict[str, Any]]:
    """Somente os itens que são objetos, no máximo `limit`."""
    return [row for row in as_list(value) if isinstance(row, dict)][:limit]


def as_finite_number(value: Any) -> float | None:
    """Número finito (aceita string numérica); bool e lixo viram None."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
