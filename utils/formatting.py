"""Display formatting for engine results."""

from __future__ import annotations

import math
from typing import Optional

FALLBACK = "N/A"

_FLOPS_UNITS = ((1e15, "PFLOPS"), (1e12, "TFLOPS"), (1e9, "GFLOPS"), (1e6, "MFLOPS"))


def finite_or(value: Optional[float], fallback: float = 0.0) -> float:
    """Return ``value`` as a float, or ``fallback`` for ``None``/NaN/inf."""

    if value is None:
        return fallback
    value = float(value)
    return value if math.isfinite(value) else fallback


def _is_finite(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(float(value))


def format_flops(value: Optional[float], *, fallback: str = FALLBACK) -> str:
    """``1.98e15`` -> ``"1.98 PFLOPS"``."""

    if not _is_finite(value):
        return fallback
    value = float(value)  # type: ignore[arg-type]
    for scale, unit in _FLOPS_UNITS:
        if value >= scale:
            return f"{value / scale:.2f} {unit}"
    return f"{value:.2f} FLOPS"


def format_memory(value_gb: Optional[float], *, fallback: str = FALLBACK) -> str:
    """Gigabytes as TB above 1000 GB and MB below 1 GB."""

    if not _is_finite(value_gb):
        return fallback
    value = float(value_gb)  # type: ignore[arg-type]
    if value >= 1000:
        return f"{value / 1000:.2f} TB"
    if value >= 1:
        return f"{value:.1f} GB"
    return f"{value * 1024:.0f} MB"


def format_percentage(value: Optional[float], decimals: int = 1, *, fallback: str = FALLBACK) -> str:
    if not _is_finite(value):
        return fallback
    value = float(value)  # type: ignore[arg-type]
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.{decimals}f}%"


def format_number(value: Optional[float], decimals: int = 0, *, fallback: str = FALLBACK) -> str:
    if not _is_finite(value):
        return fallback
    return f"{float(value):,.{decimals}f}"  # type: ignore[arg-type]


__all__ = [
    "FALLBACK",
    "finite_or",
    "format_flops",
    "format_memory",
    "format_number",
    "format_percentage",
]
