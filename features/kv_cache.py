"""Model footprint and KV cache sizing shared by the GPU and CPU solvers."""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from .architecture import Architecture, vram_parameters
from .quantization import QuantizationProfile

MODEL_SIZE_OVERHEAD = 1.2
ACTIVATIONS_RATIO = 0.20
VRAM_SAFETY_BUFFER = 0.10


@dataclass(frozen=True)
class KvCacheTotals:
    """KV cache for a user population, split by where it lives."""

    total_gb: float
    active_gb: float
    in_vram_gb: float
    offloaded_gb: float


@dataclass(frozen=True)
class VramBreakdown:
    """Per-unit memory requirement once the fleet size is known."""

    model_gb: float
    kv_gb: float
    activations_gb: float
    safety_gb: float

    @property
    def total_gb(self) -> float:
        return self.model_gb + self.kv_gb + self.activations_gb + self.safety_gb


def _clamp01(value: float) -> float:
    return max(0.0, min(1.0, float(value)))


def model_size_gb(
    params_billions: float,
    quant: QuantizationProfile,
    arch: Architecture,
    *,
    expert_shards: int = 1,
    overhead: float = MODEL_SIZE_OVERHEAD,
) -> float:
    """Weights resident per unit, with ``overhead`` reserved for buffers."""

    params = vram_parameters(params_billions, arch, expert_shards)
    return params * float(quant.bytes_per_param) * float(overhead)


def kv_bytes_per_token(arch: Architecture, bytes_per_value: float) -> float:
    """K and V bytes stored per token across all layers.

    Equivalent to ``2 * layers * hidden * bytes * kv_heads / query_heads``:
    only the KV heads are cached, which is the grouped-query attention saving.
    """

    return 2.0 * arch.layers * arch.kv_heads * arch.head_dim * float(bytes_per_value)


def total_kv_cache(
    users: float,
    session_tokens: float,
    bytes_per_token: float,
    active_fraction: float = 1.0,
    offload_ratio: float = 0.0,
) -> KvCacheTotals:
    """Aggregate KV cache for ``users`` sessions of ``session_tokens`` each.

    ``active_fraction`` is the share of sessions hot at once and
    ``offload_ratio`` the share of those moved off-device.  Both are clamped
    to ``[0, 1]``.
    """

    total = max(0.0, float(users)) * max(0.0, float(session_tokens)) * float(bytes_per_token) / 1e9
    active = total * _clamp01(active_fraction)
    offload = _clamp01(offload_ratio)
    return KvCacheTotals(
        total_gb=total,
        active_gb=active,
        in_vram_gb=active * (1.0 - offload),
        offloaded_gb=active * offload,
    )


def vram_requirements(
    model_gb: float,
    kv_in_vram_gb: float,
    units: int = 1,
    *,
    activations_ratio: float = ACTIVATIONS_RATIO,
    safety_buffer: float = VRAM_SAFETY_BUFFER,
) -> VramBreakdown:
    kv_per_unit = kv_in_vram_gb / units if units > 0 else kv_in_vram_gb
    activations = model_gb * activations_ratio
    subtotal = model_gb + kv_per_unit + activations
    return VramBreakdown(
        model_gb=float(model_gb),
        kv_gb=float(kv_per_unit),
        activations_gb=float(activations),
        safety_gb=float(subtotal * safety_buffer),
    )


def memory_breakdown_dataframe(breakdown: VramBreakdown, vram_per_unit_gb: float) -> pd.DataFrame:
    """Return a per-component memory table for display."""

    rows = [
        ("Model weights", breakdown.model_gb),
        ("KV cache", breakdown.kv_gb),
        ("Activations", breakdown.activations_gb),
        ("Safety buffer", breakdown.safety_gb),
    ]
    capacity = float(vram_per_unit_gb)
    return pd.DataFrame(
        {
            "Component": [name for name, _ in rows] + ["Total"],
            "GB_per_unit": [value for _, value in rows] + [breakdown.total_gb],
            "Share_of_VRAM": [
                (value / capacity if capacity > 0 else 0.0)
                for value in [v for _, v in rows] + [breakdown.total_gb]
            ],
        }
    )


__all__ = [
    "ACTIVATIONS_RATIO",
    "KvCacheTotals",
    "MODEL_SIZE_OVERHEAD",
    "VRAM_SAFETY_BUFFER",
    "VramBreakdown",
    "kv_bytes_per_token",
    "memory_breakdown_dataframe",
    "model_size_gb",
    "total_kv_cache",
    "vram_requirements",
]
