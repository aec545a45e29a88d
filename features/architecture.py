"""Model shapes used by the FLOPs and memory equations.

A :class:`ModelSpec` is what the user picks (parameter count, optional name,
optional expert shape).  :func:`resolve_architecture` turns it into a
structural :class:`Architecture` using a small table of reference dense models
and a name-keyed table holding the mixture-of-experts models plus a few
named dense models.  Sizes in between the dense
references are linearly interpolated field by field; sizes outside the table
clamp to the nearest entry.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from types import MappingProxyType
from typing import Mapping, Optional


@dataclass(frozen=True)
class Architecture:
    """Structural shape of a decoder-only transformer."""

    layers: int
    hidden_size: int
    kv_heads: int
    query_heads: int
    intermediate_size: Optional[int] = None
    is_moe: bool = False
    total_experts: Optional[int] = None
    active_experts: Optional[int] = None
    expert_parallelism: bool = False

    def __post_init__(self) -> None:
        if self.layers <= 0 or self.hidden_size <= 0:
            raise ValueError("Architecture requires positive layers and hidden_size")
        if self.query_heads <= 0 or self.kv_heads <= 0:
            raise ValueError("Architecture requires positive head counts")
        if self.kv_heads > self.query_heads:
            raise ValueError(
                f"kv_heads ({self.kv_heads}) must not exceed query_heads ({self.query_heads})"
            )

    @property
    def head_dim(self) -> int:
        return round_half_up(self.hidden_size / self.query_heads)

    @property
    def gqa_ratio(self) -> float:
        """Fraction of query heads that carry their own K/V projection."""

        return self.kv_heads / self.query_heads

    @property
    def expert_fraction(self) -> float:
        if not self.is_moe or not self.total_experts or not self.active_experts:
            return 1.0
        return self.active_experts / self.total_experts


@dataclass(frozen=True)
class ModelSpec:
    """User-facing description of the model being served.

    ``params_billions`` is the total parameter count.  ``total_experts`` and
    ``active_experts`` mark the model as mixture-of-experts and override the
    expert counts of the matching table entry.  ``expert_shards`` is the
    expert-parallel degree used for VRAM sizing.
    """

    params_billions: float
    name: Optional[str] = None
    total_experts: Optional[int] = None
    active_experts: Optional[int] = None
    active_params_override: Optional[float] = None
    expert_shards: int = 1

    @property
    def is_moe(self) -> bool:
        return bool(self.total_experts and self.active_experts)


DENSE_ARCHITECTURES: Mapping[int, Architecture] = MappingProxyType(
    {
        7: Architecture(layers=32, hidden_size=4096, kv_heads=32, query_heads=32, intermediate_size=11008),
        8: Architecture(layers=32, hidden_size=4096, kv_heads=8, query_heads=32, intermediate_size=14336),
        13: Architecture(layers=40, hidden_size=5120, kv_heads=40, query_heads=40, intermediate_size=13824),
        70: Architecture(layers=80, hidden_size=8192, kv_heads=8, query_heads=64, intermediate_size=28672),
        405: Architecture(layers=126, hidden_size=16384, kv_heads=8, query_heads=128, intermediate_size=53248),
    }
)

_MIXTRAL_8X7B = Architecture(
    layers=32,
    hidden_size=4096,
    kv_heads=8,
    query_heads=32,
    intermediate_size=14336,
    is_moe=True,
    total_experts=8,
    active_experts=2,
)

MOE_ARCHITECTURES: Mapping[str, Architecture] = MappingProxyType(
    {
        "mixtral-8x7b": _MIXTRAL_8X7B,
        "mixtral-8x22b": Architecture(
            layers=56,
            hidden_size=6144,
            kv_heads=8,
            query_heads=48,
            intermediate_size=16384,
            is_moe=True,
            total_experts=8,
            active_experts=2,
        ),
        "deepseek-v2": Architecture(
            layers=60,
            hidden_size=5120,
            kv_heads=16,
            query_heads=128,
            intermediate_size=12288,
            is_moe=True,
            total_experts=160,
            active_experts=6,
        ),
        "gpt-oss-120b": Architecture(
            layers=48,
            hidden_size=6144,
            kv_heads=12,
            query_heads=48,
            intermediate_size=16384,
            is_moe=True,
            total_experts=16,
            active_experts=2,
        ),
        "generic-moe": _MIXTRAL_8X7B,
    }
)

NAMED_DENSE_ARCHITECTURES: Mapping[str, Architecture] = MappingProxyType(
    {
        "claude-3-opus": Architecture(layers=64, hidden_size=12288, kv_heads=16, query_heads=96, intermediate_size=49152),
        "claude-3-sonnet": Architecture(layers=48, hidden_size=8192, kv_heads=16, query_heads=64, intermediate_size=32768),
        "claude-3-haiku": Architecture(layers=32, hidden_size=5120, kv_heads=8, query_heads=40, intermediate_size=20480),
        "claude-3.5-sonnet": Architecture(layers=52, hidden_size=8704, kv_heads=16, query_heads=68, intermediate_size=34816),
        "claude-4-opus": Architecture(layers=72, hidden_size=14336, kv_heads=24, query_heads=112, intermediate_size=57344),
        "claude-4-sonnet": Architecture(layers=56, hidden_size=9216, kv_heads=18, query_heads=72, intermediate_size=36864),
        "claude-4-haiku": Architecture(layers=36, hidden_size=5632, kv_heads=12, query_heads=44, intermediate_size=22528),
        "claude-haiku-4.5": Architecture(layers=40, hidden_size=6144, kv_heads=16, query_heads=48, intermediate_size=24576),
    }
)

# Every shape that is looked up by lowercase model name.
NAMED_ARCHITECTURES: Mapping[str, Architecture] = MappingProxyType(
    {**MOE_ARCHITECTURES, **NAMED_DENSE_ARCHITECTURES}
)

CUSTOM_MODEL_NAME = "custom"

# (low, high, name) inclusive ranges in billions of parameters.
_MOE_NAME_RANGES = (
    (119, 121, "gpt-oss-120b"),
    (46, 47, "mixtral-8x7b"),
    (175, 177, "mixtral-8x22b"),
    (235, 237, "deepseek-v2"),
)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, ties away from zero for positive values."""

    return int(math.floor(float(value) + 0.5))


def _custom_architecture(params_billions: float, dense_table: Mapping[int, Architecture]) -> Architecture:
    rounded = round_half_up(params_billions)
    if rounded in dense_table:
        return dense_table[rounded]
    # Scaled from the 70B reference shape.
    return Architecture(
        layers=max(32, round_half_up(80 * params_billions / 70)),
        hidden_size=8192,
        kv_heads=8,
        query_heads=64,
        intermediate_size=28672,
    )


def _interpolate(lower: Architecture, upper: Architecture, ratio: float) -> Architecture:
    def lerp(a: int, b: int) -> int:
        return round_half_up(a + (b - a) * ratio)

    intermediate = None
    if lower.intermediate_size and upper.intermediate_size:
        intermediate = lerp(lower.intermediate_size, upper.intermediate_size)
    return Architecture(
        layers=lerp(lower.layers, upper.layers),
        hidden_size=lerp(lower.hidden_size, upper.hidden_size),
        kv_heads=lerp(lower.kv_heads, upper.kv_heads),
        query_heads=lerp(lower.query_heads, upper.query_heads),
        intermediate_size=intermediate,
    )


def resolve_architecture(
    params_billions: float,
    name: Optional[str] = None,
    *,
    dense_table: Mapping[int, Architecture] = DENSE_ARCHITECTURES,
    named_table: Mapping[str, Architecture] = NAMED_ARCHITECTURES,
) -> Architecture:
    """Map a parameter count (and optional name) to a structural shape.

    Never raises for numeric input: custom models are scaled from the 70B
    reference, named models (MoE or dense) come from ``named_table``,
    and every other size is looked up, interpolated or clamped against ``dense_table``.
    """

    params = float(params_billions)
    if name == CUSTOM_MODEL_NAME:
        return _custom_architecture(params, dense_table)

    if name and name.lower() in named_table:
        return named_table[name.lower()]

    rounded = round_half_up(params)
    if rounded in dense_table:
        return dense_table[rounded]

    sizes = sorted(dense_table)
    if params < sizes[0]:
        return dense_table[sizes[0]]
    if params > sizes[-1]:
        return dense_table[sizes[-1]]

    lower_size, upper_size = sizes[0], sizes[-1]
    for low, high in zip(sizes, sizes[1:]):
        if low <= params <= high:
            lower_size, upper_size = low, high
            break
    ratio = (params - lower_size) / (upper_size - lower_size)
    return _interpolate(dense_table[lower_size], dense_table[upper_size], ratio)


def moe_name_for_params(params_billions: float) -> str:
    """Pick the MoE table entry that best matches a bare parameter count."""

    params = float(params_billions)
    for low, high, name in _MOE_NAME_RANGES:
        if low <= params <= high:
            return name
    return "generic-moe"


def architecture_for_model(
    model: ModelSpec,
    *,
    dense_table: Mapping[int, Architecture] = DENSE_ARCHITECTURES,
    named_table: Mapping[str, Architecture] = NAMED_ARCHITECTURES,
) -> Architecture:
    """Resolve the architecture of ``model`` including its expert overrides."""

    name = model.name
    if model.is_moe and not name:
        name = moe_name_for_params(model.params_billions)
    arch = resolve_architecture(
        model.params_billions, name, dense_table=dense_table, named_table=named_table
    )
    if model.is_moe:
        arch = replace(
            arch,
            is_moe=True,
            total_experts=int(model.total_experts),  # type: ignore[arg-type]
            active_experts=int(model.active_experts),  # type: ignore[arg-type]
            expert_parallelism=arch.expert_parallelism or model.expert_shards > 1,
        )
    return arch


def active_parameters(
    total_params: float,
    arch: Architecture,
    override: Optional[float] = None,
) -> float:
    """Parameters touched by a single token, in the same unit as ``total_params``."""

    if override is not None and override > 0:
        return float(override)
    if not arch.is_moe or not arch.total_experts or not arch.active_experts:
        return float(total_params)

    experts = (arch.total_experts, arch.active_experts)
    if experts == (8, 2):
        ratio = 0.25 if 170 <= total_params <= 180 else 0.278
    elif experts == (160, 6):
        ratio = 0.089
    elif experts == (16, 2):
        ratio = 0.125
    else:
        # 5% shared weights plus the routed share of the expert weights.
        ratio = 0.05 + 0.95 * arch.expert_fraction
    return float(total_params) * ratio


def vram_parameters(total_params: float, arch: Architecture, expert_shards: int = 1) -> float:
    """Parameters each unit must hold once experts are spread over ``expert_shards``."""

    shards = int(expert_shards)
    if not arch.is_moe or not arch.expert_parallelism or shards <= 1:
        return float(total_params)
    expert_params = float(total_params) * arch.expert_fraction
    shared_params = float(total_params) - expert_params
    return shared_params + expert_params / shards


def normalize_param_count(value: float) -> float:
    """Billions of parameters; raw counts above 1000 are divided by 1e9."""

    value = float(value)
    return value / 1e9 if value > 1000 else value


__all__ = [
    "Architecture",
    "CUSTOM_MODEL_NAME",
    "DENSE_ARCHITECTURES",
    "MOE_ARCHITECTURES",
    "NAMED_ARCHITECTURES",
    "NAMED_DENSE_ARCHITECTURES",
    "ModelSpec",
    "active_parameters",
    "architecture_for_model",
    "moe_name_for_params",
    "normalize_param_count",
    "resolve_architecture",
    "round_half_up",
    "vram_parameters",
]
