"""Building blocks for the capacity engine: shapes, FLOPs, memory, overheads."""

from .architecture import (
    Architecture,
    ModelSpec,
    active_parameters,
    architecture_for_model,
    moe_name_for_params,
    normalize_param_count,
    resolve_architecture,
    vram_parameters,
)
from .batching import BatchingStrategy, plan_batching
from .flops import (
    DeviceClass,
    FlopsMultipliers,
    decode_flops_per_token,
    effective_parameters,
    flops_multiplier,
    prefill_flops_per_token,
)
from .kv_cache import (
    KvCacheTotals,
    VramBreakdown,
    kv_bytes_per_token,
    memory_breakdown_dataframe,
    model_size_gb,
    total_kv_cache,
    vram_requirements,
)
from .overheads import (
    OverheadEstimate,
    additive_overhead_multiplier,
    attention_overhead,
    estimate_overheads,
    prefill_overhead,
)
from .quantization import QuantizationProfile, normalize_quant_type, quantization_profile
from .tables import DEFAULT_TABLES, EngineTables

__all__ = [
    "Architecture",
    "BatchingStrategy",
    "DEFAULT_TABLES",
    "DeviceClass",
    "EngineTables",
    "FlopsMultipliers",
    "KvCacheTotals",
    "ModelSpec",
    "OverheadEstimate",
    "QuantizationProfile",
    "VramBreakdown",
    "active_parameters",
    "additive_overhead_multiplier",
    "architecture_for_model",
    "attention_overhead",
    "decode_flops_per_token",
    "effective_parameters",
    "estimate_overheads",
    "flops_multiplier",
    "kv_bytes_per_token",
    "memory_breakdown_dataframe",
    "model_size_gb",
    "moe_name_for_params",
    "normalize_param_count",
    "normalize_quant_type",
    "plan_batching",
    "prefill_flops_per_token",
    "prefill_overhead",
    "quantization_profile",
    "resolve_architecture",
    "total_kv_cache",
    "vram_parameters",
    "vram_requirements",
]
