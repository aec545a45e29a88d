"""Unified capacity/performance solver.

Capacity mode answers "how many units for N users", performance mode answers
"how many users on K units".  Both run through the same per-user FLOPs demand
and the same effective per-unit supply, so feeding the unit count of a
capacity result back into performance mode yields at least the requested
users.

The demand side (``required_flops``) depends only on the model and the
workload.  Kernel efficiency, utilization, headroom and redundancy decide how
many units are provisioned and never rescale the demand.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Dict

from features.architecture import ModelSpec, architecture_for_model
from features.flops import decode_flops_per_token, prefill_flops_per_token
from features.kv_cache import kv_bytes_per_token, model_size_gb, total_kv_cache, vram_requirements
from features.overheads import additive_overhead_multiplier
from features.quantization import quantization_profile
from features.tables import DEFAULT_TABLES, EngineTables

from .profiles import (
    CapacityRequest,
    CoreRequest,
    EfficiencyProfile,
    HardwareUnit,
    Mode,
    PerformanceRequest,
    WorkloadProfile,
)

logger = logging.getLogger(__name__)

# Absorbs float noise when a ceil'd unit count is inverted back into users.
_USER_EPSILON = 1e-9


@dataclass(frozen=True)
class CoreResult:
    """Everything a presentation layer needs about one solve."""

    mode: Mode
    units: int
    max_users: int
    max_throughput: float
    decode_flops_per_token: float
    prefill_flops_per_token: float
    flops_per_user_per_sec: float
    effective_flops_per_unit: float
    total_system_flops: float
    required_flops: float
    units_for_compute: int
    units_for_memory: int
    model_size_gb: float
    total_kv_cache_gb: float
    kv_cache_in_vram_per_unit_gb: float
    kv_cache_offloaded_gb: float
    required_vram_per_unit: float
    total_overhead_multiplier: float
    attention_overhead_percent: float
    prefill_overhead_percent: float
    headroom_percent: float
    utilization_percent: float
    decode_flops_per_sec: float
    prefill_flops_per_sec: float
    system_tokens_per_sec: float

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _finite(value: float, fallback: float = 0.0) -> float:
    value = float(value)
    return value if math.isfinite(value) else fallback


def flops_per_user_per_sec(
    decode_flops: float,
    prefill_flops: float,
    workload: WorkloadProfile,
    attention_overhead: float,
    prefill_overhead: float,
) -> float:
    """FLOP/s one continuously served user demands, overheads included.

    Decode runs once per generated token; prefill runs over the new input once
    per request, and a user issues ``tokens_per_sec / avg_response_tokens``
    requests per second.
    """

    decode = workload.tokens_per_sec_per_user * decode_flops
    prefill = workload.requests_per_sec_per_user * workload.new_input_tokens * prefill_flops
    return (decode + prefill) * additive_overhead_multiplier(attention_overhead, prefill_overhead)


def effective_flops_per_unit(peak_flops: float, kernel_efficiency: float, utilization_factor: float) -> float:
    return float(peak_flops) * float(kernel_efficiency) * float(utilization_factor)


def max_users_from_flops(total_flops: float, flops_per_user: float) -> float:
    if flops_per_user <= 0:
        return 0.0
    return float(total_flops) / float(flops_per_user)


def units_for_compute(users: float, flops_per_user: float, effective_per_unit: float, headroom: float) -> int:
    """Compute-bound unit count, padded by ``headroom``."""

    if effective_per_unit <= 0:
        return 1
    required = float(users) * float(flops_per_user)
    return int(math.ceil(_finite(required / effective_per_unit * (1.0 + float(headroom)), 1.0)))


def units_for_memory(model_gb: float, kv_resident_gb: float, vram_per_unit_gb: float) -> int:
    """Memory-bound unit count: weights plus resident KV over per-unit VRAM."""

    if vram_per_unit_gb <= 0:
        return 1
    return int(math.ceil(_finite((model_gb + kv_resident_gb) / vram_per_unit_gb, 1.0)))


def _floor_users(value: float) -> int:
    return int(math.floor(_finite(value) + _USER_EPSILON))


def solve(request: CoreRequest, *, tables: EngineTables = DEFAULT_TABLES) -> CoreResult:
    """Run the engine for a :class:`CapacityRequest` or :class:`PerformanceRequest`."""

    if not isinstance(request, (CapacityRequest, PerformanceRequest)):
        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    model = request.model
    hardware = request.hardware
    workload = request.workload
    efficiency = request.efficiency

    arch = architecture_for_model(
        model, dense_table=tables.dense_architectures, named_table=tables.named_architectures
    )
    quant = quantization_profile(request.quantization, profiles=tables.quantization)
    flops_kwargs = dict(
        continuous_serving=True,
        active_params_override=model.active_params_override,
        gpu_multipliers=tables.gpu_multipliers,
        cpu_multipliers=tables.cpu_multipliers,
    )
    # No sequence_length: serving sizes per token, so the long-context decode floor stays off.
    decode_fpt = decode_flops_per_token(model.params_billions, arch, hardware.device, **flops_kwargs)
    prefill_fpt = prefill_flops_per_token(model.params_billions, arch, hardware.device, **flops_kwargs)

    per_user = flops_per_user_per_sec(
        decode_fpt,
        prefill_fpt,
        workload,
        efficiency.attention_overhead,
        efficiency.prefill_overhead,
    )
    per_unit = effective_flops_per_unit(
        hardware.peak_flops, efficiency.kernel_efficiency, efficiency.utilization_factor
    )

    model_gb = model_size_gb(
        model.params_billions,
        quant,
        arch,
        expert_shards=model.expert_shards,
        overhead=tables.model_size_overhead,
    )
    kv_per_token = kv_bytes_per_token(arch, quant.bytes_per_param)

    def kv_for(users: float):
        return total_kv_cache(
            users,
            workload.session_tokens,
            kv_per_token,
            workload.active_kv_fraction,
            workload.offload_ratio,
        )

    if isinstance(request, CapacityRequest):
        demand_users = request.num_users if request.num_users > 0 else 1
        kv = kv_for(demand_users)
        compute_units = units_for_compute(demand_users, per_user, per_unit, efficiency.target_headroom)
        memory_units = units_for_memory(model_gb, kv.in_vram_gb, hardware.memory_gb)
        units = max(compute_units, memory_units, 1)
        max_users = _floor_users(max_users_from_flops(per_unit * units, per_user))
    else:
        units = request.num_units if request.num_units > 0 else 1
        compute_units = memory_units = units
        max_users = _floor_users(max_users_from_flops(per_unit * units, per_user))
        demand_users = max_users
        kv = kv_for(max_users)

    vram = vram_requirements(
        model_gb,
        kv.in_vram_gb,
        units,
        activations_ratio=tables.activations_ratio,
        safety_buffer=tables.vram_safety_buffer,
    )
    system_tokens = max_users * workload.tokens_per_sec_per_user
    decode_per_user = workload.tokens_per_sec_per_user * decode_fpt
    prefill_per_user = workload.new_input_tokens * prefill_fpt * workload.requests_per_sec_per_user

    logger.debug(
        "%s solve: units=%d (compute=%d, memory=%d) max_users=%d",
        request.mode,
        units,
        compute_units,
        memory_units,
        max_users,
    )

    return CoreResult(
        mode=request.mode,
        units=units,
        max_users=max_users,
        max_throughput=system_tokens,
        decode_flops_per_token=decode_fpt,
        prefill_flops_per_token=prefill_fpt,
        flops_per_user_per_sec=per_user,
        effective_flops_per_unit=per_unit,
        total_system_flops=per_unit * units,
        required_flops=_finite(demand_users * per_user),
        units_for_compute=compute_units,
        units_for_memory=memory_units,
        model_size_gb=model_gb,
        total_kv_cache_gb=kv.total_gb,
        kv_cache_in_vram_per_unit_gb=kv.in_vram_gb / units,
        kv_cache_offloaded_gb=kv.offloaded_gb,
        required_vram_per_unit=vram.total_gb,
        total_overhead_multiplier=additive_overhead_multiplier(
            efficiency.attention_overhead, efficiency.prefill_overhead
        ),
        attention_overhead_percent=efficiency.attention_overhead * 100.0,
        prefill_overhead_percent=efficiency.prefill_overhead * 100.0,
        headroom_percent=efficiency.target_headroom * 100.0,
        utilization_percent=efficiency.utilization_factor * 100.0,
        decode_flops_per_sec=demand_users * decode_per_user,
        prefill_flops_per_sec=demand_users * prefill_per_user,
        system_tokens_per_sec=system_tokens,
    )


def calculate_capacity(
    model: ModelSpec,
    hardware: HardwareUnit,
    num_users: int,
    quantization: str = "fp16",
    workload: WorkloadProfile | None = None,
    efficiency: EfficiencyProfile | None = None,
    *,
    tables: EngineTables = DEFAULT_TABLES,
) -> CoreResult:
    """Users to units."""

    request = CapacityRequest(
        model=model,
        hardware=hardware,
        num_users=num_users,
        quantization=quantization,
        workload=workload or WorkloadProfile(),
        efficiency=efficiency or EfficiencyProfile(),
    )
    return solve(request, tables=tables)


def calculate_performance(
    model: ModelSpec,
    hardware: HardwareUnit,
    num_units: int,
    quantization: str = "fp16",
    workload: WorkloadProfile | None = None,
    efficiency: EfficiencyProfile | None = None,
    *,
    tables: EngineTables = DEFAULT_TABLES,
) -> CoreResult:
    """Units to users."""

    request = PerformanceRequest(
        model=model,
        hardware=hardware,
        num_units=num_units,
        quantization=quantization,
        workload=workload or WorkloadProfile(),
        efficiency=efficiency or EfficiencyProfile(),
    )
    return solve(request, tables=tables)


__all__ = [
    "CoreResult",
    "calculate_capacity",
    "calculate_performance",
    "effective_flops_per_unit",
    "flops_per_user_per_sec",
    "max_users_from_flops",
    "solve",
    "units_for_compute",
    "units_for_memory",
]
