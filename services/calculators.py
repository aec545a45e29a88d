"""Historical calculator entry points mapped onto the unified engine.

``calculate_performance_report`` answers "how many users on this fleet" with
the flat inputs the performance calculator has always taken.
``calculate_infrastructure`` answers "how many units for these users" and
dispatches between the CPU sizing path, the production path (explicit user
count and per-user rate) and the legacy input mapping.  All GPU math runs
through :func:`services.core_engine.solve`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Literal, Optional, Tuple

from features.architecture import CUSTOM_MODEL_NAME, ModelSpec, normalize_param_count
from features.overheads import OverheadStrategy, estimate_overheads
from features.quantization import normalize_quant_type
from features.tables import DEFAULT_TABLES, EngineTables

from .config import DEFAULTS, EngineDefaults
from .core_engine import CoreResult, solve
from .cpu_sizing import CpuSizingRequest, CpuSizingResult, size_cpu_fleet
from .profiles import (
    CapacityRequest,
    EfficiencyProfile,
    HardwareUnit,
    PerformanceRequest,
    WorkloadProfile,
)

logger = logging.getLogger(__name__)

InfrastructurePath = Literal["cpu", "production", "legacy"]

# Rough English words per generated token.
WORDS_PER_TOKEN = 0.75


@dataclass(frozen=True)
class TokenBreakdown:
    """Per-request token mix used for KV sizing and prefill demand."""

    system_prompt_tokens: float = 0.0
    session_history_tokens: float = 0.0
    new_input_tokens: float = 100.0
    output_tokens: float = 0.0


@dataclass(frozen=True)
class CustomModel:
    """Free-form model entered by the user instead of a catalogue size."""

    total_params: float = 1.0
    active_params: Optional[float] = None
    total_experts: Optional[int] = None
    active_experts: Optional[int] = None


def _model_spec(
    params: float,
    custom: Optional[CustomModel],
    expert_shards: int = 1,
) -> ModelSpec:
    if custom is None:
        return ModelSpec(params_billions=normalize_param_count(params), expert_shards=expert_shards)
    moe = bool(custom.total_experts and custom.active_experts)
    return ModelSpec(
        params_billions=normalize_param_count(custom.total_params),
        name=None if moe else CUSTOM_MODEL_NAME,
        total_experts=custom.total_experts if moe else None,
        active_experts=custom.active_experts if moe else None,
        active_params_override=custom.active_params,
        expert_shards=expert_shards,
    )


# ---------------------------------------------------------------------------
# Performance calculator
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PerformanceInputs:
    model_params: float
    hardware_ops: float
    units: int = 1
    quantization: str = "fp16"
    gpu_memory_gb: float = 96.0
    is_cpu: bool = False
    kernel_efficiency: Optional[float] = None
    utilization_factor: Optional[float] = None
    # Older callers pass ``utilization``; ``utilization_factor`` wins when both are set.
    utilization: Optional[float] = None
    attention_overhead: float = 0.10
    prefill_overhead: float = 0.10
    tokens_per_sec_per_user: Optional[float] = None
    avg_response_tokens: Optional[float] = None
    input_length: Optional[float] = None
    response_length: Optional[float] = None
    token_breakdown: Optional[TokenBreakdown] = None
    custom_model: Optional[CustomModel] = None
    expert_shards: int = 1
    offload_ratio: float = 0.0
    active_kv_fraction: float = 1.0
    target_headroom: Optional[float] = None
    redundancy_factor: Optional[float] = None


@dataclass(frozen=True)
class PerformanceReport:
    theoretical: float
    realistic: float
    users: int
    tokens_per_sec_per_user: float
    words: float
    is_memory_bound: bool
    prefill_overhead: float
    attention_overhead: float
    redundancy_factor: float
    target_headroom: float
    offload_ratio: float
    active_kv_fraction: float
    usable_flops: float
    max_throughput: float
    max_users: int
    total_overhead_multiplier: float
    effective_flops_per_unit: float
    decode_flops_per_token: float
    token_generation_time: float
    core: CoreResult


def _performance_request(inputs: PerformanceInputs, defaults: EngineDefaults) -> PerformanceRequest:
    serving = defaults.serving
    breakdown = inputs.token_breakdown
    input_length = inputs.input_length if inputs.input_length is not None else serving.input_tokens
    response_length = (
        inputs.response_length if inputs.response_length is not None else serving.avg_response_tokens
    )
    if inputs.avg_response_tokens is not None:
        avg_response = inputs.avg_response_tokens
    elif breakdown is not None:
        avg_response = breakdown.output_tokens
    else:
        avg_response = response_length

    utilization = inputs.utilization_factor
    if utilization is None:
        utilization = inputs.utilization
    if utilization is None:
        utilization = defaults.efficiency.utilization_factor

    workload = WorkloadProfile.from_defaults(
        defaults,
        avg_response_tokens=avg_response,
        new_input_tokens=breakdown.new_input_tokens if breakdown else input_length,
        system_prompt_tokens=breakdown.system_prompt_tokens if breakdown else 0.0,
        session_history_tokens=breakdown.session_history_tokens if breakdown else 0.0,
        active_kv_fraction=inputs.active_kv_fraction,
        offload_ratio=inputs.offload_ratio,
        **(
            {"tokens_per_sec_per_user": inputs.tokens_per_sec_per_user}
            if inputs.tokens_per_sec_per_user is not None
            else {}
        ),
    )
    efficiency = EfficiencyProfile.from_defaults(
        defaults,
        utilization_factor=utilization,
        attention_overhead=inputs.attention_overhead,
        prefill_overhead=inputs.prefill_overhead,
        **{
            key: value
            for key, value in (
                ("kernel_efficiency", inputs.kernel_efficiency),
                ("target_headroom", inputs.target_headroom),
                ("redundancy_factor", inputs.redundancy_factor),
            )
            if value is not None
        },
    )
    hardware = HardwareUnit(
        peak_flops=inputs.hardware_ops,
        memory_gb=inputs.gpu_memory_gb,
        device="cpu" if inputs.is_cpu else "gpu",
    )
    return PerformanceRequest(
        model=_model_spec(inputs.model_params, inputs.custom_model, inputs.expert_shards),
        hardware=hardware,
        num_units=inputs.units,
        quantization=normalize_quant_type(inputs.quantization),
        workload=workload,
        efficiency=efficiency,
    )


def calculate_performance_report(
    inputs: PerformanceInputs,
    *,
    defaults: EngineDefaults = DEFAULTS,
    tables: EngineTables = DEFAULT_TABLES,
) -> PerformanceReport:
    """Users and throughput a fixed fleet sustains."""

    request = _performance_request(inputs, defaults)
    core = solve(request, tables=tables)
    efficiency = request.efficiency
    memory_bound = core.required_vram_per_unit > request.hardware.memory_gb
    return PerformanceReport(
        theoretical=core.max_throughput,
        realistic=core.max_throughput,
        users=core.max_users,
        tokens_per_sec_per_user=request.workload.tokens_per_sec_per_user,
        words=core.max_throughput * WORDS_PER_TOKEN,
        is_memory_bound=memory_bound,
        prefill_overhead=efficiency.prefill_overhead,
        attention_overhead=efficiency.attention_overhead,
        redundancy_factor=efficiency.redundancy_factor,
        target_headroom=efficiency.target_headroom,
        offload_ratio=request.workload.offload_ratio,
        active_kv_fraction=request.workload.active_kv_fraction,
        usable_flops=core.total_system_flops,
        max_throughput=core.max_throughput,
        max_users=core.max_users,
        total_overhead_multiplier=core.total_overhead_multiplier,
        effective_flops_per_unit=core.effective_flops_per_unit,
        decode_flops_per_token=core.decode_flops_per_token,
        token_generation_time=(
            core.decode_flops_per_token / core.total_system_flops
            if core.decode_flops_per_token > 0 and core.total_system_flops > 0
            else 0.0
        ),
        core=core,
    )


# ---------------------------------------------------------------------------
# Capacity planner
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InfrastructureInputs:
    """Inputs for the capacity planner.

    Setting both ``num_users`` and ``tokens_per_sec_per_user`` selects the
    production path and its explicit efficiency knobs.  Otherwise the legacy
    fields (``users``, ``tokens_per_user``, ``utilization``) are mapped with
    fixed 10% attention and prefill overheads, unless ``overhead_strategy``
    asks for overheads derived from the token mix.
    """

    model_params: float = 7.0
    hardware_ops_per_unit: float = 1e15
    gpu_memory_gb: Optional[float] = None
    quantization: str = "int8"
    is_cpu: bool = False
    custom_model: Optional[CustomModel] = None
    expert_shards: int = 1
    token_breakdown: Optional[TokenBreakdown] = None

    # legacy mapping
    users: int = 100
    tokens_per_user: float = 10.0
    input_length: float = 100.0
    utilization: float = 0.8
    kv_offloading: bool = False
    kv_offloading_percentage: float = 100.0
    overhead_strategy: Optional[OverheadStrategy] = None

    # production path
    num_users: Optional[int] = None
    tokens_per_sec_per_user: Optional[float] = None
    kernel_efficiency: Optional[float] = None
    utilization_factor: Optional[float] = None
    attention_overhead: float = 0.10
    prefill_overhead: float = 0.10
    target_headroom: Optional[float] = None
    avg_response_tokens: Optional[float] = None
    new_input_tokens: Optional[float] = None
    system_prompt_tokens: float = 0.0
    session_history_tokens: float = 0.0
    offload_ratio: float = 0.0
    active_kv_fraction: Optional[float] = None

    # CPU path, ``None`` keeps the configured default
    cpu_prefill_multiplier: Optional[float] = None
    cpu_utilization_target: Optional[float] = None
    cpu_redundancy: Optional[float] = None
    cpu_amx_efficiency: Optional[float] = None
    cpu_model_ram_overhead: Optional[float] = None


@dataclass(frozen=True)
class InfrastructureReport:
    path: InfrastructurePath
    units_needed: int
    throughput_per_unit: float
    total_system_throughput: float
    headroom: float
    total_overhead_percent: float
    overhead_breakdown: Tuple[str, ...] = ()
    overhead_strategy: OverheadStrategy = "additive"
    required_flops: float = 0.0
    available_flops: float = 0.0
    max_users: int = 0
    system_tokens_per_sec: float = 0.0
    decode_tokens_per_sec: float = 0.0
    decode_flops_pflops: float = 0.0
    prefill_flops_pflops: float = 0.0
    total_workload_pflops: float = 0.0
    kv_vram_per_unit_gb: float = 0.0
    total_kv_cache_gb: float = 0.0
    effective_kv_cache_gb: float = 0.0
    required_vram_per_unit: float = 0.0
    units_for_compute: int = 0
    units_for_memory: int = 0
    core: Optional[CoreResult] = None
    cpu_sizing: Optional[CpuSizingResult] = None
    notes: Tuple[str, ...] = field(default_factory=tuple)


def _throughput_per_unit(core: CoreResult) -> float:
    if core.decode_flops_per_token <= 0:
        return 0.0
    return core.effective_flops_per_unit / core.decode_flops_per_token


def _cpu_infrastructure(
    inputs: InfrastructureInputs, defaults: EngineDefaults, tables: EngineTables
) -> InfrastructureReport:
    breakdown = inputs.token_breakdown or TokenBreakdown(new_input_tokens=inputs.input_length)
    overrides = {
        key: value
        for key, value in (
            ("prefill_multiplier", inputs.cpu_prefill_multiplier),
            ("utilization_target", inputs.cpu_utilization_target),
            ("redundancy", inputs.cpu_redundancy),
            ("amx_efficiency", inputs.cpu_amx_efficiency),
            ("model_ram_overhead", inputs.cpu_model_ram_overhead),
            ("active_kv_fraction", inputs.active_kv_fraction),
        )
        if value is not None
    }
    request = CpuSizingRequest.from_defaults(
        _model_spec(inputs.model_params, inputs.custom_model),
        HardwareUnit(
            peak_flops=inputs.hardware_ops_per_unit,
            memory_gb=inputs.gpu_memory_gb or 0.0,
            device="cpu",
        ),
        inputs.users,
        defaults,
        tokens_per_user=inputs.tokens_per_user,
        quantization=inputs.quantization,
        system_prompt_tokens=breakdown.system_prompt_tokens,
        session_history_tokens=breakdown.session_history_tokens,
        new_input_tokens=breakdown.new_input_tokens,
        output_tokens=breakdown.output_tokens,
        **overrides,
    )
    sizing = size_cpu_fleet(request, tables=tables)
    per_unit = sizing.target_tps_per_cpu
    return InfrastructureReport(
        path="cpu",
        units_needed=sizing.final_cpus_rounded,
        throughput_per_unit=per_unit,
        total_system_throughput=per_unit * sizing.final_cpus_rounded,
        headroom=sizing.headroom_percent,
        total_overhead_percent=0.0,
        overhead_breakdown=sizing.notes,
        required_flops=sizing.total_flops_tflops * 1e12,
        available_flops=sizing.usable_flops_per_cpu * sizing.final_cpus_rounded,
        system_tokens_per_sec=sizing.delivered_tps,
        decode_tokens_per_sec=sizing.total_required_tps,
        total_kv_cache_gb=sizing.kv_total_gb,
        effective_kv_cache_gb=sizing.kv_active_gb,
        units_for_compute=sizing.final_cpus_rounded,
        units_for_memory=1,
        cpu_sizing=sizing,
        notes=sizing.notes,
    )


def _production_infrastructure(
    inputs: InfrastructureInputs, defaults: EngineDefaults, tables: EngineTables
) -> InfrastructureReport:
    serving = defaults.serving
    num_users = int(inputs.num_users or 0)
    workload = WorkloadProfile.from_defaults(
        defaults,
        tokens_per_sec_per_user=inputs.tokens_per_sec_per_user,
        avg_response_tokens=(
            inputs.avg_response_tokens
            if inputs.avg_response_tokens is not None
            else serving.avg_response_tokens
        ),
        new_input_tokens=(
            inputs.new_input_tokens if inputs.new_input_tokens is not None else serving.input_tokens
        ),
        system_prompt_tokens=inputs.system_prompt_tokens,
        session_history_tokens=inputs.session_history_tokens,
        active_kv_fraction=(
            inputs.active_kv_fraction
            if inputs.active_kv_fraction is not None
            else serving.active_kv_fraction
        ),
        offload_ratio=inputs.offload_ratio,
    )
    efficiency = EfficiencyProfile.from_defaults(
        defaults,
        attention_overhead=inputs.attention_overhead,
        prefill_overhead=inputs.prefill_overhead,
        **{
            key: value
            for key, value in (
                ("kernel_efficiency", inputs.kernel_efficiency),
                ("utilization_factor", inputs.utilization_factor),
                ("target_headroom", inputs.target_headroom),
            )
            if value is not None
        },
    )
    request = CapacityRequest(
        model=_model_spec(inputs.model_params, inputs.custom_model, inputs.expert_shards),
        hardware=HardwareUnit(
            peak_flops=inputs.hardware_ops_per_unit,
            memory_gb=inputs.gpu_memory_gb or defaults.capacity.vram_per_unit_gb,
        ),
        num_users=num_users,
        quantization=normalize_quant_type(inputs.quantization),
        workload=workload,
        efficiency=efficiency,
    )
    core = solve(request, tables=tables)
    per_unit = _throughput_per_unit(core)
    model_percent = core.attention_overhead_percent + core.prefill_overhead_percent
    return InfrastructureReport(
        path="production",
        units_needed=core.units,
        throughput_per_unit=per_unit,
        total_system_throughput=per_unit * core.units,
        headroom=core.headroom_percent,
        total_overhead_percent=model_percent + core.headroom_percent,
        overhead_breakdown=(
            f"Model overheads: attention {core.attention_overhead_percent:.1f}%, "
            f"prefill {core.prefill_overhead_percent:.1f}%",
            f"Capacity overheads: headroom {core.headroom_percent:.1f}%",
        ),
        required_flops=core.required_flops,
        available_flops=core.total_system_flops,
        max_users=core.max_users,
        system_tokens_per_sec=core.system_tokens_per_sec,
        decode_tokens_per_sec=num_users * workload.tokens_per_sec_per_user,
        decode_flops_pflops=core.decode_flops_per_sec / 1e15,
        prefill_flops_pflops=core.prefill_flops_per_sec / 1e15,
        total_workload_pflops=(core.decode_flops_per_sec + core.prefill_flops_per_sec) / 1e15,
        kv_vram_per_unit_gb=core.kv_cache_in_vram_per_unit_gb,
        total_kv_cache_gb=core.total_kv_cache_gb,
        effective_kv_cache_gb=core.total_kv_cache_gb * workload.active_kv_fraction,
        required_vram_per_unit=core.required_vram_per_unit,
        units_for_compute=core.units_for_compute,
        units_for_memory=core.units_for_memory,
        core=core,
    )


def _legacy_infrastructure(
    inputs: InfrastructureInputs, defaults: EngineDefaults, tables: EngineTables
) -> InfrastructureReport:
    breakdown = inputs.token_breakdown
    new_input = (breakdown.new_input_tokens if breakdown else 0) or inputs.input_length
    output_tokens = (breakdown.output_tokens if breakdown else 0) or defaults.serving.avg_response_tokens
    system_prompt = breakdown.system_prompt_tokens if breakdown else 0.0
    history = breakdown.session_history_tokens if breakdown else 0.0

    attention, prefill = 0.10, 0.10
    estimate = None
    if inputs.overhead_strategy is not None:
        sequence_length = system_prompt + history + new_input + output_tokens
        estimate = estimate_overheads(
            new_input, sequence_length, inputs.overhead_strategy, limits=tables.overhead_limits
        )
        attention, prefill = estimate.attention, estimate.prefill

    workload = WorkloadProfile(
        tokens_per_sec_per_user=inputs.tokens_per_user,
        avg_response_tokens=output_tokens,
        new_input_tokens=new_input,
        system_prompt_tokens=system_prompt,
        session_history_tokens=history,
        active_kv_fraction=1.0,
        offload_ratio=inputs.kv_offloading_percentage / 100.0 if inputs.kv_offloading else 0.0,
    )
    efficiency = EfficiencyProfile.from_defaults(
        defaults,
        utilization_factor=inputs.utilization,
        attention_overhead=attention,
        prefill_overhead=prefill,
    )
    request = CapacityRequest(
        model=_model_spec(inputs.model_params, inputs.custom_model, inputs.expert_shards),
        hardware=HardwareUnit(
            peak_flops=inputs.hardware_ops_per_unit,
            memory_gb=inputs.gpu_memory_gb or defaults.capacity.vram_per_unit_gb,
        ),
        num_users=inputs.users,
        quantization=normalize_quant_type(inputs.quantization),
        workload=workload,
        efficiency=efficiency,
    )
    core = solve(request, tables=tables)
    per_unit = _throughput_per_unit(core)

    if estimate is not None:
        strategy = estimate.strategy
        overhead_percent = (estimate.multiplier - 1.0) * 100.0
        overhead_lines = estimate.breakdown
    else:
        strategy = "additive"
        overhead_percent = (core.total_overhead_multiplier - 1.0) * 100.0
        overhead_lines = (
            f"+{core.prefill_overhead_percent:.0f}% prefill",
            f"+{core.attention_overhead_percent:.0f}% attention",
        )

    return InfrastructureReport(
        path="legacy",
        units_needed=core.units,
        throughput_per_unit=per_unit,
        total_system_throughput=per_unit * core.units,
        headroom=(core.max_users - inputs.users) / max(1, inputs.users) * 100.0,
        total_overhead_percent=overhead_percent,
        overhead_breakdown=tuple(overhead_lines),
        overhead_strategy=strategy,
        required_flops=core.required_flops,
        available_flops=core.total_system_flops,
        max_users=core.max_users,
        system_tokens_per_sec=core.system_tokens_per_sec,
        kv_vram_per_unit_gb=core.kv_cache_in_vram_per_unit_gb,
        total_kv_cache_gb=core.total_kv_cache_gb,
        effective_kv_cache_gb=core.total_kv_cache_gb,
        required_vram_per_unit=core.required_vram_per_unit,
        units_for_compute=core.units_for_compute,
        units_for_memory=core.units_for_memory,
        core=core,
    )


def calculate_infrastructure(
    inputs: InfrastructureInputs,
    *,
    defaults: EngineDefaults = DEFAULTS,
    tables: EngineTables = DEFAULT_TABLES,
) -> InfrastructureReport:
    """Units needed to serve a user population."""

    if inputs.is_cpu:
        path: InfrastructurePath = "cpu"
        report = _cpu_infrastructure(inputs, defaults, tables)
    elif inputs.num_users is not None and inputs.tokens_per_sec_per_user is not None:
        path = "production"
        report = _production_infrastructure(inputs, defaults, tables)
    else:
        path = "legacy"
        report = _legacy_infrastructure(inputs, defaults, tables)
    logger.debug("infrastructure via %s path: %d units", path, report.units_needed)
    return report


__all__ = [
    "CustomModel",
    "InfrastructureInputs",
    "InfrastructureReport",
    "PerformanceInputs",
    "PerformanceReport",
    "TokenBreakdown",
    "WORDS_PER_TOKEN",
    "calculate_infrastructure",
    "calculate_performance_report",
]
