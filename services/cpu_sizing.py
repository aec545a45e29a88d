"""CPU fleet sizing.

CPUs are sized from sustainable tokens per second per socket rather than by
inverting a GPU-style peak.  The chain is::

    flops/token     = decode FLOPs on the CPU multiplier table
    usable/CPU      = peak * amx_efficiency
    target tps/CPU  = usable * utilization_target / flops_per_token
    cpus            = ceil(required_tps / target_tps * prefill_multiplier * redundancy)

Quantization only changes the KV byte width here; it never derates the
per-CPU token rate.  KV cache lives in system RAM, so nothing is offloaded.
"""

from __future__ import annotations

import logging
import math
import warnings
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Tuple

from features.architecture import ModelSpec, architecture_for_model
from features.flops import decode_flops_per_token
from features.kv_cache import kv_bytes_per_token, total_kv_cache
from features.quantization import quantization_profile
from features.tables import DEFAULT_TABLES, EngineTables

from .config import DEFAULTS, EngineDefaults
from .profiles import HardwareUnit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CpuSizingRequest:
    model: ModelSpec
    hardware: HardwareUnit
    users: int
    tokens_per_user: float = 10.0
    quantization: str = "int8"
    system_prompt_tokens: float = 0.0
    session_history_tokens: float = 0.0
    new_input_tokens: float = 100.0
    output_tokens: float = 0.0
    prefill_multiplier: float = 2.5
    utilization_target: float = 0.65
    redundancy: float = 1.15
    amx_efficiency: float = 0.20
    model_ram_overhead: float = 1.2
    active_kv_fraction: float = 0.05

    @property
    def session_tokens(self) -> float:
        return (
            self.system_prompt_tokens
            + self.session_history_tokens
            + self.new_input_tokens
            + self.output_tokens
        )

    @classmethod
    def from_defaults(
        cls,
        model: ModelSpec,
        hardware: HardwareUnit,
        users: int,
        defaults: EngineDefaults = DEFAULTS,
        **overrides,
    ) -> "CpuSizingRequest":
        cpu = defaults.cpu
        payload = {
            "prefill_multiplier": cpu.prefill_multiplier,
            "utilization_target": cpu.utilization_target,
            "redundancy": cpu.redundancy,
            "amx_efficiency": cpu.amx_efficiency,
            "model_ram_overhead": cpu.model_ram_overhead,
            "active_kv_fraction": cpu.active_kv_fraction,
        }
        payload.update(overrides)
        return cls(model=model, hardware=hardware, users=users, **payload)


@dataclass(frozen=True)
class CpuSizingResult:
    """Sizing outcome for a CPU fleet; ``notes`` is a human-readable trail."""

    model_ram_gb: float
    flops_per_token: float
    flops_per_token_gflops: float
    total_flops_tflops: float
    usable_flops_per_cpu: float
    target_tps_per_cpu: float
    total_required_tps: float
    cpus_compute: float
    cpus_with_prefill: float
    redundancy_multiplier: float
    final_cpus: float
    final_cpus_rounded: int
    delivered_tps: float
    sanity_pass: bool
    headroom_percent: float
    kv_bytes_per_token: float
    kv_total_gb: float
    kv_active_gb: float
    total_memory_gb: float
    memory_per_cpu_gb: float
    fits_in_ram: bool
    notes: Tuple[str, ...] = field(default_factory=tuple)

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


def redundancy_multiplier(value: float) -> float:
    """Return redundancy as a multiplier (``1.15`` means 15% spare CPUs).

    A fractional value below 1 is the older percent convention and is
    converted to ``1 + value`` with a :class:`DeprecationWarning`.
    """

    value = max(0.0, float(value))
    if value < 1.0:
        warnings.warn(
            "Fractional CPU redundancy is deprecated; pass a multiplier such as 1.15",
            DeprecationWarning,
            stacklevel=2,
        )
        logger.warning("Converting fractional CPU redundancy %.3f to multiplier %.3f", value, 1.0 + value)
        return 1.0 + value
    return value


def size_cpu_fleet(request: CpuSizingRequest, *, tables: EngineTables = DEFAULT_TABLES) -> CpuSizingResult:
    model = request.model
    params = float(model.params_billions)
    arch = architecture_for_model(
        model, dense_table=tables.dense_architectures, named_table=tables.named_architectures
    )
    quant = quantization_profile(request.quantization, profiles=tables.quantization)

    flops_per_token = decode_flops_per_token(
        params,
        arch,
        "cpu",
        active_params_override=model.active_params_override,
        gpu_multipliers=tables.gpu_multipliers,
        cpu_multipliers=tables.cpu_multipliers,
    )
    users = max(0, int(request.users))
    total_required_tps = users * max(0.0, float(request.tokens_per_user))
    total_flops = flops_per_token * total_required_tps

    usable_flops = float(request.hardware.peak_flops) * float(request.amx_efficiency)
    target_tps = 0.0
    if flops_per_token > 0:
        target_tps = usable_flops * float(request.utilization_target) / flops_per_token

    cpus_compute = total_required_tps / target_tps if target_tps > 0 else 0.0
    cpus_with_prefill = cpus_compute * float(request.prefill_multiplier)
    multiplier = redundancy_multiplier(request.redundancy)
    final_cpus = cpus_with_prefill * multiplier
    final_rounded = max(1, int(math.ceil(final_cpus)))

    delivered = final_rounded * target_tps
    sanity = delivered >= total_required_tps
    headroom = (delivered - total_required_tps) / max(1.0, total_required_tps) * 100.0

    model_ram = params * float(request.model_ram_overhead)
    per_token = kv_bytes_per_token(arch, quant.bytes_per_param)
    kv = total_kv_cache(users, request.session_tokens, per_token, request.active_kv_fraction, 0.0)
    total_memory = model_ram + kv.active_gb
    memory_per_cpu = total_memory / final_rounded
    memory_limit = float(request.hardware.memory_gb)
    fits = memory_limit <= 0 or memory_per_cpu <= memory_limit

    notes = [
        f"Model RAM {model_ram:.2f} GB",
        f"{flops_per_token / 1e9:.2f} GFLOPs per token on the CPU path",
        f"Target {target_tps:.1f} tokens/s per CPU",
        f"KV cache {kv.active_gb:.2f} GB active of {kv.total_gb:.2f} GB",
    ]
    if not sanity:
        notes.append("Delivered throughput is below the requested token rate")
    if not fits:
        notes.append(f"Memory per CPU {memory_per_cpu:.1f} GB exceeds {memory_limit:.0f} GB")

    logger.debug(
        "cpu sizing: %d CPUs for %.0f tok/s (target %.1f tok/s/CPU)",
        final_rounded,
        total_required_tps,
        target_tps,
    )

    return CpuSizingResult(
        model_ram_gb=model_ram,
        flops_per_token=flops_per_token,
        flops_per_token_gflops=flops_per_token / 1e9,
        total_flops_tflops=total_flops / 1e12,
        usable_flops_per_cpu=usable_flops,
        target_tps_per_cpu=target_tps,
        total_required_tps=total_required_tps,
        cpus_compute=cpus_compute,
        cpus_with_prefill=cpus_with_prefill,
        redundancy_multiplier=multiplier,
        final_cpus=final_cpus,
        final_cpus_rounded=final_rounded,
        delivered_tps=delivered,
        sanity_pass=sanity,
        headroom_percent=headroom,
        kv_bytes_per_token=per_token,
        kv_total_gb=kv.total_gb,
        kv_active_gb=kv.active_gb,
        total_memory_gb=total_memory,
        memory_per_cpu_gb=memory_per_cpu,
        fits_in_ram=fits,
        notes=tuple(notes),
    )


__all__ = [
    "CpuSizingRequest",
    "CpuSizingResult",
    "redundancy_multiplier",
    "size_cpu_fleet",
]
