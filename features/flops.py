"""FLOPs-per-token estimates for decode and prefill.

Both phases use ``multiplier(params, device) * effective_params * 1e9``.  The
multiplier is a step function of model size with separate GPU and CPU tables.
Decode additionally floors the multiplier for long contexts on large models.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from .architecture import Architecture, active_parameters

DeviceClass = Literal["gpu", "cpu"]

BILLION = 1e9
LONG_CONTEXT_TOKENS = 1024


@dataclass(frozen=True)
class FlopsMultipliers:
    """FLOPs/parameter ratios for <10B, <70B, <200B and larger models."""

    small: float
    medium: float
    large: float
    xlarge: float

    def for_params(self, params_billions: float) -> float:
        if params_billions < 10:
            return self.small
        if params_billions < 70:
            return self.medium
        if params_billions < 200:
            return self.large
        return self.xlarge


GPU_FLOPS_MULTIPLIERS = FlopsMultipliers(small=2.3, medium=3.0, large=4.0, xlarge=5.5)
CPU_FLOPS_MULTIPLIERS = FlopsMultipliers(small=2.0, medium=2.15, large=2.45, xlarge=2.8)


def flops_multiplier(
    params_billions: float,
    device: DeviceClass = "gpu",
    *,
    gpu_multipliers: FlopsMultipliers = GPU_FLOPS_MULTIPLIERS,
    cpu_multipliers: FlopsMultipliers = CPU_FLOPS_MULTIPLIERS,
) -> float:
    table = cpu_multipliers if device == "cpu" else gpu_multipliers
    return table.for_params(float(params_billions))


def effective_parameters(
    params_billions: float,
    arch: Architecture,
    *,
    continuous_serving: bool = True,
    active_params_override: Optional[float] = None,
) -> float:
    """Parameters that drive per-token FLOPs under the given serving pattern.

    Dense models return ``params_billions``.  For mixture-of-experts models a
    continuously served fleet touches nearly every expert over time, so the
    blend leans on the total count (5% active, 95% total).  Without a token
    breakdown the plain mean of active and total is used.
    """

    total = float(params_billions)
    if not arch.is_moe:
        return total
    active = active_parameters(total, arch, active_params_override)
    if continuous_serving:
        return 0.05 * active + 0.95 * total
    return (active + total) / 2.0


def decode_flops_per_token(
    params_billions: float,
    arch: Architecture,
    device: DeviceClass = "gpu",
    *,
    sequence_length: Optional[int] = None,
    continuous_serving: bool = True,
    active_params_override: Optional[float] = None,
    gpu_multipliers: FlopsMultipliers = GPU_FLOPS_MULTIPLIERS,
    cpu_multipliers: FlopsMultipliers = CPU_FLOPS_MULTIPLIERS,
) -> float:
    """FLOPs to generate one token during decode."""

    params = float(params_billions)
    multiplier = flops_multiplier(
        params, device, gpu_multipliers=gpu_multipliers, cpu_multipliers=cpu_multipliers
    )
    # Attention cost grows with context; only decode sees this floor.
    if sequence_length is not None and sequence_length > LONG_CONTEXT_TOKENS:
        if params >= 50:
            multiplier = max(multiplier, 10.0)
        elif params >= 20:
            multiplier = max(multiplier, 8.0)
    effective = effective_parameters(
        params,
        arch,
        continuous_serving=continuous_serving,
        active_params_override=active_params_override,
    )
    return multiplier * effective * BILLION


def prefill_flops_per_token(
    params_billions: float,
    arch: Architecture,
    device: DeviceClass = "gpu",
    *,
    continuous_serving: bool = True,
    active_params_override: Optional[float] = None,
    gpu_multipliers: FlopsMultipliers = GPU_FLOPS_MULTIPLIERS,
    cpu_multipliers: FlopsMultipliers = CPU_FLOPS_MULTIPLIERS,
) -> float:
    """FLOPs to process one prompt token."""

    params = float(params_billions)
    multiplier = flops_multiplier(
        params, device, gpu_multipliers=gpu_multipliers, cpu_multipliers=cpu_multipliers
    )
    effective = effective_parameters(
        params,
        arch,
        continuous_serving=continuous_serving,
        active_params_override=active_params_override,
    )
    return multiplier * effective * BILLION


__all__ = [
    "BILLION",
    "CPU_FLOPS_MULTIPLIERS",
    "DeviceClass",
    "FlopsMultipliers",
    "GPU_FLOPS_MULTIPLIERS",
    "LONG_CONTEXT_TOKENS",
    "decode_flops_per_token",
    "effective_parameters",
    "flops_multiplier",
    "prefill_flops_per_token",
]
