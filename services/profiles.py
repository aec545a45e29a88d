"""Typed inputs for the capacity and performance solvers.

A calculation is selected by the request type rather than by which optional
field happens to be set: :class:`CapacityRequest` carries a user count and
asks for units, :class:`PerformanceRequest` carries a unit count and asks for
users.  Both share the same model, hardware, workload and efficiency inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Literal, Tuple, Union

from features.architecture import ModelSpec
from features.flops import DeviceClass

from .config import DEFAULTS, EngineDefaults

Mode = Literal["capacity", "performance"]


@dataclass(frozen=True)
class HardwareUnit:
    """One accelerator or CPU socket as the engine sees it."""

    peak_flops: float
    memory_gb: float
    device: DeviceClass = "gpu"
    supported_formats: Tuple[str, ...] = ()


@dataclass(frozen=True)
class WorkloadProfile:
    tokens_per_sec_per_user: float = 10.0
    avg_response_tokens: float = 50.0
    new_input_tokens: float = 100.0
    system_prompt_tokens: float = 0.0
    session_history_tokens: float = 0.0
    active_kv_fraction: float = 1.0
    offload_ratio: float = 0.0

    @property
    def session_tokens(self) -> float:
        """Tokens kept in the KV cache for one session."""

        return self.system_prompt_tokens + self.session_history_tokens + self.new_input_tokens

    @property
    def requests_per_sec_per_user(self) -> float:
        if self.avg_response_tokens <= 0:
            return 0.0
        return self.tokens_per_sec_per_user / self.avg_response_tokens

    @classmethod
    def from_defaults(cls, defaults: EngineDefaults = DEFAULTS, **overrides) -> "WorkloadProfile":
        serving = defaults.serving
        payload = {
            "tokens_per_sec_per_user": serving.tokens_per_sec_per_user,
            "avg_response_tokens": serving.avg_response_tokens,
            "new_input_tokens": serving.input_tokens,
            "active_kv_fraction": serving.active_kv_fraction,
            "offload_ratio": serving.offload_ratio,
        }
        payload.update(overrides)
        return cls(**payload)


@dataclass(frozen=True)
class EfficiencyProfile:
    """Derating and margin knobs.

    ``attention_overhead`` and ``prefill_overhead`` scale the workload.
    ``kernel_efficiency`` and ``utilization_factor`` scale the hardware.
    ``target_headroom`` only pads the unit count, and ``redundancy_factor`` is
    reported but never applied.
    """

    kernel_efficiency: float = 0.50
    utilization_factor: float = 0.80
    attention_overhead: float = 0.10
    prefill_overhead: float = 0.10
    target_headroom: float = 0.10
    redundancy_factor: float = 0.15

    @classmethod
    def from_defaults(cls, defaults: EngineDefaults = DEFAULTS, **overrides) -> "EfficiencyProfile":
        payload = {
            "kernel_efficiency": defaults.efficiency.kernel_efficiency,
            "utilization_factor": defaults.efficiency.utilization_factor,
            "attention_overhead": defaults.efficiency.attention_overhead,
            "prefill_overhead": defaults.efficiency.prefill_overhead,
            "target_headroom": defaults.capacity.target_headroom,
            "redundancy_factor": defaults.capacity.redundancy_factor,
        }
        payload.update(overrides)
        return cls(**payload)


@dataclass(frozen=True)
class CapacityRequest:
    """How many units are needed to serve ``num_users``?"""

    mode: ClassVar[Mode] = "capacity"

    model: ModelSpec
    hardware: HardwareUnit
    num_users: int
    quantization: str = "fp16"
    workload: WorkloadProfile = field(default_factory=WorkloadProfile)
    efficiency: EfficiencyProfile = field(default_factory=EfficiencyProfile)


@dataclass(frozen=True)
class PerformanceRequest:
    """How many users can ``num_units`` serve?"""

    mode: ClassVar[Mode] = "performance"

    model: ModelSpec
    hardware: HardwareUnit
    num_units: int
    quantization: str = "fp16"
    workload: WorkloadProfile = field(default_factory=WorkloadProfile)
    efficiency: EfficiencyProfile = field(default_factory=EfficiencyProfile)


CoreRequest = Union[CapacityRequest, PerformanceRequest]

__all__ = [
    "CapacityRequest",
    "CoreRequest",
    "EfficiencyProfile",
    "HardwareUnit",
    "Mode",
    "PerformanceRequest",
    "WorkloadProfile",
]
