"""Reference tables bundled for injection into the solvers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

from .architecture import DENSE_ARCHITECTURES, NAMED_ARCHITECTURES, Architecture
from .flops import CPU_FLOPS_MULTIPLIERS, GPU_FLOPS_MULTIPLIERS, FlopsMultipliers
from .kv_cache import ACTIVATIONS_RATIO, MODEL_SIZE_OVERHEAD, VRAM_SAFETY_BUFFER
from .overheads import DEFAULT_OVERHEAD_LIMITS, OverheadLimits
from .quantization import QUANTIZATION_PROFILES, QuantizationProfile


@dataclass(frozen=True)
class EngineTables:
    """Every constant the engine reads, published once and never mutated.

    Tests can substitute a table with :func:`dataclasses.replace`.
    """

    dense_architectures: Mapping[int, Architecture] = field(default_factory=lambda: DENSE_ARCHITECTURES)
    named_architectures: Mapping[str, Architecture] = field(default_factory=lambda: NAMED_ARCHITECTURES)
    quantization: Mapping[str, QuantizationProfile] = field(default_factory=lambda: QUANTIZATION_PROFILES)
    gpu_multipliers: FlopsMultipliers = GPU_FLOPS_MULTIPLIERS
    cpu_multipliers: FlopsMultipliers = CPU_FLOPS_MULTIPLIERS
    model_size_overhead: float = MODEL_SIZE_OVERHEAD
    activations_ratio: float = ACTIVATIONS_RATIO
    vram_safety_buffer: float = VRAM_SAFETY_BUFFER
    overhead_limits: OverheadLimits = DEFAULT_OVERHEAD_LIMITS


DEFAULT_TABLES = EngineTables()

__all__ = ["DEFAULT_TABLES", "EngineTables"]
