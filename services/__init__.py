"""Capacity and performance solvers built on :mod:`features`."""

from .calculators import (
    InfrastructureInputs,
    InfrastructureReport,
    PerformanceInputs,
    PerformanceReport,
    calculate_infrastructure,
    calculate_performance_report,
)
from .config import DEFAULTS, EngineDefaults, load_engine_defaults
from .core_engine import CoreResult, calculate_capacity, calculate_performance, solve
from .cpu_sizing import CpuSizingRequest, CpuSizingResult, size_cpu_fleet
from .profiles import CapacityRequest, EfficiencyProfile, HardwareUnit, PerformanceRequest, WorkloadProfile
from .validation import (
    audit_parameter_consumption,
    run_alignment_tests,
    run_standard_alignment_tests,
    validate_alignment,
)

__all__ = [
    "CapacityRequest",
    "CoreResult",
    "CpuSizingRequest",
    "CpuSizingResult",
    "DEFAULTS",
    "EfficiencyProfile",
    "EngineDefaults",
    "HardwareUnit",
    "InfrastructureInputs",
    "InfrastructureReport",
    "PerformanceInputs",
    "PerformanceReport",
    "PerformanceRequest",
    "WorkloadProfile",
    "audit_parameter_consumption",
    "calculate_capacity",
    "calculate_infrastructure",
    "calculate_performance",
    "calculate_performance_report",
    "load_engine_defaults",
    "run_alignment_tests",
    "run_standard_alignment_tests",
    "size_cpu_fleet",
    "solve",
    "validate_alignment",
]
