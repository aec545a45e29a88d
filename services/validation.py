"""Alignment checks between capacity and performance mode.

For identical inputs, ``performance(capacity(N).units).max_users >= N`` must
hold.  These helpers run that round trip over a baseline configuration and
report every case, and :func:`audit_parameter_consumption` flags inputs that
no longer move the results.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Any, List, Mapping, Optional, Sequence, Tuple

from features.architecture import ModelSpec
from features.tables import DEFAULT_TABLES, EngineTables

from .core_engine import CoreResult, solve
from .profiles import (
    CapacityRequest,
    EfficiencyProfile,
    HardwareUnit,
    PerformanceRequest,
    WorkloadProfile,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlignmentConfig:
    """Flat engine inputs shared by both legs of a round trip."""

    params_billions: float = 70.0
    quantization: str = "int8"
    peak_flops: float = 1.98e15
    vram_per_unit_gb: float = 80.0
    kernel_efficiency: float = 0.50
    utilization_factor: float = 0.80
    attention_overhead: float = 0.10
    prefill_overhead: float = 0.10
    tokens_per_sec_per_user: float = 10.0
    avg_response_tokens: float = 50.0
    new_input_tokens: float = 100.0
    system_prompt_tokens: float = 0.0
    session_history_tokens: float = 0.0
    active_kv_fraction: float = 0.05
    offload_ratio: float = 0.0
    target_headroom: float = 0.10

    def _shared(self) -> dict:
        return {
            "model": ModelSpec(params_billions=self.params_billions),
            "hardware": HardwareUnit(peak_flops=self.peak_flops, memory_gb=self.vram_per_unit_gb),
            "quantization": self.quantization,
            "workload": WorkloadProfile(
                tokens_per_sec_per_user=self.tokens_per_sec_per_user,
                avg_response_tokens=self.avg_response_tokens,
                new_input_tokens=self.new_input_tokens,
                system_prompt_tokens=self.system_prompt_tokens,
                session_history_tokens=self.session_history_tokens,
                active_kv_fraction=self.active_kv_fraction,
                offload_ratio=self.offload_ratio,
            ),
            "efficiency": EfficiencyProfile(
                kernel_efficiency=self.kernel_efficiency,
                utilization_factor=self.utilization_factor,
                attention_overhead=self.attention_overhead,
                prefill_overhead=self.prefill_overhead,
                target_headroom=self.target_headroom,
            ),
        }

    def capacity_request(self, users: int) -> CapacityRequest:
        return CapacityRequest(num_users=users, **self._shared())

    def performance_request(self, units: int) -> PerformanceRequest:
        return PerformanceRequest(num_units=units, **self._shared())


DEFAULT_ALIGNMENT_BASE = AlignmentConfig()


@dataclass(frozen=True)
class AlignmentCase:
    name: str
    users: int
    overrides: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AlignmentResult:
    test_case: str
    aligned: bool
    requested_users: int
    calculated_units: int
    max_users: int
    ratio: float
    flops_per_user: float
    effective_flops_per_unit: float


@dataclass(frozen=True)
class ValidationSummary:
    passed: bool
    pass_count: int
    fail_count: int
    results: Tuple[AlignmentResult, ...]


def validate_alignment(
    users: int,
    *,
    base: AlignmentConfig = DEFAULT_ALIGNMENT_BASE,
    tables: EngineTables = DEFAULT_TABLES,
    **overrides: Any,
) -> AlignmentResult:
    """Run capacity mode for ``users`` then performance mode on the units it chose."""

    config = replace(base, **overrides)
    capacity = solve(config.capacity_request(users), tables=tables)
    performance = solve(config.performance_request(capacity.units), tables=tables)
    return AlignmentResult(
        test_case=f"{users} users",
        aligned=performance.max_users >= users,
        requested_users=users,
        calculated_units=capacity.units,
        max_users=performance.max_users,
        ratio=performance.max_users / users if users else 0.0,
        flops_per_user=capacity.flops_per_user_per_sec,
        effective_flops_per_unit=capacity.effective_flops_per_unit,
    )


def run_alignment_tests(
    cases: Sequence[AlignmentCase],
    *,
    base: AlignmentConfig = DEFAULT_ALIGNMENT_BASE,
    tables: EngineTables = DEFAULT_TABLES,
) -> ValidationSummary:
    results: List[AlignmentResult] = []
    for case in cases:
        result = validate_alignment(case.users, base=base, tables=tables, **dict(case.overrides))
        result = replace(result, test_case=case.name)
        if not result.aligned:
            logger.warning(
                "Alignment failed for %s: %d units serve %d of %d users",
                case.name,
                result.calculated_units,
                result.max_users,
                result.requested_users,
            )
        results.append(result)
    fail_count = sum(1 for result in results if not result.aligned)
    return ValidationSummary(
        passed=fail_count == 0,
        pass_count=len(results) - fail_count,
        fail_count=fail_count,
        results=tuple(results),
    )


STANDARD_ALIGNMENT_CASES: Tuple[AlignmentCase, ...] = (
    AlignmentCase("50 users baseline", 50),
    AlignmentCase("100 users baseline", 100),
    AlignmentCase("200 users baseline", 200),
    AlignmentCase("500 users baseline", 500),
    AlignmentCase("1000 users baseline", 1000),
    AlignmentCase("100 users / 7B model", 100, {"params_billions": 7.0}),
    AlignmentCase("100 users / 405B model", 100, {"params_billions": 405.0}),
    AlignmentCase("100 users / high headroom", 100, {"target_headroom": 0.3}),
    AlignmentCase("100 users / low efficiency", 100, {"kernel_efficiency": 0.3}),
)


def run_standard_alignment_tests(*, tables: EngineTables = DEFAULT_TABLES) -> ValidationSummary:
    return run_alignment_tests(STANDARD_ALIGNMENT_CASES, tables=tables)


CRITICAL_PARAMETERS: Tuple[str, ...] = (
    "params_billions",
    "quantization",
    "peak_flops",
    "vram_per_unit_gb",
    "kernel_efficiency",
    "utilization_factor",
    "attention_overhead",
    "prefill_overhead",
    "tokens_per_sec_per_user",
    "avg_response_tokens",
    "new_input_tokens",
    "target_headroom",
)


def _unchanged(base: CoreResult, modified: CoreResult) -> bool:
    return (
        modified.units == base.units
        and modified.max_users == base.max_users
        and abs(modified.flops_per_user_per_sec - base.flops_per_user_per_sec) < 1
    )


def audit_parameter_consumption(
    users: int = 100,
    *,
    base: AlignmentConfig = DEFAULT_ALIGNMENT_BASE,
    parameters: Optional[Sequence[str]] = None,
    tables: EngineTables = DEFAULT_TABLES,
) -> List[str]:
    """Bump each numeric input by 50% and list the ones that change nothing.

    A warning is not necessarily a bug: a parameter can be legitimately
    inert at a given operating point, e.g. VRAM when compute dominates.
    """

    numeric = {f.name for f in fields(AlignmentConfig) if f.type in ("float", float)}
    baseline = solve(base.capacity_request(users), tables=tables)
    warnings: List[str] = []
    for name in parameters or CRITICAL_PARAMETERS:
        if name not in numeric:
            continue
        modified = replace(base, **{name: getattr(base, name) * 1.5})
        result = solve(modified.capacity_request(users), tables=tables)
        if _unchanged(baseline, result):
            warnings.append(f"Parameter '{name}' may not affect calculation results")
    return warnings


__all__ = [
    "AlignmentCase",
    "AlignmentConfig",
    "AlignmentResult",
    "CRITICAL_PARAMETERS",
    "DEFAULT_ALIGNMENT_BASE",
    "STANDARD_ALIGNMENT_CASES",
    "ValidationSummary",
    "audit_parameter_consumption",
    "run_alignment_tests",
    "run_standard_alignment_tests",
    "validate_alignment",
]
