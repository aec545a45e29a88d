from __future__ import annotations

import pathlib
import sys
from dataclasses import replace

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from features.architecture import ModelSpec
from features.flops import FlopsMultipliers
from features.quantization import QUANTIZATION_PROFILES, QuantizationProfile
from features.tables import DEFAULT_TABLES
from services.core_engine import (
    calculate_capacity,
    calculate_performance,
    solve,
    units_for_compute,
    units_for_memory,
)
from services.profiles import (
    CapacityRequest,
    EfficiencyProfile,
    HardwareUnit,
    PerformanceRequest,
    WorkloadProfile,
)

H100_INT8 = HardwareUnit(peak_flops=1.98e15, memory_gb=80.0)
MODEL_70B = ModelSpec(params_billions=70)


def _capacity(users, workload=None, efficiency=None, hardware=H100_INT8, model=MODEL_70B):
    return calculate_capacity(
        model,
        hardware,
        users,
        "int8",
        workload or WorkloadProfile(active_kv_fraction=0.05),
        efficiency or EfficiencyProfile(),
    )


def test_required_flops_for_large_fleet():
    hardware = HardwareUnit(peak_flops=9e15, memory_gb=192.0)
    workload = WorkloadProfile(tokens_per_sec_per_user=10, new_input_tokens=0)
    efficiency = EfficiencyProfile(
        kernel_efficiency=1.0,
        utilization_factor=0.8,
        attention_overhead=0.05,
        prefill_overhead=0.05,
    )
    result = calculate_capacity(MODEL_70B, hardware, 10_000, "int8", workload, efficiency)
    assert result.required_flops == pytest.approx(3.08e16)
    assert result.flops_per_user_per_sec == pytest.approx(3.08e12)
    assert result.units == 5


def test_required_flops_ignore_hardware_derating():
    base = _capacity(1000)
    derated = _capacity(1000, efficiency=EfficiencyProfile(kernel_efficiency=0.2, utilization_factor=0.5))
    padded = _capacity(1000, efficiency=EfficiencyProfile(target_headroom=0.5, redundancy_factor=0.5))
    assert derated.required_flops == pytest.approx(base.required_flops)
    assert padded.required_flops == pytest.approx(base.required_flops)
    assert derated.units > base.units
    assert padded.units >= base.units


@pytest.mark.parametrize("users", [1, 7, 50, 100, 999, 12_345])
def test_capacity_round_trips_through_performance(users):
    capacity = _capacity(users)
    performance = calculate_performance(
        MODEL_70B,
        H100_INT8,
        capacity.units,
        "int8",
        WorkloadProfile(active_kv_fraction=0.05),
        EfficiencyProfile(),
    )
    assert performance.max_users >= users
    assert performance.max_users == capacity.max_users


def test_units_cover_compute_and_memory():
    result = _capacity(100)
    assert result.flops_per_user_per_sec == pytest.approx(1.008e13)
    assert result.units_for_compute == 2
    assert result.units_for_memory == 2
    assert result.units == max(result.units_for_compute, result.units_for_memory)


def test_memory_bound_when_kv_dominates():
    workload = WorkloadProfile(tokens_per_sec_per_user=1, session_history_tokens=8000, active_kv_fraction=1.0)
    result = _capacity(2000, workload=workload)
    assert result.units_for_memory > result.units_for_compute
    assert result.units == result.units_for_memory


def test_kv_cache_grows_with_session_tokens():
    short = _capacity(500, workload=WorkloadProfile(active_kv_fraction=1.0))
    long = _capacity(500, workload=WorkloadProfile(session_history_tokens=4000, active_kv_fraction=1.0))
    assert long.total_kv_cache_gb > short.total_kv_cache_gb
    assert long.units_for_memory >= short.units_for_memory


def test_active_fraction_and_offload_scale_resident_kv():
    full = _capacity(1000, workload=WorkloadProfile(active_kv_fraction=1.0))
    partial = _capacity(1000, workload=WorkloadProfile(active_kv_fraction=0.25))
    offloaded = _capacity(1000, workload=WorkloadProfile(active_kv_fraction=1.0, offload_ratio=0.5))
    assert partial.total_kv_cache_gb == pytest.approx(full.total_kv_cache_gb)
    resident_full = full.kv_cache_in_vram_per_unit_gb * full.units
    assert partial.kv_cache_in_vram_per_unit_gb * partial.units == pytest.approx(resident_full * 0.25)
    assert offloaded.kv_cache_offloaded_gb == pytest.approx(resident_full * 0.5)


def test_non_positive_inputs_are_clamped():
    capacity = _capacity(0)
    assert capacity.units >= 1
    assert capacity.required_flops == pytest.approx(capacity.flops_per_user_per_sec)

    performance = calculate_performance(MODEL_70B, H100_INT8, 0, "int8")
    assert performance.units == 1


def test_zero_effective_flops_yields_one_compute_unit():
    assert units_for_compute(100, 1e12, 0.0, 0.1) == 1
    assert units_for_memory(84.0, 10.0, 0.0) == 1
    assert units_for_memory(84.0, 10.0, 80.0) == 2


def test_performance_mode_sizes_kv_for_max_users():
    result = calculate_performance(MODEL_70B, H100_INT8, 4, "int8", WorkloadProfile(active_kv_fraction=1.0))
    assert result.max_users > 0
    assert result.system_tokens_per_sec == pytest.approx(result.max_users * 10.0)
    assert result.required_flops == pytest.approx(result.max_users * result.flops_per_user_per_sec)


def test_solve_rejects_unknown_request_type():
    with pytest.raises(TypeError, match="Unsupported request type: object"):
        solve(object())  # type: ignore[arg-type]


def test_solve_rejects_lookalike_request_before_reading_it():
    class Lookalike:
        model = MODEL_70B
        hardware = H100_INT8
        workload = WorkloadProfile()
        efficiency = EfficiencyProfile()
        quantization = "int8"
        num_users = 100

    with pytest.raises(TypeError, match="Lookalike"):
        solve(Lookalike())  # type: ignore[arg-type]


def test_solve_dispatches_on_request_type():
    capacity = solve(CapacityRequest(model=MODEL_70B, hardware=H100_INT8, num_users=100, quantization="int8"))
    performance = solve(
        PerformanceRequest(model=MODEL_70B, hardware=H100_INT8, num_units=capacity.units, quantization="int8")
    )
    assert capacity.mode == "capacity"
    assert performance.mode == "performance"


def test_injected_tables_change_results():
    doubled = replace(DEFAULT_TABLES, gpu_multipliers=FlopsMultipliers(4.6, 6.0, 8.0, 11.0))
    request = CapacityRequest(model=MODEL_70B, hardware=H100_INT8, num_users=100, quantization="int8")
    base = solve(request)
    heavy = solve(request, tables=doubled)
    assert heavy.decode_flops_per_token == pytest.approx(2 * base.decode_flops_per_token)


def test_kv_cache_scales_linearly_with_tokens():
    short = _capacity(100, workload=WorkloadProfile(new_input_tokens=1, active_kv_fraction=1.0))
    long = _capacity(
        100, workload=WorkloadProfile(new_input_tokens=1, session_history_tokens=2500, active_kv_fraction=1.0)
    )
    assert long.total_kv_cache_gb / short.total_kv_cache_gb > 1000


def test_quantization_efficiency_does_not_change_sizing():
    derated = dict(QUANTIZATION_PROFILES)
    derated["int8"] = QuantizationProfile("int8", 1.0, 0.5)
    tables = replace(DEFAULT_TABLES, quantization=derated)
    request = CapacityRequest(model=MODEL_70B, hardware=H100_INT8, num_users=500, quantization="int8")
    base = solve(request)
    derated_result = solve(request, tables=tables)
    assert derated_result.units == base.units
    assert derated_result.flops_per_user_per_sec == pytest.approx(base.flops_per_user_per_sec)
    assert derated_result.model_size_gb == pytest.approx(base.model_size_gb)


def test_long_sessions_do_not_raise_decode_flops_per_token():
    short = _capacity(100, workload=WorkloadProfile(active_kv_fraction=0.05))
    long = _capacity(100, workload=WorkloadProfile(session_history_tokens=200_000, active_kv_fraction=0.05))
    assert long.decode_flops_per_token == pytest.approx(short.decode_flops_per_token)
