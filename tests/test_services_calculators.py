from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from services.calculators import (
    WORDS_PER_TOKEN,
    CustomModel,
    InfrastructureInputs,
    PerformanceInputs,
    TokenBreakdown,
    calculate_infrastructure,
    calculate_performance_report,
)


def _parity_inputs(**overrides):
    payload = dict(
        model_params=13,
        hardware_ops=1e15,
        quantization="fp16",
        utilization=0.35,
        tokens_per_sec_per_user=1,
        response_length=200,
    )
    payload.update(overrides)
    return PerformanceInputs(**payload)


def test_performance_report_parity_numbers():
    report = calculate_performance_report(_parity_inputs())
    assert report.effective_flops_per_unit == pytest.approx(1.75e14)
    assert report.core.flops_per_user_per_sec == pytest.approx(7.02e10)
    assert report.users == 2492
    assert report.realistic == pytest.approx(2492)
    assert report.words == pytest.approx(2492 * WORDS_PER_TOKEN)


def test_performance_and_infrastructure_throughput_stay_in_range():
    report = calculate_performance_report(_parity_inputs())
    infra = calculate_infrastructure(
        InfrastructureInputs(
            model_params=13,
            hardware_ops_per_unit=1e15,
            quantization="fp16",
            users=100,
            tokens_per_user=1,
            utilization=0.35,
        )
    )
    assert infra.throughput_per_unit == pytest.approx(1.75e14 / 3.9e10)
    ratio = infra.throughput_per_unit / report.realistic
    assert 0.1 <= ratio <= 10


def test_raw_parameter_counts_are_normalized():
    billions = calculate_performance_report(_parity_inputs())
    raw = calculate_performance_report(_parity_inputs(model_params=13e9))
    assert raw.users == billions.users


def test_utilization_factor_wins_over_legacy_alias():
    report = calculate_performance_report(_parity_inputs(utilization_factor=0.7))
    assert report.effective_flops_per_unit == pytest.approx(3.5e14)


def test_memory_bound_flag():
    tight = calculate_performance_report(
        _parity_inputs(
            gpu_memory_gb=24,
            token_breakdown=TokenBreakdown(session_history_tokens=8000, output_tokens=200),
        )
    )
    roomy = calculate_performance_report(_parity_inputs(gpu_memory_gb=10_000))
    assert tight.is_memory_bound
    assert not roomy.is_memory_bound


def test_custom_moe_model_uses_active_override():
    dense = calculate_performance_report(_parity_inputs(model_params=47))
    moe = calculate_performance_report(
        _parity_inputs(custom_model=CustomModel(total_params=47, active_params=13, total_experts=8, active_experts=2))
    )
    assert moe.decode_flops_per_token < dense.decode_flops_per_token


def test_production_path_matches_core_engine():
    report = calculate_infrastructure(
        InfrastructureInputs(
            model_params=70,
            hardware_ops_per_unit=1.98e15,
            gpu_memory_gb=80,
            num_users=100,
            tokens_per_sec_per_user=10,
            kernel_efficiency=0.5,
            utilization_factor=0.8,
            active_kv_fraction=0.05,
        )
    )
    assert report.path == "production"
    assert report.units_needed == 2
    assert report.core is not None
    assert report.required_flops == pytest.approx(100 * 1.008e13)
    assert report.total_overhead_percent == pytest.approx(30.0)


@pytest.mark.parametrize(
    "inputs",
    [
        InfrastructureInputs(model_params=70, hardware_ops_per_unit=1.98e15, num_users=500, tokens_per_sec_per_user=20),
        InfrastructureInputs(model_params=13, hardware_ops_per_unit=1e15, users=1000),
        InfrastructureInputs(model_params=7, hardware_ops_per_unit=6.144e12, gpu_memory_gb=6144, is_cpu=True, users=300),
    ],
)
def test_total_throughput_is_per_unit_times_units(inputs):
    report = calculate_infrastructure(inputs)
    assert report.total_system_throughput == pytest.approx(report.throughput_per_unit * report.units_needed)


def test_cpu_path_reports_sizing():
    report = calculate_infrastructure(
        InfrastructureInputs(
            model_params=7,
            hardware_ops_per_unit=6.144e12,
            gpu_memory_gb=6144,
            is_cpu=True,
            users=3000,
            tokens_per_user=10,
            cpu_amx_efficiency=0.8,
            cpu_utilization_target=0.3,
        )
    )
    assert report.path == "cpu"
    assert report.cpu_sizing is not None
    assert report.units_needed == report.cpu_sizing.final_cpus_rounded
    assert report.required_flops == pytest.approx(4.2e14)


def test_legacy_overhead_strategy_is_reported_not_applied():
    report = calculate_infrastructure(
        InfrastructureInputs(
            model_params=13,
            hardware_ops_per_unit=1e15,
            users=100,
            token_breakdown=TokenBreakdown(new_input_tokens=1000),
            overhead_strategy="legacy_multiplicative",
        )
    )
    assert report.path == "legacy"
    assert report.overhead_strategy == "legacy_multiplicative"
    assert report.total_overhead_percent == pytest.approx((1.15 * 1.15 - 1.0) * 100.0)
    assert "+15% redundancy" in report.overhead_breakdown
    assert report.core.total_overhead_multiplier == pytest.approx(1.15)


def test_legacy_default_overheads():
    report = calculate_infrastructure(InfrastructureInputs(model_params=13, hardware_ops_per_unit=1e15))
    assert report.overhead_strategy == "additive"
    assert report.total_overhead_percent == pytest.approx(20.0)
