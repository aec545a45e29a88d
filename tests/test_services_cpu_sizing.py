from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from features.architecture import ModelSpec
from services.cpu_sizing import CpuSizingRequest, redundancy_multiplier, size_cpu_fleet
from services.profiles import HardwareUnit

XEON_6980P = HardwareUnit(peak_flops=6.144e12, memory_gb=6144.0, device="cpu")


def _request(**overrides):
    payload = dict(
        model=ModelSpec(params_billions=7),
        hardware=XEON_6980P,
        users=3000,
        tokens_per_user=10,
        amx_efficiency=0.8,
        utilization_target=0.3,
    )
    payload.update(overrides)
    return CpuSizingRequest(**payload)


def test_flops_and_target_rate():
    result = size_cpu_fleet(_request())
    assert result.flops_per_token_gflops == pytest.approx(14.0)
    assert result.total_flops_tflops == pytest.approx(420.0)
    assert result.target_tps_per_cpu == pytest.approx(105.33, rel=1e-3)
    assert result.total_required_tps == pytest.approx(30_000)


def test_cpu_count_chain_and_sanity():
    result = size_cpu_fleet(_request())
    assert result.cpus_with_prefill == pytest.approx(result.cpus_compute * 2.5)
    assert result.final_cpus == pytest.approx(result.cpus_with_prefill * 1.15)
    assert result.final_cpus_rounded == 819
    assert result.sanity_pass
    assert result.delivered_tps >= result.total_required_tps
    assert result.model_ram_gb == pytest.approx(8.4)


def test_quantization_only_changes_kv_bytes():
    int8 = size_cpu_fleet(_request(quantization="int8"))
    fp16 = size_cpu_fleet(_request(quantization="fp16"))
    assert fp16.target_tps_per_cpu == pytest.approx(int8.target_tps_per_cpu)
    assert fp16.kv_bytes_per_token == pytest.approx(2 * int8.kv_bytes_per_token)


def test_session_tokens_include_output():
    request = _request(system_prompt_tokens=200, session_history_tokens=300, new_input_tokens=100, output_tokens=400)
    assert request.session_tokens == 1000


def test_zero_users_still_needs_one_cpu():
    result = size_cpu_fleet(_request(users=0))
    assert result.final_cpus_rounded == 1
    assert result.sanity_pass


def test_fractional_redundancy_is_deprecated():
    with pytest.warns(DeprecationWarning):
        assert redundancy_multiplier(0.15) == pytest.approx(1.15)
    assert redundancy_multiplier(1.3) == pytest.approx(1.3)


def test_fractional_and_multiplier_redundancy_agree():
    multiplier = size_cpu_fleet(_request(redundancy=1.15))
    with pytest.warns(DeprecationWarning):
        fraction = size_cpu_fleet(_request(redundancy=0.15))
    assert fraction.final_cpus_rounded == multiplier.final_cpus_rounded
