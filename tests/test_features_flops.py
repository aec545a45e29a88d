from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from features.architecture import DENSE_ARCHITECTURES, MOE_ARCHITECTURES, resolve_architecture
from features.flops import (
    FlopsMultipliers,
    decode_flops_per_token,
    effective_parameters,
    flops_multiplier,
    prefill_flops_per_token,
)


def test_multiplier_steps_for_gpu_and_cpu():
    assert flops_multiplier(7) == 2.3
    assert flops_multiplier(13) == 3.0
    assert flops_multiplier(70) == 4.0
    assert flops_multiplier(405) == 5.5
    assert flops_multiplier(7, "cpu") == 2.0
    assert flops_multiplier(405, "cpu") == 2.8


def test_dense_decode_flops():
    assert decode_flops_per_token(7, DENSE_ARCHITECTURES[7]) == pytest.approx(1.61e10)
    assert decode_flops_per_token(7, DENSE_ARCHITECTURES[7], "cpu") == pytest.approx(14e9)
    assert decode_flops_per_token(70, DENSE_ARCHITECTURES[70]) == pytest.approx(2.8e11)


def test_long_context_floor_applies_to_decode_only():
    arch = DENSE_ARCHITECTURES[70]
    assert decode_flops_per_token(70, arch, sequence_length=2048) == pytest.approx(7e11)
    assert decode_flops_per_token(70, arch, sequence_length=1024) == pytest.approx(2.8e11)
    assert prefill_flops_per_token(70, arch) == pytest.approx(2.8e11)

    mid = resolve_architecture(30)
    assert decode_flops_per_token(30, mid, sequence_length=4096) == pytest.approx(8 * 30e9)


def test_moe_effective_parameters_blend():
    arch = MOE_ARCHITECTURES["mixtral-8x7b"]
    active = 46.7 * 0.278
    assert effective_parameters(46.7, arch) == pytest.approx(0.05 * active + 0.95 * 46.7)
    assert effective_parameters(46.7, arch, continuous_serving=False) == pytest.approx((active + 46.7) / 2)
    assert effective_parameters(70, DENSE_ARCHITECTURES[70]) == 70


def test_substituted_multiplier_table_is_used():
    flat = FlopsMultipliers(small=2.0, medium=2.0, large=2.0, xlarge=2.0)
    value = decode_flops_per_token(70, DENSE_ARCHITECTURES[70], gpu_multipliers=flat)
    assert value == pytest.approx(1.4e11)
