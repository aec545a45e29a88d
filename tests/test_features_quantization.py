from __future__ import annotations

import logging
import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from features.quantization import QuantizationProfile, normalize_quant_type, quantization_profile


def test_profiles_expose_bytes_and_efficiency():
    assert quantization_profile("int8").bytes_per_param == 1.0
    assert quantization_profile("INT4").bytes_per_param == 0.5
    assert quantization_profile("fp16").efficiency == pytest.approx(0.95)


def test_unknown_quantization_falls_back_to_fp16(caplog):
    with caplog.at_level(logging.WARNING, logger="features.quantization"):
        profile = quantization_profile("nf3")
    assert profile.name == "fp16"
    assert "nf3" in caplog.text


def test_empty_name_is_fp16_without_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="features.quantization"):
        assert quantization_profile(None).name == "fp16"
    assert caplog.text == ""


def test_normalize_quant_type_collapses_labels():
    assert normalize_quant_type("BF16") == "fp16"
    assert normalize_quant_type("int-8") == "int8"
    assert normalize_quant_type("Q4_K_S") == "int4"
    assert normalize_quant_type("4bit") == "int4"
    assert normalize_quant_type(None) == "fp16"


def test_profile_rejects_out_of_range_efficiency():
    with pytest.raises(ValueError):
        QuantizationProfile("broken", 1.0, 1.5)
