from __future__ import annotations

import math
import pathlib
import sys

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from utils.formatting import (
    FALLBACK,
    finite_or,
    format_flops,
    format_memory,
    format_number,
    format_percentage,
)


def test_format_flops_picks_unit():
    assert format_flops(1.98e15) == "1.98 PFLOPS"
    assert format_flops(7.2e13) == "72.00 TFLOPS"
    assert format_flops(14e9) == "14.00 GFLOPS"
    assert format_flops(12.0) == "12.00 FLOPS"


def test_format_memory_picks_unit():
    assert format_memory(1500) == "1.50 TB"
    assert format_memory(84) == "84.0 GB"
    assert format_memory(0.5) == "512 MB"


def test_percentage_and_number():
    assert format_percentage(12.345) == "+12.3%"
    assert format_percentage(-5, decimals=0) == "-5%"
    assert format_number(1234567) == "1,234,567"
    assert format_number(105.3257, 1) == "105.3"


def test_non_finite_values_use_fallback():
    assert format_flops(float("inf")) == FALLBACK
    assert format_memory(None) == FALLBACK
    assert format_number(float("nan"), fallback="-") == "-"
    assert finite_or(math.inf) == 0.0
    assert finite_or(None, 1.0) == 1.0
