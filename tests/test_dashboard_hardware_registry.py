from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from dashboard.hardware import (
    HardwareParseError,
    entries_for_device,
    get_hardware_entry,
    hardware_names,
    load_hardware_catalog,
    ops_from_identifier,
    parse_hardware_ops,
)
from dashboard.hardware.registry import extract_ops_raw


def test_bare_numbers_are_tera_ops():
    assert parse_hardware_ops("3958") == pytest.approx(3.958e15)
    assert parse_hardware_ops("6.144") == pytest.approx(6.144e12)


def test_suffixes_scale():
    assert parse_hardware_ops("1.5P") == pytest.approx(1.5e15)
    assert parse_hardware_ops("400 g") == pytest.approx(4e11)
    assert parse_hardware_ops("12K") == pytest.approx(1.2e4)


def test_identifier_segments():
    assert extract_ops_raw("h100-3958,int8") == "3958"
    assert ops_from_identifier("h100-3958,int8") == pytest.approx(3.958e15)
    assert ops_from_identifier("6.144,compute") == pytest.approx(6.144e12)


def test_unparseable_identifier_raises():
    with pytest.raises(HardwareParseError) as excinfo:
        ops_from_identifier("h100-fast,int8")
    assert excinfo.value.identifier == "h100-fast,int8"
    assert isinstance(excinfo.value, ValueError)


def test_catalogue_loads_gpu_and_cpu_entries():
    catalogue = load_hardware_catalog()
    assert len(catalogue) > 10
    h100 = get_hardware_entry("H100 INT8 Tensor (3.958 POPS)")
    assert h100 is not None
    assert h100.memory_gb == 80
    assert h100.peak_ops == pytest.approx(3.958e15)
    assert "int8" in h100.supported_formats

    cpus = entries_for_device("cpu")
    assert cpus and all(entry.is_cpu for entry in cpus)
    unit = cpus[0].to_hardware_unit()
    assert unit.device == "cpu"
    assert set(hardware_names("gpu")).isdisjoint(entry.name for entry in cpus)


def test_missing_entry_returns_none():
    assert get_hardware_entry("Imaginary 9000") is None
