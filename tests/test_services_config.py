from __future__ import annotations

import json
import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pydantic = pytest.importorskip("pydantic")

from services.config import DEFAULTS, load_engine_defaults
from services.profiles import EfficiencyProfile, WorkloadProfile


def test_no_path_returns_builtin_defaults():
    assert load_engine_defaults() is DEFAULTS
    assert DEFAULTS.efficiency.kernel_efficiency == 0.5
    assert DEFAULTS.cpu.redundancy == 1.15


def test_partial_override_keeps_other_values(tmp_path):
    path = tmp_path / "defaults.json"
    path.write_text(json.dumps({"efficiency": {"kernel_efficiency": 0.6}, "serving": {"input_tokens": 250}}))
    loaded = load_engine_defaults(path)
    assert loaded.efficiency.kernel_efficiency == 0.6
    assert loaded.efficiency.utilization_factor == DEFAULTS.efficiency.utilization_factor
    assert WorkloadProfile.from_defaults(loaded).new_input_tokens == 250
    assert EfficiencyProfile.from_defaults(loaded, target_headroom=0.3).target_headroom == 0.3


def test_out_of_range_value_rejected(tmp_path):
    path = tmp_path / "defaults.json"
    path.write_text(json.dumps({"efficiency": {"kernel_efficiency": 1.5}}))
    with pytest.raises(pydantic.ValidationError):
        load_engine_defaults(path)


def test_unknown_key_rejected(tmp_path):
    path = tmp_path / "defaults.json"
    path.write_text(json.dumps({"cpu": {"hyperthreading": True}}))
    with pytest.raises(pydantic.ValidationError):
        load_engine_defaults(path)


def test_malformed_json_raises_value_error(tmp_path):
    path = tmp_path / "defaults.json"
    path.write_text("{not json")
    with pytest.raises(ValueError):
        load_engine_defaults(path)


def test_non_object_payload_raises_type_error(tmp_path):
    path = tmp_path / "defaults.json"
    path.write_text("[1, 2, 3]")
    with pytest.raises(TypeError):
        load_engine_defaults(path)
