from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

pytest.importorskip("pandas")
pytest.importorskip("plotly")

from dashboard.hardware import get_hardware_entry
from features.architecture import ModelSpec
from services.profiles import EfficiencyProfile, WorkloadProfile
from tabs import get_registered_tabs
from tabs.performance_table import SWEEP_COLUMNS, build_users_curve, sweep_unit_counts, unit_counts


def test_builtin_tabs_register():
    names = [tab.name for tab in get_registered_tabs()]
    assert names == ["capacity_planner", "performance_calculator", "performance_table"]


def test_unit_counts_are_unique_and_bounded():
    counts = unit_counts(256, 12)
    assert counts[0] == 1
    assert counts[-1] == 256
    assert counts == sorted(set(counts))
    assert unit_counts(1, 12) == [1]


def test_sweep_and_curve():
    entries = [
        get_hardware_entry("H100 INT8 Tensor (3.958 POPS)"),
        get_hardware_entry("A100 80GB INT8 (624 TOPS)"),
    ]
    df = sweep_unit_counts(
        ModelSpec(params_billions=70),
        entries,
        quantization="int8",
        workload=WorkloadProfile(active_kv_fraction=0.05),
        efficiency=EfficiencyProfile(),
        counts=[1, 2, 4, 8],
    )
    assert list(df.columns) == SWEEP_COLUMNS
    assert len(df) == 8
    h100 = df[df["hardware"] == entries[0].name]
    assert h100["max_users"].is_monotonic_increasing
    a100 = df[df["hardware"] == entries[1].name]
    assert (h100["max_users"].to_numpy() >= a100["max_users"].to_numpy()).all()

    fig = build_users_curve(df)
    assert len(fig.data) == 2
    assert fig.layout.xaxis.type == "log"
    assert fig.layout.xaxis.title.text == "Units"


def test_curve_handles_empty_frame():
    import pandas as pd

    fig = build_users_curve(pd.DataFrame(columns=SWEEP_COLUMNS))
    assert len(fig.data) == 0
