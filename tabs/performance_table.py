from __future__ import annotations

from typing import Callable, Iterable, List, Optional

import numpy as np
import pandas as pd
import plotly.graph_objects as go

from dashboard.hardware import HardwareEntry, entries_for_device
from features.architecture import ModelSpec
from services.core_engine import CoreResult, solve as core_solve
from services.profiles import EfficiencyProfile, PerformanceRequest, WorkloadProfile

from . import DashboardActions, DashboardState, register_tab
from .common import efficiency_inputs, model_inputs, workload_inputs

SWEEP_COLUMNS = [
    "hardware",
    "units",
    "max_users",
    "tokens_per_sec",
    "effective_flops_per_unit",
    "required_vram_per_unit_gb",
    "memory_gb",
    "memory_bound",
]


def unit_counts(max_units: int, points: int = 12) -> List[int]:
    """Geometric spread of fleet sizes between 1 and ``max_units`` (inclusive)."""

    max_units = max(int(max_units), 1)
    points = max(int(points), 1)
    if max_units == 1 or points == 1:
        return [max_units]
    grid = np.geomspace(1, max_units, points).round().astype(int)
    return [int(value) for value in np.unique(grid)]


def sweep_unit_counts(
    model: ModelSpec,
    entries: Iterable[HardwareEntry],
    *,
    quantization: str,
    workload: WorkloadProfile,
    efficiency: EfficiencyProfile,
    counts: List[int],
    solve: Callable[..., CoreResult] = core_solve,
) -> pd.DataFrame:
    rows = []
    for entry in entries:
        hardware = entry.to_hardware_unit()
        for units in counts:
            result = solve(
                PerformanceRequest(
                    model=model,
                    hardware=hardware,
                    num_units=units,
                    quantization=quantization,
                    workload=workload,
                    efficiency=efficiency,
                )
            )
            rows.append(
                {
                    "hardware": entry.name,
                    "units": units,
                    "max_users": result.max_users,
                    "tokens_per_sec": result.max_throughput,
                    "effective_flops_per_unit": result.effective_flops_per_unit,
                    "required_vram_per_unit_gb": result.required_vram_per_unit,
                    "memory_gb": entry.memory_gb,
                    "memory_bound": result.required_vram_per_unit > entry.memory_gb,
                }
            )
    return pd.DataFrame(rows, columns=SWEEP_COLUMNS)


def build_users_curve(df: pd.DataFrame, *, log_axes: bool = True) -> go.Figure:
    fig = go.Figure()
    if df is None or df.empty:
        fig.update_layout(title="Max users vs fleet size")
        return fig
    for name, group in df.groupby("hardware", sort=False):
        group = group.sort_values("units")
        fig.add_trace(
            go.Scatter(
                x=group["units"],
                y=group["max_users"],
                mode="lines+markers",
                name=str(name),
                customdata=np.stack([group["tokens_per_sec"], group["required_vram_per_unit_gb"]], axis=-1),
                hovertemplate=(
                    "units=%{x}<br>users=%{y:,}<br>tokens/s=%{customdata[0]:,.0f}"
                    "<br>VRAM/unit=%{customdata[1]:.1f} GB<extra></extra>"
                ),
            )
        )
    axis_type = "log" if log_axes else "linear"
    fig.update_layout(
        title="Max users vs fleet size",
        xaxis_title="Units",
        yaxis_title="Max concurrent users",
        xaxis_type=axis_type,
        yaxis_type=axis_type,
        legend=dict(orientation="h"),
    )
    return fig


@register_tab("performance_table", "Fleet Sweep")
def render(state: DashboardState, actions: DashboardActions) -> None:
    st = state.st
    session_state = state.session_state

    st.markdown("### Users served across fleet sizes")
    model = model_inputs(st, session_state, key_prefix="sweep")

    entries = entries_for_device("gpu")
    names = [entry.name for entry in entries]
    default_pick: Optional[str] = session_state.get("hardware_name")
    c1, c2, c3 = st.columns([3, 1, 1])
    picked = c1.multiselect(
        "Hardware to compare",
        names,
        default=[default_pick] if default_pick in names else names[:2],
        key="sweep_hardware",
    )
    max_units = int(
        c2.number_input("Max units", min_value=1, max_value=100_000, value=256, step=8, key="sweep_max_units")
    )
    points = int(c3.number_input("Points", min_value=2, max_value=40, value=12, step=1, key="sweep_points"))
    quantization = st.selectbox(
        "Quantization",
        ["fp16", "bf16", "fp8", "int8", "int4"],
        index=3,
        key="sweep_quantization",
    )

    workload = workload_inputs(st, session_state, key_prefix="sweep")
    efficiency = efficiency_inputs(st, session_state, key_prefix="sweep", show_headroom=False)

    if not picked:
        st.info("Pick at least one hardware entry.")
        return

    selected = [entry for entry in entries if entry.name in set(picked)]
    df = sweep_unit_counts(
        model,
        selected,
        quantization=quantization,
        workload=workload,
        efficiency=efficiency,
        counts=unit_counts(max_units, points),
        solve=actions.solve,
    )
    session_state["df_results"] = df

    log_axes = st.checkbox("Log axes", value=True, key="sweep_log_axes")
    st.plotly_chart(build_users_curve(df, log_axes=log_axes), use_container_width=True)

    if df["memory_bound"].any():
        st.warning("Rows flagged memory_bound need more VRAM per unit than the hardware provides.")
    st.dataframe(
        df.style.format(
            {
                "max_users": "{:,.0f}",
                "tokens_per_sec": "{:,.0f}",
                "effective_flops_per_unit": "{:.3e}",
                "required_vram_per_unit_gb": "{:.1f}",
                "memory_gb": "{:.0f}",
            }
        ),
        use_container_width=True,
        hide_index=True,
    )
    st.download_button(
        "Download CSV",
        df.to_csv(index=False).encode("utf-8"),
        file_name="fleet_sweep.csv",
        mime="text/csv",
    )
