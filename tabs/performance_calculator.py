from __future__ import annotations

import pandas as pd

from dashboard.state.app_state import APP_STATE_DEFAULTS
from services.calculators import WORDS_PER_TOKEN
from services.profiles import PerformanceRequest

from . import DashboardActions, DashboardState, register_tab
from .common import efficiency_inputs, hardware_inputs, model_inputs, workload_inputs


@register_tab("performance_calculator", "Performance Calculator")
def render(state: DashboardState, actions: DashboardActions) -> None:
    st = state.st
    session_state = state.session_state

    st.markdown("### How many users can a fleet serve?")
    model = model_inputs(st, session_state, key_prefix="perf")
    entry = hardware_inputs(st, session_state, key_prefix="perf")
    num_units = int(
        st.number_input(
            "Units in the fleet",
            min_value=1,
            max_value=1_000_000,
            value=int(session_state.get("num_units", APP_STATE_DEFAULTS["num_units"])),
            step=1,
            key="perf_num_units",
        )
    )
    session_state["num_units"] = num_units

    workload = workload_inputs(st, session_state, key_prefix="perf")
    efficiency = efficiency_inputs(st, session_state, key_prefix="perf", show_headroom=False)
    hardware = entry.to_hardware_unit()
    result = actions.solve(
        PerformanceRequest(
            model=model,
            hardware=hardware,
            num_units=num_units,
            quantization=session_state.get("quantization", APP_STATE_DEFAULTS["quantization"]),
            workload=workload,
            efficiency=efficiency,
        )
    )

    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Max users", actions.format_number(result.max_users))
    m2.metric("Tokens/s", actions.format_number(result.max_throughput))
    m3.metric("Words/s (approx.)", actions.format_number(result.max_throughput * WORDS_PER_TOKEN))
    m4.metric("Usable compute", actions.format_flops(result.total_system_flops))

    memory_bound = result.required_vram_per_unit > hardware.memory_gb
    if memory_bound:
        st.warning(
            "The KV cache for this many users does not fit: "
            f"{actions.format_memory(result.required_vram_per_unit)} needed per unit, "
            f"{actions.format_memory(hardware.memory_gb)} available. "
            "Lower the active KV fraction or enable offload."
        )

    details = pd.DataFrame(
        [
            ("Decode compute / token", actions.format_flops(result.decode_flops_per_token)),
            ("Prefill compute / token", actions.format_flops(result.prefill_flops_per_token)),
            ("Compute per user", actions.format_flops(result.flops_per_user_per_sec)),
            ("Effective compute / unit", actions.format_flops(result.effective_flops_per_unit)),
            ("Overhead multiplier", f"{result.total_overhead_multiplier:.2f}x"),
            ("Model size", actions.format_memory(result.model_size_gb)),
            ("KV cache (total)", actions.format_memory(result.total_kv_cache_gb)),
            ("KV cache in VRAM / unit", actions.format_memory(result.kv_cache_in_vram_per_unit_gb)),
            ("Required VRAM / unit", actions.format_memory(result.required_vram_per_unit)),
        ],
        columns=["Metric", "Value"],
    )
    st.dataframe(details, use_container_width=True, hide_index=True)
