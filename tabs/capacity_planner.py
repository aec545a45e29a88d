from __future__ import annotations

import pandas as pd

from dashboard.state.app_state import APP_STATE_DEFAULTS
from features.batching import plan_batching
from features.kv_cache import memory_breakdown_dataframe, vram_requirements
from services.calculators import InfrastructureInputs, TokenBreakdown
from services.profiles import CapacityRequest

from . import DashboardActions, DashboardState, register_tab
from .common import efficiency_inputs, hardware_inputs, model_inputs, workload_inputs


def _render_cpu(state: DashboardState, actions: DashboardActions, model, entry, num_users: int) -> None:
    st = state.st
    session_state = state.session_state
    workload = workload_inputs(st, session_state, key_prefix="cap_cpu", show_offload=False)
    output_tokens = st.number_input(
        "Output tokens kept in KV per session",
        min_value=0.0,
        value=float(workload.avg_response_tokens),
        step=10.0,
        key="cap_cpu_output_tokens",
    )
    report = actions.calculate_infrastructure(
        InfrastructureInputs(
            model_params=model.params_billions,
            hardware_ops_per_unit=entry.peak_ops,
            gpu_memory_gb=entry.memory_gb,
            quantization=session_state.get("quantization", APP_STATE_DEFAULTS["quantization"]),
            is_cpu=True,
            users=num_users,
            tokens_per_user=workload.tokens_per_sec_per_user,
            token_breakdown=TokenBreakdown(
                system_prompt_tokens=workload.system_prompt_tokens,
                session_history_tokens=workload.session_history_tokens,
                new_input_tokens=workload.new_input_tokens,
                output_tokens=float(output_tokens),
            ),
            active_kv_fraction=workload.active_kv_fraction,
        )
    )
    sizing = report.cpu_sizing

    m1, m2, m3, m4 = st.columns(4)
    m1.metric("CPUs needed", actions.format_number(report.units_needed))
    m2.metric("Target tokens/s per CPU", actions.format_number(sizing.target_tps_per_cpu, 1))
    m3.metric("Delivered tokens/s", actions.format_number(sizing.delivered_tps))
    m4.metric("Headroom", actions.format_percentage(sizing.headroom_percent))

    m5, m6, m7, m8 = st.columns(4)
    m5.metric("Compute per token", actions.format_flops(sizing.flops_per_token))
    m6.metric("Workload compute", actions.format_flops(sizing.total_flops_tflops * 1e12))
    m7.metric("Model RAM", actions.format_memory(sizing.model_ram_gb))
    m8.metric("Memory per CPU", actions.format_memory(sizing.memory_per_cpu_gb))

    if not sizing.sanity_pass:
        st.error("Delivered throughput is below the requested token rate.")
    if not sizing.fits_in_ram:
        st.warning("Model and KV cache exceed the RAM of a single CPU host.")

    st.dataframe(
        pd.DataFrame(
            {
                "Step": [
                    "Compute-bound CPUs",
                    "With prefill penalty",
                    "With redundancy",
                    "Rounded",
                ],
                "CPUs": [
                    sizing.cpus_compute,
                    sizing.cpus_with_prefill,
                    sizing.final_cpus,
                    float(sizing.final_cpus_rounded),
                ],
            }
        ),
        use_container_width=True,
        hide_index=True,
    )
    for note in sizing.notes:
        st.caption(note)


@register_tab("capacity_planner", "Capacity Planner")
def render(state: DashboardState, actions: DashboardActions) -> None:
    st = state.st
    session_state = state.session_state

    st.markdown("### How many units do I need for N users?")
    model = model_inputs(st, session_state, key_prefix="cap")
    entry = hardware_inputs(st, session_state, key_prefix="cap")
    num_users = int(
        st.number_input(
            "Concurrent users",
            min_value=1,
            max_value=10_000_000,
            value=int(session_state.get("num_users", APP_STATE_DEFAULTS["num_users"])),
            step=100,
            key="cap_num_users",
        )
    )
    session_state["num_users"] = num_users

    if entry.is_cpu:
        _render_cpu(state, actions, model, entry, num_users)
        return

    workload = workload_inputs(st, session_state, key_prefix="cap")
    efficiency = efficiency_inputs(st, session_state, key_prefix="cap")
    hardware = entry.to_hardware_unit()
    result = actions.solve(
        CapacityRequest(
            model=model,
            hardware=hardware,
            num_users=num_users,
            quantization=session_state.get("quantization", APP_STATE_DEFAULTS["quantization"]),
            workload=workload,
            efficiency=efficiency,
        )
    )

    m1, m2, m3, m4 = st.columns(4)
    m1.metric("Units needed", actions.format_number(result.units))
    m2.metric("Compute-bound", actions.format_number(result.units_for_compute))
    m3.metric("Memory-bound", actions.format_number(result.units_for_memory))
    m4.metric("Max users on fleet", actions.format_number(result.max_users))

    m5, m6, m7, m8 = st.columns(4)
    m5.metric("Required compute", actions.format_flops(result.required_flops))
    m6.metric("Effective / unit", actions.format_flops(result.effective_flops_per_unit))
    m7.metric("System tokens/s", actions.format_number(result.system_tokens_per_sec))
    m8.metric(
        "Workload overhead",
        actions.format_percentage((result.total_overhead_multiplier - 1.0) * 100.0),
    )

    st.markdown("#### Memory per unit")
    breakdown = vram_requirements(model_gb=result.model_size_gb, kv_in_vram_gb=result.kv_cache_in_vram_per_unit_gb)
    frame = memory_breakdown_dataframe(breakdown, hardware.memory_gb)
    st.dataframe(
        frame.style.format({"GB_per_unit": "{:.2f}", "Share_of_VRAM": "{:.1%}"}),
        use_container_width=True,
        hide_index=True,
    )
    if result.required_vram_per_unit > hardware.memory_gb:
        st.warning(
            f"Each unit needs {actions.format_memory(result.required_vram_per_unit)} "
            f"but only has {actions.format_memory(hardware.memory_gb)}."
        )
    st.caption(
        f"Total KV cache {actions.format_memory(result.total_kv_cache_gb)}, "
        f"offloaded {actions.format_memory(result.kv_cache_offloaded_gb)}."
    )

    with st.expander("Batching plan (heuristic)", expanded=False):
        kv_per_request = result.total_kv_cache_gb / num_users if num_users else 0.0
        plan = plan_batching(
            hardware.memory_gb,
            result.model_size_gb,
            kv_per_request,
            num_users,
            int(workload.avg_response_tokens),
            model.params_billions,
            num_gpus=result.units,
        )
        if not plan.feasible:
            st.error(plan.recommendations[0])
        else:
            b1, b2, b3 = st.columns(3)
            b1.metric("Requests per batch", plan.requests_per_batch)
            b2.metric("Batches per GPU", plan.batches_per_gpu)
            b3.metric("Tokens/s per GPU (est.)", actions.format_number(plan.throughput_per_gpu))
            for note in plan.recommendations:
                st.caption(note)
