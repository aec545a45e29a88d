"""Input widgets shared by the planner tabs.

Each helper seeds its widgets from ``session_state`` and writes the chosen
values back under the plain :class:`~dashboard.state.app_state.AppState`
keys, so that every tab starts from the last values the user entered.
"""

from __future__ import annotations

from typing import Any, List, Optional

from dashboard.hardware import HardwareEntry, entries_for_device, get_hardware_entry
from dashboard.state.app_state import APP_STATE_DEFAULTS
from features.architecture import CUSTOM_MODEL_NAME, MOE_ARCHITECTURES, NAMED_ARCHITECTURES, ModelSpec
from features.quantization import QUANTIZATION_PROFILES
from services.profiles import EfficiencyProfile, WorkloadProfile

_DEVICE_LABELS = {"gpu": "GPU", "cpu": "CPU"}
_DENSE_LABEL = "dense (by size)"


def _index_of(options: List[Any], value: Any, default: int = 0) -> int:
    try:
        return options.index(value)
    except ValueError:
        return default


def _seeded(session_state: Any, key: str) -> float:
    return float(session_state.get(key, APP_STATE_DEFAULTS[key]))


def model_inputs(st: Any, session_state: Any, *, key_prefix: str) -> ModelSpec:
    c1, c2, c3 = st.columns(3)
    params = c1.number_input(
        "Model size (billions of parameters)",
        min_value=0.1,
        max_value=10_000.0,
        value=_seeded(session_state, "model_params"),
        step=1.0,
        key=f"{key_prefix}_model_params",
    )
    names = [_DENSE_LABEL, CUSTOM_MODEL_NAME] + sorted(NAMED_ARCHITECTURES)
    current = session_state.get("model_name", "") or _DENSE_LABEL
    choice = c2.selectbox(
        "Architecture",
        names,
        index=_index_of(names, current),
        key=f"{key_prefix}_model_name",
        help="Named entries use a fixed shape (MoE ones a fixed expert layout); 'custom' scales the 70B shape.",
    )
    shards = c3.number_input(
        "Expert shards",
        min_value=1,
        max_value=1024,
        value=1,
        step=1,
        key=f"{key_prefix}_expert_shards",
        help="Expert-parallel degree; only affects VRAM for MoE models.",
    )
    name = "" if choice == _DENSE_LABEL else str(choice)
    session_state["model_params"] = float(params)
    session_state["model_name"] = name

    moe = MOE_ARCHITECTURES.get(name)
    return ModelSpec(
        params_billions=float(params),
        name=name or None,
        total_experts=moe.total_experts if moe else None,
        active_experts=moe.active_experts if moe else None,
        expert_shards=int(shards),
    )


def hardware_inputs(st: Any, session_state: Any, *, key_prefix: str) -> HardwareEntry:
    c1, c2, c3 = st.columns([1, 3, 1])
    devices = list(_DEVICE_LABELS)
    device = c1.radio(
        "Device",
        devices,
        index=_index_of(devices, session_state.get("device_type", "gpu")),
        format_func=_DEVICE_LABELS.get,
        key=f"{key_prefix}_device_type",
        horizontal=True,
    )
    entries = entries_for_device(device)
    names = [entry.name for entry in entries]
    name = c2.selectbox(
        "Hardware",
        names,
        index=_index_of(names, session_state.get("hardware_name")),
        key=f"{key_prefix}_hardware_name",
    )
    entry = get_hardware_entry(name) or entries[0]

    quant_options = [fmt for fmt in entry.supported_formats if fmt in QUANTIZATION_PROFILES]
    if not quant_options:
        quant_options = list(QUANTIZATION_PROFILES)
    quantization = c3.selectbox(
        "Quantization",
        quant_options,
        index=_index_of(quant_options, session_state.get("quantization")),
        key=f"{key_prefix}_quantization",
    )
    session_state["device_type"] = device
    session_state["hardware_name"] = entry.name
    session_state["quantization"] = quantization
    return entry


def workload_inputs(st: Any, session_state: Any, *, key_prefix: str, show_offload: bool = True) -> WorkloadProfile:
    with st.expander("Workload", expanded=True):
        c1, c2, c3 = st.columns(3)
        tps = c1.number_input(
            "Tokens/s per user",
            min_value=0.0,
            value=_seeded(session_state, "tokens_per_sec_per_user"),
            step=1.0,
            key=f"{key_prefix}_tps",
        )
        avg_response = c2.number_input(
            "Avg response tokens",
            min_value=0.0,
            value=_seeded(session_state, "avg_response_tokens"),
            step=10.0,
            key=f"{key_prefix}_avg_response",
        )
        new_input = c3.number_input(
            "New input tokens / request",
            min_value=0.0,
            value=_seeded(session_state, "new_input_tokens"),
            step=10.0,
            key=f"{key_prefix}_new_input",
        )
        c4, c5, c6, c7 = st.columns(4)
        system_prompt = c4.number_input(
            "System prompt tokens",
            min_value=0.0,
            value=_seeded(session_state, "system_prompt_tokens"),
            step=50.0,
            key=f"{key_prefix}_system_prompt",
        )
        history = c5.number_input(
            "Session history tokens",
            min_value=0.0,
            value=_seeded(session_state, "session_history_tokens"),
            step=100.0,
            key=f"{key_prefix}_history",
        )
        active_kv = c6.slider(
            "Active KV fraction",
            0.0,
            1.0,
            _seeded(session_state, "active_kv_fraction"),
            0.01,
            key=f"{key_prefix}_active_kv",
            help="Share of sessions whose KV cache is resident at once.",
        )
        offload = 0.0
        if show_offload:
            offload = c7.slider(
                "KV offload ratio",
                0.0,
                1.0,
                _seeded(session_state, "offload_ratio"),
                0.05,
                key=f"{key_prefix}_offload",
            )

    values = {
        "tokens_per_sec_per_user": float(tps),
        "avg_response_tokens": float(avg_response),
        "new_input_tokens": float(new_input),
        "system_prompt_tokens": float(system_prompt),
        "session_history_tokens": float(history),
        "active_kv_fraction": float(active_kv),
        "offload_ratio": float(offload),
    }
    for key, value in values.items():
        session_state[key] = value
    return WorkloadProfile(**values)


def efficiency_inputs(
    st: Any,
    session_state: Any,
    *,
    key_prefix: str,
    show_headroom: bool = True,
) -> EfficiencyProfile:
    with st.expander("Efficiency & overheads", expanded=False):
        c1, c2, c3, c4, c5 = st.columns(5)
        kernel = c1.slider(
            "Kernel efficiency",
            0.05,
            1.0,
            _seeded(session_state, "kernel_efficiency"),
            0.01,
            key=f"{key_prefix}_kernel",
        )
        utilization = c2.slider(
            "Utilization",
            0.05,
            1.0,
            _seeded(session_state, "utilization_factor"),
            0.01,
            key=f"{key_prefix}_utilization",
        )
        attention = c3.slider(
            "Attention overhead",
            0.0,
            0.4,
            _seeded(session_state, "attention_overhead"),
            0.01,
            key=f"{key_prefix}_attention",
        )
        prefill = c4.slider(
            "Prefill overhead",
            0.0,
            0.3,
            _seeded(session_state, "prefill_overhead"),
            0.01,
            key=f"{key_prefix}_prefill",
        )
        headroom: Optional[float] = None
        if show_headroom:
            headroom = c5.slider(
                "Target headroom",
                0.0,
                1.0,
                _seeded(session_state, "target_headroom"),
                0.05,
                key=f"{key_prefix}_headroom",
                help="Pads the unit count only; required FLOPs are unaffected.",
            )

    values = {
        "kernel_efficiency": float(kernel),
        "utilization_factor": float(utilization),
        "attention_overhead": float(attention),
        "prefill_overhead": float(prefill),
    }
    if headroom is not None:
        values["target_headroom"] = float(headroom)
    for key, value in values.items():
        session_state[key] = value
    return EfficiencyProfile(**values)


__all__ = ["efficiency_inputs", "hardware_inputs", "model_inputs", "workload_inputs"]
