"""Session state for the capacity planner UI.

The dataclass gives every widget a deterministic default, taken from
:data:`services.config.DEFAULTS`, so the tabs behave the same with a real
``st.session_state`` and with a plain ``dict`` in tests.
"""
from __future__ import annotations

from dataclasses import MISSING, dataclass, field, fields
from typing import Any, Dict, Mapping, MutableMapping, Optional

import pandas as pd

from services.config import DEFAULTS, EngineDefaults
from services.profiles import EfficiencyProfile, WorkloadProfile


def _default_df_results() -> pd.DataFrame:
    return pd.DataFrame()


@dataclass
class AppState:
    """Widget values shared across tabs.

    ``df_results`` holds the last performance-table sweep so that switching
    tabs does not recompute it.
    """

    refresh_token: int = 0
    model_params: float = 70.0
    model_name: str = ""
    quantization: str = "int8"
    device_type: str = "gpu"
    hardware_name: str = "H100 INT8 Tensor (3.958 POPS)"
    num_users: int = 1000
    num_units: int = 8
    tokens_per_sec_per_user: float = DEFAULTS.serving.tokens_per_sec_per_user
    avg_response_tokens: float = DEFAULTS.serving.avg_response_tokens
    new_input_tokens: float = DEFAULTS.serving.input_tokens
    system_prompt_tokens: float = 0.0
    session_history_tokens: float = 0.0
    active_kv_fraction: float = DEFAULTS.serving.active_kv_fraction
    offload_ratio: float = DEFAULTS.serving.offload_ratio
    kernel_efficiency: float = DEFAULTS.efficiency.kernel_efficiency
    utilization_factor: float = DEFAULTS.efficiency.utilization_factor
    attention_overhead: float = DEFAULTS.efficiency.attention_overhead
    prefill_overhead: float = DEFAULTS.efficiency.prefill_overhead
    target_headroom: float = DEFAULTS.capacity.target_headroom
    df_results: pd.DataFrame = field(default_factory=_default_df_results)

    @classmethod
    def from_mapping(
        cls, mapping: Mapping[str, Any], defaults: Optional[EngineDefaults] = None
    ) -> "AppState":
        """Create an instance merging ``mapping`` with the default values.

        With ``defaults`` the workload and efficiency fields fall back to
        those engine defaults instead of the built-in ones.
        """

        seeded = engine_default_values(defaults) if defaults is not None else {}
        payload: Dict[str, Any] = {}
        for f in fields(cls):
            if f.name in mapping:
                payload[f.name] = mapping[f.name]
            elif f.name in seeded:
                payload[f.name] = seeded[f.name]
            else:
                payload[f.name] = _field_default(f)
        return cls(**payload)

    def workload_profile(self) -> WorkloadProfile:
        return WorkloadProfile(
            tokens_per_sec_per_user=float(self.tokens_per_sec_per_user),
            avg_response_tokens=float(self.avg_response_tokens),
            new_input_tokens=float(self.new_input_tokens),
            system_prompt_tokens=float(self.system_prompt_tokens),
            session_history_tokens=float(self.session_history_tokens),
            active_kv_fraction=float(self.active_kv_fraction),
            offload_ratio=float(self.offload_ratio),
        )

    def efficiency_profile(self) -> EfficiencyProfile:
        return EfficiencyProfile(
            kernel_efficiency=float(self.kernel_efficiency),
            utilization_factor=float(self.utilization_factor),
            attention_overhead=float(self.attention_overhead),
            prefill_overhead=float(self.prefill_overhead),
            target_headroom=float(self.target_headroom),
        )


class AppStateManager:
    """Dict-like access to an :class:`AppState` plus free-form extra keys."""

    def __init__(self, initial: AppState | None = None) -> None:
        self._state: AppState = initial or AppState()
        self._extras: Dict[str, Any] = {}

    @property
    def state(self) -> AppState:
        return self._state

    def get(self, key: str, default: Any | None = None) -> Any:
        if hasattr(self._state, key):
            return getattr(self._state, key)
        return self._extras.get(key, default)

    def set(self, key: str, value: Any) -> AppState:
        if hasattr(self._state, key):
            setattr(self._state, key, value)
        else:
            self._extras[key] = value
        return self._state

    def update(self, updates: Mapping[str, Any] | None = None, **kwargs: Any) -> AppState:
        payload: Dict[str, Any] = dict(updates or {})
        payload.update(kwargs)
        for key, value in payload.items():
            self.set(key, value)
        return self._state

    def bump_refresh_token(self) -> int:
        current = int(self.get("refresh_token", 0)) + 1
        self.set("refresh_token", current)
        return current

    def as_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self._state, f.name) for f in fields(AppState)}
        data.update(self._extras)
        return data


def engine_default_values(defaults: EngineDefaults = DEFAULTS) -> Dict[str, Any]:
    """AppState field values taken from ``defaults``."""

    return {
        "tokens_per_sec_per_user": defaults.serving.tokens_per_sec_per_user,
        "avg_response_tokens": defaults.serving.avg_response_tokens,
        "new_input_tokens": defaults.serving.input_tokens,
        "active_kv_fraction": defaults.serving.active_kv_fraction,
        "offload_ratio": defaults.serving.offload_ratio,
        "kernel_efficiency": defaults.efficiency.kernel_efficiency,
        "utilization_factor": defaults.efficiency.utilization_factor,
        "attention_overhead": defaults.efficiency.attention_overhead,
        "prefill_overhead": defaults.efficiency.prefill_overhead,
        "target_headroom": defaults.capacity.target_headroom,
    }


def _field_default(f) -> Any:
    if f.default is not MISSING:
        return f.default
    if f.default_factory is not MISSING:  # type: ignore[attr-defined]
        return f.default_factory()  # type: ignore[misc]
    raise AttributeError(f"Field {f.name} has no default")


APP_STATE_DEFAULTS: Dict[str, Any] = {f.name: _field_default(f) for f in fields(AppState)}


def ensure_session_state_defaults(
    store: MutableMapping[str, Any], defaults: Optional[EngineDefaults] = None
) -> AppStateManager:
    """Populate ``store`` with defaults where keys are missing.

    Values already present in ``store`` win, so a user's widget choices
    survive reruns.  ``defaults`` is the loaded engine configuration.
    """

    state = AppState.from_mapping(store, defaults)
    for f in fields(AppState):
        store.setdefault(f.name, getattr(state, f.name))
    return AppStateManager(state)


__all__ = [
    "AppState",
    "AppStateManager",
    "APP_STATE_DEFAULTS",
    "engine_default_values",
    "ensure_session_state_defaults",
]
