"""Streamlit entry point for the capacity planner."""

from __future__ import annotations

import logging
import os
from functools import partial

import streamlit as st

from services.calculators import calculate_infrastructure
from services.config import EngineDefaults, load_engine_defaults
from services.core_engine import solve
from tabs import DashboardActions, DashboardState, render_tabs
from utils.formatting import format_flops, format_memory, format_number, format_percentage

from .state.app_state import ensure_session_state_defaults

logger = logging.getLogger(__name__)

DEFAULTS_ENV_VAR = "LLM_CAPACITY_DEFAULTS"


@st.cache_resource(show_spinner=False)
def _engine_defaults(path: str | None) -> EngineDefaults:
    return load_engine_defaults(path)


def build_actions(defaults: EngineDefaults) -> DashboardActions:
    return DashboardActions(
        format_flops=format_flops,
        format_memory=format_memory,
        format_number=format_number,
        format_percentage=format_percentage,
        solve=solve,
        calculate_infrastructure=partial(calculate_infrastructure, defaults=defaults),
    )


def main() -> None:
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    st.set_page_config(page_title="LLM Capacity Planner", layout="wide")
    st.title("LLM Capacity Planner")
    st.caption("Size GPU or CPU fleets for a target user load, or find how many users a fleet can serve.")

    config_path = os.environ.get(DEFAULTS_ENV_VAR) or None
    try:
        defaults = _engine_defaults(config_path)
    except (OSError, ValueError, TypeError) as exc:
        logger.exception("Could not load engine defaults from %s", config_path)
        st.error(f"Could not load engine defaults from {config_path}: {exc}")
        st.stop()
        return

    manager = ensure_session_state_defaults(st.session_state, defaults)
    state = DashboardState(st=st, session_state=st.session_state, manager=manager)
    rendered = render_tabs(state, build_actions(defaults))
    logger.debug("Rendered tabs: %s", ", ".join(rendered))


__all__ = ["DEFAULTS_ENV_VAR", "build_actions", "main"]
