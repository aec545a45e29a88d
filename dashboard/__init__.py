"""Streamlit dashboard for the capacity planner."""

from __future__ import annotations

from typing import Any

__all__ = ["main"]


def main(*args: Any, **kwargs: Any) -> Any:
    """Deferred import so the catalogue and state helpers load without Streamlit."""

    from .app import main as _main

    return _main(*args, **kwargs)
