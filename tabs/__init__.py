from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional


@dataclass
class DashboardState:
    """Mutable data that tabs rely on for rendering."""

    st: Any
    session_state: Any
    manager: Any


@dataclass
class DashboardActions:
    format_flops: Callable[[Optional[float]], str]
    format_memory: Callable[[Optional[float]], str]
    format_number: Callable[..., str]
    format_percentage: Callable[..., str]
    solve: Callable[..., Any]
    calculate_infrastructure: Callable[..., Any]


@dataclass
class _TabDefinition:
    name: str
    title: str
    render: Callable[[DashboardState, DashboardActions], None]


_registry: Dict[str, _TabDefinition] = {}


def register_tab(
    name: str, title: str
) -> Callable[[Callable[[DashboardState, DashboardActions], None]], Callable[[DashboardState, DashboardActions], None]]:
    """Decorator used by tab modules to register themselves."""

    def decorator(func: Callable[[DashboardState, DashboardActions], None]) -> Callable[[DashboardState, DashboardActions], None]:
        if name in _registry:
            raise ValueError(f"Tab '{name}' already registered")
        _registry[name] = _TabDefinition(name=name, title=title, render=func)
        return func

    return decorator


def get_registered_tabs() -> List[_TabDefinition]:
    """Return registered tab definitions in registration order."""

    return list(_registry.values())


def render_tabs(state: DashboardState, actions: DashboardActions, names: Optional[List[str]] = None) -> List[str]:
    """Mount the registered tabs (or the ``names`` subset) and render each one.

    Returns the names that were rendered, in display order.
    """

    tabs = get_registered_tabs()
    if names is not None:
        wanted = set(names)
        tabs = [tab for tab in tabs if tab.name in wanted]
    if not tabs:
        return []
    containers = state.st.tabs([tab.title for tab in tabs])
    for container, tab in zip(containers, tabs):
        with container:
            tab.render(state, actions)
    return [tab.name for tab in tabs]


# Import built-in tabs so they register on module import.
from . import capacity_planner  # noqa: E402,F401
from . import performance_calculator  # noqa: E402,F401
from . import performance_table  # noqa: E402,F401
