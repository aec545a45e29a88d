"""Hardware catalogue shared by the dashboard tabs."""

from .registry import (
    HardwareEntry,
    HardwareParseError,
    entries_for_device,
    get_hardware_entry,
    hardware_names,
    load_hardware_catalog,
    ops_from_identifier,
    parse_hardware_ops,
)

__all__ = [
    "HardwareEntry",
    "HardwareParseError",
    "entries_for_device",
    "get_hardware_entry",
    "hardware_names",
    "load_hardware_catalog",
    "ops_from_identifier",
    "parse_hardware_ops",
]
