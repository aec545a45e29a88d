"""Hardware catalogue loading and identifier parsing."""

from __future__ import annotations

import json
import re
from collections import OrderedDict
from dataclasses import dataclass
from importlib import resources
from typing import Iterator, List, Mapping, Optional, Tuple

from features.flops import DeviceClass
from services.profiles import HardwareUnit

_CATALOGUE_FILENAME = "presets.json"

_OPS_PATTERN = re.compile(r"^([0-9]*\.?[0-9]+)\s*([KMGTP])?$")
_SUFFIX_SCALE = {"K": 1e3, "M": 1e6, "G": 1e9, "T": 1e12, "P": 1e15}


class HardwareParseError(ValueError):
    """Raised when a hardware identifier carries no usable ops value."""

    def __init__(self, identifier: str, detail: str = "") -> None:
        message = f"Cannot parse peak ops from hardware identifier {identifier!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.identifier = identifier


def extract_ops_raw(identifier: str) -> str:
    """Return the ops token of ``identifier``.

    ``"h100-3958,int8"`` yields ``"3958"`` and ``"6.144,compute"`` yields
    ``"6.144"``: the text before the comma, then its last ``-`` segment.
    """

    return str(identifier).split(",")[0].split("-")[-1].strip()


def parse_hardware_ops(ops_raw: str) -> float:
    """Convert ``"3958"``, ``"1.5P"`` or ``"400 G"`` to ops per second.

    A bare number is read as tera-ops.
    """

    match = _OPS_PATTERN.match(str(ops_raw).strip().upper())
    if match is None:
        raise HardwareParseError(str(ops_raw), "expected a number with optional K/M/G/T/P suffix")
    value = float(match.group(1))
    return value * _SUFFIX_SCALE[match.group(2) or "T"]


def ops_from_identifier(identifier: str) -> float:
    try:
        return parse_hardware_ops(extract_ops_raw(identifier))
    except HardwareParseError as exc:
        raise HardwareParseError(identifier, "no numeric ops segment") from exc


@dataclass(frozen=True)
class HardwareEntry:
    """One selectable accelerator or CPU from the catalogue."""

    name: str
    identifier: str
    memory_gb: float
    device_type: DeviceClass
    supported_formats: Tuple[str, ...] = ()

    @property
    def peak_ops(self) -> float:
        return ops_from_identifier(self.identifier)

    @property
    def is_cpu(self) -> bool:
        return self.device_type == "cpu"

    def to_hardware_unit(self) -> HardwareUnit:
        return HardwareUnit(
            peak_flops=self.peak_ops,
            memory_gb=float(self.memory_gb),
            device=self.device_type,
            supported_formats=self.supported_formats,
        )


_CATALOGUE_CACHE: "OrderedDict[str, HardwareEntry]" | None = None


def _entry_from_mapping(raw: Mapping[str, object]) -> HardwareEntry:
    name = raw.get("name")
    identifier = raw.get("identifier")
    if not isinstance(name, str) or not isinstance(identifier, str):
        raise TypeError("Each hardware entry requires string 'name' and 'identifier' fields.")
    device = raw.get("device_type", "gpu")
    if device not in ("gpu", "cpu"):
        raise ValueError(f"Hardware entry '{name}' has unknown device_type {device!r}.")
    try:
        memory = float(raw.get("memory_gb", 0.0))  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Hardware entry '{name}' must give a numeric memory_gb.") from exc
    formats = raw.get("supported_formats") or ()
    entry = HardwareEntry(
        name=name,
        identifier=identifier,
        memory_gb=memory,
        device_type=device,  # type: ignore[arg-type]
        supported_formats=tuple(str(fmt) for fmt in formats),  # type: ignore[union-attr]
    )
    # Fail at load time rather than when the entry is first selected.
    ops_from_identifier(entry.identifier)
    return entry


def _load_catalogue_from_file() -> "OrderedDict[str, HardwareEntry]":
    package_files = resources.files(__package__)
    raw_text = package_files.joinpath(_CATALOGUE_FILENAME).read_text(encoding="utf-8")
    loaded = json.loads(raw_text)
    if not isinstance(loaded, list):
        raise TypeError("Hardware catalogue must be a list of objects.")

    catalogue: "OrderedDict[str, HardwareEntry]" = OrderedDict()
    for raw in loaded:
        if not isinstance(raw, Mapping):
            raise TypeError("Hardware catalogue entries must be objects.")
        entry = _entry_from_mapping(raw)
        catalogue[entry.name] = entry
    if not catalogue:
        raise ValueError("No hardware entries were loaded from the catalogue.")
    return catalogue


def load_hardware_catalog() -> "OrderedDict[str, HardwareEntry]":
    """Return every catalogue entry keyed by display name, in file order."""

    global _CATALOGUE_CACHE
    if _CATALOGUE_CACHE is None:
        _CATALOGUE_CACHE = _load_catalogue_from_file()
    return OrderedDict(_CATALOGUE_CACHE)


def hardware_names(device_type: Optional[DeviceClass] = None) -> Iterator[str]:
    for entry in entries_for_device(device_type):
        yield entry.name


def entries_for_device(device_type: Optional[DeviceClass] = None) -> List[HardwareEntry]:
    entries = load_hardware_catalog().values()
    if device_type is None:
        return list(entries)
    return [entry for entry in entries if entry.device_type == device_type]


def get_hardware_entry(name: str) -> Optional[HardwareEntry]:
    """Look up an entry by name, returning ``None`` if not present."""

    return load_hardware_catalog().get(name)


__all__ = [
    "HardwareEntry",
    "HardwareParseError",
    "entries_for_device",
    "extract_ops_raw",
    "get_hardware_entry",
    "hardware_names",
    "load_hardware_catalog",
    "ops_from_identifier",
    "parse_hardware_ops",
]
