"""Engine defaults, overridable from a JSON file.

The values here seed the request profiles, the historical calculator facades
and the Streamlit widgets.  They are validated with pydantic so an override
file with an out-of-range value fails loudly instead of skewing results.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class _DefaultsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="forbid")


class EfficiencyDefaults(_DefaultsModel):
    kernel_efficiency: float = Field(0.50, gt=0.0, le=1.0)
    utilization_factor: float = Field(0.80, gt=0.0, le=1.0)
    attention_overhead: float = Field(0.10, ge=0.0, le=1.0)
    prefill_overhead: float = Field(0.10, ge=0.0, le=1.0)


class ServingDefaults(_DefaultsModel):
    tokens_per_sec_per_user: float = Field(10.0, ge=0.0)
    avg_response_tokens: float = Field(50.0, ge=0.0)
    input_tokens: float = Field(100.0, ge=0.0)
    active_kv_fraction: float = Field(1.0, ge=0.0, le=1.0)
    offload_ratio: float = Field(0.0, ge=0.0, le=1.0)


class CapacityDefaults(_DefaultsModel):
    target_headroom: float = Field(0.10, ge=0.0)
    # Reported for older callers only; never applied to required FLOPs.
    redundancy_factor: float = Field(0.15, ge=0.0)
    vram_per_unit_gb: float = Field(96.0, gt=0.0)


class CpuDefaults(_DefaultsModel):
    prefill_multiplier: float = Field(2.5, gt=0.0)
    utilization_target: float = Field(0.65, gt=0.0, le=1.0)
    redundancy: float = Field(1.15, ge=0.0)
    amx_efficiency: float = Field(0.20, gt=0.0, le=1.0)
    model_ram_overhead: float = Field(1.2, gt=0.0)
    active_kv_fraction: float = Field(0.05, ge=0.0, le=1.0)


class EngineDefaults(_DefaultsModel):
    """All tunable defaults grouped by concern."""

    efficiency: EfficiencyDefaults = Field(default_factory=EfficiencyDefaults)
    serving: ServingDefaults = Field(default_factory=ServingDefaults)
    capacity: CapacityDefaults = Field(default_factory=CapacityDefaults)
    cpu: CpuDefaults = Field(default_factory=CpuDefaults)


DEFAULTS = EngineDefaults()


def load_engine_defaults(path: Optional[Union[str, Path]] = None) -> EngineDefaults:
    """Return defaults merged with the JSON overrides at ``path``.

    Sections and keys missing from the file keep their built-in values.
    """

    if path is None:
        return DEFAULTS
    config_path = Path(path)
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Engine defaults file {config_path} is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise TypeError("Engine defaults file must contain a JSON object.")
    try:
        defaults = EngineDefaults.model_validate(payload)
    except ValidationError:
        logger.error("Rejected engine defaults override %s", config_path)
        raise
    logger.info("Loaded engine defaults from %s", config_path)
    return defaults


__all__ = [
    "CapacityDefaults",
    "CpuDefaults",
    "DEFAULTS",
    "EfficiencyDefaults",
    "EngineDefaults",
    "ServingDefaults",
    "load_engine_defaults",
]
