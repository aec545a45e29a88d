"""Numeric formats: storage cost and kernel efficiency per quantization."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Literal, Mapping

logger = logging.getLogger(__name__)

NormalizedQuant = Literal["fp16", "int8", "int4"]


@dataclass(frozen=True)
class QuantizationProfile:
    """Bytes per stored value and the derating ``efficiency`` (0 < Q <= 1).

    ``efficiency`` is informational: the solvers size compute from kernel
    efficiency and utilization only, and read just ``bytes_per_param`` here.
    """

    name: str
    bytes_per_param: float
    efficiency: float

    def __post_init__(self) -> None:
        if self.bytes_per_param <= 0:
            raise ValueError(f"Quantization '{self.name}' needs a positive byte width")
        if not 0.0 < self.efficiency <= 1.0:
            raise ValueError(
                f"Quantization '{self.name}' efficiency must be in (0, 1], got {self.efficiency}"
            )


QUANTIZATION_PROFILES: Mapping[str, QuantizationProfile] = MappingProxyType(
    {
        "fp32": QuantizationProfile("fp32", 4.0, 1.0),
        "fp16": QuantizationProfile("fp16", 2.0, 0.95),
        "bf16": QuantizationProfile("bf16", 2.0, 0.95),
        "fp8": QuantizationProfile("fp8", 1.0, 0.92),
        "int8": QuantizationProfile("int8", 1.0, 0.88),
        "int4": QuantizationProfile("int4", 0.5, 0.80),
        "q4_k_s": QuantizationProfile("q4_k_s", 0.5, 0.80),
    }
)

DEFAULT_QUANTIZATION = "fp16"


def quantization_profile(
    name: str | None,
    *,
    profiles: Mapping[str, QuantizationProfile] = QUANTIZATION_PROFILES,
) -> QuantizationProfile:
    """Look up ``name``; unknown or empty names behave like fp16."""

    key = str(name or "").strip().lower()
    profile = profiles.get(key)
    if profile is None:
        if key:
            logger.warning("Unknown quantization %r, falling back to %s", name, DEFAULT_QUANTIZATION)
        return profiles[DEFAULT_QUANTIZATION]
    return profile


def normalize_quant_type(name: str | None) -> NormalizedQuant:
    """Collapse free-form format labels onto ``fp16``, ``int8`` or ``int4``."""

    normalized = str(name or "").lower().replace("-", "").replace("_", "")
    if "fp16" in normalized or "bf16" in normalized:
        return "fp16"
    if "int8" in normalized or "8bit" in normalized:
        return "int8"
    if "int4" in normalized or "4bit" in normalized or "q4" in normalized:
        return "int4"
    return "fp16"


__all__ = [
    "DEFAULT_QUANTIZATION",
    "NormalizedQuant",
    "QUANTIZATION_PROFILES",
    "QuantizationProfile",
    "normalize_quant_type",
    "quantization_profile",
]
