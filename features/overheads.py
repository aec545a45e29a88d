"""Sequence-length driven overheads on the intrinsic workload FLOPs.

The serving engine combines the prefill and attention fractions additively.
The older multiplicative form, which also folded in a fixed 15% redundancy,
is kept as a separately tagged strategy for the historical calculators and is
never used to size fleets.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Tuple

OverheadStrategy = Literal["additive", "legacy_multiplicative"]

PREFILL_THRESHOLD_TOKENS = 100
PREFILL_SCALING_TOKENS = 1000
PREFILL_RATE = 0.15
MAX_PREFILL_OVERHEAD = 0.30

ATTENTION_THRESHOLD_TOKENS = 2000
ATTENTION_SCALING_TOKENS = 10000
ATTENTION_RATE = 0.20
MAX_ATTENTION_OVERHEAD = 0.40

LEGACY_REDUNDANCY = 1.15


@dataclass(frozen=True)
class OverheadLimits:
    prefill_threshold: int = PREFILL_THRESHOLD_TOKENS
    prefill_scaling: int = PREFILL_SCALING_TOKENS
    prefill_rate: float = PREFILL_RATE
    max_prefill: float = MAX_PREFILL_OVERHEAD
    attention_threshold: int = ATTENTION_THRESHOLD_TOKENS
    attention_scaling: int = ATTENTION_SCALING_TOKENS
    attention_rate: float = ATTENTION_RATE
    max_attention: float = MAX_ATTENTION_OVERHEAD


DEFAULT_OVERHEAD_LIMITS = OverheadLimits()


@dataclass(frozen=True)
class OverheadEstimate:
    """Overhead fractions together with the strategy that combined them."""

    strategy: OverheadStrategy
    prefill: float
    attention: float
    multiplier: float
    breakdown: Tuple[str, ...] = ()


def prefill_overhead(input_tokens: float, limits: OverheadLimits = DEFAULT_OVERHEAD_LIMITS) -> float:
    """Linear ramp above the threshold, capped at 30%."""

    if input_tokens <= limits.prefill_threshold:
        return 0.0
    return min(limits.max_prefill, (input_tokens / limits.prefill_scaling) * limits.prefill_rate)


def attention_overhead(sequence_length: float, limits: OverheadLimits = DEFAULT_OVERHEAD_LIMITS) -> float:
    """Linear ramp past 2000 tokens, capped at 40%."""

    if sequence_length <= limits.attention_threshold:
        return 0.0
    excess = (sequence_length - limits.attention_threshold) / limits.attention_scaling
    return min(limits.max_attention, excess * limits.attention_rate)


def additive_overhead_multiplier(attention: float, prefill: float) -> float:
    return 1.0 + float(attention) + float(prefill)


def estimate_overheads(
    input_tokens: float,
    sequence_length: float,
    strategy: OverheadStrategy = "additive",
    *,
    limits: OverheadLimits = DEFAULT_OVERHEAD_LIMITS,
) -> OverheadEstimate:
    """Derive both overhead fractions and combine them with ``strategy``."""

    prefill = prefill_overhead(input_tokens, limits)
    attention = attention_overhead(sequence_length, limits)

    breakdown: List[str] = []
    if prefill > 0:
        breakdown.append(f"+{prefill * 100:.0f}% prefill")
    if attention > 0:
        breakdown.append(f"+{attention * 100:.0f}% attention")

    if strategy == "legacy_multiplicative":
        breakdown.append(f"+{(LEGACY_REDUNDANCY - 1.0) * 100:.0f}% redundancy")
        multiplier = (1.0 + prefill) * (1.0 + attention) * LEGACY_REDUNDANCY
    elif strategy == "additive":
        multiplier = additive_overhead_multiplier(attention, prefill)
    else:
        raise ValueError(f"Unknown overhead strategy: {strategy!r}")

    return OverheadEstimate(
        strategy=strategy,
        prefill=prefill,
        attention=attention,
        multiplier=multiplier,
        breakdown=tuple(breakdown),
    )


__all__ = [
    "DEFAULT_OVERHEAD_LIMITS",
    "LEGACY_REDUNDANCY",
    "OverheadEstimate",
    "OverheadLimits",
    "OverheadStrategy",
    "additive_overhead_multiplier",
    "attention_overhead",
    "estimate_overheads",
    "prefill_overhead",
]
