"""Shared utilities for dashboard tabs."""

from .inputs import efficiency_inputs, hardware_inputs, model_inputs, workload_inputs

__all__ = [
    "efficiency_inputs",
    "hardware_inputs",
    "model_inputs",
    "workload_inputs",
]
