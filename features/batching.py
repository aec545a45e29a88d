"""Rule-of-thumb batching plan for a GPU fleet.

This is a coarse heuristic kept alongside the engine for the planner UI: it
picks a batch size from model size and the VRAM left after weights, then
reports a throughput guess and human-readable recommendations.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Tuple

ACTIVATION_GB_PER_REQUEST = 0.05
ATTENTION_BUFFER_GB = 2.0
MIN_BATCH = 8
MAX_BATCH = 128
OPTIMAL_BATCH_RANGE = (16, 64)


@dataclass(frozen=True)
class BatchingStrategy:
    max_batch_size_per_gpu: int
    optimal_batch_size: int
    batches_per_gpu: int
    total_batches: int
    requests_per_batch: int
    memory_per_batch_gb: float
    latency_ms: float
    throughput_per_gpu: float
    utilization_percent: float
    vram_limited: bool
    compute_limited: bool
    feasible: bool = True
    recommendations: Tuple[str, ...] = ()


def _optimal_batch_for(params_billions: float) -> int:
    if params_billions >= 65:
        return 48
    if params_billions >= 30:
        return 32
    if params_billions >= 10:
        return 24
    return 16


def _base_tokens_per_sec(params_billions: float, batch_efficiency: float) -> float:
    if params_billions >= 65:
        return 1500 + batch_efficiency * 1500
    if params_billions >= 30:
        return 3000 + batch_efficiency * 2000
    if params_billions >= 10:
        return 5000 + batch_efficiency * 3000
    return 8000 + batch_efficiency * 7000


def infeasible_strategy(reason: str) -> BatchingStrategy:
    return BatchingStrategy(
        max_batch_size_per_gpu=0,
        optimal_batch_size=0,
        batches_per_gpu=0,
        total_batches=0,
        requests_per_batch=0,
        memory_per_batch_gb=0.0,
        latency_ms=0.0,
        throughput_per_gpu=0.0,
        utilization_percent=0.0,
        vram_limited=True,
        compute_limited=False,
        feasible=False,
        recommendations=(reason,),
    )


def plan_batching(
    gpu_memory_gb: float,
    model_size_gb: float,
    kv_cache_per_request_gb: float,
    total_users: int,
    tokens_per_request: int,
    params_billions: float,
    num_gpus: int = 1,
) -> BatchingStrategy:
    """Choose a batch size per GPU under the VRAM left after the weights."""

    if gpu_memory_gb <= 0:
        return infeasible_strategy("GPU memory must be positive.")

    safety_gb = max(gpu_memory_gb * 0.10, 8.0)
    min_gpus_for_model = math.ceil((model_size_gb + safety_gb + ATTENTION_BUFFER_GB) / gpu_memory_gb)
    gpus = max(int(num_gpus), min_gpus_for_model, 1)
    base_memory = model_size_gb / gpus + safety_gb + ATTENTION_BUFFER_GB
    available = gpu_memory_gb - base_memory
    if available <= 0:
        return infeasible_strategy(
            f"Model requires {min_gpus_for_model} GPUs with tensor parallelism, but VRAM is still insufficient."
        )

    memory_per_request = kv_cache_per_request_gb + ACTIVATION_GB_PER_REQUEST
    max_batch_vram = int(available // memory_per_request) if memory_per_request > 0 else MAX_BATCH
    max_batch_vram = min(max_batch_vram, MAX_BATCH)

    optimal = _optimal_batch_for(params_billions)
    final_optimal = max(min(optimal, max_batch_vram, int(total_users)), MIN_BATCH)
    requests_per_batch = max(1, min(final_optimal, max_batch_vram))

    requests_per_gpu = math.ceil(max(0, int(total_users)) / gpus)
    batches_per_gpu = math.ceil(requests_per_gpu / requests_per_batch)
    batch_memory = (kv_cache_per_request_gb + ACTIVATION_GB_PER_REQUEST) * requests_per_batch

    batch_efficiency = min(1.0, requests_per_batch / optimal)
    throughput = _base_tokens_per_sec(params_billions, batch_efficiency)
    latency_ms = 50.0 + 15.0 * tokens_per_request

    memory_util = (base_memory + batch_memory) / gpu_memory_gb * 100.0
    compute_util = min(90.0, 40.0 + batch_efficiency * 50.0)

    vram_limited = max_batch_vram < optimal
    compute_limited = not vram_limited and requests_per_batch >= optimal

    notes = []
    if min_gpus_for_model > 1:
        notes.append(f"Model requires tensor parallelism across {min_gpus_for_model} GPUs.")
    if vram_limited:
        notes.append(f"VRAM-limited: batch size reduced to {requests_per_batch}.")
    if requests_per_batch < MIN_BATCH:
        notes.append(f"Batch size {requests_per_batch} is too small for efficient inference.")
    if OPTIMAL_BATCH_RANGE[0] <= requests_per_batch <= OPTIMAL_BATCH_RANGE[1]:
        notes.append(f"Batch size {requests_per_batch} is in the optimal range.")
    if compute_util < 60:
        notes.append(f"GPU underutilized ({compute_util:.0f}%).")

    return BatchingStrategy(
        max_batch_size_per_gpu=max_batch_vram,
        optimal_batch_size=final_optimal,
        batches_per_gpu=batches_per_gpu,
        total_batches=batches_per_gpu * gpus,
        requests_per_batch=requests_per_batch,
        memory_per_batch_gb=batch_memory,
        latency_ms=latency_ms,
        throughput_per_gpu=throughput,
        utilization_percent=min(memory_util, compute_util),
        vram_limited=vram_limited,
        compute_limited=compute_limited,
        recommendations=tuple(notes),
    )


__all__ = ["BatchingStrategy", "infeasible_strategy", "plan_batching"]
