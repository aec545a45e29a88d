from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from features.batching import plan_batching


def test_small_model_lands_in_optimal_range():
    plan = plan_batching(80, 14, 0.5, 100, 50, 7)
    assert plan.feasible
    assert plan.requests_per_batch == 16
    assert plan.batches_per_gpu == 7
    assert plan.throughput_per_gpu == pytest.approx(15000)
    assert plan.latency_ms == pytest.approx(800)
    assert not plan.vram_limited
    assert plan.compute_limited
    assert "Batch size 16 is in the optimal range." in plan.recommendations


def test_insufficient_vram_is_infeasible():
    plan = plan_batching(10, 1, 0.1, 10, 10, 1)
    assert not plan.feasible
    assert plan.requests_per_batch == 0
    assert plan.recommendations


def test_non_positive_memory_is_infeasible():
    assert not plan_batching(0, 1, 0.1, 10, 10, 1).feasible
