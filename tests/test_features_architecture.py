from __future__ import annotations

import pathlib
import sys

import pytest

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from features.architecture import (
    DENSE_ARCHITECTURES,
    MOE_ARCHITECTURES,
    NAMED_ARCHITECTURES,
    NAMED_DENSE_ARCHITECTURES,
    Architecture,
    ModelSpec,
    active_parameters,
    architecture_for_model,
    moe_name_for_params,
    normalize_param_count,
    resolve_architecture,
    vram_parameters,
)


def test_exact_table_sizes_resolve_to_reference_shapes():
    assert resolve_architecture(70) == DENSE_ARCHITECTURES[70]
    assert resolve_architecture(7.2) == DENSE_ARCHITECTURES[7]


def test_sizes_between_references_are_interpolated():
    arch = resolve_architecture(40)
    assert arch.layers == 59
    assert DENSE_ARCHITECTURES[13].hidden_size < arch.hidden_size < DENSE_ARCHITECTURES[70].hidden_size
    assert arch.kv_heads <= arch.query_heads


def test_sizes_outside_table_clamp():
    assert resolve_architecture(1) == DENSE_ARCHITECTURES[7]
    assert resolve_architecture(1000) == DENSE_ARCHITECTURES[405]


def test_custom_model_scales_from_70b_shape():
    arch = resolve_architecture(100, "custom")
    assert arch.layers == 114
    assert arch.hidden_size == 8192
    assert resolve_architecture(13, "custom") == DENSE_ARCHITECTURES[13]


def test_named_moe_lookup_is_case_insensitive():
    assert resolve_architecture(46.7, "Mixtral-8x7B") == MOE_ARCHITECTURES["mixtral-8x7b"]


def test_moe_name_for_params_ranges():
    assert moe_name_for_params(46.7) == "mixtral-8x7b"
    assert moe_name_for_params(120) == "gpt-oss-120b"
    assert moe_name_for_params(999) == "generic-moe"


def test_active_parameters_known_expert_layouts():
    mixtral = MOE_ARCHITECTURES["mixtral-8x7b"]
    assert active_parameters(46.7, mixtral) == pytest.approx(46.7 * 0.278)
    assert active_parameters(176, MOE_ARCHITECTURES["mixtral-8x22b"]) == pytest.approx(44.0)
    assert active_parameters(46.7, mixtral, override=12.9) == 12.9
    assert active_parameters(70, DENSE_ARCHITECTURES[70]) == 70


def test_expert_shards_enable_parallelism_and_shrink_vram_params():
    model = ModelSpec(params_billions=46.7, total_experts=8, active_experts=2, expert_shards=4)
    arch = architecture_for_model(model)
    assert arch.is_moe
    assert arch.expert_parallelism
    assert vram_parameters(46.7, arch, 4) == pytest.approx(35.025 + 11.675 / 4)
    assert vram_parameters(46.7, arch, 1) == pytest.approx(46.7)


def test_kv_heads_above_query_heads_rejected():
    with pytest.raises(ValueError):
        Architecture(layers=4, hidden_size=512, kv_heads=16, query_heads=8)


def test_normalize_param_count_accepts_raw_counts():
    assert normalize_param_count(7e9) == pytest.approx(7.0)
    assert normalize_param_count(70) == 70.0


def test_named_dense_models_resolve_by_name():
    opus = resolve_architecture(175, "claude-3-opus")
    assert (opus.layers, opus.hidden_size, opus.kv_heads, opus.query_heads) == (64, 12288, 16, 96)
    assert not opus.is_moe
    assert resolve_architecture(20, "Claude-Haiku-4.5") == NAMED_DENSE_ARCHITECTURES["claude-haiku-4.5"]


def test_named_table_holds_dense_and_moe_entries():
    assert len(NAMED_DENSE_ARCHITECTURES) == 8
    assert set(MOE_ARCHITECTURES) <= set(NAMED_ARCHITECTURES)
    assert set(NAMED_DENSE_ARCHITECTURES) <= set(NAMED_ARCHITECTURES)
    assert all(not arch.is_moe for arch in NAMED_DENSE_ARCHITECTURES.values())


def test_named_dense_model_keeps_full_active_parameters():
    arch = architecture_for_model(ModelSpec(params_billions=175, name="claude-4-opus"))
    assert arch == NAMED_DENSE_ARCHITECTURES["claude-4-opus"]
    assert active_parameters(175, arch) == 175.0
