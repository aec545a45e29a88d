from __future__ import annotations

import pathlib
import sys

sys.path.insert(0, str(pathlib.Path(__file__).resolve().parents[1]))

from services.validation import (
    AlignmentCase,
    audit_parameter_consumption,
    run_alignment_tests,
    run_standard_alignment_tests,
    validate_alignment,
)


def test_standard_alignment_suite_passes():
    summary = run_standard_alignment_tests()
    assert summary.passed
    assert summary.fail_count == 0
    assert summary.pass_count == len(summary.results)
    assert all(result.ratio >= 1.0 for result in summary.results)


def test_validate_alignment_with_overrides():
    result = validate_alignment(250, params_billions=405.0, quantization="fp16")
    assert result.aligned
    assert result.max_users >= 250
    assert result.calculated_units >= 1


def test_custom_cases_keep_their_names():
    summary = run_alignment_tests([AlignmentCase("long sessions", 300, {"session_history_tokens": 6000.0})])
    assert summary.results[0].test_case == "long sessions"
    assert summary.passed


def test_audit_returns_inert_parameters():
    warnings = audit_parameter_consumption()
    assert isinstance(warnings, list)
    assert not any("'tokens_per_sec_per_user'" in warning for warning in warnings)
    assert not any("'peak_flops'" in warning for warning in warnings)
    # compute dominates at the baseline, so more VRAM changes nothing
    assert any("'vram_per_unit_gb'" in warning for warning in warnings)


def test_audit_skips_non_numeric_parameters():
    assert audit_parameter_consumption(parameters=["quantization"]) == []
