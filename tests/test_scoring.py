from __future__ import annotations

from dataclasses import fields

import pytest

from labelly_agent.label_copy import LABEL_COPY
from labelly_agent.models import SignalSet
from labelly_agent.scoring import (
    HIGH_THRESHOLD,
    MID_THRESHOLD,
    SCORE_WEIGHTS,
    label_for,
    score_breakdown,
    score_signals,
)

TRUSTED = SignalSet(has_tokusho=True, has_address=True, has_return_info=True)


def test_dominant_weights_have_opposite_signs():
    ranked = sorted(SCORE_WEIGHTS.items(), key=lambda kv: abs(kv[1]), reverse=True)
    top_two = {k for k, _ in ranked[:2]}

    assert top_two == {"has_tokusho", "has_overseas_ship"}
    assert SCORE_WEIGHTS["has_tokusho"] > 0 > SCORE_WEIGHTS["has_overseas_ship"]
    assert abs(ranked[1][1]) > abs(ranked[2][1])


def test_positive_weight_ordering():
    w = SCORE_WEIGHTS
    assert w["has_tokusho"] > w["has_address"] > w["has_return_info"]
    assert w["has_return_info"] > max(w["has_phone"], w["has_email"], w["has_days_delivery"], w["is_japanese_ui"], w["is_jpy"])
    assert w["has_long_delivery"] < 0 and w["has_overseas_return"] < 0


def test_score_is_clamped():
    everything_good = SignalSet(**{f.name: True for f in fields(SignalSet) if f.name not in (
        "has_overseas_ship", "has_long_delivery", "has_overseas_return")})
    everything_bad = SignalSet(has_overseas_ship=True, has_long_delivery=True, has_overseas_return=True)

    assert score_signals(everything_good, "shopify") == 100
    assert score_signals(everything_bad) == 0
    assert score_signals(SignalSet()) == 0


def test_recognized_platform_adds_a_little():
    assert score_signals(TRUSTED, "shopify") > score_signals(TRUSTED, "unknown")
    keys = [k for k, _ in score_breakdown(TRUSTED, "base")]
    assert "recognized_platform" in keys


def test_trusted_signals_are_green():
    score = score_signals(TRUSTED)

    assert score >= HIGH_THRESHOLD
    assert label_for(score, TRUSTED) == "green"


@pytest.mark.parametrize("flag", ["has_overseas_ship", "has_long_delivery"])
def test_overseas_or_long_delivery_is_never_green(flag):
    s = TRUSTED.merge(SignalSet(**{flag: True}))
    assert label_for(100, s) != "green"
    assert label_for(score_signals(s), s) != "green"


@pytest.mark.parametrize("missing", ["has_tokusho", "has_address", "has_return_info"])
def test_green_requires_all_three_core_signals(missing):
    s = SignalSet(**{**TRUSTED.as_dict(), missing: False})
    assert label_for(95, s) != "green"


@pytest.mark.parametrize(
    "score, expected",
    [(MID_THRESHOLD, "yellow"), (HIGH_THRESHOLD - 1, "yellow"), (MID_THRESHOLD - 1, "orange"), (0, "orange")],
)
def test_yellow_band(score, expected):
    assert label_for(score, SignalSet()) == expected


def test_failed_main_fetch_is_always_orange():
    assert label_for(100, TRUSTED, fetched=False) == "orange"


def test_thresholds_are_tunable():
    assert label_for(55, TRUSTED, high=50, mid=20) == "green"
    assert label_for(30, SignalSet(), high=50, mid=20) == "yellow"


def test_every_label_has_copy():
    assert set(LABEL_COPY) == {"green", "yellow", "orange"}
    for copy in LABEL_COPY.values():
        assert copy.label_text and copy.one_line and copy.eta
        assert copy.notes


def test_small_weights_follow_contact_delivery_platform_locale_order():
    w = SCORE_WEIGHTS
    assert min(w["has_phone"], w["has_email"]) >= w["has_days_delivery"]
    assert w["has_days_delivery"] >= w["recognized_platform"]
    assert w["recognized_platform"] >= max(w["is_japanese_ui"], w["is_jpy"])
