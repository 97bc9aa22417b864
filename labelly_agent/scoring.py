from __future__ import annotations

from types import MappingProxyType
from typing import Mapping

from .models import Color, SignalSet
from .platforms import KNOWN_PLATFORMS

PLATFORM_WEIGHT_KEY = "recognized_platform"

# Tokusho and overseas shipping must stay the two largest magnitudes, with
# opposite signs. Everything else is tuning.
SCORE_WEIGHTS: Mapping[str, int] = MappingProxyType(
    {
        "has_tokusho": 32,
        "has_address": 22,
        "has_return_info": 18,
        "has_phone": 7,
        "has_email": 6,
        "has_days_delivery": 5,
        PLATFORM_WEIGHT_KEY: 4,
        "is_japanese_ui": 3,
        "is_jpy": 3,
        "has_overseas_ship": -30,
        "has_long_delivery": -12,
        "has_overseas_return": -12,
    }
)

SCORE_LABELS: Mapping[str, str] = MappingProxyType(
    {
        "has_tokusho": "特定商取引法表記",
        "has_address": "日本住所表記",
        "has_return_info": "返品/キャンセル情報",
        "has_phone": "電話番号",
        "has_email": "メールアドレス",
        "has_days_delivery": "短納期表現",
        PLATFORM_WEIGHT_KEY: "既知のECプラットフォーム",
        "is_japanese_ui": "日本語UI",
        "is_jpy": "円表記",
        "has_overseas_ship": "海外発送",
        "has_long_delivery": "長納期・予約/入荷待ち",
        "has_overseas_return": "海外返品条件",
    }
)

HIGH_THRESHOLD = 70
MID_THRESHOLD = 40


def _clamp_score(score: int) -> int:
    return max(0, min(100, int(score)))


def _active(signals: SignalSet, platform: str) -> dict[str, bool]:
    active = signals.as_dict()
    active[PLATFORM_WEIGHT_KEY] = platform in KNOWN_PLATFORMS
    return active


def score_breakdown(
    signals: SignalSet,
    platform: str = "unknown",
    weights: Mapping[str, int] = SCORE_WEIGHTS,
) -> list[tuple[str, int]]:
    """Non-zero contributions in weight-table order."""
    active = _active(signals, platform)
    return [(key, w) for key, w in weights.items() if w and active.get(key)]


def score_signals(
    signals: SignalSet,
    platform: str = "unknown",
    weights: Mapping[str, int] = SCORE_WEIGHTS,
) -> int:
    return _clamp_score(sum(w for _, w in score_breakdown(signals, platform, weights)))


def label_for(
    score: int,
    signals: SignalSet,
    *,
    fetched: bool = True,
    high: int = HIGH_THRESHOLD,
    mid: int = MID_THRESHOLD,
) -> Color:
    if not fetched:
        return "orange"
    if (
        score >= high
        and signals.has_tokusho
        and signals.has_address
        and signals.has_return_info
        and not signals.has_overseas_ship
        and not signals.has_long_delivery
    ):
        return "green"
    if mid <= score < high:
        return "yellow"
    return "orange"
