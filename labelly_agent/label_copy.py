"""User-facing copy per label. Fixed per label; never parameterized by signals."""
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType


@dataclass(frozen=True)
class LabelCopy:
    label_text: str
    one_line: str
    delivery: str
    eta: str
    return_policy: str
    notes: tuple[str, ...]
    good: tuple[str, ...]
    caution: tuple[str, ...]


LABEL_COPY = MappingProxyType(
    {
        "green": LabelCopy(
            label_text="🟢 国内向け運営が確認できる通販サイト",
            one_line="事業者情報・返品条件などが確認できる可能性があります。",
            delivery="国内向けの運営情報が見つかる可能性が高い",
            eta="1〜5営業日程度（商品により変動）",
            return_policy="条件が明記されている可能性（購入前に要確認）",
            notes=(
                "取寄せ商品が混在する可能性があります",
                "納期は商品ごとに差がある場合があります",
            ),
            good=("安心感を重視する購入", "国内向け対応を重視する購入"),
            caution=("在庫が動きやすい時期のサイズ選択",),
        ),
        "yellow": LabelCopy(
            label_text="🟡 日本語表示だが、海外流通の可能性あり",
            one_line="表示は日本向けでも、配送や返品は海外基準の可能性があります。",
            delivery="届くまでに時間がかかる可能性があります",
            eta="2週間〜6週間程度（幅あり）",
            return_policy="返品できない／送料が高額になる可能性があります（事前確認推奨）",
            notes=(
                "「発送元」「配送日数」「関税/手数料」などの表記を確認",
                "返品条件（返送料・可否）は事前確認がおすすめ",
            ),
            good=("品揃え・デザイン重視", "納期に余裕がある購入"),
            caution=("プレゼント用途（期日固定）", "イベント直前の購入"),
        ),
        "orange": LabelCopy(
            label_text="🟠 購入前に条件確認をおすすめする通販サイト",
            one_line="配送・返品の前提が公開情報から読み取りにくい状態です。",
            delivery="公開情報だけでは流通の前提が読み取りにくい可能性",
            eta="日〜週（情報不足のため幅を想定）",
            return_policy="ページ確認推奨（条件差が大きい可能性）",
            notes=(
                "配送・返品ページの有無と内容を確認してください",
                "特定商取引法表記の場所を確認してください",
            ),
            good=("購入前にページを確認できるケース", "急ぎではない購入"),
            caution=("納期が固定の用途", "返品が前提の購入"),
        ),
    }
)
