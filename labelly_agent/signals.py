from __future__ import annotations

import re
from types import MappingProxyType

from .models import SNIPPET_MAX_CHARS, SignalSet, SnippetSet

_F = re.IGNORECASE


def _group(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, _F) for p in patterns)


# Signal name -> pattern group. Shared by the extractor and the scorer so the
# whole heuristic policy can be audited in one place.
SIGNAL_PATTERNS = MappingProxyType(
    {
        "is_japanese_ui": _group(r"日本語", r"税込", r"カート", r"購入", r"ご注文", r"お届け", r"配送"),
        "is_jpy": _group(r"[¥￥]\s?\d", r"\d[\d,]{0,15}\s?円", r"\bjpy\b"),
        "has_tokusho": _group(r"特定商取引法", r"特商法", r"特定商取引に関する"),
        "has_address": _group(
            r"〒\s?\d{3}\s?[-‐－ー]?\s?\d{4}",
            r"(東京都|北海道|大阪府|京都府|(?:神奈川|埼玉|千葉|愛知|兵庫|福岡|静岡|広島|宮城)県)[^\s<]{1,20}[市区町村郡]",
        ),
        "has_phone": _group(
            r"(?<!\d)0\d{1,4}[-‐－(（]\s?\d{1,4}[-‐－)）]\s?\d{3,4}(?!\d)",
            r"(電話番号|\bTEL\b\.?)\s*[:：]?\s*\+?\d",
        ),
        "has_email": _group(
            r"(?<![A-Z0-9._%+-])[A-Z0-9._%+-]{1,64}@[A-Z0-9.-]{1,253}\.(?!png\b|jpe?g\b|gif\b|webp\b|svg\b)[A-Z]{2,}",
            r"メールアドレス\s*[:：]",
        ),
        "has_days_delivery": _group(
            r"\d{1,2}\s?(営業日|日)以内",
            r"\d{1,2}\s?(営業日|日)で(発送|出荷)",
            r"即日発送",
            r"当日発送",
            r"翌日発送",
            r"最短\s?\d{1,2}\s?(日|営業日)",
            r"[1-5]\s?[〜~～-]\s?[2-7]\s?(営業日|日)",
        ),
        "has_long_delivery": _group(
            r"\d{1,2}\s?[〜~～-]?\s?\d{0,2}\s?週間",
            r"\d{1,2}\s?(ヶ月|か月|カ月|ヵ月)",
            r"予約商品",
            r"入荷次第",
            r"お取り寄せ",
            r"\d{1,2}\s?-\s?\d{1,2}\s+weeks",
        ),
        "has_overseas_ship": _group(
            r"海外発送",
            r"海外倉庫",
            r"海外から(の)?発送",
            r"international shipping",
            r"ships from overseas",
        ),
        "has_return_info": _group(r"返品", r"返金", r"交換", r"キャンセル", r"\breturns? policy\b", r"\brefund"),
        "has_overseas_return": _group(r"海外返品", r"返送料.{0,40}?負担", r"international returns?"),
    }
)

# Evidence category per signal, in snippet priority order within each category.
SNIPPET_GROUPS: tuple[tuple[str, str], ...] = (
    ("has_tokusho", "company"),
    ("has_address", "company"),
    ("has_phone", "company"),
    ("has_email", "company"),
    ("is_japanese_ui", "ui"),
    ("is_jpy", "ui"),
    ("has_overseas_ship", "ship"),
    ("has_long_delivery", "ship"),
    ("has_days_delivery", "ship"),
    ("has_overseas_return", "ret"),
    ("has_return_info", "ret"),
)

_CONTEXT_BEFORE = 40
_CONTEXT_AFTER = 160

_SCRIPT_RE = re.compile(r"<script\b[^>]*>.*?</script>", re.IGNORECASE | re.DOTALL)
_STYLE_RE = re.compile(r"<style\b[^>]*>.*?</style>", re.IGNORECASE | re.DOTALL)
_COMMENT_RE = re.compile(r"<!--.*?-->", re.DOTALL)
_TAG_RE = re.compile(r"<[^<>]+>")
_SPACE_RE = re.compile(r"\s+")


def has_any(text: str, patterns: tuple[re.Pattern[str], ...]) -> bool:
    return any(p.search(text) for p in patterns)


def visible_text(html: str) -> str:
    """Rough tag stripper; good enough for evidence snippets, not for rendering."""
    if not html:
        return ""
    cleaned = _SCRIPT_RE.sub(" ", html)
    cleaned = _STYLE_RE.sub(" ", cleaned)
    cleaned = _COMMENT_RE.sub(" ", cleaned)
    cleaned = _TAG_RE.sub(" ", cleaned)
    cleaned = cleaned.replace("&nbsp;", " ").replace("&amp;", "&")
    return _SPACE_RE.sub(" ", cleaned).strip()


def make_snippet(text: str, max_chars: int = SNIPPET_MAX_CHARS) -> str:
    snip = _SPACE_RE.sub(" ", text or "").strip()
    if len(snip) > max_chars:
        return snip[:max_chars] + "…"
    return snip


def pick_snippet(text: str, patterns: tuple[re.Pattern[str], ...]) -> str | None:
    """Excerpt around the first match of the first matching pattern."""
    for p in patterns:
        m = p.search(text)
        if m:
            start = max(0, m.start() - _CONTEXT_BEFORE)
            end = min(len(text), m.end() + _CONTEXT_AFTER)
            return make_snippet(text[start:end])
    return None


def detect_signals(text: str) -> SignalSet:
    body = text or ""
    return SignalSet(**{name: has_any(body, patterns) for name, patterns in SIGNAL_PATTERNS.items()})


def extract_snippets(text: str) -> SnippetSet:
    visible = visible_text(text)
    snippets = SnippetSet()
    if not visible:
        return snippets
    for signal, category in SNIPPET_GROUPS:
        snip = pick_snippet(visible, SIGNAL_PATTERNS[signal])
        if snip:
            snippets.add(category, snip)
    return snippets


def extract_signals(text: str) -> tuple[SignalSet, SnippetSet]:
    return detect_signals(text), extract_snippets(text)
