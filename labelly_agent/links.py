from __future__ import annotations

import re
from urllib.parse import urljoin, urlparse, urlunparse

from .models import PolicyCandidate
from .platforms import policy_paths_for

# Tolerant anchor scan: no DOM parser, malformed markup may be missed.
_ANCHOR_RE = re.compile(
    r"<a\b[^>]*?\bhref\s*=\s*([\"'])(.*?)\1[^>]*>(.{0,4000}?)</a\s*>",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RE = re.compile(r"<[^<>]+>")
_SPACE_RE = re.compile(r"\s+")

URL_HIT_WEIGHT = 2
TEXT_HIT_WEIGHT = 3
FALLBACK_SCORE = 1

POLICY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("tokusho", ("特定商取引", "特商法", "tokusho", "tokutei", "legal-notice", "law", "commercial")),
    ("shipping", ("配送", "送料", "お届け", "発送", "shipping", "delivery")),
    ("return", ("返品", "返金", "交換", "キャンセル", "return", "refund", "cancel")),
    ("company", ("会社概要", "運営", "法人", "所在地", "about", "company")),
)

_SKIP_PREFIXES = ("#", "javascript:", "mailto:", "tel:", "data:")


_DEFAULT_PORTS = {"http": 80, "https": 443}


def _normalize(u: str) -> str:
    """Drop the fragment and an explicit default port."""
    p = urlparse(u)
    netloc = p.netloc
    if p.port is not None and p.port == _DEFAULT_PORTS.get(p.scheme.lower()):
        netloc = netloc.rsplit(":", 1)[0]
    return urlunparse(p._replace(netloc=netloc, fragment=""))


def _origin(u: str) -> tuple[str, str, int | None]:
    p = urlparse(u)
    scheme = p.scheme.lower()
    return scheme, (p.hostname or "").rstrip(".").lower(), p.port or _DEFAULT_PORTS.get(scheme)


def _anchor_text(raw: str) -> str:
    return _SPACE_RE.sub(" ", _TAG_RE.sub(" ", raw or "")).strip()


def score_candidate(url: str, text: str) -> tuple[int, str | None]:
    """Keyword score for one link. URL hits weigh 2, anchor-text hits weigh 3."""
    s_url = url.lower()
    s_text = (text or "").lower()
    score = 0
    category: str | None = None
    for cat, keys in POLICY_KEYWORDS:
        for key in keys:
            if key in s_url:
                score += URL_HIT_WEIGHT
                category = category or cat
            if key in s_text:
                score += TEXT_HIT_WEIGHT
                category = category or cat
    return score, category


def extract_anchors(html: str, base_url: str) -> list[tuple[str, str]]:
    """Return ``(absolute_url, visible_text)`` for same-origin anchors."""
    if not html:
        return []
    origin = _origin(base_url)
    out: list[tuple[str, str]] = []
    for m in _ANCHOR_RE.finditer(html):
        href = (m.group(2) or "").strip()
        if not href or href.lower().startswith(_SKIP_PREFIXES):
            continue
        try:
            abs_url = _normalize(urljoin(base_url, href))
            p = urlparse(abs_url)
            same_origin = _origin(abs_url) == origin
        except ValueError:
            continue
        if p.scheme not in ("http", "https") or not same_origin:
            continue
        if p.username is not None or p.password is not None:
            continue
        out.append((abs_url, _anchor_text(m.group(3))))
    return out


def discover_policy_links(
    html: str,
    base_url: str,
    platform: str = "unknown",
    limit: int = 3,
) -> list[PolicyCandidate]:
    base_norm = _normalize(base_url)
    best: dict[str, PolicyCandidate] = {}
    order: list[str] = []

    for url, text in extract_anchors(html, base_url):
        if url == base_norm:
            continue
        score, category = score_candidate(url, text)
        if score <= 0:
            continue
        prev = best.get(url)
        if prev is None:
            order.append(url)
        if prev is None or score > prev.score:
            best[url] = PolicyCandidate(url=url, score=score, category=category)

    for path in policy_paths_for(platform):
        url = _normalize(urljoin(base_url, path))
        if url in best or url == base_norm:
            continue
        _, category = score_candidate(url, "")
        best[url] = PolicyCandidate(url=url, score=FALLBACK_SCORE, category=category, source="fallback")
        order.append(url)

    # Only same-origin URLs reach this point, so ranking is by score alone.
    rank = {u: i for i, u in enumerate(order)}
    ranked = sorted(best.values(), key=lambda c: (-c.score, rank[c.url]))
    return ranked[: max(0, limit)]
