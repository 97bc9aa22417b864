from __future__ import annotations

import logging
import time
from urllib.parse import urlparse

from .config import Settings
from .errors import SsrfBlockedError
from .fetcher import SafeFetcher
from .label_copy import LABEL_COPY
from .links import discover_policy_links
from .models import Color, Diagnosis, Evidence, FetchResult, SignalSet, SnippetSet, ValidatedUrl
from .platforms import detect_platform
from .scoring import SCORE_LABELS, label_for, score_breakdown, score_signals
from .signals import extract_signals
from .url_guard import validate_url

logger = logging.getLogger(__name__)


def diagnose(
    raw_url: str,
    *,
    settings: Settings | None = None,
    fetcher: SafeFetcher | None = None,
) -> Diagnosis:
    """Fetch a shop page plus a few policy pages and label the purchase risk.

    Raises ``InvalidUrlError`` before any network access, and
    ``SsrfBlockedError`` when the main page (or one of its redirects) points at
    a non-public host. Every other failure ends up in the returned Diagnosis.
    """
    settings = settings or Settings()
    target = validate_url(raw_url, settings.allowed_ports)

    t0 = time.perf_counter()
    owns_fetcher = fetcher is None
    fetcher = fetcher or SafeFetcher(settings)
    try:
        return _run(target, settings, fetcher)
    finally:
        if owns_fetcher:
            fetcher.close()
        logger.info("[diagnose] %s done in %d ms", target.href, int((time.perf_counter() - t0) * 1000))


def _run(target: ValidatedUrl, settings: Settings, fetcher: SafeFetcher) -> Diagnosis:
    main = fetcher.fetch(target.href)
    if not main.ok:
        if main.reason == "ssrf_blocked":
            raise SsrfBlockedError("ssrf_blocked")
        logger.info("[main failed] %s (%s)", target.href, main.reason)
        return _unavailable_diagnosis(target, main)

    base_url = main.final_url
    hostname = urlparse(base_url).hostname or target.hostname
    platform = detect_platform(hostname, main.text)

    signals, snippets = extract_signals(main.text or "")
    urls_checked = [base_url]

    if not signals.is_confident and settings.max_policy_pages > 0:
        candidates = discover_policy_links(main.text or "", base_url, platform, limit=settings.max_policy_pages)
        logger.info("[related candidates] %s", [c.url for c in candidates])

        for cand in candidates:
            if signals.is_confident:
                break
            page = fetcher.fetch(cand.url)
            if not page.ok:
                logger.info("[related failed] %s (%s)", cand.url, page.reason)
                continue
            page_signals, page_snippets = extract_signals(page.text or "")
            signals = signals.merge(page_signals)
            snippets.merge(page_snippets)
            if page.final_url not in urls_checked:
                urls_checked.append(page.final_url)
            logger.info("[related fetched] %s (%s)", page.final_url, cand.category or "unknown")

    score = score_signals(signals, platform)
    color = label_for(score, signals, high=settings.high_threshold, mid=settings.mid_threshold)
    logger.debug("[signals] %s", signals.as_dict())

    evidence = Evidence(
        domain_summary=_domain_notes(target.hostname, signals, len(urls_checked) - 1),
        platform_guess=platform,
        score_summary=_score_notes(score, signals, platform),
        shipment_notes=_shipment_notes(signals),
        return_notes=_return_notes(signals),
        urls_checked=urls_checked,
        snippets=snippets.as_dict(),
    )
    return _build(target, platform, score, color, evidence)


def _build(target: ValidatedUrl, platform: str, score: int, color: Color, evidence: Evidence) -> Diagnosis:
    copy = LABEL_COPY[color]
    return Diagnosis(
        url=target.href,
        platform=platform,
        score=score,
        color=color,
        label_text=copy.label_text,
        one_line=copy.one_line,
        delivery=copy.delivery,
        eta=copy.eta,
        return_policy=copy.return_policy,
        notes=list(copy.notes),
        good=list(copy.good),
        caution=list(copy.caution),
        evidence=evidence,
    )


def _unavailable_diagnosis(target: ValidatedUrl, main: FetchResult) -> Diagnosis:
    # Partial data from a failed main fetch is ignored: score 0, no signals.
    evidence = Evidence(
        domain_summary=[f"ドメイン：{target.hostname}", f"※取得不可（{main.reason}）"],
        platform_guess="unknown",
        score_summary=["スコア 0/100（トップページを取得できませんでした）"],
        urls_checked=[],
        snippets=SnippetSet().as_dict(),
        fetch_error=main.reason,
    )
    color = label_for(0, SignalSet(), fetched=False)
    return _build(target, "unknown", 0, color, evidence)


def _domain_notes(hostname: str, s: SignalSet, related_pages: int) -> list[str]:
    notes = [f"ドメイン：{hostname}"]
    if s.is_japanese_ui:
        notes.append("日本語UIの可能性")
    if s.is_jpy:
        notes.append("円表記の可能性")
    notes.append("サーバー取得に成功（公開情報から推定）")
    if related_pages:
        notes.append(f"関連ページ {related_pages} 件を確認")
    return notes


def _score_notes(score: int, s: SignalSet, platform: str) -> list[str]:
    notes = [f"スコア {score}/100"]
    for key, weight in score_breakdown(s, platform):
        notes.append(f"{SCORE_LABELS.get(key, key)} {weight:+d}")
    return notes


def _shipment_notes(s: SignalSet) -> list[str]:
    notes: list[str] = []
    if s.has_days_delivery:
        notes.append("短納期表現あり")
    if s.has_long_delivery:
        notes.append("長納期・予約/入荷待ち表現あり")
    if s.has_overseas_ship:
        notes.append("海外発送の可能性")
    return notes


def _return_notes(s: SignalSet) -> list[str]:
    notes: list[str] = []
    if s.has_tokusho:
        notes.append("特定商取引法表記あり")
    if s.has_address:
        notes.append("日本住所表記あり")
    if s.has_phone:
        notes.append("電話番号の記載あり")
    if s.has_email:
        notes.append("メールアドレスの記載あり")
    if s.has_return_info:
        notes.append("返品/キャンセル情報あり")
    if s.has_overseas_return:
        notes.append("海外返品条件あり")
    return notes
