from __future__ import annotations

from labelly_agent.links import discover_policy_links, extract_anchors, score_candidate
from labelly_agent.platforms import detect_platform, policy_paths_for

BASE = "https://shop.example.jp/"


def test_extract_anchors_keeps_same_origin_only():
    html = """
    <a href="/law">特定商取引法</a>
    <a href='https://shop.example.jp/shipping#fee'>配送について</a>
    <a href="https://other.example.com/law">特定商取引法</a>
    <a href="http://shop.example.jp/returns">返品</a>
    <a href="#top">トップ</a>
    <a href="javascript:void(0)">返品</a>
    <a href="mailto:info@shop.example.jp">お問い合わせ</a>
    <a href="tel:0312345678">電話</a>
    """
    anchors = extract_anchors(html, BASE)

    assert anchors == [
        ("https://shop.example.jp/law", "特定商取引法"),
        ("https://shop.example.jp/shipping", "配送について"),
    ]


def test_anchor_text_strips_nested_tags():
    html = '<a class="nav" href="/guide"><span><i class="icon"></i>ご利用 \n ガイド</span></a>'
    assert extract_anchors(html, BASE) == [("https://shop.example.jp/guide", "ご利用 ガイド")]


def test_text_hit_outweighs_url_hit():
    assert score_candidate("https://shop.example.jp/p/1", "返品について") == (3, "return")
    assert score_candidate("https://shop.example.jp/returns", "click") == (2, "return")
    assert score_candidate("https://shop.example.jp/p/2", "新着") == (0, None)


def test_discover_ranks_and_caps():
    html = """
    <a href="/returns">here</a>
    <a href="/page/8">返品・交換について</a>
    <a href="/law">特定商取引法に基づく表記</a>
    <a href="/company">会社概要</a>
    <a href="/news">お知らせ</a>
    """
    found = discover_policy_links(html, BASE, limit=3)

    assert [c.url for c in found] == [
        "https://shop.example.jp/page/8",
        "https://shop.example.jp/law",
        "https://shop.example.jp/company",
    ]
    assert [c.category for c in found] == ["return", "tokusho", "company"]
    assert all(c.source == "anchor" for c in found)


def test_discover_dedupes_keeping_best_score():
    html = """
    <a href="/law#a">here</a>
    <a href="/law#b">特定商取引法に基づく表記</a>
    """
    found = discover_policy_links(html, BASE)

    assert len(found) == 1
    assert found[0].url == "https://shop.example.jp/law"
    assert found[0].score == 2 + 3
    assert found[0].category == "tokusho"


def test_discover_never_returns_the_page_itself():
    html = '<a href="/">特定商取引法</a><a href="https://shop.example.jp/#x">返品</a>'
    assert discover_policy_links(html, BASE) == []


def test_platform_fallback_paths_are_appended():
    html = '<script src="https://cdn.shopify.com/s/files/theme.js"></script><a href="/pages/faq">返品</a>'
    platform = detect_platform("shop.example.jp", html)

    found = discover_policy_links(html, BASE, platform, limit=4)

    assert platform == "shopify"
    assert found[0].url == "https://shop.example.jp/pages/faq"
    assert [c.source for c in found[1:]] == ["fallback"] * 3
    assert found[1].url == "https://shop.example.jp/policies/legal-notice"


def test_fallback_paths_without_any_anchor():
    found = discover_policy_links("", "https://myshop.thebase.in/", "base", limit=3)
    assert [c.url for c in found] == ["https://myshop.thebase.in/law", "https://myshop.thebase.in/privacy"]


def test_detect_platform():
    assert detect_platform("store.myshopify.com", None) == "shopify"
    assert detect_platform("abc.stores.jp", "") == "stores"
    assert detect_platform("example.shop-pro.jp", "") == "colorme"
    assert detect_platform("shop.example.jp", '<link href="/wp-content/plugins/woocommerce/x.css">') == "woocommerce"
    assert detect_platform("shop.example.jp", "<p>plain</p>") == "unknown"
    assert detect_platform("shop.example.jp", None) == "unknown"
    assert policy_paths_for("unknown") == ()


def test_explicit_default_port_is_same_origin():
    html = """
    <a href="https://shop.example.jp:443/law">特定商取引法</a>
    <a href="https://shop.example.jp:8443/returns">返品</a>
    <a href="http://shop.example.jp:80/about">会社概要</a>
    <a href="https://user:pw@shop.example.jp/company">会社概要</a>
    """
    assert extract_anchors(html, BASE) == [("https://shop.example.jp/law", "特定商取引法")]
    assert extract_anchors(html, "http://shop.example.jp/") == [("http://shop.example.jp/about", "会社概要")]


def test_default_port_variants_dedupe_to_one_candidate():
    html = '<a href="/law">here</a><a href="https://shop.example.jp:443/law#x">特定商取引法</a>'
    found = discover_policy_links(html, "https://shop.example.jp:443/")

    assert [(c.url, c.score) for c in found] == [("https://shop.example.jp/law", 5)]
