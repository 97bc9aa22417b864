from __future__ import annotations

from types import MappingProxyType

# (platform, hostname suffixes, markup fingerprints)
_FINGERPRINTS: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("shopify", (".myshopify.com",), ("cdn.shopify.com", "myshopify.com", "shopify.theme", "shopify-section")),
    ("base", (".thebase.in", ".base.shop", ".base.ec", ".theshop.jp", ".buyshop.jp", ".shopselect.net"), ("thebase.in", "base-ec", "basefile.akamaized.net")),
    ("stores", (".stores.jp", ".storeinfo.jp"), ("stores.jp", "st-img.stores.jp")),
    ("colorme", (".shop-pro.jp", ".com-shop.jp"), ("shop-pro.jp", "colorme", "img.shop-pro.jp")),
    ("makeshop", (".makeshop.jp",), ("makeshop", "gigaplus.makeshop.jp")),
    ("woocommerce", (), ("woocommerce", "wc-block", "wp-content/plugins/woocommerce")),
)

# Conventional locations of the commercial-disclosure / policy pages per platform.
PLATFORM_POLICY_PATHS = MappingProxyType(
    {
        "shopify": (
            "/policies/legal-notice",
            "/policies/refund-policy",
            "/policies/shipping-policy",
            "/pages/tokushoho",
        ),
        "base": ("/law", "/privacy"),
        "stores": ("/law", "/about"),
        "colorme": ("/?mode=sk", "/?mode=privacy"),
        "makeshop": ("/shop/law.html", "/shop/shopinfo.html"),
        "woocommerce": ("/tokushoho/", "/law/", "/refund_returns/"),
    }
)

KNOWN_PLATFORMS = frozenset(PLATFORM_POLICY_PATHS)


def detect_platform(hostname: str, html: str | None) -> str:
    """Best-effort storefront platform guess; ``"unknown"`` when nothing matches.

    Hostname suffixes win over markup because a custom domain can embed another
    shop's widgets but never the other way around.
    """
    h = (hostname or "").lower().rstrip(".")
    for name, suffixes, _ in _FINGERPRINTS:
        if any(h.endswith(s) or h == s.lstrip(".") for s in suffixes):
            return name

    body = (html or "").lower()
    if not body.strip():
        return "unknown"
    for name, _, markers in _FINGERPRINTS:
        if any(m in body for m in markers):
            return name
    return "unknown"


def policy_paths_for(platform: str) -> tuple[str, ...]:
    return PLATFORM_POLICY_PATHS.get(platform, ())
