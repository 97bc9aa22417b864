from __future__ import annotations

import socket
from typing import Callable

import httpx
import pytest

from labelly_agent.config import Settings
from labelly_agent.fetcher import SafeFetcher
from labelly_agent.url_guard import SsrfGuard

PUBLIC_IP = "93.184.216.34"

HOSTS: dict[str, list[str]] = {
    "shop.example.jp": [PUBLIC_IP],
    "cdn.example.jp": [PUBLIC_IP, "2606:4700:4700::1111"],
    "intranet.example.jp": ["192.168.1.10"],
    "rebind.example.jp": [PUBLIC_IP, "10.0.0.7"],
}


def fake_resolver(hosts: dict[str, list[str]] | None = None) -> Callable[[str], list[str]]:
    table = HOSTS if hosts is None else hosts

    def resolve(hostname: str) -> list[str]:
        if hostname not in table:
            raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
        return list(table[hostname])

    return resolve


def html_response(body: str, status: int = 200, charset: str = "utf-8", **headers) -> httpx.Response:
    return httpx.Response(
        status,
        headers={"content-type": f"text/html; charset={charset}", **headers},
        content=body.encode(charset),
    )


@pytest.fixture()
def guard() -> SsrfGuard:
    return SsrfGuard(resolver=fake_resolver())


@pytest.fixture()
def settings() -> Settings:
    return Settings(fetch_timeout_s=5.0, max_html_bytes=64_000)


@pytest.fixture()
def make_fetcher(guard, settings):
    """Build a SafeFetcher whose HTTP goes to ``handler`` and whose DNS is faked.

    The returned fetcher records every requested URL in ``fetcher.requested``.
    """
    created: list[SafeFetcher] = []

    def factory(handler: Callable[[httpx.Request], httpx.Response], cfg: Settings | None = None) -> SafeFetcher:
        requested: list[str] = []

        def recording(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            return handler(request)

        client = httpx.Client(transport=httpx.MockTransport(recording), follow_redirects=False)
        fetcher = SafeFetcher(cfg or settings, guard=guard, client=client)
        fetcher.requested = requested  # type: ignore[attr-defined]
        created.append(fetcher)
        return fetcher

    yield factory

    for f in created:
        f._client.close()
