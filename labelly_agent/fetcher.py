from __future__ import annotations

import logging
import re
import time
from dataclasses import replace
from typing import Mapping
from urllib.parse import urlparse

import httpx

from .config import Settings
from .errors import InvalidUrlError, SsrfBlockedError
from .models import FetchResult
from .url_guard import SsrfGuard, validate_url

logger = logging.getLogger(__name__)

_HTML_TYPES = ("text/html", "application/xhtml+xml")

_CHARSET_RE = re.compile(r"charset\s*=\s*[\"']?([^\s;\"']+)", re.IGNORECASE)

# Declared charsets we decode strictly. Anything else falls back to lenient UTF-8.
_CHARSET_CODECS = {
    "utf-8": "utf-8",
    "utf8": "utf-8",
    "shift_jis": "cp932",
    "shift-jis": "cp932",
    "sjis": "cp932",
    "x-sjis": "cp932",
    "windows-31j": "cp932",
    "cp932": "cp932",
    "ms932": "cp932",
    "euc-jp": "euc_jp",
    "x-euc-jp": "euc_jp",
    "eucjp": "euc_jp",
    "iso-2022-jp": "iso2022_jp",
    "csiso2022jp": "iso2022_jp",
}


class _DeadlineExceeded(Exception):
    pass


def parse_charset(content_type: str | None) -> str | None:
    m = _CHARSET_RE.search(content_type or "")
    return m.group(1).lower() if m else None


def decode_body(body: bytes, content_type: str | None) -> tuple[str, str]:
    """Decode ``body`` using the charset declared in ``content_type``.

    Raises ``UnicodeDecodeError`` when a declared charset does not match the bytes.
    """
    declared = parse_charset(content_type)
    codec = _CHARSET_CODECS.get(declared or "")
    if codec is None:
        return body.decode("utf-8", errors="replace"), "utf-8"
    return body.decode(codec), codec


def _is_html(content_type: str) -> bool:
    ct = content_type.split(";", 1)[0].strip().lower()
    return ct in _HTML_TYPES


class PinnedTransport(httpx.BaseTransport):
    """Sends each request to the address the guard vetted for its host.

    The URL host is swapped for the pinned IP while the Host header and the
    TLS server name keep the original hostname, so certificates are still
    checked against the name the user asked for. Unpinned hosts pass through.
    """

    def __init__(self, pins: Mapping[str, str], transport: httpx.BaseTransport | None = None):
        self._pins = pins
        self._transport = transport or httpx.HTTPTransport()

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        ip = self._pins.get(host)
        if not ip or ip == host:
            return self._transport.handle_request(request)
        pinned = httpx.Request(
            request.method,
            request.url.copy_with(host=f"[{ip}]" if ":" in ip else ip),
            headers=request.headers,
            stream=request.stream,
            extensions={**request.extensions, "sni_hostname": host},
        )
        return self._transport.handle_request(pinned)

    def close(self) -> None:
        self._transport.close()


def _pick_address(addresses: list[str]) -> str:
    # Prefer IPv4; plenty of hosts have no working IPv6 route.
    for addr in addresses:
        if ":" not in addr:
            return addr
    return addresses[0]


class SafeFetcher:
    """HTML fetcher that never follows a redirect it has not re-validated.

    Every failure comes back as ``FetchResult.failure(reason=...)``; nothing raises.
    One instance may be reused for several sequential fetches; call
    :meth:`close` (or use it as a context manager) when done.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        guard: SsrfGuard | None = None,
        client: httpx.Client | None = None,
    ):
        self.settings = settings or Settings()
        self.guard = guard or SsrfGuard()
        self._client = client
        self._owns_client = client is None
        self._pins: dict[str, str] = {}

    def __enter__(self) -> SafeFetcher:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None

    def _http(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                transport=PinnedTransport(self._pins),
                follow_redirects=False,
                timeout=self.settings.fetch_timeout_s,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "user-agent": self.settings.user_agent,
            "accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "accept-language": self.settings.accept_language,
        }

    def fetch(self, url: str) -> FetchResult:
        deadline = time.monotonic() + self.settings.fetch_timeout_s
        current = url
        redirects: list[str] = []

        for _ in range(self.settings.max_redirects + 1):
            try:
                self._vet(current, deadline)
            except _DeadlineExceeded:
                logger.info("[timeout] %s before connect", current)
                return FetchResult.failure(url, "timeout", final_url=current, redirects=tuple(redirects))
            except SsrfBlockedError as e:
                logger.info("[blocked] %s (%s)", current, e.reason)
                return FetchResult.failure(url, "ssrf_blocked", final_url=current, redirects=tuple(redirects))

            try:
                result, next_url = self._fetch_once(url, current, deadline)
            except (httpx.TimeoutException, _DeadlineExceeded):
                logger.info("[timeout] %s", current)
                return FetchResult.failure(url, "timeout", final_url=current, redirects=tuple(redirects))
            except (httpx.HTTPError, httpx.InvalidURL) as e:
                logger.info("[network error] %s: %s", current, e)
                return FetchResult.failure(url, "network_error", final_url=current, redirects=tuple(redirects))

            if next_url is None:
                return replace(result, redirects=tuple(redirects)) if redirects else result
            redirects.append(current)
            current = next_url

        logger.info("[too many redirects] %s", url)
        return FetchResult.failure(url, "too_many_redirects", final_url=current, redirects=tuple(redirects))

    def _vet(self, current: str, deadline: float) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise _DeadlineExceeded()
        try:
            addresses = self.guard.check_url(current, timeout=remaining)
        except SsrfBlockedError as e:
            if e.reason == "dns_timeout":
                raise _DeadlineExceeded() from e
            raise
        host = (urlparse(current).hostname or "").rstrip(".").lower()
        self._pins[host] = _pick_address(addresses)

    def _fetch_once(self, url: str, current: str, deadline: float) -> tuple[FetchResult | None, str | None]:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise _DeadlineExceeded()

        with self._http().stream("GET", current, headers=self._headers(), timeout=remaining) as res:
            status = res.status_code
            ct = res.headers.get("content-type", "")
            logger.info("[fetch] %s %s %s", current, status, ct)

            if 300 <= status < 400:
                location = (res.headers.get("location") or "").strip()
                if not location:
                    return FetchResult.failure(url, "redirect_without_location", final_url=current, status=status), None
                try:
                    target = validate_url(str(httpx.URL(current).join(location)), self.settings.allowed_ports)
                except (InvalidUrlError, httpx.InvalidURL):
                    return FetchResult.failure(url, "invalid_redirect", final_url=current, status=status), None
                return None, target.href

            if status < 200 or status >= 300:
                return FetchResult.failure(url, f"http_{status}", final_url=current, status=status), None

            if not _is_html(ct):
                return FetchResult.failure(url, "not_html", final_url=current, status=status, content_type=ct), None

            limit = self.settings.max_html_bytes
            declared = res.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > limit:
                logger.info("[size] %s declared %s bytes, over %s", current, declared, limit)
                return FetchResult.failure(url, "too_large", final_url=current, status=status, content_type=ct), None

            body = bytearray()
            for chunk in res.iter_bytes():
                body.extend(chunk)
                if len(body) > limit:
                    logger.info("[size] %s exceeded %s bytes", current, limit)
                    return FetchResult.failure(url, "too_large", final_url=current, status=status, content_type=ct), None
                if time.monotonic() > deadline:
                    raise _DeadlineExceeded()
            logger.debug("[size] %s %d bytes", current, len(body))

        try:
            text, codec = decode_body(bytes(body), ct)
        except (UnicodeDecodeError, LookupError):
            return FetchResult.failure(url, "decode_error", final_url=current, status=status, content_type=ct), None

        return FetchResult.success(url, current, status, text, content_type=ct, charset=codec), None
