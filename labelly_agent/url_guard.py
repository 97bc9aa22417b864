from __future__ import annotations

import ipaddress
import logging
import re
import socket
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Callable, Iterable
from urllib.parse import urlparse, urlunparse

from .errors import InvalidUrlError, SsrfBlockedError
from .models import ValidatedUrl

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = ("http", "https")

_BLOCKED_HOSTNAME_PATTERNS = (
    re.compile(r"^localhost$", re.IGNORECASE),
    re.compile(r"^localhost\.", re.IGNORECASE),
    re.compile(r"\.localhost$", re.IGNORECASE),
    re.compile(r"\.local$", re.IGNORECASE),
    re.compile(r"\.internal$", re.IGNORECASE),
    re.compile(r"\.intra$", re.IGNORECASE),
)

_BLOCKED_NETWORKS = tuple(
    ipaddress.ip_network(n)
    for n in (
        "0.0.0.0/8",
        "10.0.0.0/8",
        "100.64.0.0/10",
        "127.0.0.0/8",
        "169.254.0.0/16",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "::1/128",
        "::/128",
        "fc00::/7",
        "fe80::/10",
    )
)

_WHITESPACE_RE = re.compile(r"[\s\x00-\x1f\x7f]")

Resolver = Callable[[str], Iterable[str]]


def validate_url(raw: str, allowed_ports: Iterable[int] = (80, 443)) -> ValidatedUrl:
    """Parse ``raw`` and reject anything we must never send a request to.

    No network access happens here; DNS checks belong to :class:`SsrfGuard`.
    """
    value = (raw or "").strip()
    if not value:
        raise InvalidUrlError("empty", "Please provide a URL.")
    if _WHITESPACE_RE.search(value):
        raise InvalidUrlError("malformed", "URL must not contain whitespace.")

    try:
        parsed = urlparse(value)
        port = parsed.port
    except ValueError:
        raise InvalidUrlError("malformed", "URL could not be parsed.")

    scheme = (parsed.scheme or "").lower()
    if scheme not in _ALLOWED_SCHEMES:
        raise InvalidUrlError("scheme", "Please use an http(s) website URL.")
    if "@" in parsed.netloc or parsed.username is not None or parsed.password is not None:
        raise InvalidUrlError("credentials", "URLs with embedded credentials are not allowed.")
    hostname = (parsed.hostname or "").rstrip(".").lower()
    if not hostname:
        raise InvalidUrlError("hostname", "Please enter a valid website domain.")
    if port is not None and port not in set(allowed_ports):
        raise InvalidUrlError("port", f"Port {port} is not allowed.")

    href = urlunparse(parsed._replace(scheme=scheme, fragment=""))
    if not parsed.path:
        href = urlunparse(parsed._replace(scheme=scheme, path="/", fragment=""))
    return ValidatedUrl(href=href, scheme=scheme, hostname=hostname, port=port)


def is_blocked_ip(value: str) -> bool:
    """True for private, loopback, link-local, CGNAT, reserved and unparsable addresses."""
    try:
        ip = ipaddress.ip_address(value.split("%", 1)[0])
    except ValueError:
        return True

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    if any(ip in net for net in _BLOCKED_NETWORKS if net.version == ip.version):
        return True
    return (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
        or ip.is_unspecified
    )


def is_blocked_hostname(hostname: str) -> bool:
    h = (hostname or "").strip().rstrip(".").lower()
    if not h:
        return True
    return any(p.search(h) for p in _BLOCKED_HOSTNAME_PATTERNS)


def _literal_ip(hostname: str) -> str | None:
    h = hostname.strip("[]")
    try:
        ipaddress.ip_address(h.split("%", 1)[0])
    except ValueError:
        return None
    return h


def resolve_host_ips(hostname: str) -> list[str]:
    ips: set[str] = set()
    for item in socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP):
        sockaddr = item[4]
        if sockaddr:
            ips.add(str(sockaddr[0]))
    return sorted(ips)


# getaddrinfo cannot be cancelled; a lookup that outlives its deadline keeps
# its worker until the resolver gives up.
_DNS_POOL = ThreadPoolExecutor(max_workers=8, thread_name_prefix="labelly-dns")


class SsrfGuard:
    """Refuses hosts that resolve (even partially) into non-public address space.

    Must be consulted for every URL we connect to, including each redirect
    target, so that a public first hop cannot bounce us into the intranet.
    """

    def __init__(self, resolver: Resolver | None = None):
        self._resolve = resolver or resolve_host_ips

    def check(self, hostname: str, timeout: float | None = None) -> list[str]:
        """Return the vetted addresses for ``hostname`` or raise ``SsrfBlockedError``.

        With ``timeout`` set, a lookup that takes longer fails with ``dns_timeout``.
        """
        h = (hostname or "").strip().rstrip(".").lower()
        if is_blocked_hostname(h):
            raise SsrfBlockedError("blocked_hostname")

        literal = _literal_ip(h)
        if literal is not None:
            if is_blocked_ip(literal):
                raise SsrfBlockedError("blocked_ip")
            return [literal]

        try:
            addresses = self._lookup(h, timeout)
        except FuturesTimeout:
            logger.debug("dns lookup timed out for %s", h)
            raise SsrfBlockedError("dns_timeout")
        except (OSError, UnicodeError) as e:
            logger.debug("dns lookup failed for %s: %s", h, e)
            raise SsrfBlockedError("dns_failed")

        if not addresses:
            raise SsrfBlockedError("dns_failed")
        for addr in addresses:
            if not addr or is_blocked_ip(addr):
                logger.debug("host %s resolved to blocked address %s", h, addr)
                raise SsrfBlockedError("blocked_ip")
        return addresses

    def check_url(self, url: str, timeout: float | None = None) -> list[str]:
        try:
            hostname = urlparse(url).hostname or ""
        except ValueError:
            raise SsrfBlockedError("blocked_hostname")
        return self.check(hostname, timeout)

    def _lookup(self, hostname: str, timeout: float | None) -> list[str]:
        if timeout is None:
            return list(self._resolve(hostname))
        if timeout <= 0:
            raise FuturesTimeout()
        future = _DNS_POOL.submit(lambda: list(self._resolve(hostname)))
        return future.result(timeout=timeout)
