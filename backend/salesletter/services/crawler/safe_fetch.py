"""
SSRF-hardened HTTP GET.

Every URL (including each redirect hop) is checked before a request is made:
only http(s), no localhost-style hostnames, no literal private/loopback/
link-local/multicast IPs, no administrative ports. Failures are *returned*
as `FetchErr` values; nothing here raises for network problems so the crawler
can treat any failure as "page unavailable" and keep going.
"""
from __future__ import annotations

import asyncio
import ipaddress
import logging
import re
import socket
from dataclasses import dataclass
from typing import Optional, Set, Tuple, Union
from urllib.parse import urljoin, urlsplit

import httpx

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = ("http", "https")

BLOCKED_HOSTNAMES = {"localhost", "localhost.localdomain", "0.0.0.0"}

BLOCKED_NETWORKS = [
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("224.0.0.0/4"),
    ipaddress.ip_network("255.255.255.255/32"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fe80::/10"),
    ipaddress.ip_network("fc00::/7"),
]

RESTRICTED_PORTS = {22, 23, 25, 3389, 5432, 3306, 27017, 6379}

MAX_HOSTNAME_LEN = 253

# Decimal, octal or hex IPv4 spellings that the resolver accepts (127.1, 0x7f000001, 2130706433).
_NUMERIC_HOST_RE = re.compile(r"^(?:0x[0-9a-f]*|\d+)(?:\.(?:0x[0-9a-f]*|\d+)){0,3}\.?$")

MAX_REDIRECTS = 5
DEFAULT_TIMEOUT_SECONDS = 10.0
DEFAULT_MAX_BYTES = 5 * 1024 * 1024


class UnsafeUrlError(ValueError):
    """Raised at API boundaries when a user-supplied URL fails the safety check."""


@dataclass(frozen=True)
class FetchedPage:
    url: str
    final_url: str
    status_code: int
    html: str


@dataclass(frozen=True)
class FetchOk:
    page: FetchedPage
    ok: bool = True


@dataclass(frozen=True)
class FetchErr:
    url: str
    reason: str
    ok: bool = False


FetchResult = Union[FetchOk, FetchErr]


def _literal_ip(
    hostname: str,
) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    try:
        return ipaddress.ip_address(hostname.strip("[]"))
    except ValueError:
        return None


def _numeric_ipv4(hostname: str) -> Optional[ipaddress.IPv4Address]:
    """Address a numeric hostname resolves to, as inet_aton reads it; None if unparseable."""
    try:
        return ipaddress.IPv4Address(socket.inet_aton(hostname.rstrip(".")))
    except OSError:
        return None


def check_url_safety(url: str) -> Optional[str]:
    """
    Return a human-readable rejection reason, or None when the URL may be fetched.
    """
    try:
        parts = urlsplit((url or "").strip())
        port = parts.port
    except ValueError as e:
        return f"invalid url: {e}"

    if parts.scheme.lower() not in ALLOWED_SCHEMES:
        return f"scheme not allowed: {parts.scheme or '(none)'}"

    hostname = (parts.hostname or "").lower()
    if not hostname:
        return "empty hostname"
    if len(hostname) > MAX_HOSTNAME_LEN:
        return "hostname too long"
    if hostname in BLOCKED_HOSTNAMES:
        return f"local hostname not allowed: {hostname}"

    if _NUMERIC_HOST_RE.match(hostname):
        ip = _numeric_ipv4(hostname)
        if ip is None:
            return f"unparseable numeric host: {hostname}"
    else:
        ip = _literal_ip(hostname)
    if ip is not None and any(ip in net for net in BLOCKED_NETWORKS if net.version == ip.version):
        return f"private or reserved address not allowed: {hostname}"

    if port is not None and port in RESTRICTED_PORTS:
        return f"restricted port: {port}"

    return None


def assert_safe_url(url: str) -> str:
    reason = check_url_safety(url)
    if reason:
        raise UnsafeUrlError(reason)
    return url


class SafeFetcher:
    """
    Thin wrapper around a shared `httpx.AsyncClient`.

    The client is injected so that one connection pool serves a whole crawl
    and tests can pass an `httpx.MockTransport`.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_bytes: int = DEFAULT_MAX_BYTES,
        user_agent: str = "Mozilla/5.0 (compatible; SalesLetterBot/1.0)",
    ) -> None:
        self._client = client
        self.timeout = timeout
        self.max_bytes = max_bytes
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml",
        }

    async def fetch(
        self,
        url: str,
        timeout: Optional[float] = None,
        max_bytes: Optional[int] = None,
    ) -> FetchResult:
        timeout = self.timeout if timeout is None else timeout
        max_bytes = self.max_bytes if max_bytes is None else max_bytes

        reason = check_url_safety(url)
        if reason:
            logger.info("Rejected unsafe url: %s", reason, extra={"url": url})
            return FetchErr(url, reason)

        try:
            return await asyncio.wait_for(self._get(url, timeout, max_bytes), timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            return FetchErr(url, f"timeout after {timeout}s")
        except httpx.HTTPError as e:
            return FetchErr(url, f"http error: {e.__class__.__name__}")
        except (httpx.InvalidURL, httpx.StreamError) as e:
            return FetchErr(url, f"invalid request: {e.__class__.__name__}")

    async def _get(self, url: str, timeout: float, max_bytes: int) -> FetchResult:
        current = url
        seen: Set[Tuple[str, str]] = set()

        for _ in range(MAX_REDIRECTS + 1):
            async with self._client.stream(
                "GET",
                current,
                headers=self._headers,
                follow_redirects=False,
                timeout=timeout,
            ) as resp:
                loc = resp.headers.get("Location")
                if resp.is_redirect and loc:
                    nxt = urljoin(current, loc)
                    reason = check_url_safety(nxt)
                    if reason:
                        return FetchErr(url, f"unsafe redirect: {reason}")
                    p = urlsplit(nxt)
                    key = (p.netloc.lower(), p.path)
                    if key in seen:
                        return FetchErr(url, f"redirect loop: {nxt}")
                    seen.add(key)
                    current = nxt
                    continue

                if not resp.is_success:
                    return FetchErr(url, f"HTTP {resp.status_code}")

                content_length = resp.headers.get("Content-Length")
                if content_length and content_length.isdigit() and int(content_length) > max_bytes:
                    return FetchErr(
                        url,
                        f"response too large: {int(content_length)} bytes (limit {max_bytes})",
                    )

                buf = bytearray()
                async for chunk in resp.aiter_bytes():
                    buf.extend(chunk)
                    if len(buf) > max_bytes:
                        return FetchErr(url, f"response exceeded {max_bytes} bytes")

                html = bytes(buf).decode(resp.encoding or "utf-8", errors="replace")
                return FetchOk(
                    FetchedPage(
                        url=url,
                        final_url=current,
                        status_code=resp.status_code,
                        html=html,
                    )
                )

        return FetchErr(url, f"too many redirects for {url}")
