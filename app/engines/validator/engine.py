"""
URL Safety Validator - SSRF guard for every outbound scrape target.

Checks, in order:
1. Normalize: trim, prepend https:// when no scheme is given
2. Scheme must be http or https
3. Hostname must not be on the denylist (localhost, metadata hosts)
4. IP-literal hosts must be public
5. Other hosts are resolved; every resolved address must be public

Applied to the submitted URL and again to each discovered sublink,
since sublinks come from attacker-controlled HTML.
"""

from __future__ import annotations

import asyncio
import ipaddress
import re
import socket
from enum import Enum
from typing import Awaitable, Callable
from urllib.parse import urlsplit

import structlog
from pydantic import BaseModel

from app.core.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
Resolver = Callable[[str], Awaitable[list[str]]]


class RejectionReason(str, Enum):
    INVALID_URL = "invalid_url"
    UNSUPPORTED_SCHEME = "unsupported_scheme"
    BLOCKED_HOST = "blocked_host"
    BLOCKED_ADDRESS = "blocked_address"
    RESOLVES_TO_BLOCKED_ADDRESS = "resolves_to_blocked_address"
    UNRESOLVABLE = "unresolvable"


REJECTION_MESSAGES: dict[RejectionReason, str] = {
    RejectionReason.INVALID_URL: "Invalid URL",
    RejectionReason.UNSUPPORTED_SCHEME: "Only HTTP and HTTPS URLs are allowed",
    RejectionReason.BLOCKED_HOST: "This URL targets a restricted host",
    RejectionReason.BLOCKED_ADDRESS: "This URL targets a restricted IP address",
    RejectionReason.RESOLVES_TO_BLOCKED_ADDRESS: "This URL resolves to a restricted IP address",
    RejectionReason.UNRESOLVABLE: "Could not resolve hostname",
}


class URLValidationResult(BaseModel):
    url: str | None = None
    reason: RejectionReason | None = None

    @property
    def valid(self) -> bool:
        return self.reason is None

    @property
    def message(self) -> str | None:
        return REJECTION_MESSAGES[self.reason] if self.reason else None


# ─────────────────────────────────────────────
# Address policy
# ─────────────────────────────────────────────

BLOCKED_HOSTNAMES = frozenset({
    "localhost",
    "localhost.localdomain",
    "metadata.google.internal",
    "metadata",
    "instance-data",
})

BLOCKED_IPV4_NETWORKS = tuple(ipaddress.IPv4Network(cidr) for cidr in (
    "0.0.0.0/8",        # "this" network
    "10.0.0.0/8",       # RFC1918
    "100.64.0.0/10",    # carrier-grade NAT
    "127.0.0.0/8",      # loopback
    "169.254.0.0/16",   # link-local, cloud metadata
    "172.16.0.0/12",    # RFC1918
    "192.0.0.0/24",     # IETF protocol assignments
    "192.0.2.0/24",     # TEST-NET-1
    "192.168.0.0/16",   # RFC1918
    "198.18.0.0/15",    # benchmarking
    "198.51.100.0/24",  # TEST-NET-2
    "203.0.113.0/24",   # TEST-NET-3
    "224.0.0.0/4",      # multicast
    "240.0.0.0/4",      # reserved, includes broadcast
))

BLOCKED_IPV6_NETWORKS = tuple(ipaddress.IPv6Network(cidr) for cidr in (
    "::/128",           # unspecified
    "::1/128",          # loopback
    "fc00::/7",         # unique local
    "fe80::/10",        # link-local
    "ff00::/8",         # multicast
    "2001:db8::/32",    # documentation
))

_SCHEME_RE = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")


def is_blocked_address(ip: IPAddress) -> bool:
    if isinstance(ip, ipaddress.IPv6Address):
        if ip.ipv4_mapped is not None:
            return is_blocked_address(ip.ipv4_mapped)
        return any(ip in net for net in BLOCKED_IPV6_NETWORKS)
    return any(ip in net for net in BLOCKED_IPV4_NETWORKS)


async def resolve_host(hostname: str) -> list[str]:
    """Resolve a hostname to every address the system resolver returns."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    return list(dict.fromkeys(info[4][0] for info in infos))


# ─────────────────────────────────────────────
# Validator
# ─────────────────────────────────────────────

class URLSafetyValidator:
    """Validates and normalizes candidate scrape targets."""

    def __init__(
        self,
        resolver: Resolver = resolve_host,
        dns_timeout: float = settings.VALIDATOR_DNS_TIMEOUT_SECONDS,
    ):
        self.resolver = resolver
        self.dns_timeout = dns_timeout

    @staticmethod
    def normalize(raw_url: str) -> str:
        url = raw_url.strip()
        if not _SCHEME_RE.match(url):
            url = f"https://{url}"
        return url

    async def validate(self, raw_url: str) -> URLValidationResult:
        if not raw_url or not raw_url.strip():
            return self._reject(raw_url, RejectionReason.INVALID_URL)

        url = self.normalize(raw_url)
        try:
            parsed = urlsplit(url)
            hostname = parsed.hostname
            parsed.port  # raises ValueError on a malformed port
        except ValueError:
            return self._reject(raw_url, RejectionReason.INVALID_URL)

        if parsed.scheme.lower() not in ("http", "https"):
            return self._reject(raw_url, RejectionReason.UNSUPPORTED_SCHEME)
        if not hostname:
            return self._reject(raw_url, RejectionReason.INVALID_URL)

        hostname = hostname.rstrip(".").lower()
        if hostname in BLOCKED_HOSTNAMES or hostname.endswith(".localhost"):
            return self._reject(raw_url, RejectionReason.BLOCKED_HOST)

        literal = self._parse_ip(hostname)
        if literal is not None:
            if is_blocked_address(literal):
                return self._reject(raw_url, RejectionReason.BLOCKED_ADDRESS)
            return URLValidationResult(url=url)

        try:
            addresses = await asyncio.wait_for(self.resolver(hostname), timeout=self.dns_timeout)
        except (OSError, UnicodeError, asyncio.TimeoutError) as e:
            logger.info("Hostname resolution failed", host=hostname, error=str(e) or type(e).__name__)
            return self._reject(raw_url, RejectionReason.UNRESOLVABLE)

        if not addresses:
            return self._reject(raw_url, RejectionReason.UNRESOLVABLE)

        for address in addresses:
            ip = self._parse_ip(address)
            if ip is None or is_blocked_address(ip):
                logger.warning("Hostname resolves to blocked address", host=hostname, address=address)
                return self._reject(raw_url, RejectionReason.RESOLVES_TO_BLOCKED_ADDRESS)

        return URLValidationResult(url=url)

    async def filter_safe(self, urls: list[str]) -> list[str]:
        """Validate urls concurrently; keep the normalized safe ones in input order."""
        results = await asyncio.gather(*(self.validate(u) for u in urls))
        return [r.url for r in results if r.valid and r.url]

    @staticmethod
    def _parse_ip(host: str) -> IPAddress | None:
        try:
            # IPv6 scope ids ("fe80::1%eth0") are not accepted by ip_address
            return ipaddress.ip_address(host.split("%", 1)[0])
        except ValueError:
            return None

    @staticmethod
    def _reject(raw_url: str, reason: RejectionReason) -> URLValidationResult:
        logger.info("URL rejected", url=raw_url, reason=reason.value)
        return URLValidationResult(reason=reason)
