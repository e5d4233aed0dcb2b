from __future__ import annotations

import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Callable, Iterable

import httpx

from .errors import PreconditionError
from .layout import HostnameRecord

log = logging.getLogger(__name__)

PUBLIC_IP_URL = "https://ifconfig.me/ip"

Resolver = Callable[[str], list[str]]


@dataclass(frozen=True)
class DnsCheck:
    record: HostnameRecord
    addresses: list[str]
    expected: str

    @property
    def ok(self) -> bool:
        return self.expected in self.addresses


def resolve_ipv4(fqdn: str) -> list[str]:
    try:
        infos = socket.getaddrinfo(fqdn, None, socket.AF_INET, socket.SOCK_STREAM)
    except (socket.gaierror, UnicodeError):
        return []
    seen: list[str] = []
    for info in infos:
        addr = str(info[4][0])
        if addr not in seen:
            seen.append(addr)
    return seen


def detect_public_ip(*, url: str = PUBLIC_IP_URL, timeout: float = 10.0) -> str:
    try:
        resp = httpx.get(url, timeout=timeout, headers={"Accept": "text/plain"})
        resp.raise_for_status()
    except httpx.HTTPError as exc:
        raise PreconditionError(f"Could not determine this host's public IP: {exc}") from exc
    value = resp.text.strip()
    try:
        ipaddress.ip_address(value)
    except ValueError as exc:
        raise PreconditionError(f"Unexpected public IP response from {url}: {value[:60]!r}") from exc
    return value


def check_dns(
    records: Iterable[HostnameRecord],
    public_ip: str,
    *,
    resolver: Resolver = resolve_ipv4,
) -> list[DnsCheck]:
    checks = [DnsCheck(record=r, addresses=resolver(r.fqdn), expected=public_ip) for r in records]
    for check in checks:
        log.debug("dns %s -> %s (expected %s)", check.record.fqdn, check.addresses, public_ip)
    return checks


def require_dns(
    records: Iterable[HostnameRecord],
    public_ip: str,
    *,
    resolver: Resolver = resolve_ipv4,
) -> list[DnsCheck]:
    checks = check_dns(records, public_ip, resolver=resolver)
    bad = [c for c in checks if not c.ok]
    if bad:
        details = "; ".join(
            f"{c.record.fqdn} -> {', '.join(c.addresses) or 'no A record'}" for c in bad
        )
        raise PreconditionError(f"DNS does not point at {public_ip}: {details}")
    return checks
