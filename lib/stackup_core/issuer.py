"""Certificate issuer inspection.

The staging signatures identify Let's Encrypt's test hierarchy ("Fake LE
Intermediate X1" and the "(STAGING) ..." intermediates). They are vendor
naming, not protocol, so they live in :class:`IssuerSignatures` and can be
overridden from settings when the CA renames its staging chain.
"""

from __future__ import annotations

import logging
import socket
import ssl
from dataclasses import dataclass

from cryptography import x509

from .errors import CertificateReadError
from .modes import IssuerClass
from .verdicts import Verdict

log = logging.getLogger(__name__)

DEFAULT_STAGING_SIGNATURES = ("fake le", "(staging)")
DEFAULT_PRODUCTION_SIGNATURES = ("let's encrypt",)
DEFAULT_TLS_PORT = 443
DEFAULT_TLS_TIMEOUT = 10.0


def _matches(issuer: str, signatures: tuple[str, ...]) -> bool:
    lowered = issuer.casefold()
    return any(sig.casefold() in lowered for sig in signatures if sig)


@dataclass(frozen=True)
class IssuerSignatures:
    staging: tuple[str, ...] = DEFAULT_STAGING_SIGNATURES
    production: tuple[str, ...] = DEFAULT_PRODUCTION_SIGNATURES

    def is_staging(self, issuer: str) -> bool:
        return _matches(issuer, self.staging)

    def is_production(self, issuer: str) -> bool:
        return _matches(issuer, self.production) and not self.is_staging(issuer)


def classify_issuer(
    issuer: str | None,
    expected: IssuerClass,
    signatures: IssuerSignatures | None = None,
) -> Verdict:
    sigs = signatures or IssuerSignatures()
    value = (issuer or "").strip()
    if not value:
        return Verdict.CERT_UNREADABLE
    if expected is IssuerClass.STAGING:
        matched = sigs.is_staging(value)
    else:
        matched = sigs.is_production(value)
    return Verdict.ISSUER_MATCH if matched else Verdict.ISSUER_MISMATCH


def issuer_from_der(der: bytes) -> str:
    try:
        cert = x509.load_der_x509_certificate(der)
    except ValueError as exc:
        raise CertificateReadError(f"Invalid certificate: {exc}") from exc
    return cert.issuer.rfc4514_string()


def fetch_peer_certificate(host: str, *, port: int = DEFAULT_TLS_PORT, timeout: float = DEFAULT_TLS_TIMEOUT) -> bytes:
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    try:
        with socket.create_connection((host, port), timeout=timeout) as sock:
            with ctx.wrap_socket(sock, server_hostname=host) as tls:
                der = tls.getpeercert(binary_form=True)
    except (OSError, ssl.SSLError, UnicodeError) as exc:
        raise CertificateReadError(f"TLS connection to {host}:{port} failed: {exc}") from exc
    if not der:
        raise CertificateReadError(f"{host}:{port} presented no certificate.")
    return der


def fetch_issuer(host: str, *, port: int = DEFAULT_TLS_PORT, timeout: float = DEFAULT_TLS_TIMEOUT) -> str:
    """Return the RFC 4514 issuer DN of the leaf certificate served for *host*."""
    issuer = issuer_from_der(fetch_peer_certificate(host, port=port, timeout=timeout))
    log.debug("issuer for %s: %s", host, issuer)
    return issuer
