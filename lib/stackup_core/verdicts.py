from __future__ import annotations

from enum import Enum


class Verdict(str, Enum):
    PENDING = "pending"
    HTTP_OK = "http_ok"
    HTTP_TIMEOUT = "http_timeout"
    ISSUER_MATCH = "issuer_match"
    ISSUER_MISMATCH = "issuer_mismatch"
    CERT_UNREADABLE = "cert_unreadable"
