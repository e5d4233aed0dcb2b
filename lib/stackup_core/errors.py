from __future__ import annotations


class StackupError(Exception):
    """Base error."""


class FilesystemError(StackupError):
    """Required directory or file could not be created or written."""


class PreconditionError(StackupError):
    """Required prior state is missing; nothing was mutated."""


class ComposeError(StackupError):
    def __init__(self, message: str, *, stdout: str | None = None, stderr: str | None = None) -> None:
        super().__init__(message)
        self.stdout = stdout or ""
        self.stderr = stderr or ""


class CertificateReadError(StackupError):
    """TLS handshake or certificate parse failed."""
