from __future__ import annotations

import base64
import logging
import os
import secrets
import tempfile
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable

from .errors import FilesystemError

log = logging.getLogger(__name__)

ENV_FILE_MODE = 0o600
DEFAULT_HEX_BYTES = 32
DEFAULT_BASE64_BYTES = 48


class Generator(str, Enum):
    HEX = "hex"
    BASE64 = "base64"
    LITERAL = "literal"


@dataclass(frozen=True)
class SecretSpec:
    key: str
    generator: Generator = Generator.BASE64
    nbytes: int | None = None
    value: str = ""

    def generate(self) -> str:
        if self.generator is Generator.HEX:
            return gen_hex(self.nbytes or DEFAULT_HEX_BYTES)
        if self.generator is Generator.BASE64:
            return gen_base64(self.nbytes or DEFAULT_BASE64_BYTES)
        return self.value


def hex_secret(key: str, nbytes: int = DEFAULT_HEX_BYTES) -> SecretSpec:
    return SecretSpec(key=key, generator=Generator.HEX, nbytes=nbytes)


def b64_secret(key: str, nbytes: int = DEFAULT_BASE64_BYTES) -> SecretSpec:
    return SecretSpec(key=key, generator=Generator.BASE64, nbytes=nbytes)


def literal(key: str, value: str) -> SecretSpec:
    return SecretSpec(key=key, generator=Generator.LITERAL, value=value)


def gen_hex(nbytes: int = DEFAULT_HEX_BYTES) -> str:
    return secrets.token_hex(nbytes)


def gen_base64(nbytes: int = DEFAULT_BASE64_BYTES) -> str:
    return base64.b64encode(secrets.token_bytes(nbytes)).decode("ascii")


def read_env_file(path: Path) -> dict[str, str]:
    if not path.exists():
        return {}
    try:
        return read_env_content(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise FilesystemError(f"Cannot read {path}: {exc}") from exc


def read_env_content(content: str) -> dict[str, str]:
    data: dict[str, str] = {}
    for raw in content.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.startswith("export "):
            line = line[len("export ") :].strip()
        if "=" not in line:
            continue
        key, value = line.split("=", 1)
        data[key.strip()] = value.strip()
    return data


@dataclass
class ReconcileOutcome:
    path: Path
    created: bool = False
    added: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.created or bool(self.added)


def reconcile_secret_set(path: Path, required: Iterable[SecretSpec]) -> ReconcileOutcome:
    """Append every missing key of *required* to the env file at *path*.

    Existing lines (and therefore existing values) are kept verbatim and in
    order; new keys are appended in the order given. When nothing is missing
    the file content is left as is.
    """
    exists = path.exists()
    try:
        content = path.read_text(encoding="utf-8") if exists else ""
    except (OSError, UnicodeDecodeError) as exc:
        raise FilesystemError(f"Cannot read {path}: {exc}") from exc
    present = read_env_content(content)

    outcome = ReconcileOutcome(path=path, created=not exists)
    new_lines: list[str] = []
    for secret in required:
        if secret.key in present:
            continue
        value = secret.generate()
        present[secret.key] = value
        new_lines.append(f"{secret.key}={value}")
        outcome.added.append(secret.key)

    if exists and not new_lines:
        _restrict(path)
        return outcome

    if content and not content.endswith("\n"):
        content += "\n"
    content += "".join(f"{line}\n" for line in new_lines)
    write_atomic(path, content, mode=ENV_FILE_MODE)
    if outcome.added:
        log.debug("added %s to %s", ", ".join(outcome.added), path)
    return outcome


def write_atomic(path: Path, content: str, *, mode: int = ENV_FILE_MODE) -> None:
    """Write *content* next to *path* and rename it into place."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    except OSError as exc:
        raise FilesystemError(f"Cannot write {path}: {exc}") from exc
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
    except OSError as exc:
        tmp_path.unlink(missing_ok=True)
        raise FilesystemError(f"Cannot write {path}: {exc}") from exc


def _restrict(path: Path) -> None:
    try:
        os.chmod(path, ENV_FILE_MODE)
    except OSError as exc:
        raise FilesystemError(f"Cannot set permission on {path}: {exc}") from exc
