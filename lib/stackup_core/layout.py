from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .errors import FilesystemError
from .modes import DeploymentMode

PROXY_NETWORK = "traefik-net"
CERT_RESOLVER = "letsencrypt"
CONTAINER_STORE_DIR = "/letsencrypt"

MAX_DOMAIN_LENGTH = 253
_LABEL_RE = re.compile(r"^[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?$")


class EnsureResult(str, Enum):
    CREATED = "created"
    ALREADY_PRESENT = "already_present"
    FAILED = "failed"


@dataclass(frozen=True)
class HostnameRecord:
    name: str
    fqdn: str
    port: int | None
    service: str

    @property
    def url(self) -> str:
        return f"https://{self.fqdn}"


def build_hostnames(domain_base: str) -> list[HostnameRecord]:
    base = normalize_domain_base(domain_base)
    return [
        HostnameRecord(name="traefik", fqdn=f"traefik.{base}", port=None, service="api@internal"),
        HostnameRecord(name="site", fqdn=base, port=80, service="site"),
        HostnameRecord(name="n8n", fqdn=f"n8n.{base}", port=5678, service="n8n"),
        HostnameRecord(name="supabase", fqdn=f"supabase.{base}", port=8000, service="kong"),
        HostnameRecord(name="studio", fqdn=f"studio.supabase.{base}", port=3000, service="studio"),
    ]


def normalize_domain_base(raw: str) -> str:
    value = (raw or "").strip().lower().rstrip(".")
    if "://" in value:
        value = value.split("://", 1)[1]
    value = value.split("/", 1)[0]
    if not value or "." not in value:
        raise ValueError(f"Invalid base domain: {raw!r}")
    # The longest derived name is studio.supabase.<base>.
    if len(f"studio.supabase.{value}") > MAX_DOMAIN_LENGTH:
        raise ValueError(f"Base domain is too long: {raw!r}")
    for label in value.split("."):
        if not _LABEL_RE.match(label):
            raise ValueError(f"Invalid label {label!r} in base domain {raw!r}")
    return value


@dataclass(frozen=True)
class StackLayout:
    project_dir: Path

    @classmethod
    def at(cls, project_dir: str | os.PathLike[str]) -> StackLayout:
        return cls(project_dir=Path(project_dir).expanduser().resolve())

    @property
    def compose_path(self) -> Path:
        return self.project_dir / "docker-compose.yml"

    @property
    def traefik_dir(self) -> Path:
        return self.project_dir / "traefik"

    @property
    def proxy_config_path(self) -> Path:
        return self.traefik_dir / "traefik.yml"

    @property
    def letsencrypt_dir(self) -> Path:
        return self.project_dir / "letsencrypt"

    @property
    def supabase_docker_dir(self) -> Path:
        return self.project_dir / "supabase" / "docker"

    @property
    def supabase_env_path(self) -> Path:
        return self.supabase_docker_dir / ".env"

    @property
    def n8n_dir(self) -> Path:
        return self.project_dir / "n8n"

    @property
    def n8n_env_path(self) -> Path:
        return self.n8n_dir / ".env"

    @property
    def n8n_data_dir(self) -> Path:
        return self.n8n_dir / "data"

    @property
    def site_dir(self) -> Path:
        return self.project_dir / "site"

    @property
    def kong_config_path(self) -> Path:
        return self.project_dir / "volumes" / "api" / "kong.yml"

    @property
    def db_init_dir(self) -> Path:
        return self.project_dir / "volumes" / "db"

    @property
    def db_data_dir(self) -> Path:
        return self.db_init_dir / "data"

    @property
    def storage_dir(self) -> Path:
        return self.project_dir / "volumes" / "storage"

    @property
    def functions_dir(self) -> Path:
        return self.project_dir / "volumes" / "functions"

    @property
    def vector_config_path(self) -> Path:
        return self.project_dir / "volumes" / "logs" / "vector.yml"

    def store_filename(self, mode: DeploymentMode) -> str:
        if not mode.generates_config:
            raise ValueError("Update mode has no certificate store.")
        return f"acme-{mode.value}.json"

    def store_path(self, mode: DeploymentMode) -> Path:
        return self.letsencrypt_dir / self.store_filename(mode)

    def container_store_path(self, mode: DeploymentMode) -> str:
        return f"{CONTAINER_STORE_DIR}/{self.store_filename(mode)}"

    def directories(self) -> list[Path]:
        return [
            self.project_dir,
            self.traefik_dir,
            self.letsencrypt_dir,
            self.supabase_docker_dir,
            self.n8n_data_dir,
            self.site_dir,
            self.kong_config_path.parent,
            self.db_data_dir,
            self.storage_dir,
            self.functions_dir / "main",
            self.vector_config_path.parent,
        ]


@dataclass(frozen=True)
class InstallState:
    mode: DeploymentMode
    layout: StackLayout
    domain_base: str
    acme_email: str
    hostnames: list[HostnameRecord] = field(default_factory=list)

    def hostname(self, name: str) -> HostnameRecord:
        for record in self.hostnames:
            if record.name == name:
                return record
        raise KeyError(name)


def make_install_state(
    mode: DeploymentMode,
    project_dir: str | os.PathLike[str],
    domain_base: str,
    acme_email: str,
) -> InstallState:
    base = normalize_domain_base(domain_base)
    if "@" not in (acme_email or ""):
        raise ValueError("ACME email must include '@'.")
    return InstallState(
        mode=mode,
        layout=StackLayout.at(project_dir),
        domain_base=base,
        acme_email=acme_email.strip(),
        hostnames=build_hostnames(base),
    )


def ensure_dir(path: Path) -> EnsureResult:
    if path.is_dir():
        return EnsureResult.ALREADY_PRESENT
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FilesystemError(f"Cannot create directory {path}: {exc}") from exc
    return EnsureResult.CREATED
