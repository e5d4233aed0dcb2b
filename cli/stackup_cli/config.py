from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomli_w
from platformdirs import user_config_dir

from stackup_core.issuer import (
    DEFAULT_PRODUCTION_SIGNATURES,
    DEFAULT_STAGING_SIGNATURES,
    IssuerSignatures,
)
from stackup_core.polling import DEFAULT_ATTEMPTS, DEFAULT_INTERVAL

APP_NAME = "stackup"
CONFIG_FILENAME = "config.toml"
ENV_PROJECT_DIR = "STACKUP_PROJECT_DIR"
DEFAULT_PROJECT_DIR = "~/project"


@dataclass
class VerifyConfig:
    attempts: int = DEFAULT_ATTEMPTS
    interval: float = DEFAULT_INTERVAL
    workers: int = 1
    staging_signatures: list[str] = field(default_factory=lambda: list(DEFAULT_STAGING_SIGNATURES))
    production_signatures: list[str] = field(default_factory=lambda: list(DEFAULT_PRODUCTION_SIGNATURES))

    def signatures(self) -> IssuerSignatures:
        return IssuerSignatures(
            staging=tuple(self.staging_signatures),
            production=tuple(self.production_signatures),
        )


@dataclass
class AppConfig:
    project_dir: str = DEFAULT_PROJECT_DIR
    domain: str = ""
    email: str = ""
    verify: VerifyConfig = field(default_factory=VerifyConfig)


def config_path() -> str:
    return f"{user_config_dir(APP_NAME)}/{CONFIG_FILENAME}"


def default_config() -> AppConfig:
    return AppConfig()


def ensure_parent_dir(path: str) -> None:
    os.makedirs(os.path.dirname(path), exist_ok=True)


def to_toml(cfg: AppConfig) -> dict[str, Any]:
    return {
        "project_dir": cfg.project_dir,
        "domain": cfg.domain,
        "email": cfg.email,
        "verify": {
            "attempts": cfg.verify.attempts,
            "interval": cfg.verify.interval,
            "workers": cfg.verify.workers,
            "staging_signatures": list(cfg.verify.staging_signatures),
            "production_signatures": list(cfg.verify.production_signatures),
        },
    }


def _str_list(value: Any, fallback: tuple[str, ...]) -> list[str]:
    if not isinstance(value, list):
        return list(fallback)
    items = [str(v).strip() for v in value if str(v).strip()]
    return items or list(fallback)


def _positive(value: Any, fallback, cast, *, allow_zero: bool = False):
    try:
        parsed = cast(value)
    except (TypeError, ValueError):
        return fallback
    if parsed > 0 or (allow_zero and parsed == 0):
        return parsed
    return fallback


def from_toml(data: dict[str, Any]) -> AppConfig:
    cfg = default_config()
    cfg.project_dir = str(data.get("project_dir") or DEFAULT_PROJECT_DIR).strip()
    cfg.domain = str(data.get("domain") or "").strip()
    cfg.email = str(data.get("email") or "").strip()
    verify_raw = data.get("verify") or {}
    if isinstance(verify_raw, dict):
        cfg.verify = VerifyConfig(
            attempts=_positive(verify_raw.get("attempts"), DEFAULT_ATTEMPTS, int),
            interval=_positive(verify_raw.get("interval"), DEFAULT_INTERVAL, float, allow_zero=True),
            workers=_positive(verify_raw.get("workers"), 1, int),
            staging_signatures=_str_list(verify_raw.get("staging_signatures"), DEFAULT_STAGING_SIGNATURES),
            production_signatures=_str_list(
                verify_raw.get("production_signatures"), DEFAULT_PRODUCTION_SIGNATURES
            ),
        )
    return cfg


def load_config() -> AppConfig:
    path = config_path()
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except FileNotFoundError:
        return default_config()
    return from_toml(data)


def save_config(cfg: AppConfig) -> str:
    path = config_path()
    ensure_parent_dir(path)
    with open(path, "wb") as f:
        f.write(tomli_w.dumps(to_toml(cfg)).encode("utf-8"))
    os.chmod(path, 0o600)
    return path


def resolve_project_dir(cfg: AppConfig, override: str | None = None) -> Path:
    if override:
        return Path(override).expanduser()
    env_value = os.getenv(ENV_PROJECT_DIR, "").strip()
    if env_value:
        return Path(env_value).expanduser()
    return Path(cfg.project_dir or DEFAULT_PROJECT_DIR).expanduser()
