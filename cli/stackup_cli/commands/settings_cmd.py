from __future__ import annotations

import os

import typer

from stackup_core.layout import normalize_domain_base

from .. import console
from ..config import config_path, default_config, load_config, save_config

app = typer.Typer(help="Manage local settings (~/.config/stackup/config.toml).")


def _clean_domain(raw: str) -> str:
    try:
        return normalize_domain_base(raw)
    except ValueError as exc:
        console.err(str(exc))
        raise typer.Exit(code=2)


def _clean_email(raw: str) -> str:
    value = raw.strip()
    if "@" not in value:
        console.err("Email must include '@'.")
        raise typer.Exit(code=2)
    return value


@app.command("init")
def init_settings(
        force: bool = typer.Option(False, "--force", help="Overwrite existing config."),
        domain: str = typer.Option(..., "--domain", prompt="Base domain", help="Base domain like example.com"),
        email: str = typer.Option(..., "--email", prompt="Let's Encrypt email", help="ACME registration email."),
        project_dir: str = typer.Option("~/project", "--project-dir", help="Project directory."),
):
    path = config_path()
    if os.path.exists(path) and not force:
        console.info(f"Config already exists: {path}")
        console.info("Use --force to overwrite.")
        return

    cfg = default_config()
    cfg.domain = _clean_domain(domain)
    cfg.email = _clean_email(email)
    cfg.project_dir = project_dir.strip() or cfg.project_dir
    saved = save_config(cfg)
    console.ok(f"Config written: {saved}")


@app.command("show")
def show_settings():
    cfg = load_config()
    console.console.print(
        f"project_dir={cfg.project_dir} domain={cfg.domain or '(empty)'} email={cfg.email or '(empty)'}"
    )
    console.console.print(
        f"attempts={cfg.verify.attempts} interval={cfg.verify.interval:g} workers={cfg.verify.workers}",
        markup=False,
    )
    console.console.print(f"staging_signatures={cfg.verify.staging_signatures}", markup=False)
    console.console.print(f"production_signatures={cfg.verify.production_signatures}", markup=False)


@app.command("set")
def set_setting(
        domain: str | None = typer.Option(None, "--domain", help="Set base domain."),
        email: str | None = typer.Option(None, "--email", help="Set ACME email."),
        project_dir: str | None = typer.Option(None, "--project-dir", help="Set project directory."),
        attempts: int | None = typer.Option(None, "--attempts", min=1, help="Polling attempts per hostname."),
        interval: float | None = typer.Option(None, "--interval", min=0.0, help="Seconds between attempts."),
        workers: int | None = typer.Option(None, "--workers", min=1, help="Hostnames verified in parallel."),
        staging_signature: list[str] | None = typer.Option(
            None,
            "--staging-signature",
            help="Issuer substring that marks a staging certificate (repeatable, replaces the list).",
        ),
        production_signature: list[str] | None = typer.Option(
            None,
            "--production-signature",
            help="Issuer substring that marks a production certificate (repeatable, replaces the list).",
        ),
):
    cfg = load_config()
    if domain is not None:
        cfg.domain = _clean_domain(domain)
    if email is not None:
        cfg.email = _clean_email(email)
    if project_dir is not None:
        cfg.project_dir = project_dir.strip() or cfg.project_dir
    if attempts is not None:
        cfg.verify.attempts = attempts
    if interval is not None:
        cfg.verify.interval = interval
    if workers is not None:
        cfg.verify.workers = workers
    if staging_signature:
        cfg.verify.staging_signatures = [s.strip() for s in staging_signature if s.strip()]
    if production_signature:
        cfg.verify.production_signatures = [s.strip() for s in production_signature if s.strip()]
    saved = save_config(cfg)
    console.ok(f"Settings updated: {saved}")
