from __future__ import annotations

import typer

from stackup_core.layout import HostnameRecord, build_hostnames
from stackup_core.modes import IssuerClass
from stackup_core.readiness import (
    HostnameResult,
    HostState,
    ReadinessReport,
    ReadinessVerifier,
    VerifyOptions,
)

from .. import console
from ..config import AppConfig, load_config
from ..reporting import print_readiness_report


def build_verify_options(
    cfg: AppConfig,
    *,
    attempts: int | None = None,
    interval: float | None = None,
    workers: int | None = None,
    deadline: float | None = None,
) -> VerifyOptions:
    return VerifyOptions(
        attempts=attempts if attempts and attempts > 0 else cfg.verify.attempts,
        interval=interval if interval is not None and interval >= 0 else cfg.verify.interval,
        workers=workers if workers and workers > 0 else cfg.verify.workers,
        deadline=deadline,
        signatures=cfg.verify.signatures(),
    )


def _progress(result: HostnameResult) -> None:
    fqdn = result.record.fqdn
    if result.state is HostState.POLLING:
        console.info(f"Waiting for https://{fqdn} ...")
    elif result.state is HostState.RESPONDING:
        console.info(f"{fqdn} answered with HTTP {result.status_code}; checking certificate issuer...")


def run_verification(
    records: list[HostnameRecord],
    expected: IssuerClass,
    options: VerifyOptions,
) -> ReadinessReport:
    console.info(
        f"Verifying {len(records)} hostname(s), up to {options.attempts} attempt(s) "
        f"every {options.interval:g}s, expecting {expected.value} certificates."
    )
    verifier = ReadinessVerifier(options, on_transition=_progress)
    report = verifier.run(records, expected)
    print_readiness_report(report, interval=options.interval)
    return report


def finish_verification(report: ReadinessReport) -> None:
    if report.ok:
        console.ok("All hostnames serve the expected certificates.")
        return
    names = ", ".join(f"{r.record.fqdn} ({r.verdict.value})" for r in report.failed)
    console.err(f"Verification failed for: {names}")
    raise typer.Exit(code=1)


def verify(
    prod: bool = typer.Option(False, "--prod", help="Expect production certificates instead of staging."),
    domain: str | None = typer.Option(None, "--domain", help="Base domain (defaults to settings)."),
    attempts: int | None = typer.Option(None, "--attempts", help="Polling attempts per hostname."),
    interval: float | None = typer.Option(None, "--interval", help="Seconds between polling attempts."),
    workers: int | None = typer.Option(None, "--workers", help="Hostnames checked in parallel."),
    deadline: float | None = typer.Option(None, "--deadline", help="Overall time budget in seconds."),
):
    """Run a readiness pass against an already running stack.

    Examples:
      stackup verify --domain example.com
      stackup verify --prod --workers 5
    """
    cfg = load_config()
    domain_value = (domain or cfg.domain or "").strip()
    if not domain_value:
        console.err("Missing --domain (or set it with `stackup settings set --domain ...`).")
        raise typer.Exit(code=1)
    try:
        records = build_hostnames(domain_value)
    except ValueError as exc:
        console.err(str(exc))
        raise typer.Exit(code=1)
    expected = IssuerClass.PRODUCTION if prod else IssuerClass.STAGING
    options = build_verify_options(cfg, attempts=attempts, interval=interval, workers=workers, deadline=deadline)
    report = run_verification(records, expected, options)
    finish_verification(report)
