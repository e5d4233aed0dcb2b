from __future__ import annotations

import typer
from rich.markup import escape

from stackup_core.compose import check_update_preconditions, compose_pull_up, compose_status, ensure_network
from stackup_core.dns import detect_public_ip, require_dns
from stackup_core.errors import ComposeError, FilesystemError, PreconditionError
from stackup_core.layout import PROXY_NETWORK, EnsureResult, InstallState, StackLayout, make_install_state
from stackup_core.modes import DeploymentMode, select_mode
from stackup_core.reconcile import reconcile

from .. import console
from ..config import load_config, resolve_project_dir
from ..reporting import print_reconcile_report, report_compose_failure
from .verify_cmd import build_verify_options, finish_verification, run_verification

INSTALL_CONTEXT = {"ignore_unknown_options": True}


def _fail(msg: str) -> None:
    console.err(escape(msg))
    raise typer.Exit(code=1)


def _run_update(layout: StackLayout, *, skip_compose: bool) -> None:
    console.info("Update mode: configuration is left as is.")
    try:
        check_update_preconditions(layout)
    except PreconditionError as exc:
        _fail(str(exc))
    if skip_compose:
        console.warn("--skip-compose given; nothing to do.")
        return
    console.info("Pulling images and restarting services...")
    try:
        compose_pull_up(layout)
    except ComposeError as exc:
        report_compose_failure(exc, compose_path=layout.compose_path)
        raise typer.Exit(code=1)
    console.ok("Update finished.")


def _check_dns(state: InstallState) -> None:
    console.info("Checking DNS records...")
    public_ip = detect_public_ip()
    for check in require_dns(state.hostnames, public_ip):
        console.ok(f"{check.record.fqdn} points at {public_ip}")


def _start_stack(state: InstallState) -> None:
    network = ensure_network(PROXY_NETWORK)
    if network is EnsureResult.FAILED:
        _fail(f"Could not create docker network {PROXY_NETWORK}. Is the docker daemon running?")
    if network is EnsureResult.CREATED:
        console.ok(f"Created docker network {PROXY_NETWORK}")
    console.info("Pulling images and starting services...")
    try:
        compose_pull_up(state.layout)
    except ComposeError as exc:
        report_compose_failure(exc, compose_path=state.layout.compose_path)
        raise typer.Exit(code=1)
    console.ok("Containers started.")
    try:
        status = compose_status(state.layout)
    except ComposeError as exc:
        console.warn(f"Could not read container status: {escape(str(exc))}")
    else:
        if status.strip():
            console.print(escape(status.rstrip()))


def _print_summary(state: InstallState) -> None:
    console.rule("Services")
    for record in state.hostnames:
        console.print(f"  {record.name:<9} {record.url}")
    compose = state.layout.compose_path
    console.print("")
    console.print("Useful commands:")
    console.print(f"  docker compose -f {compose} logs -f [service]")
    console.print(f"  docker compose -f {compose} restart [service]")
    console.print(f"  docker compose -f {compose} down")
    console.print("  stackup --update")


def install(
    mode_flag: str | None = typer.Argument(
        None,
        metavar="[--prod|--update]",
        help="No flag: staging certificates. --prod: production certificates. --update: pull and restart only.",
    ),
    project_dir: str | None = typer.Option(None, "--project-dir", help="Project directory (default ~/project)."),
    domain: str | None = typer.Option(None, "--domain", help="Base domain, e.g. example.com."),
    email: str | None = typer.Option(None, "--email", help="Email for Let's Encrypt registration."),
    skip_dns: bool = typer.Option(False, "--skip-dns", help="Do not check that DNS points at this host."),
    skip_compose: bool = typer.Option(False, "--skip-compose", help="Only write configuration; do not start containers."),
    lenient: bool = typer.Option(False, "--lenient", help="Treat an unknown mode flag as staging instead of failing."),
    attempts: int | None = typer.Option(None, "--attempts", help="Polling attempts per hostname."),
    interval: float | None = typer.Option(None, "--interval", help="Seconds between polling attempts."),
    workers: int | None = typer.Option(None, "--workers", help="Hostnames verified in parallel."),
    deadline: float | None = typer.Option(None, "--deadline", help="Overall verification time budget in seconds."),
):
    """Install the stack, or update it with --update.

    Examples:
      stackup --domain example.com --email admin@example.com
      stackup --prod
      stackup --update
    """
    console.rule("[bold]Stack install[/]")
    try:
        mode = select_mode(mode_flag, strict=not lenient)
    except PreconditionError as exc:
        _fail(str(exc))

    cfg = load_config()
    layout = StackLayout.at(resolve_project_dir(cfg, project_dir))
    console.info(f"Project directory: {layout.project_dir}")

    if mode is DeploymentMode.UPDATE:
        _run_update(layout, skip_compose=skip_compose)
        return

    domain_value = (domain or cfg.domain or "").strip()
    email_value = (email or cfg.email or "").strip()
    if not domain_value:
        _fail("Missing --domain (or set it with `stackup settings set --domain ...`).")
    if not email_value:
        _fail("Missing --email (or set it with `stackup settings set --email ...`).")
    try:
        state = make_install_state(mode, layout.project_dir, domain_value, email_value)
    except ValueError as exc:
        _fail(str(exc))

    if mode is DeploymentMode.STAGING:
        console.warn("Using the Let's Encrypt staging CA; browsers will not trust these certificates.")
    else:
        console.ok("Using the production Let's Encrypt CA.")

    try:
        if not skip_dns:
            _check_dns(state)
        console.info("Reconciling configuration...")
        report = reconcile(state)
    except (PreconditionError, FilesystemError) as exc:
        _fail(str(exc))
    print_reconcile_report(report, root=layout.project_dir)

    if skip_compose:
        console.warn("--skip-compose given; containers were not started and nothing was verified.")
        return
    _start_stack(state)

    options = build_verify_options(cfg, attempts=attempts, interval=interval, workers=workers, deadline=deadline)
    readiness = run_verification(state.hostnames, mode.issuer_class, options)
    _print_summary(state)
    finish_verification(readiness)
