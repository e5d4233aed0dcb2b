from __future__ import annotations

import logging
import subprocess
from typing import Callable, Iterable

from .errors import ComposeError, PreconditionError
from .layout import PROXY_NETWORK, EnsureResult, StackLayout

log = logging.getLogger(__name__)

Runner = Callable[[list[str]], subprocess.CompletedProcess[str]]


def _default_runner(cmd: list[str]) -> subprocess.CompletedProcess[str]:
    return subprocess.run(cmd, check=False, text=True, capture_output=True)


def compose_command(layout: StackLayout, args: Iterable[str]) -> list[str]:
    cmd = ["docker", "compose", "-f", str(layout.compose_path)]
    if layout.supabase_env_path.exists():
        cmd += ["--env-file", str(layout.supabase_env_path)]
    return [*cmd, *args]


def run_compose(
    layout: StackLayout,
    args: Iterable[str],
    *,
    runner: Runner | None = None,
) -> subprocess.CompletedProcess[str]:
    args = list(args)
    cmd = compose_command(layout, args)
    log.debug("running %s", " ".join(cmd))
    try:
        res = (runner or _default_runner)(cmd)
    except FileNotFoundError as exc:
        raise ComposeError("docker executable not found.") from exc
    if res.returncode != 0:
        raise ComposeError(
            f"docker compose {' '.join(args)} failed with exit code {res.returncode}.",
            stdout=res.stdout,
            stderr=res.stderr,
        )
    return res


def compose_pull_up(layout: StackLayout, *, runner: Runner | None = None) -> None:
    run_compose(layout, ["pull"], runner=runner)
    run_compose(layout, ["up", "-d", "--build"], runner=runner)


def compose_status(layout: StackLayout, *, runner: Runner | None = None) -> str:
    """Return the `compose ps` table for the running stack."""
    return run_compose(layout, ["ps"], runner=runner).stdout or ""


def network_exists(name: str = PROXY_NETWORK, *, runner: Runner | None = None) -> bool:
    try:
        res = (runner or _default_runner)(["docker", "network", "ls", "--format", "{{.Name}}"])
    except FileNotFoundError:
        return False
    if res.returncode != 0:
        return False
    return name in {line.strip() for line in (res.stdout or "").splitlines()}


def ensure_network(name: str = PROXY_NETWORK, *, runner: Runner | None = None) -> EnsureResult:
    if network_exists(name, runner=runner):
        return EnsureResult.ALREADY_PRESENT
    try:
        res = (runner or _default_runner)(["docker", "network", "create", name])
    except FileNotFoundError:
        return EnsureResult.FAILED
    if res.returncode != 0:
        log.debug("network create %s failed: %s", name, (res.stderr or "").strip())
        return EnsureResult.FAILED
    return EnsureResult.CREATED


def check_update_preconditions(layout: StackLayout, *, runner: Runner | None = None) -> None:
    """Refuse an update when no previous install is found."""
    if not layout.project_dir.is_dir():
        raise PreconditionError(f"Project not found at {layout.project_dir}; run an install first.")
    if not layout.compose_path.is_file():
        raise PreconditionError(f"Compose file not found at {layout.compose_path}; run an install first.")
    if not layout.supabase_docker_dir.is_dir():
        raise PreconditionError(f"Supabase directory not found at {layout.supabase_docker_dir}; run an install first.")
    if not network_exists(PROXY_NETWORK, runner=runner):
        raise PreconditionError(f"Docker network {PROXY_NETWORK} not found; run an install first.")
