from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from .certstore import ensure_certificate_store
from .envfile import read_env_file, reconcile_secret_set, write_atomic
from .errors import FilesystemError
from .layout import EnsureResult, InstallState, ensure_dir
from .manifests import n8n_env_manifest, supabase_env_manifest
from .templates import (
    proxy_config_for,
    render_compose,
    render_db_init_scripts,
    render_functions_main,
    render_kong_config,
    render_proxy_config,
    render_site_dockerfile,
    render_site_index,
    render_vector_config,
)

log = logging.getLogger(__name__)

DERIVED_FILE_MODE = 0o644
N8N_UID = 1000
POSTGRES_UID = 999


class StepStatus(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class Step:
    name: str
    path: Path
    status: StepStatus
    detail: str = ""


@dataclass
class ReconcileReport:
    steps: list[Step] = field(default_factory=list)

    def add(self, name: str, path: Path, status: StepStatus, detail: str = "") -> Step:
        step = Step(name=name, path=path, status=status, detail=detail)
        self.steps.append(step)
        log.debug("%s %s: %s %s", name, path, status.value, detail)
        return step

    @property
    def warnings(self) -> list[Step]:
        return [s for s in self.steps if s.status is StepStatus.FAILED]


def _from_ensure(result: EnsureResult) -> StepStatus:
    if result is EnsureResult.CREATED:
        return StepStatus.CREATED
    if result is EnsureResult.ALREADY_PRESENT:
        return StepStatus.UNCHANGED
    return StepStatus.FAILED


def write_derived(path: Path, content: str) -> StepStatus:
    """Overwrite a generated file; report whether its content changed."""
    existed = path.exists()
    if existed:
        try:
            if path.read_text(encoding="utf-8") == content:
                return StepStatus.UNCHANGED
        except (OSError, UnicodeDecodeError) as exc:
            raise FilesystemError(f"Cannot read {path}: {exc}") from exc
    write_atomic(path, content, mode=DERIVED_FILE_MODE)
    return StepStatus.UPDATED if existed else StepStatus.CREATED


def seed_file(path: Path, content: str) -> EnsureResult:
    """Write *content* only when nothing exists at *path* yet."""
    if path.exists():
        return EnsureResult.ALREADY_PRESENT
    write_atomic(path, content, mode=DERIVED_FILE_MODE)
    return EnsureResult.CREATED


def ensure_owner(path: Path, uid: int, gid: int) -> EnsureResult:
    """Hand a bind-mounted data dir to the container user, if we are allowed to."""
    try:
        st = path.stat()
    except OSError:
        return EnsureResult.FAILED
    if st.st_uid == uid and st.st_gid == gid:
        return EnsureResult.ALREADY_PRESENT
    try:
        os.chown(path, uid, gid)
    except OSError as exc:
        log.debug("chown %s to %s:%s failed: %s", path, uid, gid, exc)
        return EnsureResult.FAILED
    return EnsureResult.CREATED


def reconcile(state: InstallState) -> ReconcileReport:
    """Bring the project directory in line with *state*.

    Raises :class:`FilesystemError` on the first write that fails.
    """
    if not state.mode.generates_config:
        raise ValueError("Update mode does not reconcile configuration.")
    layout = state.layout
    report = ReconcileReport()

    # Unreadable env files abort before anything is written.
    for path in (layout.supabase_env_path, layout.n8n_env_path):
        read_env_file(path)

    for directory in layout.directories():
        report.add("directory", directory, _from_ensure(ensure_dir(directory)))

    store = ensure_certificate_store(layout, state.mode)
    report.add("certificate store", store.path, _from_ensure(store.result))

    proxy_text = render_proxy_config(proxy_config_for(state))
    report.add("proxy config", layout.proxy_config_path, write_derived(layout.proxy_config_path, proxy_text))

    for name, path, manifest in (
        ("supabase env", layout.supabase_env_path, supabase_env_manifest(state)),
        ("n8n env", layout.n8n_env_path, n8n_env_manifest(state)),
    ):
        outcome = reconcile_secret_set(path, manifest)
        if outcome.created:
            status = StepStatus.CREATED
        elif outcome.added:
            status = StepStatus.UPDATED
        else:
            status = StepStatus.UNCHANGED
        detail = f"added {len(outcome.added)} key(s)" if outcome.added else ""
        report.add(name, path, status, detail)

    report.add("compose file", layout.compose_path, write_derived(layout.compose_path, render_compose(state)))
    report.add("site page", layout.site_dir / "index.html", write_derived(layout.site_dir / "index.html", render_site_index(state)))
    report.add("site image", layout.site_dir / "Dockerfile", write_derived(layout.site_dir / "Dockerfile", render_site_dockerfile()))

    env = read_env_file(layout.supabase_env_path)
    kong_text = render_kong_config(env.get("ANON_KEY", ""), env.get("SERVICE_ROLE_KEY", ""))
    report.add("gateway config", layout.kong_config_path, _from_ensure(seed_file(layout.kong_config_path, kong_text)))

    report.add("log shipping", layout.vector_config_path, write_derived(layout.vector_config_path, render_vector_config()))
    for name, sql in render_db_init_scripts().items():
        path = layout.db_init_dir / name
        report.add("database init", path, _from_ensure(seed_file(path, sql)))
    main_path = layout.functions_dir / "main" / "index.ts"
    report.add("edge functions", main_path, _from_ensure(seed_file(main_path, render_functions_main())))

    for path, uid in ((layout.n8n_data_dir, N8N_UID), (layout.db_data_dir, POSTGRES_UID)):
        result = ensure_owner(path, uid, uid)
        detail = f"could not chown to {uid}:{uid}" if result is EnsureResult.FAILED else ""
        report.add("data ownership", path, _from_ensure(result), detail)

    return report
