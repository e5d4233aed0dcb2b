from __future__ import annotations

from pathlib import Path

from rich.markup import escape
from rich.table import Table

from stackup_core.errors import ComposeError
from stackup_core.readiness import ReadinessReport
from stackup_core.reconcile import ReconcileReport

from . import console
from .formatting import format_age, step_label, verdict_label

_TAIL_LINES = 20


def _relative(path: Path, root: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


def print_reconcile_report(report: ReconcileReport, *, root: Path) -> None:
    table = Table(title="Configuration", show_lines=False)
    table.add_column("Step")
    table.add_column("Path")
    table.add_column("Result")
    table.add_column("Detail")
    for step in report.steps:
        table.add_row(step.name, escape(_relative(step.path, root)), step_label(step.status), escape(step.detail))
    console.print(table)
    for step in report.warnings:
        console.warn(f"{step.name}: {escape(str(step.path))} {escape(step.detail)}")


def print_readiness_report(report: ReadinessReport, *, interval: float) -> None:
    table = Table(title=f"Readiness ({report.expected.value} certificates)")
    table.add_column("Hostname")
    table.add_column("Verdict")
    table.add_column("HTTP")
    table.add_column("Waited")
    table.add_column("Issuer / detail")
    for result in report.results:
        waited = int(max(0, result.attempts - 1) * interval)
        note = result.issuer or ""
        if result.detail:
            note = f"{note} ({result.detail})" if note else result.detail
        table.add_row(
            result.record.fqdn,
            verdict_label(result.verdict),
            str(result.status_code or "-"),
            format_age(waited),
            escape(note),
        )
    console.print(table)


def _tail(text: str) -> str:
    lines = (text or "").strip().splitlines()
    return "\n".join(lines[-_TAIL_LINES:])


def report_compose_failure(exc: ComposeError, *, compose_path: Path) -> None:
    console.err(escape(str(exc)))
    stderr = _tail(exc.stderr)
    if stderr:
        console.err("Docker/Compose stderr:")
        console.print(escape(stderr))
    console.info("Useful checks:")
    console.print(f"  docker compose -f {compose_path} ps")
    console.print(f"  docker compose -f {compose_path} logs -f traefik")
