from __future__ import annotations

from stackup_core.reconcile import StepStatus
from stackup_core.verdicts import Verdict

_VERDICT_STYLES = {
    Verdict.ISSUER_MATCH: "green",
    Verdict.ISSUER_MISMATCH: "yellow",
    Verdict.HTTP_TIMEOUT: "red",
    Verdict.CERT_UNREADABLE: "red",
    Verdict.HTTP_OK: "cyan",
    Verdict.PENDING: "dim",
}

_STEP_STYLES = {
    StepStatus.CREATED: "green",
    StepStatus.UPDATED: "cyan",
    StepStatus.UNCHANGED: "dim",
    StepStatus.FAILED: "yellow",
}


def format_age(seconds: int | None) -> str:
    if seconds is None:
        return "-"
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        minutes = seconds // 60
        secs = seconds % 60
        return f"{minutes}m{secs:02d}s"
    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    return f"{hours}h{minutes:02d}m"


def verdict_label(verdict: Verdict) -> str:
    style = _VERDICT_STYLES.get(verdict, "white")
    return f"[{style}]{verdict.value}[/]"


def step_label(status: StepStatus) -> str:
    style = _STEP_STYLES.get(status, "white")
    return f"[{style}]{status.value}[/]"
