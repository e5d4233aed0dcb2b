from .errors import (
    CertificateReadError,
    ComposeError,
    FilesystemError,
    PreconditionError,
    StackupError,
)
from .layout import EnsureResult, HostnameRecord, InstallState, StackLayout, make_install_state
from .modes import DeploymentMode, IssuerClass, select_mode
from .readiness import ReadinessReport, ReadinessVerifier, VerifyOptions, run_readiness_pass
from .reconcile import ReconcileReport, reconcile
from .verdicts import Verdict

__all__ = [
    "CertificateReadError",
    "ComposeError",
    "DeploymentMode",
    "EnsureResult",
    "FilesystemError",
    "HostnameRecord",
    "InstallState",
    "IssuerClass",
    "PreconditionError",
    "ReadinessReport",
    "ReadinessVerifier",
    "ReconcileReport",
    "StackLayout",
    "StackupError",
    "Verdict",
    "VerifyOptions",
    "make_install_state",
    "reconcile",
    "run_readiness_pass",
    "select_mode",
]
