from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import FilesystemError
from .layout import EnsureResult, StackLayout, ensure_dir
from .modes import DeploymentMode

log = logging.getLogger(__name__)

STORE_FILE_MODE = 0o600


@dataclass(frozen=True)
class StoreOutcome:
    path: Path
    result: EnsureResult


def ensure_certificate_store(layout: StackLayout, mode: DeploymentMode) -> StoreOutcome:
    """Create the mode's ACME store once, empty and owner-only.

    An existing store is never truncated and its permission is left alone;
    the other mode's store is not touched.
    """
    path = layout.store_path(mode)
    ensure_dir(path.parent)
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, STORE_FILE_MODE)
    except FileExistsError:
        log.debug("certificate store already present: %s", path)
        return StoreOutcome(path=path, result=EnsureResult.ALREADY_PRESENT)
    except OSError as exc:
        raise FilesystemError(f"Cannot create certificate store {path}: {exc}") from exc
    try:
        # O_CREAT honours the umask; pin the final mode explicitly.
        os.fchmod(fd, STORE_FILE_MODE)
    except OSError as exc:
        raise FilesystemError(f"Cannot set permission on {path}: {exc}") from exc
    finally:
        os.close(fd)
    log.debug("created certificate store: %s", path)
    return StoreOutcome(path=path, result=EnsureResult.CREATED)
