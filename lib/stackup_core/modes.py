from __future__ import annotations

import logging
from enum import Enum

from .errors import PreconditionError

log = logging.getLogger(__name__)

STAGING_ACME_DIRECTORY = "https://acme-staging-v02.api.letsencrypt.org/directory"
PRODUCTION_ACME_DIRECTORY = "https://acme-v02.api.letsencrypt.org/directory"

PROD_FLAG = "--prod"
UPDATE_FLAG = "--update"
MODE_FLAGS = (PROD_FLAG, UPDATE_FLAG)


class DeploymentMode(str, Enum):
    STAGING = "staging"
    PRODUCTION = "production"
    UPDATE = "update"

    @property
    def generates_config(self) -> bool:
        return self is not DeploymentMode.UPDATE

    @property
    def acme_directory(self) -> str | None:
        # Production is Traefik's default CA, so only staging overrides it.
        if self is DeploymentMode.STAGING:
            return STAGING_ACME_DIRECTORY
        return None

    @property
    def issuer_class(self) -> IssuerClass:
        if self is DeploymentMode.STAGING:
            return IssuerClass.STAGING
        if self is DeploymentMode.PRODUCTION:
            return IssuerClass.PRODUCTION
        raise ValueError("Update mode has no expected certificate class.")


class IssuerClass(str, Enum):
    STAGING = "staging"
    PRODUCTION = "production"


def select_mode(arg: str | None, *, strict: bool = True) -> DeploymentMode:
    """Map the optional command-line flag to a deployment mode.

    ``None`` or an empty string selects staging. With ``strict=False`` any
    unrecognised value also falls back to staging (the behaviour of the old
    shell installer); otherwise it raises :class:`PreconditionError`.
    """
    value = (arg or "").strip()
    if not value:
        return DeploymentMode.STAGING
    if value == PROD_FLAG:
        return DeploymentMode.PRODUCTION
    if value == UPDATE_FLAG:
        return DeploymentMode.UPDATE
    if strict:
        raise PreconditionError(
            f"Unknown mode flag: {value!r}. Use no flag (staging), {PROD_FLAG} or {UPDATE_FLAG}."
        )
    log.warning("unknown mode flag %r, falling back to staging", value)
    return DeploymentMode.STAGING
