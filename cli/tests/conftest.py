from __future__ import annotations

import pytest

from stackup_core.layout import InstallState, make_install_state
from stackup_core.modes import DeploymentMode


@pytest.fixture
def make_state(tmp_path):
    def _make(mode: DeploymentMode = DeploymentMode.STAGING) -> InstallState:
        return make_install_state(mode, tmp_path / "project", "example.test", "admin@example.test")

    return _make
