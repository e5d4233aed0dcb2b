from __future__ import annotations

import httpx
import pytest
from typer.testing import CliRunner

from stackup_cli import main
from stackup_cli.commands import install_cmd, verify_cmd
from stackup_cli.config import AppConfig
from stackup_core.layout import EnsureResult
from stackup_core.readiness import ReadinessVerifier

PRODUCTION_ISSUER = "CN=R3,O=Let's Encrypt,C=US"


def _text(result) -> str:
    return " ".join(result.output.split())


@pytest.fixture
def project(tmp_path, monkeypatch):
    cfg = AppConfig(project_dir=str(tmp_path / "project"), domain="example.test", email="admin@example.test")
    monkeypatch.setattr(install_cmd, "load_config", lambda: cfg)
    monkeypatch.setattr(verify_cmd, "load_config", lambda: cfg)
    monkeypatch.delenv("STACKUP_PROJECT_DIR", raising=False)
    return tmp_path / "project"


@pytest.fixture
def docker(monkeypatch):
    calls: list[str] = []
    monkeypatch.setattr(install_cmd, "ensure_network", lambda *_a, **_k: EnsureResult.ALREADY_PRESENT)
    monkeypatch.setattr(install_cmd, "compose_pull_up", lambda layout, **_k: calls.append(str(layout.compose_path)))
    monkeypatch.setattr(install_cmd, "compose_status", lambda *_a, **_k: "NAME  STATUS\nsupabase-db  Up (healthy)\n")
    return calls


def _fake_verifier(monkeypatch, *, down: set[str]) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503 if request.url.host in down else 200)

    class FakeVerifier(ReadinessVerifier):
        def __init__(self, options, **kwargs):
            super().__init__(
                options,
                client_factory=lambda _timeout: httpx.Client(transport=httpx.MockTransport(handler)),
                issuer_reader=lambda _host, **_k: PRODUCTION_ISSUER,
                sleep=lambda _s: None,
                **kwargs,
            )

    monkeypatch.setattr(verify_cmd, "ReadinessVerifier", FakeVerifier)


def test_install_prod_reports_unready_hostname(project, docker, monkeypatch) -> None:
    _fake_verifier(monkeypatch, down={"n8n.example.test"})

    result = CliRunner().invoke(
        main._build_app(),
        ["install", "--prod", "--skip-dns", "--attempts", "2", "--interval", "0"],
    )

    assert result.exit_code == 1
    assert "Verification failed for: n8n.example.test (http_timeout)" in _text(result)
    assert docker == [str(project / "docker-compose.yml")]
    assert (project / "letsencrypt" / "acme-production.json").is_file()
    assert not (project / "letsencrypt" / "acme-staging.json").exists()


def test_install_prod_all_ready(project, docker, monkeypatch) -> None:
    _fake_verifier(monkeypatch, down=set())

    result = CliRunner().invoke(
        main._build_app(),
        ["install", "--prod", "--skip-dns", "--attempts", "1", "--workers", "5"],
    )

    assert result.exit_code == 0, result.output
    assert "All hostnames serve the expected certificates." in _text(result)
    assert "supabase-db Up (healthy)" in _text(result)


def test_staging_install_with_production_issuer_fails(project, docker, monkeypatch) -> None:
    _fake_verifier(monkeypatch, down=set())

    result = CliRunner().invoke(main._build_app(), ["install", "--skip-dns", "--attempts", "1"])

    assert result.exit_code == 1
    assert "issuer_mismatch" in _text(result)


def test_skip_compose_only_writes_configuration(project, docker) -> None:
    result = CliRunner().invoke(main._build_app(), ["install", "--skip-dns", "--skip-compose"])

    assert result.exit_code == 0, result.output
    assert docker == []
    assert (project / "docker-compose.yml").is_file()
    assert (project / "supabase" / "docker" / ".env").is_file()
    assert (project / "letsencrypt" / "acme-staging.json").is_file()


def test_unknown_flag_is_rejected(project, docker) -> None:
    result = CliRunner().invoke(main._build_app(), ["install", "--production", "--skip-dns"])

    assert result.exit_code == 1
    assert not project.exists()


def test_unknown_flag_lenient_falls_back_to_staging(project, docker) -> None:
    result = CliRunner().invoke(
        main._build_app(), ["install", "--production", "--lenient", "--skip-dns", "--skip-compose"]
    )

    assert result.exit_code == 0, result.output
    assert (project / "letsencrypt" / "acme-staging.json").is_file()


def test_update_without_install_fails(project, docker) -> None:
    result = CliRunner().invoke(main._build_app(), ["install", "--update"])

    assert result.exit_code == 1
    assert "run an install first" in _text(result)
    assert docker == []


def test_missing_domain_fails(project, docker, monkeypatch) -> None:
    monkeypatch.setattr(install_cmd, "load_config", lambda: AppConfig(project_dir=str(project)))

    result = CliRunner().invoke(main._build_app(), ["install", "--skip-dns"])

    assert result.exit_code == 1
    assert "Missing --domain" in _text(result)
