from __future__ import annotations

from typer.testing import CliRunner

from stackup_cli import config, main


def _app(monkeypatch, tmp_path):
    monkeypatch.setattr(config, "user_config_dir", lambda _: str(tmp_path))
    return main._build_app()


def test_settings_group_available(monkeypatch, tmp_path) -> None:
    result = CliRunner().invoke(_app(monkeypatch, tmp_path), ["--help"])
    assert result.exit_code == 0
    assert "settings" in result.output
    assert "verify" in result.output


def test_settings_set_then_show(monkeypatch, tmp_path) -> None:
    app = _app(monkeypatch, tmp_path)
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "settings", "set",
            "--domain", "Example.TEST",
            "--email", "admin@example.test",
            "--workers", "3",
            "--staging-signature", "pebble",
            "--staging-signature", "fake le",
        ],
    )
    assert result.exit_code == 0, result.output

    cfg = config.load_config()
    assert cfg.domain == "example.test"
    assert cfg.verify.workers == 3
    assert cfg.verify.staging_signatures == ["pebble", "fake le"]

    shown = runner.invoke(app, ["settings", "show"])
    assert shown.exit_code == 0
    assert "domain=example.test" in shown.output
    assert "workers=3" in shown.output


def test_settings_set_rejects_bad_email(monkeypatch, tmp_path) -> None:
    result = CliRunner().invoke(_app(monkeypatch, tmp_path), ["settings", "set", "--email", "nobody"])
    assert result.exit_code == 2
    assert not (tmp_path / "config.toml").exists()


def test_settings_init_keeps_existing_without_force(monkeypatch, tmp_path) -> None:
    app = _app(monkeypatch, tmp_path)
    runner = CliRunner()
    args = ["settings", "init", "--domain", "example.test", "--email", "a@example.test"]

    assert runner.invoke(app, args).exit_code == 0
    again = runner.invoke(app, ["settings", "init", "--domain", "other.test", "--email", "b@other.test"])

    assert again.exit_code == 0
    assert "already exists" in again.output
    assert config.load_config().domain == "example.test"


def test_settings_zero_interval_is_kept(monkeypatch, tmp_path) -> None:
    app = _app(monkeypatch, tmp_path)

    result = CliRunner().invoke(app, ["settings", "set", "--interval", "0"])

    assert result.exit_code == 0, result.output
    assert config.load_config().verify.interval == 0.0


def test_settings_negative_interval_is_rejected(monkeypatch, tmp_path) -> None:
    result = CliRunner().invoke(_app(monkeypatch, tmp_path), ["settings", "set", "--interval", "-1"])
    assert result.exit_code == 2
