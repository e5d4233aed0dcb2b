import pytest

from stackup_core.layout import build_hostnames, make_install_state, normalize_domain_base
from stackup_core.modes import DeploymentMode


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("Example.COM", "example.com"),
        ("https://example.com/path", "example.com"),
        ("example.com.", "example.com"),
        ("my-site.example.co.uk", "my-site.example.co.uk"),
    ],
)
def test_normalize_domain_base(raw, expected) -> None:
    assert normalize_domain_base(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "",
        "localhost",
        "a" * 64 + ".com",
        "exa mple.com",
        "example..com",
        "-example.com",
        "example-.com",
        "under_score.com",
        ".".join(["a" * 60] * 4) + ".com",
    ],
)
def test_normalize_domain_base_rejects(raw) -> None:
    with pytest.raises(ValueError):
        normalize_domain_base(raw)


def test_longest_hostname_fits() -> None:
    records = build_hostnames("example.test")
    assert {r.fqdn for r in records} >= {"example.test", "studio.supabase.example.test"}


def test_install_state_rejects_bad_domain(tmp_path) -> None:
    with pytest.raises(ValueError):
        make_install_state(DeploymentMode.STAGING, tmp_path, "a" * 64 + ".com", "admin@example.test")
