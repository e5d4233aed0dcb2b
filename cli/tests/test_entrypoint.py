import pytest

from stackup_cli.entrypoint import route_argv


@pytest.mark.parametrize(
    ("argv", "expected"),
    [
        (["stackup"], ["stackup", "install"]),
        (["stackup", "--prod"], ["stackup", "install", "--prod"]),
        (["stackup", "--update"], ["stackup", "install", "--update"]),
        (["stackup", "--domain", "example.test"], ["stackup", "install", "--domain", "example.test"]),
        (["stackup", "-v", "--prod"], ["stackup", "-v", "install", "--prod"]),
        (["stackup", "verify", "--prod"], ["stackup", "verify", "--prod"]),
        (["stackup", "settings", "show"], ["stackup", "settings", "show"]),
        (["stackup", "--help"], ["stackup", "--help"]),
    ],
)
def test_route_argv(argv, expected) -> None:
    assert route_argv(argv) == expected
