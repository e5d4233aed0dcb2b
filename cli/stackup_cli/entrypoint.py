from __future__ import annotations

import sys

COMMANDS = {"install", "verify", "settings"}
GLOBAL_OPTIONS = {"-v", "--verbose"}
PASSTHROUGH = {"--help", "-h", "--install-completion", "--show-completion"}


def route_argv(argv: list[str]) -> list[str]:
    """Send bare and flag-only invocations (``stackup --prod``) to ``install``."""
    args = list(argv[1:])
    leading: list[str] = []
    while args and args[0] in GLOBAL_OPTIONS:
        leading.append(args.pop(0))
    if not args or (args[0] not in COMMANDS and args[0] not in PASSTHROUGH):
        args = ["install", *args]
    return [argv[0], *leading, *args]


def main() -> None:
    from .main import app

    sys.argv = route_argv(sys.argv)
    app()


if __name__ == "__main__":
    main()
