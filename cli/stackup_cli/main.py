from __future__ import annotations

import typer

from .commands import settings_cmd
from .commands.install_cmd import INSTALL_CONTEXT, install
from .commands.verify_cmd import verify
from .logging_ import setup_logging


def _build_app() -> typer.Typer:
    app = typer.Typer(
        name="stackup",
        help="Install and verify the Traefik + site + n8n + Supabase stack.",
        no_args_is_help=False,
    )

    app.command("install", context_settings=INSTALL_CONTEXT)(install)
    app.command("verify")(verify)
    app.add_typer(settings_cmd.app, name="settings")

    @app.callback()
    def _main(
            verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logs."),
    ):
        setup_logging(verbose)

    return app


app = _build_app()
