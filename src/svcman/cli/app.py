"""Main CLI application."""

from pathlib import Path
from typing import Annotated

import typer

from svcman.cli.commands import detect, service
from svcman.cli.state import get_state
from svcman.logging import configure_logging
from svcman.service.base import ServiceManagerKind

app = typer.Typer(
    name="svcman",
    help="svcman - manage services with the host's native service manager",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    backend: Annotated[
        ServiceManagerKind | None,
        typer.Option(
            "--backend",
            "-b",
            help="Service manager to use instead of detecting one",
            case_sensitive=False,
        ),
    ] = None,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to configuration file",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Log every command that is run",
        ),
    ] = False,
) -> None:
    """Manage services through the host's native service manager."""
    configure_logging("DEBUG" if verbose else None, use_rich=True)

    state = get_state(ctx)
    state.backend = backend
    state.config_path = config
    state.verbose = verbose


service.register(app)
detect.register(app)


if __name__ == "__main__":
    app()
