"""Backend detection command."""

import typer

from svcman.cli.console import console, create_table, dim, exit_on_error, success
from svcman.cli.state import get_state
from svcman.service.backends import PROBES


def register(app: typer.Typer) -> None:
    """Register the detect command."""

    @app.command()
    def detect(ctx: typer.Context) -> None:
        """Show which service manager would be used on this host."""
        state = get_state(ctx)
        selector = state.get_selector()

        table = create_table(
            f"Service managers ({selector.platform})",
            [
                ("Backend", "cyan"),
                ("Control binary", ""),
                ("Available", ""),
            ],
        )
        for kind in selector.candidates:
            handle = selector.probe(kind)
            if handle is not None:
                table.add_row(kind.value, str(handle.binary), "[green]yes[/green]")
            else:
                table.add_row(kind.value, PROBES[kind].binary, "[dim]no[/dim]")
        console.print(table)

        with exit_on_error():
            handle = state.detect()
        success(f"Using {handle.name} ({handle.binary})")
        if state.backend or state.config.backend:
            dim("Selected explicitly")
