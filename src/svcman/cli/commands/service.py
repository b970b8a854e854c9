"""Service management commands."""

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from svcman.cli.console import (
    console,
    create_table,
    dim,
    exit_on_error,
    success,
    warning,
)
from svcman.cli.state import CliState, get_state
from svcman.service.base import (
    BackendHandle,
    OperationResult,
    RestartPolicy,
    ServiceLevel,
    ServiceState,
)
from svcman.service.descriptor import ServiceDescriptor

NameArgument = Annotated[str, typer.Argument(help="Service name")]

LevelOption = Annotated[
    ServiceLevel | None,
    typer.Option(
        "--level",
        "-l",
        help="Install level (default from config, normally 'user')",
        case_sensitive=False,
    ),
]

ProgramArgument = Annotated[str, typer.Argument(help="Program to run")]

ArgsArgument = Annotated[
    list[str] | None,
    typer.Argument(help="Arguments passed to the program (after --)"),
]

WorkdirOption = Annotated[
    Path | None, typer.Option("--workdir", "-w", help="Working directory")
]

EnvOption = Annotated[
    list[str] | None,
    typer.Option("--env", "-e", help="Environment variable KEY=VALUE"),
]

AutostartOption = Annotated[
    bool, typer.Option("--autostart", help="Start at boot or login")
]

RestartOption = Annotated[
    RestartPolicy, typer.Option("--restart", "-r", help="Restart policy")
]

AfterOption = Annotated[
    list[str] | None,
    typer.Option("--after", help="Service that must start first"),
]

DescriptionOption = Annotated[
    str | None,
    typer.Option("--description", "-d", help="Human readable description"),
]

UserOption = Annotated[
    str | None,
    typer.Option("--user", "-u", help="Account to run the service as"),
]

NetworkOption = Annotated[
    bool, typer.Option("--network", help="Wait for the network before starting")
]


def parse_env(values: list[str] | None) -> dict[str, str]:
    """Parse repeated KEY=VALUE options."""
    environment: dict[str, str] = {}
    for item in values or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise typer.BadParameter(
                f"expected KEY=VALUE, got {item!r}", param_hint="--env"
            )
        environment[key] = value
    return environment


def _build_descriptor(
    state: CliState,
    *,
    name: str,
    program: str,
    args: list[str] | None,
    level: ServiceLevel | None,
    workdir: Path | None,
    env: list[str] | None,
    autostart: bool,
    restart: RestartPolicy,
    after: list[str] | None,
    description: str | None,
    user: str | None,
    network: bool,
) -> ServiceDescriptor:
    return ServiceDescriptor(
        name=name,
        program=Path(program),
        args=tuple(args or ()),
        working_directory=workdir,
        environment=parse_env(env),
        install_level=state.level(level),
        autostart=autostart,
        dependencies=frozenset(after or ()),
        restart_policy=restart,
        description=description,
        username=user,
        requires_network=network,
    )


def _report(result: OperationResult, verb: str) -> None:
    success(f"{verb} {result.name} ({result.kind.value}, {result.level.value})")
    if result.artifact_path is not None:
        dim(f"Definition: {result.artifact_path}")
    for message in result.warnings:
        warning(message)


def register(app: typer.Typer) -> None:
    """Register service commands."""

    @app.command()
    def install(
        ctx: typer.Context,
        name: NameArgument,
        program: ProgramArgument,
        args: ArgsArgument = None,
        level: LevelOption = None,
        workdir: WorkdirOption = None,
        env: EnvOption = None,
        autostart: AutostartOption = False,
        restart: RestartOption = RestartPolicy.NEVER,
        after: AfterOption = None,
        description: DescriptionOption = None,
        user: UserOption = None,
        network: NetworkOption = False,
    ) -> None:
        """Install a service (does not start it)."""
        state = get_state(ctx)
        with exit_on_error():
            descriptor = _build_descriptor(
                state,
                name=name,
                program=program,
                args=args,
                level=level,
                workdir=workdir,
                env=env,
                autostart=autostart,
                restart=restart,
                after=after,
                description=description,
                user=user,
                network=network,
            )
            result = state.manager().install(descriptor)
        _report(result, "Installed")

    @app.command()
    def render(
        ctx: typer.Context,
        name: NameArgument,
        program: ProgramArgument,
        args: ArgsArgument = None,
        level: LevelOption = None,
        workdir: WorkdirOption = None,
        env: EnvOption = None,
        autostart: AutostartOption = False,
        restart: RestartOption = RestartPolicy.NEVER,
        after: AfterOption = None,
        description: DescriptionOption = None,
        user: UserOption = None,
        network: NetworkOption = False,
    ) -> None:
        """Print the definition and commands install would use, changing nothing."""
        state = get_state(ctx)
        with exit_on_error():
            descriptor = _build_descriptor(
                state,
                name=name,
                program=program,
                args=args,
                level=level,
                workdir=workdir,
                env=env,
                autostart=autostart,
                restart=restart,
                after=after,
                description=description,
                user=user,
                network=network,
            )
            # An explicit backend is rendered even if it is not installed here
            handle = BackendHandle(kind=state.backend) if state.backend else None
            plan = state.manager(handle).render(descriptor)

        if plan.artifact is None:
            dim("No definition file; the service is registered by command")
        else:
            console.print(
                f"[bold]# {escape(str(plan.artifact.path))}[/bold]",
                highlight=False,
                soft_wrap=True,
            )
            console.print(
                plan.artifact.content.decode("utf-8", errors="replace"),
                markup=False,
                highlight=False,
                soft_wrap=True,
                end="",
            )
        for command in plan.commands:
            console.print(
                f"$ {command.display()}", markup=False, highlight=False, soft_wrap=True
            )

    @app.command()
    def uninstall(
        ctx: typer.Context, name: NameArgument, level: LevelOption = None
    ) -> None:
        """Stop (if running) and remove a service."""
        state = get_state(ctx)
        with exit_on_error():
            result = state.manager().uninstall(name, state.level(level))
        _report(result, "Uninstalled")

    @app.command()
    def start(
        ctx: typer.Context, name: NameArgument, level: LevelOption = None
    ) -> None:
        """Start a service."""
        state = get_state(ctx)
        with exit_on_error():
            result = state.manager().start(name, state.level(level))
        _report(result, "Started")

    @app.command()
    def stop(
        ctx: typer.Context, name: NameArgument, level: LevelOption = None
    ) -> None:
        """Stop a service."""
        state = get_state(ctx)
        with exit_on_error():
            result = state.manager().stop(name, state.level(level))
        _report(result, "Stopped")

    @app.command()
    def enable(
        ctx: typer.Context, name: NameArgument, level: LevelOption = None
    ) -> None:
        """Start a service automatically at boot or login."""
        state = get_state(ctx)
        with exit_on_error():
            result = state.manager().enable(name, state.level(level))
        _report(result, "Enabled")

    @app.command()
    def disable(
        ctx: typer.Context, name: NameArgument, level: LevelOption = None
    ) -> None:
        """Stop starting a service automatically."""
        state = get_state(ctx)
        with exit_on_error():
            result = state.manager().disable(name, state.level(level))
        _report(result, "Disabled")

    @app.command()
    def status(
        ctx: typer.Context, name: NameArgument, level: LevelOption = None
    ) -> None:
        """Show service status."""
        state = get_state(ctx)
        with exit_on_error():
            manager = state.manager()
            resolved_level = state.level(level)
            service_status = manager.status(name, resolved_level)

        table = create_table(
            f"Service {name}",
            [
                ("Property", "cyan"),
                ("Value", ""),
            ],
        )
        state_colors = {
            ServiceState.RUNNING: "green",
            ServiceState.STOPPED: "yellow",
            ServiceState.UNKNOWN: "dim",
        }
        color = state_colors.get(service_status.state, "white")
        table.add_row("State", f"[{color}]{service_status.state.value}[/{color}]")
        table.add_row("Backend", manager.backend_name)
        table.add_row("Level", resolved_level.value)
        if service_status.pid:
            table.add_row("PID", str(service_status.pid))
        if service_status.message:
            table.add_row("Message", escape(service_status.message))
        console.print(table)
