"""OpenRC init script backend.

Init scripts live in /etc/init.d and are controlled with ``rc-service``;
boot-time activation is managed with ``rc-update``.
"""

from pathlib import Path

from svcman.config.paths import get_openrc_dir
from svcman.service.backends.shell import (
    sh_assign,
    sh_exports,
    sh_quote,
    sh_quote_for_eval,
)
from svcman.service.base import (
    Artifact,
    InstallPlan,
    RestartPolicy,
    ServiceEncoder,
    ServiceLevel,
    ServiceManagerKind,
    ServiceState,
    ServiceStatus,
)
from svcman.service.descriptor import ServiceDescriptor
from svcman.service.errors import UnsupportedOperation
from svcman.service.runner import CommandInvocation, CommandResult, invocation

SCRIPT_MODE = 0o755

# rc-service <name> status exit codes
_STATUS_STARTED = 0
_STATUS_STOPPED = 3


class OpenRcBackend(ServiceEncoder):
    """OpenRC backend. System-level services only."""

    kind = ServiceManagerKind.OPENRC

    @property
    def default_binary(self) -> str:
        return "rc-service"

    @property
    def rc_update(self) -> str:
        """rc-update lives next to rc-service."""
        if self.handle.binary is not None:
            return str(self.handle.binary.with_name("rc-update"))
        return "rc-update"

    @property
    def runlevel(self) -> str:
        return self.config.openrc.runlevel

    def artifact_path(self, name: str, level: ServiceLevel) -> Path:
        self.check_level(level)
        return get_openrc_dir() / name

    def encode(self, descriptor: ServiceDescriptor, level: ServiceLevel) -> InstallPlan:
        path = self.artifact_path(descriptor.name, level)
        content = descriptor.contents or self.render_script(descriptor)

        commands = []
        if descriptor.autostart:
            commands.extend(self.enable_commands(descriptor.name, level))

        return InstallPlan(
            artifact=Artifact(path=path, content=content.encode(), mode=SCRIPT_MODE),
            commands=tuple(commands),
        )

    def render_script(self, descriptor: ServiceDescriptor) -> str:
        """Generate an openrc-run script."""
        if descriptor.restart_policy == RestartPolicy.ON_FAILURE:
            raise UnsupportedOperation(
                "OpenRC cannot restart only on failure; use 'always' or 'never'"
            )

        lines = [
            "#!/sbin/openrc-run",
            "",
            sh_assign("description", descriptor.description or descriptor.name),
            "",
        ]
        lines += sh_exports(descriptor.environment)
        if descriptor.environment:
            lines.append("")

        # openrc-run evals these along with command_args
        if descriptor.working_directory is not None:
            directory = sh_quote_for_eval([str(descriptor.working_directory)])
            lines.append(f"directory={directory}")
        if descriptor.username:
            lines.append(f"command_user={sh_quote_for_eval([descriptor.username])}")
        lines.append(f"command={sh_quote_for_eval([str(descriptor.program)])}")
        lines.append(f"command_args={sh_quote_for_eval(descriptor.args)}")

        if descriptor.restart_policy == RestartPolicy.ALWAYS:
            lines.append('supervisor="supervise-daemon"')
        else:
            lines.append("command_background=true")
            lines.append('pidfile="/run/${RC_SVCNAME}.pid"')

        lines += ["", "depend() {"]
        if descriptor.requires_network:
            lines.append("\tneed net")
        if descriptor.dependencies:
            deps = " ".join(sh_quote(d) for d in sorted(descriptor.dependencies))
            lines.append(f"\tafter {deps}")
        if not descriptor.requires_network and not descriptor.dependencies:
            lines.append("\t:")
        lines.append("}")
        return "\n".join(lines) + "\n"

    def uninstall_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [
            invocation(self.rc_update, "del", name, self.runlevel, best_effort=True)
        ]

    def start_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [invocation(self.binary, name, "start")]

    def stop_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [invocation(self.binary, name, "stop")]

    def enable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.rc_update, "add", name, self.runlevel)]

    def disable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.rc_update, "del", name, self.runlevel)]

    def status_command(self, name: str, level: ServiceLevel) -> CommandInvocation:
        return invocation(self.binary, name, "status", expected_codes={0, 1, 3, 32})

    def parse_status(self, result: CommandResult) -> ServiceStatus:
        result.raise_for_status()
        if result.exit_code == _STATUS_STARTED:
            return ServiceStatus(state=ServiceState.RUNNING)
        if result.exit_code == _STATUS_STOPPED:
            return ServiceStatus(state=ServiceState.STOPPED)
        # crashed, inactive, starting, ...
        return ServiceStatus(state=ServiceState.UNKNOWN, message=result.output or None)

    def is_already_running(self, result: CommandResult) -> bool:
        output = result.output
        return "already been started" in output or "already starting" in output

    def is_already_stopped(self, result: CommandResult) -> bool:
        output = result.output
        return "already stopped" in output or "has not yet been started" in output
