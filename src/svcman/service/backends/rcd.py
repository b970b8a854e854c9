"""BSD rc.d script backend.

Scripts are installed to /usr/local/etc/rc.d and run the program under
daemon(8). Start/stop use the ``one*`` verbs so they work whether or not the
service is enabled in rc.conf; enable/disable toggle the rc.conf variable.
"""

from pathlib import Path

from svcman.config.paths import get_rcd_dir
from svcman.service.backends.shell import (
    sh_assign,
    sh_exports,
    sh_quote_for_eval,
    sh_var_name,
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
DAEMON = "/usr/sbin/daemon"


class RcdBackend(ServiceEncoder):
    """rc.d backend. System-level services only."""

    kind = ServiceManagerKind.RCD

    @property
    def default_binary(self) -> str:
        return "service"

    @property
    def script_dir(self) -> Path:
        return self.config.rcd.script_dir or get_rcd_dir()

    def artifact_path(self, name: str, level: ServiceLevel) -> Path:
        self.check_level(level)
        return self.script_dir / name

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
        """Generate an rc.subr based script."""
        if descriptor.restart_policy == RestartPolicy.ON_FAILURE:
            raise UnsupportedOperation(
                "rc.d (daemon -r) cannot restart only on failure; "
                "use 'always' or 'never'"
            )

        var = sh_var_name(descriptor.name)
        require = ["LOGIN"]
        if descriptor.requires_network:
            require.append("NETWORKING")
        require += [sh_var_name(d) for d in sorted(descriptor.dependencies)]

        pidfile = f"/var/run/{descriptor.name}.pid"
        daemon_args = ["-f"]
        # rc.subr wraps <name>_user in su -c, which breaks eval quoting
        if descriptor.username:
            daemon_args += ["-u", descriptor.username]
        if descriptor.restart_policy == RestartPolicy.ALWAYS:
            # Stopping must signal the supervisor, not the child it restarts
            daemon_args += ["-P", pidfile, "-r"]
            procname = DAEMON
        else:
            daemon_args += ["-p", pidfile]
            procname = str(descriptor.program)

        lines = [
            "#!/bin/sh",
            "#",
            f"# PROVIDE: {var}",
            f"# REQUIRE: {' '.join(require)}",
            "# KEYWORD: shutdown",
            "",
            ". /etc/rc.subr",
            "",
            sh_assign("name", var),
            sh_assign("desc", descriptor.description or descriptor.name),
            f'rcvar="{var}_enable"',
            "",
            "load_rc_config $name",
            "",
            f': ${{{var}_enable:="NO"}}',
        ]
        if descriptor.working_directory is not None:
            chdir = sh_quote_for_eval([str(descriptor.working_directory)])
            lines.append(f"{var}_chdir={chdir}")
        lines.append("")

        lines += sh_exports(descriptor.environment)
        if descriptor.environment:
            lines.append("")

        lines += [
            sh_assign("pidfile", pidfile),
            sh_assign("procname", procname),
            sh_assign("command", DAEMON),
            f"command_args={sh_quote_for_eval([*daemon_args, *descriptor.command])}",
            "",
            'run_rc_command "$1"',
        ]
        return "\n".join(lines) + "\n"

    def uninstall_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.binary, name, "disable", best_effort=True)]

    def start_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [invocation(self.binary, name, "onestart")]

    def stop_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [invocation(self.binary, name, "onestop")]

    def enable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.binary, name, "enable")]

    def disable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.binary, name, "disable")]

    def status_command(self, name: str, level: ServiceLevel) -> CommandInvocation:
        return invocation(self.binary, name, "onestatus", expected_codes={0, 1})

    def parse_status(self, result: CommandResult) -> ServiceStatus:
        result.raise_for_status()
        if result.exit_code == 0:
            pid = None
            marker = "pid "
            if marker in result.stdout:
                tail = result.stdout.split(marker, 1)[1].strip().rstrip(".")
                if tail.isdigit():
                    pid = int(tail)
            return ServiceStatus(state=ServiceState.RUNNING, pid=pid)
        return ServiceStatus(state=ServiceState.STOPPED)

    def is_already_running(self, result: CommandResult) -> bool:
        return "already running" in result.output

    def is_already_stopped(self, result: CommandResult) -> bool:
        return "not running" in result.output
