"""Launchd backend for macOS.

Uses launchctl for service management. Property lists are stored in
~/Library/LaunchAgents (user) or /Library/LaunchDaemons (system) as
``<name>.plist``; the service name doubles as the launchd label.
"""

import logging
import os
import plistlib
from pathlib import Path
from typing import Any

from svcman.config.paths import get_launchd_system_dir, get_launchd_user_dir
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
from svcman.service.runner import CommandInvocation, CommandResult, invocation

logger = logging.getLogger(__name__)


class LaunchdBackend(ServiceEncoder):
    """Launchd agent/daemon backend.

    Installing only writes the plist; ``start`` loads the definition and
    starts the job, ``stop`` unloads it.
    """

    kind = ServiceManagerKind.LAUNCHD
    supported_levels = (ServiceLevel.USER, ServiceLevel.SYSTEM)

    @property
    def default_binary(self) -> str:
        return "launchctl"

    def artifact_path(self, name: str, level: ServiceLevel) -> Path:
        """Path to launchd plist file."""
        self.check_level(level)
        if level == ServiceLevel.USER:
            return get_launchd_user_dir() / f"{name}.plist"
        return get_launchd_system_dir() / f"{name}.plist"

    def _domain_target(self, name: str, level: ServiceLevel) -> str:
        """Service target for launchctl enable/disable."""
        if level == ServiceLevel.USER:
            return f"gui/{os.getuid()}/{name}"
        return f"system/{name}"

    def encode(self, descriptor: ServiceDescriptor, level: ServiceLevel) -> InstallPlan:
        path = self.artifact_path(descriptor.name, level)
        if descriptor.contents:
            content = descriptor.contents.encode()
        else:
            content = plistlib.dumps(self.build_plist(descriptor, level))
        return InstallPlan(artifact=Artifact(path=path, content=content))

    def build_plist(
        self, descriptor: ServiceDescriptor, level: ServiceLevel
    ) -> dict[str, Any]:
        """Build the property list dictionary."""
        plist: dict[str, Any] = {
            "Label": descriptor.name,
            "ProgramArguments": descriptor.command,
            "RunAtLoad": descriptor.autostart,
        }
        if descriptor.working_directory is not None:
            plist["WorkingDirectory"] = str(descriptor.working_directory)
        if descriptor.environment:
            plist["EnvironmentVariables"] = dict(descriptor.environment)

        if descriptor.restart_policy == RestartPolicy.ALWAYS:
            plist["KeepAlive"] = True
        elif descriptor.restart_policy == RestartPolicy.ON_FAILURE:
            plist["KeepAlive"] = {"SuccessfulExit": False}
        else:
            plist["KeepAlive"] = False

        if level == ServiceLevel.SYSTEM and descriptor.username:
            plist["UserName"] = descriptor.username

        log_dir = self.config.launchd.log_dir
        if log_dir is not None:
            log_dir = log_dir.expanduser()
            plist["StandardOutPath"] = str(log_dir / f"{descriptor.name}.out.log")
            plist["StandardErrorPath"] = str(log_dir / f"{descriptor.name}.err.log")

        if descriptor.dependencies:
            logger.debug(
                "launchd has no ordering directives; ignoring dependencies of %s",
                descriptor.name,
            )
        return plist

    def uninstall_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        path = self.artifact_path(name, level)
        return [invocation(self.binary, "unload", str(path), best_effort=True)]

    def start_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        path = self.artifact_path(name, level)
        return [
            invocation(self.binary, "load", str(path)),
            invocation(self.binary, "start", name),
        ]

    def stop_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        path = self.artifact_path(name, level)
        return [invocation(self.binary, "unload", str(path))]

    def enable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.binary, "enable", self._domain_target(name, level))]

    def disable_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [invocation(self.binary, "disable", self._domain_target(name, level))]

    def status_command(self, name: str, level: ServiceLevel) -> CommandInvocation:
        # Any non-zero exit means the job is not loaded
        return invocation(self.binary, "list", name, expected_codes=set(range(256)))

    def parse_status(self, result: CommandResult) -> ServiceStatus:
        """Parse ``launchctl list <label>`` output.

        The output is a plist-ish dictionary:
            {
                "PID" = 123;
                "LastExitStatus" = 0;
                ...
            };
        """
        if result.exit_code != 0:
            return ServiceStatus(state=ServiceState.STOPPED)

        pid = None
        last_exit = None
        for line in result.stdout.strip().split("\n"):
            line = line.strip()
            parts = line.replace('"', "").replace(";", "").split("=")
            if len(parts) != 2:
                continue
            key, value = parts[0].strip(), parts[1].strip()
            if key == "PID" and value.isdigit():
                pid = int(value)
            elif key == "LastExitStatus" and value.lstrip("-").isdigit():
                last_exit = int(value)

        if pid and pid > 0:
            return ServiceStatus(state=ServiceState.RUNNING, pid=pid)

        message = None
        if last_exit is not None and last_exit != 0:
            message = f"Last exit status: {last_exit}"
        return ServiceStatus(state=ServiceState.STOPPED, message=message)

    def is_already_running(self, result: CommandResult) -> bool:
        output = result.output.lower()
        return "already loaded" in output or "already bootstrapped" in output

    def is_already_stopped(self, result: CommandResult) -> bool:
        output = result.output.lower()
        return (
            "could not find specified service" in output
            or "not loaded" in output
            or "no such process" in output
        )
