"""WinSW wrapper-service backend for Windows.

Each service gets an XML definition at
``%ProgramData%\\svcman\\<name>\\<name>.xml``; the WinSW executable is
invoked with a verb and the path to that file.
"""

import re
import xml.etree.ElementTree as ET
from pathlib import Path

from svcman.config.paths import get_winsw_dir
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
from svcman.service.errors import NotFound, UnsupportedOperation
from svcman.service.runner import CommandInvocation, CommandResult, invocation


class WinSwBackend(ServiceEncoder):
    """WinSW backend. System-level only; start mode is fixed at install."""

    kind = ServiceManagerKind.WINSW
    supported_levels = (ServiceLevel.SYSTEM,)
    supports_enable = False

    @property
    def default_binary(self) -> str:
        return "winsw"

    @property
    def config_dir(self) -> Path:
        return self.config.winsw.config_dir or get_winsw_dir()

    def artifact_path(self, name: str, level: ServiceLevel) -> Path:
        self.check_level(level)
        return self.config_dir / name / f"{name}.xml"

    def encode(self, descriptor: ServiceDescriptor, level: ServiceLevel) -> InstallPlan:
        path = self.artifact_path(descriptor.name, level)
        if descriptor.contents:
            content = descriptor.contents.encode()
        else:
            content = self.render_xml(descriptor)
        return InstallPlan(
            artifact=Artifact(path=path, content=content),
            commands=(invocation(self.binary, "install", str(path)),),
        )

    def build_element(self, descriptor: ServiceDescriptor) -> ET.Element:
        """Build the <service> element tree."""
        if descriptor.restart_policy == RestartPolicy.ALWAYS:
            raise UnsupportedOperation(
                "WinSW only restarts services on failure; use 'on-failure'"
            )
        settings = self.config.winsw

        root = ET.Element("service")
        ET.SubElement(root, "id").text = descriptor.name
        ET.SubElement(root, "name").text = descriptor.name
        ET.SubElement(root, "description").text = (
            descriptor.description or descriptor.name
        )
        ET.SubElement(root, "executable").text = str(descriptor.program)
        for arg in descriptor.args:
            ET.SubElement(root, "argument").text = arg
        if descriptor.working_directory is not None:
            ET.SubElement(root, "workingdirectory").text = str(
                descriptor.working_directory
            )
        for key in sorted(descriptor.environment):
            ET.SubElement(root, "env", name=key, value=descriptor.environment[key])

        ET.SubElement(root, "startmode").text = (
            "Automatic" if descriptor.autostart else "Manual"
        )
        dependencies = sorted(descriptor.dependencies)
        if descriptor.requires_network:
            dependencies.insert(0, "Tcpip")
        for dep in dependencies:
            ET.SubElement(root, "depend").text = dep

        if descriptor.restart_policy == RestartPolicy.ON_FAILURE:
            ET.SubElement(
                root, "onfailure", action="restart", delay=settings.on_failure_delay
            )

        if descriptor.username:
            account = ET.SubElement(root, "serviceaccount")
            ET.SubElement(account, "username").text = descriptor.username

        ET.SubElement(root, "log", mode=settings.log_mode)
        return root

    def render_xml(self, descriptor: ServiceDescriptor) -> bytes:
        """Serialize the service definition with an XML declaration."""
        root = self.build_element(descriptor)
        ET.indent(root, space="  ")
        return ET.tostring(root, encoding="utf-8", xml_declaration=True) + b"\n"

    def _verb(
        self, verb: str, name: str, level: ServiceLevel, **kwargs
    ) -> CommandInvocation:
        return invocation(
            self.binary, verb, str(self.artifact_path(name, level)), **kwargs
        )

    def uninstall_commands(
        self, name: str, level: ServiceLevel
    ) -> list[CommandInvocation]:
        return [self._verb("uninstall", name, level)]

    def start_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [self._verb("start", name, level)]

    def stop_commands(self, name: str, level: ServiceLevel) -> list[CommandInvocation]:
        return [self._verb("stop", name, level)]

    def status_command(self, name: str, level: ServiceLevel) -> CommandInvocation:
        return self._verb("status", name, level)

    def parse_status(self, result: CommandResult) -> ServiceStatus:
        """Parse ``winsw status`` output (Active / Inactive / NonExistent)."""
        result.raise_for_status()
        output = result.stdout.strip()
        if re.search(r"\bNonExistent\b", output):
            raise NotFound(
                f"WinSW service is not installed: {result.invocation.args[-1]}"
            )
        if re.search(r"\bActive\b", output) or "Started" in output:
            return ServiceStatus(state=ServiceState.RUNNING)
        if re.search(r"\bInactive\b", output) or "Stopped" in output:
            return ServiceStatus(state=ServiceState.STOPPED)
        return ServiceStatus(state=ServiceState.UNKNOWN, message=output or None)

    def is_already_running(self, result: CommandResult) -> bool:
        return "already running" in result.output.lower()

    def is_already_stopped(self, result: CommandResult) -> bool:
        output = result.output.lower()
        return "not been started" in output or "not running" in output
