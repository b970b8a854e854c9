"""Tests for the systemd backend."""

import shlex

import pytest

from svcman.config.models import SvcmanConfig, SystemdConfig
from svcman.service.backends.systemd import (
    SystemdBackend,
    format_environment,
    format_exec_start,
    quote_exec_arg,
    unit_name,
)
from svcman.service.base import RestartPolicy, ServiceLevel, ServiceState
from svcman.service.errors import CommandFailed, NotFound
from svcman.service.runner import CommandResult

from tests.conftest import TRICKY_ARGS, make_descriptor


def parse_exec_start(unit: str) -> list[str]:
    """Split an ExecStart= line back into words."""
    line = next(ln for ln in unit.splitlines() if ln.startswith("ExecStart="))
    words = shlex.split(line.removeprefix("ExecStart="))
    return [w.replace("$$", "$").replace("%%", "%") for w in words]


def unit_lines(unit: str) -> list[str]:
    return unit.splitlines()


@pytest.fixture
def backend(systemd_handle) -> SystemdBackend:
    return SystemdBackend(systemd_handle)


class TestQuoting:
    """Tests for ExecStart quoting."""

    def test_plain_word_unchanged(self):
        assert quote_exec_arg("/bin/echo") == "/bin/echo"

    def test_whitespace_is_double_quoted(self):
        assert quote_exec_arg("hello world") == '"hello world"'

    def test_quotes_and_backslashes_escaped(self):
        assert quote_exec_arg('say "hi"') == '"say \\"hi\\""'
        assert quote_exec_arg("a\\b") == '"a\\\\b"'

    def test_dollar_and_percent_doubled(self):
        assert quote_exec_arg("$HOME") == "$$HOME"
        assert quote_exec_arg("100%") == "100%%"

    def test_empty_argument(self):
        assert quote_exec_arg("") == '""'

    def test_format_exec_start(self):
        assert format_exec_start(["/bin/echo", "hello world"]) == (
            '/bin/echo "hello world"'
        )

    def test_format_environment(self):
        assert format_environment("GREETING", 'say "hi"') == (
            'Environment="GREETING=say \\"hi\\""'
        )

    def test_unit_name(self):
        assert unit_name("app") == "app.service"
        assert unit_name("network-online.target") == "network-online.target"
        assert unit_name("my.app") == "my.app.service"


class TestRenderUnit:
    """Tests for unit file generation."""

    def test_echoer_unit(self, backend, echoer):
        unit = backend.render_unit(echoer, ServiceLevel.USER)

        assert 'ExecStart=/bin/echo "hello world"' in unit_lines(unit)
        assert "Restart=no" in unit_lines(unit)
        assert "WantedBy=default.target" in unit_lines(unit)
        assert unit.startswith("[Unit]\nDescription=echoer\n")

    def test_full_descriptor(self, backend, tmp_path):
        descriptor = make_descriptor(
            name="api",
            program="/srv/api/bin/api",
            args=("--port", "8080"),
            working_directory=tmp_path,
            environment={"B": "2", "A": "one two"},
            dependencies=frozenset({"postgresql", "redis"}),
            restart_policy=RestartPolicy.ON_FAILURE,
            description="API server",
            username="api",
            requires_network=True,
        )
        lines = unit_lines(backend.render_unit(descriptor, ServiceLevel.SYSTEM))

        assert "Description=API server" in lines
        assert "Wants=network-online.target" in lines
        assert (
            "After=network-online.target postgresql.service redis.service" in lines
        )
        assert f"WorkingDirectory={tmp_path}" in lines
        assert lines.index('Environment="A=one two"') < lines.index(
            'Environment="B=2"'
        )
        assert "ExecStart=/srv/api/bin/api --port 8080" in lines
        assert "Restart=on-failure" in lines
        assert "User=api" in lines
        assert "WantedBy=multi-user.target" in lines

    def test_user_units_omit_user_directive(self, backend):
        descriptor = make_descriptor(username="someone")
        unit = backend.render_unit(descriptor, ServiceLevel.USER)
        assert "User=" not in unit

    @pytest.mark.parametrize(
        ("policy", "value"),
        [
            (RestartPolicy.NEVER, "no"),
            (RestartPolicy.ON_FAILURE, "on-failure"),
            (RestartPolicy.ALWAYS, "always"),
        ],
    )
    def test_restart_policies(self, backend, policy, value):
        descriptor = make_descriptor(restart_policy=policy)
        assert f"Restart={value}" in unit_lines(
            backend.render_unit(descriptor, ServiceLevel.USER)
        )

    def test_config_tuning(self, systemd_handle):
        config = SvcmanConfig(
            systemd=SystemdConfig(
                restart_sec=5, start_limit_interval_sec=60, start_limit_burst=3
            )
        )
        backend = SystemdBackend(systemd_handle, config)
        descriptor = make_descriptor(restart_policy=RestartPolicy.ALWAYS)
        lines = unit_lines(backend.render_unit(descriptor, ServiceLevel.USER))

        assert "RestartSec=5" in lines
        assert "StartLimitIntervalSec=60" in lines
        assert "StartLimitBurst=3" in lines

    def test_arguments_round_trip(self, backend):
        descriptor = make_descriptor(args=TRICKY_ARGS)
        unit = backend.render_unit(descriptor, ServiceLevel.USER)
        assert parse_exec_start(unit) == ["/bin/echo", *TRICKY_ARGS]

    def test_program_with_spaces_round_trips(self, backend):
        descriptor = make_descriptor(program="/opt/My App/run", args=("x",))
        unit = backend.render_unit(descriptor, ServiceLevel.USER)
        assert parse_exec_start(unit) == ["/opt/My App/run", "x"]


class TestEncode:
    """Tests for install plans."""

    def test_user_plan(self, backend, echoer, native_dirs):
        plan = backend.encode(echoer, ServiceLevel.USER)

        assert plan.artifact.path == native_dirs / "systemd-user" / "echoer.service"
        assert plan.artifact.mode == 0o644
        assert [c.argv for c in plan.commands] == [
            ["/usr/bin/systemctl", "--user", "daemon-reload"]
        ]

    def test_system_plan_with_autostart(self, backend, native_dirs):
        descriptor = make_descriptor(autostart=True)
        plan = backend.encode(descriptor, ServiceLevel.SYSTEM)

        assert plan.artifact.path == native_dirs / "systemd-system" / "echoer.service"
        assert [c.args for c in plan.commands] == [
            ("daemon-reload",),
            ("enable", "echoer.service"),
        ]

    def test_raw_contents_are_used_verbatim(self, backend, native_dirs):
        descriptor = make_descriptor(contents="[Service]\nExecStart=/bin/true\n")
        plan = backend.encode(descriptor, ServiceLevel.USER)
        assert plan.artifact.content == b"[Service]\nExecStart=/bin/true\n"


class TestStatus:
    """Tests for systemctl status parsing."""

    def result(self, backend, exit_code: int, stdout: str = "") -> CommandResult:
        command = backend.status_command("echoer", ServiceLevel.USER)
        return CommandResult(command, exit_code, stdout=stdout)

    def test_status_command(self, backend):
        command = backend.status_command("echoer", ServiceLevel.USER)
        assert command.args == ("--user", "status", "--no-pager", "echoer.service")

    def test_running_with_pid(self, backend):
        stdout = "   Active: active (running)\n Main PID: 1234 (echo)\n"
        status = backend.parse_status(self.result(backend, 0, stdout))
        assert status.state == ServiceState.RUNNING
        assert status.pid == 1234

    def test_stopped(self, backend):
        status = backend.parse_status(self.result(backend, 3, "Active: inactive"))
        assert status.state == ServiceState.STOPPED

    def test_activating_is_unknown(self, backend):
        status = backend.parse_status(
            self.result(backend, 3, "Active: activating (auto-restart)")
        )
        assert status.state == ServiceState.UNKNOWN

    def test_missing_unit(self, backend):
        with pytest.raises(NotFound):
            backend.parse_status(self.result(backend, 4))

    def test_query_failure(self, backend):
        with pytest.raises(CommandFailed):
            backend.parse_status(self.result(backend, 1))


class TestControlCommands:
    """Tests for start/stop/enable/disable plans."""

    def test_user_commands(self, backend):
        level = ServiceLevel.USER
        assert backend.start_commands("app", level)[0].args == (
            "--user",
            "start",
            "app.service",
        )
        assert backend.stop_commands("app", level)[0].args == (
            "--user",
            "stop",
            "app.service",
        )
        assert backend.enable_commands("app", level)[0].args == (
            "--user",
            "enable",
            "app.service",
        )
        assert backend.disable_commands("app", level)[0].args == (
            "--user",
            "disable",
            "app.service",
        )

    def test_uninstall_steps_are_best_effort(self, backend):
        steps = backend.uninstall_commands(
            "app", ServiceLevel.SYSTEM
        ) + backend.post_uninstall_commands("app", ServiceLevel.SYSTEM)
        assert [c.args for c in steps] == [
            ("disable", "app.service"),
            ("daemon-reload",),
        ]
        assert all(c.best_effort for c in steps)
