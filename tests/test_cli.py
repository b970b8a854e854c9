"""Tests for CLI commands."""

import pytest

from svcman.cli.app import app
from svcman.cli.state import CliState
from svcman.service.backends import BackendSelector


def linux_selector(available: bool = True) -> BackendSelector:
    """A Linux host where every probe succeeds (or none do)."""
    return BackendSelector(
        platform="linux",
        which=(lambda name: f"/usr/bin/{name}") if available else (lambda name: None),
        exists=lambda path: available,
    )


@pytest.fixture
def invoke(cli_runner, fake_systemctl, native_dirs):
    """Invoke the CLI against a simulated systemd host."""

    def _invoke(*args: str, selector: BackendSelector | None = None):
        state = CliState(runner=fake_systemctl, selector=selector or linux_selector())
        return cli_runner.invoke(app, list(args), obj=state)

    return _invoke


class TestLifecycleCommands:
    """Tests for install/start/status/stop/uninstall."""

    def test_install(self, invoke, native_dirs):
        result = invoke("install", "echoer", "/bin/echo", "hello world")

        assert result.exit_code == 0
        assert "Installed echoer (systemd, user)" in result.stdout
        unit = native_dirs / "systemd-user" / "echoer.service"
        assert 'ExecStart=/bin/echo "hello world"' in unit.read_text()

    def test_install_options(self, invoke, native_dirs, tmp_path):
        result = invoke(
            "install",
            "api",
            "/bin/echo",
            "--env",
            "PORT=8080",
            "--restart",
            "on-failure",
            "--after",
            "postgresql",
            "--workdir",
            str(tmp_path),
            "--description",
            "API server",
            "--network",
            "--autostart",
        )

        assert result.exit_code == 0
        text = (native_dirs / "systemd-user" / "api.service").read_text()
        assert 'Environment="PORT=8080"' in text
        assert "Restart=on-failure" in text
        assert "After=network-online.target postgresql.service" in text
        assert "Description=API server" in text
        assert f"WorkingDirectory={tmp_path}" in text

    def test_full_lifecycle(self, invoke, native_dirs):
        assert invoke("install", "echoer", "/bin/echo").exit_code == 0
        assert invoke("start", "echoer").exit_code == 0

        result = invoke("status", "echoer")
        assert result.exit_code == 0
        assert "running" in result.stdout
        assert "4242" in result.stdout

        assert invoke("stop", "echoer").exit_code == 0
        assert "stopped" in invoke("status", "echoer").stdout

        result = invoke("uninstall", "echoer")
        assert result.exit_code == 0
        assert "Uninstalled echoer" in result.stdout
        assert not (native_dirs / "systemd-user" / "echoer.service").exists()

    def test_status_message_is_not_markup(self, invoke, fake_systemctl, native_dirs):
        (native_dirs / "init.d").mkdir(parents=True)
        (native_dirs / "init.d" / "echoer").write_text("#!/sbin/openrc-run\n")
        fake_systemctl.respond("status", 32, stdout="[bold]crashed[/bold]")

        result = invoke("-b", "openrc", "status", "echoer", "--level", "system")

        assert result.exit_code == 0
        assert "unknown" in result.stdout
        assert "[bold]crashed[/bold]" in result.stdout

    def test_enable_disable(self, invoke, fake_systemctl):
        invoke("install", "echoer", "/bin/echo")

        assert "Enabled echoer" in invoke("enable", "echoer").stdout
        assert "echoer.service" in fake_systemctl.enabled
        assert "Disabled echoer" in invoke("disable", "echoer").stdout
        assert "echoer.service" not in fake_systemctl.enabled


class TestExitCodes:
    """Each error kind maps to its own exit code."""

    def test_invalid_descriptor(self, invoke):
        result = invoke("install", "bad name", "/bin/echo")
        assert result.exit_code == 2
        assert "Invalid service descriptor" in result.stdout

    def test_bad_env_option(self, invoke):
        result = invoke("install", "echoer", "/bin/echo", "--env", "NOEQUALS")
        assert result.exit_code == 2

    def test_no_backend(self, invoke, native_dirs):
        selector = linux_selector(False)
        result = invoke("install", "echoer", "/bin/echo", selector=selector)
        assert result.exit_code == 3
        assert "No service manager available" in result.stdout
        assert not native_dirs.exists()

    def test_not_found(self, invoke):
        result = invoke("start", "ghost")
        assert result.exit_code == 4
        assert "not installed" in result.stdout

    def test_permission_denied(self, invoke, unprivileged, native_dirs):
        result = invoke("install", "echoer", "/bin/echo", "--level", "system")
        assert result.exit_code == 5
        assert not native_dirs.exists()

    def test_artifact_io_error(self, invoke, native_dirs):
        native_dirs.write_text("not a directory")
        assert invoke("install", "echoer", "/bin/echo").exit_code == 6

    def test_command_failed(self, invoke, fake_systemctl, native_dirs):
        fake_systemctl.respond("daemon-reload", 1, stderr="Failed to connect to bus")

        result = invoke("install", "echoer", "/bin/echo")

        assert result.exit_code == 7
        assert "Failed to connect to bus" in result.stdout
        assert not (native_dirs / "systemd-user" / "echoer.service").exists()

    def test_unsupported(self, invoke):
        result = invoke("--backend", "openrc", "install", "echoer", "/bin/echo")
        assert result.exit_code == 8

    def test_missing_config_file(self, invoke, tmp_path):
        result = invoke("--config", str(tmp_path / "missing.toml"), "detect")
        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_invalid_config_file(self, invoke, tmp_path):
        config = tmp_path / "bad.toml"
        config.write_text('level = "everywhere"\n')
        result = invoke("--config", str(config), "detect")
        assert result.exit_code == 1
        assert "Invalid configuration" in result.stdout


class TestRenderCommand:
    """Tests for 'svcman render'."""

    def test_render_prints_unit_and_commands(self, invoke, native_dirs):
        result = invoke("render", "echoer", "/bin/echo", "hi", "--autostart")

        assert result.exit_code == 0
        assert "[Unit]" in result.stdout
        assert "ExecStart=/bin/echo hi" in result.stdout
        assert "$ /usr/bin/systemctl --user daemon-reload" in result.stdout
        assert "$ /usr/bin/systemctl --user enable echoer.service" in result.stdout
        assert not native_dirs.exists()

    def test_render_accepts_install_options(self, invoke, tmp_path):
        result = invoke(
            "render",
            "api",
            "/bin/echo",
            "-e",
            "PORT=8080",
            "-r",
            "always",
            "-w",
            str(tmp_path),
            "-d",
            "API server",
            "-u",
            "svc",
            "-l",
            "system",
        )

        assert result.exit_code == 0
        assert 'Environment="PORT=8080"' in result.stdout
        assert "Restart=always" in result.stdout
        assert "Description=API server" in result.stdout
        assert "User=svc" in result.stdout

    def test_render_foreign_backend(self, invoke):
        result = invoke(
            "--backend",
            "rcd",
            "render",
            "echoer",
            "/bin/echo",
            "--level",
            "system",
            selector=linux_selector(False),
        )
        assert result.exit_code == 0
        assert "#!/bin/sh" in result.stdout
        assert 'run_rc_command "$1"' in result.stdout

    def test_render_registry_backend(self, invoke):
        result = invoke(
            "-b", "sc", "render", "echoer", "/bin/echo", "--level", "system"
        )
        assert result.exit_code == 0
        assert "No definition file" in result.stdout
        assert "$ sc.exe create echoer" in result.stdout


class TestDetectCommand:
    """Tests for 'svcman detect'."""

    def test_detect(self, invoke):
        result = invoke("detect")

        assert result.exit_code == 0
        assert "systemd" in result.stdout
        assert "openrc" in result.stdout
        assert "Using systemd (/usr/bin/systemctl)" in result.stdout

    def test_detect_override(self, invoke):
        result = invoke("-b", "openrc", "detect")
        assert "Using openrc (/usr/bin/rc-service)" in result.stdout
        assert "Selected explicitly" in result.stdout

    def test_detect_nothing(self, invoke):
        result = invoke("detect", selector=linux_selector(False))
        assert result.exit_code == 3


class TestHelp:
    """Tests for top-level help."""

    def test_no_args_shows_help(self, cli_runner):
        result = cli_runner.invoke(app, [])
        assert "install" in result.output
        assert "detect" in result.output
