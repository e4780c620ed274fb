import io
import socket
from pathlib import Path
from unittest.mock import patch

import click.testing
import pytest

from handlab.cli import ConsoleDisplay, ConsoleOperator, cli, format_notification
from handlab.experiment import OperatorInputs
from handlab.types import (
    ErrorNotice,
    ExperimentState,
    OperatorPrompt,
    RenderState,
    StateUpdate,
    TrialFeedback,
)


@pytest.fixture
def cli_runner():
    return click.testing.CliRunner()


@pytest.fixture
def home(tmp_path, monkeypatch):
    monkeypatch.setattr(Path, "home", lambda: tmp_path)
    return tmp_path


class TestCLITree:
    def test_help(self, cli_runner):
        result = cli_runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("run", "send", "listen", "watch", "config"):
            assert command in result.output

    def test_tree(self, cli_runner):
        result = cli_runner.invoke(cli, ["--tree"])
        assert result.exit_code == 0
        assert "└── config" in result.output
        assert "    └── copy" in result.output


class TestConfigCLI:
    def test_list(self, cli_runner, home):
        result = cli_runner.invoke(cli, ["config", "list"])
        assert result.exit_code == 0
        assert "Default" in result.output
        assert "Mock" in result.output

    def test_show(self, cli_runner, home):
        result = cli_runner.invoke(cli, ["config", "show", "mock"])
        assert result.exit_code == 0
        assert "total_blocks = 2" in result.output

    def test_show_missing(self, cli_runner, home):
        result = cli_runner.invoke(cli, ["config", "show", "nope"])
        assert result.exit_code == 1

    def test_create_and_copy(self, cli_runner, home):
        result = cli_runner.invoke(cli, ["config", "create"])
        assert result.exit_code == 0
        assert (home / ".handlab" / "experiments.ini").exists()

        result = cli_runner.invoke(cli, ["config", "copy", "Default", "Mine"])
        assert result.exit_code == 0
        result = cli_runner.invoke(cli, ["config", "list"])
        assert "Mine" in result.output

        result = cli_runner.invoke(cli, ["config", "copy", "Default", "Mine"])
        assert result.exit_code == 1


class TestRunCLI:
    @patch("handlab.cli.base.setproctitle")
    @patch("handlab.cli.base.run_controller")
    def test_run_arguments(self, mock_run, mock_title, cli_runner, home, tmp_path):
        async def fake_run(config, **kwargs):
            fake_run.config = config
            fake_run.kwargs = kwargs
            return ExperimentState.FINISHED

        mock_run.side_effect = fake_run
        result = cli_runner.invoke(
            cli,
            [
                "run",
                "-n",
                "mock",
                "--subject",
                "S01",
                "--auto",
                "--log-dir",
                str(tmp_path / "logs"),
                "--no-log-to-file",
                "--log-level",
                "DEBUG",
            ],
        )
        assert result.exit_code == 0, result.output
        assert "Experiment ended: Finished" in result.output
        mock_title.assert_called_once()
        assert fake_run.config.name == "Mock"
        assert fake_run.config.log_dir == str(tmp_path / "logs")
        assert fake_run.kwargs["subject_id"] == "S01"
        assert fake_run.kwargs["auto_confirm"] is True
        assert fake_run.kwargs["interactive"] is False

    @patch("handlab.cli.base.setproctitle")
    @patch("handlab.cli.base.run_controller")
    def test_run_stopped_exit_code(self, mock_run, mock_title, cli_runner, home):
        async def fake_run(config, **kwargs):
            return ExperimentState.STOPPED

        mock_run.side_effect = fake_run
        result = cli_runner.invoke(cli, ["run", "-n", "mock", "--no-log-to-file"])
        assert result.exit_code == 1
        assert "Experiment ended: Stopped" in result.output

    @patch("handlab.cli.base.setproctitle")
    @patch("handlab.cli.base.run_controller")
    def test_run_reports_log_file(
        self, mock_run, mock_title, cli_runner, home, tmp_path
    ):
        async def fake_run(config, **kwargs):
            return ExperimentState.FINISHED

        mock_run.side_effect = fake_run
        log_path = tmp_path / "controller.log"
        result = cli_runner.invoke(
            cli, ["run", "-n", "mock", "--log-path", str(log_path)]
        )
        assert result.exit_code == 0, result.output
        assert f"Controller log: {log_path}" in result.output
        assert log_path.exists()

        result = cli_runner.invoke(cli, ["run", "-n", "mock", "--no-log-to-file"])
        assert result.exit_code == 0, result.output
        assert "Controller log:" not in result.output

    def test_run_unknown_config(self, cli_runner, home):
        result = cli_runner.invoke(cli, ["run", "-n", "nope", "--no-log-to-file"])
        assert result.exit_code != 0
        assert "not found" in result.output


@pytest.mark.network
class TestNetworkCLI:
    def test_send_refused(self, cli_runner):
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.bind(("127.0.0.1", 0))
            port = sock.getsockname()[1]
        result = cli_runner.invoke(cli, ["send", "START_TRIAL;0;0;0;0", "-p", str(port)])
        assert result.exit_code == 1
        assert "Error" in result.output

    def test_listen_duration(self, cli_runner):
        result = cli_runner.invoke(
            cli, ["listen", "-h", "127.0.0.1", "-p", "0", "-d", "0.2"]
        )
        assert result.exit_code == 0, result.output
        assert "Listening on UDP port" in result.output
        assert "0 records" in result.output


class TestConsole:
    def test_format_notification(self):
        update = StateUpdate(old_state="Idle", new_state="ReadyToStart", block=1, trial=0)
        assert "[ReadyToStart] block 1" in format_notification(update)
        prompt = OperatorPrompt(prompt="block_start", message="Block 1/4 ready")
        assert format_notification(prompt) == ">> Block 1/4 ready"
        feedback = TrialFeedback(
            block=1, trial=3, message="Time out", duration=1.5, timed_out=True
        )
        assert "(timed out)" in format_notification(feedback)
        assert format_notification(ErrorNotice(message="boom")) == "ERROR: boom"

        render = RenderState(
            state="TrialRunning",
            block=1,
            total_blocks=4,
            trial=1,
            trials_per_block=30,
            cursor=(0.5, -1.0),
        )
        assert format_notification(render) is None
        assert "cursor" in format_notification(render, show_cursor=True)

    def test_console_display(self, capsys):
        ConsoleDisplay()(OperatorPrompt(prompt="rest_done", message="Rest over"))
        assert ">> Rest over" in capsys.readouterr().out

    def test_console_operator_lines(self):
        class FakeOrchestrator:
            state = ExperimentState.IDLE
            stopped = 0

            def emergency_stop(self):
                self.stopped += 1

        operator = OperatorInputs()
        orch = FakeOrchestrator()
        console = ConsoleOperator(operator, orch, stream=io.StringIO(""))
        assert console.handle_line("\n") == "ignored"  # nothing pending
        assert console.handle_line("q\n") == "stop"
        assert orch.stopped == 1
