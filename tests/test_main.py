"""Tests for the command-line dispatcher."""

from __future__ import annotations

import argparse
from unittest.mock import MagicMock, patch

import pytest
from conftest import FakeRuntime, write_env_file

from openclaw_pod.__main__ import build_parser, dispatch, main
from openclaw_pod.errors import PodExistsError
from openclaw_pod.orchestrator import PodOrchestrator
from openclaw_pod.types import PodState, PodStatus


def _args(command: str, **kwargs) -> argparse.Namespace:
    return argparse.Namespace(command=command, **kwargs)


@pytest.fixture
def orchestrator(settings, fake_runtime):
    write_env_file(settings, "OPENCLAW_GATEWAY_TOKEN=abc123\n")
    return PodOrchestrator(settings, fake_runtime, environ={}, sleep=lambda s: None)


class TestParser:
    def test_approve_requires_code(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["approve"])
        assert exc_info.value.code == 2

    def test_unknown_verb_exits_2(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["frobnicate"])
        assert exc_info.value.code == 2
        assert "invalid choice" in capsys.readouterr().err


class TestDispatch:
    def test_start_prints_urls(self, orchestrator, capsys):
        assert dispatch(_args("start"), orchestrator) == 0
        out = capsys.readouterr().out
        assert "http://127.0.0.1:18789/" in out
        assert "http://127.0.0.1:6080/vnc.html" in out
        assert "Warning" not in out

    def test_start_warns_when_sidecar_unready(self, settings, capsys):
        write_env_file(settings, "OPENCLAW_GATEWAY_TOKEN=abc123\n")
        runtime = FakeRuntime(ready_after=None)
        orch = PodOrchestrator(settings, runtime, environ={}, sleep=lambda s: None)
        assert dispatch(_args("start"), orch) == 0
        assert "not ready after 5 checks" in capsys.readouterr().out

    def test_stop_absent_is_success(self, orchestrator):
        assert dispatch(_args("stop"), orchestrator) == 0

    def test_status_absent(self, orchestrator, capsys):
        assert dispatch(_args("status"), orchestrator) == 0
        assert "Pod openclaw does not exist." in capsys.readouterr().out

    def test_status_table(self, orchestrator, capsys):
        dispatch(_args("start"), orchestrator)
        capsys.readouterr()
        dispatch(_args("status"), orchestrator)
        out = capsys.readouterr().out
        assert "Running" in out
        assert "openclaw-browser" in out
        assert "openclaw-gateway" in out

    def test_logs_follow(self, orchestrator, fake_runtime, capsys):
        dispatch(_args("start"), orchestrator)
        capsys.readouterr()
        fake_runtime.log_lines["openclaw-browser"] = ["a", "b"]
        assert dispatch(_args("logs-browser"), orchestrator) == 0
        assert capsys.readouterr().out == "a\nb\n"

    def test_logs_interrupt_exits_130(self):
        def interrupted():
            raise KeyboardInterrupt
            yield  # pragma: no cover

        orch = MagicMock()
        orch.logs.return_value = interrupted()
        assert dispatch(_args("logs"), orch) == 130

    def test_passthrough_exit_codes(self):
        orch = MagicMock()
        orch.exec_gateway.return_value = 3
        orch.pairing.return_value = 4
        orch.approve.return_value = 5
        orch.shell.return_value = 6
        orch.setup.return_value = 7
        assert dispatch(_args("exec", args=["status", "--json"]), orch) == 3
        orch.exec_gateway.assert_called_once_with(["status", "--json"])
        assert dispatch(_args("pairing"), orch) == 4
        assert dispatch(_args("approve", code="XYZ"), orch) == 5
        orch.approve.assert_called_once_with("XYZ")
        assert dispatch(_args("shell"), orch) == 6
        assert dispatch(_args("setup"), orch) == 7


class TestMain:
    @pytest.fixture
    def patched(self, orchestrator):
        with (
            patch("openclaw_pod.__main__.get_runtime", return_value=orchestrator.runtime),
            patch("openclaw_pod.__main__.get_settings", return_value=orchestrator.settings),
            patch("openclaw_pod.__main__.PodOrchestrator", return_value=orchestrator),
        ):
            yield orchestrator

    @pytest.mark.parametrize("argv", [[], ["help"]])
    def test_help_exits_0(self, argv, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(argv)
        assert exc_info.value.code == 0
        assert "logs-browser" in capsys.readouterr().out

    def test_error_prints_single_line_and_exits_1(self, patched, capsys):
        with patch.object(patched, "start", side_effect=PodExistsError("openclaw")):
            with pytest.raises(SystemExit) as exc_info:
                main(["start"])
        assert exc_info.value.code == 1
        err = capsys.readouterr().err
        assert err.startswith("Error: Pod openclaw already exists.")

    def test_exec_flags_pass_through(self, patched):
        with patch.object(patched, "exec_gateway", return_value=0) as mock_exec:
            with pytest.raises(SystemExit) as exc_info:
                main(["exec", "--help", "-v"])
        assert exc_info.value.code == 0
        mock_exec.assert_called_once_with(["--help", "-v"])

    def test_status_exit_0(self, patched, capsys):
        with patch.object(
            patched, "status", return_value=PodStatus(name="openclaw", state=PodState.ABSENT)
        ):
            with pytest.raises(SystemExit) as exc_info:
                main(["status"])
        assert exc_info.value.code == 0

    def test_invalid_configuration(self, monkeypatch, capsys):
        monkeypatch.setenv("OPENCLAW_GATEWAY_PORT", "99999")
        with pytest.raises(SystemExit) as exc_info:
            main(["status"])
        assert exc_info.value.code == 1
        assert capsys.readouterr().err.startswith("Error: invalid configuration")
