"""CLI tests for the ``apichain`` Typer application.

Requests go through ``httpx.MockTransport`` installed on
``apichain.commands.request.transport``; configuration lives in the
``isolated_config`` temp directory.
"""

from __future__ import annotations

import json
from pathlib import Path

import httpx
import pytest

from apichain import __version__
from apichain.app import app
from apichain.config import global_config_path, load_global_config, save_global_config

from conftest import TransportRecorder


@pytest.fixture
def cli_recorder(monkeypatch: pytest.MonkeyPatch) -> TransportRecorder:
    recorder = TransportRecorder()
    monkeypatch.setattr("apichain.commands.request.transport", recorder.transport)
    return recorder


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"apichain {__version__}" in result.output

    def test_no_args_shows_help(self, cli_runner) -> None:
        result = cli_runner.invoke(app, [])
        assert "request" in result.output
        assert "mock" in result.output


# ---------------------------------------------------------------------------
# mock
# ---------------------------------------------------------------------------


class TestMockCommands:
    def test_status_defaults_to_off(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--json", "mock", "status"])
        assert result.exit_code == 0
        rows = json.loads(result.output)
        assert rows[0] == {
            "setting": "enabled",
            "value": "off",
            "source": str(global_config_path()),
        }
        assert rows[1]["value"] == "0.1"

    def test_stored_output_format_applies_without_flag(self, cli_runner, isolated_config: Path) -> None:
        config = load_global_config()
        config.output.format = "json"
        save_global_config(config)

        result = cli_runner.invoke(app, ["mock", "status"])

        assert result.exit_code == 0
        assert json.loads(result.output)[0]["setting"] == "enabled"

    def test_flag_overrides_stored_output_format(self, cli_runner, isolated_config: Path) -> None:
        config = load_global_config()
        config.output.format = "json"
        save_global_config(config)

        result = cli_runner.invoke(app, ["--plain", "mock", "status"])

        assert result.exit_code == 0
        assert result.output.startswith("setting\tvalue")

    def test_broken_config_file_is_configuration_error(self, cli_runner, isolated_config: Path) -> None:
        path = global_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text('{"output": {"format": "xml"}}', encoding="utf-8")

        result = cli_runner.invoke(app, ["mock", "status"])

        assert result.exit_code == 7
        assert "Invalid global config" in result.output

    def test_on_persists_flag(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["mock", "on"])
        assert result.exit_code == 0
        assert "Mock mode on." in result.output
        assert load_global_config().mock.enabled is True

    def test_off_after_on(self, cli_runner, isolated_config: Path) -> None:
        cli_runner.invoke(app, ["mock", "on"])
        result = cli_runner.invoke(app, ["mock", "off"])
        assert result.exit_code == 0
        assert load_global_config().mock.enabled is False

    def test_status_reports_env_override(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("APICHAIN_MOCK", "1")
        result = cli_runner.invoke(app, ["--json", "mock", "status"])
        rows = json.loads(result.output)
        assert rows[0]["value"] == "on"
        assert rows[0]["source"] == "env:APICHAIN_MOCK"

    def test_off_warns_when_env_forces_on(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("APICHAIN_MOCK", "1")
        result = cli_runner.invoke(app, ["mock", "off"])
        assert result.exit_code == 0
        assert "APICHAIN_MOCK=on" in result.output

    def test_invalid_env_value_is_configuration_error(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("APICHAIN_MOCK", "perhaps")
        result = cli_runner.invoke(app, ["mock", "status"])
        assert result.exit_code == 7
        assert "APICHAIN_MOCK" in result.output


# ---------------------------------------------------------------------------
# request
# ---------------------------------------------------------------------------


class TestRequestCommand:
    def test_get_prints_body(self, cli_runner, isolated_config: Path, cli_recorder: TransportRecorder) -> None:
        cli_recorder.routes["GET /v1/users"] = httpx.Response(200, json=[{"id": "1"}])

        result = cli_runner.invoke(
            app, ["--json", "request", "get", "/users", "--base-url", "https://api.test/v1"]
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == [{"id": "1"}]
        assert str(cli_recorder.requests[0].url) == "https://api.test/v1/users"

    def test_headers_params_and_body(
        self, cli_runner, isolated_config: Path, cli_recorder: TransportRecorder
    ) -> None:
        result = cli_runner.invoke(
            app,
            [
                "request", "POST", "https://api.test/users",
                "-H", "X-Trace: 42",
                "-P", "dry_run=1",
                "-d", '{"name": "Ada"}',
            ],
        )

        assert result.exit_code == 0, result.output
        request = cli_recorder.requests[0]
        assert request.headers["x-trace"] == "42"
        assert request.url.params["dry_run"] == "1"
        assert json.loads(request.content) == {"name": "Ada"}

    def test_invalid_method(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["request", "TRACE", "/x"])
        assert result.exit_code == 2
        assert "Unsupported method" in result.output

    def test_invalid_header(self, cli_runner, isolated_config: Path, cli_recorder: TransportRecorder) -> None:
        result = cli_runner.invoke(app, ["request", "GET", "/x", "-H", "no-colon"])
        assert result.exit_code == 2
        assert cli_recorder.requests == []

    @pytest.mark.parametrize(("status", "exit_code"), [(401, 3), (404, 4), (502, 5), (422, 1)])
    def test_http_errors_map_to_exit_codes(
        self,
        cli_runner,
        isolated_config: Path,
        cli_recorder: TransportRecorder,
        status: int,
        exit_code: int,
    ) -> None:
        cli_recorder.routes["GET /missing"] = httpx.Response(status, json={"message": "nope"})

        result = cli_runner.invoke(app, ["request", "GET", "https://api.test/missing"])

        assert result.exit_code == exit_code
        assert f"HTTP {status}" in result.output

    def test_connection_error_exit_code(
        self, cli_runner, isolated_config: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        monkeypatch.setattr("apichain.commands.request.transport", httpx.MockTransport(refuse))
        result = cli_runner.invoke(app, ["request", "GET", "https://api.test/x"])
        assert result.exit_code == 6

    def test_include_prints_status(
        self, cli_runner, isolated_config: Path, cli_recorder: TransportRecorder
    ) -> None:
        result = cli_runner.invoke(app, ["request", "GET", "https://api.test/x", "--include"])
        assert result.exit_code == 0
        assert "HTTP 200" in result.output


class TestRequestWithMocks:
    @pytest.fixture
    def mock_file(self, isolated_config: Path) -> Path:
        path = isolated_config / "mocks.yaml"
        path.write_text('GET /users:\n  - id: "1"\n    name: John\n', encoding="utf-8")
        return path

    def _save_fast_delay(self) -> None:
        config = load_global_config()
        config.mock.delay = 0
        save_global_config(config)

    def test_mock_file_used_when_mock_mode_on(
        self,
        cli_runner,
        mock_file: Path,
        cli_recorder: TransportRecorder,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        self._save_fast_delay()
        monkeypatch.setenv("APICHAIN_MOCK", "1")

        result = cli_runner.invoke(
            app,
            ["--json", "request", "GET", "/users", "-b", "https://api.test", "-m", str(mock_file)],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == [{"id": "1", "name": "John"}]
        assert cli_recorder.requests == []

    def test_mock_file_ignored_when_mock_mode_off(
        self, cli_runner, mock_file: Path, cli_recorder: TransportRecorder
    ) -> None:
        result = cli_runner.invoke(
            app,
            ["--json", "request", "GET", "/users", "-b", "https://api.test", "-m", str(mock_file)],
        )

        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"path": "/users"}
        assert len(cli_recorder.requests) == 1

    def test_persisted_mock_mode(
        self, cli_runner, mock_file: Path, cli_recorder: TransportRecorder
    ) -> None:
        self._save_fast_delay()
        cli_runner.invoke(app, ["mock", "on"])

        result = cli_runner.invoke(
            app,
            ["--json", "request", "GET", "/users", "-b", "https://api.test", "-m", str(mock_file)],
        )

        assert json.loads(result.output)[0]["name"] == "John"
        assert cli_recorder.requests == []

    def test_missing_mock_file_is_configuration_error(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["request", "GET", "/users", "-m", "absent.yaml"])
        assert result.exit_code == 7
        assert "Mock file not found" in result.output
