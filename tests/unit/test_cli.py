"""Tests for the ipc-hub command line."""

import textwrap
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from click.testing import CliRunner

from ipc_hub.cli import main


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("IPC_HUB_ROLE", "IPC_HUB_HOST", "IPC_HUB_PORT", "IPC_HUB_CALL_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)


class TestDemo:
    def test_demo_walkthrough(self, runner: CliRunner):
        result = runner.invoke(main, ["demo"])

        assert result.exit_code == 0, result.output
        assert "sum(2, 3) -> 5" in result.output
        assert "worker received broadcast 'greeting': {'text': 'hello workers'}" in result.output
        assert "NoHandlerRegistered: no handler registered for 'sum'" in result.output


class TestHealth:
    def _mock_client(self, mock_cls: MagicMock, **get_kwargs) -> AsyncMock:
        client = AsyncMock()
        client.get = AsyncMock(**get_kwargs)
        mock_cls.return_value.__aenter__.return_value = client
        return client

    def test_healthy(self, runner: CliRunner):
        response = MagicMock(status_code=200)
        response.json.return_value = {"status": "ok", "peers": ["w1"], "handlers": ["sum"]}

        with patch("ipc_hub.cli.httpx.AsyncClient") as mock_cls:
            client = self._mock_client(mock_cls, return_value=response)
            result = runner.invoke(main, ["health", "--url", "http://hub:9000"])

        assert result.exit_code == 0, result.output
        client.get.assert_awaited_once_with("http://hub:9000/health")
        assert "Coordinator is healthy: 1 peer(s)" in result.output
        assert "peer: w1" in result.output
        assert "handler: sum" in result.output

    def test_default_url_from_environment(self, runner: CliRunner, monkeypatch):
        monkeypatch.setenv("IPC_HUB_PORT", "5000")
        response = MagicMock(status_code=200)
        response.json.return_value = {"status": "ok", "peers": [], "handlers": []}

        with patch("ipc_hub.cli.httpx.AsyncClient") as mock_cls:
            client = self._mock_client(mock_cls, return_value=response)
            runner.invoke(main, ["health"])

        client.get.assert_awaited_once_with("http://127.0.0.1:5000/health")

    def test_unreachable(self, runner: CliRunner):
        with patch("ipc_hub.cli.httpx.AsyncClient") as mock_cls:
            self._mock_client(mock_cls, side_effect=httpx.ConnectError("refused"))
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 1

    def test_unhealthy_status(self, runner: CliRunner):
        with patch("ipc_hub.cli.httpx.AsyncClient") as mock_cls:
            self._mock_client(mock_cls, return_value=MagicMock(status_code=503))
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 1


class TestServe:
    def test_serve_loads_handlers(self, runner: CliRunner, tmp_path, monkeypatch):
        (tmp_path / "cli_test_handlers.py").write_text(
            textwrap.dedent(
                """
                def setup_handlers(hub):
                    hub.on("ping", lambda data: "pong")
                """
            )
        )
        monkeypatch.syspath_prepend(str(tmp_path))

        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(
                main, ["serve", "--port", "9100", "--handlers", "cli_test_handlers"]
            )

        assert result.exit_code == 0, result.output
        app = mock_run.call_args[0][0]
        assert app.state.hub.handlers == ["ping"]
        assert mock_run.call_args[1] == {"host": "127.0.0.1", "port": 9100}

    def test_serve_missing_handlers_module(self, runner: CliRunner):
        with patch("uvicorn.run") as mock_run:
            result = runner.invoke(main, ["serve", "--handlers", "no_such_module_xyz"])

        assert result.exit_code == 1
        mock_run.assert_not_called()
