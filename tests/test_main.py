"""Tests for the API server entry point."""

from unittest.mock import MagicMock, patch

from src.main import main, resolve_server
from src.utils.config import AppConfig, ServerConfig


class TestResolveServer:
    def test_uses_config_without_overrides(self) -> None:
        server = resolve_server(ServerConfig(host="0.0.0.0", port=9000))
        assert (server.host, server.port) == ("0.0.0.0", 9000)

    def test_overrides_win(self) -> None:
        server = resolve_server(ServerConfig(), host="0.0.0.0", port=8080)
        assert (server.host, server.port) == ("0.0.0.0", 8080)


class TestMain:
    @patch("src.main.uvicorn.run")
    @patch("src.main.load_config")
    def test_runs_with_configured_address(
        self, mock_config: MagicMock, mock_run: MagicMock
    ) -> None:
        mock_config.return_value = AppConfig(server=ServerConfig(port=9001))
        main([])
        _, kwargs = mock_run.call_args
        assert kwargs == {"host": "127.0.0.1", "port": 9001}

    @patch("src.main.uvicorn.run")
    @patch("src.main.load_config")
    def test_port_flag(self, mock_config: MagicMock, mock_run: MagicMock) -> None:
        mock_config.return_value = AppConfig()
        main(["--port", "8100"])
        assert mock_run.call_args.kwargs["port"] == 8100
