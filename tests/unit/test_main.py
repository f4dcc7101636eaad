"""
Unit Tests for the Command-Line Entry Point

Reliability Level: SOVEREIGN TIER

Tests __main__:
- Argument parsing
- Startup configuration failure prints a JSON payload and exits 1
- Successful startup hands the loaded config to serve()
"""

import json
from unittest.mock import AsyncMock, patch

import pytest

from bitget_mcp import __main__ as cli


class TestParser:

    def test_defaults(self):
        args = cli.build_parser().parse_args([])
        assert args.modules is None
        assert args.read_only is False
        assert args.transport == "stdio"
        assert args.port == 8086

    def test_options(self):
        args = cli.build_parser().parse_args(
            ["--modules", "spot,earn", "--read-only", "--transport", "sse", "--port", "9000"]
        )
        assert args.modules == "spot,earn"
        assert args.read_only is True
        assert args.transport == "sse"
        assert args.port == 9000

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.build_parser().parse_args(["--version"])
        assert exc_info.value.code == 0
        assert "bitget-mcp-server 1.0.0" in capsys.readouterr().out


class TestMain:

    @pytest.fixture(autouse=True)
    def isolated_environment(self, monkeypatch):
        for name in (
            "BITGET_API_KEY", "BITGET_SECRET_KEY", "BITGET_PASSPHRASE",
            "BITGET_METRICS_PORT", "BITGET_LOG_LEVEL", "BITGET_TIMEOUT_MS",
            "BITGET_API_BASE_URL", "BITGET_RATE_LIMIT_MAX_WAIT_MS",
        ):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setattr(cli, "load_dotenv", lambda: None)
        monkeypatch.setattr(cli.logging, "basicConfig", lambda **kwargs: None)

    def test_partial_credentials_exit_with_payload(self, monkeypatch, capsys):
        monkeypatch.setenv("BITGET_API_KEY", "only-the-key")

        with pytest.raises(SystemExit) as exc_info:
            cli.main([])

        assert exc_info.value.code == 1
        captured = capsys.readouterr()
        assert captured.out == ""
        payload = json.loads(captured.err[captured.err.index("{"):])
        assert payload["error"] is True
        assert payload["type"] == "ConfigError"

    def test_unknown_module_exit(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["--modules", "margin"])
        assert exc_info.value.code == 1

    def test_serve_receives_config(self):
        with patch.object(cli, "serve", new=AsyncMock()) as serve:
            cli.main(["--modules", "spot", "--read-only", "--transport", "sse", "--port", "9001"])

        serve.assert_awaited_once()
        config = serve.await_args.args[0]
        assert config.modules == ["spot"]
        assert config.read_only is True
        assert serve.await_args.kwargs == {"transport": "sse", "host": "0.0.0.0", "port": 9001}
