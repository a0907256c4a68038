from __future__ import annotations

import sys
from pathlib import Path

_SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
if str(_SRC_ROOT) not in sys.path:
    sys.path.insert(0, str(_SRC_ROOT))

import pytest

from marketsync.config import Settings, env_defaults


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("MARKET_ENV", "MARKET_WS_URL", "MARKET_API_URL", "RECONNECT_DELAY_SECONDS"):
            monkeypatch.delenv(name, raising=False)
        s = Settings(_env_file=None)
        assert s.ws_url == "ws://localhost:8080"
        assert s.api_url == "http://localhost:8080"
        assert s.reconnect_delay_seconds == 3.0
        assert s.notification_ttl_seconds == 5.0
        assert s.payment_method == "credit_card"

    def test_prod_env(self, monkeypatch):
        monkeypatch.delenv("MARKET_WS_URL", raising=False)
        monkeypatch.delenv("MARKET_API_URL", raising=False)
        monkeypatch.setenv("MARKET_ENV", "prod")
        s = Settings(_env_file=None)
        assert s.ws_url.startswith("wss://")
        assert s.api_url.startswith("https://")

    def test_explicit_urls_win(self, monkeypatch):
        monkeypatch.setenv("MARKET_WS_URL", "ws://10.0.0.5:8080")
        monkeypatch.setenv("MARKET_API_URL", "http://10.0.0.5:8080/")
        s = Settings(_env_file=None)
        assert s.ws_url == "ws://10.0.0.5:8080"
        assert s.api_url == "http://10.0.0.5:8080"

    def test_unknown_env(self):
        with pytest.raises(ValueError):
            env_defaults("staging")
