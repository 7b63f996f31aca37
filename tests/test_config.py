from __future__ import annotations

import os

import pytest

from holder_lottery.config import Settings
from holder_lottery.errors import ConfigurationMissing


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    # Keep a developer's .env out of the picture.
    monkeypatch.chdir(tmp_path)
    for name in (
        "HELIUS_API_KEY",
        "BIRDEYE_API_KEY",
        "RPC_URL",
        "LOTTERY_TIMEOUT_S",
        "LOTTERY_HISTORY_PAGES",
    ):
        monkeypatch.delenv(name, raising=False)


def test_missing_helius_key_is_fatal():
    with pytest.raises(ConfigurationMissing):
        Settings.from_env()


def test_defaults_build_helius_rpc_url(monkeypatch):
    monkeypatch.setenv("HELIUS_API_KEY", "abc")

    s = Settings.from_env()

    assert s.rpc_url == "https://mainnet.helius-rpc.com/?api-key=abc"
    assert s.birdeye_api_key is None
    assert s.timeout_s == 30.0
    assert s.history_pages == 1


def test_env_and_override(monkeypatch):
    monkeypatch.setenv("HELIUS_API_KEY", "abc")
    monkeypatch.setenv("BIRDEYE_API_KEY", " bird ")
    monkeypatch.setenv("RPC_URL", "https://env.rpc")
    monkeypatch.setenv("LOTTERY_HISTORY_PAGES", "3")

    assert Settings.from_env().rpc_url == "https://env.rpc"
    assert Settings.from_env(rpc_url_override="https://cli.rpc").rpc_url == "https://cli.rpc"
    assert Settings.from_env().birdeye_api_key == "bird"
    assert Settings.from_env().history_pages == 3


def test_dotenv_file_is_loaded(tmp_path):
    (tmp_path / ".env").write_text("HELIUS_API_KEY=from-dotenv\n")

    try:
        assert Settings.from_env().helius_api_key == "from-dotenv"
    finally:
        os.environ.pop("HELIUS_API_KEY", None)
