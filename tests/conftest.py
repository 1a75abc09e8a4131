"""Shared fixtures for lot crawler tests."""

from pathlib import Path

import pytest

from lotcrawler.config import Settings

FIXTURES_DIR = Path(__file__).parent / "fixtures"
BASE_URL = "https://funpay.com/"

_ENV_VARS = (
    "BASE_URL", "TARGET_URLS", "OUTPUT", "DELAY_MIN", "DELAY_MAX", "RUB_EUR_RATE", "CRAWL_LANG",
    "UPLOAD_IMAGES", "IMGUR_CLIENT_ID", "IMGUR_CLIENT_SECRET", "IMGUR_ACCESS_TOKEN",
    "IMAGE_DIR", "PROXIES_FILE", "VERBOSE", "LOG_LEVEL", "LOG_DIR", "METRICS_PORT",
)


def load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep host environment variables and .env files out of Settings."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides) -> Settings:
        values = {
            "output": str(tmp_path / "lots.txt"),
            "image_dir": str(tmp_path / "imgs"),
            "proxies_file": str(tmp_path / "proxies.txt"),
            "log_dir": None,
            "delay_min": 0.0,
            "delay_max": 0.0,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make
