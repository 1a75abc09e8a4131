"""Tests for settings validation and derived values."""

import pytest
from pydantic import ValidationError

from lotcrawler.config import ACCEPT_LANGUAGE_EN, ACCEPT_LANGUAGE_RU, ConfigurationError, Settings


def test_defaults():
    settings = Settings(_env_file=None)

    assert settings.base_url == "https://funpay.com/"
    assert settings.output == "lots.txt"
    assert settings.rub_eur_rate == 0.011
    assert settings.lang == ""
    assert settings.page_max_retries == 5
    assert settings.detail_max_retries == 3
    assert settings.upload_enabled is False
    assert settings.accept_language == ACCEPT_LANGUAGE_RU


def test_lang_is_lower_cased():
    settings = Settings(_env_file=None, lang="EN")

    assert settings.lang == "en"
    assert settings.accept_language == ACCEPT_LANGUAGE_EN


def test_lang_from_environment(monkeypatch):
    monkeypatch.setenv("LANG", "C.UTF-8")
    monkeypatch.setenv("CRAWL_LANG", "ru")

    assert Settings(_env_file=None).lang == "ru"


@pytest.mark.parametrize(
    "overrides",
    [
        {"lang": "de"},
        {"rub_eur_rate": 0},
        {"delay_min": -1.0},
        {"delay_min": 3.0, "delay_max": 1.0},
    ],
)
def test_invalid_settings(overrides):
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **overrides)


def test_settings_are_frozen():
    settings = Settings(_env_file=None)
    with pytest.raises(ValidationError):
        settings.output = "other.txt"


def test_credentials_enable_upload(monkeypatch):
    monkeypatch.setenv("IMGUR_CLIENT_SECRET", "secret")

    settings = Settings(_env_file=None)

    assert settings.upload_enabled is True
    with pytest.raises(ConfigurationError):
        settings.upload_credentials()


def test_upload_credentials():
    settings = Settings(_env_file=None, imgur_client_id="cid", imgur_access_token="tok")

    assert settings.upload_credentials() == ("cid", "tok")
