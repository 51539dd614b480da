"""
Tests for environment-driven settings.
"""

import pytest

from classifieds.config import DEFAULT_SUPABASE_URL, Settings
from classifieds.errors import ConfigurationError

ENV_KEYS = (
    "MARKETPLACE_BACKEND",
    "APP_ID",
    "INITIAL_AUTH_TOKEN",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "FIREBASE_CONFIG",
    "LISTINGS_TABLE",
    "BUCKET_NAME",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults():
    settings = Settings.from_env()
    assert settings.backend == "supabase"
    assert settings.app_id == "default-app-id"
    assert settings.initial_auth_token == ""
    assert settings.supabase_url == DEFAULT_SUPABASE_URL
    assert settings.listings_table == "listings"
    assert settings.bucket_name == "listing_images"
    assert settings.credentials_present()


def test_injected_values(monkeypatch):
    monkeypatch.setenv("MARKETPLACE_BACKEND", "Firestore")
    monkeypatch.setenv("APP_ID", "market-42")
    monkeypatch.setenv("INITIAL_AUTH_TOKEN", "custom-token")
    monkeypatch.setenv("FIREBASE_CONFIG", '{"apiKey": "key", "projectId": "proj"}')

    settings = Settings.from_env()

    assert settings.backend == "firestore"
    assert settings.initial_auth_token == "custom-token"
    assert settings.firestore_collection == "artifacts/market-42/public/data/listings"
    assert settings.channel_name == "public_listings_changes_market-42"
    assert settings.credentials_present()


def test_unknown_backend(monkeypatch):
    monkeypatch.setenv("MARKETPLACE_BACKEND", "mongo")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_bad_firebase_config(monkeypatch):
    monkeypatch.setenv("FIREBASE_CONFIG", "{not json")
    with pytest.raises(ConfigurationError):
        Settings.from_env()


def test_blank_supabase_credentials(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "")
    settings = Settings.from_env()
    assert not settings.credentials_present()
    with pytest.raises(ConfigurationError):
        settings.require_credentials()
