"""
Tests for provider credential loading.
"""

import json

import pytest

from copper_sync.auth.credentials import (
    CREDENTIALS_FILE,
    ENV_VARS,
    CredentialsError,
    ProviderCredentials,
    load_credentials,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for env_var in ENV_VARS.values():
        monkeypatch.delenv(env_var, raising=False)


def _write(config_dir, data):
    (config_dir / CREDENTIALS_FILE).write_text(json.dumps(data))


class TestLoadCredentials:
    """Tests for load_credentials()."""

    def test_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COPPER_API_KEY", "ck")
        monkeypatch.setenv("COPPER_USER_EMAIL", "ops@example.com")
        monkeypatch.setenv("MAILERLITE_API_KEY", "mk")

        credentials = load_credentials(tmp_path)

        assert credentials == ProviderCredentials("ck", "ops@example.com", "mk")

    def test_from_file(self, tmp_path):
        _write(
            tmp_path,
            {
                "copper_api_key": "ck",
                "copper_user_email": "ops@example.com",
                "mailerlite_api_key": "mk",
            },
        )

        credentials = load_credentials(tmp_path)

        assert credentials.copper_api_key == "ck"
        assert credentials.mailerlite_api_key == "mk"

    def test_environment_wins_over_file(self, tmp_path, monkeypatch):
        _write(
            tmp_path,
            {
                "copper_api_key": "file-key",
                "copper_user_email": "ops@example.com",
                "mailerlite_api_key": "mk",
            },
        )
        monkeypatch.setenv("COPPER_API_KEY", "env-key")

        assert load_credentials(tmp_path).copper_api_key == "env-key"

    def test_missing_values_named(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COPPER_API_KEY", "ck")

        with pytest.raises(CredentialsError) as exc_info:
            load_credentials(tmp_path)

        message = str(exc_info.value)
        assert "COPPER_USER_EMAIL" in message
        assert "MAILERLITE_API_KEY" in message
        assert "COPPER_API_KEY," not in message

    def test_blank_values_count_as_missing(self, tmp_path, monkeypatch):
        monkeypatch.setenv("COPPER_API_KEY", "  ")
        monkeypatch.setenv("COPPER_USER_EMAIL", "ops@example.com")
        monkeypatch.setenv("MAILERLITE_API_KEY", "mk")

        with pytest.raises(CredentialsError, match="COPPER_API_KEY"):
            load_credentials(tmp_path)

    def test_invalid_json(self, tmp_path):
        (tmp_path / CREDENTIALS_FILE).write_text("{not json")

        with pytest.raises(CredentialsError, match="Failed to read"):
            load_credentials(tmp_path)

    def test_non_object_json(self, tmp_path):
        _write(tmp_path, ["ck"])

        with pytest.raises(CredentialsError, match="JSON object"):
            load_credentials(tmp_path)


class TestProviderCredentials:
    """Tests for ProviderCredentials."""

    def test_repr_hides_tokens(self):
        text = repr(ProviderCredentials("secret-ck", "ops@example.com", "secret-mk"))
        assert "secret" not in text
        assert "ops@example.com" in text
