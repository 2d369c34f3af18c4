import pytest

from image_pipeline import config
from image_pipeline.config import Settings

ENV_VARS = [
    "VISION_ENDPOINT", "VISION_KEY", "KEYVAULT_ENDPOINT", "DATABASE_URL",
    "AZURE_STORAGE_CONNECTION_STRING", "AZURE_STORAGE_ACCOUNT_URL", "AZURE_STORAGE_QUEUE_URL",
    "IMAGES_CONTAINER", "DESCRIPTION_QUEUE", "FAIL_OPEN_ON_ANALYSIS_ERROR",
    "MAX_DEQUEUE_COUNT", "QUEUE_POLL_INTERVAL", "APP_LOG_FILE",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return tmp_path / "missing.env"


@pytest.fixture
def required_env(monkeypatch, clean_env):
    monkeypatch.setenv("VISION_ENDPOINT", "https://vision.example.com/")
    monkeypatch.setenv("VISION_KEY", "secret")
    monkeypatch.setenv("DATABASE_URL", "sqlite:///images.db")
    monkeypatch.setenv("AZURE_STORAGE_CONNECTION_STRING", "UseDevelopmentStorage=true")
    return clean_env


class TestSettings:
    """Tests for environment based settings."""

    def test_defaults(self, required_env):
        settings = Settings.from_env(required_env)

        assert settings.vision_key == "secret"
        assert settings.images_container == "images"
        assert settings.description_queue == "description-tickets"
        assert settings.fail_open_on_analysis_error is True
        assert settings.max_dequeue_count == 5

    def test_missing_variables_are_listed(self, clean_env):
        with pytest.raises(ValueError) as excinfo:
            Settings.from_env(clean_env)

        message = str(excinfo.value)
        assert "VISION_ENDPOINT" in message
        assert "DATABASE_URL" in message
        assert "AZURE_STORAGE_CONNECTION_STRING" in message

    def test_account_urls_replace_connection_string(self, monkeypatch, required_env):
        monkeypatch.delenv("AZURE_STORAGE_CONNECTION_STRING")
        monkeypatch.setenv("AZURE_STORAGE_ACCOUNT_URL", "https://acct.blob.core.windows.net/")
        monkeypatch.setenv("AZURE_STORAGE_QUEUE_URL", "https://acct.queue.core.windows.net/")

        settings = Settings.from_env(required_env)

        assert settings.storage_connection_string is None
        assert settings.storage_queue_url == "https://acct.queue.core.windows.net/"

    @pytest.mark.parametrize("value,expected", [("false", False), ("0", False), ("TRUE", True), ("", True)])
    def test_fail_open_toggle(self, monkeypatch, required_env, value, expected):
        monkeypatch.setenv("FAIL_OPEN_ON_ANALYSIS_ERROR", value)
        assert Settings.from_env(required_env).fail_open_on_analysis_error is expected

    def test_vision_key_from_key_vault(self, monkeypatch, required_env):
        monkeypatch.delenv("VISION_KEY")
        monkeypatch.setenv("KEYVAULT_ENDPOINT", "https://vault.example.com/")
        requested = []

        def fake_secret(endpoint, name):
            requested.append((endpoint, name))
            return "from-vault"

        monkeypatch.setattr(config, "get_keyvault_secret", fake_secret)

        settings = Settings.from_env(required_env)

        assert settings.vision_key == "from-vault"
        assert requested == [("https://vault.example.com/", "vision-key")]

    def test_env_file_is_loaded(self, monkeypatch, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "VISION_ENDPOINT=https://vision.example.com/\n"
            "VISION_KEY=file-key\n"
            "DATABASE_URL=sqlite://\n"
            "AZURE_STORAGE_CONNECTION_STRING=UseDevelopmentStorage=true\n"
            "DESCRIPTION_QUEUE=tickets\n"
        )
        # Registered with monkeypatch so values loaded from the file are removed afterwards.
        for name in ENV_VARS:
            monkeypatch.setenv(name, "placeholder")
            monkeypatch.delenv(name)

        settings = Settings.from_env(env_file)

        assert settings.vision_key == "file-key"
        assert settings.description_queue == "tickets"

    def test_log_file_is_not_a_setting(self, monkeypatch, required_env):
        """APP_LOG_FILE is read by the module loggers, not carried on Settings."""
        monkeypatch.setenv("APP_LOG_FILE", "pipeline.log")
        settings = Settings.from_env(required_env)
        assert "log_file" not in Settings.model_fields
        assert not hasattr(settings, "log_file")
