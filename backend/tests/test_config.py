"""
Tests for RuntimeConfig: environment defaults, runtime updates and secrets.
"""

import pytest

from config import RuntimeConfig
from errors import ConfigurationError


class TestEnvironmentDefaults:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("LLM_CHAT_MODEL", "gpt-test")
        monkeypatch.setenv("HISTORY_LIMIT", "7")
        monkeypatch.setenv("CONTEXT_SUMMARY_ENABLED", "false")
        monkeypatch.delenv("LLM_ROUTER_MODEL", raising=False)

        cfg = RuntimeConfig()

        assert cfg.model_chat == "gpt-test"
        # Router model falls back to the chat model
        assert cfg.model_router == "gpt-test"
        assert cfg.history_limit == 7
        assert cfg.context_summary_enabled is False

    def test_cookie_secure_only_in_production(self, monkeypatch):
        monkeypatch.setenv("CHARLA_ENV", "production")
        assert RuntimeConfig().cookie_secure is True
        monkeypatch.setenv("CHARLA_ENV", "development")
        assert RuntimeConfig().cookie_secure is False

    def test_session_ttl_seconds(self):
        cfg = RuntimeConfig()
        cfg.session_ttl_days = 30
        assert cfg.session_ttl_seconds == 2592000

    def test_cors_origins(self):
        cfg = RuntimeConfig()
        cfg.cors_origins = "http://a.test, ,http://b.test"
        assert cfg.get_cors_origins() == ["http://a.test", "http://b.test"]


class TestCredential:
    def test_missing_key(self):
        cfg = RuntimeConfig()
        cfg.openai_api_key = "  "
        with pytest.raises(ConfigurationError) as exc_info:
            cfg.require_openai_key()
        assert exc_info.value.context["setting"] == "OPENAI_API_KEY"

    def test_present_key(self):
        cfg = RuntimeConfig()
        cfg.openai_api_key = "sk-test"
        assert cfg.require_openai_key() == "sk-test"


class TestUpdate:
    """Runtime updates are validated and reported."""

    def test_valid_update(self):
        cfg = RuntimeConfig()
        result = cfg.update(history_limit=5, temperature=0.1)

        assert sorted(result["updated"]) == ["history_limit", "temperature"]
        assert cfg.history_limit == 5
        assert cfg.get_llm_params()["temperature"] == 0.1

    @pytest.mark.parametrize(
        "changes",
        [
            {"history_limit": 1000},
            {"model_chat": "bad model; rm -rf"},
            {"openweather_url": "ftp://weather"},
            {"_update_count": 99},
            {"not_a_setting": 1},
        ],
    )
    def test_rejected_updates(self, changes):
        cfg = RuntimeConfig()
        before = cfg.to_dict()

        result = cfg.update(**changes)

        assert result["updated"] == []
        assert result["ignored"] == list(changes)
        assert cfg.to_dict() == before


class TestSecrets:
    def test_to_dict_masks_secrets(self):
        cfg = RuntimeConfig()
        cfg.openai_api_key = "sk-very-secret"
        cfg.openweather_key = ""

        exported = cfg.to_dict()

        assert exported["openai_api_key"] is True
        assert exported["openweather_key"] is False
        assert "sk-very-secret" not in str(exported)
        assert not any(key.startswith("_") for key in exported)
