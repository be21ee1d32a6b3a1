#!/usr/bin/env python3
"""
Test explicit configuration requirements.
"""

import copy

import pytest
import yaml

from streamchat.config import Configuration

BASE_CONFIG = {
    "llm": {
        "active": "openai",
        "providers": {
            "openai": {
                "base_url": "https://api.openai.com/v1",
                "chat_path": "/chat/completions",
                "model": "gpt-4o-mini",
                "api_key_env": "STREAMCHAT_TEST_API_KEY",
                "http_client": {
                    "connect_timeout": 5.0,
                    "read_timeout": 30.0,
                    "write_timeout": 5.0,
                    "pool_timeout": 5.0,
                },
            }
        },
    },
    "chat": {
        "conversation_id": "default",
        "error_message": "Failed to send message. Please try again.",
        "streaming": {"sentinel": "[DONE]"},
        "repository": {
            "backend": "sql",
            "path": "messages.db",
            "persistence": {
                "enabled": True,
                "clear_on_startup": False,
                "retention_policy": "unlimited",
                "max_messages_per_conversation": 100,
                "retention_days": 30,
            },
        },
    },
    "logging": {"level": "DEBUG"},
}


@pytest.fixture
def write_config(tmp_path):
    """Write a config derived from BASE_CONFIG and load it."""

    def factory(mutate=None):
        config = copy.deepcopy(BASE_CONFIG)
        if mutate is not None:
            mutate(config)
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump(config), encoding="utf-8")
        return Configuration(str(path))

    return factory


def openai_provider(config):
    return config["llm"]["providers"]["openai"]


class TestLLMConfig:
    """LLM provider configuration."""

    def test_valid_provider(self, write_config):
        llm_config = write_config().get_llm_config()
        assert llm_config["chat_path"] == "/chat/completions"
        assert llm_config["model"] == "gpt-4o-mini"

    @pytest.mark.parametrize("key", ["base_url", "chat_path", "model"])
    def test_required_provider_keys(self, write_config, key):
        config = write_config(lambda c: openai_provider(c).pop(key))
        with pytest.raises(ValueError, match=f"llm.providers.openai.{key}"):
            config.get_llm_config()

    def test_unknown_active_provider(self, write_config):
        config = write_config(lambda c: c["llm"].update(active="missing"))
        with pytest.raises(ValueError, match="Active provider 'missing' not found"):
            config.get_llm_config()

    def test_api_key_from_configured_env(self, write_config, monkeypatch):
        monkeypatch.setenv("STREAMCHAT_TEST_API_KEY", "sk-test")
        assert write_config().llm_api_key == "sk-test"

    def test_missing_api_key(self, write_config, monkeypatch):
        monkeypatch.delenv("STREAMCHAT_TEST_API_KEY", raising=False)
        with pytest.raises(ValueError, match="STREAMCHAT_TEST_API_KEY"):
            _ = write_config().llm_api_key

    def test_api_key_falls_back_to_provider_map(self, write_config, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        config = write_config(lambda c: openai_provider(c).pop("api_key_env"))
        assert config.llm_api_key == "sk-openai"

    def test_http_timeouts_required(self, write_config):
        config = write_config(
            lambda c: openai_provider(c)["http_client"].pop("read_timeout")
        )
        with pytest.raises(ValueError, match="http_client.read_timeout"):
            config.get_http_client_config()

    def test_http_timeouts_positive(self, write_config):
        config = write_config(
            lambda c: openai_provider(c)["http_client"].update(pool_timeout=0)
        )
        with pytest.raises(ValueError, match="pool_timeout must be positive"):
            config.get_http_client_config()


class TestChatConfig:
    """Chat, streaming and repository configuration."""

    def test_valid_sections(self, write_config):
        config = write_config()
        assert config.get_chat_config()["conversation_id"] == "default"
        assert config.get_streaming_config()["sentinel"] == "[DONE]"
        assert config.get_repository_config()["backend"] == "sql"
        assert config.get_logging_config() == {"level": "DEBUG"}

    def test_chat_keys_required(self, write_config):
        config = write_config(lambda c: c["chat"].pop("error_message"))
        with pytest.raises(ValueError, match="chat.error_message"):
            config.get_chat_config()

    def test_sentinel_required(self, write_config):
        config = write_config(lambda c: c["chat"]["streaming"].pop("sentinel"))
        with pytest.raises(ValueError, match="streaming.sentinel"):
            config.get_streaming_config()

    def test_sentinel_not_blank(self, write_config):
        config = write_config(lambda c: c["chat"]["streaming"].update(sentinel=" "))
        with pytest.raises(ValueError, match="must not be empty"):
            config.get_streaming_config()

    def test_invalid_backend(self, write_config):
        config = write_config(
            lambda c: c["chat"]["repository"].update(backend="postgres")
        )
        with pytest.raises(ValueError, match="repository.backend must be one of"):
            config.get_repository_config()

    def test_invalid_retention_policy(self, write_config):
        config = write_config(
            lambda c: c["chat"]["repository"]["persistence"].update(
                retention_policy="token_limit"
            )
        )
        with pytest.raises(ValueError, match="retention_policy must be one of"):
            config.get_repository_config()

    def test_persistence_keys_required(self, write_config):
        config = write_config(
            lambda c: c["chat"]["repository"]["persistence"].pop("clear_on_startup")
        )
        with pytest.raises(ValueError, match="persistence.clear_on_startup"):
            config.get_repository_config()

    def test_repository_config_not_mutated(self, write_config):
        config = write_config()
        config.get_repository_config()["backend"] = "jsonl"
        assert config.get_repository_config()["backend"] == "sql"


class TestConfigFile:
    """Loading of the YAML file itself."""

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError, match="Config file must be YAML dict"):
            Configuration(str(path))

    def test_shipped_config_is_valid(self):
        config = Configuration()
        assert config.get_llm_config()["base_url"]
        assert config.get_http_client_config()["read_timeout"] > 0
        assert config.get_streaming_config()["sentinel"] == "[DONE]"
        assert config.get_chat_config()["error_message"]
        assert config.get_repository_config()["backend"] in ("sql", "jsonl")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
