"""Configuration management for the chat client."""

import os
from typing import Any

import yaml
from dotenv import load_dotenv

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "config.yaml")


class Configuration:
    """Manages configuration and environment variables for the chat client."""

    def __init__(self, config_path: str | None = None) -> None:
        """Initialize configuration from YAML and environment variables."""
        self.load_env()  # Load .env for API keys
        self.config_path = config_path or DEFAULT_CONFIG_PATH
        self._config = self._load_yaml_config(self.config_path)

    @staticmethod
    def load_env() -> None:
        """Load environment variables from .env file."""
        load_dotenv()

    @staticmethod
    def _load_yaml_config(config_path: str) -> dict[str, Any]:
        """Load configuration from YAML file."""
        with open(config_path) as file:
            config = yaml.safe_load(file)
            if not isinstance(config, dict):
                raise ValueError(
                    f"Config file must be YAML dict, got {type(config)}"
                )
            return config

    @property
    def llm_api_key(self) -> str:
        """Get the API key for the active LLM provider.

        Returns:
            The API key as a string.

        Raises:
            ValueError: If the API key is not found in environment variables.
        """
        llm_config = self._config.get("llm", {})
        active_provider = llm_config.get("active", "openai")

        # Map provider names to environment variable names
        provider_key_map = {
            "openai": "OPENAI_API_KEY",
            "groq": "GROQ_API_KEY",
            "openrouter": "OPENROUTER_API_KEY",
            "supabase": "SUPABASE_PUBLISHABLE_KEY",
        }

        provider_config = self.get_llm_config()
        env_key = provider_config.get("api_key_env") or provider_key_map.get(
            active_provider
        )
        if not env_key:
            raise ValueError(
                f"Unknown provider '{active_provider}' - no API key mapping found"
            )

        api_key = os.getenv(env_key)
        if not api_key:
            raise ValueError(
                f"API key '{env_key}' not found in environment variables "
                f"for provider '{active_provider}'"
            )

        return api_key

    def get_llm_config(self) -> dict[str, Any]:
        """Get active LLM provider configuration from YAML.

        Raises:
            ValueError: If the active provider or its required keys are missing.
        """
        llm_config = self._config.get("llm", {})
        active_provider = llm_config.get("active", "openai")
        providers = llm_config.get("providers", {})

        if active_provider not in providers:
            raise ValueError(
                f"Active provider '{active_provider}' not found in providers config"
            )

        provider_config = providers[active_provider]
        for key in ["base_url", "chat_path", "model"]:
            if key not in provider_config:
                raise ValueError(
                    f"llm.providers.{active_provider}.{key} must be explicitly "
                    "configured in config.yaml"
                )

        return provider_config

    def get_http_client_config(self) -> dict[str, Any]:
        """Get HTTP client configuration for the active LLM provider.

        Raises:
            ValueError: If required HTTP client parameters are missing or invalid.
        """
        http_config = self.get_llm_config().get("http_client", {})

        required_keys = [
            "connect_timeout", "read_timeout", "write_timeout", "pool_timeout"
        ]
        for key in required_keys:
            if key not in http_config:
                raise ValueError(
                    f"http_client.{key} must be explicitly configured "
                    f"for provider '{self._config['llm']['active']}' in config.yaml"
                )
            if http_config[key] <= 0:
                raise ValueError(f"http_client.{key} must be positive")

        return http_config

    def get_streaming_config(self) -> dict[str, Any]:
        """Get streaming configuration from YAML.

        Raises:
            ValueError: If required streaming parameters are missing or invalid.
        """
        streaming_config = self._config.get("chat", {}).get("streaming", {})

        if "sentinel" not in streaming_config:
            raise ValueError(
                "streaming.sentinel must be explicitly configured "
                "in config.yaml under chat.streaming"
            )
        if not isinstance(streaming_config["sentinel"], str) or not (
            streaming_config["sentinel"].strip()
        ):
            raise ValueError("streaming.sentinel must not be empty")

        return streaming_config

    def get_chat_config(self) -> dict[str, Any]:
        """Get chat session configuration from YAML.

        Raises:
            ValueError: If required chat parameters are missing.
        """
        chat_config = self._config.get("chat", {})

        for key in ["conversation_id", "error_message"]:
            if key not in chat_config:
                raise ValueError(
                    f"chat.{key} must be explicitly configured in config.yaml"
                )

        return chat_config

    def get_logging_config(self) -> dict[str, Any]:
        """Get logging configuration from YAML."""
        return self._config.get("logging", {})

    def get_repository_config(self) -> dict[str, Any]:
        """Get repository configuration from YAML.

        Returns:
            Repository configuration dictionary with backend and persistence
            settings.

        Raises:
            ValueError: If required repository parameters are missing.
        """
        repo_config = self._config.get("chat", {}).get("repository", {})

        # Create new dictionary without mutating the original
        result_config = {**repo_config}

        for key in ["backend", "path", "persistence"]:
            if key not in result_config:
                raise ValueError(
                    f"repository.{key} must be explicitly configured in "
                    "config.yaml under chat.repository"
                )

        valid_backends = ["sql", "jsonl"]
        if result_config["backend"] not in valid_backends:
            raise ValueError(
                f"repository.backend must be one of: {valid_backends}"
            )

        persistence_config = result_config["persistence"]
        required_keys = [
            "enabled",
            "retention_policy",
            "max_messages_per_conversation",
            "retention_days",
            "clear_on_startup"
        ]
        for key in required_keys:
            if key not in persistence_config:
                raise ValueError(
                    f"repository.persistence.{key} must be explicitly configured "
                    "in config.yaml"
                )

        valid_policies = ["message_count", "time_based", "unlimited"]
        if persistence_config["retention_policy"] not in valid_policies:
            raise ValueError(
                "repository.persistence.retention_policy must be one of: "
                f"{valid_policies}"
            )

        return result_config
