"""
Runtime Configuration for Charla.

Provides a singleton RuntimeConfig class with environment-driven defaults
that can be adjusted at runtime without a restart.

Usage:
    from config import runtime_config
    model = runtime_config.model_chat
    runtime_config.update(temperature=0.2, history_limit=10)
"""

import os
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Any
from threading import Lock

from errors import ConfigurationError

logger = logging.getLogger(__name__)

# Never exported through to_dict() or the health endpoint
SECRET_FIELDS = {"openai_api_key", "openweather_key"}


def _first_env(*keys: str, default: str) -> str:
    """Return the first non-empty environment value from keys, else default."""
    for key in keys:
        value = os.environ.get(key, "").strip()
        if value:
            return value
    return default


def _env_bool(key: str, default: str) -> bool:
    return os.environ.get(key, default).strip().lower() in ("1", "true", "yes")


@dataclass
class RuntimeConfig:
    """
    Singleton configuration for runtime-adjustable parameters.

    All values have defaults from environment variables, but can be
    changed at runtime via the update() method.
    """

    # Completion service
    openai_api_key: str = field(default_factory=lambda: os.environ.get("OPENAI_API_KEY", ""))
    openai_base_url: str = field(default_factory=lambda: os.environ.get("OPENAI_BASE_URL", ""))
    model_chat: str = field(default_factory=lambda: _first_env("LLM_CHAT_MODEL", default="gpt-4o-mini"))
    # Domain classification and context summaries default to the chat model
    model_router: str = field(
        default_factory=lambda: _first_env("LLM_ROUTER_MODEL", "LLM_CHAT_MODEL", default="gpt-4o-mini")
    )
    model_context: str = field(
        default_factory=lambda: _first_env("LLM_CONTEXT_MODEL", "LLM_CHAT_MODEL", default="gpt-4o-mini")
    )
    temperature: float = field(default_factory=lambda: float(os.environ.get("LLM_TEMPERATURE", "0.7")))
    max_output_tokens: int = field(default_factory=lambda: int(os.environ.get("LLM_MAX_OUTPUT", "1024")))
    llm_timeout: float = field(default_factory=lambda: float(os.environ.get("LLM_TIMEOUT", "60")))
    llm_retry_max: int = field(default_factory=lambda: int(os.environ.get("LLM_RETRY_MAX", "2")))
    llm_retry_delay: float = field(default_factory=lambda: float(os.environ.get("LLM_RETRY_DELAY", "1.0")))

    # Tools
    tool_timeout: float = field(default_factory=lambda: float(os.environ.get("TOOL_TIMEOUT", "20")))
    openweather_key: str = field(default_factory=lambda: os.environ.get("OPENWEATHER_KEY", ""))
    openweather_url: str = field(
        default_factory=lambda: os.environ.get(
            "OPENWEATHER_URL", "https://api.openweathermap.org/data/2.5/weather"
        )
    )
    weather_timeout_s: float = field(default_factory=lambda: float(os.environ.get("WEATHER_TIMEOUT_S", "8")))

    # Sessions
    session_ttl_days: int = field(default_factory=lambda: int(os.environ.get("SESSION_TTL_DAYS", "30")))
    session_cookie_name: str = field(default_factory=lambda: os.environ.get("SESSION_COOKIE_NAME", "sessionId"))

    # Conversation history
    history_limit: int = field(default_factory=lambda: int(os.environ.get("HISTORY_LIMIT", "20")))
    context_history_limit: int = field(default_factory=lambda: int(os.environ.get("CONTEXT_HISTORY_LIMIT", "50")))
    context_summary_enabled: bool = field(default_factory=lambda: _env_bool("CONTEXT_SUMMARY_ENABLED", "true"))
    max_message_length: int = field(default_factory=lambda: int(os.environ.get("MAX_MESSAGE_LENGTH", "4000")))

    # Storage
    database_path: str = field(
        default_factory=lambda: os.environ.get(
            "DATABASE_PATH", os.path.join(os.path.dirname(__file__), "data", "charla.db")
        )
    )

    # Environment / HTTP
    charla_env: str = field(default_factory=lambda: os.environ.get("CHARLA_ENV", "development"))
    cors_origins: str = field(
        default_factory=lambda: os.environ.get("CORS_ORIGINS", "http://localhost:3000,http://localhost:8000")
    )

    # Internal state
    _lock: Lock = field(default_factory=Lock, repr=False, compare=False)
    _update_count: int = field(default=0, repr=False)

    # Validation ranges for numeric config values
    _VALIDATION_RANGES: Dict[str, tuple] = field(default_factory=lambda: {
        "temperature": (0.0, 2.0),
        "max_output_tokens": (16, 32768),
        "llm_timeout": (1.0, 600.0),
        "llm_retry_max": (0, 10),
        "llm_retry_delay": (0.0, 60.0),
        "tool_timeout": (0.5, 300.0),
        "weather_timeout_s": (0.5, 60.0),
        "session_ttl_days": (1, 365),
        "history_limit": (0, 200),
        "context_history_limit": (0, 500),
        "max_message_length": (1, 100000),
    })

    @property
    def is_production(self) -> bool:
        return self.charla_env.strip().lower() in ("production", "prod")

    @property
    def cookie_secure(self) -> bool:
        """Session cookie carries the Secure flag only in production."""
        return self.is_production

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_days * 24 * 60 * 60

    def require_openai_key(self) -> str:
        """Return the completion service credential or raise ConfigurationError."""
        key = self.openai_api_key.strip()
        if not key:
            raise ConfigurationError(
                "Completion service credential is not configured",
                details="Set OPENAI_API_KEY",
                setting="OPENAI_API_KEY",
            )
        return key

    def get_cors_origins(self) -> list:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def update(self, **kwargs) -> Dict[str, Any]:
        """
        Update configuration values at runtime.

        Args:
            **kwargs: Key-value pairs to update (e.g., history_limit=10)

        Returns:
            Dict with 'updated' (changed keys) and 'ignored' (unknown keys)
        """
        updated = []
        ignored = []

        with self._lock:
            for key, value in kwargs.items():
                if key.startswith("_"):
                    ignored.append(key)
                    continue

                if hasattr(self, key):
                    # Validate model names (alphanumeric, colons, dots, dashes only)
                    if key.startswith("model_") and isinstance(value, str):
                        if not re.match(r'^[a-zA-Z0-9._:-]+$', value) or len(value) > 100:
                            ignored.append(key)
                            logger.warning(f"Config rejected invalid model name: {key}={value!r}")
                            continue

                    if key == "openweather_url" and isinstance(value, str):
                        cleaned = value.strip()
                        if not cleaned.startswith(("http://", "https://")):
                            ignored.append(key)
                            logger.warning(f"Config rejected invalid URL: {key}={value!r}")
                            continue
                        value = cleaned

                    # Validate numeric ranges
                    if key in self._VALIDATION_RANGES:
                        lo, hi = self._VALIDATION_RANGES[key]
                        if not (lo <= value <= hi):
                            ignored.append(key)
                            logger.warning(f"Config rejected {key}={value} (must be {lo}-{hi})")
                            continue

                    old_value = getattr(self, key)
                    setattr(self, key, value)
                    updated.append(key)
                    if key in SECRET_FIELDS:
                        logger.info(f"Config updated: {key} = ***")
                    else:
                        logger.info(f"Config updated: {key} = {value} (was {old_value})")
                else:
                    ignored.append(key)
                    logger.warning(f"Config ignored unknown key: {key}")

            self._update_count += 1

        return {"updated": updated, "ignored": ignored, "update_count": self._update_count}

    def get_llm_params(self) -> Dict[str, Any]:
        """Get sampling parameters for chat completion calls."""
        return {
            "temperature": self.temperature,
            "max_tokens": self.max_output_tokens,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Export current config as dict (excludes internal fields and secrets)."""
        from dataclasses import fields as dataclass_fields

        result = {}
        for field_info in dataclass_fields(self):
            if field_info.name.startswith("_"):
                continue
            if field_info.name in SECRET_FIELDS:
                result[field_info.name] = bool(getattr(self, field_info.name))
                continue
            result[field_info.name] = getattr(self, field_info.name)
        return result


# Singleton instance
runtime_config = RuntimeConfig()
