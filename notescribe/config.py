"""
Settings lookup for notescribe.

A key resolves from the first source that has a non-empty value:
an explicit override (API request options, CLI flags), then the
environment (``.env`` is loaded at import), then the defaults below.

Processing runs do not call ConfigManager while they work. They take a
ProcessingSettings snapshot up front, so editing settings mid-run cannot
mix old and new values within one recording.
"""

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

load_dotenv()

_TRUE_VALUES = {"1", "true", "yes", "on"}


def _is_set(value: Any) -> bool:
    return value is not None and value != ""


class ConfigManager:
    """Resolves settings by precedence: override, environment, default."""

    DEFAULTS = {
        # server
        "API_HOST": "127.0.0.1",
        "API_PORT": "5001",
        "JOBS_DIR": "server_jobs",
        "MAX_WORKERS": "2",
        "LOG_LEVEL": "INFO",
        # pipeline
        "TRANSCRIPTION_PROVIDER": "local",
        "TRANSCRIPTION_MODEL": "base",
        "SUMMARY_PROVIDER": "local",
        "SUMMARY_MODEL": "",
        "LANGUAGE": "",
        "WHISPER_MODEL": "base",
        "ENABLE_DIARIZATION": "true",
        "DIARIZATION_MODEL": "pyannote/speaker-diarization-3.1",
        # credentials and endpoints
        "HUGGINGFACE_TOKEN": "",
        "OPENAI_API_KEY": "",
        "GEMINI_API_KEY": "",
        "GROQ_API_KEY": "",
        "OPENROUTER_API_KEY": "",
        "OLLAMA_BASE_URL": "http://localhost:11434/v1",
        "CUSTOM_API_KEY": "",
        "CUSTOM_BASE_URL": "",
    }

    @staticmethod
    def get_display_value(key: str, ui_override: Optional[Any] = None) -> tuple[Any, str]:
        """
        Resolve a key and report where the value came from.

        Returns:
            (value, source) with source one of "ui", "env" or "default"
        """
        if _is_set(ui_override):
            return ui_override, "ui"
        from_env = os.getenv(key)
        if _is_set(from_env):
            return from_env, "env"
        return ConfigManager.DEFAULTS.get(key, ""), "default"

    @staticmethod
    def get(key: str, ui_override: Optional[Any] = None) -> Any:
        return ConfigManager.get_display_value(key, ui_override)[0]

    @staticmethod
    def get_bool(key: str, ui_override: Optional[Any] = None) -> bool:
        value = ConfigManager.get(key, ui_override)
        return value if isinstance(value, bool) else str(value).strip().lower() in _TRUE_VALUES

    @staticmethod
    def get_int(key: str, ui_override: Optional[Any] = None) -> int:
        """Integer setting; unparsable values fall back to the default."""
        try:
            return int(ConfigManager.get(key, ui_override))
        except (TypeError, ValueError):
            return int(ConfigManager.DEFAULTS[key])

    @staticmethod
    def is_using_default(key: str, ui_override: Optional[Any] = None) -> bool:
        return ConfigManager.get_display_value(key, ui_override)[1] == "default"

    @staticmethod
    def is_using_env(key: str, ui_override: Optional[Any] = None) -> bool:
        return ConfigManager.get_display_value(key, ui_override)[1] == "env"

    @staticmethod
    def is_using_ui(key: str, ui_override: Optional[Any] = None) -> bool:
        return ConfigManager.get_display_value(key, ui_override)[1] == "ui"


# Environment key holding the API key for each networked provider
API_KEY_SETTINGS = {
    "openai": "OPENAI_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "groq": "GROQ_API_KEY",
    "openrouter": "OPENROUTER_API_KEY",
    "custom": "CUSTOM_API_KEY",
}

# Providers whose base URL is user-configurable
BASE_URL_SETTINGS = {
    "ollama": "OLLAMA_BASE_URL",
    "custom": "CUSTOM_BASE_URL",
}


@dataclass(frozen=True)
class ProcessingSettings:
    """Immutable configuration snapshot for a single processing run."""

    transcription_provider: str = "local"
    transcription_model: str = "base"
    summary_provider: str = "local"
    summary_model: str = ""
    language: Optional[str] = None
    enable_diarization: bool = True
    whisper_model: str = "base"
    api_keys: Mapping[str, str] = field(default_factory=dict)
    base_urls: Mapping[str, str] = field(default_factory=dict)

    def api_key_for(self, provider_id: str) -> str:
        return self.api_keys.get(provider_id, "")

    def base_url_for(self, provider_id: str) -> str:
        return self.base_urls.get(provider_id, "")

    @classmethod
    def snapshot(cls, overrides: Optional[Dict[str, Any]] = None) -> "ProcessingSettings":
        """
        Resolve every setting once through ConfigManager.

        Args:
            overrides: Optional mapping of configuration keys to override values,
                       e.g. {"SUMMARY_PROVIDER": "groq"}

        Returns:
            Frozen ProcessingSettings for one run
        """
        overrides = overrides or {}

        def resolve(key: str) -> Any:
            return ConfigManager.get(key, overrides.get(key))

        language = resolve("LANGUAGE") or None
        return cls(
            transcription_provider=str(resolve("TRANSCRIPTION_PROVIDER")).lower(),
            transcription_model=str(resolve("TRANSCRIPTION_MODEL")),
            summary_provider=str(resolve("SUMMARY_PROVIDER")).lower(),
            summary_model=str(resolve("SUMMARY_MODEL")),
            language=language,
            enable_diarization=ConfigManager.get_bool("ENABLE_DIARIZATION", overrides.get("ENABLE_DIARIZATION")),
            whisper_model=str(resolve("WHISPER_MODEL")),
            api_keys={provider: str(resolve(key)) for provider, key in API_KEY_SETTINGS.items()},
            base_urls={provider: str(resolve(key)) for provider, key in BASE_URL_SETTINGS.items()},
        )
