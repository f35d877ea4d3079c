"""Application services (settings persistence)."""

from .settings import Settings, SettingsStore, build_client_settings, build_completions_config, redact_secret

__all__ = [
    "Settings",
    "SettingsStore",
    "build_client_settings",
    "build_completions_config",
    "redact_secret",
]
