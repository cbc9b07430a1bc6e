"""Configuration management for salon."""

import logging
import os
import re
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml
from pydantic import ValidationError

from salon.core.roster import PERSONALITY_PRESETS
from salon.core.types import AgentConfig
from salon.errors import InvalidConfigError, InvalidRosterError, UnknownProviderError

from .settings import PersonalityOverride, ProviderEntry, RosterEntry, Settings

logger = logging.getLogger(__name__)

# Singleton instance
_settings: Optional[Settings] = None

CONFIG_FILENAME = "salon.yaml"
DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(value: Any) -> Any:
    """Recursively expand ${ENV_VAR} syntax in strings.

    Unset variables are left as written so the mistake stays visible.
    """
    if isinstance(value, str):
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    return value


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries, with override taking precedence."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _load_yaml_file(path: Path) -> dict:
    """Load a YAML file and return its contents.

    Raises:
        InvalidConfigError: If the file is not valid YAML or its root is
            not a mapping
    """
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise InvalidConfigError(str(path), "", f"not valid YAML: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise InvalidConfigError(
            str(path), content, f"expected a mapping, got {type(content).__name__}"
        )
    return content


def validate_roster_providers(settings: Settings) -> None:
    """Check every roster entry references a configured provider.

    Raises:
        UnknownProviderError: On the first entry with an unknown provider
    """
    for entry in settings.roster:
        if entry.provider not in settings.providers:
            raise UnknownProviderError(
                entry.provider, known=settings.provider_names(), agent=entry.name
            )


def load_settings(config_path: Optional[Path] = None, force_reload: bool = False) -> Settings:
    """Load settings with priority: user config > env vars > defaults.

    Args:
        config_path: Optional path to a config file (default: ./salon.yaml)
        force_reload: Force reload even if settings are cached

    Returns:
        Settings instance

    Raises:
        InvalidConfigError: If the file is malformed or fails validation
        UnknownProviderError: If a roster entry names an unknown provider
    """
    global _settings

    if _settings is not None and not force_reload:
        return _settings

    defaults = _load_yaml_file(DEFAULTS_FILE)

    user_config_path = config_path or Path.cwd() / CONFIG_FILENAME
    user_config = _load_yaml_file(user_config_path)
    if user_config:
        logger.debug(f"Loaded config from {user_config_path}")

    merged = _deep_merge(defaults, user_config)
    expanded = _expand_env_vars(merged)

    try:
        settings = Settings(**expanded)
    except ValidationError as e:
        raise InvalidConfigError(str(user_config_path), "", str(e)) from e

    validate_roster_providers(settings)

    _settings = settings
    return _settings


def get_settings() -> Settings:
    """Get the current settings instance, loading if necessary."""
    if _settings is None:
        return load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the settings singleton (useful for testing)."""
    global _settings
    _settings = None


def resolve_roster(
    settings: Settings,
    presets: Optional[Sequence[AgentConfig]] = None,
) -> list[AgentConfig]:
    """Turn roster entries into agent configs.

    An empty roster yields the presets unchanged. Otherwise each entry either
    matches a preset by name (case-insensitive) with optional inline
    overrides, or carries a complete inline personality.

    Args:
        settings: Loaded settings
        presets: Personalities to match against (default: built-in presets)

    Returns:
        Agent configs in roster order

    Raises:
        UnknownProviderError: If an entry references an unknown provider
        InvalidRosterError: If an entry matches no preset and its inline
            personality is incomplete
    """
    presets = list(PERSONALITY_PRESETS if presets is None else presets)
    if not settings.roster:
        return presets

    preset_map = {p.name.lower(): p for p in presets}
    agents: list[AgentConfig] = []

    for entry in settings.roster:
        provider = settings.providers.get(entry.provider)
        if provider is None:
            raise UnknownProviderError(
                entry.provider, known=settings.provider_names(), agent=entry.name
            )

        preset = preset_map.get(entry.name.lower())
        if preset is not None:
            personality = preset.personality
            if entry.personality is not None:
                personality = entry.personality.apply_to(personality)
        elif entry.personality is not None and entry.personality.is_complete():
            personality = entry.personality.to_personality()
        else:
            available = ", ".join(p.name for p in presets)
            raise InvalidRosterError(
                f'entry "{entry.name}" has no matching preset and no complete inline '
                f"personality. Available presets: {available}",
                agent=entry.name,
            )

        agents.append(
            AgentConfig(
                personality=personality,
                provider=provider.kind,
                model=entry.model,
                provider_name=entry.provider,
                base_url=provider.base_url,
                api_key=provider.api_key,
                temperature=provider.temperature,
                priority=entry.priority,
            )
        )

    return agents


__all__ = [
    "PersonalityOverride",
    "ProviderEntry",
    "RosterEntry",
    "Settings",
    "get_settings",
    "load_settings",
    "reset_settings",
    "resolve_roster",
    "validate_roster_providers",
    "CONFIG_FILENAME",
    "DEFAULTS_FILE",
]
