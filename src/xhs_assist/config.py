"""Configuration management for xhs-assist."""

import os
from pathlib import Path
from typing import Any

import yaml

from .llm import ProviderConfig, ProviderKind
from .validator import DEFAULT_MAX_CONTENT_LENGTH, DEFAULT_MAX_TITLE_LENGTH, ContentLimits

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "xhs-assist"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

# All provider settings live under this key
AI_CONFIG_KEY = "ai"

# Standard API key variables, used when no key is stored
PROVIDER_KEY_ENV_VARS = {
    ProviderKind.OPENAI_COMPATIBLE: "OPENAI_API_KEY",
    ProviderKind.ANTHROPIC_COMPATIBLE: "ANTHROPIC_API_KEY",
    ProviderKind.ALIBABA_COMPATIBLE: "DASHSCOPE_API_KEY",
}

AI_CONFIG_FIELDS = (
    "provider",
    "api_key",
    "model",
    "base_url",
    "temperature",
    "max_tokens",
    "timeout",
    "structured_output",
    "max_title_length",
    "max_content_length",
)


def get_config_path() -> Path:
    """Get the configuration file path."""
    return Path(os.environ.get("XHS_ASSIST_CONFIG", DEFAULT_CONFIG_FILE))


def load_config() -> dict[str, Any]:
    """Load the configuration file, or an empty dict if there is none."""
    config_path = get_config_path()
    if not config_path.exists():
        return {}
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to file."""
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        yaml.dump(config, f, default_flow_style=False, allow_unicode=True)


def get_stored_ai_config() -> dict[str, Any]:
    """Get the raw provider settings from the config file."""
    return dict(load_config().get(AI_CONFIG_KEY) or {})


def get_ai_config() -> ProviderConfig:
    """Get the provider configuration.

    Checks in order:
    1. Environment variables: XHS_ASSIST_API_KEY, XHS_ASSIST_BASE_URL, XHS_ASSIST_MODEL
    2. Config file
    3. The provider's standard key variable (OPENAI_API_KEY, ANTHROPIC_API_KEY,
       DASHSCOPE_API_KEY) when no key is stored
    """
    stored = get_stored_ai_config()
    provider = ProviderKind.parse(stored.get("provider") or ProviderKind.OPENAI_COMPATIBLE)
    stored["provider"] = provider

    if env_key := os.environ.get("XHS_ASSIST_API_KEY"):
        stored["api_key"] = env_key
    elif not stored.get("api_key"):
        stored["api_key"] = os.environ.get(PROVIDER_KEY_ENV_VARS[provider], "")

    if env_url := os.environ.get("XHS_ASSIST_BASE_URL"):
        stored["base_url"] = env_url
    if env_model := os.environ.get("XHS_ASSIST_MODEL"):
        stored["model"] = env_model

    return ProviderConfig.from_dict(stored)


def set_ai_config(**fields: Any) -> None:
    """Update provider settings in the config file.

    Only the given fields change; None values are ignored. Changing the
    provider without naming a model drops the stored model so the new
    provider's default applies.

    Raises:
        ValueError: If a field name or the provider name is unknown.
    """
    unknown = set(fields) - set(AI_CONFIG_FIELDS)
    if unknown:
        raise ValueError(f"Unknown AI config fields: {', '.join(sorted(unknown))}")

    config = load_config()
    ai_config = dict(config.get(AI_CONFIG_KEY) or {})

    updates = {k: v for k, v in fields.items() if v is not None}
    if "provider" in updates:
        provider = ProviderKind.parse(updates["provider"]).value
        if provider != ai_config.get("provider") and "model" not in updates:
            ai_config.pop("model", None)
        updates["provider"] = provider
    if "structured_output" in updates:
        updates["structured_output"] = str(getattr(updates["structured_output"], "value", updates["structured_output"]))

    ai_config.update(updates)
    config[AI_CONFIG_KEY] = ai_config
    save_config(config)


def is_ai_configured() -> bool:
    """Check if an API key is available for the configured provider."""
    return get_ai_config().has_api_key


def get_content_limits() -> ContentLimits:
    """Get the length ceilings for generated titles and content."""
    stored = get_stored_ai_config()
    return ContentLimits(
        max_title_length=int(stored.get("max_title_length") or DEFAULT_MAX_TITLE_LENGTH),
        max_content_length=int(stored.get("max_content_length") or DEFAULT_MAX_CONTENT_LENGTH),
    )
