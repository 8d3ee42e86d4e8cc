"""Configuration loading for the analysis layer.

Configuration comes either from a YAML file (with ${VAR} environment
expansion) or from the flat environment variables of a container
deployment, optionally read from a .env file.
"""

import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

from .prompts import (
    DEFAULT_MUST_HAVE_PROMPT,
    DEFAULT_PREDEFINED_TAGS_PROMPT,
    DEFAULT_SYSTEM_PROMPT,
)
from .trace import DEFAULT_MAX_LOG_BYTES

PROVIDER_TYPES = ("openai", "azure", "ollama", "custom")


@dataclass
class ProviderSettings:
    """Connection settings for one provider."""

    provider_id: str
    api_key: str | None = None
    base_url: str | None = None
    model: str | None = None
    deployment: str | None = None
    api_version: str | None = None
    timeout_s: int = 120
    temperature: float = 0.3


@dataclass
class CustomFieldDefinition:
    """A document custom field the model should fill in."""

    value: str
    data_type: str = "string"
    currency: str | None = None


@dataclass
class PromptSettings:
    """Inputs to system prompt assembly."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    must_have_prompt: str = DEFAULT_MUST_HAVE_PROMPT
    predefined_tags_prompt: str = DEFAULT_PREDEFINED_TAGS_PROMPT
    prompt_tags: list[str] = field(default_factory=list)
    use_existing_data: bool = False
    use_prompt_tags: bool = False
    custom_fields: list[CustomFieldDefinition] = field(default_factory=list)


@dataclass
class BudgetSettings:
    """Token budget for a single request."""

    context_window: int = 128000
    reserved_tokens: int = 1000
    tokenizer_model: str = "gpt-4o-mini"


@dataclass
class StorageSettings:
    """Filesystem locations for audit logs and the thumbnail cache."""

    log_dir: str = "./logs"
    thumbnail_dir: str = "./public/images"
    max_log_bytes: int = DEFAULT_MAX_LOG_BYTES


@dataclass
class AppConfig:
    """Complete analysis configuration."""

    active_provider: str
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)
    prompts: PromptSettings = field(default_factory=PromptSettings)
    budget: BudgetSettings = field(default_factory=BudgetSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)

    def provider_settings(self, provider_id: str | None = None) -> ProviderSettings:
        """Settings for a provider, defaulting to the active one.

        Raises:
            ValueError: If the provider type is unknown
        """
        provider_id = provider_id or self.active_provider
        if provider_id not in PROVIDER_TYPES:
            raise ValueError(
                f"Unknown provider '{provider_id}'. "
                f"Available providers: {', '.join(PROVIDER_TYPES)}"
            )
        return self.providers.get(provider_id) or ProviderSettings(provider_id=provider_id)


def expand_env_vars(value: Any) -> Any:
    """
    Recursively expand ${VAR} environment variables in config values.

    Args:
        value: Config value (string, dict, list, or other)

    Returns:
        Value with env vars expanded
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}]+)\}|\$([A-Z_][A-Z0-9_]*)'

        def replace(match):
            var_name = match.group(1) or match.group(2)
            return os.environ.get(var_name, "")

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]

    return value


def parse_flag(value: Any) -> bool:
    """Interpret yes/no style flags."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in ("yes", "true", "1", "on")


def parse_custom_fields(raw: Any) -> list[CustomFieldDefinition]:
    """Parse custom field definitions.

    Accepts a list of {value, data_type} mappings, a mapping with a
    ``custom_fields`` list, or a JSON string of either.

    Raises:
        ValueError: If the definitions are malformed
    """
    if raw in (None, ""):
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid custom field definitions: {e}") from e
    if isinstance(raw, dict):
        raw = raw.get("custom_fields", [])
    if not isinstance(raw, list):
        raise ValueError("Custom field definitions must be a list")

    definitions = []
    for entry in raw:
        if not isinstance(entry, dict) or "value" not in entry:
            raise ValueError(f"Custom field definition missing 'value': {entry!r}")
        definitions.append(
            CustomFieldDefinition(
                value=str(entry["value"]),
                data_type=entry.get("data_type", "string"),
                currency=entry.get("currency"),
            )
        )
    return definitions


def _split_tags(raw: Any) -> list[str]:
    if not raw:
        return []
    if isinstance(raw, list):
        return [str(t).strip() for t in raw if str(t).strip()]
    return [t.strip() for t in str(raw).split(",") if t.strip()]


def _provider_from_dict(provider_id: str, data: dict) -> ProviderSettings:
    if provider_id not in PROVIDER_TYPES:
        raise ValueError(
            f"Unknown provider '{provider_id}'. "
            f"Available providers: {', '.join(PROVIDER_TYPES)}"
        )
    return ProviderSettings(
        provider_id=provider_id,
        api_key=data.get("api_key") or None,
        base_url=data.get("base_url") or None,
        model=data.get("model") or None,
        deployment=data.get("deployment") or None,
        api_version=data.get("api_version") or None,
        timeout_s=int(data.get("timeout_s", 120)),
        temperature=float(data.get("temperature", 0.3)),
    )


def config_from_dict(data: dict) -> AppConfig:
    """Build and validate configuration from a parsed mapping.

    Raises:
        ValueError: If configuration is invalid
    """
    if not data or "analysis" not in data:
        raise ValueError("Configuration missing 'analysis' section")
    section = data["analysis"] or {}

    active = section.get("provider")
    if not active:
        raise ValueError("Configuration missing 'provider' field")
    if active not in PROVIDER_TYPES:
        raise ValueError(
            f"Unknown provider '{active}'. Available providers: {', '.join(PROVIDER_TYPES)}"
        )

    providers = {
        provider_id: _provider_from_dict(provider_id, provider_data or {})
        for provider_id, provider_data in (section.get("providers") or {}).items()
    }

    prompt_data = section.get("prompts") or {}
    prompts = PromptSettings(
        system_prompt=prompt_data.get("system_prompt") or DEFAULT_SYSTEM_PROMPT,
        must_have_prompt=prompt_data.get("must_have_prompt") or DEFAULT_MUST_HAVE_PROMPT,
        predefined_tags_prompt=(
            prompt_data.get("predefined_tags_prompt") or DEFAULT_PREDEFINED_TAGS_PROMPT
        ),
        prompt_tags=_split_tags(prompt_data.get("prompt_tags")),
        use_existing_data=parse_flag(prompt_data.get("use_existing_data")),
        use_prompt_tags=parse_flag(prompt_data.get("use_prompt_tags")),
        custom_fields=parse_custom_fields(prompt_data.get("custom_fields")),
    )

    budget_data = section.get("budget") or {}
    budget = BudgetSettings(
        context_window=int(budget_data.get("context_window", 128000)),
        reserved_tokens=int(budget_data.get("reserved_tokens", 1000)),
        tokenizer_model=budget_data.get("tokenizer_model", "gpt-4o-mini"),
    )

    storage_data = section.get("storage") or {}
    storage = StorageSettings(
        log_dir=storage_data.get("log_dir", "./logs"),
        thumbnail_dir=storage_data.get("thumbnail_dir", "./public/images"),
        max_log_bytes=int(storage_data.get("max_log_bytes", DEFAULT_MAX_LOG_BYTES)),
    )

    return AppConfig(
        active_provider=active,
        providers=providers,
        prompts=prompts,
        budget=budget,
        storage=storage,
    )


def load_config(path: str | Path) -> AppConfig:
    """Load and validate configuration from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated configuration

    Raises:
        FileNotFoundError: If config file not found
        ValueError: If configuration is invalid
        yaml.YAMLError: If YAML is malformed
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f)

    return config_from_dict(expand_env_vars(data))


def load_config_from_env(env_file: str | Path | None = None) -> AppConfig:
    """Build configuration from environment variables.

    Variables from env_file (or a .env in the working directory) are loaded
    first without overriding the existing environment.

    Raises:
        ValueError: If configuration is invalid
    """
    load_dotenv(env_file)
    env = os.environ

    data = {
        "analysis": {
            "provider": env.get("AI_PROVIDER", "openai"),
            "providers": {
                "openai": {
                    "api_key": env.get("OPENAI_API_KEY"),
                    "model": env.get("OPENAI_MODEL", "gpt-4o-mini"),
                },
                "azure": {
                    "base_url": env.get("AZURE_ENDPOINT"),
                    "api_key": env.get("AZURE_API_KEY"),
                    "deployment": env.get("AZURE_DEPLOYMENT_NAME"),
                    "api_version": env.get("AZURE_API_VERSION"),
                },
                "ollama": {
                    "base_url": env.get("OLLAMA_API_URL"),
                    "model": env.get("OLLAMA_MODEL"),
                },
                "custom": {
                    "base_url": env.get("CUSTOM_BASE_URL"),
                    "api_key": env.get("CUSTOM_API_KEY"),
                    "model": env.get("CUSTOM_MODEL"),
                },
            },
            "prompts": {
                "system_prompt": env.get("SYSTEM_PROMPT"),
                "prompt_tags": env.get("PROMPT_TAGS"),
                "use_existing_data": env.get("USE_EXISTING_DATA"),
                "use_prompt_tags": env.get("USE_PROMPT_TAGS"),
                "custom_fields": env.get("CUSTOM_FIELDS"),
            },
            "budget": {
                "tokenizer_model": env.get("OPENAI_MODEL") or "gpt-4o-mini",
            },
        }
    }
    return config_from_dict(data)
