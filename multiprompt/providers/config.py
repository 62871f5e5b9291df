"""
Per-provider CSS selector configuration.

Defines the fallback selector chains used to locate a provider's prompt
input, submit button, and login prompts. Loaded once from a JSON file
(bundled ``providers.json`` by default) and validated before the core
ever sees it.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

from multiprompt.errors import NotFoundError, ValidationError
from multiprompt.logging_utils import log_event
from multiprompt.providers.registry import ProviderId

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "providers.json"


@dataclass(frozen=True)
class ProviderSelectorConfig:
    """Selector chains for one provider.

    Attributes:
        provider_id: Provider these selectors apply to.
        version: Three-part version of this provider's selectors.
        input_selectors: Prompt input candidates, first match wins.
        submit_selectors: Submit button candidates, first match wins.
        auth_check_selectors: Elements whose presence means "still needs login".
        last_updated: ISO 8601 timestamp of the last selector refresh.
        notes: Free-form maintainer notes.
    """

    provider_id: ProviderId
    version: str
    input_selectors: tuple[str, ...]
    submit_selectors: tuple[str, ...]
    auth_check_selectors: tuple[str, ...]
    last_updated: str = ""
    notes: Optional[str] = None


@dataclass(frozen=True)
class ProviderConfigs:
    """All provider selector configurations from one file."""

    version: str
    providers: dict[ProviderId, ProviderSelectorConfig] = field(default_factory=dict)

    def get_config(self, provider_id: Union[ProviderId, str]) -> ProviderSelectorConfig:
        pid = ProviderId.parse(provider_id)
        config = self.providers.get(pid)
        if config is None:
            raise NotFoundError(f"Configuration not found for provider {pid.value}")
        return config


def is_valid_version(version: Any) -> bool:
    """True for MAJOR.MINOR.PATCH strings made of ASCII digit groups."""
    if not isinstance(version, str):
        return False
    parts = version.split(".")
    return len(parts) == 3 and all(p.isascii() and p.isdecimal() for p in parts)


def _selector_list(key: str, entry: dict[str, Any], name: str) -> tuple[str, ...]:
    raw = entry.get(name)
    if not isinstance(raw, list) or not raw:
        raise ValidationError(f"{name} cannot be empty for provider {key}")
    if not all(isinstance(s, str) and s.strip() for s in raw):
        raise ValidationError(f"{name} for provider {key} must be non-empty strings")
    return tuple(raw)


def parse_provider_configs(raw: dict[str, Any]) -> ProviderConfigs:
    """Validate a decoded configuration document.

    Raises:
        ValidationError: On a bad version string, an empty selector list,
                         or an unknown/mismatched provider key.
    """
    version = raw.get("version")
    if not is_valid_version(version):
        raise ValidationError(f"Invalid config version format: {version}")

    section = raw.get("providers")
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ValidationError("providers must be an object")

    providers: dict[ProviderId, ProviderSelectorConfig] = {}
    for key, entry in section.items():
        try:
            pid = ProviderId.parse(key)
        except NotFoundError:
            raise ValidationError(f"Unknown provider in configuration: {key}")
        if not isinstance(entry, dict):
            raise ValidationError(f"Configuration for provider {key} must be an object")

        declared = entry.get("provider_id", key)
        try:
            matches = ProviderId.parse(declared) is pid
        except NotFoundError:
            matches = False
        if not matches:
            raise ValidationError(f"provider_id {declared!r} does not match key {key!r}")

        provider_version = entry.get("config_version")
        if not is_valid_version(provider_version):
            raise ValidationError(
                f"Invalid version format for provider {key}: {provider_version}"
            )

        providers[pid] = ProviderSelectorConfig(
            provider_id=pid,
            version=provider_version,
            input_selectors=_selector_list(key, entry, "input_selectors"),
            submit_selectors=_selector_list(key, entry, "submit_selectors"),
            auth_check_selectors=_selector_list(key, entry, "auth_check_selectors"),
            last_updated=entry.get("last_updated", ""),
            notes=entry.get("notes"),
        )

    return ProviderConfigs(version=version, providers=providers)


def load_provider_configs(config_path: Optional[Union[str, Path]] = None) -> ProviderConfigs:
    """Load and validate provider selector configuration from JSON.

    Args:
        config_path: Path to the configuration file. Uses the bundled
                     providers.json when omitted.

    Raises:
        FileNotFoundError: If config_path does not exist.
        ValidationError: If the file is not valid JSON or fails validation.
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH
    if not path.exists():
        raise FileNotFoundError(f"Provider config not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Failed to parse provider config {path}: {e}")

    if not isinstance(raw, dict):
        raise ValidationError(f"Provider config {path} must be a JSON object")

    configs = parse_provider_configs(raw)
    log_event(
        logger,
        logging.INFO,
        "provider_configs_loaded",
        path=str(path),
        version=configs.version,
        providers=sorted(p.value for p in configs.providers),
    )
    return configs
