"""
Runtime settings for the dispatcher and its executors.

Values come from ``MULTIPROMPT_*`` environment variables so that a host
application (or the CLI) can tune script timing and point the remote
executor at an automation endpoint without code changes.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from multiprompt.errors import ValidationError

ENV_PREFIX = "MULTIPROMPT_"


@dataclass(frozen=True)
class DispatchSettings:
    """Dispatcher tuning.

    Attributes:
        settle_ms: Delay baked into injection scripts between filling the
                   input and clicking submit.
        auto_retry: Re-enter a submission once when it lands in Retrying.
        providers_config: Selector configuration file (bundled default if None).
        executor_endpoint: Base URL of a remote automation endpoint.
        executor_timeout: HTTP timeout for the remote executor, in seconds.
    """

    settle_ms: int = 100
    auto_retry: bool = False
    providers_config: Optional[Path] = None
    executor_endpoint: Optional[str] = None
    executor_timeout: float = 30.0


def _get_env(name: str) -> Optional[str]:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or not raw.strip():
        return None
    return raw.strip()


def _get_bool_env(name: str, default: bool) -> bool:
    raw = _get_env(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError(f"{ENV_PREFIX}{name} must be an integer, got {raw!r}")
    if value < 0:
        raise ValidationError(f"{ENV_PREFIX}{name} must not be negative, got {value}")
    return value


def _get_float_env(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}")


def load_settings() -> DispatchSettings:
    """Build DispatchSettings from the environment, falling back to defaults."""
    config_path = _get_env("PROVIDERS_CONFIG")

    return DispatchSettings(
        settle_ms=_get_int_env("SETTLE_MS", DispatchSettings.settle_ms),
        auto_retry=_get_bool_env("AUTO_RETRY", DispatchSettings.auto_retry),
        providers_config=Path(config_path) if config_path else None,
        executor_endpoint=_get_env("EXECUTOR_URL"),
        executor_timeout=_get_float_env("EXECUTOR_TIMEOUT", DispatchSettings.executor_timeout),
    )
