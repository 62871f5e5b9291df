"""
Provider catalogue and selection state.

The three chat providers exist for the life of the process; only their
``is_selected`` and ``is_authenticated`` flags change. Between one and
three providers are selected at any time.
"""

from __future__ import annotations

import enum
import threading
from dataclasses import dataclass, replace
from typing import Any, Union

from multiprompt.errors import NotFoundError, ValidationError

MIN_SELECTED = 1
MAX_SELECTED = 3


class ProviderId(enum.Enum):
    """Identity of a supported chat provider."""

    CHATGPT = "ChatGPT"
    GEMINI = "Gemini"
    CLAUDE = "Claude"

    @property
    def url(self) -> str:
        return PROVIDER_URLS[self]

    @classmethod
    def parse(cls, value: Union[ProviderId, str]) -> ProviderId:
        """Resolve an enum member, its value, or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        text = str(value).strip().lower()
        for member in cls:
            if text in (member.value.lower(), member.name.lower()):
                return member
        raise NotFoundError(f"Provider {value!r} not found")


PROVIDER_URLS: dict[ProviderId, str] = {
    ProviderId.CHATGPT: "https://chat.openai.com/",
    ProviderId.GEMINI: "https://gemini.google.com/",
    ProviderId.CLAUDE: "https://claude.ai/",
}


@dataclass
class Provider:
    """A chat provider and its mutable selection/auth flags."""

    id: ProviderId
    name: str
    url: str
    is_selected: bool = True
    is_authenticated: bool = False

    @classmethod
    def create(cls, provider_id: ProviderId) -> Provider:
        return cls(id=provider_id, name=provider_id.value, url=provider_id.url)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id.value,
            "name": self.name,
            "url": self.url,
            "is_selected": self.is_selected,
            "is_authenticated": self.is_authenticated,
        }


class ProviderRegistry:
    """
    Thread-safe holder of the fixed provider set.

    Every read returns copies, so a Provider handed to a caller never
    reflects later changes.

    Usage:
        registry = ProviderRegistry()
        registry.set_selected(ProviderId.GEMINI, False)
        targets = registry.selected()
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._providers = [Provider.create(pid) for pid in ProviderId]

    def list(self) -> list[Provider]:
        with self._lock:
            return [replace(p) for p in self._providers]

    def selected(self) -> list[Provider]:
        with self._lock:
            return [replace(p) for p in self._providers if p.is_selected]

    def get(self, provider_id: Union[ProviderId, str]) -> Provider:
        pid = ProviderId.parse(provider_id)
        with self._lock:
            return replace(self._find(pid))

    def set_selected(self, provider_id: Union[ProviderId, str], selected: bool) -> Provider:
        """Select or deselect a provider, keeping 1-3 providers selected.

        Raises:
            NotFoundError: Unknown provider id.
            ValidationError: Deselecting the last selected provider, or
                             selecting when three are already selected.
        """
        pid = ProviderId.parse(provider_id)
        with self._lock:
            provider = self._find(pid)
            count = sum(1 for p in self._providers if p.is_selected)
            if not selected and count <= MIN_SELECTED:
                raise ValidationError("At least one provider must be selected")
            if selected and count >= MAX_SELECTED:
                raise ValidationError(f"Maximum {MAX_SELECTED} providers can be selected")
            provider.is_selected = selected
            return replace(provider)

    def set_authenticated(self, provider_id: Union[ProviderId, str], authenticated: bool) -> Provider:
        pid = ProviderId.parse(provider_id)
        with self._lock:
            provider = self._find(pid)
            provider.is_authenticated = authenticated
            return replace(provider)

    def _find(self, provider_id: ProviderId) -> Provider:
        for provider in self._providers:
            if provider.id is provider_id:
                return provider
        raise NotFoundError(f"Provider {provider_id.value} not found")
