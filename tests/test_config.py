"""
Tests for provider selector configuration and environment settings.
"""

import json
from pathlib import Path

import pytest

from multiprompt.errors import NotFoundError, ValidationError
from multiprompt.providers.config import (
    DEFAULT_CONFIG_PATH,
    ProviderConfigs,
    is_valid_version,
    load_provider_configs,
    parse_provider_configs,
)
from multiprompt.providers.registry import ProviderId
from multiprompt.settings import DispatchSettings, load_settings


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _entry(provider_id: str = "Claude", **overrides) -> dict:
    entry = {
        "provider_id": provider_id,
        "config_version": "1.0.0",
        "input_selectors": ["div.ProseMirror", "textarea"],
        "submit_selectors": ["button[aria-label='Send Message']"],
        "auth_check_selectors": ["a[href='/login']"],
        "last_updated": "2026-01-01T00:00:00Z",
    }
    entry.update(overrides)
    return entry


def _document(**providers) -> dict:
    return {"version": "1.0.0", "providers": providers or {"Claude": _entry()}}


def _write(tmp_path: Path, data, name: str = "providers.json") -> Path:
    path = tmp_path / name
    path.write_text(data if isinstance(data, str) else json.dumps(data), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Bundled configuration
# ---------------------------------------------------------------------------

class TestBundledConfig:
    def setup_method(self):
        self.configs = load_provider_configs()

    def test_bundled_file_exists(self):
        assert DEFAULT_CONFIG_PATH.exists()

    def test_covers_every_provider(self):
        assert set(self.configs.providers) == set(ProviderId)
        assert is_valid_version(self.configs.version)

    def test_entries_are_valid(self):
        for pid in ProviderId:
            config = self.configs.get_config(pid)
            assert config.provider_id is pid
            assert is_valid_version(config.version)
            assert config.input_selectors
            assert config.submit_selectors
            assert config.auth_check_selectors

    def test_get_config_by_name(self):
        assert self.configs.get_config("claude").provider_id is ProviderId.CLAUDE


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestConfigValidation:
    @pytest.mark.parametrize("version,expected", [
        ("1.0.0", True),
        ("10.20.30", True),
        ("1.0", False),
        ("1.0.0.0", False),
        ("1.a.0", False),
        ("v1.0.0", False),
        ("1.\u00b2.3", False),
        ("\uff11.0.0", False),
        ("1..0", False),
        ("", False),
        (None, False),
    ])
    def test_is_valid_version(self, version, expected):
        assert is_valid_version(version) is expected

    def test_parse_minimal_document(self):
        configs = parse_provider_configs(_document())
        config = configs.get_config(ProviderId.CLAUDE)
        assert config.input_selectors == ("div.ProseMirror", "textarea")
        assert config.notes is None

    def test_missing_provider_config(self):
        configs = parse_provider_configs(_document())
        with pytest.raises(NotFoundError, match="Configuration not found for provider Gemini"):
            configs.get_config(ProviderId.GEMINI)

    def test_bad_top_level_version(self):
        doc = _document()
        doc["version"] = "1.0"
        with pytest.raises(ValidationError, match="Invalid config version format"):
            parse_provider_configs(doc)

    def test_bad_provider_version(self):
        doc = _document(Claude=_entry(config_version="one"))
        with pytest.raises(ValidationError, match="Invalid version format for provider Claude"):
            parse_provider_configs(doc)

    @pytest.mark.parametrize("field_name", [
        "input_selectors",
        "submit_selectors",
        "auth_check_selectors",
    ])
    def test_empty_selector_list(self, field_name):
        doc = _document(Claude=_entry(**{field_name: []}))
        with pytest.raises(ValidationError, match=f"{field_name} cannot be empty"):
            parse_provider_configs(doc)

    def test_blank_selector(self):
        doc = _document(Claude=_entry(input_selectors=["textarea", "  "]))
        with pytest.raises(ValidationError, match="must be non-empty strings"):
            parse_provider_configs(doc)

    def test_unknown_provider_key(self):
        doc = _document(Mistral=_entry(provider_id="Mistral"))
        with pytest.raises(ValidationError, match="Unknown provider"):
            parse_provider_configs(doc)

    def test_mismatched_provider_id(self):
        doc = _document(Claude=_entry(provider_id="Gemini"))
        with pytest.raises(ValidationError, match="does not match"):
            parse_provider_configs(doc)

    def test_unparseable_provider_id(self):
        doc = _document(Claude=_entry(provider_id="nobody"))
        with pytest.raises(ValidationError, match="does not match"):
            parse_provider_configs(doc)

    def test_entry_must_be_object(self):
        doc = {"version": "1.0.0", "providers": {"Claude": ["textarea"]}}
        with pytest.raises(ValidationError, match="must be an object"):
            parse_provider_configs(doc)

    @pytest.mark.parametrize("section", [["ChatGPT"], "ChatGPT", 3])
    def test_providers_section_must_be_object(self, section):
        doc = {"version": "1.0.0", "providers": section}
        with pytest.raises(ValidationError, match="providers must be an object"):
            parse_provider_configs(doc)

    def test_null_providers_section(self):
        configs = parse_provider_configs({"version": "1.0.0", "providers": None})
        assert configs.providers == {}

    def test_empty_providers_section(self):
        configs = parse_provider_configs({"version": "2.0.0", "providers": {}})
        assert configs == ProviderConfigs(version="2.0.0")


# ---------------------------------------------------------------------------
# Loading from disk
# ---------------------------------------------------------------------------

class TestLoadProviderConfigs:
    def test_load_from_path(self, tmp_path):
        path = _write(tmp_path, _document())
        configs = load_provider_configs(path)
        assert list(configs.providers) == [ProviderId.CLAUDE]

    def test_load_from_string_path(self, tmp_path):
        path = _write(tmp_path, _document())
        assert load_provider_configs(str(path)).version == "1.0.0"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_provider_configs(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = _write(tmp_path, "{not json")
        with pytest.raises(ValidationError, match="Failed to parse provider config"):
            load_provider_configs(path)

    def test_non_object_document(self, tmp_path):
        path = _write(tmp_path, "[1, 2, 3]")
        with pytest.raises(ValidationError, match="must be a JSON object"):
            load_provider_configs(path)


# ---------------------------------------------------------------------------
# Environment settings
# ---------------------------------------------------------------------------

class TestSettings:
    ENV_NAMES = [
        "MULTIPROMPT_SETTLE_MS",
        "MULTIPROMPT_AUTO_RETRY",
        "MULTIPROMPT_PROVIDERS_CONFIG",
        "MULTIPROMPT_EXECUTOR_URL",
        "MULTIPROMPT_EXECUTOR_TIMEOUT",
    ]

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in self.ENV_NAMES:
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        assert load_settings() == DispatchSettings()

    def test_reads_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("MULTIPROMPT_SETTLE_MS", "250")
        monkeypatch.setenv("MULTIPROMPT_AUTO_RETRY", "yes")
        monkeypatch.setenv("MULTIPROMPT_PROVIDERS_CONFIG", str(tmp_path / "p.json"))
        monkeypatch.setenv("MULTIPROMPT_EXECUTOR_URL", "http://127.0.0.1:9222")
        monkeypatch.setenv("MULTIPROMPT_EXECUTOR_TIMEOUT", "12.5")

        settings = load_settings()
        assert settings.settle_ms == 250
        assert settings.auto_retry is True
        assert settings.providers_config == tmp_path / "p.json"
        assert settings.executor_endpoint == "http://127.0.0.1:9222"
        assert settings.executor_timeout == 12.5

    def test_blank_values_fall_back_to_defaults(self, monkeypatch):
        monkeypatch.setenv("MULTIPROMPT_EXECUTOR_URL", "   ")
        monkeypatch.setenv("MULTIPROMPT_SETTLE_MS", "")
        settings = load_settings()
        assert settings.executor_endpoint is None
        assert settings.settle_ms == 100

    def test_non_integer(self, monkeypatch):
        monkeypatch.setenv("MULTIPROMPT_SETTLE_MS", "fast")
        with pytest.raises(ValidationError, match="MULTIPROMPT_SETTLE_MS must be an integer"):
            load_settings()

    def test_negative_integer(self, monkeypatch):
        monkeypatch.setenv("MULTIPROMPT_SETTLE_MS", "-1")
        with pytest.raises(ValidationError, match="must not be negative"):
            load_settings()

    def test_bad_timeout(self, monkeypatch):
        monkeypatch.setenv("MULTIPROMPT_EXECUTOR_TIMEOUT", "soon")
        with pytest.raises(ValidationError, match="must be a number"):
            load_settings()
