"""
Tests for the multiprompt command line.
"""

import json

import pytest
from click.testing import CliRunner

from multiprompt.cli import cli


ENV_NAMES = [
    "MULTIPROMPT_SETTLE_MS",
    "MULTIPROMPT_AUTO_RETRY",
    "MULTIPROMPT_PROVIDERS_CONFIG",
    "MULTIPROMPT_EXECUTOR_URL",
    "MULTIPROMPT_EXECUTOR_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def _two_provider_file(tmp_path):
    entry = {
        "config_version": "2.0.1",
        "input_selectors": ["textarea"],
        "submit_selectors": ["button"],
        "auth_check_selectors": ["a.login"],
    }
    path = tmp_path / "providers.json"
    path.write_text(json.dumps({
        "version": "3.0.0",
        "providers": {"ChatGPT": entry, "Gemini": entry},
    }), encoding="utf-8")
    return path


class TestCli:
    def setup_method(self):
        self.runner = CliRunner()

    def test_version(self):
        result = self.runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "multiprompt" in result.output

    def test_providers(self):
        result = self.runner.invoke(cli, ["providers"])
        assert result.exit_code == 0, result.output
        for name in ("ChatGPT", "Gemini", "Claude"):
            assert name in result.output
        assert "https://claude.ai/" in result.output
        assert "Selectors: v1.2.0" in result.output

    def test_providers_json(self):
        result = self.runner.invoke(cli, ["providers", "--json-output"])
        assert result.exit_code == 0, result.output
        rows = json.loads(result.output)
        assert [r["id"] for r in rows] == ["ChatGPT", "Gemini", "Claude"]
        assert all(r["config_version"] for r in rows)

    def test_script_to_stdout(self):
        result = self.runner.invoke(cli, ["script", 'Say "hi"', "-p", "claude"])
        assert result.exit_code == 0, result.output
        assert 'const prompt = "Say \\"hi\\"";' in result.output
        assert result.output.startswith("(async function() {")

    def test_script_to_file(self, tmp_path):
        out = tmp_path / "claude.js"
        result = self.runner.invoke(cli, ["script", "Hello", "-p", "Claude", "-o", str(out)])
        assert result.exit_code == 0, result.output
        assert "Script written to" in result.output
        assert 'const prompt = "Hello";' in out.read_text(encoding="utf-8")

    def test_script_unknown_provider(self):
        result = self.runner.invoke(cli, ["script", "Hello", "-p", "Mistral"])
        assert result.exit_code == 2

    def test_script_provider_without_config(self, tmp_path):
        path = _two_provider_file(tmp_path)
        result = self.runner.invoke(cli, ["--config", str(path), "script", "Hello", "-p", "Claude"])
        assert result.exit_code == 1
        assert "Configuration not found for provider Claude" in result.output

    def test_submit_dry_run(self):
        result = self.runner.invoke(cli, ["submit", "Hello", "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "=== Dispatch Report (DRY RUN) ===" in result.output
        assert "Success:   3" in result.output
        assert "Failed:    0" in result.output

    def test_submit_dry_run_json_single_provider(self):
        result = self.runner.invoke(
            cli, ["submit", "Hello", "--dry-run", "-p", "gemini", "--json-output"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["dry_run"] is True
        assert data["success"] == 1
        [sub] = data["submissions"]
        assert sub["provider_id"] == "Gemini"
        assert sub["status"] == "Success"
        assert sub["attempt_count"] == 1

    def test_submit_missing_config_exits_nonzero(self, tmp_path):
        path = _two_provider_file(tmp_path)
        result = self.runner.invoke(cli, ["--config", str(path), "submit", "Hello", "--dry-run"])
        assert result.exit_code == 1
        assert "Success:   2" in result.output
        assert "Error: InjectionFailed: Configuration not found for provider Claude" in result.output

    def test_submit_empty_prompt(self):
        result = self.runner.invoke(cli, ["submit", "   ", "--dry-run"])
        assert result.exit_code == 1
        assert "Prompt cannot be empty" in result.output

    def test_submit_requires_executor(self):
        result = self.runner.invoke(cli, ["submit", "Hello"])
        assert result.exit_code == 2
        assert "No executor endpoint configured" in result.output

    def test_check_config_bundled(self):
        result = self.runner.invoke(cli, ["check-config"])
        assert result.exit_code == 0, result.output
        assert "Configuration OK (version 1.0.0)" in result.output
        assert "missing" not in result.output

    def test_check_config_partial_file(self, tmp_path):
        path = _two_provider_file(tmp_path)
        result = self.runner.invoke(cli, ["check-config", str(path)])
        assert result.exit_code == 0, result.output
        assert "Configuration OK (version 3.0.0)" in result.output
        assert "Claude   | missing" in result.output

    def test_check_config_invalid_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{broken", encoding="utf-8")
        result = self.runner.invoke(cli, ["check-config", str(path)])
        assert result.exit_code == 1
        assert "Failed to parse provider config" in result.output

    def test_bad_environment(self, monkeypatch):
        monkeypatch.setenv("MULTIPROMPT_SETTLE_MS", "zero")
        result = self.runner.invoke(cli, ["providers"])
        assert result.exit_code == 1
        assert "MULTIPROMPT_SETTLE_MS must be an integer" in result.output
