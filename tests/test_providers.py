"""
Unit tests for provider variants: command building, error extraction,
response cleaning and the single-call runner.

Run with:
    pytest tests/test_providers.py -v
"""

import subprocess

import pytest

from gitsc.core import providers as providers_module
from gitsc.core.errors import (
    ProviderExecutionFailed,
    ProviderTimeout,
    ProviderUnavailable,
)
from gitsc.core.providers import (
    Provider,
    build_command,
    clean_message,
    extract_error,
    parse_providers,
    run_provider,
)


@pytest.fixture
def installed(monkeypatch):
    """Pretend every provider executable is on PATH."""
    monkeypatch.setattr(providers_module.shutil, "which", lambda cmd: f"/usr/bin/{cmd}")


def completed(returncode=0, stdout="", stderr=""):
    def runner(argv, **kwargs):
        runner.calls.append((argv, kwargs))
        return subprocess.CompletedProcess(argv, returncode, stdout, stderr)

    runner.calls = []
    return runner


# ---------------------------------------------------------------------------
# Provider identity
# ---------------------------------------------------------------------------

class TestProviderParse:

    @pytest.mark.parametrize("value, expected", [
        ("gemini", Provider.GEMINI),
        ("GEMINI", Provider.GEMINI),
        ("Gemini", Provider.GEMINI),
        (" codex ", Provider.CODEX),
        ("claude", Provider.CLAUDE),
        ("unknown", None),
        ("", None),
    ])
    def test_parse(self, value, expected):
        assert Provider.parse(value) is expected

    def test_display_names(self):
        assert Provider.GEMINI.display_name == "Gemini CLI"
        assert Provider.CODEX.display_name == "Codex CLI"
        assert Provider.CLAUDE.display_name == "Claude Code"

    def test_command_is_identifier(self):
        assert [p.command for p in Provider] == ["gemini", "codex", "claude"]

    def test_parse_providers_drops_unknown_and_duplicates(self):
        result = parse_providers(["claude", "ollama", "Gemini", "claude"])
        assert result == [Provider.CLAUDE, Provider.GEMINI]

    def test_parse_providers_empty(self):
        assert parse_providers([]) == []


# ---------------------------------------------------------------------------
# Invocation templates
# ---------------------------------------------------------------------------

class TestBuildCommand:

    @pytest.mark.parametrize("provider, model, expected", [
        (Provider.GEMINI, "flash", ["gemini", "-m", "flash"]),
        (Provider.CODEX, "gpt-5.1-codex-mini", ["codex", "exec", "--model", "gpt-5.1-codex-mini"]),
        (Provider.CLAUDE, "haiku", ["claude", "--model", "haiku", "-p"]),
    ])
    def test_templates(self, provider, model, expected):
        assert build_command(provider, model) == expected


# ---------------------------------------------------------------------------
# Error extraction and cleaning
# ---------------------------------------------------------------------------

class TestExtractError:

    def test_gemini_api_error_line(self):
        stderr = "Loading...\n[API Error: quota exceeded]\nmore"
        assert extract_error(Provider.GEMINI, stderr) == "[API Error: quota exceeded]"

    def test_gemini_fallback(self):
        assert extract_error(Provider.GEMINI, "boom") == "Gemini API request failed"

    @pytest.mark.parametrize("provider", [Provider.CODEX, Provider.CLAUDE])
    def test_first_non_blank_line(self, provider):
        assert extract_error(provider, "\n  \nrate limited\nother") == "rate limited"

    @pytest.mark.parametrize("provider", [Provider.CODEX, Provider.CLAUDE])
    def test_empty_stderr(self, provider):
        assert extract_error(provider, "") == "API request failed"


class TestCleanMessage:

    @pytest.mark.parametrize("raw, expected", [
        ("  feat: add login  \n", "feat: add login"),
        ("```\nfeat: add login\n```", "feat: add login"),
        ("```text\nfix: typo\n\n- detail\n```", "fix: typo\n\n- detail"),
        ('"fix: quoted"', "fix: quoted"),
        ("'fix: single quoted'", "fix: single quoted"),
        ("``````", "``````"),
        ("", ""),
    ])
    def test_clean(self, raw, expected):
        assert clean_message(raw) == expected


# ---------------------------------------------------------------------------
# Running one provider
# ---------------------------------------------------------------------------

class TestRunProvider:

    def test_success_passes_prompt_on_stdin(self, installed):
        runner = completed(stdout="feat: add parser\n")
        message = run_provider(Provider.CLAUDE, "haiku", "PROMPT", 30, runner=runner)

        assert message == "feat: add parser"
        argv, kwargs = runner.calls[0]
        assert argv == ["/usr/bin/claude", "--model", "haiku", "-p"]
        assert kwargs["input"] == "PROMPT"
        assert kwargs["timeout"] == 30

    def test_missing_executable(self, monkeypatch):
        monkeypatch.setattr(providers_module.shutil, "which", lambda cmd: None)
        runner = completed()
        with pytest.raises(ProviderUnavailable) as exc_info:
            run_provider(Provider.GEMINI, "flash", "p", 30, runner=runner)
        assert exc_info.value.provider == "gemini"
        assert "not found" in exc_info.value.reason
        assert runner.calls == []

    def test_file_not_found_at_spawn(self, installed):
        def runner(argv, **kwargs):
            raise FileNotFoundError(argv[0])

        with pytest.raises(ProviderUnavailable):
            run_provider(Provider.CODEX, "m", "p", 30, runner=runner)

    def test_timeout(self, installed):
        def runner(argv, **kwargs):
            raise subprocess.TimeoutExpired(argv, kwargs["timeout"])

        with pytest.raises(ProviderTimeout) as exc_info:
            run_provider(Provider.CODEX, "m", "p", 5, runner=runner)
        assert "timed out after 5s" in exc_info.value.reason

    def test_non_zero_exit_discards_partial_output(self, installed):
        runner = completed(returncode=1, stdout="feat: half", stderr="Error: overloaded")
        with pytest.raises(ProviderExecutionFailed) as exc_info:
            run_provider(Provider.CLAUDE, "haiku", "p", 30, runner=runner)
        assert exc_info.value.reason == "Error: overloaded"

    def test_empty_response(self, installed):
        runner = completed(stdout='  ""  ')
        with pytest.raises(ProviderExecutionFailed) as exc_info:
            run_provider(Provider.GEMINI, "flash", "p", 30, runner=runner)
        assert "empty response" in exc_info.value.reason
