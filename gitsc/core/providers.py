"""External AI command-line agents that git-sc can delegate to."""

import logging
import shutil
import subprocess
from enum import Enum
from typing import Dict, Iterable, List, Optional

from gitsc.core.errors import (
    ProviderExecutionFailed,
    ProviderTimeout,
    ProviderUnavailable,
)

logger = logging.getLogger(__name__)


class Provider(Enum):
    """Supported AI CLIs. The value doubles as the executable name."""

    GEMINI = "gemini"
    CODEX = "codex"
    CLAUDE = "claude"

    @property
    def display_name(self) -> str:
        return PROVIDER_INFO[self]["display_name"]

    @property
    def command(self) -> str:
        return self.value

    @property
    def install_url(self) -> str:
        return PROVIDER_INFO[self]["install_url"]

    @classmethod
    def parse(cls, value: str) -> Optional["Provider"]:
        """Parse a provider identifier, ignoring case. Returns None if unknown."""
        try:
            return cls(value.strip().lower())
        except (AttributeError, ValueError):
            return None


PROVIDER_INFO: Dict[Provider, Dict[str, str]] = {
    Provider.GEMINI: {
        "display_name": "Gemini CLI",
        "install_url": "https://github.com/google-gemini/gemini-cli",
    },
    Provider.CODEX: {
        "display_name": "Codex CLI",
        "install_url": "https://github.com/openai/codex",
    },
    Provider.CLAUDE: {
        "display_name": "Claude Code",
        "install_url": "https://docs.anthropic.com/en/docs/claude-code",
    },
}

DEFAULT_MODELS: Dict[str, str] = {
    "gemini": "flash",
    "codex": "gpt-5.1-codex-mini",
    "claude": "haiku",
}

DEFAULT_PROVIDERS: List[str] = ["gemini", "codex", "claude"]


def supported_providers() -> List[str]:
    """Return supported provider identifiers."""
    return [provider.value for provider in Provider]


def parse_providers(names: Iterable[str]) -> List[Provider]:
    """
    Turn configured identifiers into providers, keeping their order.

    Unknown identifiers are skipped with a warning; repeats keep the first
    occurrence.
    """
    providers: List[Provider] = []
    for name in names:
        provider = Provider.parse(name)
        if provider is None:
            logger.warning("Ignoring unknown provider '%s'", name)
            continue
        if provider not in providers:
            providers.append(provider)
    return providers


def is_installed(provider: Provider) -> bool:
    return shutil.which(provider.command) is not None


def build_command(provider: Provider, model: str) -> List[str]:
    """Build the argument list for one provider call. The prompt goes on stdin."""
    if provider is Provider.GEMINI:
        args = ["-m", model]
    elif provider is Provider.CODEX:
        args = ["exec", "--model", model]
    elif provider is Provider.CLAUDE:
        args = ["--model", model, "-p"]
    else:
        raise ValueError(f"Unsupported provider '{provider}'.")
    return [provider.command] + args


def extract_error(provider: Provider, stderr: str) -> str:
    """Pick the most useful line out of a failed provider's stderr."""
    if provider is Provider.GEMINI:
        for line in stderr.splitlines():
            if line.startswith("[API Error:"):
                return line
        return "Gemini API request failed"

    for line in stderr.splitlines():
        if line.strip():
            return line
    return "API request failed"


def clean_message(message: str) -> str:
    """Strip code fences and wrapping quotes the agents like to add."""
    message = message.strip()

    if message.startswith("```") and message.endswith("```"):
        lines = message.splitlines()
        if len(lines) > 2:
            message = "\n".join(lines[1:-1])

    message = message.strip('"').strip("'")
    return message.strip()


def run_provider(
    provider: Provider,
    model: str,
    prompt: str,
    timeout: float,
    runner=subprocess.run,
) -> str:
    """
    Run a single provider call and return the cleaned message.

    Args:
        provider: Provider to invoke
        model: Model name passed to the provider's CLI
        prompt: Prompt written verbatim to the process' stdin
        timeout: Seconds to wait before the process is killed
        runner: ``subprocess.run`` compatible callable

    Returns:
        Generated commit message

    Raises:
        ProviderUnavailable: If the executable is not installed
        ProviderTimeout: If the call exceeded ``timeout``
        ProviderExecutionFailed: On a non-zero exit or an empty answer
    """
    argv = build_command(provider, model)
    executable = shutil.which(argv[0])
    if executable is None:
        raise ProviderUnavailable(
            provider.value, f"{provider.display_name} not found"
        )
    argv[0] = executable

    logger.debug("Running %s", " ".join(argv))
    try:
        result = runner(
            argv,
            input=prompt,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
    except FileNotFoundError:
        raise ProviderUnavailable(
            provider.value, f"{provider.display_name} not found"
        )
    except subprocess.TimeoutExpired:
        raise ProviderTimeout(
            provider.value,
            f"{provider.display_name} timed out after {timeout:g}s",
        )
    except OSError as exc:
        raise ProviderExecutionFailed(provider.value, str(exc))

    if result.returncode != 0:
        raise ProviderExecutionFailed(
            provider.value, extract_error(provider, result.stderr or "")
        )

    message = clean_message(result.stdout or "")
    if not message:
        raise ProviderExecutionFailed(
            provider.value, f"{provider.display_name} returned an empty response"
        )
    return message
