"""Provider fallback with cooldown-based demotion."""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from gitsc.core.cooldown import CooldownStore
from gitsc.core.errors import AllProvidersFailed, ProviderError
from gitsc.core.providers import DEFAULT_MODELS, Provider, run_provider

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """A message and the provider that produced it."""

    message: str
    provider: Provider


class ProviderSelector:
    """
    Try providers one at a time until one of them produces a message.

    Providers that failed within the store's cooldown window are tried last.
    Every failure is written back to the store right away, so an interrupted
    run still demotes the providers that already failed.
    """

    def __init__(
        self,
        providers: Sequence[Provider],
        store: CooldownStore,
        models: Optional[Dict[str, str]] = None,
        timeout: float = 120,
        call: Callable[..., str] = run_provider,
        clock: Callable[[], float] = time.time,
        on_attempt: Optional[Callable[[Provider], None]] = None,
    ):
        self.providers = list(providers)
        self.store = store
        self.models = dict(DEFAULT_MODELS)
        self.models.update(models or {})
        self.timeout = timeout
        self._call = call
        self._clock = clock
        self._on_attempt = on_attempt

    def effective_order(self) -> List[Provider]:
        return self.store.effective_order(self.providers, self._clock())

    def generate(self, prompt: str) -> GenerationResult:
        """
        Generate a message from ``prompt``.

        Raises:
            AllProvidersFailed: If no provider is configured or every one failed
        """
        order = self.effective_order()
        logger.debug("Provider order: %s", [p.value for p in order])

        failures: List[Tuple[str, ProviderError]] = []
        for provider in order:
            if self._on_attempt is not None:
                self._on_attempt(provider)

            try:
                message = self._call(
                    provider,
                    self.models.get(provider.value, DEFAULT_MODELS[provider.value]),
                    prompt,
                    self.timeout,
                )
            except ProviderError as exc:
                logger.warning("%s failed: %s", provider.display_name, exc.reason)
                failures.append((provider.value, exc))
                self._record_failure(provider)
                continue

            if self.store.clear(provider):
                self.store.save()
            return GenerationResult(message=message, provider=provider)

        raise AllProvidersFailed(failures)

    def _record_failure(self, provider: Provider) -> None:
        now = self._clock()
        self.store.record_failure(provider, now)
        self.store.cleanup_expired(now)
        self.store.save()
