"""Persistent record of recent provider failures."""

import logging
import math
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import yaml

from gitsc.core.providers import Provider

logger = logging.getLogger(__name__)

ProviderKey = Union[Provider, str]


def _key(provider: ProviderKey) -> str:
    if isinstance(provider, Provider):
        return provider.value
    return str(provider).lower()


class CooldownStore:
    """
    Failure timestamps per provider plus the cooldown window they apply to.

    A provider whose last failure is younger than the window is "cooling":
    it is moved behind the others for the next run but never dropped.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        cooldown_minutes: int = 60,
        failures: Optional[Dict[str, int]] = None,
    ):
        """
        Args:
            path: State file. ``None`` keeps the store in memory only.
            cooldown_minutes: Length of the cooldown window. 0 disables demotion.
            failures: Initial provider -> UNIX seconds mapping
        """
        if cooldown_minutes < 0:
            raise ValueError("cooldown_minutes must be >= 0")
        self.path = Path(path) if path is not None else None
        self.cooldown_minutes = cooldown_minutes
        self.failures: Dict[str, int] = {
            _key(name): int(ts) for name, ts in (failures or {}).items()
        }

    @property
    def cooldown_seconds(self) -> int:
        return self.cooldown_minutes * 60

    @classmethod
    def load(cls, path: Path, cooldown_minutes: int = 60) -> "CooldownStore":
        """
        Read the state file. A missing or unreadable file yields an empty store.
        """
        path = Path(path)
        store = cls(path, cooldown_minutes)
        if not path.exists():
            return store

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as exc:
            logger.warning("Ignoring unreadable state file %s: %s", path, exc)
            return store

        entries = data.get("provider_failures") if isinstance(data, dict) else None
        if not isinstance(entries, dict):
            if data:
                logger.warning("Ignoring malformed state file %s", path)
            return store

        for name, entry in entries.items():
            failed_at = entry.get("failed_at") if isinstance(entry, dict) else None
            if (
                isinstance(failed_at, bool)
                or not isinstance(failed_at, (int, float))
                or not math.isfinite(failed_at)
            ):
                logger.debug("Skipping malformed state entry for %s", name)
                continue
            store.failures[_key(name)] = int(failed_at)

        logger.debug("Loaded cooldown state for %s", sorted(store.failures))
        return store

    def save(self) -> None:
        """Write the state file atomically. Errors are logged, never raised."""
        if self.path is None:
            return

        payload = {
            "provider_failures": {
                name: {"failed_at": ts} for name, ts in sorted(self.failures.items())
            }
        }
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=str(self.path.parent),
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                yaml.safe_dump(payload, f, default_flow_style=False)
            os.replace(tmp_name, str(self.path))
            tmp_name = None
        except OSError as exc:
            logger.warning("Could not write state file %s: %s", self.path, exc)
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def last_failure(self, provider: ProviderKey) -> Optional[int]:
        return self.failures.get(_key(provider))

    def record_failure(self, provider: ProviderKey, now: Optional[float] = None) -> None:
        self.failures[_key(provider)] = int(time.time() if now is None else now)

    def clear(self, provider: ProviderKey) -> bool:
        """Forget a provider's failure. Returns True if there was one."""
        return self.failures.pop(_key(provider), None) is not None

    def remaining(self, provider: ProviderKey, now: Optional[float] = None) -> float:
        """Seconds left in the provider's cooldown, 0 when it is not cooling."""
        failed_at = self.last_failure(provider)
        if failed_at is None or self.cooldown_seconds == 0:
            return 0.0
        now = time.time() if now is None else now
        elapsed = max(0.0, now - failed_at)
        return max(0.0, self.cooldown_seconds - elapsed)

    def is_cooling(self, provider: ProviderKey, now: Optional[float] = None) -> bool:
        return self.remaining(provider, now) > 0

    def cooling(self, now: Optional[float] = None) -> List[str]:
        now = time.time() if now is None else now
        return [name for name in self.failures if self.is_cooling(name, now)]

    def cleanup_expired(self, now: Optional[float] = None) -> None:
        """Drop failures whose cooldown has run out."""
        now = time.time() if now is None else now
        self.failures = {
            name: ts for name, ts in self.failures.items() if self.is_cooling(name, now)
        }

    def effective_order(
        self, providers: Sequence[ProviderKey], now: Optional[float] = None
    ) -> List[ProviderKey]:
        """
        Move cooling providers behind the rest, keeping relative order in both groups.
        """
        if self.cooldown_seconds == 0:
            return list(providers)

        now = time.time() if now is None else now
        cool = [p for p in providers if not self.is_cooling(p, now)]
        cooling = [p for p in providers if self.is_cooling(p, now)]
        return cool + cooling
