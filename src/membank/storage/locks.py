"""Cross-process locks keyed by arbitrary strings.

Each key owns an empty marker file ``<locks_dir>/<key>.lock``; exclusive
ownership is a ``SoftFileLease`` on ``<key>.lock.lock`` next to it, which
records the holder and is refreshed while held. Acquisition retries with
jittered exponential backoff. A lock whose holder died is broken at once;
one left unrefreshed is broken after a contender has watched it unchanged
for ``stale`` seconds. Release only ever removes the holder's own lock file.
"""

from __future__ import annotations

import logging
import random
import re
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from filelock import LeaseCompromise, SoftFileLease, Timeout

from membank.config import LockConfig
from membank.errors import LockTimeout

logger = logging.getLogger(__name__)

_UNSAFE_KEY_CHARS = re.compile(r"[^a-zA-Z0-9\-_]")


def sanitize_key(key: str) -> str:
    return _UNSAFE_KEY_CHARS.sub("_", key)


class LockManager:
    """Serialize callers holding the same key, across threads and processes."""

    def __init__(
        self,
        locks_dir: Path,
        retries: int = 10,
        factor: float = 2.0,
        min_timeout: float = 0.1,
        max_timeout: float = 1.0,
        randomize: bool = True,
        stale: float = 30.0,
    ) -> None:
        self.locks_dir = locks_dir
        self.retries = retries
        self.factor = factor
        self.min_timeout = min_timeout
        self.max_timeout = max_timeout
        self.randomize = randomize
        self.stale = stale

    @classmethod
    def from_config(cls, locks_dir: Path, config: LockConfig) -> LockManager:
        return cls(
            locks_dir,
            retries=config.retries,
            factor=config.factor,
            min_timeout=config.min_timeout,
            max_timeout=config.max_timeout,
            randomize=config.randomize,
            stale=config.stale,
        )

    def marker_path(self, key: str) -> Path:
        return self.locks_dir / f"{sanitize_key(key)}.lock"

    def _ensure_marker(self, key: str) -> Path:
        """Create the locks directory and the key's marker file on first use."""
        self.locks_dir.mkdir(parents=True, exist_ok=True)
        marker = self.marker_path(key)
        marker.touch(exist_ok=True)
        return marker

    def _backoff(self, attempt: int) -> float:
        delay = self.min_timeout * (self.factor**attempt)
        if self.randomize:
            delay *= 1 + random.random()
        return min(delay, self.max_timeout)

    def acquire(self, key: str) -> Callable[[], None]:
        """Take the lock for ``key``; return a function that releases it.

        Raises ``LockTimeout`` once the retry budget is exhausted.
        """
        marker = self._ensure_marker(key)
        lock_path = marker.with_name(marker.name + ".lock")
        # Every contender must agree on the lease duration
        lock = SoftFileLease(
            str(lock_path), lease_duration=self.stale, on_compromise=_log_compromise
        )

        attempts = self.retries + 1
        for attempt in range(attempts):
            try:
                lock.acquire(timeout=0)
            except Timeout:
                if attempt == attempts - 1:
                    break
                time.sleep(self._backoff(attempt))
                continue
            if attempt:
                logger.debug("Acquired lock %r after %d attempts", key, attempt + 1)
            return _releaser(lock)

        raise LockTimeout(key, attempts)

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        release = self.acquire(key)
        try:
            yield
        finally:
            release()


def _log_compromise(compromise: LeaseCompromise) -> None:
    logger.warning("Lost lock %s: %s", compromise.lock_file, compromise.reason)


def _releaser(lock: SoftFileLease) -> Callable[[], None]:
    released = False

    def release() -> None:
        nonlocal released
        if released:
            return
        released = True
        lock.release()

    return release
