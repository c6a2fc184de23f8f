"""Configuration loading from environment variables and membank.toml."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib
from pathlib import Path

_DEFAULT_ROOT = Path.home() / ".membank" / "projects"
_CONFIG_FILENAME = "membank.toml"


@dataclass
class LockConfig:
    """Retry and staleness settings for cross-process locks."""

    retries: int = 10
    factor: float = 2.0
    min_timeout: float = 0.1
    max_timeout: float = 1.0
    randomize: bool = True
    stale: float = 30.0


@dataclass
class MembankConfig:
    """Top-level memory bank configuration."""

    root: Path = _DEFAULT_ROOT
    actor: str = "membank"
    lock: LockConfig = field(default_factory=LockConfig)
    log_level: str = "INFO"


def load_config(config_path: Path | None = None) -> MembankConfig:
    """Load configuration from environment variables and optional membank.toml.

    Priority: environment variables > membank.toml > defaults.
    """
    file_data: dict = {}
    if config_path and config_path.exists():
        file_data = tomllib.loads(config_path.read_text())
    else:
        # Search current dir and ~/.membank/
        for candidate in [
            Path.cwd() / _CONFIG_FILENAME,
            Path.home() / ".membank" / _CONFIG_FILENAME,
        ]:
            if candidate.exists():
                file_data = tomllib.loads(candidate.read_text())
                break

    lock_data = file_data.get("lock", {})

    config = MembankConfig(
        root=Path(os.getenv("MEMBANK_ROOT", file_data.get("root", str(_DEFAULT_ROOT)))).expanduser(),
        actor=os.getenv("MEMBANK_ACTOR", file_data.get("actor", "membank")),
        lock=LockConfig(
            retries=int(os.getenv("MEMBANK_LOCK_RETRIES", lock_data.get("retries", 10))),
            factor=float(lock_data.get("factor", 2.0)),
            min_timeout=float(lock_data.get("min_timeout", 0.1)),
            max_timeout=float(lock_data.get("max_timeout", 1.0)),
            randomize=bool(lock_data.get("randomize", True)),
            stale=float(os.getenv("MEMBANK_LOCK_STALE", lock_data.get("stale", 30.0))),
        ),
        log_level=os.getenv("MEMBANK_LOG_LEVEL", file_data.get("log_level", "INFO")),
    )
    return config
