"""Runtime settings for Lockbox, read from environment variables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
import os

from .exceptions import InvalidInputError

DEFAULT_PBKDF2_ITERATIONS = 500_000
DEFAULT_KEYRING_SERVICE = "lockbox"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(frozen=True)
class Settings:
    """Container for the values the security package consults at runtime."""

    pbkdf2_iterations: int = DEFAULT_PBKDF2_ITERATIONS
    pbkdf2_max_iterations: Optional[int] = None
    keyring_service: str = DEFAULT_KEYRING_SERVICE
    log_level: str = DEFAULT_LOG_LEVEL


def _positive_int(name: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidInputError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise InvalidInputError(f"{name} must be positive, got {value}")
    return value


def load_settings() -> Settings:
    """
    Build a Settings instance from the environment.

    - ``LOCKBOX_PBKDF2_ITERATIONS``: iteration count for new password hashes
    - ``LOCKBOX_PBKDF2_MAX_ITERATIONS``: optional cap applied when verifying
      stored hashes (the embedded count is untrusted input)
    - ``LOCKBOX_KEYRING_SERVICE``: service name used for keyring entries
    - ``LOCKBOX_LOG_LEVEL``: level name passed to :func:`configure_logging`

    The environment is read on every call so tests can monkeypatch it.
    """
    return Settings(
        pbkdf2_iterations=_positive_int("LOCKBOX_PBKDF2_ITERATIONS", DEFAULT_PBKDF2_ITERATIONS),
        pbkdf2_max_iterations=_positive_int("LOCKBOX_PBKDF2_MAX_ITERATIONS", None),
        keyring_service=os.getenv("LOCKBOX_KEYRING_SERVICE") or DEFAULT_KEYRING_SERVICE,
        log_level=(os.getenv("LOCKBOX_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
    )
