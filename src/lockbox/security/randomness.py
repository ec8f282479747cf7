import os

from lockbox.core.exceptions import InvalidInputError


def random_bytes(length: int) -> bytes:
    """Return ``length`` cryptographically secure random bytes."""
    if isinstance(length, bool) or not isinstance(length, int):
        raise InvalidInputError("length must be an int")
    if length <= 0:
        raise InvalidInputError(f"length must be positive, got {length}")
    return os.urandom(length)
