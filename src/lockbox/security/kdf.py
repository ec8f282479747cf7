"""Password based key derivation.

Two functions live here:

- :class:`Pbkdf2Hasher` produces self-describing password hashes for
  storage. Blob layout (little-endian header)::

      [4 bytes: iterations][32 bytes: salt][20 bytes: PBKDF2-HMAC-SHA1 output]

  The 20-byte output matches the legacy SHA-1 digest size, so hashes stay
  compatible with .NET ``Rfc2898DeriveBytes`` defaults.

- :func:`derive_key_bytes` derives raw symmetric key material from a
  password with Argon2id, for use as a :class:`~lockbox.security.keys.Key`.
"""
from __future__ import annotations

import logging
import struct
from typing import Optional, Union

from argon2.low_level import Type, hash_secret_raw
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from lockbox.core.config import load_settings
from lockbox.core.exceptions import InvalidInputError
from .codec import constant_time_equals, encode, key_decode, key_encode
from .randomness import random_bytes

logger = logging.getLogger(__name__)

SALT_LENGTH = 32  # 256 bits
HASH_LENGTH = 20  # 160 bits (SHA-1)
ITERATIONS_HEADER = struct.Struct("<i")
BLOB_LENGTH = ITERATIONS_HEADER.size + SALT_LENGTH + HASH_LENGTH
MAX_INT32 = 2**31 - 1


def _check_iterations(iterations) -> int:
    if isinstance(iterations, bool) or not isinstance(iterations, int):
        raise InvalidInputError("iterations must be an int")
    if iterations <= 0 or iterations > MAX_INT32:
        raise InvalidInputError(f"iterations must be between 1 and {MAX_INT32}, got {iterations}")
    return iterations


def _password_bytes(password: Union[str, bytes]) -> bytes:
    if password is None:
        raise InvalidInputError("password can't be None")
    if isinstance(password, str):
        return encode(password)
    if isinstance(password, (bytes, bytearray, memoryview)) and len(password) > 0:
        return bytes(password)
    raise InvalidInputError("password must be a non-empty str or bytes")


def _stored_bytes(stored: Union[str, bytes]) -> Optional[bytes]:
    # None/empty is a caller error; anything undecodable is just "no match"
    if stored is None:
        raise InvalidInputError("stored hash can't be None")
    if not isinstance(stored, (str, bytes, bytearray, memoryview)):
        raise InvalidInputError(f"stored hash must be str or bytes, got {type(stored).__name__}")
    if len(stored) == 0:
        raise InvalidInputError("stored hash can't be empty")
    if isinstance(stored, (bytes, bytearray, memoryview)):
        return bytes(stored)
    try:
        return key_decode(stored)
    except InvalidInputError:
        return None


def _pbkdf2(password: bytes, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA1(),
        length=HASH_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password)


def pack_hash(iterations: int, salt: bytes, derived: bytes) -> bytes:
    if len(salt) != SALT_LENGTH or len(derived) != HASH_LENGTH:
        raise InvalidInputError(f"salt must be {SALT_LENGTH} bytes and derived key {HASH_LENGTH} bytes")
    return ITERATIONS_HEADER.pack(_check_iterations(iterations)) + bytes(salt) + bytes(derived)


def unpack_hash(blob: bytes) -> tuple[int, bytes, bytes]:
    """Split a stored blob into (iterations, salt, derived key)."""
    if blob is None or len(blob) != BLOB_LENGTH:
        raise InvalidInputError(f"stored hash must be exactly {BLOB_LENGTH} bytes")
    (iterations,) = ITERATIONS_HEADER.unpack_from(blob, 0)
    salt_end = ITERATIONS_HEADER.size + SALT_LENGTH
    return iterations, bytes(blob[ITERATIONS_HEADER.size:salt_end]), bytes(blob[salt_end:])


class Pbkdf2Hasher:
    """Hash and verify passwords with PBKDF2-HMAC-SHA1.

    ``iterations`` is used for new hashes; verification always uses the
    count embedded in the stored hash. That count is untrusted input: set
    ``max_iterations`` (or ``LOCKBOX_PBKDF2_MAX_ITERATIONS``) when stored
    hashes may come from an untrusted source.
    """

    def __init__(self, iterations: Optional[int] = None, max_iterations: Optional[int] = None):
        settings = load_settings()
        self.iterations = _check_iterations(settings.pbkdf2_iterations if iterations is None else iterations)
        if max_iterations is None:
            max_iterations = settings.pbkdf2_max_iterations
        self.max_iterations = None if max_iterations is None else _check_iterations(max_iterations)

    def hash_bytes(self, password: Union[str, bytes]) -> bytes:
        """Return the raw stored-hash blob for ``password`` with a fresh salt."""
        secret = _password_bytes(password)
        salt = random_bytes(SALT_LENGTH)
        return pack_hash(self.iterations, salt, _pbkdf2(secret, salt, self.iterations))

    def hash(self, password: Union[str, bytes]) -> str:
        """Return the Base64 stored-hash text for ``password``."""
        return key_encode(self.hash_bytes(password))

    def verify(self, password: Union[str, bytes], stored: Union[str, bytes]) -> bool:
        """
        Check ``password`` against a stored hash (Base64 text or raw blob).

        A stored hash that is not exactly 56 bytes once decoded, is not valid
        Base64, or embeds a non-positive iteration count is a data integrity
        problem and yields False instead of raising.
        """
        secret = _password_bytes(password)
        blob = _stored_bytes(stored)
        if blob is None or len(blob) != BLOB_LENGTH:
            logger.warning("stored password hash is malformed")
            return False

        iterations, salt, expected = unpack_hash(blob)
        if iterations <= 0:
            logger.warning("stored password hash has invalid iteration count %d", iterations)
            return False
        if self.max_iterations is not None and iterations > self.max_iterations:
            logger.warning(
                "stored password hash iteration count %d exceeds cap %d", iterations, self.max_iterations
            )
            return False

        return constant_time_equals(_pbkdf2(secret, salt, iterations), expected)

    def needs_rehash(self, stored: Union[str, bytes]) -> bool:
        """True when ``stored`` uses fewer iterations than this hasher."""
        return iterations_of(stored) < self.iterations


def iterations_of(stored: Union[str, bytes]) -> int:
    """Read the iteration count embedded in a stored hash."""
    blob = _stored_bytes(stored)
    if blob is None:
        raise InvalidInputError("stored hash is not valid Base64")
    iterations, _, _ = unpack_hash(blob)
    return iterations


def generate_salt(length: int = 16) -> bytes:
    """Return a cryptographically secure random salt."""
    return random_bytes(length)


def derive_key_bytes(
    password: Union[str, bytes],
    salt: bytes,
    time_cost: int = 3,
    memory_cost: int = 65536,
    parallelism: int = 1,
    key_len: int = 32,
) -> bytes:
    """
    Derive key material from a password using Argon2id.
    Returns raw derived key bytes.
    """
    if salt is None or len(salt) < 8:
        raise InvalidInputError("salt must be at least 8 bytes")

    return hash_secret_raw(
        secret=_password_bytes(password),
        salt=bytes(salt),
        time_cost=time_cost,
        memory_cost=memory_cost,
        parallelism=parallelism,
        hash_len=key_len,
        type=Type.ID,
    )
