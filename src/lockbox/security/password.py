"""Plaintext passwords and their storable, verifiable form.

Typical use::

    password = Password("Correct Horse Battery Staple")

    # store secured.hash in your database
    secured = password.storable()

    # later
    if SecuredPassword(stored_text).verify(Password(candidate)):
        ...
"""
from __future__ import annotations

from typing import Optional, Union

from lockbox.core.config import load_settings
from lockbox.core.exceptions import InvalidInputError
from .kdf import Pbkdf2Hasher, derive_key_bytes, iterations_of
from .keys import KEY_LENGTH, Key


class Password:
    """An unsecured password in plaintext."""

    __slots__ = ("plaintext", "iterations")

    def __init__(self, plaintext: str, iterations: Optional[int] = None):
        if plaintext is None or plaintext == "":
            raise InvalidInputError("password can't be None or empty")
        if not isinstance(plaintext, str):
            raise InvalidInputError(f"password must be str, got {type(plaintext).__name__}")
        if iterations is None:
            iterations = load_settings().pbkdf2_iterations
        if isinstance(iterations, bool) or not isinstance(iterations, int) or iterations <= 0:
            raise InvalidInputError("number of iterations must be a positive int")
        self.plaintext = plaintext
        self.iterations = iterations

    def storable(self) -> "SecuredPassword":
        """Convert the password to a PBKDF2 hash that can be stored and verified."""
        return SecuredPassword(Pbkdf2Hasher(self.iterations).hash(self.plaintext))

    def derive_key(self, salt: bytes, **argon2_params) -> Key:
        """Derive a 256-bit Key from this password and ``salt`` (Argon2id).

        The caller stores ``salt``; the same password and salt give the same key.
        """
        raw = bytearray(derive_key_bytes(self.plaintext, salt, key_len=KEY_LENGTH, **argon2_params))
        try:
            return Key(raw)
        finally:
            for i in range(len(raw)):
                raw[i] = 0

    def __repr__(self) -> str:
        return f"Password(<hidden>, iterations={self.iterations})"


class SecuredPassword:
    """A password hash that can be stored and verified."""

    __slots__ = ("hash",)

    def __init__(self, hash: str):
        if hash is None or hash == "":
            raise InvalidInputError("hash can't be None or empty")
        if not isinstance(hash, str):
            raise InvalidInputError(f"hash must be str, got {type(hash).__name__}")
        self.hash = hash

    @property
    def iterations(self) -> int:
        return iterations_of(self.hash)

    def verify(self, password: Union[Password, str], hasher: Optional[Pbkdf2Hasher] = None) -> bool:
        """Compare a password to the secured hash.

        The iteration count embedded in the hash is used; pass a ``hasher``
        with ``max_iterations`` set to cap it.
        """
        if password is None:
            raise InvalidInputError("password can't be None")
        if isinstance(password, str):
            password = Password(password)
        if not isinstance(password, Password):
            raise InvalidInputError(f"password must be a Password, got {type(password).__name__}")
        if hasher is None:
            hasher = Pbkdf2Hasher(password.iterations)
        return hasher.verify(password.plaintext, self.hash)

    def needs_rehash(self, iterations: Optional[int] = None) -> bool:
        """True when the hash was made with fewer iterations than ``iterations``."""
        return Pbkdf2Hasher(iterations).needs_rehash(self.hash)

    def __eq__(self, other) -> bool:
        if not isinstance(other, SecuredPassword):
            return NotImplemented
        return self.hash == other.hash

    def __hash__(self) -> int:
        return hash(self.hash)

    def __repr__(self) -> str:
        return "SecuredPassword(<hash>)"
