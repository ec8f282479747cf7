"""Key and Nonce value types.

A :class:`Key` owns symmetric key material in a private ``bytearray``. The
material is zeroed exactly once: when :meth:`Key.clear` is called, when a
``with`` block around the key exits, or when the key becomes unreachable.
Consumers read the material through :meth:`Key.material`, which hands out a
scratch copy that is zeroed again when the block exits.

A :class:`Nonce` is an immutable IV. It is generated fresh for every
encryption and never reused under the same key.
"""
from __future__ import annotations

import weakref
from contextlib import contextmanager
from typing import Iterator, Optional

from lockbox.core.exceptions import InvalidInputError
from .codec import constant_time_equals
from .randomness import random_bytes

KEY_LENGTH = 32  # 256 bits
NONCE_LENGTH = 16  # one AES block


def _zero(buf: bytearray) -> None:
    for i in range(len(buf)):
        buf[i] = 0


def _as_bytes(data, name: str) -> bytes:
    if data is None:
        raise InvalidInputError(f"{name} can't be None")
    if isinstance(data, str) or not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidInputError(f"{name} must be bytes, got {type(data).__name__}")
    if len(data) == 0:
        raise InvalidInputError(f"{name} can't be empty")
    return bytes(data)


class Key:
    """Symmetric key material.

    ``Key()`` generates :data:`KEY_LENGTH` random bytes, ``Key(data)`` takes
    the supplied bytes as they are.
    """

    __slots__ = ("_material", "_finalizer", "__weakref__")

    def __init__(self, data: Optional[bytes] = None):
        raw = random_bytes(KEY_LENGTH) if data is None else _as_bytes(data, "data")
        self._material = bytearray(raw)
        self._finalizer = weakref.finalize(self, _zero, self._material)

    @classmethod
    def from_bytes(cls, data: bytes) -> "Key":
        """Wrap caller supplied key bytes; unlike ``Key()`` None is an error."""
        return cls(_as_bytes(data, "data"))

    @classmethod
    def from_storable(cls, blob: bytes, storage=None) -> "Key":
        """Rebuild a key from a blob produced by :meth:`storable`."""
        if blob is None or len(blob) == 0:
            raise InvalidInputError("blob can't be None or empty")
        if storage is None:
            from .keystore import default_storage

            storage = default_storage()
        raw = bytearray(storage.unprotect(bytes(blob)))
        try:
            return cls(raw)
        finally:
            _zero(raw)

    # ------------------------------------------------------------------
    # Lifetime
    # ------------------------------------------------------------------

    @property
    def cleared(self) -> bool:
        return not self._finalizer.alive

    def clear(self) -> None:
        """Zero the key material. Safe to call any number of times."""
        # finalize objects run their callback at most once
        self._finalizer()

    def __enter__(self) -> "Key":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    def _require_material(self) -> bytearray:
        if self.cleared:
            raise InvalidInputError("key has been cleared")
        return self._material

    @contextmanager
    def material(self) -> Iterator[bytearray]:
        """Yield a scratch copy of the key bytes, zeroed when the block exits."""
        scratch = bytearray(self._require_material())
        try:
            yield scratch
        finally:
            _zero(scratch)

    def export_bytes(self) -> bytes:
        """
        Return an immutable copy of the key bytes.

        The copy can't be zeroed and outlives :meth:`clear`. Use it only to
        hand the key to something outside Lockbox; everything else should
        go through :meth:`material`.
        """
        return bytes(self._require_material())

    def storable(self, storage=None) -> bytes:
        """Export the key through protected storage.

        Raises PlatformUnsupportedError when the platform offers no
        protected storage service.
        """
        if storage is None:
            from .keystore import default_storage

            storage = default_storage()
        with self.material() as raw:
            return storage.protect(bytes(raw))

    def __len__(self) -> int:
        return len(self._material)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Key):
            return NotImplemented
        if self.cleared or other.cleared:
            return False
        return constant_time_equals(self._material, other._material)

    __hash__ = None

    def __repr__(self) -> str:
        state = "cleared" if self.cleared else f"{len(self._material)} bytes"
        return f"Key(<{state}>)"


class Nonce:
    """Initialization vector.

    ``Nonce()`` is :data:`NONCE_LENGTH` random bytes, ``Nonce(length=n)`` is
    ``n`` random bytes and ``Nonce(data)`` uses ``data`` as it is.
    """

    __slots__ = ("_value",)

    def __init__(self, data: Optional[bytes] = None, *, length: Optional[int] = None):
        if data is not None and length is not None:
            raise InvalidInputError("pass either data or length, not both")
        if data is not None:
            self._value = _as_bytes(data, "data")
        else:
            self._value = random_bytes(NONCE_LENGTH if length is None else length)

    @property
    def bytes(self) -> bytes:
        return self._value

    def __len__(self) -> int:
        return len(self._value)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Nonce):
            return NotImplemented
        return self._value == other._value

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"Nonce({self._value.hex()})"
