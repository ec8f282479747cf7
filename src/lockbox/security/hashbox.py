"""Message digests and authentication tags.

A :class:`HashBox` without a key computes SHA-512 digests; with a key it
computes HMAC-SHA-512 tags. Both produce a :class:`Digest`, a tagged value
that remembers which of the two it is::

    box = HashBox()
    digest = box.compute("message")
    digest.verify("message")            # True

    key = Key()
    tag = HashBox(key).compute("message")
    tag.verify("message", key=key)      # True
    tag.verify_with_key("message", key) # True
    tag.verify("message")               # NotSupportedError

A keyed tag can only be checked against a key. Verifying it against the
plaintext alone would silently downgrade authentication to a plain hash
comparison, so it is refused.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import BinaryIO, Optional, Union

from cryptography.hazmat.primitives import hashes, hmac

from lockbox.core.exceptions import EmptyPayloadError, InvalidInputError, NotSupportedError
from .codec import constant_time_equals, encode, key_decode, key_encode
from .keys import Key

CHUNK_SIZE = 65536  # 64KB
DIGEST_LENGTH = 64  # SHA-512 / HMAC-SHA-512

Message = Union[str, bytes, bytearray, memoryview, BinaryIO]


class DigestKind(enum.Enum):
    UNKEYED = "unkeyed"
    KEYED = "keyed"


def _payload(data) -> bytes:
    # str -> UTF-8, bytes-like -> as is; both must be non-empty
    if data is None:
        raise InvalidInputError("data can't be None")
    if isinstance(data, str):
        return encode(data)
    if isinstance(data, (bytes, bytearray, memoryview)):
        if len(data) == 0:
            raise EmptyPayloadError("data can't be empty")
        return bytes(data)
    raise InvalidInputError(f"unsupported data type {type(data).__name__}")


def _new_context(key: Optional[Key]):
    if key is None:
        return hashes.Hash(hashes.SHA512())
    # the HMAC context keeps its own copy of the key
    with key.material() as raw:
        return hmac.HMAC(raw, hashes.SHA512())


def _digest_bytes(data: bytes, key: Optional[Key]) -> bytes:
    ctx = _new_context(key)
    ctx.update(data)
    return ctx.finalize()


def _digest_stream(stream: BinaryIO, key: Optional[Key]) -> bytes:
    ctx = _new_context(key)
    while True:
        chunk = stream.read(CHUNK_SIZE)
        if not chunk:
            break
        if not isinstance(chunk, (bytes, bytearray, memoryview)):
            raise InvalidInputError("stream must be opened in binary mode")
        ctx.update(chunk)
    return ctx.finalize()


@dataclass(frozen=True)
class Digest:
    """Output of a :class:`HashBox` computation."""

    value: bytes
    kind: DigestKind = DigestKind.UNKEYED

    def __post_init__(self):
        if self.value is None:
            raise InvalidInputError("value can't be None")
        if len(self.value) == 0:
            raise EmptyPayloadError("value can't be empty")
        if not isinstance(self.kind, DigestKind):
            raise InvalidInputError(f"kind must be a DigestKind, got {self.kind!r}")
        object.__setattr__(self, "value", bytes(self.value))

    @classmethod
    def from_text(cls, text: str, kind: DigestKind = DigestKind.UNKEYED) -> "Digest":
        """Parse the Base64 form produced by :attr:`hash`."""
        return cls(key_decode(text), kind)

    @property
    def hash(self) -> str:
        """Digest as Base64 text."""
        return key_encode(self.value)

    @property
    def keyed(self) -> bool:
        return self.kind is DigestKind.KEYED

    def verify(self, candidate: Union["Digest", str, bytes], key: Optional[Key] = None) -> bool:
        """
        Check ``candidate`` against this digest in constant time.

        - another :class:`Digest`: byte comparison, whatever the kinds
        - text or bytes with ``key``: recompute HMAC-SHA-512 under ``key``
        - text or bytes without ``key``: recompute SHA-512; refused with
          NotSupportedError when this digest is a keyed tag
        """
        if candidate is None:
            raise InvalidInputError("candidate can't be None")

        if isinstance(candidate, Digest):
            return constant_time_equals(self.value, candidate.value)

        if key is not None:
            return self.verify_with_key(candidate, key)

        if self.kind is DigestKind.KEYED:
            raise NotSupportedError("a keyed tag can only be verified with its key")
        return constant_time_equals(self.value, _digest_bytes(_payload(candidate), None))

    def verify_with_key(self, candidate: Union[str, bytes], key: Key) -> bool:
        """Recompute HMAC-SHA-512 of ``candidate`` under ``key`` and compare."""
        if key is None:
            raise InvalidInputError("key can't be None")
        if not isinstance(key, Key):
            raise InvalidInputError(f"key must be a Key, got {type(key).__name__}")
        return constant_time_equals(self.value, _digest_bytes(_payload(candidate), key))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Digest):
            return NotImplemented
        return constant_time_equals(self.value, other.value)

    def __hash__(self) -> int:
        return hash(self.value)


class HashBox:
    """
    Digest computation over text, bytes or binary streams.

    Primitive: SHA-512, or HMAC-SHA-512 when the box holds a key. The box
    keeps its key for its whole lifetime; :meth:`clear` (or leaving a
    ``with`` block) zeroes it.
    """

    def __init__(self, key: Optional[Key] = None, *, generate_key: bool = False):
        if key is not None and generate_key:
            raise InvalidInputError("pass either key or generate_key, not both")
        if key is not None and not isinstance(key, Key):
            raise InvalidInputError(f"key must be a Key, got {type(key).__name__}")
        self.key: Optional[Key] = Key() if generate_key else key

    @classmethod
    def keyed(cls, key: Key) -> "HashBox":
        """Build a keyed box; unlike the constructor a None key is an error."""
        if key is None:
            raise InvalidInputError("key can't be None")
        return cls(key)

    @property
    def kind(self) -> DigestKind:
        return DigestKind.UNKEYED if self.key is None else DigestKind.KEYED

    def compute(self, data: Message) -> Digest:
        """Hash ``data``: a non-empty str, non-empty bytes or a readable binary stream."""
        if data is None:
            raise InvalidInputError("data can't be None")
        if hasattr(data, "read") and not isinstance(data, (str, bytes, bytearray, memoryview)):
            return Digest(_digest_stream(data, self.key), self.kind)
        return Digest(_digest_bytes(_payload(data), self.key), self.kind)

    def clear(self) -> None:
        if self.key is not None:
            self.key.clear()

    def __enter__(self) -> "HashBox":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()
