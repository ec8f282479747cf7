"""Symmetric encryption of byte and string payloads.

Cipher: AES-256 in CBC mode with PKCS7 padding, one fresh random 16-byte
nonce per :meth:`SecretLocker.lock` call.

IMPORTANT: this provides confidentiality only. There is no MAC, so a
tampered ciphertext is only detected when the damage happens to break the
padding (or, for :meth:`SecretLocker.unlock_string`, the UTF-8 decoding).
Pair the locker with a keyed :class:`~lockbox.security.hashbox.HashBox` if
integrity matters.

Combined format of a :class:`Locked` value (little-endian length)::

    [4 bytes: nonce length N][N bytes: nonce][rest: ciphertext]
"""
from __future__ import annotations

import logging
import struct
from typing import Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from lockbox.core.exceptions import DecryptionFailedError, InvalidInputError
from .codec import decode, encode, key_decode, key_encode
from .keys import KEY_LENGTH, Key, Nonce

logger = logging.getLogger(__name__)

BLOCK_SIZE_BITS = 128
NONCE_HEADER = struct.Struct("<i")

# one message for every decryption failure so the error shape reveals nothing
DECRYPTION_FAILED = "decryption failed"


class Locked:
    """Ciphertext bundled with the nonce it was produced with."""

    __slots__ = ("_ciphertext", "_nonce")

    def __init__(self, ciphertext: bytes, nonce: Nonce):
        if ciphertext is None:
            raise InvalidInputError("ciphertext can't be None")
        if nonce is None:
            raise InvalidInputError("nonce can't be None")
        if not isinstance(ciphertext, (bytes, bytearray, memoryview)):
            raise InvalidInputError(f"ciphertext must be bytes, got {type(ciphertext).__name__}")
        if not isinstance(nonce, Nonce):
            raise InvalidInputError(f"nonce must be a Nonce, got {type(nonce).__name__}")
        self._ciphertext = bytes(ciphertext)
        self._nonce = nonce

    @property
    def ciphertext(self) -> bytes:
        return self._ciphertext

    @property
    def nonce(self) -> Nonce:
        return self._nonce

    @property
    def combined(self) -> bytes:
        """Nonce and ciphertext packed into a single blob."""
        nonce = self._nonce.bytes
        return NONCE_HEADER.pack(len(nonce)) + nonce + self._ciphertext

    @classmethod
    def from_combined(cls, blob: bytes) -> "Locked":
        """Parse a blob produced by :attr:`combined`.

        Structural damage (short header, announced nonce longer than the
        blob) raises InvalidInputError. Nothing here is authenticated: a
        corrupted ciphertext only shows up at decryption time.
        """
        if blob is None:
            raise InvalidInputError("blob can't be None")
        blob = bytes(blob)
        if len(blob) < NONCE_HEADER.size:
            raise InvalidInputError("blob too short to contain a nonce length")
        (nonce_len,) = NONCE_HEADER.unpack_from(blob, 0)
        end = NONCE_HEADER.size + nonce_len
        if nonce_len <= 0 or end > len(blob):
            raise InvalidInputError(f"invalid nonce length {nonce_len} for a blob of {len(blob)} bytes")
        return cls(blob[end:], Nonce(blob[NONCE_HEADER.size:end]))

    def to_text(self) -> str:
        """Base64 text of :attr:`combined`."""
        return key_encode(self.combined)

    @classmethod
    def from_text(cls, text: str) -> "Locked":
        return cls.from_combined(key_decode(text))

    def __eq__(self, other) -> bool:
        if not isinstance(other, Locked):
            return NotImplemented
        return self._nonce == other._nonce and self._ciphertext == other._ciphertext

    def __hash__(self) -> int:
        return hash((self._nonce, self._ciphertext))

    def __repr__(self) -> str:
        return f"Locked(nonce={len(self._nonce)} bytes, ciphertext={len(self._ciphertext)} bytes)"


class SecretLocker:
    """
    Lock (encrypt) and unlock (decrypt) payloads under a single Key.

    The locker holds its key for its lifetime. Cipher and padding contexts
    are created per call, so one locker can be shared between threads.
    """

    def __init__(self, key: Key):
        if key is None:
            raise InvalidInputError("key can't be None")
        if not isinstance(key, Key):
            raise InvalidInputError(f"key must be a Key, got {type(key).__name__}")
        if len(key) != KEY_LENGTH:
            raise InvalidInputError(f"AES-256 requires a {KEY_LENGTH}-byte key, got {len(key)}")
        self.key = key

    # ------------------------------------------------------------------
    # Encryption
    # ------------------------------------------------------------------

    def lock(self, data: Union[bytes, str]) -> Locked:
        """Encrypt ``data`` (non-empty bytes, or non-empty text as UTF-8)."""
        if data is None:
            raise InvalidInputError("data can't be None")
        if isinstance(data, str):
            payload = encode(data)
        elif isinstance(data, (bytes, bytearray, memoryview)):
            if len(data) == 0:
                raise InvalidInputError("data can't be empty")
            payload = bytes(data)
        else:
            raise InvalidInputError(f"unsupported data type {type(data).__name__}")

        nonce = Nonce()
        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(payload) + padder.finalize()

        with self.key.material() as raw:
            encryptor = Cipher(algorithms.AES(raw), modes.CBC(nonce.bytes)).encryptor()
            ciphertext = encryptor.update(padded) + encryptor.finalize()

        return Locked(ciphertext, nonce)

    # ------------------------------------------------------------------
    # Decryption
    # ------------------------------------------------------------------

    def unlock_bytes(self, locked: Locked) -> bytes:
        """
        Decrypt ``locked`` with this locker's key.

        Raises DecryptionFailedError for a nonce of the wrong length, a wrong
        key, or a ciphertext whose length or padding is invalid. The cases
        are indistinguishable on purpose.
        """
        if locked is None:
            raise InvalidInputError("locked can't be None")
        if not isinstance(locked, Locked):
            raise InvalidInputError(f"locked must be a Locked, got {type(locked).__name__}")

        with self.key.material() as raw:
            try:
                decryptor = Cipher(algorithms.AES(raw), modes.CBC(locked.nonce.bytes)).decryptor()
                padded = decryptor.update(locked.ciphertext) + decryptor.finalize()
                unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
                return unpadder.update(padded) + unpadder.finalize()
            except ValueError:
                logger.debug("unlock failed for %r", locked)
                raise DecryptionFailedError(DECRYPTION_FAILED) from None

    def unlock_string(self, locked: Locked) -> str:
        """Decrypt ``locked`` and decode the plaintext as UTF-8."""
        data = self.unlock_bytes(locked)
        if not data:
            return ""
        try:
            return decode(data)
        except UnicodeDecodeError:
            logger.debug("unlocked payload of %r is not text", locked)
            raise DecryptionFailedError(DECRYPTION_FAILED) from None

    def clear(self) -> None:
        self.key.clear()

    def __enter__(self) -> "SecretLocker":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()
