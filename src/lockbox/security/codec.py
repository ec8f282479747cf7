"""Text and key encoding helpers shared by every Lockbox component.

- ``encode`` / ``decode``: UTF-8 for human readable strings
- ``key_encode`` / ``key_decode``: standard Base64 for every byte value that
  is shown as text (digests, stored password hashes, locked blobs)
- ``constant_time_equals``: comparison that does not leak the position of
  the first mismatching byte
"""

import base64
import binascii
import hmac
from typing import Optional

from lockbox.core.exceptions import InvalidInputError

TEXT_ENCODING = "utf-8"


def encode(text: str) -> bytes:
    """Encode human text to bytes using UTF-8."""
    if text is None or text == "":
        raise InvalidInputError("text can't be None or empty")
    if not isinstance(text, str):
        raise InvalidInputError(f"text must be str, got {type(text).__name__}")
    try:
        return text.encode(TEXT_ENCODING)
    except UnicodeEncodeError:
        raise InvalidInputError("text is not encodable as UTF-8") from None


def decode(data: bytes) -> str:
    """Decode UTF-8 bytes back to text. Invalid sequences raise UnicodeDecodeError."""
    if data is None or len(data) == 0:
        raise InvalidInputError("data can't be None or empty")
    return bytes(data).decode(TEXT_ENCODING, errors="strict")


def key_encode(data: bytes) -> str:
    """Return the Base64 text form of ``data``."""
    if data is None or len(data) == 0:
        raise InvalidInputError("data can't be None or empty")
    return base64.b64encode(bytes(data)).decode("ascii")


def key_decode(text: str) -> bytes:
    """Inverse of :func:`key_encode`; rejects anything outside the Base64 alphabet."""
    if text is None or text == "":
        raise InvalidInputError("text can't be None or empty")
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInputError("text is not valid Base64") from None


def constant_time_equals(a: Optional[bytes], b: Optional[bytes]) -> bool:
    # None on either side is a mismatch, never an error
    if a is None or b is None:
        return False
    return hmac.compare_digest(bytes(a), bytes(b))
