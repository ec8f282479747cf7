"""
Exceptions for Lockbox
Every error raised by the library derives from LockboxError so callers can
catch the whole family in one place.
"""


class LockboxError(Exception):
    # general container for errors
    pass


class InvalidInputError(LockboxError, ValueError):
    # raised on None, empty or wrongly sized arguments
    pass


class EmptyPayloadError(InvalidInputError):
    # raised when a byte payload is present but has zero length
    pass


class NotSupportedError(LockboxError):
    # raised when an operation is undefined for the current mode
    # (verifying a keyed tag without a key)
    pass


class PlatformUnsupportedError(LockboxError):
    # raised when no protected storage service exists on this platform
    pass


class DecryptionFailedError(LockboxError):
    # raised for any failure while decrypting: wrong key, bad nonce length,
    # tampered ciphertext or padding. Deliberately carries no detail.
    pass
