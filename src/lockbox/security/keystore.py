"""Protected storage for key material.

Lockbox never encrypts exported keys itself. It hands them to a platform
service through a two-operation interface:

- ``protect(data) -> blob``: store/encrypt ``data``, return an opaque blob
- ``unprotect(blob) -> data``: inverse of ``protect``

Three adapters are provided:

- :class:`KeyringStorage` wraps the ``keyring`` package (macOS Keychain,
  Secret Service, KWallet, Windows Credential Locker). The blob names the
  keyring entry; the key itself lives in the backend.
- :class:`DPAPIStorage` wraps Windows DPAPI (``CryptProtectData``); the blob
  is the DPAPI ciphertext.
- :class:`UnavailableStorage` fails with ``PlatformUnsupportedError``.

:func:`default_storage` picks one for the current platform. Do not assume
keyring provides hardware-backed security on all platforms.
"""
from __future__ import annotations

import logging
import sys
import uuid
from typing import Optional, Protocol, runtime_checkable

import keyring
import keyring.errors

from lockbox.core.config import load_settings
from lockbox.core.exceptions import InvalidInputError, PlatformUnsupportedError
from .codec import key_decode, key_encode

logger = logging.getLogger(__name__)

ACCOUNT_PREFIX = "key-"


@runtime_checkable
class ProtectedStorage(Protocol):
    def protect(self, data: bytes) -> bytes:
        ...

    def unprotect(self, blob: bytes) -> bytes:
        ...


def _require_data(data, name: str) -> bytes:
    if data is None:
        raise InvalidInputError(f"{name} can't be None")
    if not isinstance(data, (bytes, bytearray, memoryview)):
        raise InvalidInputError(f"{name} must be bytes")
    if len(data) == 0:
        raise InvalidInputError(f"{name} can't be empty")
    return bytes(data)


class UnavailableStorage:
    """Storage placeholder for platforms without a protected storage service."""

    def __init__(self, reason: str = "no protected storage service on this platform"):
        self.reason = reason

    def protect(self, data: bytes) -> bytes:
        raise PlatformUnsupportedError(self.reason)

    def unprotect(self, blob: bytes) -> bytes:
        raise PlatformUnsupportedError(self.reason)


class KeyringStorage:
    """Keep key material in the OS keyring under (service, account).

    Every ``protect`` call creates a fresh account ``key-<uuid4 hex>``. The
    key is Base64 encoded before storage to keep it string friendly.

    The blob is ``<account>:<service>`` (UTF-8), so it resolves to the same
    entry even if the configured service changes later. Blobs holding only
    the account are looked up under this storage's service.

    Entries are never removed implicitly: each ``protect`` call leaves one
    behind until :meth:`discard` is called with its blob.
    """

    def __init__(self, service: Optional[str] = None):
        self.service = service or load_settings().keyring_service

    def _locate(self, blob: bytes) -> tuple[str, str]:
        raw = _require_data(blob, "blob")
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidInputError("blob is not a keyring reference") from None
        account, sep, service = text.partition(":")
        if not account.startswith(ACCOUNT_PREFIX) or len(account) == len(ACCOUNT_PREFIX):
            raise InvalidInputError("blob is not a keyring reference")
        if sep and not service:
            raise InvalidInputError("blob names an empty keyring service")
        return (service if sep else self.service), account

    def protect(self, data: bytes) -> bytes:
        secret = key_encode(_require_data(data, "data"))
        account = f"{ACCOUNT_PREFIX}{uuid.uuid4().hex}"
        try:
            keyring.set_password(self.service, account, secret)
        except keyring.errors.NoKeyringError as e:
            raise PlatformUnsupportedError(f"no keyring backend available: {e}") from e
        logger.debug("stored key material in keyring service %r", self.service)
        return f"{account}:{self.service}".encode("utf-8")

    def unprotect(self, blob: bytes) -> bytes:
        service, account = self._locate(blob)
        try:
            secret = keyring.get_password(service, account)
        except keyring.errors.NoKeyringError as e:
            raise PlatformUnsupportedError(f"no keyring backend available: {e}") from e
        if secret is None:
            raise InvalidInputError(f"no keyring entry for {account!r} in service {service!r}")
        return key_decode(secret)

    def discard(self, blob: bytes) -> None:
        """Remove the keyring entry behind ``blob``; a missing entry is not an error."""
        service, account = self._locate(blob)
        try:
            keyring.delete_password(service, account)
        except keyring.errors.PasswordDeleteError:
            logger.debug("keyring entry %r already absent", account)


class DPAPIStorage:
    """Windows DPAPI wrapper using CryptProtectData / CryptUnprotectData.

    On non-Windows platforms instantiation raises PlatformUnsupportedError.
    """

    CRYPTPROTECT_LOCAL_MACHINE = 0x4

    def __init__(self, scope: str = "current_user") -> None:
        if sys.platform != "win32":
            raise PlatformUnsupportedError("DPAPI is only available on Windows")
        if scope not in ("current_user", "local_machine"):
            raise InvalidInputError(f"unknown DPAPI scope {scope!r}")

        import ctypes
        import ctypes.wintypes as wintypes

        self._ctypes = ctypes
        self.flags = self.CRYPTPROTECT_LOCAL_MACHINE if scope == "local_machine" else 0
        self._crypt32 = ctypes.WinDLL("Crypt32.dll")
        self._kernel32 = ctypes.WinDLL("Kernel32.dll")

        class DATA_BLOB(ctypes.Structure):
            _fields_ = [("cbData", wintypes.DWORD), ("pbData", ctypes.POINTER(ctypes.c_ubyte))]

        self.DATA_BLOB = DATA_BLOB
        blob_ptr = ctypes.POINTER(DATA_BLOB)

        self._CryptProtectData = self._crypt32.CryptProtectData
        self._CryptProtectData.argtypes = [
            blob_ptr, wintypes.LPCWSTR, blob_ptr, wintypes.LPVOID, wintypes.LPVOID, wintypes.DWORD, blob_ptr,
        ]
        self._CryptProtectData.restype = wintypes.BOOL

        self._CryptUnprotectData = self._crypt32.CryptUnprotectData
        self._CryptUnprotectData.argtypes = [
            blob_ptr, ctypes.POINTER(wintypes.LPWSTR), blob_ptr, wintypes.LPVOID, wintypes.LPVOID, wintypes.DWORD, blob_ptr,
        ]
        self._CryptUnprotectData.restype = wintypes.BOOL

        self._LocalFree = self._kernel32.LocalFree
        self._LocalFree.argtypes = [wintypes.HLOCAL]
        self._LocalFree.restype = wintypes.HLOCAL

    def _to_blob(self, data: bytes):
        ctypes = self._ctypes
        buf = (ctypes.c_ubyte * len(data))(*data)
        return self.DATA_BLOB(len(data), ctypes.cast(buf, ctypes.POINTER(ctypes.c_ubyte)))

    def _take(self, out_blob) -> bytes:
        try:
            return self._ctypes.string_at(out_blob.pbData, out_blob.cbData)
        finally:
            if out_blob.pbData:
                self._LocalFree(out_blob.pbData)

    def protect(self, data: bytes) -> bytes:
        in_blob = self._to_blob(_require_data(data, "data"))
        out_blob = self.DATA_BLOB()
        ctypes = self._ctypes
        if not self._CryptProtectData(ctypes.byref(in_blob), None, None, None, None, self.flags, ctypes.byref(out_blob)):
            raise OSError("CryptProtectData failed")
        return self._take(out_blob)

    def unprotect(self, blob: bytes) -> bytes:
        in_blob = self._to_blob(_require_data(blob, "blob"))
        out_blob = self.DATA_BLOB()
        ctypes = self._ctypes
        if not self._CryptUnprotectData(ctypes.byref(in_blob), None, None, None, None, self.flags, ctypes.byref(out_blob)):
            raise OSError("CryptUnprotectData failed")
        return self._take(out_blob)


def assess_keyring_backend() -> tuple[bool, str]:
    """Return (is_secure, message) describing the current keyring backend.

    Heuristics are used because the ``keyring`` package exposes different
    backends across platforms.
    """
    try:
        backend = keyring.get_keyring()
    except Exception as e:
        return False, f"failed to get keyring backend: {e}"

    name = backend.__class__.__name__
    priority = getattr(backend, "priority", None)

    insecure_indicators = ("Plaintext", "Uncrypted", "Simple", "File", "Fail", "Null")
    if any(tok in name for tok in insecure_indicators):
        return False, f"insecure backend detected: {name}"

    if priority is not None and priority <= 0:
        return False, f"no suitable secure keyring backend available (priority={priority}, backend={name})"

    # treat known platform backends as acceptable
    if "Win" in name or "Keychain" in name or "SecretService" in name or "KWallet" in name:
        return True, f"backend looks acceptable: {name} (priority={priority})"

    return True, f"unknown backend '{name}', treat with caution (priority={priority})"


def default_storage() -> ProtectedStorage:
    """Pick the protected storage adapter for the running platform."""
    if sys.platform == "win32":
        return DPAPIStorage()

    secure, msg = assess_keyring_backend()
    if secure:
        logger.debug("using keyring protected storage: %s", msg)
        return KeyringStorage()

    logger.debug("protected storage unavailable: %s", msg)
    return UnavailableStorage(f"protected storage is not available on this platform: {msg}")
