"""Security primitives for Lockbox.

This package composes vetted primitives from ``cryptography`` and
``argon2-cffi`` into a small, reviewable toolkit:
- SHA-512 digests and HMAC-SHA-512 tags (HashBox, Digest)
- AES-256-CBC locking of bytes and strings (SecretLocker, Locked)
- PBKDF2 password hashes with a self-describing format (Password, SecuredPassword)
- Key and Nonce value types with scoped zeroing of key material
- Optional export of keys through OS protected storage (keyring, DPAPI)
"""

from .codec import encode, decode, key_encode, key_decode, constant_time_equals
from .randomness import random_bytes
from .keys import Key, Nonce, KEY_LENGTH, NONCE_LENGTH
from .keystore import (
    ProtectedStorage,
    KeyringStorage,
    DPAPIStorage,
    UnavailableStorage,
    assess_keyring_backend,
    default_storage,
)
from .hashbox import HashBox, Digest, DigestKind
from .locker import SecretLocker, Locked
from .kdf import Pbkdf2Hasher, derive_key_bytes, generate_salt, iterations_of
from .password import Password, SecuredPassword

__all__ = [
    "encode",
    "decode",
    "key_encode",
    "key_decode",
    "constant_time_equals",
    "random_bytes",
    "Key",
    "Nonce",
    "KEY_LENGTH",
    "NONCE_LENGTH",
    "ProtectedStorage",
    "KeyringStorage",
    "DPAPIStorage",
    "UnavailableStorage",
    "assess_keyring_backend",
    "default_storage",
    "HashBox",
    "Digest",
    "DigestKind",
    "SecretLocker",
    "Locked",
    "Pbkdf2Hasher",
    "derive_key_bytes",
    "generate_salt",
    "iterations_of",
    "Password",
    "SecuredPassword",
]
