"""Integration tests: values persisted as text survive a round trip through fresh objects."""

import pytest

from lockbox.core.exceptions import DecryptionFailedError
from lockbox.security import (
    Digest,
    HashBox,
    Key,
    Locked,
    Password,
    SecretLocker,
    SecuredPassword,
    key_decode,
    key_encode,
)


@pytest.fixture(autouse=True)
def fast_settings(monkeypatch):
    monkeypatch.setenv("LOCKBOX_PBKDF2_ITERATIONS", "1000")
    monkeypatch.delenv("LOCKBOX_PBKDF2_MAX_ITERATIONS", raising=False)


def test_encrypt_then_mac_with_persisted_values():
    """Lock a record, tag the combined blob, persist everything as text, then reload."""
    enc_key, mac_key = Key(), Key()
    row = {
        "enc_key": key_encode(enc_key.export_bytes()),
        "mac_key": key_encode(mac_key.export_bytes()),
    }

    locked = SecretLocker(enc_key).lock("account number 12345")
    row["blob"] = locked.to_text()
    row["tag"] = HashBox(mac_key).compute(locked.combined).hash

    # a later process only has the row
    enc_key2 = Key(key_decode(row["enc_key"]))
    mac_key2 = Key(key_decode(row["mac_key"]))
    reloaded = Locked.from_text(row["blob"])

    assert Digest.from_text(row["tag"]).verify_with_key(reloaded.combined, mac_key2) is True
    assert SecretLocker(enc_key2).unlock_string(reloaded) == "account number 12345"


def test_tampered_blob_is_caught_by_the_tag():
    enc_key, mac_key = Key(), Key()
    locked = SecretLocker(enc_key).lock(b"\x00" * 40)
    tag = HashBox(mac_key).compute(locked.combined)

    tampered = bytearray(locked.combined)
    tampered[-30] ^= 0x01  # middle block; the final block keeps its padding

    assert tag.verify_with_key(bytes(tampered), mac_key) is False
    # the locker alone still decrypts, to damaged plaintext
    assert SecretLocker(enc_key).unlock_bytes(Locked.from_combined(bytes(tampered))) != b"\x00" * 40


def test_password_workflow():
    stored = Password("s3cret passphrase").storable().hash

    secured = SecuredPassword(stored)
    assert secured.verify("s3cret passphrase") is True
    assert secured.verify("S3cret passphrase") is False

    # bump the work factor and migrate on next login
    assert secured.needs_rehash(2000) is True
    upgraded = Password("s3cret passphrase", iterations=2000).storable()
    assert upgraded.iterations == 2000
    assert upgraded.verify(Password("s3cret passphrase")) is True


def test_password_derived_key_unlocks_only_with_same_password():
    salt = b"per-user-salt-01"
    argon2 = {"time_cost": 1, "memory_cost": 8, "parallelism": 1}

    locked = SecretLocker(Password("pass one").derive_key(salt, **argon2)).lock("notes")

    assert SecretLocker(Password("pass one").derive_key(salt, **argon2)).unlock_string(locked) == "notes"
    with pytest.raises(DecryptionFailedError):
        SecretLocker(Password("pass two").derive_key(salt, **argon2)).unlock_string(locked)
