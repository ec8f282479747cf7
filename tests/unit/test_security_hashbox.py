"""Unit tests for HashBox and Digest."""

import hashlib
import hmac
import io

import pytest

from lockbox.core.exceptions import EmptyPayloadError, InvalidInputError, NotSupportedError
from lockbox.security.hashbox import DIGEST_LENGTH, Digest, DigestKind, HashBox
from lockbox.security.keys import Key

TEST_STRING = "eine kuh macht muh, viele kühe machen mühe"
TEST_STRING_CHANGED = "eine kuh macht muh, viele kühe machen muehe"

TEST_KEY = bytes([
    37, 79, 157, 172, 121, 14, 250, 209, 12, 38, 43, 26, 195, 179, 53, 32,
    180, 219, 46, 240, 174, 90, 255, 47, 148, 161, 35, 184, 157, 241, 106, 146,
])
# HMAC-SHA-512(TEST_KEY, TEST_STRING)
TEST_HASHED_KEY = bytes([
    160, 197, 227, 127, 69, 123, 235, 37, 132, 37, 141, 157, 136, 240, 126, 133,
    144, 64, 32, 166, 5, 2, 242, 112, 12, 211, 81, 74, 17, 48, 99, 62,
    178, 202, 130, 94, 37, 79, 76, 0, 4, 155, 149, 113, 44, 151, 162, 71,
    3, 201, 57, 76, 228, 62, 42, 255, 215, 25, 184, 190, 141, 166, 40, 95,
])


@pytest.fixture
def key():
    return Key(TEST_KEY)


# ==============================================================================
# Tests: unkeyed digests
# ==============================================================================

def test_verify_string():
    digest = HashBox().compute(TEST_STRING)
    assert digest.kind is DigestKind.UNKEYED
    assert digest.verify(TEST_STRING) is True


def test_verify_string_changed():
    digest = HashBox().compute(TEST_STRING)
    assert digest.verify(TEST_STRING_CHANGED) is False


def test_unkeyed_digest_matches_sha512():
    digest = HashBox().compute(TEST_STRING)
    assert len(digest.value) == DIGEST_LENGTH
    assert digest.value == hashlib.sha512(TEST_STRING.encode("utf-8")).digest()


def test_verify_bytes():
    data = TEST_STRING.encode("utf-8")
    digest = HashBox().compute(data)
    assert digest.verify(data) is True
    assert digest.verify(TEST_STRING_CHANGED.encode("utf-8")) is False


def test_text_and_bytes_agree():
    assert HashBox().compute(TEST_STRING) == HashBox().compute(TEST_STRING.encode("utf-8"))


def test_stream_matches_bytes():
    data = b"itreallydoesntmatterwhatgoeshere123" * 10_000  # spans several chunks
    digest = HashBox().compute(io.BytesIO(data))
    assert digest.value == hashlib.sha512(data).digest()
    assert digest.verify(data) is True


def test_stream_of_file(tmp_path):
    path = tmp_path / "sample.bin"
    path.write_bytes(b"lockbox test data")
    with open(path, "rb") as f:
        digest = HashBox().compute(f)
    assert digest.verify(b"lockbox test data") is True


def test_text_mode_stream_is_rejected(tmp_path):
    with pytest.raises(InvalidInputError, match="binary mode"):
        HashBox().compute(io.StringIO(TEST_STRING))

    path = tmp_path / "sample.txt"
    path.write_text(TEST_STRING, encoding="utf-8")
    with open(path, "r", encoding="utf-8") as f:
        with pytest.raises(InvalidInputError):
            HashBox(Key()).compute(f)


# ==============================================================================
# Tests: keyed tags
# ==============================================================================

def test_keyed_string_matches_known_tag(key):
    tag = HashBox(key).compute(TEST_STRING)
    assert tag.kind is DigestKind.KEYED
    assert tag.verify(Digest(TEST_HASHED_KEY, DigestKind.KEYED)) is True


def test_keyed_string_changed_does_not_match_known_tag(key):
    tag = HashBox(key).compute(TEST_STRING_CHANGED)
    assert tag.verify(Digest(TEST_HASHED_KEY, DigestKind.KEYED)) is False


def test_keyed_bytes_match_known_tag(key):
    tag = HashBox(key).compute(TEST_STRING.encode("utf-8"))
    assert tag.value == TEST_HASHED_KEY
    assert tag.value == hmac.new(TEST_KEY, TEST_STRING.encode("utf-8"), hashlib.sha512).digest()


def test_keyed_stream_uses_hmac(key):
    tag = HashBox(key).compute(io.BytesIO(TEST_STRING.encode("utf-8")))
    assert tag.kind is DigestKind.KEYED
    assert tag.value == TEST_HASHED_KEY


def test_keyed_tag_verifies_only_with_right_key(key):
    tag = HashBox(key).compute(TEST_STRING)
    assert tag.verify(TEST_STRING, key=key) is True
    assert tag.verify_with_key(TEST_STRING.encode("utf-8"), key) is True
    assert tag.verify(TEST_STRING, key=Key()) is False
    assert tag.verify(TEST_STRING_CHANGED, key=key) is False


@pytest.mark.parametrize("candidate", [TEST_STRING, TEST_STRING.encode("utf-8")])
def test_keyed_tag_refuses_verification_without_key(key, candidate):
    tag = HashBox(key).compute(TEST_STRING)
    with pytest.raises(NotSupportedError):
        tag.verify(candidate)


def test_parsed_keyed_tag_refuses_verification_without_key():
    tag = Digest(TEST_HASHED_KEY, DigestKind.KEYED)
    with pytest.raises(NotSupportedError):
        tag.verify(TEST_STRING)
    assert tag.verify(TEST_STRING, key=Key(TEST_KEY)) is True


def test_generate_key_creates_keyed_box():
    box = HashBox(generate_key=True)
    assert box.key is not None and len(box.key) == 32
    assert box.compute(TEST_STRING).keyed


def test_clear_zeroes_box_key(key):
    with HashBox(key) as box:
        box.compute(TEST_STRING)
    assert key.cleared
    with pytest.raises(InvalidInputError):
        box.compute(TEST_STRING)


# ==============================================================================
# Tests: Digest parsing and comparison
# ==============================================================================

def test_digest_text_round_trip():
    digest = HashBox().compute(TEST_STRING)
    parsed = Digest.from_text(digest.hash)
    assert parsed == digest
    assert parsed.verify(TEST_STRING) is True


def test_digest_comparison_ignores_kind():
    unkeyed = Digest(TEST_HASHED_KEY, DigestKind.UNKEYED)
    keyed = Digest(TEST_HASHED_KEY, DigestKind.KEYED)
    assert unkeyed.verify(keyed) is True
    assert keyed.verify(unkeyed) is True


# ==============================================================================
# Tests: invalid parameters
# ==============================================================================

def test_compute_null_parameters():
    box = HashBox()
    with pytest.raises(InvalidInputError):
        box.compute(None)
    with pytest.raises(InvalidInputError):
        box.compute("")
    with pytest.raises(EmptyPayloadError):
        box.compute(b"")
    with pytest.raises(InvalidInputError):
        box.compute(12345)


def test_keyed_constructor_rejects_none():
    with pytest.raises(InvalidInputError):
        HashBox.keyed(None)
    with pytest.raises(InvalidInputError):
        HashBox(key=b"raw bytes are not a Key")
    with pytest.raises(InvalidInputError):
        HashBox(Key(), generate_key=True)


def test_digest_null_parameters():
    digest = Digest.from_text("abcd")

    for bad in (None, ""):
        with pytest.raises(InvalidInputError):
            Digest.from_text(bad)
        with pytest.raises(InvalidInputError):
            digest.verify(bad)

    with pytest.raises(InvalidInputError):
        Digest(None)
    with pytest.raises(EmptyPayloadError):
        Digest(b"")
    with pytest.raises(EmptyPayloadError):
        digest.verify(b"")


def test_verify_with_key_rejects_none_key():
    digest = HashBox().compute(TEST_STRING)
    with pytest.raises(InvalidInputError):
        digest.verify_with_key(TEST_STRING, None)
    with pytest.raises(InvalidInputError):
        digest.verify_with_key(TEST_STRING.encode("utf-8"), None)
