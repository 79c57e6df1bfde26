"""Security tests: AES-256-GCM round trip, tampering, wrong key, key loading."""

import base64

import pytest

from security.crypto import NONCE_SIZE, TAG_SIZE, CryptoService, EncryptedPayload
from security.exceptions import CryptoError


@pytest.fixture
def crypto():
    return CryptoService.from_base64_key(CryptoService.generate_key())


def test_round_trip(crypto):
    encrypted = crypto.encrypt_to_base64("1101700207366")
    assert encrypted != "1101700207366"
    assert crypto.decrypt_from_base64(encrypted) == "1101700207366"


def test_round_trip_thai_text(crypto):
    assert crypto.decrypt(crypto.encrypt("นาย สมชาย ใจดี")) == "นาย สมชาย ใจดี"


def test_payload_layout(crypto):
    raw = base64.b64decode(crypto.encrypt_to_base64("abc"))
    assert len(raw) == NONCE_SIZE + 3 + TAG_SIZE


def test_nonce_is_random(crypto):
    assert crypto.encrypt_to_base64("same") != crypto.encrypt_to_base64("same")


def test_tampered_ciphertext_fails(crypto):
    payload = crypto.encrypt("secret")
    flipped = bytes([payload.ciphertext[0] ^ 0x01]) + payload.ciphertext[1:]

    with pytest.raises(CryptoError):
        crypto.decrypt(EncryptedPayload(payload.nonce, flipped, payload.tag))


def test_wrong_key_fails(crypto):
    encrypted = crypto.encrypt_to_base64("secret")
    other = CryptoService.from_base64_key(CryptoService.generate_key())

    with pytest.raises(CryptoError) as exc_info:
        other.decrypt_from_base64(encrypted)
    assert "decryption failed" in exc_info.value.message.lower()


def test_truncated_ciphertext_fails(crypto):
    with pytest.raises(CryptoError):
        crypto.decrypt_from_base64(base64.b64encode(b"short").decode())


def test_invalid_base64_ciphertext_fails(crypto):
    with pytest.raises(CryptoError):
        crypto.decrypt_from_base64("not base64!")


@pytest.mark.parametrize("key", ["", "   ", "not base64!", base64.b64encode(b"x" * 16).decode()])
def test_bad_keys_rejected(key):
    with pytest.raises(CryptoError):
        CryptoService.from_base64_key(key)


def test_key_from_environment():
    key = CryptoService.generate_key()
    crypto = CryptoService.from_env({"ENCRYPTION_KEY": key})
    assert crypto.decrypt_from_base64(CryptoService.from_base64_key(key).encrypt_to_base64("x")) == "x"


def test_missing_environment_key():
    with pytest.raises(CryptoError, match="ENCRYPTION_KEY"):
        CryptoService.from_env({})
