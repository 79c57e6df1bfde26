"""
AES-256-GCM field encryption (pycryptodome).

Ciphertext travels as base64(nonce || ciphertext || tag) with a 12 byte
random nonce and a 16 byte tag. The key is a base64 encoded 32 byte value
from config or the ENCRYPTION_KEY environment variable.
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass

from Crypto.Cipher import AES
from Crypto.Random import get_random_bytes

from .exceptions import CryptoError

logger = logging.getLogger(__name__)

KEY_SIZE = 32
NONCE_SIZE = 12
TAG_SIZE = 16
ENCRYPTION_KEY_ENV = "ENCRYPTION_KEY"


@dataclass(frozen=True)
class EncryptedPayload:
    nonce: bytes
    ciphertext: bytes
    tag: bytes

    def to_bytes(self) -> bytes:
        return self.nonce + self.ciphertext + self.tag

    def to_base64(self) -> str:
        return base64.b64encode(self.to_bytes()).decode("ascii")

    @classmethod
    def from_bytes(cls, data: bytes) -> "EncryptedPayload":
        if len(data) < NONCE_SIZE + TAG_SIZE:
            raise CryptoError(f"Encrypted data too short: {len(data)} bytes")
        return cls(data[:NONCE_SIZE], data[NONCE_SIZE:-TAG_SIZE], data[-TAG_SIZE:])

    @classmethod
    def from_base64(cls, encoded: str) -> "EncryptedPayload":
        try:
            data = base64.b64decode(encoded, validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError(f"Invalid base64 ciphertext: {e}") from e
        return cls.from_bytes(data)


class CryptoService:
    """Encrypts and decrypts UTF-8 strings with one AES-256 key"""

    def __init__(self, key: bytes):
        if len(key) != KEY_SIZE:
            raise CryptoError(f"Encryption key must be {KEY_SIZE} bytes (got {len(key)})")
        self._key = bytes(key)

    @classmethod
    def from_base64_key(cls, key_b64: str) -> "CryptoService":
        if not key_b64 or not key_b64.strip():
            raise CryptoError(
                f"Encryption key is required. Set encryption_key in config or {ENCRYPTION_KEY_ENV} in environment."
            )
        try:
            key = base64.b64decode(key_b64.strip(), validate=True)
        except (binascii.Error, ValueError) as e:
            raise CryptoError(f"Encryption key is not valid base64: {e}") from e
        return cls(key)

    @classmethod
    def from_env(cls, environ=None) -> "CryptoService":
        environ = os.environ if environ is None else environ
        return cls.from_base64_key(environ.get(ENCRYPTION_KEY_ENV, ""))

    @staticmethod
    def generate_key() -> str:
        """New random key, base64 encoded for config/env use"""
        return base64.b64encode(get_random_bytes(KEY_SIZE)).decode("ascii")

    def encrypt(self, plaintext: str) -> EncryptedPayload:
        try:
            nonce = get_random_bytes(NONCE_SIZE)
            cipher = AES.new(self._key, AES.MODE_GCM, nonce=nonce)
            ciphertext, tag = cipher.encrypt_and_digest(plaintext.encode("utf-8"))
        except (ValueError, TypeError) as e:
            raise CryptoError(f"Encryption failed: {e}") from e
        return EncryptedPayload(nonce, ciphertext, tag)

    def decrypt(self, payload: EncryptedPayload) -> str:
        """Raises CryptoError if the ciphertext was tampered with or the key is wrong"""
        cipher = AES.new(self._key, AES.MODE_GCM, nonce=payload.nonce)
        try:
            plaintext = cipher.decrypt_and_verify(payload.ciphertext, payload.tag)
        except ValueError as e:
            raise CryptoError("Decryption failed: invalid key or corrupted data") from e
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as e:
            raise CryptoError(f"Decrypted data is not valid UTF-8: {e}") from e

    def encrypt_to_base64(self, plaintext: str) -> str:
        return self.encrypt(plaintext).to_base64()

    def decrypt_from_base64(self, encoded: str) -> str:
        return self.decrypt(EncryptedPayload.from_base64(encoded))
