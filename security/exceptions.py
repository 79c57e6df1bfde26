"""Security-layer exceptions."""


class SecurityError(Exception):
    """Base for all security-layer errors"""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class CryptoError(SecurityError):
    """Key missing or malformed, encryption failed, or ciphertext failed authentication"""
