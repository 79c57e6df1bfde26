"""API key authentication for WebSocket handshakes."""

import hmac
from typing import Iterable, Optional, Tuple

KEY_HINT_LENGTH = 4


def key_hint(api_key: str) -> str:
    """First characters of a key, safe for logs"""
    return api_key[:KEY_HINT_LENGTH]


class ApiKeyAuthenticator:
    """Checks a request header against the configured keys in constant time"""

    def __init__(self, api_keys: Iterable[str], header_name: str = "X-API-Key"):
        self.api_keys = tuple(k for k in api_keys if k)
        self.header_name = header_name

    def authenticate(self, provided: Optional[str]) -> Tuple[bool, str]:
        """
        Returns (ok, detail): the key hint on success, the failure reason
        otherwise.
        """
        if not provided:
            return False, "Missing API key"
        matched = False
        # Compare against every key so timing does not reveal which one matched
        for key in self.api_keys:
            if hmac.compare_digest(provided.encode("utf-8"), key.encode("utf-8")):
                matched = True
        if not matched:
            return False, "Invalid API key"
        return True, key_hint(provided)

    def authenticate_headers(self, headers) -> Tuple[bool, str]:
        return self.authenticate(headers.get(self.header_name))
