"""API key authentication."""

from websockets.datastructures import Headers

from security.auth import ApiKeyAuthenticator, key_hint


def test_valid_key():
    auth = ApiKeyAuthenticator(["secret-key-1", "secret-key-2"])
    assert auth.authenticate("secret-key-2") == (True, "secr")


def test_invalid_key():
    auth = ApiKeyAuthenticator(["secret-key-1"])
    assert auth.authenticate("secret-key-x") == (False, "Invalid API key")


def test_missing_key():
    auth = ApiKeyAuthenticator(["secret-key-1"])
    assert auth.authenticate(None) == (False, "Missing API key")
    assert auth.authenticate("") == (False, "Missing API key")


def test_no_configured_keys_rejects_everything():
    assert ApiKeyAuthenticator([""]).authenticate("anything")[0] is False


def test_header_lookup_is_case_insensitive():
    auth = ApiKeyAuthenticator(["k1"], header_name="X-API-Key")
    assert auth.authenticate_headers(Headers({"x-api-key": "k1"}))[0] is True


def test_custom_header_name():
    auth = ApiKeyAuthenticator(["k1"], header_name="Authorization-Token")
    assert auth.authenticate_headers(Headers({"X-API-Key": "k1"}))[0] is False
    assert auth.authenticate_headers(Headers({"Authorization-Token": "k1"}))[0] is True


def test_key_hint():
    assert key_hint("abcdefgh") == "abcd"
