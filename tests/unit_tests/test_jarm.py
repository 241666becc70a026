"""
Tests for the JARM Response Verifier
"""

import base64
import hashlib
import hmac
import json
from unittest.mock import patch

import httpx
import pytest
from authlib.jose import KeySet

from oauth2c.errors import CombinedParseError, DecodeError, KeyPolicyError, VerificationError
from oauth2c.jarm import parse_jarm
from oauth2c.request import Claims, Provenance, Request

JARM_CLAIMS = {
    "iss": "https://idp.example.com",
    "aud": "test-client",
    "exp": 4102444800,
    "code": "abc123",
    "state": "xyz",
}


def form_request(response):
    return Request(method="POST", form={"response": response})


def query_request(response):
    return Request(method="GET", url=httpx.URL("http://localhost:9876/callback", params={"response": response}))


def b64(data):
    return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


class TestSignedResponse:
    """Test suite for signed-only JARM responses."""

    def test_valid_signature(self, sign, provider_key):
        """Test a signed response verifies and populates the claims."""
        request = form_request(sign(JARM_CLAIMS, provider_key))

        claims = parse_jarm(request, signing_key=provider_key)

        assert claims == JARM_CLAIMS
        assert request.jarm == JARM_CLAIMS
        assert isinstance(request.jarm, Claims)

    def test_query_response(self, sign, provider_key):
        """Test the response may arrive in the query string."""
        request = query_request(sign(JARM_CLAIMS, provider_key))

        assert parse_jarm(request, signing_key=provider_key)["code"] == "abc123"

    def test_wrong_key(self, sign, provider_key, other_key):
        """Test a signature from another key is rejected."""
        request = form_request(sign(JARM_CLAIMS, other_key))

        with pytest.raises(VerificationError):
            parse_jarm(request, signing_key=provider_key)

        assert request.jarm == {}

    def test_missing_signing_key(self, sign, provider_key):
        """Test verification never silently passes without a key."""
        request = form_request(sign(JARM_CLAIMS, provider_key))

        with pytest.raises(KeyPolicyError, match="verification key"):
            parse_jarm(request)

        assert request.jarm == {}

    def test_unsigned_token_rejected(self, provider_key):
        """Test an alg=none token is never accepted."""
        token = f"{b64({'alg': 'none'})}.{b64(JARM_CLAIMS)}."
        request = form_request(token)

        with pytest.raises(VerificationError):
            parse_jarm(request, signing_key=provider_key)

    def test_key_set_selected_by_kid(self, sign, provider_key, other_key):
        """Test a key set resolves the verification key by kid."""
        request = form_request(sign(JARM_CLAIMS, provider_key))

        claims = parse_jarm(request, signing_key=KeySet([other_key, provider_key]))

        assert claims["state"] == "xyz"

    def test_key_set_without_matching_kid(self, sign, provider_key, other_key):
        """Test a key set without the token's kid fails closed."""
        request = form_request(sign(JARM_CLAIMS, provider_key))

        with pytest.raises((KeyPolicyError, VerificationError)):
            parse_jarm(request, signing_key=KeySet([other_key]))

    def test_jwk_set_dict(self, sign, provider_key):
        """Test a JWK set document is accepted as the verification key."""
        request = form_request(sign(JARM_CLAIMS, provider_key))

        claims = parse_jarm(request, signing_key={"keys": [provider_key.as_dict()]})

        assert claims["code"] == "abc123"

    def test_idempotent(self, sign, provider_key):
        """Test parsing the same request twice gives the same claims."""
        request = form_request(sign(JARM_CLAIMS, provider_key))

        first = parse_jarm(request, signing_key=provider_key)
        second = parse_jarm(request, signing_key=provider_key)

        assert first == second == request.jarm

    @pytest.mark.parametrize("as_key_set", [True, False])
    def test_algorithm_not_matching_key(self, provider_key, as_key_set):
        """Test an HMAC token keyed with the provider's public RSA key is rejected."""
        secret = provider_key.as_pem(is_private=False)
        signing_input = f"{b64({'alg': 'HS256', 'kid': 'provider-sig'})}.{b64(JARM_CLAIMS)}"
        mac = hmac.new(secret, signing_input.encode(), hashlib.sha256).digest()
        token = f"{signing_input}.{base64.urlsafe_b64encode(mac).rstrip(b'=').decode()}"
        request = form_request(token)
        key = KeySet([provider_key]) if as_key_set else provider_key

        with pytest.raises(VerificationError, match="does not fit"):
            parse_jarm(request, signing_key=key)

        assert request.jarm == {}


class TestNestedResponse:
    """Test suite for signed-then-encrypted JARM responses."""

    def test_valid_nested(self, sign, encrypt, provider_key, client_encryption_key):
        """Test a nested response decrypts and verifies."""
        token = encrypt(sign(JARM_CLAIMS, provider_key), client_encryption_key)
        request = form_request(token)

        claims = parse_jarm(request, signing_key=provider_key, encryption_key=client_encryption_key)

        assert claims == JARM_CLAIMS

    def test_missing_decryption_key(self, sign, encrypt, provider_key, client_encryption_key):
        """Test a nested response without a decryption key fails before any verification."""
        token = encrypt(sign(JARM_CLAIMS, provider_key), client_encryption_key)
        request = form_request(token)

        with patch("oauth2c.jarm.verify") as mock_verify:
            with pytest.raises(KeyPolicyError, match="decryption key"):
                parse_jarm(request, signing_key=provider_key)

        mock_verify.assert_not_called()
        assert request.jarm == {}

    def test_wrong_decryption_key(self, sign, encrypt, provider_key, client_encryption_key, other_key):
        """Test a nested response encrypted for another key is rejected."""
        token = encrypt(sign(JARM_CLAIMS, provider_key), client_encryption_key)
        request = form_request(token)

        with pytest.raises(VerificationError):
            parse_jarm(request, signing_key=provider_key, encryption_key=other_key)

    def test_inner_signature_checked(self, sign, encrypt, provider_key, other_key, client_encryption_key):
        """Test the inner token must be signed by the provider."""
        token = encrypt(sign(JARM_CLAIMS, other_key), client_encryption_key)
        request = form_request(token)

        with pytest.raises(VerificationError):
            parse_jarm(request, signing_key=provider_key, encryption_key=client_encryption_key)

    def test_key_wrap_algorithm_against_rsa_key(self, provider_key, client_encryption_key):
        """Test a symmetric key-wrap header is rejected for an RSA decryption key."""
        header = b64({"alg": "A128KW", "enc": "A128GCM", "kid": "client-enc"})
        filler = base64.urlsafe_b64encode(b"\x00" * 16).rstrip(b"=").decode()
        request = form_request(".".join([header, filler, filler, filler, filler]))

        with pytest.raises(VerificationError, match="does not fit"):
            parse_jarm(request, signing_key=provider_key, encryption_key=KeySet([client_encryption_key]))

        assert request.jarm == {}


class TestMalformedResponse:
    """Test suite for values that are not JWTs."""

    def test_garbage(self, provider_key):
        """Test a value that parses as neither form reports both failures."""
        request = form_request("definitely-not-a-jwt")

        with pytest.raises(CombinedParseError) as exc_info:
            parse_jarm(request, signing_key=provider_key)

        nested_error, signed_error = exc_info.value.errors
        assert isinstance(nested_error, DecodeError)
        assert isinstance(signed_error, DecodeError)
        assert "nested token" in str(exc_info.value)
        assert "signed token" in str(exc_info.value)

    def test_failed_parse_resets_claims(self, provider_key):
        """Test stale claims are cleared when parsing fails."""
        request = form_request("a.b")
        request.jarm = Claims({"code": "stale"})

        with pytest.raises(CombinedParseError):
            parse_jarm(request, signing_key=provider_key)

        assert request.jarm == {}

    def test_no_response(self, provider_key):
        """Test a request without a response value yields empty claims."""
        request = Request(method="GET", url=httpx.URL("http://localhost:9876/callback?code=abc"))

        assert parse_jarm(request, signing_key=provider_key) == {}
        assert request.jarm == {}


class TestVerifiedLookup:
    """Test suite for lookups after JARM verification."""

    def test_verified_claims_take_precedence(self, sign, provider_key):
        """Test verified claims shadow unverified query values."""
        request = Request(
            method="GET",
            url=httpx.URL(
                "http://localhost:9876/callback",
                params={"response": sign(JARM_CLAIMS, provider_key), "code": "injected"},
            ),
        )

        parse_jarm(request, signing_key=provider_key)

        assert request.lookup("code") == ("abc123", Provenance.VERIFIED)
        assert request.get("code") == "abc123"
