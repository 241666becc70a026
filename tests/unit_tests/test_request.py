"""
Tests for Request and Claims
"""

import httpx
import pytest

from oauth2c.errors import ClaimTypeError
from oauth2c.request import Claims, Provenance, Request


@pytest.fixture
def claims():
    return Claims({
        "sub": "user-1",
        "exp": 1700000000,
        "ratio": 0.5,
        "whole": 3.0,
        "admin": True,
        "groups": ["a", "b"],
        "address": {"country": "DE"},
        "nothing": None,
    })


class TestClaims:
    """Test suite for typed claim accessors."""

    def test_get_str(self, claims):
        assert claims.get_str("sub") == "user-1"

    def test_get_number(self, claims):
        assert claims.get_number("exp") == 1700000000
        assert claims.get_number("ratio") == 0.5

    def test_get_int(self, claims):
        assert claims.get_int("exp") == 1700000000
        assert claims.get_int("whole") == 3
        assert isinstance(claims.get_int("whole"), int)

    def test_get_int_rejects_fraction(self, claims):
        with pytest.raises(ClaimTypeError):
            claims.get_int("ratio")

    def test_get_bool(self, claims):
        assert claims.get_bool("admin") is True

    def test_bool_is_not_a_number(self, claims):
        """Test a boolean claim does not pass as a number."""
        with pytest.raises(ClaimTypeError):
            claims.get_number("admin")
        with pytest.raises(ClaimTypeError):
            claims.get_int("admin")

    def test_get_list(self, claims):
        assert claims.get_list("groups") == ["a", "b"]

    def test_get_map(self, claims):
        address = claims.get_map("address")
        assert isinstance(address, Claims)
        assert address.get_str("country") == "DE"

    @pytest.mark.parametrize(
        "accessor,key",
        [
            ("get_str", "exp"),
            ("get_number", "sub"),
            ("get_bool", "sub"),
            ("get_list", "address"),
            ("get_map", "groups"),
            ("get_str", "nothing"),
        ],
    )
    def test_wrong_type(self, claims, accessor, key):
        """Test a claim of another type raises instead of coercing."""
        with pytest.raises(ClaimTypeError, match=key):
            getattr(claims, accessor)(key)

    def test_claim_type_error_is_type_error(self, claims):
        with pytest.raises(TypeError):
            claims.get_str("exp")

    def test_missing_returns_default(self, claims):
        assert claims.get_str("missing") is None
        assert claims.get_int("missing", 7) == 7
        assert claims.get_list("missing", []) == []


class TestRequestLookup:
    """Test suite for Request value lookup."""

    def test_query_value(self):
        request = Request(url=httpx.URL("http://localhost/callback?code=abc"))

        assert request.lookup("code") == ("abc", Provenance.QUERY)
        assert request.get("code") == "abc"

    def test_form_value(self):
        request = Request(form={"code": "abc"})

        assert request.lookup("code") == ("abc", Provenance.FORM)

    def test_query_before_form(self):
        request = Request(url=httpx.URL("http://localhost/callback?code=q"), form={"code": "f"})

        assert request.lookup("code") == ("q", Provenance.QUERY)

    def test_empty_query_falls_through_to_form(self):
        request = Request(url=httpx.URL("http://localhost/callback?code="), form={"code": "f"})

        assert request.get("code") == "f"

    def test_verified_before_query(self):
        request = Request(
            url=httpx.URL("http://localhost/callback?state=q"),
            form={"state": "f"},
            jarm=Claims({"state": "j"}),
        )

        assert request.lookup("state") == ("j", Provenance.VERIFIED)

    def test_non_string_claim_is_skipped(self):
        """Test a non-string JARM claim does not shadow string values."""
        request = Request(url=httpx.URL("http://localhost/callback?exp=q"), jarm=Claims({"exp": 1}))

        assert request.lookup("exp") == ("q", Provenance.QUERY)

    def test_absent(self):
        request = Request()

        assert request.lookup("code") == (None, None)
        assert request.get("code") == ""

    def test_query_without_url(self):
        assert len(Request().query) == 0
