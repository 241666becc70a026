"""
OAuth2 Error Model

Provider-reported errors keep the provider's vocabulary (error code,
description, hint, trace id). Local failures get their own types so callers
can tell the two apart. Transport failures are raised by httpx unchanged.
"""

import json
from typing import Optional

import httpx


class OAuth2Error(Exception):
    """Base exception for the oauth2c engine."""


class ProviderError(OAuth2Error):
    """Structured error reported by the authorization or token endpoint."""

    def __init__(
        self,
        error_code: str = "",
        description: str = "",
        hint: str = "",
        trace_id: str = "",
        status_code: Optional[int] = None,
    ):
        self.error_code = error_code
        self.description = description
        self.hint = hint
        self.trace_id = trace_id
        self.status_code = status_code
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.description:
            return f"{self.error_code}: {self.description}"
        return self.error_code

    def __repr__(self) -> str:
        return (
            f"ProviderError(error_code={self.error_code!r}, description={self.description!r}, "
            f"hint={self.hint!r}, trace_id={self.trace_id!r}, status_code={self.status_code!r})"
        )


class DecodeError(OAuth2Error):
    """Malformed JSON token response or malformed JWT."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class VerificationError(OAuth2Error):
    """A JWT signature did not verify or a JWE could not be decrypted."""


class KeyPolicyError(OAuth2Error):
    """A required verification or decryption key was not supplied."""


class CombinedParseError(OAuth2Error):
    """Neither the nested (signed+encrypted) nor the signed-only parse succeeded."""

    def __init__(self, nested_error: BaseException, signed_error: BaseException):
        self.nested_error = nested_error
        self.signed_error = signed_error
        self.errors = (nested_error, signed_error)
        super().__init__(
            "failed to parse JARM response: "
            f"nested token: {nested_error}; signed token: {signed_error}"
        )


class ClaimTypeError(OAuth2Error, TypeError):
    """A claim exists but does not have the requested type."""


class ConfigurationError(OAuth2Error):
    """Client or server configuration cannot be used."""


class DiscoveryError(OAuth2Error):
    """Provider metadata discovery failed."""


def parse_error(response: httpx.Response) -> ProviderError:
    """
    Build a ProviderError from a non-200 endpoint response.

    Args:
        response: httpx response whose body has already been read

    Returns:
        ProviderError carrying the provider's error fields and status code
    """
    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None

    if not isinstance(body, dict):
        return ProviderError(description=response.text, status_code=response.status_code)

    return ProviderError(
        error_code=str(body.get("error") or ""),
        description=str(body.get("error_description") or ""),
        hint=str(body.get("error_hint") or ""),
        trace_id=str(body.get("trace_id") or ""),
        status_code=response.status_code,
    )
