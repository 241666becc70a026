"""
JARM Response Verifier

Decodes an authorization response delivered as a JWT (JWT Secured
Authorization Response Mode). The ``response`` value may be a signed JWT
or a signed-then-encrypted (nested) JWT. Verification fails closed: a
missing key is an error, never a reason to skip the check.
"""

from typing import Optional

from oauth2c._logging import verbose_logger
from oauth2c.errors import CombinedParseError, DecodeError, KeyPolicyError
from oauth2c.request import Claims, Request
from oauth2c.signing import KeyLike, decrypt, parse_encrypted, parse_signed, verify


def parse_jarm(
    request: Request,
    signing_key: Optional[KeyLike] = None,
    encryption_key: Optional[KeyLike] = None,
) -> Claims:
    """
    Verify the JARM ``response`` carried by ``request`` and store its claims.

    ``request.jarm`` is reset first and only populated once the token has
    been fully verified, so it is never left partially filled.

    Args:
        request: Inbound callback request
        signing_key: Key (or key set) that verifies the provider's signature
        encryption_key: Key (or key set) that decrypts a nested token

    Returns:
        The verified claims (empty when there is no ``response`` value)

    Raises:
        CombinedParseError: If the value is neither a nested nor a signed JWT
        KeyPolicyError: If a required key was not supplied
        VerificationError: If decryption or signature verification fails
        DecodeError: If the verified payload is not a JSON object
    """
    response = request.get("response")
    request.jarm = Claims()

    if not response:
        return request.jarm

    try:
        parse_encrypted(response)
    except DecodeError as nested_error:
        try:
            parse_signed(response)
        except DecodeError as signed_error:
            raise CombinedParseError(nested_error, signed_error) from signed_error
        token = response
    else:
        if encryption_key is None:
            raise KeyPolicyError("no decryption key for encrypted JARM response")
        token = decrypt(response, encryption_key)
        try:
            parse_signed(token)
        except DecodeError as e:
            raise DecodeError("encrypted JARM response does not contain a signed token", e) from e

    if signing_key is None:
        raise KeyPolicyError("no verification key for JARM response")

    claims = verify(token, signing_key)
    request.jarm = claims

    verbose_logger.debug("Verified JARM response")

    return claims
