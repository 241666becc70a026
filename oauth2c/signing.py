"""
JWT Signing and Key Loading

Helpers around authlib.jose for client assertions, JWK set loading and
compact JWS/JWE handling. Only explicitly listed algorithms are accepted;
"none" is never allowed.
"""

import base64
import json
import secrets
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import httpx
from authlib.jose import JsonWebEncryption, JsonWebKey, JsonWebSignature, Key, KeySet, OctKey
from authlib.jose.errors import JoseError
from cryptography.exceptions import InvalidTag

from oauth2c._logging import verbose_logger
from oauth2c.config import ClientConfig, ServerConfig
from oauth2c.errors import DecodeError, KeyPolicyError, VerificationError
from oauth2c.request import Claims

JWT_BEARER_CLIENT_ASSERTION = "urn:ietf:params:oauth:client-assertion-type:jwt-bearer"

CLIENT_ASSERTION_LIFETIME = 60  # seconds

SIGNING_ALGORITHMS = [
    "HS256", "HS384", "HS512",
    "RS256", "RS384", "RS512",
    "PS256", "PS384", "PS512",
    "ES256", "ES384", "ES512",
    "EdDSA",
]

DEFAULT_ALGORITHMS = {
    "RSA": "RS256",
    "oct": "HS256",
    "OKP": "EdDSA",
    "P-256": "ES256",
    "P-384": "ES384",
    "P-521": "ES512",
}

# authlib key, key set, JWK (set) dict, or PEM text
KeyLike = Union[Key, KeySet, Dict[str, Any], bytes, str]

_jws = JsonWebSignature(algorithms=SIGNING_ALGORITHMS)
_jwe = JsonWebEncryption()


def client_assertion_claims(sconfig: ServerConfig, cconfig: ClientConfig) -> Dict[str, Any]:
    """Claims of an RFC 7523 client assertion addressed to the token endpoint."""
    now = int(time.time())
    return {
        "iss": cconfig.client_id,
        "sub": cconfig.client_id,
        "aud": sconfig.token_endpoint,
        "jti": secrets.token_urlsafe(16),
        "iat": now,
        "exp": now + CLIENT_ASSERTION_LIFETIME,
    }


def default_algorithm(jwk: Dict[str, Any]) -> str:
    """Signing algorithm for a JWK without an explicit ``alg``."""
    if jwk.get("alg"):
        return jwk["alg"]
    if jwk.get("kty") == "EC":
        return DEFAULT_ALGORITHMS.get(jwk.get("crv", ""), "ES256")
    return DEFAULT_ALGORITHMS.get(jwk.get("kty", ""), "RS256")


def sign_jwt(claims: Dict[str, Any], key: Key, algorithm: str, kid: Optional[str] = None) -> str:
    """
    Sign claims as a compact JWS.

    Raises:
        JoseError / ValueError: If the key cannot sign with ``algorithm``
    """
    header = {"alg": algorithm, "typ": "JWT"}
    if kid:
        header["kid"] = kid
    payload = json.dumps(claims, separators=(",", ":")).encode("utf-8")
    return _jws.serialize_compact(header, payload, key).decode("ascii")


def secret_signing_key(secret: str) -> OctKey:
    """Symmetric key derived from the client secret."""
    return OctKey.import_key(secret.encode("utf-8"))


def load_jwks(text: str) -> List[Dict[str, Any]]:
    """
    Parse a JWK set, a single JWK, or a PEM key into a list of JWK dicts.

    Raises:
        DecodeError: If the content is none of these
    """
    stripped = text.strip()

    if stripped.startswith("-----BEGIN"):
        try:
            key = JsonWebKey.import_key(stripped)
        except (JoseError, ValueError) as e:
            raise DecodeError("failed to parse PEM key", e) from e
        return [key.as_dict(is_private="PRIVATE KEY" in stripped)]

    try:
        data = json.loads(stripped)
    except ValueError as e:
        raise DecodeError("failed to parse JWK set", e) from e

    if isinstance(data, dict) and isinstance(data.get("keys"), list):
        return [k for k in data["keys"] if isinstance(k, dict)]
    if isinstance(data, dict) and "kty" in data:
        return [data]
    raise DecodeError("failed to parse JWK set: neither a key set nor a key")


async def read_jwks(location: str, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
    """
    Read JWKs from an http(s) URL (via ``client``) or a local file.

    Raises:
        httpx.HTTPError: If the key set cannot be fetched
        DecodeError: If the content is not a key set
    """
    if location.startswith(("http://", "https://")):
        verbose_logger.debug(f"Fetching JWK set from {location}")
        response = await client.get(location)
        response.raise_for_status()
        return load_jwks(response.text)

    return load_jwks(Path(location).expanduser().read_text(encoding="utf-8"))


async def load_key_set(location: str, client: httpx.AsyncClient) -> KeySet:
    """Key set for JARM verification or decryption."""
    return JsonWebKey.import_key_set({"keys": await read_jwks(location, client)})


async def jwk_signing_key(cconfig: ClientConfig, client: httpx.AsyncClient) -> Tuple[Key, str, Optional[str]]:
    """
    Resolve the client's asymmetric signing key from its published JWK set.

    Returns:
        Tuple of (key, algorithm, kid)

    Raises:
        KeyPolicyError: If no signing key location is configured or the set
            holds no private signing key
    """
    if not cconfig.signing_key:
        raise KeyPolicyError("no signing key configured for private_key_jwt")

    for jwk in await read_jwks(cconfig.signing_key, client):
        if "d" not in jwk or jwk.get("use") == "enc":
            continue
        return JsonWebKey.import_key(jwk), default_algorithm(jwk), jwk.get("kid")

    raise KeyPolicyError(f"no private signing key found in {cconfig.signing_key}")


def key_types_for(alg: str) -> Tuple[str, ...]:
    """JWK ``kty`` values able to serve the JWS/JWE algorithm ``alg``."""
    if alg.startswith("ECDH-ES"):
        return ("EC", "OKP")
    if alg.startswith(("HS", "A", "PBES2")) or alg == "dir":
        return ("oct",)
    if alg.startswith(("RS", "PS", "RSA")):
        return ("RSA",)
    if alg.startswith("ES"):
        return ("EC",)
    if alg == "EdDSA":
        return ("OKP",)
    return ()


def _import_key(key: KeyLike) -> Union[Key, KeySet]:
    if isinstance(key, (Key, KeySet)):
        return key
    if isinstance(key, dict) and "keys" in key:
        return JsonWebKey.import_key_set(key)
    try:
        return JsonWebKey.import_key(key)
    except (JoseError, ValueError) as e:
        raise KeyPolicyError(f"unusable key: {e}") from e


def key_resolver(key: KeyLike, use: str) -> Callable[..., Key]:
    """
    Adapt ``key`` for authlib deserialization.

    Key sets (or JWK set dicts) resolve per token: by ``kid`` when the header
    has one, else the first key whose ``use`` is absent or matches. The
    header ``alg`` is attacker controlled, so the chosen key must be of a
    type that algorithm works with.
    """
    key = _import_key(key)

    def select(header):
        if not isinstance(key, KeySet):
            return key
        kid = header.get("kid")
        for candidate in key.keys:
            if kid is not None:
                if candidate.kid == kid:
                    return candidate
            elif candidate.tokens.get("use") in (None, use):
                return candidate
        raise KeyPolicyError(f"no {use} key matching kid {kid!r}")

    def resolve(header, payload=None):
        candidate = select(header)
        alg = header.get("alg", "")
        if candidate.kty not in key_types_for(alg):
            raise VerificationError(f"token algorithm {alg} does not fit {candidate.kty} key")
        return candidate

    return resolve


def _b64_json(segment: str, label: str) -> Any:
    try:
        raw = base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))
        return json.loads(raw.decode("utf-8"))
    except ValueError as e:
        raise DecodeError(f"invalid JWT {label}", e) from e


def _compact_header(token: str, segments: int) -> Dict[str, Any]:
    parts = token.split(".")
    if len(parts) != segments:
        raise DecodeError(f"expected {segments} compact segments, got {len(parts)}")
    header = _b64_json(parts[0], "header")
    if not isinstance(header, dict) or not header.get("alg"):
        raise DecodeError("JWT header has no alg")
    return header


def parse_signed(token: str) -> Dict[str, Any]:
    """Check that ``token`` is a compact JWS and return its header."""
    return _compact_header(token, 3)


def parse_encrypted(token: str) -> Dict[str, Any]:
    """Check that ``token`` is a compact JWE and return its protected header."""
    header = _compact_header(token, 5)
    if not header.get("enc"):
        raise DecodeError("JWE header has no enc")
    return header


def decrypt(token: str, key: KeyLike) -> str:
    """
    Decrypt a compact JWE and return its payload (the inner JWS).

    Raises:
        VerificationError: If the token cannot be decrypted with ``key``
    """
    try:
        result = _jwe.deserialize_compact(token, key_resolver(key, "enc"))
    except (JoseError, ValueError, InvalidTag) as e:
        raise VerificationError(f"failed to decrypt encrypted token: {e}") from e
    return result["payload"].decode("utf-8")


def verify(token: str, key: KeyLike) -> Claims:
    """
    Verify a compact JWS and decode its claims.

    Raises:
        VerificationError: If the signature does not verify with ``key``
        DecodeError: If the payload is not a JSON object
    """
    try:
        result = _jws.deserialize_compact(token, key_resolver(key, "sig"))
    except (JoseError, ValueError) as e:
        raise VerificationError(f"failed to verify token signature: {e}") from e

    try:
        claims = json.loads(result["payload"].decode("utf-8"))
    except ValueError as e:
        raise DecodeError("failed to decode token claims", e) from e

    if not isinstance(claims, dict):
        raise DecodeError("token claims are not a JSON object")
    return Claims(claims)


def unverified_claims(token: str) -> Claims:
    """Decode the claims of a compact JWS without checking its signature."""
    parse_signed(token)
    claims = _b64_json(token.split(".")[1], "payload")
    if not isinstance(claims, dict):
        raise DecodeError("token claims are not a JSON object")
    return Claims(claims)
