"""
Client Authenticator

Layers token endpoint client authentication onto a Request. Exactly one
handler runs per call, chosen by the configured method; "none" and unknown
methods leave the Request untouched.
"""

from typing import Awaitable, Callable, Dict

import httpx

from oauth2c._logging import verbose_logger
from oauth2c.config import AuthMethod, ClientConfig, ServerConfig
from oauth2c.request import Request
from oauth2c.signing import (
    JWT_BEARER_CLIENT_ASSERTION,
    client_assertion_claims,
    jwk_signing_key,
    secret_signing_key,
    sign_jwt,
)
from oauth2c.transport import client_certificate

Handler = Callable[
    [Request, str, str, ClientConfig, ServerConfig, httpx.AsyncClient],
    Awaitable[str],
]


async def _client_secret_post(request, endpoint, mtls_endpoint, cconfig, sconfig, client):
    request.form["client_id"] = cconfig.client_id
    request.form["client_secret"] = cconfig.client_secret
    return endpoint


async def _client_secret_basic(request, endpoint, mtls_endpoint, cconfig, sconfig, client):
    # credentials travel in the Authorization header, set by the caller
    return endpoint


async def _client_secret_jwt(request, endpoint, mtls_endpoint, cconfig, sconfig, client):
    key = secret_signing_key(cconfig.client_secret)
    assertion = sign_jwt(client_assertion_claims(sconfig, cconfig), key, "HS256")

    request.key = key
    request.form["client_assertion_type"] = JWT_BEARER_CLIENT_ASSERTION
    request.form["client_assertion"] = assertion
    return endpoint


async def _private_key_jwt(request, endpoint, mtls_endpoint, cconfig, sconfig, client):
    key, algorithm, kid = await jwk_signing_key(cconfig, client)
    assertion = sign_jwt(client_assertion_claims(sconfig, cconfig), key, algorithm, kid=kid)

    request.key = key
    request.form["client_assertion_type"] = JWT_BEARER_CLIENT_ASSERTION
    request.form["client_assertion"] = assertion
    return endpoint


async def _tls_client_auth(request, endpoint, mtls_endpoint, cconfig, sconfig, client):
    request.form["client_id"] = cconfig.client_id
    request.cert = client_certificate(client)
    # RFC 8705: without an mTLS alias the regular endpoint accepts mTLS
    return mtls_endpoint or endpoint


_HANDLERS: Dict[AuthMethod, Handler] = {
    AuthMethod.CLIENT_SECRET_POST: _client_secret_post,
    AuthMethod.CLIENT_SECRET_BASIC: _client_secret_basic,
    AuthMethod.CLIENT_SECRET_JWT: _client_secret_jwt,
    AuthMethod.PRIVATE_KEY_JWT: _private_key_jwt,
    AuthMethod.TLS_CLIENT_AUTH: _tls_client_auth,
    AuthMethod.SELF_SIGNED_TLS_CLIENT_AUTH: _tls_client_auth,
}


async def authenticate_client(
    request: Request,
    endpoint: str,
    mtls_endpoint: str,
    cconfig: ClientConfig,
    sconfig: ServerConfig,
    client: httpx.AsyncClient,
) -> str:
    """
    Apply the configured client authentication method to ``request``.

    Args:
        request: Request under construction; its form is mutated in place
        endpoint: Primary endpoint
        mtls_endpoint: Mutual-TLS alias of the endpoint
        cconfig: Client configuration
        sconfig: Provider metadata
        client: HTTP client (JWK set fetches, mTLS certificate)

    Returns:
        Endpoint the request must be sent to

    Raises:
        KeyPolicyError, JoseError, httpx.HTTPError: If the client assertion
            cannot be signed. Authentication fields are left unset.
    """
    method = AuthMethod.parse(cconfig.auth_method)
    handler = _HANDLERS.get(method) if method is not None else None

    if handler is None:
        verbose_logger.debug(f"No client authentication applied for method {cconfig.auth_method!r}")
        return endpoint

    verbose_logger.debug(f"Authenticating client {cconfig.client_id} with {method.value}")
    return await handler(request, endpoint, mtls_endpoint, cconfig, sconfig, client)
