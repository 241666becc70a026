"""
Token Exchanger

Performs the authorization_code / client_credentials token request against
the provider's token endpoint and decodes the JSON token response.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple, Union

import httpx

from oauth2c._logging import verbose_logger
from oauth2c.authenticate import authenticate_client
from oauth2c.config import AuthMethod, ClientConfig, ServerConfig
from oauth2c.errors import DecodeError, parse_error
from oauth2c.request import Claims, Request
from oauth2c.signing import unverified_claims

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass(frozen=True)
class TokenRequestParams:
    """Optional token request parameters; empty values are omitted."""
    code: str = ""
    redirect_url: str = ""


@dataclass(frozen=True)
class TokenResponse:
    """Token endpoint response. Providers omit fields freely, so all are optional."""
    access_token: Optional[str] = None
    token_type: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    id_token: Optional[str] = None
    issued_token_type: Optional[str] = None
    scope: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Any) -> "TokenResponse":
        """
        Build a TokenResponse from a decoded JSON body.

        Raises:
            DecodeError: If the body is not an object or expires_in is not an integer
        """
        if not isinstance(data, Mapping):
            raise DecodeError("failed to parse exchange response: expected a JSON object")

        expires_in = data.get("expires_in")
        if expires_in is not None:
            if isinstance(expires_in, bool):
                raise DecodeError(f"failed to parse exchange response: invalid expires_in {expires_in!r}")
            try:
                expires_in = int(expires_in)
            except (TypeError, ValueError) as e:
                raise DecodeError("failed to parse exchange response: invalid expires_in", e) from e

        def _str(name: str) -> Optional[str]:
            value = data.get(name)
            return None if value is None else str(value)

        return cls(
            access_token=_str("access_token"),
            token_type=_str("token_type"),
            expires_in=expires_in,
            refresh_token=_str("refresh_token"),
            id_token=_str("id_token"),
            issued_token_type=_str("issued_token_type"),
            scope=_str("scope"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Fields that were present in the response."""
        return {k: v for k, v in self.__dict__.items() if v is not None}

    def id_token_claims(self) -> Claims:
        """
        Extract the ID token claims without validating the token.

        Returns:
            Claims of the ID token (empty when there is none)
        """
        if not self.id_token:
            return Claims()
        return unverified_claims(self.id_token)


async def request_token(
    cconfig: ClientConfig,
    sconfig: ServerConfig,
    client: httpx.AsyncClient,
    params: Optional[TokenRequestParams] = None,
    timeout: Union[float, httpx.Timeout, None] = None,
) -> Tuple[Request, TokenResponse]:
    """
    Exchange a grant for tokens.

    Args:
        cconfig: Client configuration (grant type, auth method)
        sconfig: Provider metadata (token endpoints)
        client: HTTP client used for the exchange
        params: Authorization code / redirect URL, when the grant needs them
        timeout: Per-call timeout overriding the client's default

    Returns:
        Tuple of (the Request that was sent, parsed TokenResponse)

    Raises:
        ProviderError: If the token endpoint answers with a non-200 status
        DecodeError: If a 200 response is not valid token JSON
        httpx.HTTPError: On transport failures and timeouts
    """
    params = params or TokenRequestParams()
    request = Request(form={"grant_type": cconfig.grant_type})

    if params.redirect_url:
        request.form["redirect_uri"] = params.redirect_url
    if params.code:
        request.form["code"] = params.code

    endpoint = await authenticate_client(
        request,
        sconfig.token_endpoint,
        sconfig.mtls_token_endpoint,
        cconfig,
        sconfig,
        client,
    )

    http_request = client.build_request(
        "POST",
        endpoint,
        data=request.form,
        headers={"Content-Type": FORM_CONTENT_TYPE},
        timeout=timeout if timeout is not None else httpx.USE_CLIENT_DEFAULT,
    )

    auth = httpx.USE_CLIENT_DEFAULT
    if AuthMethod.parse(cconfig.auth_method) == AuthMethod.CLIENT_SECRET_BASIC:
        auth = httpx.BasicAuth(cconfig.client_id, cconfig.client_secret)

    request.method = http_request.method
    request.url = http_request.url
    request.headers = dict(http_request.headers)

    verbose_logger.debug(f"Requesting token from {endpoint} with grant {cconfig.grant_type}")

    response = await client.send(http_request, auth=auth)
    # headers as sent, including the Basic credentials
    request.headers = dict(response.request.headers)

    if response.status_code != 200:
        verbose_logger.debug(f"Token endpoint returned {response.status_code}")
        raise parse_error(response)

    try:
        body = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError("failed to parse exchange response", e) from e

    return request, TokenResponse.from_dict(body)
