"""
Authorization Request Builder

Builds the browser-facing authorization URL for the Authorization Code grant.
"""

import secrets

import httpx

from oauth2c._logging import verbose_logger
from oauth2c.config import ClientConfig, ServerConfig
from oauth2c.errors import ConfigurationError
from oauth2c.request import Request

CALLBACK_PATH = "/callback"


def generate_state() -> str:
    """Random value for the state / nonce parameters."""
    return secrets.token_urlsafe(16)


def redirect_uri(addr: str) -> str:
    """Redirect URI served by the local callback listener at ``addr``."""
    return f"http://{addr}{CALLBACK_PATH}"


def request_authorization(addr: str, cconfig: ClientConfig, sconfig: ServerConfig) -> Request:
    """
    Build the authorization request.

    Args:
        addr: host:port of the local callback listener
        cconfig: Client configuration
        sconfig: Provider metadata

    Returns:
        GET Request targeting the authorization endpoint

    Raises:
        ConfigurationError: If the authorization endpoint is not an absolute URL
    """
    try:
        url = httpx.URL(sconfig.authorization_endpoint)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"failed to parse authorization endpoint: {e}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(
            f"failed to parse authorization endpoint: {sconfig.authorization_endpoint!r}"
        )

    url = url.copy_merge_params({
        "client_id": cconfig.client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri(addr),
        "state": generate_state(),
        "nonce": generate_state(),
    })

    verbose_logger.debug(f"Built authorization request for client {cconfig.client_id}")

    return Request(method="GET", url=url)
