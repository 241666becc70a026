"""
Provider Discovery

Fetches OpenID Provider metadata and turns it into a ServerConfig.
"""

import httpx

from oauth2c._logging import verbose_logger
from oauth2c.config import ServerConfig
from oauth2c.errors import DiscoveryError

OPENID_CONFIGURATION_PATH = "/.well-known/openid-configuration"


async def fetch_server_config(issuer: str, client: httpx.AsyncClient) -> ServerConfig:
    """
    Discover provider metadata for ``issuer``.

    Raises:
        DiscoveryError: On a non-200 answer, a non-JSON body or an issuer mismatch
        httpx.HTTPError: On transport failures
    """
    normalized_issuer = issuer.rstrip("/")
    url = f"{normalized_issuer}{OPENID_CONFIGURATION_PATH}"

    verbose_logger.debug(f"Fetching provider metadata from {url}")

    response = await client.get(url)
    if response.status_code != 200:
        raise DiscoveryError(f"OIDC metadata discovery failed for issuer {normalized_issuer} with status {response.status_code}")

    try:
        metadata = response.json()
    except ValueError as e:
        raise DiscoveryError(f"OIDC metadata for issuer {normalized_issuer} is not valid JSON") from e

    if not isinstance(metadata, dict):
        raise DiscoveryError(f"OIDC metadata for issuer {normalized_issuer} is not a JSON object")

    metadata_issuer = (metadata.get("issuer") or "").rstrip("/")
    if metadata_issuer != normalized_issuer:
        raise DiscoveryError(f"OIDC issuer mismatch: expected {normalized_issuer}, got {metadata.get('issuer')}")

    return ServerConfig.from_metadata(metadata)
