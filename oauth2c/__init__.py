"""
oauth2c - OAuth2 client-side protocol engine

Authorization Code and Client Credentials grants with client authentication
(secret, JWT assertion, mutual TLS) and JARM response verification.
"""

__version__ = "0.1.0"

from .authenticate import authenticate_client
from .authorize import request_authorization
from .callback import wait_for_callback
from .config import AuthMethod, ClientConfig, GrantType, ServerConfig
from .discovery import fetch_server_config
from .errors import (
    ClaimTypeError,
    CombinedParseError,
    ConfigurationError,
    DecodeError,
    DiscoveryError,
    KeyPolicyError,
    OAuth2Error,
    ProviderError,
    VerificationError,
)
from .jarm import parse_jarm
from .request import Claims, Provenance, Request
from .token import TokenRequestParams, TokenResponse, request_token
from .transport import FlowClient, MutualTLSTransport, client_certificate, new_http_client

__all__ = [
    "__version__",
    "AuthMethod",
    "ClaimTypeError",
    "Claims",
    "ClientConfig",
    "CombinedParseError",
    "ConfigurationError",
    "DecodeError",
    "DiscoveryError",
    "FlowClient",
    "GrantType",
    "KeyPolicyError",
    "MutualTLSTransport",
    "OAuth2Error",
    "Provenance",
    "ProviderError",
    "Request",
    "ServerConfig",
    "TokenRequestParams",
    "TokenResponse",
    "VerificationError",
    "authenticate_client",
    "client_certificate",
    "fetch_server_config",
    "new_http_client",
    "parse_jarm",
    "request_authorization",
    "request_token",
    "wait_for_callback",
]
