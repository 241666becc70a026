"""
Client and Server Configuration

Immutable configuration records for a single OAuth2 flow. ClientConfig is
supplied by the caller (or loaded from the environment); ServerConfig comes
from provider discovery metadata.
"""

import os
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class GrantType(str, Enum):
    """Supported OAuth2 grant types."""
    AUTHORIZATION_CODE = "authorization_code"
    CLIENT_CREDENTIALS = "client_credentials"


class AuthMethod(str, Enum):
    """Token endpoint client authentication methods."""
    CLIENT_SECRET_BASIC = "client_secret_basic"
    CLIENT_SECRET_POST = "client_secret_post"
    CLIENT_SECRET_JWT = "client_secret_jwt"
    PRIVATE_KEY_JWT = "private_key_jwt"
    TLS_CLIENT_AUTH = "tls_client_auth"
    SELF_SIGNED_TLS_CLIENT_AUTH = "self_signed_tls_client_auth"
    NONE = "none"

    @classmethod
    def parse(cls, value: Any) -> Optional["AuthMethod"]:
        """
        Resolve a configured method name.

        Args:
            value: AuthMethod member or its string value

        Returns:
            The matching member, or None when the name is unknown
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


SECRET_AUTH_METHODS = frozenset({
    AuthMethod.CLIENT_SECRET_BASIC,
    AuthMethod.CLIENT_SECRET_POST,
    AuthMethod.CLIENT_SECRET_JWT,
})

TLS_AUTH_METHODS = frozenset({
    AuthMethod.TLS_CLIENT_AUTH,
    AuthMethod.SELF_SIGNED_TLS_CLIENT_AUTH,
})

ENV_PREFIX = "OAUTH2C_"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


@dataclass(frozen=True)
class ClientConfig:
    """
    Client side settings for one flow.

    Only one authentication method is active per config; the TLS and key
    locations are consulted only by the methods that need them.
    """
    issuer_url: str
    client_id: str
    client_secret: str = ""
    grant_type: str = GrantType.AUTHORIZATION_CODE.value
    auth_method: str = AuthMethod.CLIENT_SECRET_BASIC.value
    signing_key: str = ""
    encryption_key: str = ""
    tls_cert: str = ""
    tls_key: str = ""
    tls_root_ca: str = ""
    insecure: bool = False

    def __post_init__(self):
        object.__setattr__(self, "grant_type", _plain(self.grant_type))
        object.__setattr__(self, "auth_method", _plain(self.auth_method))

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ClientConfig":
        """
        Load client configuration from OAUTH2C_* environment variables.

        Args:
            environ: Mapping to read instead of os.environ

        Returns:
            ClientConfig populated from the variables that are set
        """
        environ = os.environ if environ is None else environ
        values: Dict[str, Any] = {}

        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            if f.name == "insecure":
                values[f.name] = raw.strip().lower() in ("1", "true", "yes", "on")
            else:
                values[f.name] = raw

        values.setdefault("issuer_url", "")
        values.setdefault("client_id", "")
        return cls(**values)

    def validate(self) -> List[str]:
        """Return a list of configuration problems (empty when usable)."""
        errors = []
        if not self.issuer_url:
            errors.append("issuer_url is required")
        if not self.client_id:
            errors.append("client_id is required")

        if self.grant_type not in {g.value for g in GrantType}:
            errors.append(f"unsupported grant type: {self.grant_type}")

        method = AuthMethod.parse(self.auth_method)
        if method is None:
            errors.append(f"unknown auth method: {self.auth_method}")
        elif method in SECRET_AUTH_METHODS and not self.client_secret:
            errors.append(f"client_secret is required for {method.value}")
        elif method == AuthMethod.PRIVATE_KEY_JWT and not self.signing_key:
            errors.append("signing_key is required for private_key_jwt")
        elif method in TLS_AUTH_METHODS and not (self.tls_cert and self.tls_key):
            errors.append(f"tls_cert and tls_key are required for {method.value}")

        return errors


@dataclass(frozen=True)
class ServerConfig:
    """Provider metadata needed by the flow."""
    issuer: str = ""
    authorization_endpoint: str = ""
    token_endpoint: str = ""
    mtls_token_endpoint: str = ""
    jwks_uri: str = ""

    @classmethod
    def from_metadata(cls, metadata: Mapping[str, Any]) -> "ServerConfig":
        """Build a ServerConfig from an OpenID / RFC 8414 discovery document."""
        aliases = metadata.get("mtls_endpoint_aliases") or {}
        return cls(
            issuer=metadata.get("issuer") or "",
            authorization_endpoint=metadata.get("authorization_endpoint") or "",
            token_endpoint=metadata.get("token_endpoint") or "",
            mtls_token_endpoint=aliases.get("token_endpoint") or "",
            jwks_uri=metadata.get("jwks_uri") or "",
        )
