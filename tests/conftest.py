"""Pytest configuration and fixtures for oauth2c tests."""

import datetime
import json
import socket

import pytest
from authlib.jose import JsonWebEncryption, JsonWebKey, JsonWebSignature
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from oauth2c.config import ClientConfig, ServerConfig

ISSUER = "https://idp.example.com"
TEST_SECRET = "s3cr3t-value-that-is-long-enough-for-hs256-signing"


@pytest.fixture
def server_config():
    """Provider metadata used across tests."""
    return ServerConfig(
        issuer=ISSUER,
        authorization_endpoint=f"{ISSUER}/oauth2/auth",
        token_endpoint=f"{ISSUER}/oauth2/token",
        mtls_token_endpoint="https://mtls.idp.example.com/oauth2/token",
        jwks_uri=f"{ISSUER}/.well-known/jwks.json",
    )


@pytest.fixture
def client_config():
    """Client using client_secret_basic."""
    return ClientConfig(
        issuer_url=ISSUER,
        client_id="test-client",
        client_secret=TEST_SECRET,
        grant_type="authorization_code",
        auth_method="client_secret_basic",
    )


@pytest.fixture(scope="session")
def provider_key():
    """RSA key the provider signs JARM responses with."""
    return JsonWebKey.generate_key("RSA", 2048, options={"kid": "provider-sig", "use": "sig"}, is_private=True)


@pytest.fixture(scope="session")
def other_key():
    """Unrelated RSA key."""
    return JsonWebKey.generate_key("RSA", 2048, options={"kid": "other"}, is_private=True)


@pytest.fixture(scope="session")
def client_encryption_key():
    """RSA key the client decrypts JARM responses with."""
    return JsonWebKey.generate_key("RSA", 2048, options={"kid": "client-enc", "use": "enc"}, is_private=True)


@pytest.fixture
def sign():
    """Sign claims as a compact JWS."""
    def _sign(claims, key, alg="RS256"):
        header = {"alg": alg}
        kid = key.kid
        if kid:
            header["kid"] = kid
        return JsonWebSignature().serialize_compact(header, json.dumps(claims).encode(), key).decode()
    return _sign


@pytest.fixture
def encrypt():
    """Encrypt a compact token as a nested JWE."""
    def _encrypt(token, key):
        header = {"alg": "RSA-OAEP", "enc": "A256GCM", "cty": "JWT"}
        kid = key.kid
        if kid:
            header["kid"] = kid
        return JsonWebEncryption().serialize_compact(header, token.encode(), key).decode()
    return _encrypt


@pytest.fixture
def free_addr():
    """host:port of an unused local TCP port."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    return f"127.0.0.1:{port}"


@pytest.fixture
def tls_files(tmp_path):
    """Self-signed client certificate and key written as PEM files."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "test-client")])
    now = datetime.datetime.now(datetime.timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(minutes=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )

    cert_file = tmp_path / "client.pem"
    key_file = tmp_path / "client.key"
    cert_file.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    key_file.write_bytes(
        key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.TraditionalOpenSSL,
            serialization.NoEncryption(),
        )
    )
    return str(cert_file), str(key_file), cert
