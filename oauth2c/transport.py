"""
HTTP Transport Helpers

Builds the httpx client used by a flow. The TLS client certificate is loaded
once into the transport; authentication code only borrows the parsed leaf
certificate for inspection.
"""

import ssl
from pathlib import Path
from typing import List, Optional

import httpx
from cryptography import x509

from oauth2c.config import ClientConfig

DEFAULT_TIMEOUT = 30.0


def _ssl_context(root_ca: str = "", insecure: bool = False) -> ssl.SSLContext:
    context = ssl.create_default_context(cafile=root_ca or None)
    if insecure:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class MutualTLSTransport(httpx.AsyncHTTPTransport):
    """
    Async transport presenting a TLS client certificate.

    Attributes:
        certificates: Parsed certificate chain from ``cert_file``, leaf first
    """

    def __init__(
        self,
        cert_file: str,
        key_file: str,
        root_ca: str = "",
        insecure: bool = False,
        **kwargs,
    ):
        context = _ssl_context(root_ca, insecure)
        context.load_cert_chain(cert_file, key_file)
        super().__init__(verify=context, **kwargs)
        self.certificates: List[x509.Certificate] = x509.load_pem_x509_certificates(
            Path(cert_file).read_bytes()
        )


class FlowClient(httpx.AsyncClient):
    """httpx.AsyncClient that keeps a public handle on its transport."""

    def __init__(self, transport: httpx.AsyncBaseTransport, **kwargs):
        super().__init__(transport=transport, **kwargs)
        self.transport = transport


def new_http_client(cconfig: ClientConfig, timeout: float = DEFAULT_TIMEOUT) -> FlowClient:
    """
    Create the HTTP client for a flow.

    Args:
        cconfig: Client configuration (TLS material paths)
        timeout: Default request timeout in seconds

    Returns:
        FlowClient, using MutualTLSTransport when a client certificate is
        configured
    """
    if cconfig.tls_cert and cconfig.tls_key:
        transport = MutualTLSTransport(
            cconfig.tls_cert,
            cconfig.tls_key,
            root_ca=cconfig.tls_root_ca,
            insecure=cconfig.insecure,
        )
    else:
        transport = httpx.AsyncHTTPTransport(verify=_ssl_context(cconfig.tls_root_ca, cconfig.insecure))

    return FlowClient(transport=transport, timeout=timeout)


def client_certificate(client: httpx.AsyncClient) -> Optional[x509.Certificate]:
    """
    Leaf certificate configured on the client's transport.

    Only a FlowClient exposes its transport; any other client yields None.
    """
    if not isinstance(client, FlowClient):
        return None
    transport = client.transport
    if isinstance(transport, MutualTLSTransport) and transport.certificates:
        return transport.certificates[0]
    return None
