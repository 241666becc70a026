"""
oauth2c Command Line Interface

Drives a complete authorization_code or client_credentials flow against a
provider discovered from its issuer URL and prints the token response.
"""

import asyncio
import json
import sys
import webbrowser
from typing import Optional

import click
import httpx

from oauth2c._logging import _turn_on_debug, _turn_on_json, verbose_logger
from oauth2c.authorize import redirect_uri, request_authorization
from oauth2c.callback import wait_for_callback
from oauth2c.config import AuthMethod, ClientConfig, GrantType
from oauth2c.discovery import fetch_server_config
from oauth2c.errors import OAuth2Error, ProviderError
from oauth2c.jarm import parse_jarm
from oauth2c.signing import load_key_set
from oauth2c.token import TokenRequestParams, TokenResponse, request_token
from oauth2c.transport import new_http_client


async def run_flow(
    cconfig: ClientConfig,
    callback_addr: str,
    open_browser: bool = True,
    callback_timeout: Optional[float] = None,
) -> TokenResponse:
    """
    Run the configured grant end to end.

    Args:
        cconfig: Client configuration
        callback_addr: host:port for the local callback listener
        open_browser: Whether to open the authorization URL automatically
        callback_timeout: Seconds to wait for the browser redirect

    Returns:
        Token response from the provider
    """
    async with new_http_client(cconfig) as client:
        sconfig = await fetch_server_config(cconfig.issuer_url, client)

        if cconfig.grant_type == GrantType.CLIENT_CREDENTIALS.value:
            _, token = await request_token(cconfig, sconfig, client)
            return token

        authorization = request_authorization(callback_addr, cconfig, sconfig)
        auth_url = str(authorization.url)

        if open_browser:
            click.echo("🌐 Opening browser...", err=True)
            webbrowser.open(auth_url)
        click.echo(f"🔗 Authorization URL:\n   {auth_url}", err=True)

        callback, error = await asyncio.to_thread(wait_for_callback, callback_addr, callback_timeout)
        if error is not None:
            raise error

        if callback.get("response"):
            signing_key = await load_key_set(sconfig.jwks_uri, client) if sconfig.jwks_uri else None
            encryption_key = (
                await load_key_set(cconfig.encryption_key, client) if cconfig.encryption_key else None
            )
            parse_jarm(callback, signing_key, encryption_key)
            if callback.get("error"):
                raise ProviderError(
                    error_code=callback.get("error"),
                    description=callback.get("error_description"),
                    hint=callback.get("error_hint"),
                    trace_id=callback.get("trace_id"),
                )

        if callback.get("state") != authorization.query.get("state"):
            raise click.ClickException("state mismatch in authorization callback")

        code = callback.get("code")
        if not code:
            raise click.ClickException("authorization callback carried no code")

        _, token = await request_token(
            cconfig,
            sconfig,
            client,
            TokenRequestParams(code=code, redirect_url=redirect_uri(callback_addr)),
        )
        return token


@click.command()
@click.argument("issuer_url", envvar="OAUTH2C_ISSUER_URL")
@click.option("--client-id", envvar="OAUTH2C_CLIENT_ID", required=True, help="Client identifier")
@click.option("--client-secret", envvar="OAUTH2C_CLIENT_SECRET", default="", help="Client secret")
@click.option(
    "--grant-type",
    envvar="OAUTH2C_GRANT_TYPE",
    type=click.Choice([g.value for g in GrantType]),
    default=GrantType.AUTHORIZATION_CODE.value,
    show_default=True,
)
@click.option(
    "--auth-method",
    envvar="OAUTH2C_AUTH_METHOD",
    type=click.Choice([m.value for m in AuthMethod]),
    default=AuthMethod.CLIENT_SECRET_BASIC.value,
    show_default=True,
)
@click.option("--signing-key", envvar="OAUTH2C_SIGNING_KEY", default="", help="Client JWK set (path or URL) for private_key_jwt")
@click.option("--encryption-key", envvar="OAUTH2C_ENCRYPTION_KEY", default="", help="Client JWK set (path or URL) for JARM decryption")
@click.option("--tls-cert", envvar="OAUTH2C_TLS_CERT", default="", type=click.Path(), help="Client certificate (PEM)")
@click.option("--tls-key", envvar="OAUTH2C_TLS_KEY", default="", type=click.Path(), help="Client certificate key (PEM)")
@click.option("--tls-root-ca", envvar="OAUTH2C_TLS_ROOT_CA", default="", type=click.Path(), help="Root CA bundle (PEM)")
@click.option("--insecure", is_flag=True, envvar="OAUTH2C_INSECURE", help="Skip TLS verification")
@click.option("--callback-addr", default="localhost:9876", show_default=True, help="Local callback listener address")
@click.option("--callback-timeout", type=float, default=None, help="Seconds to wait for the browser redirect")
@click.option("--no-browser", is_flag=True, help="Don't automatically open browser")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.option("--json-logs", is_flag=True, help="Log as JSON lines")
def main(
    issuer_url: str,
    client_id: str,
    client_secret: str,
    grant_type: str,
    auth_method: str,
    signing_key: str,
    encryption_key: str,
    tls_cert: str,
    tls_key: str,
    tls_root_ca: str,
    insecure: bool,
    callback_addr: str,
    callback_timeout: Optional[float],
    no_browser: bool,
    verbose: bool,
    json_logs: bool,
):
    """
    Obtain tokens from the OAuth2 provider at ISSUER_URL.
    """
    if verbose:
        _turn_on_debug()
    if json_logs:
        _turn_on_json()

    cconfig = ClientConfig(
        issuer_url=issuer_url,
        client_id=client_id,
        client_secret=client_secret,
        grant_type=grant_type,
        auth_method=auth_method,
        signing_key=signing_key,
        encryption_key=encryption_key,
        tls_cert=tls_cert,
        tls_key=tls_key,
        tls_root_ca=tls_root_ca,
        insecure=insecure,
    )

    problems = cconfig.validate()
    if problems:
        raise click.UsageError("; ".join(problems))

    try:
        token = asyncio.run(
            run_flow(cconfig, callback_addr, open_browser=not no_browser, callback_timeout=callback_timeout)
        )
    except ProviderError as e:
        click.echo(f"❌ Provider error: {e}", err=True)
        if e.hint:
            click.echo(f"   Hint: {e.hint}", err=True)
        if e.trace_id:
            click.echo(f"   Trace ID: {e.trace_id}", err=True)
        sys.exit(1)
    except (OAuth2Error, httpx.HTTPError, TimeoutError) as e:
        verbose_logger.debug(f"Flow failed: {e!r}")
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    click.echo(json.dumps(token.to_dict(), indent=2))


if __name__ == "__main__":
    main()
