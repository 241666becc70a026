"""
Callback Listener

Single-shot local HTTP server that captures the provider's redirect.

Each call owns a private HTTPServer serving on one dedicated thread. The
caller blocks until the first request to /callback has been answered; the
server is then shut down after a short grace period so the browser can
render the response, and the call returns once the socket is closed.
"""

import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional, Tuple
from urllib.parse import parse_qsl, urlsplit

import httpx

from oauth2c._logging import verbose_logger
from oauth2c.authorize import CALLBACK_PATH
from oauth2c.errors import ProviderError
from oauth2c.request import Request

SHUTDOWN_GRACE_SECONDS = 1.0

SUCCESS_MESSAGE = b"Authorization succeeded. You may close this browser."
FAILURE_MESSAGE = b"Authorization failed. You may close this browser."
DUPLICATE_MESSAGE = b"Authorization callback already received."
BAD_REQUEST_MESSAGE = b"Malformed authorization callback."


class _CallbackServer(HTTPServer):
    """HTTPServer carrying the state of a single callback wait."""

    def __init__(self, address, grace: float):
        super().__init__(address, _CallbackHandler)
        self.grace = grace
        self.done = threading.Event()
        self.lock = threading.Lock()
        self.request_data: Optional[Request] = None
        self.error: Optional[ProviderError] = None

    def schedule_shutdown(self) -> None:
        timer = threading.Timer(self.grace, self.shutdown)
        timer.daemon = True
        timer.start()


class _CallbackHandler(BaseHTTPRequestHandler):
    """HTTP request handler for the OAuth callback."""

    server: _CallbackServer

    def do_GET(self):
        self._handle(form={})

    def do_POST(self):
        try:
            length = int(self.headers.get("Content-Length") or 0)
        except ValueError:
            length = -1
        if length < 0:
            self.close_connection = True
            self._respond(400, BAD_REQUEST_MESSAGE)
            return

        body = self.rfile.read(length) if length else b""
        form = {}
        content_type = self.headers.get("Content-Type", "")
        if content_type.startswith("application/x-www-form-urlencoded"):
            form = dict(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))
        self._handle(form=form)

    def _request_url(self) -> Optional[httpx.URL]:
        host, port = self.server.server_address[:2]
        local = f"{host}:{port}"
        for authority in (self.headers.get("Host") or local, local):
            try:
                return httpx.URL(f"http://{authority}{self.path}")
            except (httpx.InvalidURL, ValueError):
                verbose_logger.debug(f"callback listener: unusable authority {authority!r}")
        return None

    def _handle(self, form):
        if urlsplit(self.path).path != CALLBACK_PATH:
            self._respond(404, b"Not found")
            return

        url = self._request_url()
        if url is None:
            self._respond(400, BAD_REQUEST_MESSAGE)
            return

        with self.server.lock:
            if self.server.request_data is not None:
                self._respond(409, DUPLICATE_MESSAGE)
                return

            request = Request(method=self.command, url=url, form=form)
            params = request.query
            error_code = params.get("error") or form.get("error")

            if error_code:
                source = params if params.get("error") else form
                self.server.error = ProviderError(
                    error_code=error_code,
                    description=source.get("error_description") or "",
                    hint=source.get("error_hint") or "",
                    trace_id=source.get("trace_id") or "",
                )
                self._respond(400, FAILURE_MESSAGE)
            else:
                self._respond(200, SUCCESS_MESSAGE)

            self.server.request_data = request

        self.server.schedule_shutdown()
        self.server.done.set()

    def _respond(self, status: int, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        verbose_logger.debug("callback listener: " + format % args)


def _parse_addr(addr: str) -> Tuple[str, int]:
    parts = urlsplit(f"//{addr}")
    if parts.port is None:
        raise ValueError(f"callback address must be host:port, got {addr!r}")
    return parts.hostname or "", parts.port


def wait_for_callback(
    addr: str,
    timeout: Optional[float] = None,
    grace: float = SHUTDOWN_GRACE_SECONDS,
) -> Tuple[Request, Optional[ProviderError]]:
    """
    Serve ``http://<addr>/callback`` until one redirect arrives.

    Args:
        addr: host:port to listen on
        timeout: Seconds to wait for the redirect (None waits forever)
        grace: Delay between answering the browser and closing the socket

    Returns:
        Tuple of (captured request, provider error or None)

    Raises:
        OSError: If the address cannot be bound
        TimeoutError: If no callback arrived within ``timeout``
    """
    server = _CallbackServer(_parse_addr(addr), grace)
    thread = threading.Thread(
        target=server.serve_forever,
        name=f"oauth2c-callback-{addr}",
        daemon=True,
    )
    thread.start()

    verbose_logger.info(f"Waiting for authorization callback on {addr}")

    try:
        if not server.done.wait(timeout):
            raise TimeoutError(f"no authorization callback received on {addr} within {timeout} seconds")
        thread.join()
    finally:
        if thread.is_alive():
            server.shutdown()
            thread.join()
        server.server_close()

    verbose_logger.debug(f"Callback listener on {addr} closed")

    return server.request_data, server.error
