"""Loopback HTTP server that captures the OAuth redirect for the CLI login."""
from __future__ import annotations
import logging
import threading
import time
from http.server import HTTPServer, BaseHTTPRequestHandler
from typing import Dict
from urllib.parse import urlparse, parse_qs

logger = logging.getLogger(__name__)


class OAuthServer(HTTPServer):
    def __init__(self, server_address, RequestHandlerClass, callback_path: str = "/callback"):
        super().__init__(server_address, RequestHandlerClass)
        self.callback_path = callback_path
        self.params: Dict[str, str] | None = None


class OAuthHandler(BaseHTTPRequestHandler):
    def do_GET(self):  # type: ignore[override]
        parsed = urlparse(self.path)
        server: OAuthServer = self.server  # type: ignore[assignment]
        # Browsers also request /favicon.ico; only the callback path counts
        if parsed.path.rstrip('/') != server.callback_path.rstrip('/'):
            self.send_response(404)
            self.end_headers()
            return
        qs = {k: v[0] for k, v in parse_qs(parsed.query).items() if v}
        if 'code' in qs or 'error' in qs:
            server.params = qs
        logger.debug(f"Callback received path={parsed.path} keys={sorted(qs)}")
        self.send_response(200)
        self.send_header('Content-Type', 'text/plain')
        self.end_headers()
        if 'error' in qs:
            self.wfile.write(b"Authorization failed. You may close this window.")
        else:
            self.wfile.write(b"You may close this window.")

    def log_message(self, format, *args):  # silence default logging
        return


def wait_for_redirect(host: str, port: int, path: str = "/callback", timeout_seconds: float = 300) -> Dict[str, str]:
    """Serve the redirect target until the provider calls back.

    Returns:
        The callback query parameters (``code``/``state`` or ``error``/``error_description``)

    Raises:
        TimeoutError: If no callback arrives in time
    """
    server = OAuthServer((host, port), OAuthHandler, callback_path=path)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    logger.debug(f"Local server started on {host}:{port}, waiting for authorization redirect...")
    try:
        start = time.time()
        while server.params is None:
            if time.time() - start > timeout_seconds:
                raise TimeoutError("Authorization timeout expired.")
            time.sleep(0.05)
        return dict(server.params)
    finally:
        server.shutdown()
        server.server_close()


__all__ = ["wait_for_redirect", "OAuthServer", "OAuthHandler"]
