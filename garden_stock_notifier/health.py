"""
Liveness endpoint.

Hosting platforms (Render and the like) only keep a web service alive if
something answers HTTP on $PORT.  This server says the notifier is running
and nothing more.
"""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Optional
from urllib.parse import urlparse

from . import config

logger = logging.getLogger(__name__)

RUNNING_TEXT = b"Stock Notifier is running.\n"


class HealthHandler(BaseHTTPRequestHandler):
    """Static status pages; no state is read or written."""

    def log_message(self, format, *args):
        """Override to use Python logging instead of stderr."""
        logger.debug("%s - %s", self.address_string(), format % args)

    def do_GET(self):
        path = urlparse(self.path).path
        if path in ("/", "/health"):
            self._send(200, "text/plain", RUNNING_TEXT)
        elif path == "/status":
            status = {
                "status": "running",
                "keywords": list(config.KEYWORDS),
                "target_minutes": sorted(config.TARGET_MINUTES),
                "target_second": config.TARGET_SECOND,
                "timezone": config.TIMEZONE,
                "quiet_hours": [config.QUIET_HOURS_START, config.QUIET_HOURS_END],
                "notifications_enabled": config.twilio_configured(),
            }
            self._send(200, "application/json", json.dumps(status).encode("utf-8"))
        else:
            self._send(404, "text/plain", b"Not Found\n")

    def _send(self, code: int, content_type: str, body: bytes) -> None:
        self.send_response(code)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


class HealthServer:
    """Background HTTP server answering liveness probes."""

    def __init__(self, host: str = "0.0.0.0", port: int = 3000):
        self.host = host
        self.port = port
        self.server: Optional[HTTPServer] = None
        self.server_thread: Optional[threading.Thread] = None
        self.running = False

    def start(self) -> str:
        """Start the server and return its base URL ("" if it could not bind)."""
        if self.running:
            return self.base_url

        try:
            self.server = HTTPServer((self.host, self.port), HealthHandler)
        except OSError as e:
            logger.error("Failed to start health server on %s:%s: %s", self.host, self.port, e)
            return ""

        # Port 0 asks the OS for a free port.
        self.port = self.server.server_address[1]
        self.server_thread = threading.Thread(target=self.server.serve_forever, name="health", daemon=True)
        self.server_thread.start()
        self.running = True
        logger.info("Health server listening at %s", self.base_url)
        return self.base_url

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def stop(self):
        if self.server and self.running:
            self.server.shutdown()
            self.server.server_close()
            self.running = False
            logger.info("Health server stopped")
