import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Tuple

from prometheus_client import CONTENT_TYPE_LATEST, REGISTRY, generate_latest

from resilient_pinger.statistics import PingStatistics, log_statistics
from resilient_pinger.types import PingerConfig

SERVICE_NAME = "Resilient Keep-Alive Service"

logger = logging.getLogger(__name__)


class StatusServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address: Tuple[str, int], stats: PingStatistics, config: PingerConfig):
        super().__init__(address, StatusHandler)
        self.stats = stats
        self.config = config


class StatusHandler(BaseHTTPRequestHandler):
    server: StatusServer

    def do_GET(self):
        path = self.path.split("?", 1)[0]
        if path in ("/", "/health"):
            body = json.dumps(
                {
                    "status": "running",
                    "service": SERVICE_NAME,
                    "targetServer": self.server.config.server_url,
                    "stats": self.server.stats.snapshot(),
                },
                indent=2,
            )
            self._reply(200, "application/json", body.encode("utf-8"))
        elif path == "/stats":
            log_statistics(self.server.stats)
            self._reply(200, "text/plain", b"Stats displayed in console. Check logs.")
        elif path == "/metrics":
            self._reply(200, CONTENT_TYPE_LATEST, generate_latest(REGISTRY))
        else:
            self._reply(404, "text/plain", b"Not found")

    def _reply(self, status: int, content_type: str, body: bytes) -> None:
        self.send_response(status)
        self.send_header("Content-Type", content_type)
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format, *args):
        logger.debug(f"{self.address_string()} - {format % args}")


def start_status_server(
    address: str, port: int, stats: PingStatistics, config: PingerConfig
) -> Tuple[StatusServer, threading.Thread]:
    server = StatusServer((address, port), stats, config)
    thread = threading.Thread(target=server.serve_forever, name="status-server", daemon=True)
    thread.start()
    host, bound_port = server.server_address[:2]
    logger.info(f"Status server listening on {host}:{bound_port}")
    logger.info(f"Stats available at: http://localhost:{bound_port}/stats")
    return server, thread
