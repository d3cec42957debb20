import logging

import argparse
import os
import signal
import sys
import threading
from functools import partial
from typing import Optional

from resilient_pinger.pinger import ResilientPinger
from resilient_pinger.scheduler import PingScheduler
from resilient_pinger.statistics import log_statistics
from resilient_pinger.status_server import StatusServer, start_status_server
from resilient_pinger.types import PingerConfig

LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")

logger = logging.getLogger(__name__)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring invalid {name}={value!r}, using default {default}")
        return default


def _log_level(value: Optional[str], default: str = "INFO") -> str:
    level = (value or "").strip().upper()
    if level in LOG_LEVELS:
        return level
    if level:
        logger.warning(f"Ignoring invalid log level {value!r}, using {default}")
    return default


def terminate(
    signum,
    frame,
    scheduler: PingScheduler,
    server: Optional[StatusServer],
):
    logger.warning(f"Received {signal.Signals(signum).name} - shutting down gracefully...")
    scheduler.stop()
    log_statistics(scheduler.pinger.stats)
    if server is not None:
        server.shutdown()
        server.server_close()
    scheduler.pinger.close()
    logger.info("Keep-Alive Service stopped")
    sys.exit(0)


def _log_uncaught(exc_type, exc_value, exc_traceback):
    logger.error(
        f"Uncaught exception in main thread, exiting: {exc_value}",
        exc_info=(exc_type, exc_value, exc_traceback),
    )


def _log_uncaught_thread(args: threading.ExceptHookArgs):
    if args.exc_type is SystemExit:
        return
    logger.error(
        f"Uncaught exception in thread {args.thread.name if args.thread else '?'}: {args.exc_value}",
        exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
    )
    logger.warning("Keep-Alive service continues running...")


def install_exception_hooks() -> None:
    sys.excepthook = _log_uncaught
    threading.excepthook = _log_uncaught_thread


def _parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Resilient Keep-Alive Pinger")

    parser.add_argument(
        "--server_url",
        type=str,
        default=os.getenv("SERVER_URL", ""),
        help="Base URL of the monitored service (env SERVER_URL)",
    )
    parser.add_argument(
        "--health_path",
        type=str,
        default=os.getenv("HEALTH_PATH", "/api/health"),
        help="Health check path (default: /api/health or env HEALTH_PATH)",
    )
    parser.add_argument(
        "--ping_interval",
        type=int,
        default=_env_int("PING_INTERVAL", 5 * 60 * 1000),
        help="Ping interval in milliseconds (default: 300000 or env PING_INTERVAL)",
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=_env_int("TIMEOUT", 30000),
        help="Request timeout in milliseconds (default: 30000 or env TIMEOUT)",
    )
    parser.add_argument(
        "--retry_delay",
        type=int,
        default=_env_int("RETRY_DELAY", 10000),
        help="Initial retry delay in milliseconds (default: 10000 or env RETRY_DELAY)",
    )
    parser.add_argument(
        "--max_retry_delay",
        type=int,
        default=_env_int("MAX_RETRY_DELAY", 60000),
        help="Maximum retry delay in milliseconds (default: 60000 or env MAX_RETRY_DELAY)",
    )
    parser.add_argument(
        "--http_address",
        type=str,
        default=os.getenv("HTTP_ADDRESS", "0.0.0.0"),
        help="Status server bind address (default: 0.0.0.0 or env HTTP_ADDRESS)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=_env_int("PORT", 3001),
        help="Status server port (default: 3001 or env PORT). Set to 0 to disable.",
    )
    parser.add_argument(
        "--log_level",
        type=str,
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (default: INFO or env LOG_LEVEL)",
    )

    return parser.parse_args(argv)


def build_config(args) -> PingerConfig:
    return PingerConfig(
        server_url=args.server_url,
        health_path=args.health_path,
        ping_interval_ms=args.ping_interval,
        timeout_ms=args.timeout,
        initial_retry_delay_ms=args.retry_delay,
        max_retry_delay_ms=args.max_retry_delay,
        http_address=args.http_address,
        port=args.port,
    )


def main(config: PingerConfig) -> None:
    pinger = ResilientPinger(config)
    scheduler = PingScheduler(pinger)

    # Status surface, required by some hosting platforms
    server = None
    if config.port:
        server, _ = start_status_server(config.http_address, config.port, pinger.stats, config)

    signal.signal(signal.SIGINT, partial(terminate, scheduler=scheduler, server=server))
    signal.signal(signal.SIGTERM, partial(terminate, scheduler=scheduler, server=server))
    install_exception_hooks()

    scheduler.run()


def run(argv=None) -> None:
    logging.basicConfig(level=_log_level(os.getenv("LOG_LEVEL")), format=LOG_FORMAT)
    args = _parse_args(argv)
    logging.getLogger().setLevel(_log_level(args.log_level))
    logger.debug("Configuration:")
    logger.debug(f"\tServer URL: {args.server_url}")
    logger.debug(f"\tHealth Path: {args.health_path}")
    logger.debug(f"\tPing Interval: {args.ping_interval}")
    logger.debug(f"\tTimeout: {args.timeout}")
    logger.debug(f"\tRetry Delay: {args.retry_delay}")
    logger.debug(f"\tMax Retry Delay: {args.max_retry_delay}")
    logger.debug(f"\tHTTP Address: {args.http_address}")
    logger.debug(f"\tPort: {args.port}")

    # Do nothing if there is no target
    if not args.server_url.strip():
        logger.warning("No server URL provided, exiting.")
        return

    main(build_config(args))


if __name__ == "__main__":
    run()
